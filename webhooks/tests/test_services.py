import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock, patch

import requests
from celery.exceptions import Retry
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone
from kombu.exceptions import OperationalError

from accounts.models import Business
from inventory.models import Branch
from webhooks.models import Webhook, WebhookLog
from webhooks.services import (
    WebhookDeliveryService,
    WebhookDispatcher,
    retry_delay_seconds,
    sign_payload,
    to_json_payload,
    verify_signature,
)
from webhooks.tasks import deliver_webhook

User = get_user_model()

EVENT = Webhook.EVENT_DAILY_SALES_SUMMARY


class SignatureTests(TestCase):

    def test_sign_and_verify(self):
        body = b'{"date": "2024-03-12"}'
        signature = sign_payload(body, 'secret')
        self.assertEqual(len(signature), 64)
        self.assertTrue(verify_signature(body, signature, 'secret'))
        self.assertFalse(verify_signature(body, signature, 'other-secret'))
        self.assertFalse(verify_signature(body + b' ', signature, 'secret'))
        self.assertFalse(verify_signature(body, '', 'secret'))

    def test_backoff(self):
        self.assertEqual([retry_delay_seconds(attempt) for attempt in (1, 2, 3)], [2, 4, 8])

    def test_payload_is_json_safe(self):
        payload = to_json_payload({
            'amount': Decimal('10.50'),
            'at': timezone.make_aware(datetime(2024, 3, 12, 9, 30)),
        })
        self.assertEqual(payload['amount'], 10.5)
        self.assertTrue(payload['at'].startswith('2024-03-12T09:30:00'))


class WebhookTestCase(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user(email='owner@test.com', password='pass12345', name='Owner')
        self.business = Business.objects.create(owner=self.owner, name='Webhook Biz')
        self.branch = Branch.objects.create(business=self.business, name='Main', code='MAIN')
        self.other_branch = Branch.objects.create(business=self.business, name='Second', code='SEC')
        self.webhook = Webhook.objects.create(
            business=self.business,
            name='ERP',
            url='https://erp.example.com/hooks',
            event=EVENT,
            secret_key='s3cret',
            headers={'Authorization': 'Bearer abc'},
            retry_count=3,
        )

    def make_log(self, **kwargs):
        values = {
            'webhook': self.webhook,
            'business': self.business,
            'branch': self.branch,
            'event': EVENT,
            'payload': {'date': '2024-03-12', 'summary': {'grossRevenue': 222.0}},
        }
        values.update(kwargs)
        return WebhookLog.objects.create(**values)


@patch('webhooks.services.deliver_webhook')
class WebhookDispatcherTests(WebhookTestCase):

    def test_subscribers(self, deliver):
        bound = Webhook.objects.create(
            business=self.business, branch=self.branch, name='Branch hook', url='https://a.example.com', event=EVENT,
        )
        Webhook.objects.create(
            business=self.business, branch=self.other_branch, name='Other', url='https://b.example.com', event=EVENT,
        )
        Webhook.objects.create(
            business=self.business, name='Off', url='https://c.example.com', event=EVENT, is_active=False,
        )
        subscribers = WebhookDispatcher.subscribers(EVENT, self.business.id, self.branch.id)
        self.assertEqual(set(subscribers), {self.webhook, bound})
        self.assertEqual(set(WebhookDispatcher.subscribers(EVENT, self.business.id)), {self.webhook})

    def test_trigger_creates_pending_logs_and_queues(self, deliver):
        logs = WebhookDispatcher().trigger(
            EVENT, {'total': Decimal('1.50')}, business_id=self.business.id,
            branch_id=self.branch.id, triggered_by=self.owner,
        )
        self.assertEqual(len(logs), 1)
        log = WebhookLog.objects.get()
        self.assertEqual(log.status, WebhookLog.STATUS_PENDING)
        self.assertEqual(log.attempt, 0)
        self.assertEqual(log.payload, {'total': 1.5})
        deliver.delay.assert_called_once_with(str(log.id))

    def test_queue_failure_is_recorded(self, deliver):
        deliver.delay.side_effect = OperationalError('connection refused')
        logs = WebhookDispatcher().trigger(EVENT, {}, business_id=self.business.id, branch_id=self.branch.id)
        self.assertEqual(logs[0].status, WebhookLog.STATUS_FAILED)
        self.assertIn('connection refused', WebhookLog.objects.get().error_message)

    def test_no_subscribers(self, deliver):
        other = Business.objects.create(owner=self.owner, name='Quiet Biz')
        self.assertEqual(WebhookDispatcher().trigger(EVENT, {}, business_id=other.id), [])
        deliver.delay.assert_not_called()


@override_settings(WEBHOOK_USER_AGENT='POS-HQ-Webhooks/1.0', WEBHOOK_RESPONSE_BODY_LIMIT=1000)
class WebhookDeliveryTests(WebhookTestCase):

    def response(self, status_code=200, text='ok'):
        response = Mock(status_code=status_code, text=text)
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.exceptions.HTTPError(f'{status_code} Server Error')
        return response

    def test_request_shape(self):
        log = self.make_log()
        body, headers = WebhookDeliveryService().build_request(log)
        envelope = json.loads(body)
        self.assertEqual(envelope['event'], EVENT)
        self.assertEqual(envelope['data'], log.payload)
        self.assertEqual(envelope['tenantId'], str(self.business.id))
        self.assertEqual(envelope['branchId'], str(self.branch.id))
        self.assertIn('timestamp', envelope)
        self.assertNotIn('signature', envelope)
        self.assertEqual(headers['X-Webhook-Signature'], sign_payload(body, 's3cret'))
        self.assertTrue(verify_signature(body, headers['X-Webhook-Signature'], 's3cret'))
        self.assertEqual(headers['User-Agent'], 'POS-HQ-Webhooks/1.0')
        self.assertEqual(headers['X-Webhook-Event'], EVENT)
        self.assertEqual(headers['X-Webhook-Branch'], str(self.branch.id))
        self.assertEqual(headers['Authorization'], 'Bearer abc')

    def test_unsigned_without_secret(self):
        self.webhook.secret_key = ''
        self.webhook.save()
        body, headers = WebhookDeliveryService().build_request(self.make_log(branch=None))
        self.assertNotIn('X-Webhook-Signature', headers)
        self.assertIsNone(json.loads(body)['branchId'])

    @patch('webhooks.services.requests.post')
    def test_sends_the_signed_bytes(self, post):
        post.return_value = self.response(200)
        WebhookDeliveryService().deliver(self.make_log())
        _, kwargs = post.call_args
        self.assertNotIn('json', kwargs)
        self.assertTrue(verify_signature(kwargs['data'], kwargs['headers']['X-Webhook-Signature'], 's3cret'))

    @patch('webhooks.services.requests.post')
    def test_success(self, post):
        post.return_value = self.response(200, 'x' * 1500)
        log = self.make_log()
        self.assertIsNone(WebhookDeliveryService().deliver(log))

        log.refresh_from_db()
        self.assertEqual(log.status, WebhookLog.STATUS_SUCCESS)
        self.assertEqual(log.attempt, 1)
        self.assertEqual(log.response_status, 200)
        self.assertEqual(len(log.response_body), 1000)
        self.assertIsNotNone(log.duration_ms)
        _, kwargs = post.call_args
        self.assertEqual(kwargs['timeout'], 30)
        self.assertEqual(post.call_args[0][0], 'https://erp.example.com/hooks')

    @patch('webhooks.services.requests.post')
    def test_failure_schedules_retry(self, post):
        post.side_effect = requests.exceptions.ConnectionError('connection reset')
        log = self.make_log()
        before = timezone.now()
        self.assertEqual(WebhookDeliveryService().deliver(log), 2)

        log.refresh_from_db()
        self.assertEqual(log.status, WebhookLog.STATUS_RETRYING)
        self.assertEqual(log.attempt, 1)
        self.assertIn('connection reset', log.error_message)
        self.assertGreaterEqual((log.next_retry_at - before).total_seconds(), 2)

    @patch('webhooks.services.requests.post')
    def test_http_error_records_response(self, post):
        post.return_value = self.response(503, 'unavailable')
        log = self.make_log(attempt=1, status=WebhookLog.STATUS_RETRYING)
        self.assertEqual(WebhookDeliveryService().deliver(log), 4)
        log.refresh_from_db()
        self.assertEqual(log.response_status, 503)
        self.assertEqual(log.response_body, 'unavailable')

    @patch('webhooks.services.requests.post')
    def test_gives_up_after_retry_count(self, post):
        post.side_effect = requests.exceptions.Timeout('timed out')
        log = self.make_log(attempt=2, status=WebhookLog.STATUS_RETRYING)
        self.assertIsNone(WebhookDeliveryService().deliver(log))
        log.refresh_from_db()
        self.assertEqual(log.status, WebhookLog.STATUS_FAILED)
        self.assertEqual(log.attempt, 3)
        self.assertIsNone(log.next_retry_at)

    @patch('webhooks.services.requests.post')
    def test_calls_endpoint_retry_count_times(self, post):
        post.side_effect = requests.exceptions.Timeout('timed out')
        log = self.make_log()
        service = WebhookDeliveryService()
        delays = []
        while True:
            delay = service.deliver(log)
            if delay is None:
                break
            delays.append(delay)

        self.assertEqual(post.call_count, 3)
        self.assertEqual(delays, [2, 4])
        log.refresh_from_db()
        self.assertEqual(log.status, WebhookLog.STATUS_FAILED)
        self.assertEqual(log.attempt, 3)


class DeliverWebhookTaskTests(WebhookTestCase):

    @patch('webhooks.services.WebhookDeliveryService.deliver', return_value=None)
    def test_delivers(self, deliver):
        log = self.make_log()
        deliver_webhook(str(log.id))
        deliver.assert_called_once()
        self.assertEqual(deliver.call_args[0][0].id, log.id)

    @patch('webhooks.services.WebhookDeliveryService.deliver', return_value=4)
    def test_retries_with_backoff(self, deliver):
        log = self.make_log()
        with patch.object(deliver_webhook, 'retry', side_effect=Retry()) as retry:
            with self.assertRaises(Retry):
                deliver_webhook(str(log.id))
        retry.assert_called_once_with(countdown=4)

    @patch('webhooks.services.WebhookDeliveryService.deliver')
    def test_skips_finished_and_missing_logs(self, deliver):
        log = self.make_log(status=WebhookLog.STATUS_SUCCESS)
        self.assertEqual(deliver_webhook(str(log.id)), WebhookLog.STATUS_SUCCESS)
        self.assertIsNone(deliver_webhook('00000000-0000-0000-0000-000000000000'))
        deliver.assert_not_called()
