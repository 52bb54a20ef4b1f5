"""
Outgoing webhook dispatch.

``WebhookDispatcher.trigger`` records one pending ``WebhookLog`` per matching
subscription and queues its delivery. ``WebhookDeliveryService.deliver``
performs one HTTP attempt and records the outcome on the log.
"""
import hashlib
import hmac
import json
import logging
import time
from datetime import timedelta
from typing import List, Optional

import requests
from django.conf import settings
from django.db.models import Q
from django.utils import timezone
from kombu.exceptions import OperationalError
from rest_framework.utils.encoders import JSONEncoder

from .models import Webhook, WebhookLog
from .tasks import deliver_webhook


logger = logging.getLogger(__name__)


def to_json_payload(data):
    """Round-trip through the API encoder so Decimals and datetimes store as JSON."""
    return json.loads(json.dumps(data, cls=JSONEncoder))


def sign_payload(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check a received signature in constant time."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(sign_payload(body, secret), signature)


def retry_delay_seconds(attempt: int) -> int:
    """Exponential backoff: 2, 4, 8... seconds after attempts 1, 2, 3."""
    return 2 ** attempt


class WebhookDispatcher:
    """Fans an event out to the tenant's active webhooks."""

    @staticmethod
    def subscribers(event: str, business_id, branch_id=None):
        scope = Q(branch__isnull=True)
        if branch_id:
            scope |= Q(branch_id=branch_id)
        return Webhook.objects.filter(scope, business_id=business_id, event=event, is_active=True)

    def trigger(self, event: str, payload, business_id, branch_id=None, triggered_by=None) -> List[WebhookLog]:
        """
        Create a pending log per subscribed webhook and queue delivery.

        Returns the created logs. Queueing failures are recorded on the log
        and logged; they are not raised.
        """
        data = to_json_payload(payload)
        logs = []
        for webhook in self.subscribers(event, business_id, branch_id):
            log = WebhookLog.objects.create(
                webhook=webhook,
                business_id=business_id,
                branch_id=branch_id,
                event=event,
                payload=data,
                triggered_by=triggered_by,
            )
            try:
                deliver_webhook.delay(str(log.id))
            except OperationalError as exc:
                logger.error("Could not queue webhook %s for event %s: %s", webhook.id, event, exc, exc_info=True)
                log.status = WebhookLog.STATUS_FAILED
                log.error_message = f'Could not queue delivery: {exc}'
                log.save(update_fields=['status', 'error_message', 'updated_at'])
            logs.append(log)

        logger.info("Triggered %d webhook(s) for event %s (business %s)", len(logs), event, business_id)
        return logs


class WebhookDeliveryService:
    """Performs single delivery attempts."""

    def build_request(self, log: WebhookLog):
        """
        Return the exact request body and headers for ``log``.

        The body is the JSON envelope (event, data, timestamp, tenantId,
        branchId). When the webhook has a secret, ``X-Webhook-Signature``
        carries the hex HMAC-SHA256 of those body bytes, so receivers verify
        the raw body as received.
        """
        webhook = log.webhook
        envelope = {
            'event': log.event,
            'data': log.payload,
            'timestamp': timezone.now().isoformat(),
            'tenantId': str(log.business_id),
            'branchId': str(log.branch_id) if log.branch_id else None,
        }
        body = json.dumps(envelope, cls=JSONEncoder).encode('utf-8')

        headers = {
            'Content-Type': 'application/json',
            'User-Agent': settings.WEBHOOK_USER_AGENT,
            'X-Webhook-Event': log.event,
            'X-Webhook-Tenant': str(log.business_id),
            'X-Webhook-Branch': str(log.branch_id) if log.branch_id else '',
        }
        headers.update({str(key): str(value) for key, value in (webhook.headers or {}).items()})
        if webhook.secret_key:
            headers['X-Webhook-Signature'] = sign_payload(body, webhook.secret_key)
        return body, headers

    def deliver(self, log: WebhookLog) -> Optional[int]:
        """
        Make one attempt and record it.

        Returns the retry delay in seconds when another attempt should be
        scheduled, or None when the log reached a final state.
        """
        webhook = log.webhook
        body, headers = self.build_request(log)
        log.attempt += 1
        started = time.monotonic()
        body_limit = settings.WEBHOOK_RESPONSE_BODY_LIMIT

        try:
            response = requests.post(
                webhook.url,
                data=body,
                headers=headers,
                timeout=webhook.timeout_seconds or settings.WEBHOOK_DEFAULT_TIMEOUT_SECONDS,
            )
            log.response_status = response.status_code
            log.response_body = (response.text or '')[:body_limit]
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            log.duration_ms = int((time.monotonic() - started) * 1000)
            log.error_message = str(exc)[:body_limit]
            return self._record_failure(log)

        log.duration_ms = int((time.monotonic() - started) * 1000)
        log.status = WebhookLog.STATUS_SUCCESS
        log.error_message = ''
        log.next_retry_at = None
        log.save()
        logger.info("Webhook %s delivered %s (attempt %d, %sms)", webhook.id, log.event, log.attempt, log.duration_ms)
        return None

    def _record_failure(self, log: WebhookLog) -> Optional[int]:
        if log.attempt < log.webhook.retry_count:
            delay = retry_delay_seconds(log.attempt)
            log.status = WebhookLog.STATUS_RETRYING
            log.next_retry_at = timezone.now() + timedelta(seconds=delay)
            log.save()
            logger.warning(
                "Webhook %s attempt %d failed, retrying in %ss: %s",
                log.webhook_id, log.attempt, delay, log.error_message,
            )
            return delay

        log.status = WebhookLog.STATUS_FAILED
        log.next_retry_at = None
        log.save()
        logger.error("Webhook %s failed after %d attempts: %s", log.webhook_id, log.attempt, log.error_message)
        return None
