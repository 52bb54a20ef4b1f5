"""
Celery tasks for outgoing webhooks.
"""
import logging

from celery import shared_task


logger = logging.getLogger(__name__)


@shared_task(bind=True, name='webhooks.deliver_webhook', max_retries=None)
def deliver_webhook(self, log_id: str):
    """
    Deliver one webhook log, rescheduling itself with exponential backoff.

    The retry budget comes from the webhook's ``retry_count``, not from
    Celery's ``max_retries``.
    """
    from webhooks.models import WebhookLog
    from webhooks.services import WebhookDeliveryService

    try:
        log = WebhookLog.objects.select_related('webhook').get(id=log_id)
    except WebhookLog.DoesNotExist:
        logger.warning("Webhook log %s no longer exists; skipping delivery", log_id)
        return None

    if log.status in (WebhookLog.STATUS_SUCCESS, WebhookLog.STATUS_FAILED):
        return log.status

    retry_in = WebhookDeliveryService().deliver(log)
    if retry_in is not None:
        raise self.retry(countdown=retry_in)
    return log.status
