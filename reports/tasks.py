"""
Celery Tasks for Report Automation

Scheduled tasks for:
- Sending yesterday's daily sales summary to subscribed webhooks
"""

from datetime import timedelta

from celery import shared_task
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone
import logging

logger = logging.getLogger(__name__)


def subscribed_branches():
    """Active branches with at least one active daily summary webhook (branch-bound or global)."""
    from inventory.models import Branch
    from webhooks.models import Webhook

    subscriptions = Webhook.objects.filter(event=Webhook.EVENT_DAILY_SALES_SUMMARY, is_active=True)
    global_businesses = subscriptions.filter(branch__isnull=True).values('business_id')
    bound_branches = subscriptions.filter(branch__isnull=False).values('branch_id')

    return (
        Branch.objects.select_related('business')
        .filter(is_active=True, business__is_active=True)
        .filter(Q(business_id__in=global_businesses) | Q(id__in=bound_branches))
        .order_by('business_id', 'code')
    )


@shared_task(name='reports.send_daily_sales_summaries')
def send_daily_sales_summaries(day: str = None):
    """
    Periodic task that pushes the daily sales summary for every subscribed branch.

    Configured in Celery Beat to run once a day, shortly after midnight.

    Args:
        day: YYYY-MM-DD to summarize (default: yesterday)

    Returns:
        dict: Summary of execution results
    """
    from reports.exceptions import ReportException
    from reports.services.daily_summary import DAILY_SALES_SUMMARY, DailySalesSummaryService
    from reports.utils.date_utils import DateRangeValidator
    from webhooks.services import WebhookDispatcher

    target = DateRangeValidator.parse_date(day) if day else timezone.localdate() - timedelta(days=1)
    if target is None:
        raise ValueError(f'Invalid date {day!r}; expected YYYY-MM-DD')

    results = {'date': target.isoformat(), 'total_found': 0, 'successful': 0, 'failed': 0, 'webhooks': 0}
    dispatcher = WebhookDispatcher()

    for branch in subscribed_branches():
        results['total_found'] += 1
        try:
            summary = DailySalesSummaryService().build(branch, target)
            logs = dispatcher.trigger(
                DAILY_SALES_SUMMARY,
                summary,
                business_id=branch.business_id,
                branch_id=branch.id,
            )
        except (ReportException, DatabaseError) as e:
            results['failed'] += 1
            logger.error(f"Daily sales summary failed for branch {branch.id}: {str(e)}", exc_info=True)
            continue

        results['successful'] += 1
        results['webhooks'] += len(logs)

    logger.info(
        f"Daily sales summaries for {results['date']}: "
        f"{results['total_found']} branches, "
        f"{results['successful']} successful, "
        f"{results['failed']} failed, "
        f"{results['webhooks']} webhooks queued"
    )
    return results
