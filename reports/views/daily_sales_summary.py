"""
Daily Sales Summary

POST /reports/api/daily-sales-summary/  compute a branch's summary and notify webhooks
GET  /reports/api/daily-sales-summary/  list previous webhook dispatches
"""

import logging
import uuid
from datetime import timedelta

from django.db import DatabaseError
from django.utils import timezone
from kombu.exceptions import OperationalError
from rest_framework.exceptions import ValidationError

from inventory.models import Branch
from reports.exceptions import BranchNotFound, InvalidBranchFilter, InvalidReportPeriod
from reports.services.daily_summary import DAILY_SALES_SUMMARY, DailySalesSummaryService
from reports.services.report_base import BaseReportView, parse_bool
from reports.utils.date_utils import DateRangeValidator
from reports.utils.response import ReportResponse
from webhooks.filters import WebhookLogFilter
from webhooks.models import WebhookLog
from webhooks.serializers import WebhookLogSerializer
from webhooks.services import WebhookDispatcher


logger = logging.getLogger(__name__)


class DailySalesSummaryView(BaseReportView):
    """
    Body (POST):
    - branchId: UUID (default: the requester's default branch)
    - date: YYYY-MM-DD (default: yesterday)
    - includeDetails: bool

    Query Parameters (GET):
    - page, limit (default 20)
    - branchId: UUID (optional)
    """

    http_method_names = ['get', 'post', 'head', 'options']

    def get_branch(self, request, branch_id):
        requester = self.get_requester(request)
        branch_id = branch_id or requester.default_branch_id
        if not branch_id:
            raise InvalidBranchFilter('branchId is required.', {'branchId': None})
        try:
            branch_id = uuid.UUID(str(branch_id))
        except ValueError:
            raise InvalidBranchFilter(f"'{branch_id}' is not a valid branch id.", {'branchId': branch_id})

        branches = Branch.objects.select_related('business')
        if not requester.is_super_admin or request.data.get(self.tenant_param):
            branches = branches.filter(business_id=self.get_business(request, request.data).id)

        branch = branches.filter(id=branch_id).first()
        if branch is None:
            raise BranchNotFound(details={'branchId': str(branch_id)})
        return branch

    def get_day(self, raw):
        if not raw:
            return timezone.localdate() - timedelta(days=1)
        day = DateRangeValidator.parse_date(str(raw))
        if day is None:
            raise InvalidReportPeriod('Invalid date format. Use YYYY-MM-DD.', {'date': raw})
        return day

    def post(self, request, *args, **kwargs):
        branch = self.get_branch(request, request.data.get('branchId'))
        day = self.get_day(request.data.get('date'))
        include_details = parse_bool(request.data.get('includeDetails'))

        summary = DailySalesSummaryService(self.get_requester(request)).build(
            branch, day, include_details=include_details
        )

        try:
            logs = WebhookDispatcher().trigger(
                DAILY_SALES_SUMMARY,
                summary,
                business_id=branch.business_id,
                branch_id=branch.id,
                triggered_by=request.user,
            )
        except (OperationalError, DatabaseError) as exc:
            logger.error("Daily summary webhooks not dispatched for branch %s: %s", branch.id, exc, exc_info=True)
            logs = []

        logger.info(
            "Daily sales summary for branch %s on %s generated by %s (%d webhook(s))",
            branch.id, day, request.user.pk, len(logs),
        )
        return ReportResponse.success(
            summary,
            message=f'Daily sales summary generated for {branch.name} on {day.isoformat()}',
        )

    def get(self, request, *args, **kwargs):
        requester = self.get_requester(request)
        logs = WebhookLog.objects.select_related('webhook', 'branch', 'triggered_by').filter(
            event=DAILY_SALES_SUMMARY
        )
        if not requester.is_super_admin or request.query_params.get(self.tenant_param):
            logs = logs.filter(business_id=self.get_business(request).id)

        filterset = WebhookLogFilter(request.query_params, queryset=logs)
        if not filterset.is_valid():
            raise ValidationError(filterset.errors)
        logs = filterset.qs
        page, limit = self.get_pagination_params(request)
        page_logs, total = self.paginate_queryset(logs.order_by('-created_at', 'id'), page, limit)

        return ReportResponse.paginated(
            WebhookLogSerializer(page_logs, many=True).data,
            page=page,
            limit=limit,
            total=total,
        )
