"""
Consolidated Multi-Branch Reports

GET /reports/api/consolidated/
GET /reports/api/consolidated-financial/
"""

import logging

from reports.services.consolidated import (
    CONSOLIDATED_REPORT_TYPES,
    FINANCIAL_REPORT_TYPES,
    ConsolidatedReportService,
    get_report_definition,
)
from reports.services.filters import resolve_filters
from reports.services.report_base import BaseReportView, parse_bool


logger = logging.getLogger(__name__)


class ConsolidatedReportBaseView(BaseReportView):
    """
    Shared GET handler for the consolidated endpoints.

    Query Parameters:
    - reportType: one of ``report_catalog`` (default: ``default_report_type``)
    - period: today, yesterday, week, month, quarter, year (default: month)
    - startDate / endDate: YYYY-MM-DD, both or neither; override period
    - branchIds: all, a JSON array, or a comma-separated list of branch ids
    - groupBy: branch, region, day, month (optional)
    - includeDetails: true to append recent transactions
    - format: json (default), csv, pdf
    - tenantId: super admins only
    """

    http_method_names = ['get', 'head', 'options']
    report_catalog = {}
    default_report_type = None
    default_period = 'month'

    def get(self, request, *args, **kwargs):
        params = request.query_params
        report_type = (params.get('reportType') or self.default_report_type).strip()

        # Everything that can be rejected is rejected before aggregation
        definition = get_report_definition(report_type, self.report_catalog)
        export_format = self.get_export_format(request)
        business = self.get_business(request)
        filters = resolve_filters(business.id, params, default_period=self.default_period)
        include_details = parse_bool(params.get('includeDetails'))

        service = ConsolidatedReportService(self.get_requester(request), currency=business.currency)
        data = service.build(report_type, definition, filters, include_details=include_details)

        logger.info(
            "Served %s report for tenant %s to user %s (%s)",
            report_type, business.id, request.user.pk, export_format,
        )
        return self.render_report(report_type, data, export_format)


class ConsolidatedReportView(ConsolidatedReportBaseView):
    """Profit & loss, balance sheet, cash flow and inter-branch settlement."""
    report_catalog = CONSOLIDATED_REPORT_TYPES
    default_report_type = 'profit-loss'


class ConsolidatedFinancialReportView(ConsolidatedReportBaseView):
    """Summary, P&L, cash flow, balance and branch comparison."""
    report_catalog = FINANCIAL_REPORT_TYPES
    default_report_type = 'summary'
