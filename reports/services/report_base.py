"""
Base Report View Classes

Provides the tenant scoping, parameter parsing and export handling shared by
the consolidated report endpoints.
"""

import uuid
from typing import Any, Dict, Optional, Tuple

from django.db.models import QuerySet
from django.http import HttpResponse
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from accounts.models import Business
from accounts.permissions import IsReportAdministrator, RequesterIdentity, get_requester
from reports.csv_exporters import ConsolidatedReportCSVExporter
from reports.exceptions import InvalidExportFormat, ReportFormatNotImplemented, TenantRequired
from reports.utils.response import ReportResponse


FORMAT_JSON = 'json'
FORMAT_CSV = 'csv'
FORMAT_PDF = 'pdf'
EXPORT_FORMATS = (FORMAT_JSON, FORMAT_CSV, FORMAT_PDF)

TRUTHY = ('1', 'true', 'yes', 'on')


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY


class TenantScopeMixin:
    """Resolve which tenant a report is computed for."""

    tenant_param = 'tenantId'

    def get_requester(self, request) -> RequesterIdentity:
        return get_requester(request)

    def get_business(self, request, params=None) -> Business:
        """
        The requester's tenant.

        Super admins may name any tenant with ``tenantId``; everyone else is
        bound to their active membership.
        """
        requester = self.get_requester(request)
        params = request.query_params if params is None else params
        requested = params.get(self.tenant_param)

        tenant_id = requester.tenant_id
        if requested and requester.is_super_admin:
            tenant_id = requested

        if not tenant_id:
            raise TenantRequired('No tenant is associated with this user.')

        try:
            tenant_id = uuid.UUID(str(tenant_id))
        except ValueError:
            raise TenantRequired(f"'{requested}' is not a valid tenant id.", {self.tenant_param: requested})

        business = Business.objects.filter(id=tenant_id, is_active=True).first()
        if business is None:
            raise TenantRequired('Tenant not found.', {self.tenant_param: str(tenant_id)})
        return business


class PaginationMixin:
    """Mixin to handle pagination for list endpoints"""

    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    def get_pagination_params(
        self,
        request,
        page_param: str = 'page',
        page_size_param: str = 'limit'
    ) -> Tuple[int, int]:
        """
        Extract pagination parameters from request

        Args:
            request: DRF request object
            page_param: Query param name for page number
            page_size_param: Query param name for page size

        Returns:
            Tuple of (page, page_size)
        """
        try:
            page = int(request.query_params.get(page_param, 1))
            page = max(1, page)  # Ensure page >= 1
        except (ValueError, TypeError):
            page = 1

        try:
            page_size = int(request.query_params.get(page_size_param, self.DEFAULT_PAGE_SIZE))
            page_size = min(max(1, page_size), self.MAX_PAGE_SIZE)  # Clamp between 1 and max
        except (ValueError, TypeError):
            page_size = self.DEFAULT_PAGE_SIZE

        return page, page_size

    def paginate_queryset(
        self,
        queryset: QuerySet,
        page: int,
        page_size: int
    ) -> Tuple[QuerySet, int]:
        """
        Paginate a queryset

        Args:
            queryset: Django queryset
            page: Page number (1-indexed)
            page_size: Items per page

        Returns:
            Tuple of (paginated_queryset, total_count)
        """
        total_count = queryset.count()
        offset = (page - 1) * page_size
        paginated = queryset[offset:offset + page_size]

        return paginated, total_count


class BaseReportView(TenantScopeMixin, PaginationMixin, APIView):
    """
    Base class for consolidated report views

    Provides:
    - Role allow-list enforcement before any aggregation
    - Tenant resolution
    - Export format handling (json, csv; pdf is not implemented)
    - Standard response formatting
    """

    permission_classes = [IsAuthenticated, IsReportAdministrator]

    def get_export_format(self, request) -> str:
        """Validate ``format`` before any report work is done."""
        export_format = (request.query_params.get('format') or FORMAT_JSON).strip().lower()
        if export_format not in EXPORT_FORMATS:
            raise InvalidExportFormat(
                f"Unsupported format '{export_format}'.",
                {'format': export_format, 'validFormats': list(EXPORT_FORMATS)},
            )
        if export_format == FORMAT_PDF:
            raise ReportFormatNotImplemented('PDF export not yet implemented. Please use CSV.')
        return export_format

    def render_report(self, report_type: str, data: Dict[str, Any], export_format: str,
                      message: Optional[str] = None):
        if export_format == FORMAT_CSV:
            exporter = ConsolidatedReportCSVExporter(report_type)
            response = HttpResponse(exporter.export(data), content_type=exporter.content_type)
            generated_at = data.get('metadata', {}).get('generatedAt', '')
            response['Content-Disposition'] = f'attachment; filename="{exporter.filename(generated_at)}"'
            return response
        return ReportResponse.success(data, message=message)
