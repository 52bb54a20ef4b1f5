"""
Report errors and the API-wide exception handler.

Every error leaves the API as::

    {"success": false, "error": "<CODE>", "message": "...", "details": {...}}
"""
import logging
from typing import Any, Dict, Optional

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler


logger = logging.getLogger(__name__)


class ReportException(exceptions.APIException):
    """Base class for errors raised while building a report."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'REPORT_ERROR'
    default_detail = 'The report could not be generated.'

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_detail
        self.details = details or {}
        super().__init__(detail=self.message, code=self.code)


class InvalidReportPeriod(ReportException):
    code = 'INVALID_REPORT_PERIOD'
    default_detail = 'Invalid report period.'


class InvalidBranchFilter(ReportException):
    code = 'INVALID_BRANCH_FILTER'
    default_detail = 'Invalid branch filter.'


class InvalidReportType(ReportException):
    code = 'INVALID_REPORT_TYPE'
    default_detail = 'Invalid report type.'


class InvalidGroupBy(ReportException):
    code = 'INVALID_GROUP_BY'
    default_detail = 'Invalid groupBy dimension.'


class InvalidExportFormat(ReportException):
    code = 'INVALID_EXPORT_FORMAT'
    default_detail = 'Unsupported export format.'


class TenantRequired(ReportException):
    code = 'TENANT_REQUIRED'
    default_detail = 'A valid tenant is required for this report.'


class BranchNotFound(ReportException):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'BRANCH_NOT_FOUND'
    default_detail = 'Branch not found.'


class ReportDataUnavailable(ReportException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'REPORT_DATA_UNAVAILABLE'
    default_detail = 'Report data is temporarily unavailable.'


class ReportTimeout(ReportException):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    code = 'REPORT_TIMEOUT'
    default_detail = 'The report took too long to generate.'


class ReportFormatNotImplemented(ReportException):
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    code = 'NOT_IMPLEMENTED'
    default_detail = 'This export format is not implemented yet.'


# DRF exception class -> envelope error code
DRF_ERROR_CODES = (
    (exceptions.NotAuthenticated, 'UNAUTHORIZED'),
    (exceptions.AuthenticationFailed, 'UNAUTHORIZED'),
    (exceptions.PermissionDenied, 'FORBIDDEN'),
    (exceptions.NotFound, 'NOT_FOUND'),
    (Http404, 'NOT_FOUND'),
    (DjangoPermissionDenied, 'FORBIDDEN'),
    (exceptions.MethodNotAllowed, 'METHOD_NOT_ALLOWED'),
    (exceptions.ValidationError, 'VALIDATION_ERROR'),
    (exceptions.ParseError, 'VALIDATION_ERROR'),
    (exceptions.Throttled, 'THROTTLED'),
)


def error_payload(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        'success': False,
        'error': code,
        'message': message,
        'details': details or {},
    }


def _drf_error_code(exc):
    for exc_class, code in DRF_ERROR_CODES:
        if isinstance(exc, exc_class):
            return code
    return 'ERROR'


def _drf_message(exc, data):
    if isinstance(exc, exceptions.ValidationError):
        return 'Invalid request parameters.'
    if isinstance(data, dict) and 'detail' in data:
        return str(data['detail'])
    return str(exc.detail) if hasattr(exc, 'detail') else str(exc)


def report_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """Render every API error in the report error envelope."""
    if isinstance(exc, ReportException):
        if exc.status_code >= 500:
            logger.error("Report failed with %s: %s", exc.code, exc.message, exc_info=True)
        return Response(
            error_payload(exc.code, exc.message, exc.details),
            status=exc.status_code,
        )

    response = exception_handler(exc, context)

    if response is None:
        logger.exception("Unhandled error in %s", context.get('view').__class__.__name__, exc_info=exc)
        return Response(
            error_payload('INTERNAL_ERROR', 'An unexpected error occurred.'),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    details = response.data if isinstance(exc, exceptions.ValidationError) else {}
    response.data = error_payload(_drf_error_code(exc), _drf_message(exc, response.data), details)
    return response
