"""
Reports Utility Modules

This package contains utility functions and classes for report generation.
"""

from .response import ReportResponse
from .date_utils import DateWindow, DateRangeValidator, resolve_report_window
from .aggregation import AggregationHelper

__all__ = [
    'ReportResponse',
    'DateWindow',
    'DateRangeValidator',
    'resolve_report_window',
    'AggregationHelper',
]
