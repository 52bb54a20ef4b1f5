"""
Reports Views Package

Organizes view modules by functionality.
"""

from .consolidated_reports import (
    ConsolidatedReportView,
    ConsolidatedFinancialReportView,
)
from .daily_sales_summary import DailySalesSummaryView

__all__ = [
    'ConsolidatedReportView',
    'ConsolidatedFinancialReportView',
    'DailySalesSummaryView',
]
