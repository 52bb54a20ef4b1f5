"""
Reports Services Module

Exports all service classes for easy importing
"""

from .consolidated import ConsolidatedReportService
from .daily_summary import DailySalesSummaryService
from .runner import AggregationRunner

__all__ = [
    'ConsolidatedReportService',
    'DailySalesSummaryService',
    'AggregationRunner',
]
