"""
Daily sales summary for a single branch, compared with the previous day.
"""
import logging
from datetime import timedelta
from functools import partial

from django.utils import timezone

from reports.services import aggregators, calculators
from reports.services.assembler import ReportPresenter
from reports.services.filters import BranchFilter, ReportFilters
from reports.services.runner import AggregationRunner
from reports.utils.date_utils import day_window


logger = logging.getLogger(__name__)

DAILY_SALES_SUMMARY = 'daily_sales_summary'


class DailySalesSummaryService:

    def __init__(self, requester=None, runner=None):
        self.requester = requester
        self.runner = runner or AggregationRunner()

    def build(self, branch, day, include_details=False):
        """Compute the summary for ``branch`` on calendar day ``day``."""
        presenter = ReportPresenter(currency=branch.business.currency)
        filters = ReportFilters(
            tenant_id=str(branch.business_id),
            window=day_window(day),
            branches=BranchFilter(branch_ids=(str(branch.id),)),
        )
        previous_day = day - timedelta(days=1)
        previous_filters = filters.with_window(day_window(previous_day))

        tasks = {
            'revenue': partial(aggregators.aggregate_revenue, filters),
            'cash': partial(aggregators.aggregate_cash_collection, filters),
            'payment_methods': partial(aggregators.aggregate_payment_methods, filters),
            'hourly_sales': partial(aggregators.aggregate_hourly_sales, filters),
            'top_products': partial(aggregators.aggregate_top_products, filters),
            'category_performance': partial(aggregators.aggregate_category_performance, filters),
            'shifts': partial(aggregators.aggregate_shift_summary, filters),
            'previous_revenue': partial(aggregators.aggregate_revenue, previous_filters),
        }
        if include_details:
            tasks['details'] = partial(aggregators.recent_transactions, filters)

        logger.info("Building daily sales summary for branch %s on %s", branch.id, day)
        results = self.runner.run(tasks)

        revenue = results['revenue']
        previous = results['previous_revenue']
        growth = calculators.calculate_daily_growth(revenue, previous)

        payload = {
            'type': DAILY_SALES_SUMMARY,
            'date': day.isoformat(),
            'branch': {
                'id': str(branch.id),
                'name': branch.name,
                'code': branch.code,
                'city': branch.city,
            },
            'summary': {
                **presenter.revenue(revenue),
                'totalCollected': presenter.money(results['cash']['total_collected']),
                'totalChange': presenter.money(results['cash']['total_change']),
            },
            'comparison': {
                'previousDay': {
                    'date': previous_day.isoformat(),
                    'totalTransactions': previous['total_transactions'],
                    'grossRevenue': presenter.money(previous['gross_revenue']),
                    'avgTransactionValue': presenter.money(previous['average_transaction']),
                },
                'growth': {
                    'transactions': presenter.percent(growth['transactions']),
                    'revenue': presenter.percent(growth['revenue']),
                },
            },
            'breakdowns': {
                'paymentMethods': presenter.payment_methods(results['payment_methods']),
                'hourlySales': presenter.hourly_sales(results['hourly_sales']),
            },
            'topProducts': presenter.top_products(results['top_products']),
            'categoryPerformance': presenter.category_performance(results['category_performance']),
            'shiftSummary': presenter.shifts(results['shifts']),
            'currency': presenter.currency,
            'generatedAt': timezone.now().isoformat(),
            'generatedBy': self.requester.as_metadata() if self.requester else None,
        }
        if include_details:
            payload['details'] = presenter.details(results['details'])
        return payload
