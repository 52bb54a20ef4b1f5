from datetime import date
from decimal import Decimal

from django.http import QueryDict
from django.test import TestCase, override_settings

from finance.models import InterBranchInvoice
from reports.services import aggregators
from reports.services.filters import BranchFilter, GroupBy, ReportFilters, resolve_filters
from reports.tests.base import ConsolidatedReportFixtureMixin, at
from reports.utils.date_utils import day_window
from sales.models import Sale, Shift


D = Decimal


class AggregatorTests(ConsolidatedReportFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixture()

    def filters(self, **params):
        query = QueryDict(mutable=True)
        query.update(self.PERIOD)
        query.update(params)
        return resolve_filters(self.business.id, query)

    def test_revenue_only_counts_completed_sales_in_window(self):
        revenue = aggregators.aggregate_revenue(self.filters())
        self.assertEqual(revenue['total_transactions'], 3)
        self.assertEqual(revenue['gross_revenue'], D('382.95'))
        self.assertEqual(revenue['net_revenue'], D('345.00'))
        self.assertEqual(revenue['total_discount'], D('5.00'))
        self.assertEqual(revenue['tax_collected'], D('37.95'))
        self.assertEqual(revenue['unique_customers'], 1)
        self.assertEqual(revenue['active_branches'], 2)
        self.assertEqual(revenue['average_transaction'], D('127.65'))

    def test_branch_filter(self):
        revenue = aggregators.aggregate_revenue(self.filters(branchIds=str(self.jakarta.id)))
        self.assertEqual(revenue['total_transactions'], 2)
        self.assertEqual(revenue['gross_revenue'], D('160.95'))

    def test_empty_window_is_all_zero(self):
        filters = self.filters().with_window(day_window(date(2023, 1, 1)))
        revenue = aggregators.aggregate_revenue(filters)
        self.assertEqual(revenue['total_transactions'], 0)
        self.assertEqual(revenue['gross_revenue'], D('0'))
        self.assertEqual(revenue['average_transaction'], D('0'))
        self.assertEqual(aggregators.aggregate_payment_methods(filters), [])
        self.assertEqual(aggregators.aggregate_expenses(filters)['total_expenses'], D('0'))

    def test_cogs(self):
        self.assertEqual(aggregators.aggregate_cogs(self.filters())['total_cogs'], D('140'))
        self.assertEqual(
            aggregators.aggregate_cogs_by_branch(self.filters()),
            {str(self.jakarta.id): D('60'), str(self.bandung.id): D('80')},
        )

    def test_expenses_by_category(self):
        expenses = aggregators.aggregate_expenses(self.filters())
        self.assertEqual(expenses['total_expenses'], D('110'))
        self.assertEqual(
            [(row['category'], row['amount'], row['count']) for row in expenses['categories']],
            [('Rent', D('50'), 1), ('Supplier', D('40'), 1), ('Utilities', D('20'), 1)],
        )

    def test_inter_branch(self):
        self.assertEqual(aggregators.aggregate_inter_branch(self.filters()), {
            'inter_branch_income': D('30'),
            'inter_branch_expense': D('30'),
        })
        jakarta_only = aggregators.aggregate_inter_branch(self.filters(branchIds=str(self.jakarta.id)))
        self.assertEqual(jakarta_only, {'inter_branch_income': D('30'), 'inter_branch_expense': D('0')})

    def test_settlement_summary(self):
        InterBranchInvoice.objects.create(
            business=self.business, invoice_number="IBI-0003",
            from_branch=self.surabaya, to_branch=self.jakarta, total_amount=D('12.50'),
            status=InterBranchInvoice.STATUS_OVERDUE, invoice_date=at(2024, 3, 1),
        )
        settlement = aggregators.aggregate_settlement_summary(self.filters())
        self.assertEqual(settlement['paid'], {'count': 1, 'amount': D('30')})
        self.assertEqual(settlement['pending'], {'count': 1, 'amount': D('25')})
        self.assertEqual(settlement['overdue'], {'count': 1, 'amount': D('12.50')})

        by_branch = {row['branch_code']: row for row in settlement['branches']}
        self.assertEqual([row['branch_code'] for row in settlement['branches']], ['BDG-01', 'JKT-01', 'SBY-01'])
        self.assertEqual(by_branch['BDG-01']['receivable'], D('25'))
        self.assertEqual(by_branch['JKT-01']['payable'], D('37.50'))
        self.assertEqual(by_branch['SBY-01']['receivable'], D('12.50'))

    def test_payment_methods_shares(self):
        rows = aggregators.aggregate_payment_methods(self.filters())
        self.assertEqual([row['method'] for row in rows], [Sale.PAYMENT_TYPE_CASH, Sale.PAYMENT_TYPE_CARD])
        self.assertEqual(rows[0]['amount'], D('333'))
        self.assertEqual(rows[0]['count'], 2)
        total = sum(row['percentage'] for row in rows)
        self.assertLess(abs(total - D('100')), D('0.0001'))

    def test_top_branches_includes_idle_branches(self):
        rows = aggregators.aggregate_top_branches(self.filters())
        self.assertEqual([row['branch_code'] for row in rows], ['BDG-01', 'JKT-01', 'SBY-01'])
        self.assertEqual(rows[2]['revenue'], D('0'))
        self.assertEqual(aggregators.aggregate_top_branches(self.filters(), limit=1)[0]['branch_code'], 'BDG-01')

    def test_top_products_and_categories(self):
        products = aggregators.aggregate_top_products(self.filters())
        self.assertEqual([row['sku'] for row in products], ['BEV-001', 'SNK-001'])
        self.assertEqual(products[0]['quantity'], D('12'))
        self.assertEqual(products[0]['revenue'], D('300'))

        categories = aggregators.aggregate_category_performance(self.filters())
        self.assertEqual(categories[0]['category'], 'Beverages')
        self.assertEqual(categories[0]['transactions'], 2)
        self.assertEqual(sum(row['revenue_percentage'] for row in categories).quantize(D('0.01')), D('100.00'))

    def test_balance_sheet_proxies(self):
        balances = aggregators.aggregate_balance_sheet(self.filters())
        self.assertEqual(balances, {
            'cash_and_bank': D('300'),
            'inter_branch_receivables': D('25'),
            'inventory': D('180'),
            'accounts_payable': D('40'),
            'inter_branch_payables': D('25'),
        })

    @override_settings(REPORTS_CASH_CATEGORIES=['Bank'])
    def test_cash_categories_are_configurable(self):
        self.assertEqual(aggregators.aggregate_balance_sheet(self.filters())['cash_and_bank'], D('0'))

    def test_branch_comparison_sums_to_total(self):
        rows = aggregators.aggregate_branch_comparison(self.filters())
        revenue = aggregators.aggregate_revenue(self.filters())
        self.assertEqual(len(rows), 3)
        self.assertEqual(sum(row['revenue'] for row in rows), revenue['gross_revenue'])
        self.assertEqual(sum(row['total_transactions'] for row in rows), revenue['total_transactions'])

    def test_revenue_by_group(self):
        by_branch = aggregators.aggregate_revenue_by_group(self.filters(), GroupBy.BRANCH)
        self.assertEqual(
            {row['key']: row['gross_revenue'] for row in by_branch},
            {str(self.jakarta.id): D('160.95'), str(self.bandung.id): D('222')},
        )
        self.assertEqual({row['label'] for row in by_branch}, {'Jakarta Central', 'Bandung Dago'})

        by_day = aggregators.aggregate_revenue_by_group(self.filters(), GroupBy.DAY)
        self.assertEqual([row['key'] for row in by_day], ['2024-03-10', '2024-03-11', '2024-03-12'])

        by_region = aggregators.aggregate_revenue_by_group(self.filters(), GroupBy.REGION)
        self.assertEqual([(row['key'], row['total_transactions']) for row in by_region], [('West', 3)])

        by_month = aggregators.aggregate_revenue_by_group(self.filters(), GroupBy.MONTH)
        self.assertEqual([row['key'] for row in by_month], ['2024-03'])

    def test_hourly_cash_and_shifts(self):
        filters = self.filters(branchIds=str(self.bandung.id)).with_window(day_window(date(2024, 3, 12)))
        shift = Shift.objects.create(
            branch=self.bandung, shift_name="Morning", shift_date=date(2024, 3, 12),
            opened_at=at(2024, 3, 12, 8), opened_by=self.owner, opening_cash_amount=D('100.00'),
        )
        Sale.objects.filter(branch=self.bandung, status=Sale.STATUS_COMPLETED).update(shift=shift)

        self.assertEqual(
            aggregators.aggregate_hourly_sales(filters),
            [{'hour': 9, 'transactions': 1, 'revenue': D('222')}],
        )
        self.assertEqual(
            aggregators.aggregate_cash_collection(filters),
            {'total_collected': D('222'), 'total_change': D('0')},
        )
        shifts = aggregators.aggregate_shift_summary(filters)
        self.assertEqual(len(shifts), 1)
        self.assertEqual(shifts[0]['transactions'], 1)
        self.assertEqual(shifts[0]['revenue'], D('222'))
        self.assertEqual(shifts[0]['opened_by'], 'Nusantara Owner')

    def test_recent_transactions(self):
        rows = aggregators.recent_transactions(self.filters())
        self.assertEqual([row['total'] for row in rows], [D('222'), D('49.95'), D('111')])
        self.assertEqual(rows[2]['customer'], 'Budi Santoso')
        self.assertEqual(len(aggregators.recent_transactions(self.filters(), limit=1)), 1)

    def test_tenant_isolation(self):
        other = resolve_filters(self.other_business.id, QueryDict('startDate=2024-03-01&endDate=2024-03-31'))
        self.assertEqual(aggregators.aggregate_revenue(other)['gross_revenue'], D('777'))
        foreign_branch = BranchFilter.parse(str(self.other_branch.id))
        mixed = ReportFilters(str(self.business.id), self.filters().window, foreign_branch)
        self.assertEqual(aggregators.aggregate_revenue(mixed)['total_transactions'], 0)
