import csv
import io
from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError
from django.test import override_settings
from django.urls import reverse
from rest_framework.test import APITestCase

from accounts.models import BusinessMembership
from reports.tests.base import ConsolidatedReportFixtureMixin


D = Decimal


class ConsolidatedReportAPITestCase(ConsolidatedReportFixtureMixin, APITestCase):

    url_name = 'consolidated-report'

    def setUp(self):
        self.create_fixture()
        self.url = reverse(self.url_name)
        self.client.force_authenticate(self.owner)

    def get_report(self, **params):
        query = dict(self.PERIOD)
        query.update(params)
        return self.client.get(self.url, query)

    def assertError(self, response, status_code, code):
        self.assertEqual(response.status_code, status_code, response.data)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error'], code)
        self.assertIn('message', response.data)
        self.assertIn('details', response.data)


class ConsolidatedReportAccessTests(ConsolidatedReportAPITestCase):

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.get_report()
        self.assertError(response, 401, 'UNAUTHORIZED')

    def test_cashier_is_forbidden(self):
        cashier = self.create_member('cashier@nusantara.example.com', BusinessMembership.CASHIER)
        self.client.force_authenticate(cashier)
        with patch('reports.services.consolidated.ConsolidatedReportService.build') as build:
            response = self.get_report()
        self.assertError(response, 403, 'FORBIDDEN')
        self.assertEqual(response.data['message'], 'Insufficient permissions')
        build.assert_not_called()

    def test_admin_is_allowed(self):
        admin = self.create_member('admin@nusantara.example.com', BusinessMembership.ADMIN)
        self.client.force_authenticate(admin)
        self.assertEqual(self.get_report().status_code, 200)

    def test_super_admin_must_name_a_tenant(self):
        self.client.force_authenticate(self.create_super_admin())
        self.assertError(self.get_report(), 400, 'TENANT_REQUIRED')
        self.assertError(self.get_report(tenantId='not-a-uuid'), 400, 'TENANT_REQUIRED')

        response = self.get_report(tenantId=str(self.business.id))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['summary']['grossRevenue'], D('382.95'))

    def test_tenant_id_is_ignored_for_tenant_users(self):
        response = self.get_report(tenantId=str(self.other_business.id))
        self.assertEqual(response.data['data']['summary']['grossRevenue'], D('382.95'))

    def test_method_not_allowed(self):
        response = self.client.post(self.url, {})
        self.assertError(response, 405, 'METHOD_NOT_ALLOWED')


class ProfitAndLossReportTests(ConsolidatedReportAPITestCase):

    def test_profit_and_loss_all_branches(self):
        response = self.get_report()
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])

        summary = response.data['data']['summary']
        self.assertEqual(summary['totalTransactions'], 3)
        self.assertEqual(summary['grossRevenue'], D('382.95'))
        self.assertEqual(summary['netRevenue'], D('345.00'))
        self.assertEqual(summary['totalCOGS'], D('140.00'))
        self.assertEqual(summary['grossProfit'], D('205.00'))
        self.assertEqual(summary['totalExpenses'], D('110.00'))
        self.assertEqual(summary['operatingProfit'], D('95.00'))
        self.assertEqual(summary['interBranchIncome'], D('30.00'))
        self.assertEqual(summary['interBranchExpense'], D('30.00'))
        self.assertEqual(summary['netProfit'], D('95.00'))
        self.assertEqual(summary['profitMargin'], D('27.54'))

        data = response.data['data']
        self.assertEqual([row['category'] for row in data['expenses']], ['Rent', 'Supplier', 'Utilities'])
        self.assertEqual(data['interBranch'], {'income': D('30.00'), 'expense': D('30.00')})
        self.assertNotIn('breakdown', data)
        self.assertNotIn('details', data)

    def test_single_branch(self):
        response = self.get_report(branchIds=str(self.jakarta.id))
        summary = response.data['data']['summary']
        self.assertEqual(summary['grossRevenue'], D('160.95'))
        self.assertEqual(summary['grossProfit'], D('85.00'))
        self.assertEqual(summary['totalExpenses'], D('50.00'))
        self.assertEqual(summary['netProfit'], D('65.00'))
        self.assertEqual(summary['profitMargin'], D('44.83'))
        self.assertEqual(response.data['data']['metadata']['branchIds'], [str(self.jakarta.id)])

    def test_amounts_use_tenant_currency_precision(self):
        self.business.currency = 'JPY'
        self.business.save()

        data = self.get_report().data['data']
        self.assertEqual(data['metadata']['currency'], 'JPY')
        self.assertEqual(str(data['summary']['grossRevenue']), '383')
        self.assertEqual(str(data['summary']['netRevenue']), '345')
        self.assertEqual(str(data['summary']['profitMargin']), '27.54')

    def test_branch_breakdown_adds_up(self):
        response = self.get_report(groupBy='branch')
        breakdown = response.data['data']['breakdown']
        self.assertEqual(len(breakdown), 2)
        self.assertEqual(sum(row['grossRevenue'] for row in breakdown), D('382.95'))
        self.assertEqual(response.data['data']['metadata']['groupBy'], 'branch')

    def test_metadata(self):
        metadata = self.get_report().data['data']['metadata']
        self.assertEqual(metadata['reportType'], 'profit-loss')
        self.assertEqual(metadata['dateRange'], {'start': '2024-03-01', 'end': '2024-03-31'})
        self.assertEqual(metadata['branchIds'], 'all')
        self.assertEqual(metadata['currency'], 'IDR')
        self.assertEqual(metadata['generatedBy']['email'], self.owner.email)
        self.assertIn('generatedAt', metadata)
        self.assertIn('start', metadata['window'])

    def test_include_details(self):
        details = self.get_report(includeDetails='true').data['data']['details']
        self.assertEqual(len(details), 3)
        self.assertEqual(details[0]['total'], D('222.00'))
        self.assertEqual(details[0]['branchName'], 'Bandung Dago')

    def test_repeatable(self):
        first = self.get_report(groupBy='day').data['data']
        second = self.get_report(groupBy='day').data['data']
        first['metadata'].pop('generatedAt')
        second['metadata'].pop('generatedAt')
        self.assertEqual(first, second)

    def test_empty_period_is_all_zero(self):
        response = self.client.get(self.url, {'startDate': '2023-01-01', 'endDate': '2023-01-31'})
        summary = response.data['data']['summary']
        self.assertEqual(summary['totalTransactions'], 0)
        self.assertEqual(summary['netProfit'], D('0.00'))
        self.assertEqual(summary['profitMargin'], D('0.00'))


class ConsolidatedReportTypeTests(ConsolidatedReportAPITestCase):

    def test_cash_flow(self):
        data = self.get_report(reportType='cash-flow').data['data']
        self.assertEqual(data['summary'], {
            'totalInflow': D('382.95'),
            'totalOutflow': D('110.00'),
            'netCashFlow': D('272.95'),
        })
        self.assertEqual([row['method'] for row in data['inflows']], ['CASH', 'CARD'])

    def test_balance_sheet(self):
        data = self.get_report(reportType='balance-sheet').data['data']
        self.assertEqual(data['summary']['totalAssets'], D('505.00'))
        self.assertEqual(data['summary']['totalLiabilities'], D('65.00'))
        self.assertEqual(data['summary']['equity'], D('440.00'))
        self.assertTrue(data['summary']['balanceCheck'])
        self.assertEqual(data['assets']['current']['inventory'], D('180.00'))
        self.assertEqual(data['liabilities']['current']['interBranchPayables'], D('25.00'))
        self.assertEqual(data['equity'], {'ownerEquity': D('440.00')})

    def test_inter_branch(self):
        data = self.get_report(reportType='inter-branch').data['data']
        self.assertEqual(data['summary']['paid'], {'count': 1, 'amount': D('30.00')})
        self.assertEqual(data['summary']['pending'], {'count': 1, 'amount': D('25.00')})
        self.assertEqual(data['summary']['overdue'], {'count': 0, 'amount': D('0.00')})
        self.assertEqual(data['summary']['netSettlement'], D('0.00'))
        self.assertEqual(len(data['branches']), 3)

    def test_unknown_report_type(self):
        response = self.get_report(reportType='summary')
        self.assertError(response, 400, 'INVALID_REPORT_TYPE')
        self.assertEqual(
            response.data['details']['validTypes'],
            ['profit-loss', 'balance-sheet', 'cash-flow', 'inter-branch'],
        )

    def test_invalid_parameters(self):
        self.assertError(self.client.get(self.url, {'period': 'decade'}), 400, 'INVALID_REPORT_PERIOD')
        self.assertError(self.get_report(startDate='2024-04-01'), 400, 'INVALID_REPORT_PERIOD')
        self.assertError(self.get_report(branchIds='jakarta'), 400, 'INVALID_BRANCH_FILTER')
        self.assertError(self.get_report(branchIds='[]'), 400, 'INVALID_BRANCH_FILTER')
        self.assertError(self.get_report(groupBy='week'), 400, 'INVALID_GROUP_BY')

    def test_default_period_is_month(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['metadata']['period'], 'month')
        self.assertIsNone(response.data['data']['metadata']['dateRange'])


class ConsolidatedReportFailureTests(ConsolidatedReportAPITestCase):

    def test_data_access_failure(self):
        with patch('reports.services.aggregators.aggregate_cogs', side_effect=DatabaseError('disk I/O error')):
            response = self.get_report()
        self.assertError(response, 500, 'REPORT_DATA_UNAVAILABLE')
        self.assertNotIn('disk', response.data['message'])
        self.assertNotIn('data', response.data)

    def test_unexpected_failure(self):
        with patch('reports.services.aggregators.aggregate_expenses', side_effect=RuntimeError('secret')):
            response = self.get_report()
        self.assertError(response, 500, 'INTERNAL_ERROR')
        self.assertNotIn('secret', response.data['message'])

    @override_settings(REPORTS_REQUEST_TIMEOUT_SECONDS=0)
    def test_timeout(self):
        self.assertError(self.get_report(), 504, 'REPORT_TIMEOUT')

    @override_settings(REPORTS_PARALLEL_AGGREGATION=True)
    def test_parallel_mode_rejects_bad_input_first(self):
        self.assertError(self.get_report(reportType='nope'), 400, 'INVALID_REPORT_TYPE')


class ConsolidatedFinancialReportTests(ConsolidatedReportAPITestCase):

    url_name = 'consolidated-financial-report'

    def test_summary_is_default(self):
        data = self.get_report().data['data']
        self.assertEqual(data['metadata']['reportType'], 'summary')
        self.assertEqual(data['summary']['activeBranches'], 2)
        self.assertEqual(data['summary']['averageTransaction'], D('127.65'))
        self.assertEqual([row['branchCode'] for row in data['topBranches']], ['BDG-01', 'JKT-01', 'SBY-01'])
        self.assertEqual(data['topProducts'][0]['productName'], 'Iced Coffee')

        shares = [row['percentage'] for row in data['paymentBreakdown']]
        self.assertEqual(shares, [D('66.67'), D('33.33')])
        self.assertLessEqual(abs(sum(shares) - D('100')), D('0.02'))

    def test_profit_and_loss_alias(self):
        data = self.get_report(reportType='p&l').data['data']
        self.assertEqual(data['summary']['netProfit'], D('95.00'))

    def test_cashflow_and_balance_aliases(self):
        self.assertEqual(self.get_report(reportType='cashflow').data['data']['summary']['netCashFlow'], D('272.95'))
        self.assertTrue(self.get_report(reportType='balance').data['data']['summary']['balanceCheck'])

    def test_branch_comparison(self):
        data = self.get_report(reportType='branch_comparison').data['data']
        self.assertEqual([row['branchCode'] for row in data['branches']], ['BDG-01', 'JKT-01', 'SBY-01'])
        self.assertEqual(sum(row['totalRevenue'] for row in data['branches']), data['summary']['totalRevenue'])
        self.assertEqual(data['summary']['branchCount'], 3)
        self.assertEqual(data['summary']['avgRevenuePerBranch'], D('127.65'))
        self.assertEqual(data['branches'][0]['grossProfit'], D('120.00'))
        self.assertEqual(data['branches'][0]['grossMargin'], D('60.00'))
        self.assertEqual(
            [(alert['type'], alert['severity'], alert['branchName']) for alert in data['alerts']],
            [('no_activity', 'critical', 'Surabaya Tunjungan')],
        )

    def test_consolidated_only_types_rejected(self):
        self.assertError(self.get_report(reportType='profit-loss'), 400, 'INVALID_REPORT_TYPE')

    def test_csv_export(self):
        response = self.get_report(reportType='summary', format='csv')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('attachment; filename="financial-report-summary-', response['Content-Disposition'])

        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        flat = {row[0]: row[1] for row in rows if len(row) == 2}
        self.assertEqual(flat['Summary - Gross Revenue'], '382.95')
        self.assertEqual(flat['Currency'], 'IDR')
        self.assertIn(['Top Branches'], rows)
        self.assertIn(['Payment Breakdown'], rows)

    def test_pdf_not_implemented(self):
        with patch('reports.services.consolidated.ConsolidatedReportService.build') as build:
            response = self.get_report(format='pdf')
        self.assertError(response, 501, 'NOT_IMPLEMENTED')
        build.assert_not_called()

    def test_unknown_format(self):
        self.assertError(self.get_report(format='xlsx'), 400, 'INVALID_EXPORT_FORMAT')
