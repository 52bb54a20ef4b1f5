"""
Response assembly for consolidated reports.

This is the only place money and percentages are rounded. Internal results
use snake_case keys; the API contract uses camelCase.
"""
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.utils import timezone


PERCENT_QUANTUM = Decimal('0.01')


class ReportPresenter:
    """Formats unrounded results into the public payload shape."""

    def __init__(self, currency=None, decimal_places=None):
        self.currency = currency or settings.REPORTS_CURRENCY
        if decimal_places is None:
            decimal_places = self.currency_decimal_places(self.currency)
        self.money_quantum = Decimal(1).scaleb(-decimal_places)

    @staticmethod
    def currency_decimal_places(currency):
        """Minor-unit precision of ``currency``."""
        return settings.REPORTS_CURRENCY_MINOR_UNITS.get(
            (currency or '').upper(), settings.REPORTS_CURRENCY_DECIMAL_PLACES
        )

    def money(self, value):
        if value is None:
            return None
        return Decimal(value).quantize(self.money_quantum, rounding=ROUND_HALF_UP)

    def percent(self, value):
        return Decimal(value).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)

    def quantity(self, value):
        return Decimal(value or 0)

    @staticmethod
    def timestamp(value):
        return value.isoformat() if value else None

    # -- building blocks -------------------------------------------------

    def revenue(self, revenue):
        return {
            'totalTransactions': revenue['total_transactions'],
            'uniqueCustomers': revenue['unique_customers'],
            'grossRevenue': self.money(revenue['gross_revenue']),
            'totalDiscount': self.money(revenue['total_discount']),
            'netRevenue': self.money(revenue['net_revenue']),
            'taxCollected': self.money(revenue['tax_collected']),
            'averageTransaction': self.money(revenue['average_transaction']),
            'activeBranches': revenue['active_branches'],
        }

    def expenses(self, expenses):
        return [
            {'category': row['category'], 'amount': self.money(row['amount']), 'count': row['count']}
            for row in expenses['categories']
        ]

    def payment_methods(self, rows):
        return [
            {
                'method': row['method'],
                'count': row['count'],
                'amount': self.money(row['amount']),
                'percentage': self.percent(row['percentage']),
            }
            for row in rows
        ]

    def breakdown(self, rows):
        return [
            {
                'key': row['key'],
                'label': row['label'],
                'totalTransactions': row['total_transactions'],
                'grossRevenue': self.money(row['gross_revenue']),
                'netRevenue': self.money(row['net_revenue']),
            }
            for row in rows
        ]

    def top_branches(self, rows):
        return [
            {
                'branchId': row['branch_id'],
                'branchName': row['branch_name'],
                'branchCode': row['branch_code'],
                'totalTransactions': row['total_transactions'],
                'revenue': self.money(row['revenue']),
            }
            for row in rows
        ]

    def top_products(self, rows):
        return [
            {
                'productId': row['product_id'],
                'productName': row['product_name'],
                'sku': row['sku'],
                'quantitySold': self.quantity(row['quantity']),
                'revenue': self.money(row['revenue']),
            }
            for row in rows
        ]

    def category_performance(self, rows):
        return [
            {
                'categoryId': row['category_id'],
                'category': row['category'],
                'quantitySold': self.quantity(row['quantity']),
                'transactions': row['transactions'],
                'revenue': self.money(row['revenue']),
                'revenuePercentage': self.percent(row['revenue_percentage']),
            }
            for row in rows
        ]

    def details(self, rows):
        return [
            {
                'id': row['id'],
                'transactionNumber': row['receipt_number'],
                'time': self.timestamp(row['transaction_date']),
                'branchId': row['branch_id'],
                'branchName': row['branch_name'],
                'paymentMethod': row['payment_method'],
                'subtotal': self.money(row['subtotal']),
                'discount': self.money(row['discount']),
                'tax': self.money(row['tax']),
                'total': self.money(row['total']),
                'customer': row['customer'],
                'cashier': row['cashier'],
            }
            for row in rows
        ]

    def hourly_sales(self, rows):
        return [
            {'hour': row['hour'], 'transactions': row['transactions'], 'revenue': self.money(row['revenue'])}
            for row in rows
        ]

    def shifts(self, rows):
        return [
            {
                'shiftId': row['shift_id'],
                'shiftName': row['shift_name'],
                'openedAt': self.timestamp(row['opened_at']),
                'closedAt': self.timestamp(row['closed_at']),
                'openedBy': row['opened_by'],
                'closedBy': row['closed_by'],
                'transactions': row['transactions'],
                'totalSales': self.money(row['revenue']),
                'openingCash': self.money(row['opening_cash']),
                'finalCash': self.money(row['final_cash']),
                'cashDifference': self.money(row['cash_difference']),
            }
            for row in rows
        ]

    def alerts(self, rows):
        return [
            {
                'type': row['type'],
                'severity': row['severity'],
                'branchId': row['branch_id'],
                'branchName': row['branch_name'],
                'message': row['message'],
            }
            for row in rows
        ]

    # -- report payloads -------------------------------------------------

    def profit_and_loss(self, results):
        revenue = results['revenue']
        pnl = results['pnl']
        return {
            'summary': {
                'totalTransactions': revenue['total_transactions'],
                'grossRevenue': self.money(revenue['gross_revenue']),
                'totalDiscount': self.money(revenue['total_discount']),
                'netRevenue': self.money(revenue['net_revenue']),
                'taxCollected': self.money(revenue['tax_collected']),
                'totalCOGS': self.money(results['cogs']['total_cogs']),
                'grossProfit': self.money(pnl['gross_profit']),
                'totalExpenses': self.money(pnl['total_expenses']),
                'operatingProfit': self.money(pnl['operating_profit']),
                'interBranchIncome': self.money(results['inter_branch']['inter_branch_income']),
                'interBranchExpense': self.money(results['inter_branch']['inter_branch_expense']),
                'netProfit': self.money(pnl['net_profit']),
                'profitMargin': self.percent(pnl['profit_margin']),
            },
            'revenue': self.revenue(revenue),
            'cogs': {'totalCOGS': self.money(results['cogs']['total_cogs'])},
            'expenses': self.expenses(results['expenses']),
            'interBranch': {
                'income': self.money(results['inter_branch']['inter_branch_income']),
                'expense': self.money(results['inter_branch']['inter_branch_expense']),
            },
        }

    def cash_flow(self, results):
        cash_flow = results['cash_flow']
        return {
            'summary': {
                'totalInflow': self.money(cash_flow['total_inflow']),
                'totalOutflow': self.money(cash_flow['total_outflow']),
                'netCashFlow': self.money(cash_flow['net_cash_flow']),
            },
            'inflows': [
                {'method': row['method'], 'count': row['count'], 'amount': self.money(row['amount'])}
                for row in results['payment_methods']
            ],
            'outflows': [
                {'category': row['category'], 'amount': self.money(row['amount'])}
                for row in results['expenses']['categories']
            ],
        }

    def balance_sheet(self, results):
        balances = results['balances']
        totals = results['balance_totals']
        return {
            'summary': {
                'totalAssets': self.money(totals['total_assets']),
                'totalLiabilities': self.money(totals['total_liabilities']),
                'equity': self.money(totals['equity']),
                'balanceCheck': totals['balance_check'],
            },
            'assets': {
                'current': {
                    'cashAndBank': self.money(balances['cash_and_bank']),
                    'interBranchReceivables': self.money(balances['inter_branch_receivables']),
                    'inventory': self.money(balances['inventory']),
                },
                'total': self.money(totals['total_assets']),
            },
            'liabilities': {
                'current': {
                    'accountsPayable': self.money(balances['accounts_payable']),
                    'interBranchPayables': self.money(balances['inter_branch_payables']),
                },
                'total': self.money(totals['total_liabilities']),
            },
            'equity': {
                'ownerEquity': self.money(totals['equity']),
            },
        }

    def inter_branch(self, results):
        settlement = results['settlement']
        inter_branch = results['inter_branch']

        def bucket(name):
            return {'count': settlement[name]['count'], 'amount': self.money(settlement[name]['amount'])}

        return {
            'summary': {
                'paid': bucket('paid'),
                'pending': bucket('pending'),
                'overdue': bucket('overdue'),
                'interBranchIncome': self.money(inter_branch['inter_branch_income']),
                'interBranchExpense': self.money(inter_branch['inter_branch_expense']),
                'netSettlement': self.money(results['net_settlement']['net_settlement']),
            },
            'branches': [
                {
                    'branchId': row['branch_id'],
                    'branchName': row['branch_name'],
                    'branchCode': row['branch_code'],
                    'receivable': self.money(row['receivable']),
                    'payable': self.money(row['payable']),
                }
                for row in settlement['branches']
            ],
        }

    def summary(self, results):
        return {
            'summary': self.revenue(results['revenue']),
            'topBranches': self.top_branches(results['top_branches']),
            'topProducts': self.top_products(results['top_products']),
            'paymentBreakdown': self.payment_methods(results['payment_methods']),
        }

    def branch_comparison(self, results):
        rows, summary, alerts = results['comparison']
        return {
            'branches': [
                {
                    'branchId': row['branch_id'],
                    'branchName': row['branch_name'],
                    'branchCode': row['branch_code'],
                    'region': row['region'],
                    'city': row['city'],
                    'totalTransactions': row['total_transactions'],
                    'uniqueCustomers': row['unique_customers'],
                    'totalRevenue': self.money(row['revenue']),
                    'netRevenue': self.money(row['net_revenue']),
                    'totalDiscount': self.money(row['total_discount']),
                    'taxCollected': self.money(row['tax_collected']),
                    'averageTransaction': self.money(row['average_transaction']),
                    'cogs': self.money(row['cogs']),
                    'grossProfit': self.money(row['gross_profit']),
                    'grossMargin': self.percent(row['gross_margin']),
                }
                for row in rows
            ],
            'summary': {
                'branchCount': summary['branch_count'],
                'totalRevenue': self.money(summary['total_revenue']),
                'totalTransactions': summary['total_transactions'],
                'totalGrossProfit': self.money(summary['total_gross_profit']),
                'avgRevenuePerBranch': self.money(summary['avg_revenue_per_branch']),
            },
            'alerts': self.alerts(alerts),
        }

    def metadata(self, report_type, filters, requester, generated_at=None):
        return {
            'reportType': report_type,
            **filters.as_metadata(),
            'generatedAt': (generated_at or timezone.now()).isoformat(),
            'generatedBy': requester.as_metadata() if requester else None,
            'currency': self.currency,
        }
