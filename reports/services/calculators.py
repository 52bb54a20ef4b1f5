"""
Derived metrics.

Pure arithmetic over aggregator results. No database access and no rounding.
"""
from decimal import Decimal

from reports.utils.aggregation import ZERO, AggregationHelper


BALANCE_EPSILON = Decimal('0.01')

LOW_SALES_RATIO = Decimal('0.5')
LOW_MARGIN_THRESHOLD = Decimal('20')


def calculate_profit_and_loss(revenue, cogs, expenses, inter_branch):
    gross_profit = revenue['net_revenue'] - cogs['total_cogs']
    total_expenses = expenses['total_expenses']
    operating_profit = gross_profit - total_expenses
    net_profit = (
        operating_profit
        + inter_branch['inter_branch_income']
        - inter_branch['inter_branch_expense']
    )
    return {
        'gross_profit': gross_profit,
        'total_expenses': total_expenses,
        'operating_profit': operating_profit,
        'net_profit': net_profit,
        'profit_margin': AggregationHelper.calculate_percentage(net_profit, revenue['net_revenue']),
    }


def calculate_cash_flow(payment_methods, expenses):
    total_inflow = AggregationHelper.sum_values(payment_methods, 'amount')
    total_outflow = AggregationHelper.sum_values(expenses['categories'], 'amount')
    return {
        'total_inflow': total_inflow,
        'total_outflow': total_outflow,
        'net_cash_flow': total_inflow - total_outflow,
    }


def calculate_balance_sheet(balances):
    """
    Totals for the proxy balance sheet.

    Equity is derived from the same figures, so ``balance_check`` holds by
    construction.
    """
    total_assets = (
        balances['cash_and_bank']
        + balances['inter_branch_receivables']
        + balances['inventory']
    )
    total_liabilities = balances['accounts_payable'] + balances['inter_branch_payables']
    equity = total_assets - total_liabilities
    return {
        'total_assets': total_assets,
        'total_liabilities': total_liabilities,
        'equity': equity,
        'balance_check': abs(total_assets - (total_liabilities + equity)) < BALANCE_EPSILON,
    }


def calculate_settlement(inter_branch):
    return {
        'net_settlement': inter_branch['inter_branch_income'] - inter_branch['inter_branch_expense'],
    }


def branch_alerts(branch, average_revenue):
    alerts = []
    if branch['total_transactions'] == 0:
        alerts.append({
            'type': 'no_activity',
            'severity': 'critical',
            'branch_id': branch['branch_id'],
            'branch_name': branch['branch_name'],
            'message': f"{branch['branch_name']} has no transactions in this period",
        })
        return alerts

    if average_revenue and branch['revenue'] < average_revenue * LOW_SALES_RATIO:
        alerts.append({
            'type': 'low_sales',
            'severity': 'warning',
            'branch_id': branch['branch_id'],
            'branch_name': branch['branch_name'],
            'message': f"{branch['branch_name']} sales are below 50% of the branch average",
        })

    if branch['revenue'] > 0 and branch['gross_margin'] < LOW_MARGIN_THRESHOLD:
        alerts.append({
            'type': 'low_margin',
            'severity': 'warning',
            'branch_id': branch['branch_id'],
            'branch_name': branch['branch_name'],
            'message': f"{branch['branch_name']} gross margin is below 20%",
        })
    return alerts


def calculate_branch_comparison(branches, cogs_by_branch):
    """
    Attach gross profit and margin to each branch and roll up a summary.

    The summary revenue is the sum of the branch rows, so the parts always
    add up to the whole.
    """
    rows = []
    for branch in branches:
        cogs = cogs_by_branch.get(branch['branch_id'], ZERO)
        gross_profit = branch['net_revenue'] - cogs
        rows.append({
            **branch,
            'cogs': cogs,
            'gross_profit': gross_profit,
            'gross_margin': AggregationHelper.calculate_percentage(gross_profit, branch['net_revenue']),
        })

    branch_count = len(rows)
    total_revenue = AggregationHelper.sum_values(rows, 'revenue')
    total_transactions = sum(row['total_transactions'] for row in rows)
    average_revenue = AggregationHelper.safe_divide(total_revenue, branch_count)

    alerts = []
    for row in rows:
        alerts.extend(branch_alerts(row, average_revenue))

    summary = {
        'branch_count': branch_count,
        'total_revenue': total_revenue,
        'total_transactions': total_transactions,
        'total_gross_profit': AggregationHelper.sum_values(rows, 'gross_profit'),
        'avg_revenue_per_branch': average_revenue,
    }
    return rows, summary, alerts


def calculate_daily_growth(current, previous):
    return {
        'transactions': AggregationHelper.calculate_growth_rate(
            current['total_transactions'], previous['total_transactions']
        ),
        'revenue': AggregationHelper.calculate_growth_rate(
            current['gross_revenue'], previous['gross_revenue']
        ),
    }
