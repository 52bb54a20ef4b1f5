"""
Metric aggregators for consolidated reports.

Each aggregator reads one fact table through the shared ``ReportFilters``
predicate and returns plain dicts of unrounded Decimals. Aggregators only
read, never depend on one another, and reduce an empty match to zeros.
Ordering is fully deterministic (value, then a stable tie-breaker).
"""
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum, Value
from django.db.models.functions import Coalesce, ExtractHour

from finance.models import InterBranchInvoice, LedgerTransaction
from inventory.models import Branch, BranchStock
from sales.models import Sale, SaleItem, Shift

from reports.utils.aggregation import ZERO, AggregationHelper


MONEY = DecimalField(max_digits=20, decimal_places=2)
EXTENDED = DecimalField(max_digits=24, decimal_places=4)


def _sum(expression, output_field=MONEY):
    return Coalesce(Sum(expression, output_field=output_field), Value(ZERO), output_field=output_field)


def _line_cost():
    return ExpressionWrapper(F('quantity') * F('product__cost'), output_field=EXTENDED)


def _line_revenue():
    return ExpressionWrapper(F('quantity') * F('unit_price'), output_field=EXTENDED)


def completed_sales(filters):
    return Sale.objects.filter(
        filters.q('transaction_date', 'branch_id'),
        status=Sale.STATUS_COMPLETED,
    )


def completed_sale_items(filters):
    return SaleItem.objects.filter(
        filters.q('sale__transaction_date', 'sale__branch_id', tenant_field='sale__business_id'),
        sale__status=Sale.STATUS_COMPLETED,
    )


def completed_ledger(filters, transaction_type):
    return LedgerTransaction.objects.filter(
        filters.q('transaction_date', 'branch_id'),
        transaction_type=transaction_type,
        status=LedgerTransaction.STATUS_COMPLETED,
    )


def scoped_branches(filters):
    return Branch.objects.filter(filters.tenant_branch_q('id'), is_active=True)


def _revenue_totals(queryset):
    totals = queryset.aggregate(
        total_transactions=Count('id'),
        unique_customers=Count('customer_id', distinct=True),
        gross_revenue=_sum('total_amount'),
        net_revenue=_sum('subtotal'),
        total_discount=_sum('discount_amount'),
        tax_collected=_sum('tax_amount'),
        active_branches=Count('branch_id', distinct=True),
    )
    for key in ('gross_revenue', 'net_revenue', 'total_discount', 'tax_collected'):
        totals[key] = AggregationHelper.to_decimal(totals[key])
    totals['average_transaction'] = AggregationHelper.safe_divide(
        totals['gross_revenue'], totals['total_transactions']
    )
    return totals


def aggregate_revenue(filters):
    """Counts and sums over completed sales."""
    return _revenue_totals(completed_sales(filters))


def aggregate_revenue_by_group(filters, group_by):
    """Revenue bucketed by a GroupBy dimension, ordered by key."""
    key_expr, label_expr = group_by.expressions('transaction_date', 'branch')
    rows = (
        completed_sales(filters)
        .annotate(group_key=key_expr, group_label=label_expr)
        .values('group_key', 'group_label')
        .annotate(
            total_transactions=Count('id'),
            gross_revenue=_sum('total_amount'),
            net_revenue=_sum('subtotal'),
        )
        .order_by('group_key')
    )
    return [
        {
            'key': group_by.format_key(row['group_key']),
            'label': group_by.format_key(row['group_label']),
            'total_transactions': row['total_transactions'],
            'gross_revenue': AggregationHelper.to_decimal(row['gross_revenue']),
            'net_revenue': AggregationHelper.to_decimal(row['net_revenue']),
        }
        for row in rows
    ]


def aggregate_cogs(filters):
    """Cost of goods sold: quantity x product cost over completed sale lines."""
    result = completed_sale_items(filters).aggregate(total=_sum(_line_cost(), EXTENDED))
    return {'total_cogs': AggregationHelper.to_decimal(result['total'])}


def aggregate_cogs_by_branch(filters):
    rows = (
        completed_sale_items(filters)
        .values('sale__branch_id')
        .annotate(total=_sum(_line_cost(), EXTENDED))
    )
    return {str(row['sale__branch_id']): AggregationHelper.to_decimal(row['total']) for row in rows}


def aggregate_expenses(filters):
    """Completed expense ledger rows grouped by category, plus the grand total."""
    rows = (
        completed_ledger(filters, LedgerTransaction.TYPE_EXPENSE)
        .values('category')
        .annotate(amount=_sum('amount'), count=Count('id'))
        .order_by('-amount', 'category')
    )
    categories = [
        {
            'category': row['category'],
            'amount': AggregationHelper.to_decimal(row['amount']),
            'count': row['count'],
        }
        for row in rows
    ]
    return {
        'categories': categories,
        'total_expenses': AggregationHelper.sum_values(categories, 'amount'),
    }


def _invoices(filters):
    return InterBranchInvoice.objects.filter(
        Q(business_id=filters.tenant_id) & Q(**filters.window.lookups('invoice_date'))
    )


def aggregate_inter_branch(filters):
    """
    Paid inter-branch invoices in the window.

    Income is what the selected branches billed (sender side); expense is what
    they were billed (receiver side).
    """
    paid = _invoices(filters).filter(status=InterBranchInvoice.STATUS_PAID)
    income = paid.filter(filters.branches.q('from_branch_id')).aggregate(total=_sum('total_amount'))
    expense = paid.filter(filters.branches.q('to_branch_id')).aggregate(total=_sum('total_amount'))
    return {
        'inter_branch_income': AggregationHelper.to_decimal(income['total']),
        'inter_branch_expense': AggregationHelper.to_decimal(expense['total']),
    }


def aggregate_settlement_summary(filters):
    """Paid / pending / overdue counts and amounts, plus per-branch balances."""
    invoices = _invoices(filters).filter(
        filters.branches.q('from_branch_id') | filters.branches.q('to_branch_id')
    )
    buckets = {
        'paid': (InterBranchInvoice.STATUS_PAID,),
        'pending': InterBranchInvoice.PENDING_STATUSES,
        'overdue': (InterBranchInvoice.STATUS_OVERDUE,),
    }
    summary = {}
    for name, statuses in buckets.items():
        totals = invoices.filter(status__in=statuses).aggregate(count=Count('id'), amount=_sum('total_amount'))
        summary[name] = {'count': totals['count'], 'amount': AggregationHelper.to_decimal(totals['amount'])}

    unpaid = invoices.filter(status__in=InterBranchInvoice.UNPAID_STATUSES)
    receivable = {
        str(row['from_branch_id']): AggregationHelper.to_decimal(row['amount'])
        for row in unpaid.values('from_branch_id').annotate(amount=_sum('total_amount'))
    }
    payable = {
        str(row['to_branch_id']): AggregationHelper.to_decimal(row['amount'])
        for row in unpaid.values('to_branch_id').annotate(amount=_sum('total_amount'))
    }

    branches = []
    for branch in scoped_branches(filters).order_by('name', 'id'):
        branch_id = str(branch.id)
        branches.append({
            'branch_id': branch_id,
            'branch_name': branch.name,
            'branch_code': branch.code,
            'receivable': receivable.get(branch_id, ZERO),
            'payable': payable.get(branch_id, ZERO),
        })
    summary['branches'] = branches
    return summary


def aggregate_payment_methods(filters):
    """
    Completed sales per payment method.

    ``percentage`` is the share of the transaction count. With no
    transactions the list is empty.
    """
    rows = list(
        completed_sales(filters)
        .values('payment_method')
        .annotate(count=Count('id'), amount=_sum('total_amount'))
        .order_by('-amount', 'payment_method')
    )
    total_count = sum(row['count'] for row in rows)
    return [
        {
            'method': row['payment_method'],
            'count': row['count'],
            'amount': AggregationHelper.to_decimal(row['amount']),
            'percentage': AggregationHelper.calculate_percentage(row['count'], total_count),
        }
        for row in rows
    ]


def aggregate_top_branches(filters, limit=None):
    """Branches ranked by revenue; idle branches are listed with zero."""
    limit = limit or settings.REPORTS_TOP_N
    sales_q = (
        Q(sales__status=Sale.STATUS_COMPLETED)
        & Q(**filters.window.lookups('sales__transaction_date'))
    )
    rows = (
        scoped_branches(filters)
        .annotate(
            total_transactions=Count('sales', filter=sales_q),
            revenue=Coalesce(Sum('sales__total_amount', filter=sales_q), Value(ZERO), output_field=MONEY),
        )
        .order_by('-revenue', 'name', 'id')[:limit]
    )
    return [
        {
            'branch_id': str(branch.id),
            'branch_name': branch.name,
            'branch_code': branch.code,
            'total_transactions': branch.total_transactions,
            'revenue': AggregationHelper.to_decimal(branch.revenue),
        }
        for branch in rows
    ]


def aggregate_top_products(filters, limit=None):
    limit = limit or settings.REPORTS_TOP_N
    rows = (
        completed_sale_items(filters)
        .values('product_id', 'product__name', 'product__sku')
        .annotate(quantity=_sum('quantity'), revenue=_sum(_line_revenue(), EXTENDED))
        .order_by('-revenue', 'product__name', 'product_id')[:limit]
    )
    return [
        {
            'product_id': str(row['product_id']),
            'product_name': row['product__name'],
            'sku': row['product__sku'],
            'quantity': AggregationHelper.to_decimal(row['quantity']),
            'revenue': AggregationHelper.to_decimal(row['revenue']),
        }
        for row in rows
    ]


def aggregate_category_performance(filters, limit=None):
    """Revenue per product category with its share of line-item revenue."""
    limit = limit or settings.REPORTS_TOP_N
    rows = list(
        completed_sale_items(filters)
        .values('product__category_id', 'product__category__name')
        .annotate(
            quantity=_sum('quantity'),
            revenue=_sum(_line_revenue(), EXTENDED),
            transactions=Count('sale_id', distinct=True),
        )
        .order_by('-revenue', 'product__category__name')
    )
    total_revenue = AggregationHelper.sum_values(rows, 'revenue')
    return [
        {
            'category_id': str(row['product__category_id']) if row['product__category_id'] else None,
            'category': row['product__category__name'] or 'Uncategorized',
            'quantity': AggregationHelper.to_decimal(row['quantity']),
            'transactions': row['transactions'],
            'revenue': AggregationHelper.to_decimal(row['revenue']),
            'revenue_percentage': AggregationHelper.calculate_percentage(
                AggregationHelper.to_decimal(row['revenue']), total_revenue
            ),
        }
        for row in rows[:limit]
    ]


def aggregate_balance_sheet(filters):
    """
    Proxy balances as of the end of the window.

    Inventory is the current stock snapshot valued at cost. Cash, payables
    and inter-branch balances accumulate up to ``window.end``.
    """
    as_of = {'transaction_date__lte': filters.window.end}
    ledger = LedgerTransaction.objects.filter(
        filters.tenant_branch_q('branch_id'),
        status=LedgerTransaction.STATUS_COMPLETED,
        **as_of,
    )

    inventory = BranchStock.objects.filter(
        filters.tenant_branch_q('branch_id', tenant_field='branch__business_id'),
        product__is_active=True,
        branch__is_active=True,
    ).aggregate(
        total=_sum(ExpressionWrapper(F('quantity') * F('product__cost'), output_field=EXTENDED), EXTENDED)
    )

    cash = ledger.filter(
        transaction_type=LedgerTransaction.TYPE_INCOME,
        category__in=settings.REPORTS_CASH_CATEGORIES,
    ).aggregate(total=_sum('amount'))

    payables = ledger.filter(
        transaction_type=LedgerTransaction.TYPE_EXPENSE,
        category__in=settings.REPORTS_PAYABLE_CATEGORIES,
    ).aggregate(total=_sum('amount'))

    unpaid = InterBranchInvoice.objects.filter(
        business_id=filters.tenant_id,
        status__in=InterBranchInvoice.UNPAID_STATUSES,
        invoice_date__lte=filters.window.end,
    )
    receivables = unpaid.filter(filters.branches.q('from_branch_id')).aggregate(total=_sum('total_amount'))
    branch_payables = unpaid.filter(filters.branches.q('to_branch_id')).aggregate(total=_sum('total_amount'))

    return {
        'cash_and_bank': AggregationHelper.to_decimal(cash['total']),
        'inter_branch_receivables': AggregationHelper.to_decimal(receivables['total']),
        'inventory': AggregationHelper.to_decimal(inventory['total']),
        'accounts_payable': AggregationHelper.to_decimal(payables['total']),
        'inter_branch_payables': AggregationHelper.to_decimal(branch_payables['total']),
    }


def aggregate_branch_comparison(filters):
    """Per-branch sales figures for every active branch in scope."""
    sales_q = (
        Q(sales__status=Sale.STATUS_COMPLETED)
        & Q(**filters.window.lookups('sales__transaction_date'))
    )
    rows = (
        scoped_branches(filters)
        .annotate(
            total_transactions=Count('sales', filter=sales_q),
            unique_customers=Count('sales__customer_id', filter=sales_q, distinct=True),
            revenue=Coalesce(Sum('sales__total_amount', filter=sales_q), Value(ZERO), output_field=MONEY),
            net_revenue=Coalesce(Sum('sales__subtotal', filter=sales_q), Value(ZERO), output_field=MONEY),
            total_discount=Coalesce(
                Sum('sales__discount_amount', filter=sales_q), Value(ZERO), output_field=MONEY
            ),
            tax_collected=Coalesce(Sum('sales__tax_amount', filter=sales_q), Value(ZERO), output_field=MONEY),
        )
        .order_by('-revenue', 'name', 'id')
    )
    results = []
    for branch in rows:
        revenue = AggregationHelper.to_decimal(branch.revenue)
        results.append({
            'branch_id': str(branch.id),
            'branch_name': branch.name,
            'branch_code': branch.code,
            'region': branch.region,
            'city': branch.city,
            'total_transactions': branch.total_transactions,
            'unique_customers': branch.unique_customers,
            'revenue': revenue,
            'net_revenue': AggregationHelper.to_decimal(branch.net_revenue),
            'total_discount': AggregationHelper.to_decimal(branch.total_discount),
            'tax_collected': AggregationHelper.to_decimal(branch.tax_collected),
            'average_transaction': AggregationHelper.safe_divide(revenue, branch.total_transactions),
        })
    return results


def aggregate_hourly_sales(filters):
    rows = (
        completed_sales(filters)
        .annotate(hour=ExtractHour('transaction_date'))
        .values('hour')
        .annotate(transactions=Count('id'), revenue=_sum('total_amount'))
        .order_by('hour')
    )
    return [
        {
            'hour': row['hour'],
            'transactions': row['transactions'],
            'revenue': AggregationHelper.to_decimal(row['revenue']),
        }
        for row in rows
    ]


def aggregate_cash_collection(filters):
    totals = completed_sales(filters).aggregate(
        total_collected=_sum('amount_paid'),
        total_change=_sum('change_amount'),
    )
    return {key: AggregationHelper.to_decimal(value) for key, value in totals.items()}


def aggregate_shift_summary(filters):
    """Sales per shift opened on the window's days at the selected branches."""
    sales_q = (
        Q(sales__status=Sale.STATUS_COMPLETED)
        & Q(**filters.window.lookups('sales__transaction_date'))
    )
    shifts = (
        Shift.objects.filter(
            filters.tenant_branch_q('branch_id', tenant_field='branch__business_id'),
            shift_date__gte=filters.window.start.date(),
            shift_date__lte=filters.window.end.date(),
        )
        .select_related('opened_by', 'closed_by')
        .annotate(
            transactions=Count('sales', filter=sales_q),
            revenue=Coalesce(Sum('sales__total_amount', filter=sales_q), Value(ZERO), output_field=MONEY),
        )
        .order_by('opened_at', 'id')
    )
    return [
        {
            'shift_id': str(shift.id),
            'shift_name': shift.shift_name,
            'opened_at': shift.opened_at,
            'closed_at': shift.closed_at,
            'opened_by': shift.opened_by.name if shift.opened_by else None,
            'closed_by': shift.closed_by.name if shift.closed_by else None,
            'transactions': shift.transactions,
            'revenue': AggregationHelper.to_decimal(shift.revenue),
            'opening_cash': shift.opening_cash_amount,
            'final_cash': shift.final_cash_amount,
            'cash_difference': shift.cash_difference,
        }
        for shift in shifts
    ]


def recent_transactions(filters, limit=None):
    """Raw rows of the most recent completed sales, not re-aggregated."""
    limit = limit or settings.REPORTS_DETAILS_LIMIT
    sales = (
        completed_sales(filters)
        .select_related('branch', 'customer', 'cashier')
        .order_by('-transaction_date', '-receipt_number')[:limit]
    )
    return [
        {
            'id': str(sale.id),
            'receipt_number': sale.receipt_number,
            'transaction_date': sale.transaction_date,
            'branch_id': str(sale.branch_id),
            'branch_name': sale.branch.name,
            'payment_method': sale.payment_method,
            'subtotal': sale.subtotal,
            'discount': sale.discount_amount,
            'tax': sale.tax_amount,
            'total': sale.total_amount,
            'customer': sale.customer.name if sale.customer else (sale.customer_name or None),
            'cashier': sale.cashier.name if sale.cashier else None,
        }
        for sale in sales
    ]
