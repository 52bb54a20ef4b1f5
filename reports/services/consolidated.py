"""
Consolidated multi-branch reports.

A report is a set of independent aggregators, a derivation step over their
results and a presenter method. ``ConsolidatedReportService.build`` runs the
aggregators (see ``AggregationRunner``), derives, and assembles the payload.
"""
import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Optional

from reports.exceptions import InvalidReportType
from reports.services import aggregators, calculators
from reports.services.assembler import ReportPresenter
from reports.services.runner import AggregationRunner


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportDefinition:
    kind: str
    tasks: Callable[['ReportFilters'], Dict[str, Callable]]
    derive: Callable[[Dict], Dict]
    present: Callable[[ReportPresenter, Dict], Dict]


def _profit_loss_tasks(filters):
    return {
        'revenue': partial(aggregators.aggregate_revenue, filters),
        'cogs': partial(aggregators.aggregate_cogs, filters),
        'expenses': partial(aggregators.aggregate_expenses, filters),
        'inter_branch': partial(aggregators.aggregate_inter_branch, filters),
    }


def _profit_loss_derive(results):
    return {
        'pnl': calculators.calculate_profit_and_loss(
            results['revenue'], results['cogs'], results['expenses'], results['inter_branch']
        ),
    }


def _cash_flow_tasks(filters):
    return {
        'payment_methods': partial(aggregators.aggregate_payment_methods, filters),
        'expenses': partial(aggregators.aggregate_expenses, filters),
    }


def _cash_flow_derive(results):
    return {'cash_flow': calculators.calculate_cash_flow(results['payment_methods'], results['expenses'])}


def _balance_sheet_tasks(filters):
    return {'balances': partial(aggregators.aggregate_balance_sheet, filters)}


def _balance_sheet_derive(results):
    return {'balance_totals': calculators.calculate_balance_sheet(results['balances'])}


def _inter_branch_tasks(filters):
    return {
        'inter_branch': partial(aggregators.aggregate_inter_branch, filters),
        'settlement': partial(aggregators.aggregate_settlement_summary, filters),
    }


def _inter_branch_derive(results):
    return {'net_settlement': calculators.calculate_settlement(results['inter_branch'])}


def _summary_tasks(filters):
    return {
        'revenue': partial(aggregators.aggregate_revenue, filters),
        'top_branches': partial(aggregators.aggregate_top_branches, filters),
        'top_products': partial(aggregators.aggregate_top_products, filters),
        'payment_methods': partial(aggregators.aggregate_payment_methods, filters),
    }


def _branch_comparison_tasks(filters):
    return {
        'branches': partial(aggregators.aggregate_branch_comparison, filters),
        'cogs_by_branch': partial(aggregators.aggregate_cogs_by_branch, filters),
    }


def _branch_comparison_derive(results):
    return {
        'comparison': calculators.calculate_branch_comparison(results['branches'], results['cogs_by_branch']),
    }


PROFIT_LOSS = ReportDefinition('profit_loss', _profit_loss_tasks, _profit_loss_derive,
                               ReportPresenter.profit_and_loss)
CASH_FLOW = ReportDefinition('cash_flow', _cash_flow_tasks, _cash_flow_derive, ReportPresenter.cash_flow)
BALANCE_SHEET = ReportDefinition('balance_sheet', _balance_sheet_tasks, _balance_sheet_derive,
                                 ReportPresenter.balance_sheet)
INTER_BRANCH = ReportDefinition('inter_branch', _inter_branch_tasks, _inter_branch_derive,
                                ReportPresenter.inter_branch)
SUMMARY = ReportDefinition('summary', _summary_tasks, lambda results: {}, ReportPresenter.summary)
BRANCH_COMPARISON = ReportDefinition('branch_comparison', _branch_comparison_tasks, _branch_comparison_derive,
                                     ReportPresenter.branch_comparison)

# /reports/api/consolidated/
CONSOLIDATED_REPORT_TYPES = {
    'profit-loss': PROFIT_LOSS,
    'balance-sheet': BALANCE_SHEET,
    'cash-flow': CASH_FLOW,
    'inter-branch': INTER_BRANCH,
}

# /reports/api/consolidated-financial/
FINANCIAL_REPORT_TYPES = {
    'summary': SUMMARY,
    'p&l': PROFIT_LOSS,
    'cashflow': CASH_FLOW,
    'balance': BALANCE_SHEET,
    'branch_comparison': BRANCH_COMPARISON,
}


def get_report_definition(report_type: str, catalog: Dict[str, ReportDefinition]) -> ReportDefinition:
    try:
        return catalog[report_type]
    except KeyError:
        raise InvalidReportType(
            f"Unknown reportType '{report_type}'.",
            {'reportType': report_type, 'validTypes': list(catalog)},
        )


class ConsolidatedReportService:
    """Builds one consolidated report for one tenant."""

    def __init__(self, requester, currency: Optional[str] = None, runner: Optional[AggregationRunner] = None):
        self.requester = requester
        self.presenter = ReportPresenter(currency=currency)
        self.runner = runner or AggregationRunner()

    def build(self, report_type: str, definition: ReportDefinition, filters, include_details: bool = False):
        tasks = definition.tasks(filters)
        if filters.group_by is not None:
            tasks['breakdown'] = partial(aggregators.aggregate_revenue_by_group, filters, filters.group_by)
        if include_details:
            tasks['details'] = partial(aggregators.recent_transactions, filters)

        logger.info(
            "Building %s report for tenant %s (%s aggregators)",
            report_type, filters.tenant_id, len(tasks),
        )
        results = self.runner.run(tasks)
        results.update(definition.derive(results))

        payload = definition.present(self.presenter, results)
        if 'breakdown' in results:
            payload['breakdown'] = self.presenter.breakdown(results['breakdown'])
        if include_details:
            payload['details'] = self.presenter.details(results['details'])
        payload['metadata'] = self.presenter.metadata(report_type, filters, self.requester)
        return payload
