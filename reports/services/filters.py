"""
Report filter resolution.

Request parameters become one immutable ``ReportFilters`` value. Aggregators
bind it to their own field paths through ``ReportFilters.q`` so the tenant,
window and branch predicate are expressed once and never spliced as text.
"""
import json
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from django.db.models import F, Q
from django.db.models.functions import TruncDate, TruncMonth

from reports.exceptions import InvalidBranchFilter, InvalidGroupBy
from reports.utils.date_utils import DateWindow, resolve_report_window


ALL_BRANCHES = 'all'


@dataclass(frozen=True)
class BranchFilter:
    """Either every branch (``branch_ids is None``) or an explicit id set."""
    branch_ids: Optional[Tuple[str, ...]] = None

    @property
    def is_all(self) -> bool:
        return self.branch_ids is None

    @classmethod
    def parse(cls, raw) -> 'BranchFilter':
        """
        Parse ``branchIds``.

        Accepts ``all`` or nothing, a JSON array, a comma-separated list or a
        single id. Ids must be UUIDs. An explicit selection must not be empty.
        """
        if raw is None:
            return cls()
        if isinstance(raw, (list, tuple)):
            values = list(raw)
        else:
            text = str(raw).strip()
            if text == '' or text.lower() == ALL_BRANCHES:
                return cls()
            if text.startswith('['):
                try:
                    values = json.loads(text)
                except ValueError:
                    raise InvalidBranchFilter('branchIds is not valid JSON.', {'branchIds': text})
                if not isinstance(values, list):
                    raise InvalidBranchFilter('branchIds must be a JSON array.', {'branchIds': text})
            else:
                values = text.split(',')

        ids = []
        for value in values:
            if not isinstance(value, str) or not value.strip():
                continue
            try:
                normalized = str(uuid.UUID(value.strip()))
            except ValueError:
                raise InvalidBranchFilter(f"'{value}' is not a valid branch id.", {'branchId': value})
            if normalized not in ids:
                ids.append(normalized)

        if not ids:
            raise InvalidBranchFilter('branchIds must name at least one branch.', {'branchIds': raw})

        return cls(branch_ids=tuple(sorted(ids)))

    def q(self, field: str) -> Q:
        if self.is_all:
            return Q()
        return Q(**{f'{field}__in': self.branch_ids})

    def as_metadata(self):
        return ALL_BRANCHES if self.is_all else list(self.branch_ids)


class GroupBy(Enum):
    """Dimensions a breakdown can be bucketed by."""
    BRANCH = 'branch'
    REGION = 'region'
    DAY = 'day'
    MONTH = 'month'

    @classmethod
    def parse(cls, raw) -> Optional['GroupBy']:
        if raw in (None, ''):
            return None
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise InvalidGroupBy(
                f"Unknown groupBy '{raw}'.",
                {'groupBy': raw, 'validValues': [member.value for member in cls]},
            )

    def expressions(self, date_field: str, branch_field: str):
        """Return ``(key, label)`` ORM expressions for this dimension."""
        if self is GroupBy.BRANCH:
            return F(f'{branch_field}_id'), F(f'{branch_field}__name')
        if self is GroupBy.REGION:
            return F(f'{branch_field}__region'), F(f'{branch_field}__region')
        if self is GroupBy.DAY:
            truncated = TruncDate(date_field)
            return truncated, truncated
        truncated = TruncMonth(date_field)
        return truncated, truncated

    def format_key(self, value) -> str:
        if value is None:
            return ''
        if self is GroupBy.DAY:
            return value.isoformat()
        if self is GroupBy.MONTH:
            return value.strftime('%Y-%m')
        return str(value)


@dataclass(frozen=True)
class ReportFilters:
    tenant_id: str
    window: DateWindow
    branches: BranchFilter = BranchFilter()
    group_by: Optional[GroupBy] = None

    def q(self, date_field: str, branch_field: str, tenant_field: str = 'business_id') -> Q:
        """Bind the tenant, window and branch predicate to one table's fields."""
        return (
            Q(**{tenant_field: self.tenant_id})
            & Q(**self.window.lookups(date_field))
            & self.branches.q(branch_field)
        )

    def tenant_branch_q(self, branch_field: str, tenant_field: str = 'business_id') -> Q:
        """Tenant and branch predicate without the date window."""
        return Q(**{tenant_field: self.tenant_id}) & self.branches.q(branch_field)

    def with_window(self, window: DateWindow) -> 'ReportFilters':
        return ReportFilters(self.tenant_id, window, self.branches, self.group_by)

    def as_metadata(self):
        return {
            **self.window.as_metadata(),
            'branchIds': self.branches.as_metadata(),
            'groupBy': self.group_by.value if self.group_by else None,
        }


def resolve_filters(tenant_id: str, params, default_period: str = 'month') -> ReportFilters:
    """Build ReportFilters from query parameters."""
    window = resolve_report_window(
        params.get('period') or default_period,
        params.get('startDate'),
        params.get('endDate'),
    )
    return ReportFilters(
        tenant_id=str(tenant_id),
        window=window,
        branches=BranchFilter.parse(params.get('branchIds')),
        group_by=GroupBy.parse(params.get('groupBy')),
    )
