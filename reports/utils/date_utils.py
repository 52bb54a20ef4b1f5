"""
Date Window Utilities for Reports

Turns a period keyword or an explicit date range into a closed window of
timezone-aware datetimes, anchored to "now" in the configured time zone.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

from dateutil.relativedelta import relativedelta
from django.utils import timezone

from reports.exceptions import InvalidReportPeriod


PERIOD_TODAY = 'today'
PERIOD_YESTERDAY = 'yesterday'
PERIOD_WEEK = 'week'
PERIOD_MONTH = 'month'
PERIOD_QUARTER = 'quarter'
PERIOD_YEAR = 'year'

VALID_PERIODS = (
    PERIOD_TODAY,
    PERIOD_YESTERDAY,
    PERIOD_WEEK,
    PERIOD_MONTH,
    PERIOD_QUARTER,
    PERIOD_YEAR,
)


@dataclass(frozen=True)
class DateWindow:
    """Inclusive [start, end] window. Both ends are timezone-aware."""
    start: datetime
    end: datetime
    period: Optional[str] = None
    explicit_start: Optional[date] = None
    explicit_end: Optional[date] = None

    @property
    def is_explicit(self) -> bool:
        return self.explicit_start is not None

    def lookups(self, field: str) -> Dict[str, datetime]:
        """ORM lookups restricting ``field`` to this window."""
        return {f'{field}__gte': self.start, f'{field}__lte': self.end}

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def as_metadata(self) -> Dict[str, Any]:
        return {
            'period': self.period,
            'dateRange': {
                'start': self.explicit_start.isoformat(),
                'end': self.explicit_end.isoformat(),
            } if self.is_explicit else None,
            'window': {
                'start': self.start.isoformat(),
                'end': self.end.isoformat(),
            },
        }


class DateRangeValidator:
    """Parse and validate explicit report dates"""

    @staticmethod
    def parse_date(date_str: str) -> Optional[date]:
        """
        Parse a YYYY-MM-DD string.

        Returns None when the value is missing or malformed.
        """
        if not date_str:
            return None
        try:
            return datetime.strptime(date_str.strip(), '%Y-%m-%d').date()
        except (ValueError, TypeError, AttributeError):
            return None


def start_of_day(day: date) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min))


def end_of_day(day: date) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.max))


def day_window(day: date) -> DateWindow:
    """The full calendar day ``day`` in the current time zone."""
    return DateWindow(start=start_of_day(day), end=end_of_day(day), explicit_start=day, explicit_end=day)


def period_start(period: str, today: date) -> date:
    """
    First day of the truncation unit for ``period``.

    The week starts on Monday but never before the first of the month, so a
    week window always sits inside the month window.
    """
    if period in (PERIOD_TODAY, PERIOD_YESTERDAY):
        return today if period == PERIOD_TODAY else today - timedelta(days=1)
    if period == PERIOD_WEEK:
        monday = today - timedelta(days=today.weekday())
        return max(monday, today + relativedelta(day=1))
    if period == PERIOD_MONTH:
        return today + relativedelta(day=1)
    if period == PERIOD_QUARTER:
        return today + relativedelta(month=((today.month - 1) // 3) * 3 + 1, day=1)
    if period == PERIOD_YEAR:
        return today + relativedelta(month=1, day=1)
    raise InvalidReportPeriod(
        f"Unknown period '{period}'.",
        {'period': period, 'validPeriods': list(VALID_PERIODS)},
    )


def resolve_report_window(
    period: Optional[str],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DateWindow:
    """
    Resolve request parameters into a DateWindow.

    Explicit ``start_date``/``end_date`` override ``period``. Both must be
    supplied and ``start_date`` must not be after ``end_date``.
    """
    if start_date or end_date:
        if not (start_date and end_date):
            raise InvalidReportPeriod(
                'Both startDate and endDate are required for a custom range.',
                {'startDate': start_date, 'endDate': end_date},
            )

        start = DateRangeValidator.parse_date(start_date)
        end = DateRangeValidator.parse_date(end_date)
        if start is None or end is None:
            raise InvalidReportPeriod(
                'Invalid date format. Use YYYY-MM-DD.',
                {'startDate': start_date, 'endDate': end_date},
            )
        if start > end:
            raise InvalidReportPeriod(
                'startDate must be before or equal to endDate.',
                {'startDate': start_date, 'endDate': end_date},
            )

        return DateWindow(
            start=start_of_day(start),
            end=end_of_day(end),
            period=period,
            explicit_start=start,
            explicit_end=end,
        )

    if not period:
        raise InvalidReportPeriod('A period or a startDate/endDate range is required.')

    current = timezone.localtime(now or timezone.now())
    today = current.date()
    first_day = period_start(period, today)

    if period == PERIOD_YESTERDAY:
        return DateWindow(start=start_of_day(first_day), end=end_of_day(first_day), period=period)

    return DateWindow(start=start_of_day(first_day), end=current, period=period)
