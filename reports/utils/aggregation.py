"""
Aggregation Utilities for Reports

Exact decimal arithmetic shared by aggregators and calculators. Nothing in
this module rounds; rounding is applied once, when the response is assembled.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable


ZERO = Decimal('0')
HUNDRED = Decimal('100')


class AggregationHelper:
    """Helper class for common aggregation operations"""

    @staticmethod
    def to_decimal(value) -> Decimal:
        """Convert an aggregate result to Decimal. ``None`` becomes zero."""
        if value is None:
            return ZERO
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            return ZERO

    @staticmethod
    def safe_divide(numerator: Decimal, denominator: Decimal, default: Decimal = ZERO) -> Decimal:
        """
        Divide two numbers, returning ``default`` when the denominator is zero.

        Args:
            numerator: Numerator
            denominator: Denominator
            default: Value used for division by zero

        Returns:
            Unrounded quotient or default
        """
        if not denominator:
            return default
        return Decimal(numerator) / Decimal(denominator)

    @staticmethod
    def calculate_percentage(part, whole) -> Decimal:
        """``part / whole * 100``, or zero when ``whole`` is zero."""
        if not whole:
            return ZERO
        return Decimal(part) / Decimal(whole) * HUNDRED

    @staticmethod
    def calculate_growth_rate(current, previous) -> Decimal:
        """
        Growth between two periods as a percentage.

        No prior activity means no measurable growth, so a zero baseline
        yields zero rather than an infinite rate.
        """
        if not previous:
            return ZERO
        return (Decimal(current) - Decimal(previous)) / Decimal(previous) * HUNDRED

    @staticmethod
    def sum_values(rows: Iterable[Dict[str, Any]], key: str) -> Decimal:
        """Sum ``key`` across already-aggregated rows."""
        return sum((AggregationHelper.to_decimal(row.get(key)) for row in rows), ZERO)
