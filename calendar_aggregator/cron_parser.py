"""Parsing of five-field cron expressions.

Each field is a comma-separated list of ``*``, ``*/n``, ``a-b/n``, ``a/n``,
``a-b`` or a literal integer. Values are not checked against the field bounds:
an out-of-range literal is kept as-is and simply never matches. A non-numeric
value (``MON``) selects nothing, so the rest of the expression still applies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

FIELD_BOUNDS = {
    "minute": (0, 59),
    "hour": (0, 23),
    "day_of_month": (1, 31),
    "month": (1, 12),
    "day_of_week": (0, 6),
}


class CronExpressionError(ValueError):
    """Raised when a cron field has a zero or negative step."""


@dataclass
class ParsedCronFields:
    """The five parsed cron fields plus the day-field wildcard flags."""

    minutes: set[int]
    hours: set[int]
    days_of_month: set[int]
    months: set[int]
    days_of_week: set[int]
    dom_wildcard: bool
    dow_wildcard: bool

    def matches_day(self, day_of_month: int, month: int, day_of_week: int) -> bool:
        """Apply cron's day selection rule to one calendar day.

        When both day fields are restricted a day matches if either matches;
        when one is ``*`` only the other is consulted.
        """
        if month not in self.months:
            return False
        if self.dom_wildcard and self.dow_wildcard:
            return True
        if self.dom_wildcard:
            return day_of_week in self.days_of_week
        if self.dow_wildcard:
            return day_of_month in self.days_of_month
        return day_of_month in self.days_of_month or day_of_week in self.days_of_week


def _to_int(token: str, expr: str) -> Optional[int]:
    """Parse one numeric token; None (matches nothing) when it is not a number."""
    try:
        return int(token)
    except ValueError:
        logger.warning("Ignoring non-numeric value %r in cron field %r", token, expr)
        return None


def parse_field(expr: str, min_value: int, max_value: int) -> set[int]:
    """Decode one cron field into the set of values it selects.

    Args:
        expr: Field text, e.g. ``"*/15"`` or ``"1-5,10"``
        min_value: Lowest value of the field
        max_value: Highest value of the field

    Returns:
        Selected values (not clamped to the bounds); parts with non-numeric
        tokens contribute nothing

    Raises:
        CronExpressionError: A step is zero or negative
    """
    values: set[int] = set()
    for part in expr.split(","):
        if part == "*":
            values.update(range(min_value, max_value + 1))
        elif "/" in part:
            base, _, step_text = part.partition("/")
            step = _to_int(step_text, expr)
            if step is not None and step < 1:
                raise CronExpressionError(f"Step must be positive in cron field {expr!r}")
            start, end = min_value, max_value
            if base != "*":
                low, sep, high = base.partition("-")
                start = _to_int(low, expr)
                end = _to_int(high, expr) if sep else max_value
            if step is None or start is None or end is None:
                continue
            values.update(range(start, end + 1, step))
        elif "-" in part:
            low, _, high = part.partition("-")
            start, end = _to_int(low, expr), _to_int(high, expr)
            if start is not None and end is not None:
                values.update(range(start, end + 1))
        else:
            value = _to_int(part, expr)
            if value is not None:
                values.add(value)
    return values


def parse_cron_expression(expr: str) -> ParsedCronFields:
    """Parse all five fields of a cron expression.

    Fields beyond the fifth are ignored.

    Raises:
        CronExpressionError: Fewer than five fields, or a step is zero or negative
    """
    parts = expr.split()
    if len(parts) < 5:
        raise CronExpressionError(f"Cron expression needs 5 fields, got {len(parts)}: {expr!r}")

    minute, hour, dom, month, dow = parts[:5]
    return ParsedCronFields(
        minutes=parse_field(minute, *FIELD_BOUNDS["minute"]),
        hours=parse_field(hour, *FIELD_BOUNDS["hour"]),
        days_of_month=parse_field(dom, *FIELD_BOUNDS["day_of_month"]),
        months=parse_field(month, *FIELD_BOUNDS["month"]),
        days_of_week=parse_field(dow, *FIELD_BOUNDS["day_of_week"]),
        dom_wildcard=dom == "*",
        dow_wildcard=dow == "*",
    )
