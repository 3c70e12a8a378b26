"""RRULE parsing and expansion for calendar feed events.

Only FREQ (DAILY/WEEKLY/MONTHLY/YEARLY), COUNT, UNTIL and INTERVAL are
understood; other rule parts are ignored. Expansion walks a running cursor.
Month and year steps keep the day-of-month and let a day that does not exist
in the target month spill over into the next one, and later steps continue
from the spilled date (Jan 31 + 1 month -> Mar 2 in 2024, then Apr 2, May 2;
Feb 29 + 1 year -> Mar 1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from .datetime_utils import parse_ics_datetime

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 500

FREQUENCY_UNITS = {
    "DAILY": "days",
    "WEEKLY": "weeks",
    "MONTHLY": "months",
    "YEARLY": "years",
}


def step_forward(current: datetime, unit: str, amount: int) -> datetime:
    """Advance ``current`` by ``amount`` units, spilling overflowing month days forward."""
    if unit in ("days", "weeks"):
        return current + relativedelta(**{unit: amount})

    months = amount * 12 if unit == "years" else amount
    first_of_target = current.replace(day=1) + relativedelta(months=months)
    return first_of_target + timedelta(days=current.day - 1)


class RecurrenceRuleError(ValueError):
    """Raised when an RRULE string cannot be parsed."""


@dataclass(frozen=True)
class RecurrenceRule:
    """Parsed subset of an RFC 5545 recurrence rule."""

    freq: str
    count: Optional[int] = None
    until: Optional[datetime] = None
    interval: int = 1

    @property
    def limit(self) -> int:
        """Maximum number of steps taken during expansion."""
        if self.count is None:
            return MAX_OCCURRENCES
        return min(self.count, MAX_OCCURRENCES)


def _parse_positive_int(name: str, value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        raise RecurrenceRuleError(f"{name} must be an integer, got {value!r}") from e
    if number < 1:
        raise RecurrenceRuleError(f"{name} must be positive, got {number}")
    return number


def parse_rrule(rule: str) -> RecurrenceRule:
    """Parse an RRULE value such as ``FREQ=WEEKLY;INTERVAL=2;COUNT=10``.

    Args:
        rule: RRULE property value (without the ``RRULE:`` prefix)

    Returns:
        Parsed RecurrenceRule. FREQ is upper-cased but not validated; missing
        and unknown frequencies are handled by ``expand_rrule``.

    Raises:
        RecurrenceRuleError: COUNT/INTERVAL are not positive
            integers, or UNTIL is not a valid date
    """
    parts: dict[str, str] = {}
    for part in rule.strip().split(";"):
        if not part:
            continue
        key, _, value = part.partition("=")
        parts[key.strip().upper()] = value.strip()

    freq = parts.get("FREQ", "").upper()

    count = _parse_positive_int("COUNT", parts["COUNT"]) if "COUNT" in parts else None
    interval = _parse_positive_int("INTERVAL", parts["INTERVAL"]) if "INTERVAL" in parts else 1

    until = None
    if parts.get("UNTIL"):
        try:
            until, _ = parse_ics_datetime(parts["UNTIL"])
        except ValueError as e:
            raise RecurrenceRuleError(f"Invalid UNTIL value: {parts['UNTIL']!r}") from e

    return RecurrenceRule(freq=freq, count=count, until=until, interval=interval)


def expand_rrule(
    rule: RecurrenceRule,
    anchor: datetime,
    window_start: datetime,
    window_end: datetime,
) -> list[datetime]:
    """Expand ``rule`` from ``anchor`` into occurrence starts inside the window.

    Steps a cursor forward from the anchor by ``interval`` units of the
    frequency, collecting each start in ``[window_start, min(until, window_end)]``,
    until ``min(count, 500)`` steps are taken or a start passes the bound. A
    missing or unknown frequency stops the walk after the anchor has been
    considered.

    Args:
        rule: Parsed recurrence rule
        anchor: DTSTART of the master event
        window_start: Query window start
        window_end: Query window end

    Returns:
        Occurrence starts in ascending order
    """
    bound = window_end if rule.until is None else min(rule.until, window_end)
    unit = FREQUENCY_UNITS.get(rule.freq)

    results: list[datetime] = []
    current = anchor
    for _ in range(rule.limit):
        if current > bound:
            break
        if current >= window_start:
            results.append(current)
        if unit is None:
            logger.debug("Unsupported RRULE frequency %r; stopping expansion", rule.freq)
            break
        current = step_forward(current, unit, rule.interval)

    return results
