"""Concrete occurrence timestamps for cron expressions within a query window."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from .cron_parser import CronExpressionError, ParsedCronFields, parse_cron_expression
from .datetime_utils import ensure_local

logger = logging.getLogger(__name__)

MAX_CRON_OCCURRENCES = 500


def _cron_weekday(day: date) -> int:
    """Day of week in cron numbering (Sunday == 0)."""
    return (day.weekday() + 1) % 7


def generate_occurrences(
    fields: ParsedCronFields,
    window_start: datetime,
    window_end: datetime,
    limit: int = MAX_CRON_OCCURRENCES,
) -> list[datetime]:
    """Walk local calendar days across the window and emit matching times.

    Args:
        fields: Parsed cron fields
        window_start: Query window start
        window_end: Query window end
        limit: Maximum number of timestamps returned

    Returns:
        Aware timestamps in ascending order, all inside ``[window_start, window_end]``
    """
    window_start = ensure_local(window_start)
    window_end = ensure_local(window_end)

    hours = sorted(fields.hours)
    minutes = sorted(fields.minutes)

    results: list[datetime] = []
    day = window_start.astimezone().date()
    last_day = window_end.astimezone().date()

    while day <= last_day and len(results) < limit:
        if fields.matches_day(day.day, day.month, _cron_weekday(day)):
            for hour in hours:
                for minute in minutes:
                    try:
                        candidate = datetime(day.year, day.month, day.day, hour, minute).astimezone()
                    except ValueError:
                        # Out-of-range hour/minute values never match
                        continue
                    if window_start <= candidate <= window_end:
                        results.append(candidate)
        day += timedelta(days=1)

    return results[:limit]


def cron_occurrences(expr: str, window_start: datetime, window_end: datetime) -> list[datetime]:
    """Return occurrence timestamps of ``expr`` inside the window (at most 500).

    An expression with fewer than five fields yields no occurrences. A
    zero or negative step is logged as an invalid schedule and also yields
    none; non-numeric values only drop out of their own field.
    """
    if len(expr.split()) < 5:
        logger.debug("Cron expression %r has fewer than 5 fields; no occurrences", expr)
        return []

    try:
        fields = parse_cron_expression(expr)
    except CronExpressionError as e:
        logger.warning("Invalid cron schedule %r: %s", expr, e)
        return []

    return generate_occurrences(fields, window_start, window_end)
