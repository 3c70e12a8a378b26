"""Date/time helpers shared by the feed parser, the expanders and the service.

All timestamps handled by calendar_aggregator are timezone-aware. Values that
carry no zone (date-only values, floating date-times, naive query bounds) are
interpreted in the host's local zone; values with the ``Z`` marker are UTC.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "CALAGG_TEST_TIME"

DATE_ONLY_LENGTH = 8
DATE_TIME_LENGTH = 15


def ensure_local(dt: datetime) -> datetime:
    """Return ``dt`` as an aware datetime, reading naive values as local time.

    Args:
        dt: Naive or aware datetime

    Returns:
        Timezone-aware datetime
    """
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def now() -> datetime:
    """Return the current time as an aware local datetime.

    Can be overridden for testing via the CALAGG_TEST_TIME environment variable
    (ISO 8601, e.g. "2024-06-01T09:00:00+00:00").
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            return ensure_local(date_parser.isoparse(test_time))
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.now().astimezone()


def parse_window_bound(value: str) -> datetime:
    """Parse a caller supplied ISO-8601 window bound.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    return ensure_local(date_parser.isoparse(value))


def parse_ics_datetime(value: str) -> tuple[datetime, bool]:
    """Decode an iCalendar DATE or DATE-TIME value.

    Accepted forms:
        - ``YYYYMMDD`` (8 chars): all-day, local midnight
        - ``YYYYMMDDTHHMMSS`` (15 chars): local wall-clock time
        - ``YYYYMMDDTHHMMSSZ`` (16 chars): UTC

    Args:
        value: Raw property value

    Returns:
        (aware datetime, all_day flag)

    Raises:
        ValueError: If the value does not match one of the accepted forms or
            names an impossible date
    """
    raw = value.strip()

    if len(raw) == DATE_ONLY_LENGTH:
        parsed = datetime.strptime(raw, "%Y%m%d")
        return ensure_local(parsed), True

    is_utc = raw.endswith("Z")
    body = raw[:-1] if is_utc else raw
    if len(body) != DATE_TIME_LENGTH:
        raise ValueError(f"Unsupported date value: {value!r}")

    parsed = datetime.strptime(body, "%Y%m%dT%H%M%S")
    if is_utc:
        return parsed.replace(tzinfo=UTC), False
    return ensure_local(parsed), False


def start_of_day(dt: datetime) -> datetime:
    """Return local midnight of the day containing ``dt``."""
    local = ensure_local(dt)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)
