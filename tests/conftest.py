"""Shared fixtures for calendar_aggregator tests."""

from collections.abc import AsyncIterator, Callable, Generator
from typing import Any

import pytest

from calendar_aggregator.datetime_utils import TEST_TIME_ENV
from calendar_aggregator.http_client import close_all_clients


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast isolated unit tests")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear the test-time override and CALAGG_* settings around each test."""
    for name in (
        TEST_TIME_ENV,
        "CALAGG_SOURCES_FILE",
        "CALAGG_JOBS_FILE",
        "CALAGG_CACHE_TTL_SECONDS",
        "CALAGG_CACHE_CAPACITY",
        "CALAGG_REQUEST_TIMEOUT",
        "CALAGG_MAX_REDIRECTS",
        "CALAGG_MAX_BODY_BYTES",
        "CALAGG_DEFAULT_WINDOW_DAYS",
        "CALAGG_LOG_LEVEL",
        "CALAGG_DEBUG",
    ):
        # setenv first so teardown also removes values written straight to os.environ
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    yield


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


class FakeFetcher:
    """Fetcher double returning canned bodies and counting calls."""

    def __init__(self, bodies: dict[str, Any] | None = None) -> None:
        self.bodies = bodies or {}
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        body = self.bodies.get(url, "")
        if isinstance(body, BaseException):
            raise body
        if callable(body):
            return await body(url)
        return body


@pytest.fixture
def fetcher_factory() -> Callable[..., FakeFetcher]:
    return FakeFetcher


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_simple() -> str:
    """
    Return a simple ICS calendar string with a single event.

    Returns:
        ICS string with one event "Team Meeting" on 2024-01-15 10:00-11:00 UTC
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Calendar Aggregator Test//EN
BEGIN:VEVENT
UID:test-event-001@aggregator.test
DTSTART:20240115T100000Z
DTEND:20240115T110000Z
SUMMARY:Team Meeting
LOCATION:Conference Room A
DESCRIPTION:Weekly team sync meeting
DTSTAMP:20240115T090000Z
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def sample_ics_recurring() -> str:
    """
    Return an ICS string with a daily recurring event.

    Returns:
        ICS string with "Daily Standup" at 09:00 UTC from 2024-01-15, 5 occurrences
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Calendar Aggregator Test//EN
BEGIN:VEVENT
UID:standup@aggregator.test
DTSTART:20240115T090000Z
DTEND:20240115T091500Z
RRULE:FREQ=DAILY;COUNT=5
SUMMARY:Daily Standup
END:VEVENT
END:VCALENDAR
"""
