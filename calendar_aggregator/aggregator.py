"""Merging of feed and cron occurrences into one time-ordered list."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

from .cron_occurrences import cron_occurrences
from .datetime_utils import ensure_local, now
from .feed_cache import FeedCache
from .ics_parser import FeedParser
from .models import (
    CRON_EVENT_COLOR,
    CRON_SOURCE_NAME,
    CronJob,
    FeedSource,
    Occurrence,
    SourceChanges,
)
from .stores import JobStore, SourceStore

logger = logging.getLogger(__name__)

CRON_EVENT_DURATION = timedelta(minutes=15)
DEFAULT_WINDOW = timedelta(days=30)


def feed_occurrence_id(source_id: str, uid: str, start: datetime) -> str:
    return f"ical-{source_id}-{uid}-{start.isoformat()}"


def cron_occurrence_id(job_id: str, start: datetime) -> str:
    return f"cron-{job_id}-{start.isoformat()}"


class EventAggregator:
    """Fans out over feed sources and cron jobs and merges their occurrences."""

    def __init__(self, cache: FeedCache, parser: Optional[FeedParser] = None):
        """Initialize aggregator.

        Args:
            cache: Feed cache used to obtain feed text
            parser: Feed parser (a default FeedParser when omitted)
        """
        self.cache = cache
        self.parser = parser or FeedParser()

    def cron_events(
        self, jobs: list[CronJob], window_start: datetime, window_end: datetime
    ) -> list[Occurrence]:
        """Expand enabled cron jobs into occurrences inside the window."""
        window_start = ensure_local(window_start)
        window_end = ensure_local(window_end)

        events: list[Occurrence] = []
        for job in jobs:
            if not job.has_cron_schedule:
                continue
            description = job.description_text()
            for start in cron_occurrences(job.schedule.expr, window_start, window_end):
                events.append(
                    Occurrence(
                        id=cron_occurrence_id(job.id, start),
                        title=f"⏰ {job.name}",
                        start=start,
                        end=start + CRON_EVENT_DURATION,
                        all_day=False,
                        color=CRON_EVENT_COLOR,
                        source=CRON_SOURCE_NAME,
                        description=description,
                    )
                )
        return events

    async def feed_events(
        self, source: FeedSource, window_start: datetime, window_end: datetime
    ) -> list[Occurrence]:
        """Fetch (through the cache), parse and expand one feed source."""
        text = await self.cache.get_or_fetch(source.id, source.url)
        if not text:
            return []

        return [
            Occurrence(
                id=feed_occurrence_id(source.id, event.uid, event.start),
                title=event.summary,
                start=event.start,
                end=event.end,
                all_day=event.all_day,
                color=source.color,
                source=source.name,
                description=event.description,
                location=event.location,
            )
            for event in self.parser.parse(text, window_start, window_end)
        ]

    async def collect(
        self,
        window_start: datetime,
        window_end: datetime,
        sources: list[FeedSource],
        jobs: list[CronJob],
    ) -> list[Occurrence]:
        """Return all occurrences in the window, sorted by start time.

        Cron occurrences are generated synchronously; feed sources are fetched
        concurrently and a failing source contributes nothing instead of
        failing the whole query.

        Args:
            window_start: Query window start
            window_end: Query window end
            sources: Configured feed sources (only fetchable ones are used)
            jobs: Configured cron jobs

        Returns:
            Merged occurrence list
        """
        window_start = ensure_local(window_start)
        window_end = ensure_local(window_end)

        all_events = self.cron_events(jobs, window_start, window_end)

        feed_sources = [source for source in sources if source.is_fetchable]
        results = await asyncio.gather(
            *(self.feed_events(source, window_start, window_end) for source in feed_sources),
            return_exceptions=True,
        )

        for source, result in zip(feed_sources, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Source %r (%s) failed: %s",
                    source.name,
                    source.id,
                    result,
                    exc_info=(type(result), result, result.__traceback__),
                )
                continue
            logger.debug("Source %r returned %d events", source.name, len(result))
            all_events.extend(result)

        all_events.sort(key=lambda event: event.start)
        logger.debug(
            "Collected %d events from %d feeds and %d jobs",
            len(all_events),
            len(feed_sources),
            len(jobs),
        )
        return all_events


class EventService:
    """Read operations over the configured stores."""

    def __init__(
        self,
        aggregator: EventAggregator,
        source_store: SourceStore,
        job_store: JobStore,
        default_window: timedelta = DEFAULT_WINDOW,
        clock: Callable[[], datetime] = now,
    ):
        self.aggregator = aggregator
        self.source_store = source_store
        self.job_store = job_store
        self.default_window = default_window
        self._clock = clock

    def _resolve_window(
        self, start: Optional[datetime], end: Optional[datetime]
    ) -> tuple[datetime, datetime]:
        current = self._clock()
        window_start = ensure_local(start) if start is not None else current
        window_end = ensure_local(end) if end is not None else current + self.default_window
        return window_start, window_end

    def list_sources(self) -> list[FeedSource]:
        return self.source_store.read()

    def create_source(self, data: dict[str, Any]) -> FeedSource:
        """Validate ``data`` and store it as a new source.

        Raises:
            pydantic.ValidationError: Bad kind, color, name length or blocked URL
        """
        return self.source_store.add(SourceChanges.model_validate(data))

    def update_source(self, source_id: str, data: dict[str, Any]) -> Optional[FeedSource]:
        return self.source_store.update(source_id, SourceChanges.model_validate(data))

    def delete_source(self, source_id: str) -> bool:
        return self.source_store.delete(source_id)

    async def list_events(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[Occurrence]:
        """Occurrences from all feeds and cron jobs (default window: now .. now + 30 days)."""
        window_start, window_end = self._resolve_window(start, end)
        return await self.aggregator.collect(
            window_start, window_end, self.source_store.read(), self.job_store.read()
        )

    def list_cron_events(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[Occurrence]:
        """Occurrences from cron jobs only (same default window)."""
        window_start, window_end = self._resolve_window(start, end)
        events = self.aggregator.cron_events(self.job_store.read(), window_start, window_end)
        events.sort(key=lambda event: event.start)
        return events
