"""Wiring of fetcher, cache, aggregator and stores from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx

from .aggregator import EventAggregator, EventService
from .config_manager import AggregatorConfig
from .feed_cache import FeedCache
from .feed_fetcher import FeedFetcher
from .stores import JobStore, SourceStore


@dataclass
class AppDependencies:
    """Container for the long-lived application objects."""

    config: AggregatorConfig
    fetcher: FeedFetcher
    cache: FeedCache
    aggregator: EventAggregator
    service: EventService


def build_dependencies(
    config: AggregatorConfig, client: Optional[httpx.AsyncClient] = None
) -> AppDependencies:
    """Build all application dependencies.

    The cache is created once here and shared by every query made through
    the returned service.

    Args:
        config: Application configuration
        client: Optional HTTP client (the shared pooled client when omitted)

    Returns:
        AppDependencies container
    """
    fetcher = FeedFetcher(
        client=client,
        timeout=config.request_timeout,
        max_redirects=config.max_redirects,
        max_body_bytes=config.max_body_bytes,
    )
    cache = FeedCache(
        fetcher,
        capacity=config.cache_capacity,
        freshness_seconds=config.cache_ttl_seconds,
    )
    aggregator = EventAggregator(cache)
    service = EventService(
        aggregator,
        SourceStore(config.sources_file),
        JobStore(config.jobs_file),
        default_window=timedelta(days=config.default_window_days),
    )
    return AppDependencies(
        config=config,
        fetcher=fetcher,
        cache=cache,
        aggregator=aggregator,
        service=service,
    )
