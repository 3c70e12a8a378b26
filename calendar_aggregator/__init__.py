"""calendar_aggregator - occurrences from remote calendar feeds and local cron jobs.

Answers "what happens in this time window" by fetching iCalendar feeds
(with SSRF protection and a small freshness-bounded cache), expanding their
recurrence rules and cron schedules, and merging everything into one
time-ordered list.
"""

__version__ = "1.0.0"

from .aggregator import EventAggregator, EventService
from .feed_cache import FeedCache
from .feed_fetcher import FeedFetcher, FeedFetchError
from .models import CronJob, FeedSource, Occurrence
from .url_guard import is_url_safe

__all__ = [
    "CronJob",
    "EventAggregator",
    "EventService",
    "FeedCache",
    "FeedFetchError",
    "FeedFetcher",
    "FeedSource",
    "Occurrence",
    "is_url_safe",
]
