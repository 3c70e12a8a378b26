"""Unit tests for calendar_aggregator.feed_fetcher using httpx.MockTransport."""

from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from calendar_aggregator.feed_fetcher import (
    FeedFetcher,
    FeedFetchError,
    FeedHTTPStatusError,
    FeedNetworkError,
    FeedSecurityError,
    FeedSizeLimitError,
    FeedTimeoutError,
)
from calendar_aggregator.http_client import USER_AGENT, build_client

pytestmark = pytest.mark.unit

FEED_URL = "https://calendar.example.com/feed.ics"
ICS_BODY = "BEGIN:VCALENDAR\nEND:VCALENDAR\n"


@pytest.fixture
async def make_fetcher() -> AsyncIterator[Callable[..., FeedFetcher]]:
    """Build fetchers whose client is backed by a MockTransport handler."""
    clients: list[httpx.AsyncClient] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> FeedFetcher:
        client = build_client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return FeedFetcher(client=client, **kwargs)

    yield _make

    for client in clients:
        await client.aclose()


def _redirect(location: str, status: int = 302) -> httpx.Response:
    return httpx.Response(status, headers={"Location": location})


class TestFeedFetcherSuccess:
    """Tests for successful fetches."""

    @pytest.mark.asyncio
    async def test_fetch_when_200_then_returns_body(self, make_fetcher) -> None:
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=ICS_BODY))

        assert await fetcher.fetch(FEED_URL) == ICS_BODY

    @pytest.mark.asyncio
    async def test_fetch_when_called_then_sends_user_agent(self, make_fetcher) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=ICS_BODY)

        await make_fetcher(handler).fetch(FEED_URL)

        assert seen[0].headers["User-Agent"] == USER_AGENT == "CalendarAggregator/1.0"
        assert seen[0].method == "GET"

    @pytest.mark.asyncio
    async def test_fetch_when_declared_charset_then_decodes_with_it(self, make_fetcher) -> None:
        body = "SUMMARY:Café".encode("latin-1")
        fetcher = make_fetcher(
            lambda request: httpx.Response(
                200, content=body, headers={"Content-Type": "text/calendar; charset=iso-8859-1"}
            )
        )

        assert await fetcher.fetch(FEED_URL) == "SUMMARY:Café"

    @pytest.mark.asyncio
    async def test_fetch_when_invalid_utf8_then_replaces(self, make_fetcher) -> None:
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=b"ok\xff"))

        assert await fetcher.fetch(FEED_URL) == "ok\ufffd"


class TestFeedFetcherRedirects:
    """Tests for manual redirect handling."""

    @pytest.mark.asyncio
    async def test_fetch_when_redirect_to_public_then_follows(self, make_fetcher) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/feed.ics":
                return _redirect("https://cdn.example.org/real.ics", 301)
            return httpx.Response(200, text=ICS_BODY)

        assert await make_fetcher(handler).fetch(FEED_URL) == ICS_BODY

    @pytest.mark.asyncio
    async def test_fetch_when_relative_location_then_resolves_against_current(
        self, make_fetcher
    ) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if request.url.path == "/feed.ics":
                return _redirect("/moved/feed.ics", 308)
            return httpx.Response(200, text=ICS_BODY)

        await make_fetcher(handler).fetch(FEED_URL)

        assert requested == [FEED_URL, "https://calendar.example.com/moved/feed.ics"]

    @pytest.mark.parametrize(
        "target",
        [
            "https://127.0.0.1/feed.ics",
            "https://169.254.169.254/latest/meta-data",
            "https://localhost/feed.ics",
            "http://example.com/feed.ics",
        ],
    )
    @pytest.mark.asyncio
    async def test_fetch_when_redirect_to_blocked_target_then_security_error(
        self, make_fetcher, target: str
    ) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return _redirect(target, 307)

        with pytest.raises(FeedSecurityError, match="Redirect blocked"):
            await make_fetcher(handler).fetch(FEED_URL)

        # The blocked target is never requested
        assert requested == [FEED_URL]

    @pytest.mark.asyncio
    async def test_fetch_when_three_redirects_then_succeeds(self, make_fetcher) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            hop = int(request.url.params.get("hop", "0"))
            if hop < 3:
                return _redirect(f"{FEED_URL}?hop={hop + 1}")
            return httpx.Response(200, text=ICS_BODY)

        assert await make_fetcher(handler).fetch(FEED_URL) == ICS_BODY

    @pytest.mark.asyncio
    async def test_fetch_when_more_than_three_redirects_then_fails(self, make_fetcher) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return _redirect(f"{FEED_URL}?hop={calls}")

        with pytest.raises(FeedFetchError, match="Too many redirects"):
            await make_fetcher(handler).fetch(FEED_URL)

        assert calls == 4

    @pytest.mark.asyncio
    async def test_fetch_when_redirect_without_location_then_status_error(
        self, make_fetcher
    ) -> None:
        fetcher = make_fetcher(lambda request: httpx.Response(302))

        with pytest.raises(FeedHTTPStatusError) as exc_info:
            await fetcher.fetch(FEED_URL)

        assert exc_info.value.status_code == 302


class TestFeedFetcherFailures:
    """Tests for rejected and failing fetches."""

    @pytest.mark.parametrize(
        "url",
        ["http://example.com/feed.ics", "https://10.0.0.1/feed.ics", "not a url"],
    )
    @pytest.mark.asyncio
    async def test_fetch_when_url_blocked_then_no_request(self, make_fetcher, url: str) -> None:
        requested: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request)
            return httpx.Response(200, text=ICS_BODY)

        with pytest.raises(FeedSecurityError, match="URL blocked"):
            await make_fetcher(handler).fetch(url)

        assert requested == []

    @pytest.mark.asyncio
    async def test_fetch_when_404_then_http_status_error(self, make_fetcher) -> None:
        fetcher = make_fetcher(lambda request: httpx.Response(404))

        with pytest.raises(FeedHTTPStatusError) as exc_info:
            await fetcher.fetch(FEED_URL)

        assert exc_info.value.status_code == 404
        assert isinstance(exc_info.value, FeedFetchError)

    @pytest.mark.asyncio
    async def test_fetch_when_body_over_limit_then_size_error(self, make_fetcher) -> None:
        fetcher = make_fetcher(
            lambda request: httpx.Response(200, content=b"x" * 101), max_body_bytes=100
        )

        with pytest.raises(FeedSizeLimitError):
            await fetcher.fetch(FEED_URL)

    @pytest.mark.asyncio
    async def test_fetch_when_streamed_body_over_limit_then_size_error(
        self, make_fetcher
    ) -> None:
        async def chunks() -> AsyncIterator[bytes]:
            for _ in range(10):
                yield b"y" * 30

        fetcher = make_fetcher(
            lambda request: httpx.Response(200, content=chunks()), max_body_bytes=100
        )

        with pytest.raises(FeedSizeLimitError, match="exceeds limit"):
            await fetcher.fetch(FEED_URL)

    @pytest.mark.asyncio
    async def test_fetch_when_body_exactly_at_limit_then_returns(self, make_fetcher) -> None:
        fetcher = make_fetcher(
            lambda request: httpx.Response(200, content=b"z" * 100), max_body_bytes=100
        )

        assert await fetcher.fetch(FEED_URL) == "z" * 100

    @pytest.mark.asyncio
    async def test_fetch_when_timeout_then_timeout_error(self, make_fetcher) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FeedTimeoutError):
            await make_fetcher(handler).fetch(FEED_URL)

    @pytest.mark.asyncio
    async def test_fetch_when_connect_error_then_network_error(self, make_fetcher) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FeedNetworkError, match="connection refused"):
            await make_fetcher(handler).fetch(FEED_URL)
