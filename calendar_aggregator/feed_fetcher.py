"""Bounded HTTP retrieval of calendar feed text."""

import logging
from typing import Optional
from urllib.parse import urljoin

import httpx

from .http_client import DEFAULT_REQUEST_TIMEOUT, get_shared_client
from .url_guard import SecurityEventLogger, blocked_reason

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 3
MAX_BODY_BYTES = 5_000_000
REDIRECT_STATUS_CODES = frozenset({301, 302, 307, 308})


class FeedFetchError(Exception):
    """Base exception for feed fetch errors."""


class FeedSecurityError(FeedFetchError):
    """URL or redirect target rejected by the URL guard."""


class FeedNetworkError(FeedFetchError):
    """Network error during feed fetch."""


class FeedTimeoutError(FeedFetchError):
    """Timeout during feed fetch."""


class FeedSizeLimitError(FeedFetchError):
    """Response body exceeded the size ceiling."""


class FeedHTTPStatusError(FeedFetchError):
    """Server answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FeedFetcher:
    """Async fetcher for calendar feeds with guard, redirect, timeout and size limits."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_redirects: int = MAX_REDIRECTS,
        max_body_bytes: int = MAX_BODY_BYTES,
    ) -> None:
        """Initialize feed fetcher.

        Args:
            client: Optional client to use; the shared pooled client is used when omitted
            timeout: Request timeout in seconds
            max_redirects: Maximum number of redirects followed
            max_body_bytes: Response body ceiling in bytes
        """
        self.client = client
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.max_body_bytes = max_body_bytes
        self.security_logger = SecurityEventLogger()
        self._client_id = "feed_fetcher"

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is not None:
            return self.client
        return await get_shared_client(self._client_id, timeout=self.timeout)

    def _check_url(self, url: str, original_url: str, is_redirect: bool) -> None:
        """Raise FeedSecurityError when the guard rejects ``url``."""
        reason = blocked_reason(url)
        if reason is None:
            return

        action = "redirect_validation" if is_redirect else "url_validation"
        self.security_logger.log_event(
            {
                "event_type": "SSRF_BLOCKED",
                "severity": "MEDIUM",
                "resource": url,
                "action": action,
                "result": "blocked",
                "details": {"description": reason, "original_url": original_url},
            }
        )
        if is_redirect:
            raise FeedSecurityError(f"Redirect blocked by security policy: {reason}")
        raise FeedSecurityError(f"URL blocked by security policy: {reason}")

    async def fetch(self, url: str) -> str:
        """Download feed text from ``url``.

        Follows up to ``max_redirects`` redirects (301/302/307/308), checking
        every target against the URL guard, and aborts the transfer as soon as
        the body grows past ``max_body_bytes``.

        Args:
            url: Feed URL

        Returns:
            Decoded response body

        Raises:
            FeedSecurityError: The URL or a redirect target is blocked
            FeedTimeoutError: The request timed out
            FeedSizeLimitError: The body exceeded the size ceiling
            FeedHTTPStatusError: The final response was not a success
            FeedNetworkError: Any other transport failure
            FeedFetchError: Too many redirects
        """
        self._check_url(url, url, is_redirect=False)
        client = await self._get_client()

        current_url = url
        redirects = 0
        try:
            while True:
                logger.debug("Fetching feed from %s (redirects so far: %d)", current_url, redirects)
                async with client.stream("GET", current_url, timeout=self.timeout) as response:
                    location = response.headers.get("location")
                    if response.status_code in REDIRECT_STATUS_CODES and location:
                        target = urljoin(current_url, location)
                    elif not response.is_success:
                        raise FeedHTTPStatusError(
                            f"HTTP {response.status_code}: {response.reason_phrase}",
                            response.status_code,
                        )
                    else:
                        return await self._read_body(response, current_url)

                redirects += 1
                if redirects > self.max_redirects:
                    raise FeedFetchError(f"Too many redirects (>{self.max_redirects})")
                self._check_url(target, url, is_redirect=True)
                current_url = target

        except httpx.TimeoutException as e:
            raise FeedTimeoutError(f"Request timeout after {self.timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FeedNetworkError(f"Network error: {e}") from e

    async def _read_body(self, response: httpx.Response, url: str) -> str:
        """Read the streamed body, aborting once it exceeds the ceiling."""
        declared = response.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_bytes:
            raise FeedSizeLimitError(
                f"Declared body size {declared} exceeds limit of {self.max_body_bytes} bytes"
            )

        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > self.max_body_bytes:
                # Leaving the stream context closes the connection mid-transfer
                raise FeedSizeLimitError(
                    f"Body exceeds limit of {self.max_body_bytes} bytes"
                )
            chunks.append(chunk)

        encoding = response.charset_encoding or "utf-8"
        try:
            text = b"".join(chunks).decode(encoding, errors="replace")
        except LookupError:
            text = b"".join(chunks).decode("utf-8", errors="replace")

        logger.debug("Fetched feed from %s - %d bytes", url, received)
        return text
