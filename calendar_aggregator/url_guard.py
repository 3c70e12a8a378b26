"""URL safety checks applied before any feed URL (or redirect target) is fetched."""

import ipaddress
import logging
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_SCHEME = "https"

LOOPBACK_HOSTNAMES = frozenset({"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"})

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::/128",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)


class SecurityEventLogger:
    """Structured logger for security policy decisions."""

    def log_event(self, event_data: dict[str, Any]) -> None:
        """Log security event at a level matching its severity.

        Args:
            event_data: Security event data to log
        """
        event_type = event_data.get("event_type", "unknown")
        severity = event_data.get("severity", "unknown")
        resource = event_data.get("resource", "unknown")
        description = event_data.get("details", {}).get("description", "No description")

        message = (
            f"Security Event - Type: {event_type}, Severity: {severity}, "
            f"Resource: {resource}, Description: {description}"
        )

        if severity == "LOW":
            logger.debug(message)
        else:
            logger.warning(message)


def _is_blocked_address(host: str) -> bool:
    """Check whether ``host`` is an IP literal inside a blocked network."""
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped

    return any(address in network for network in BLOCKED_NETWORKS if address.version == network.version)


def blocked_reason(url: str) -> str | None:
    """Return why ``url`` must not be fetched, or None if it is safe.

    Args:
        url: Candidate URL

    Returns:
        Human-readable reason for blocking, None when the URL is fetchable
    """
    try:
        parsed = urlparse(url)
        # Accessing port validates it; malformed ports raise ValueError
        _ = parsed.port
        host = parsed.hostname
    except ValueError as e:
        return f"Malformed URL: {e}"

    if parsed.scheme.lower() != ALLOWED_SCHEME:
        return f"Scheme not allowed: {parsed.scheme or '<none>'}"

    if not host:
        return "URL missing hostname"

    host = host.lower().rstrip(".")
    if host in LOOPBACK_HOSTNAMES or host.endswith(".localhost"):
        return f"Loopback hostname: {host}"

    if _is_blocked_address(host):
        return f"Private or reserved address: {host}"

    return None


def is_url_safe(url: str) -> bool:
    """Classify a URL as fetchable (True) or blocked (False).

    Only https URLs whose host is not a loopback name and not a literal
    address in a private, link-local or otherwise reserved range pass.
    Malformed URLs are rejected rather than raising.
    """
    reason = blocked_reason(url)
    if reason is not None:
        logger.debug("URL blocked (%s): %s", reason, url)
        return False
    return True
