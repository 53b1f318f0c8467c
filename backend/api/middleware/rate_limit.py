"""
Rate limiting middleware using slowapi.

Protects the usage endpoints from hammering.  Uses Redis when REDIS_URL is
configured so limits are shared between workers, in-memory storage
otherwise.

Rate Limits:
- Usage tracking: 60 requests per minute
- Usage checks: 120 requests per minute
- Default: 100 requests per minute
"""

import ipaddress
import logging
import re

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Simple pattern to quickly reject obviously invalid IPs before parsing
_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* looks like a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Return True if *value* is a private, loopback, or link-local address.

    Private IPs in X-Forwarded-For are untrustworthy: a client can spoof
    them to escape its own rate-limit bucket.
    """
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def _get_real_ip(request: Request) -> str:
    """Extract real client IP from proxy headers, falling back to remote address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # X-Forwarded-For can be a comma-separated list; first entry is the client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)


# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "usage_track": "60/minute",
    "usage_check": "120/minute",
    "default": "100/minute",
}

_storage_uri = settings.redis_url if settings.redis_url else "memory://"

if not settings.redis_url:
    logger.warning(
        "Rate limiter using in-memory storage; not suitable for multi-worker production"
    )

limiter = Limiter(
    key_func=_get_real_ip,
    storage_uri=_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """
    Get rate limit configuration for a specific endpoint.

    Example:
        >>> get_rate_limit("usage_track")
        "60/minute"
        >>> get_rate_limit("unknown")
        "100/minute"
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
