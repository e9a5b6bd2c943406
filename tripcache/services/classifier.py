"""
Error classification for retry decisions.

Every retry decision in the request layer goes through classify_error(),
which maps an arbitrary exception onto a small set of failure kinds using,
in order: our own exception types, httpx exceptions, an HTTP status code
carried by the exception, built-in connection/timeout errors and finally
message-text heuristics.
"""

import asyncio
import json
from enum import Enum

import httpx

from tripcache.services.errors import (
    ClientError,
    ConfigurationError,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
)


class ErrorKind(str, Enum):
    """Failure categories."""

    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVER_UNAVAILABLE = "server_unavailable"  # 502/503/504
    CLIENT_ERROR = "client_error"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.NETWORK, ErrorKind.RATE_LIMITED, ErrorKind.SERVER_UNAVAILABLE}
)
UNAVAILABLE_STATUSES = frozenset({502, 503, 504})

_NETWORK_HINTS = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "failed to fetch",
)
_RATE_LIMIT_HINTS = (
    "rate limit",
    "rate_limit",
    "too many requests",
    "capacity",
    "quota",
)
_UNAVAILABLE_HINTS = (
    "bad gateway",
    "service unavailable",
    "gateway timeout",
)


def get_status_code(exc: BaseException) -> int | None:
    """Find an HTTP status code attached to an exception, if any."""
    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value

    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def classify_status(status: int) -> ErrorKind:
    """Classify an HTTP status code."""
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status in UNAVAILABLE_STATUSES:
        return ErrorKind.SERVER_UNAVAILABLE
    if 400 <= status < 500:
        return ErrorKind.CLIENT_ERROR
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> ErrorKind:
    """Classify a failure. Pure, never raises."""
    if isinstance(exc, RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, ServiceUnavailableError):
        return ErrorKind.SERVER_UNAVAILABLE
    if isinstance(exc, NetworkError):
        return ErrorKind.NETWORK
    if isinstance(exc, (ClientError, ConfigurationError)):
        return ErrorKind.CLIENT_ERROR

    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code)
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return ErrorKind.NETWORK

    status = get_status_code(exc)
    if status is not None:
        return classify_status(status)

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.NETWORK
    if isinstance(exc, (json.JSONDecodeError, ValueError, TypeError)):
        return ErrorKind.CLIENT_ERROR

    message = str(exc).lower()
    if any(hint in message for hint in _RATE_LIMIT_HINTS):
        return ErrorKind.RATE_LIMITED
    if any(hint in message for hint in _UNAVAILABLE_HINTS):
        return ErrorKind.SERVER_UNAVAILABLE
    if any(hint in message for hint in _NETWORK_HINTS):
        return ErrorKind.NETWORK

    return ErrorKind.UNKNOWN


def is_retryable(exc: BaseException) -> bool:
    """Default retry predicate: network, rate limited or 502/503/504."""
    return classify_error(exc) in RETRYABLE_KINDS
