"""
Transient-vs-permanent error classification.

The retry executor consults this module before every backoff sleep. The
catalogue below is explicit and closed: an error is retryable only if it
(or an exception it was raised `from`) matches one of the 13 signatures.
Everything else, business-rule violations included, is permanent and is
surfaced on the first attempt.

A signature matches on any of:
    - exception type (isinstance)
    - error code: errno, HTTP status, Postgres SQLSTATE
    - lower-cased message substring
"""

import errno
import socket
from dataclasses import dataclass
from typing import Iterator, Optional

import httpx
from redis.exceptions import AuthenticationError as RedisAuthenticationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from clinic_resilience.exceptions import ResilienceError


@dataclass(frozen=True)
class RetryableSignature:
    """One recognised transient-failure signature."""

    name: str
    exception_types: tuple[type[BaseException], ...] = ()
    codes: frozenset = frozenset()
    patterns: tuple[str, ...] = ()

    def matches(self, error: BaseException) -> bool:
        if self.exception_types and isinstance(error, self.exception_types):
            return True

        if self.codes and not self.codes.isdisjoint(_error_codes(error)):
            return True

        if self.patterns:
            message = str(error).lower()
            return any(pattern in message for pattern in self.patterns)

        return False


RETRYABLE_SIGNATURES: tuple[RetryableSignature, ...] = (
    RetryableSignature(
        name="connection_reset",
        exception_types=(ConnectionResetError,),
        codes=frozenset({errno.ECONNRESET, "08006"}),
        patterns=("connection reset", "server closed the connection unexpectedly"),
    ),
    RetryableSignature(
        name="connection_refused",
        exception_types=(ConnectionRefusedError, httpx.ConnectError, RedisConnectionError),
        codes=frozenset({errno.ECONNREFUSED, "08001"}),
        patterns=("connection refused",),
    ),
    RetryableSignature(
        name="connection_timeout",
        exception_types=(httpx.ConnectTimeout,),
        codes=frozenset({errno.ETIMEDOUT}),
        patterns=("connection timed out", "connect timeout"),
    ),
    RetryableSignature(
        name="io_timeout",
        # TimeoutError also covers socket.timeout and asyncio.TimeoutError
        exception_types=(TimeoutError, httpx.TimeoutException, RedisTimeoutError),
        codes=frozenset({504}),
        patterns=("i/o timeout", "read timed out", "write timed out"),
    ),
    RetryableSignature(
        name="dns_temporary_failure",
        codes=frozenset({socket.EAI_AGAIN}),
        patterns=("temporary failure in name resolution",),
    ),
    RetryableSignature(
        name="broken_pipe",
        exception_types=(BrokenPipeError,),
        codes=frozenset({errno.EPIPE}),
        patterns=("broken pipe",),
    ),
    RetryableSignature(
        name="deadline_exceeded",
        patterns=("deadline exceeded",),
    ),
    RetryableSignature(
        name="too_many_connections",
        codes=frozenset({"53300"}),
        patterns=(
            "too many connections",
            "too many clients already",
            "remaining connection slots are reserved",
        ),
    ),
    RetryableSignature(
        name="database_starting_up",
        codes=frozenset({"57P03"}),
        patterns=("the database system is starting up",),
    ),
    RetryableSignature(
        name="database_shutting_down",
        codes=frozenset({"57P01", "57P02"}),
        patterns=(
            "the database system is shutting down",
            "server is shutting down",
            "terminating connection due to administrator command",
        ),
    ),
    RetryableSignature(
        name="unexpected_eof",
        exception_types=(httpx.RemoteProtocolError,),
        patterns=("unexpected eof", "server disconnected without sending a response"),
    ),
    RetryableSignature(
        name="service_unavailable",
        codes=frozenset({503}),
        patterns=("503 service unavailable",),
    ),
    RetryableSignature(
        name="rate_limited",
        codes=frozenset({429}),
        patterns=("429 too many requests", "rate limit exceeded"),
    ),
)

# Never retried, even when a signature would match (e.g. redis AuthenticationError
# subclasses redis ConnectionError).
_NEVER_RETRYABLE: tuple[type[BaseException], ...] = (ResilienceError, RedisAuthenticationError)


def _error_codes(error: BaseException) -> set:
    """Collect errno / HTTP status / SQLSTATE codes carried by an exception."""
    codes: set = set()

    for attr in ("errno", "status_code", "sqlstate", "pgcode"):
        value = getattr(error, attr, None)
        if value is not None:
            codes.add(value)

    response = getattr(error, "response", None)
    status_code = getattr(response, "status_code", None)
    if status_code is not None:
        codes.add(status_code)

    return codes


def _cause_chain(error: BaseException) -> Iterator[BaseException]:
    """Yield the error and every exception it was explicitly raised `from`."""
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def classify(error: BaseException) -> Optional[str]:
    """
    Return the name of the matching retryable signature, or None if permanent.

    Args:
        error: Exception raised by an attempt

    Returns:
        Signature name (e.g. "connection_reset") or None
    """
    # Cancellation and interpreter exits are never classified
    if not isinstance(error, Exception):
        return None

    for current in _cause_chain(error):
        if isinstance(current, _NEVER_RETRYABLE):
            return None
        for signature in RETRYABLE_SIGNATURES:
            if signature.matches(current):
                return signature.name

    return None


def is_retryable(error: BaseException) -> bool:
    """True if the error is a recognised transient failure."""
    return classify(error) is not None
