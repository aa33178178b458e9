"""
voicerelay/openai_retry.py
===========================
Shared OpenAI API retry decorator — VoiceRelay

Wraps a blocking service call so that transient failures (429 rate-limit,
5xx server errors, connection timeouts) are retried with exponential
back-off. When the server supplies a wait hint (``Retry-After`` /
``retry-after-ms`` response headers) that hint is used instead of the
computed delay, capped at ``MAX_DELAY``.

Usage::

    from voicerelay.openai_retry import with_retry

    @with_retry
    def synthesize(text: str) -> bytes:
        ...

This module does NOT:
    - Create or manage OpenAI client instances
    - Decide what a caller does once retries are exhausted
"""

import functools
import logging
import time
from typing import Any, Callable, TypeVar

logger = logging.getLogger("voicerelay.openai_retry")

F = TypeVar("F", bound=Callable[..., Any])

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_RETRIES: int = 4          # total attempts = MAX_RETRIES + 1 (initial)
BASE_DELAY: float = 1.0       # seconds, first back-off delay
MAX_DELAY: float = 30.0       # cap so we don't wait forever
BACKOFF_FACTOR: float = 2.0   # exponential multiplier

# HTTP status codes worth retrying on
_RETRYABLE_STATUS_CODES: set[int] = {429, 500, 502, 503, 504}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_retryable(exc: Exception) -> bool:
    """Return True if the exception is a transient OpenAI error."""
    exc_type = type(exc).__name__
    if exc_type in ("RateLimitError", "APITimeoutError", "APIConnectionError"):
        return True

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code in _RETRYABLE_STATUS_CODES

    return False


def _retry_after_hint(exc: Exception) -> float | None:
    """Return the server-supplied wait hint in seconds, if any."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None

    raw_ms = headers.get("retry-after-ms")
    if raw_ms:
        try:
            return max(0.0, float(raw_ms) / 1000.0)
        except (TypeError, ValueError):
            pass

    raw = headers.get("retry-after")
    if raw:
        try:
            return max(0.0, float(raw))
        except (TypeError, ValueError):
            return None

    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def with_retry(func: F) -> F:
    """
    Decorate a blocking call with bounded retry on transient failures.

    Retries up to ``MAX_RETRIES`` times. Non-retryable errors are re-raised
    immediately; after the final attempt the last exception is re-raised.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        delay = BASE_DELAY

        for attempt in range(MAX_RETRIES + 1):
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                if not _is_retryable(exc):
                    logger.warning(
                        "%s failed with non-retryable error: %s", func.__name__, exc,
                    )
                    raise

                if attempt >= MAX_RETRIES:
                    logger.error(
                        "%s failed after %d attempts: %s",
                        func.__name__,
                        MAX_RETRIES + 1,
                        exc,
                    )
                    raise

                hint = _retry_after_hint(exc)
                wait = min(hint if hint is not None else delay, MAX_DELAY)
                logger.warning(
                    "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                    func.__name__,
                    attempt + 1,
                    MAX_RETRIES + 1,
                    exc,
                    wait,
                )
                time.sleep(wait)
                delay = min(delay * BACKOFF_FACTOR, MAX_DELAY)

        raise RuntimeError("unreachable")  # pragma: no cover

    return wrapper  # type: ignore[return-value]
