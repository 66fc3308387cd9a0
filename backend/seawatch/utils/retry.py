"""Shared delivery retry utility with bounded backoff.

Retries only failures flagged as transient (``DeliveryFailure.retryable``).
Never retries non-retryable failures such as client errors (401, 403, 404,
422) from a webhook, which indicate auth/config problems.

Usage:
    from seawatch.utils.retry import call_with_backoff

    attempts = call_with_backoff(sink.deliver, event, delays=[1, 2])
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable

from seawatch.errors import DeliveryFailure

logger = logging.getLogger(__name__)

# HTTP status codes safe to retry (transient server issues, rate limits)
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# Default backoff delays in seconds: 3 attempts in total
DEFAULT_DELAYS: list[float] = [1.0, 2.0]


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


def call_with_backoff(
    fn: Callable[..., Any],
    *args: Any,
    delays: list[float] | None = None,
    **kwargs: Any,
) -> int:
    """Call ``fn`` until it succeeds or the retry budget runs out.

    Args:
        fn: Callable that raises ``DeliveryFailure`` on failure.
        *args: Positional args forwarded to fn.
        delays: Backoff delays in seconds between attempts; ``len(delays) + 1``
            attempts in total. Default [1, 2].
        **kwargs: Keyword args forwarded to fn.

    Returns:
        Number of attempts made (1 on first-try success).

    Raises:
        DeliveryFailure: non-retryable failure, or the last failure once all
            attempts are exhausted. ``exc.attempts`` carries the attempt count.
    """
    if delays is None:
        delays = DEFAULT_DELAYS

    for attempt in range(1 + len(delays)):
        try:
            fn(*args, **kwargs)
            return attempt + 1
        except DeliveryFailure as exc:
            exc.attempts = attempt + 1
            if not exc.retryable or attempt >= len(delays):
                raise
            delay = delays[attempt]
            logger.warning(
                "%s via %s — retrying in %.1fs (attempt %d/%d)",
                exc.message,
                _name_for_log(fn),
                delay,
                attempt + 1,
                len(delays) + 1,
            )
            time.sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("call_with_backoff exhausted retries without result")


def _name_for_log(fn: Callable[..., Any]) -> str:
    """Loggable name for the callable being retried."""
    owner = getattr(fn, "__self__", None)
    if owner is not None:
        return getattr(owner, "name", type(owner).__name__)
    return getattr(fn, "__name__", repr(fn))[:120]
