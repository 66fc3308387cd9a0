"""Exception taxonomy for the tracking engine.

HTTP handlers in ``seawatch.main`` map these onto status codes:
InvalidReport → 422, AlertNotFound → 404, InvalidTransition → 409.
"""
from __future__ import annotations


class SeaWatchError(Exception):
    """Base class for engine errors surfaced to callers."""

    code: str = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidReport(SeaWatchError, ValueError):
    """Position report rejected: malformed or out-of-range fields."""

    code = "invalid_report"


class StaleReport(SeaWatchError):
    """Report timestamp precedes the vessel's last applied report."""

    code = "stale_report"


class AlertNotFound(SeaWatchError, LookupError):
    code = "not_found"


class InvalidTransition(SeaWatchError):
    code = "invalid_transition"


class DeliveryFailure(SeaWatchError):
    """A notification sink could not take delivery.

    ``retryable`` is False for failures that will not go away by retrying
    (e.g. a webhook answering 403).
    """

    code = "delivery_failure"

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable
        self.attempts = 0
