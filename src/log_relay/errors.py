"""
Custom exceptions for the log relay.

Only terminal outcomes cross component boundaries; transient push errors are
absorbed inside the delivery client and never surface here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import LogEvent


class LogRelayError(Exception):
    """Base error for the log relay."""

    pass


class AdmissionRejected(LogRelayError):
    """Dispatcher queue is at capacity; the event was not accepted."""

    def __init__(self, capacity: int):
        super().__init__(f"queue full (capacity={capacity}), log rejected")
        self.capacity = capacity


class DeliveryExhausted(LogRelayError):
    """All push attempts to the sink failed for one event."""

    def __init__(self, event: "LogEvent", attempts: int):
        super().__init__(f"delivery to sink failed after {attempts} attempt(s)")
        self.event = event
        self.attempts = attempts


class SpoolWriteError(LogRelayError):
    """Failure spool could not record an event; the event is lost."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"failed to append to spool {path}: {cause}")
        self.path = path
        self.cause = cause


class SpoolParseError(LogRelayError):
    """A spool line could not be decoded into a LogEvent."""

    def __init__(self, line: str, cause: Exception):
        super().__init__(f"unparseable spool line: {cause}")
        self.line = line
        self.cause = cause


class SubmissionForwardError(LogRelayError):
    """Forwarding a session bundle failed or was reported unsuccessful."""

    pass
