"""
Robot log relay

Accepts robot telemetry, ships it to a Loki-style sink with retries and a
durable failure spool, and forwards submission sessions to the grading service.

Usage:
    from log_relay import LogPipeline, LogEvent, get_settings

    async with LogPipeline(get_settings(), forwarder=forwarder) as pipe:
        accepted = await pipe.enqueue(LogEvent(producer_id="robot-1", message="hi"))
"""

from .config import RelaySettings, get_settings
from .coordinator import LogPipeline, PipelineHealth, SubmissionForwarder, SubmitResult
from .errors import (
    LogRelayError,
    AdmissionRejected,
    DeliveryExhausted,
    SpoolWriteError,
    SpoolParseError,
    SubmissionForwardError,
)
from .models import LogEvent

__version__ = "1.0.0"
__all__ = [
    "LogPipeline",
    "PipelineHealth",
    "SubmissionForwarder",
    "SubmitResult",
    "RelaySettings",
    "get_settings",
    "LogEvent",
    "LogRelayError",
    "AdmissionRejected",
    "DeliveryExhausted",
    "SpoolWriteError",
    "SpoolParseError",
    "SubmissionForwardError",
]
