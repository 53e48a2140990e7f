"""Log relay coordinator

Producer -> queue -> worker -> sink pipeline with:
- BoundedQueue with non-blocking admission (backpressure as a bool)
- DeliveryClient with linear-backoff retries, interruptible on shutdown
- WorkerPool of asyncio workers sharing one stop signal
- FailureSpool (file-based NDJSON) and ReplayService
- SessionAggregator forwarding submission bundles
- LogPipeline orchestration & health
"""

from .types import SubmissionForwarder, SubmitResult
from .queue import BoundedQueue
from .delivery import DeliveryClient, build_sink_payload, backoff_ms
from .spool import FailureSpool, SpoolSnapshot
from .worker import LogWorker
from .pool import WorkerPool
from .replay import ReplayService, ReplayReport
from .session import SessionAggregator, SessionOutcome, SessionState, serialize_bundle
from .pipeline import LogPipeline, PipelineHealth

__all__ = [
    # types
    "SubmissionForwarder",
    "SubmitResult",
    "SpoolSnapshot",
    "ReplayReport",
    "SessionOutcome",
    "SessionState",
    "PipelineHealth",
    # delivery
    "DeliveryClient",
    "build_sink_payload",
    "backoff_ms",
    # runtime
    "BoundedQueue",
    "LogWorker",
    "WorkerPool",
    "LogPipeline",
    # durability
    "FailureSpool",
    "ReplayService",
    # sessions
    "SessionAggregator",
    "serialize_bundle",
]
