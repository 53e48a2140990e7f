from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class SubmitResult:
    """Outcome reported by the submission service."""

    success: bool
    message: str = ""


@runtime_checkable
class SubmissionForwarder(Protocol):
    """External collaborator receiving a completed session bundle.

    Implementations wrap the RPC transport to the grading service. Raising is
    allowed; the aggregator treats any exception like ``success=False``.
    """

    async def submit(self, producer_id: str, session_id: str, logs_json: str) -> SubmitResult:
        ...
