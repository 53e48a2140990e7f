"""
Pydantic data models for the log relay.

Wire names are camelCase; robots built against the older API send
``robotId`` / ``accountLessonId`` and are accepted as well.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

SUBMISSION_TAG = "submission"
SUBMISSION_START_TAG = "submission_start"
SUBMISSION_END_TAG = "submission_end"


def normalize_tag(tag: Optional[str]) -> str:
    """Lower-cased, stripped tag; empty string for no tag."""
    return (tag or "").strip().lower()


class LogEvent(BaseModel):
    """One telemetry record emitted by a robot."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    producer_id: str = Field(
        serialization_alias="producerId",
        validation_alias=AliasChoices("producerId", "robotId", "producer_id"),
        min_length=1,
    )
    level: str = "INFO"  # INFO, WARN, ERROR, ... (free-form)
    tag: Optional[str] = None
    message: str = ""
    timestamp: Optional[int] = None  # epoch milliseconds
    session_id: Optional[str] = Field(
        default=None,
        serialization_alias="sessionId",
        validation_alias=AliasChoices("sessionId", "accountLessonId", "session_id"),
    )
    type: Optional[str] = None  # "action", "speech", "emotion", ...
    code: Optional[str] = None  # "012", "027", ...

    @field_validator("session_id", mode="before")
    @classmethod
    def _stringify_session(cls, v):
        # UUIDs and ints are opaque ids on the wire
        if v is None:
            return v
        return str(v)

    @field_validator("timestamp")
    @classmethod
    def _non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("timestamp must be epoch milliseconds >= 0")
        return v

    @model_validator(mode="after")
    def _end_needs_session(self):
        if self.is_session_end and not self.session_id:
            raise ValueError("sessionId is required when tag is submission_end")
        return self

    @property
    def normalized_tag(self) -> str:
        return normalize_tag(self.tag)

    @property
    def is_session_end(self) -> bool:
        return self.normalized_tag == SUBMISSION_END_TAG

    def stamped(self, ingest_ms: int) -> "LogEvent":
        """Return this event with ingestion time filled in when the producer sent none."""
        if self.timestamp is not None:
            return self
        return self.model_copy(update={"timestamp": ingest_ms})

    def to_json_line(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json_line(cls, line: str) -> "LogEvent":
        return cls.model_validate_json(line)
