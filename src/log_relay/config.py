from functools import lru_cache
from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Process configuration; every field can be set as ``LOG_RELAY_<NAME>``."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_RELAY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    sink_url: str = "http://localhost:3100/loki/api/v1/push"
    queue_capacity: int = Field(default=10_000, gt=0)
    worker_count: int = Field(default=4, ge=1)
    max_retries: int = Field(default=3, ge=1)
    base_delay_ms: int = Field(default=500, ge=0)
    failure_spool_path: str = "failed_logs.ndjson"

    sink_timeout_sec: float = Field(default=10.0, gt=0)
    worker_poll_sec: float = Field(default=0.25, gt=0)
    session_tags: Annotated[frozenset[str], NoDecode] = frozenset({"submission"})
    end_tag: str = "submission_end"
    forward_timeout_sec: float = Field(default=10.0, gt=0)
    shutdown_timeout_sec: float = Field(default=30.0, gt=0)
    quarantine_path: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("session_tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        # allow LOG_RELAY_SESSION_TAGS=submission,submission_start
        if isinstance(v, str):
            v = v.split(",")
        return frozenset(t.strip().lower() for t in v if t and t.strip())

    @field_validator("end_tag")
    @classmethod
    def _lower_end_tag(cls, v):
        return v.strip().lower()


@lru_cache()
def get_settings() -> RelaySettings:
    return RelaySettings()
