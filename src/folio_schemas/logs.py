"""JSONL log entry schema for publish events."""

from __future__ import annotations

from pydantic import Field

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import (
    EventName,
    JobId,
    JsonValue,
    LogLevel,
    PublishStep,
    Timestamp,
)


class LogEntry(BaseSchema):
    """Single log line in JSONL format."""

    timestamp: Timestamp = Field(
        ..., description="ISO-8601 timestamp for the log entry"
    )
    level: LogLevel = Field(..., description="Log level")
    event: EventName = Field(..., description="Event name")
    job_id: JobId | None = Field(None, description="Publish job identifier")
    step: PublishStep | None = Field(None, description="Publish step if applicable")
    message: str = Field(..., min_length=1, description="Log message")
    data: dict[str, JsonValue] | None = Field(None, description="Structured event data")
