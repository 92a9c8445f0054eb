"""Data models for Hookboard."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator


def _ensure_utc(v: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from TIMESTAMP columns."""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=UTC)
    return v


def _decode_json_field(value: Any) -> Any:
    """Decode a JSON sub-document that the driver returned as text."""
    if isinstance(value, str):
        return json.loads(value)
    return value


class GitHubAction(StrEnum):
    """Canonical action recorded for a GitHub delivery."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"
    MERGE = "merge"


class WebhookStatus(StrEnum):
    """Processing status of a generic webhook event."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class GitHubEvent(BaseModel):
    """Normalized GitHub repository event.

    Attributes:
        id: Unique identifier generated at ingestion
        action: push, pull_request or merge
        author: Login or display name of the actor ("Unknown" when absent)
        from_branch: Source branch, None for push events
        to_branch: Target branch
        timestamp: Ingestion time
        request_id: Upstream delivery id, kept for traceability
    """

    id: str = Field(..., description="Unique event id")
    action: GitHubAction = Field(..., description="Normalized action")
    author: str = Field(..., description="Actor login or name")
    from_branch: str | None = Field(None, description="Source branch")
    to_branch: str = Field(..., description="Target branch")
    timestamp: datetime = Field(..., description="Ingestion time")
    request_id: str = Field("", description="Upstream delivery id")

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone_aware(cls, v: datetime) -> datetime:
        """Ensure timestamp is timezone-aware, adding UTC if naive."""
        return _ensure_utc(v)  # type: ignore[return-value]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "GitHubEvent":
        """Build an event from a ``github_events`` row."""
        return cls.model_validate(dict(row))


class GenericWebhookEvent(BaseModel):
    """Arbitrary webhook delivery stored as-is.

    ``retry_count`` mirrors the table column; nothing increments it.
    """

    id: str
    event_type: str
    payload: Any
    headers: dict[str, str] = Field(default_factory=dict)
    status: WebhookStatus = WebhookStatus.PENDING
    created_at: datetime
    processed_at: datetime | None = None
    error_message: str | None = None
    retry_count: int = 0

    @field_validator("created_at", "processed_at")
    @classmethod
    def ensure_timezone_aware(cls, v: datetime | None) -> datetime | None:
        """Ensure timestamps are timezone-aware, adding UTC if naive."""
        return _ensure_utc(v)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "GenericWebhookEvent":
        """Build an event from a ``webhook_events`` row.

        asyncpg hands JSONB columns back as text unless a codec is
        registered, so payload and headers are decoded here when needed.
        """
        data = dict(row)
        data["payload"] = _decode_json_field(data.get("payload"))
        data["headers"] = _decode_json_field(data.get("headers")) or {}
        if data.get("retry_count") is None:
            data["retry_count"] = 0
        return cls.model_validate(data)


EventT = TypeVar("EventT", GitHubEvent, GenericWebhookEvent)


class EventPage(BaseModel, Generic[EventT]):
    """Result of a newest-first event query.

    Attributes:
        events: Stored events, newest first
        needs_init: True when the backing table does not exist yet
    """

    events: list[EventT] = Field(default_factory=list)
    needs_init: bool = False

    def serialized_events(self) -> list[dict[str, Any]]:
        """Return events as JSON-ready dictionaries."""
        return [event.model_dump(mode="json") for event in self.events]
