"""Parsing of generic (non-GitHub) webhook deliveries."""

import json
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from hookboard.shared.models import GenericWebhookEvent, WebhookStatus

UNKNOWN_EVENT_TYPE = "unknown"
TEST_EVENT_TYPE = "test.event"

# Payload keys consulted, in order, for the event type
EVENT_TYPE_KEYS: tuple[str, ...] = ("type", "event_type", "event")


def parse_body(body: bytes) -> Any:
    """Decode a JSON body, wrapping anything undecodable as ``{"raw": text}``.

    Example:
        >>> parse_body(b'{"type": "order.created"}')
        {'type': 'order.created'}
        >>> parse_body(b"not json")
        {'raw': 'not json'}
    """
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"raw": body.decode("utf-8", errors="replace")}


def resolve_event_type(payload: Any) -> str:
    """Pick the event type from the first truthy type-like key.

    Non-object payloads (arrays, scalars) have no type and resolve to
    ``"unknown"``.
    """
    if isinstance(payload, dict):
        for key in EVENT_TYPE_KEYS:
            value = payload.get(key)
            if value:
                return str(value)
    return UNKNOWN_EVENT_TYPE


def build_generic_event(payload: Any, headers: Mapping[str, str]) -> GenericWebhookEvent:
    """Wrap a parsed delivery as a GenericWebhookEvent ready to store."""
    return GenericWebhookEvent(
        id=str(uuid.uuid4()),
        event_type=resolve_event_type(payload),
        payload=payload,
        headers=dict(headers),
        status=WebhookStatus.SUCCESS,
        created_at=datetime.now(UTC),
    )


def build_test_event(body: Mapping[str, Any], headers: Mapping[str, str]) -> GenericWebhookEvent:
    """Synthesize a ``test.event`` from a request object.

    The request fields are kept and tagged with ``test``, ``eventId`` and
    ``timestamp``. The event is stored as already processed.
    """
    event_id = str(uuid.uuid4())
    now = datetime.now(UTC)
    payload = {
        **body,
        "test": True,
        "eventId": event_id,
        "timestamp": now.isoformat(),
    }
    return GenericWebhookEvent(
        id=event_id,
        event_type=TEST_EVENT_TYPE,
        payload=payload,
        headers=dict(headers),
        status=WebhookStatus.SUCCESS,
        created_at=now,
        processed_at=now,
    )
