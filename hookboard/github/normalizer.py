"""Normalization of GitHub webhook deliveries into stored events."""

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from hookboard.core.logging import get_logger
from hookboard.github.payloads import (
    GitHubEventKind,
    PullRequestAction,
    PullRequestPayload,
    PushPayload,
)
from hookboard.shared.exceptions import PayloadError
from hookboard.shared.models import GitHubAction, GitHubEvent

logger = get_logger(__name__)

UNKNOWN = "Unknown"

SUPPORTED_EVENTS: list[str] = [GitHubEventKind.PUSH.value, GitHubEventKind.PULL_REQUEST.value]


def _validate(model: type[BaseModel], payload: Any, event_type: str) -> Any:
    if not isinstance(payload, dict):
        raise PayloadError(f"Expected a JSON object for {event_type} event")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise PayloadError(f"Malformed {event_type} payload: {e}") from e


def _new_event(
    action: GitHubAction,
    author: str | None,
    from_branch: str | None,
    to_branch: str,
    delivery_id: str | None,
) -> GitHubEvent:
    # id and timestamp are assigned here; upstream timestamps are ignored
    return GitHubEvent(
        id=str(uuid.uuid4()),
        action=action,
        author=author or UNKNOWN,
        from_branch=from_branch,
        to_branch=to_branch,
        timestamp=datetime.now(UTC),
        request_id=delivery_id or "",
    )


def normalize_push(payload: PushPayload, delivery_id: str | None) -> GitHubEvent:
    """Build a push event.

    Example:
        >>> payload = PushPayload.model_validate(
        ...     {"ref": "refs/heads/main", "pusher": {"name": "alice"}}
        ... )
        >>> event = normalize_push(payload, "delivery-1")
        >>> (event.action.value, event.author, event.from_branch, event.to_branch)
        ('push', 'alice', None, 'main')
    """
    return _new_event(GitHubAction.PUSH, payload.author, None, payload.branch, delivery_id)


def normalize_pull_request(
    payload: PullRequestPayload, delivery_id: str | None
) -> GitHubEvent | None:
    """Build a pull_request or merge event, or None for actions we ignore.

    opened/synchronize become pull_request events; closed with the merged
    flag set becomes a merge credited to whoever merged it.
    """
    from_branch = payload.head_ref or UNKNOWN
    to_branch = payload.base_ref or UNKNOWN

    if payload.action in (PullRequestAction.OPENED, PullRequestAction.SYNCHRONIZE):
        return _new_event(
            GitHubAction.PULL_REQUEST, payload.opener, from_branch, to_branch, delivery_id
        )

    if payload.action == PullRequestAction.CLOSED and payload.is_merged:
        return _new_event(GitHubAction.MERGE, payload.merger, from_branch, to_branch, delivery_id)

    logger.debug("github.pull_request.ignored", pr_action=payload.action)
    return None


def normalize_github_event(
    event_type: str | None,
    payload: Any,
    delivery_id: str | None,
) -> GitHubEvent | None:
    """Map a GitHub delivery onto a GitHubEvent.

    Args:
        event_type: Value of the X-GitHub-Event header
        payload: Decoded JSON body
        delivery_id: Value of the X-GitHub-Delivery header

    Returns:
        The normalized event, or None when the delivery is not recorded

    Raises:
        PayloadError: If a push or pull_request body has the wrong shape
    """
    kind = GitHubEventKind.from_header(event_type)

    if kind is GitHubEventKind.PUSH:
        return normalize_push(_validate(PushPayload, payload, kind.value), delivery_id)

    if kind is GitHubEventKind.PULL_REQUEST:
        return normalize_pull_request(
            _validate(PullRequestPayload, payload, kind.value), delivery_id
        )

    logger.info("github.event.unhandled", event_type=event_type, delivery_id=delivery_id)
    return None
