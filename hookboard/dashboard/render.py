"""Plain-text rendering of dashboard state."""

from collections import Counter
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hookboard.dashboard.poller import DashboardState

NEEDS_INIT_NOTICE = "Database not initialized. Run `hookboard init-db` or POST /api/init."
EMPTY_NOTICE = "No events yet. Waiting for webhook deliveries..."


def format_timestamp(value: str | None) -> str:
    """Format an ISO-8601 timestamp as e.g. ``October 19, 2026 at 3:04 PM UTC``.

    Unparseable values are returned unchanged.
    """
    if not value:
        return "unknown time"
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    ts = ts.astimezone(UTC)

    hour = ts.hour % 12 or 12
    meridiem = "AM" if ts.hour < 12 else "PM"
    return f"{ts:%B} {ts.day}, {ts.year} at {hour}:{ts.minute:02d} {meridiem} UTC"


def format_github_event(event: dict[str, Any]) -> str:
    """Describe one GitHub event in a sentence.

    Example:
        >>> format_github_event({
        ...     "action": "push", "author": "alice", "to_branch": "main",
        ...     "timestamp": "2026-10-19T15:04:00Z",
        ... })
        '"alice" pushed to "main" on October 19, 2026 at 3:04 PM UTC'
    """
    author = event.get("author") or "Unknown"
    action = event.get("action")
    from_branch = event.get("from_branch")
    to_branch = event.get("to_branch")
    when = format_timestamp(event.get("timestamp"))

    if action == "push":
        return f'"{author}" pushed to "{to_branch}" on {when}'
    if action == "pull_request":
        return (
            f'"{author}" submitted a pull request from "{from_branch}" '
            f'to "{to_branch}" on {when}'
        )
    if action == "merge":
        return f'"{author}" merged branch "{from_branch}" to "{to_branch}" on {when}'
    return f'"{author}" performed {action} on {when}'


def format_webhook_event(event: dict[str, Any]) -> str:
    """Describe one generic webhook event on a single line."""
    when = format_timestamp(event.get("created_at"))
    return f"[{event.get('status', 'pending')}] {event.get('event_type')} {event.get('id')} on {when}"


def _banners(state: "DashboardState") -> list[str]:
    lines: list[str] = []
    if state.error:
        lines.append(f"! {state.error}")
    if state.needs_init:
        lines.append(f"! {NEEDS_INIT_NOTICE}")
    return lines


def _footer(state: "DashboardState") -> str:
    if state.last_updated is None:
        return "Loading..."
    return f"Last updated {state.last_updated.astimezone(UTC):%H:%M:%S} UTC"


def render_github_dashboard(state: "DashboardState") -> str:
    """Render counts, banners and the event feed of the GitHub view."""
    actions = Counter(event.get("action") for event in state.events)
    lines = [
        "GitHub Repository Activity",
        (
            f"Total: {len(state.events)}  Pushes: {actions['push']}  "
            f"Pull requests: {actions['pull_request']}  Merges: {actions['merge']}"
        ),
        *_banners(state),
        "",
    ]
    if state.events:
        lines.extend(format_github_event(event) for event in state.events)
    elif not state.loading and not state.needs_init:
        lines.append(EMPTY_NOTICE)
    lines.extend(["", _footer(state)])
    return "\n".join(lines)


def render_webhook_dashboard(state: "DashboardState") -> str:
    """Render counts, banners and the event feed of the generic view."""
    statuses = Counter(event.get("status") for event in state.events)
    lines = [
        "Webhook Events",
        (
            f"Total: {len(state.events)}  Success: {statuses['success']}  "
            f"Failed: {statuses['failed']}  Pending: {statuses['pending']}"
        ),
        *_banners(state),
        "",
    ]
    if state.events:
        lines.extend(format_webhook_event(event) for event in state.events)
    elif not state.loading and not state.needs_init:
        lines.append(EMPTY_NOTICE)
    lines.extend(["", _footer(state)])
    return "\n".join(lines)
