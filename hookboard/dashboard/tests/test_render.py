"""Tests for dashboard text rendering."""

from datetime import UTC, datetime

import pytest

from hookboard.dashboard.poller import DashboardState
from hookboard.dashboard.render import (
    EMPTY_NOTICE,
    NEEDS_INIT_NOTICE,
    format_github_event,
    format_timestamp,
    format_webhook_event,
    render_github_dashboard,
    render_webhook_dashboard,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2026-10-19T15:04:00Z", "October 19, 2026 at 3:04 PM UTC"),
        ("2026-10-19T00:30:00+00:00", "October 19, 2026 at 12:30 AM UTC"),
        ("2026-10-19T12:00:00", "October 19, 2026 at 12:00 PM UTC"),
        ("2026-10-19T17:04:00+02:00", "October 19, 2026 at 3:04 PM UTC"),
        ("yesterday", "yesterday"),
        (None, "unknown time"),
    ],
)
def test_format_timestamp(value: str | None, expected: str) -> None:
    """Test the long-form timestamp with UTC conversion and fallbacks."""
    assert format_timestamp(value) == expected


def test_format_push() -> None:
    event = {"action": "push", "author": "alice", "to_branch": "main", "timestamp": None}

    assert format_github_event(event) == '"alice" pushed to "main" on unknown time'


def test_format_pull_request() -> None:
    event = {
        "action": "pull_request",
        "author": "carol",
        "from_branch": "feature-x",
        "to_branch": "main",
        "timestamp": "2026-10-19T15:04:00Z",
    }

    assert format_github_event(event) == (
        '"carol" submitted a pull request from "feature-x" to "main" '
        "on October 19, 2026 at 3:04 PM UTC"
    )


def test_format_merge() -> None:
    event = {
        "action": "merge",
        "author": "bob",
        "from_branch": "feature-x",
        "to_branch": "main",
        "timestamp": "2026-10-19T15:04:00Z",
    }

    assert format_github_event(event).startswith('"bob" merged branch "feature-x" to "main"')


def test_format_unrecognized_action() -> None:
    """Test the generic sentence for actions the view does not know."""
    event = {"action": "release", "author": "", "timestamp": "bad"}

    assert format_github_event(event) == '"Unknown" performed release on bad'


def test_format_webhook_event() -> None:
    event = {
        "id": "evt-1",
        "event_type": "order.created",
        "status": "success",
        "created_at": "2026-10-19T15:04:00Z",
    }

    assert format_webhook_event(event) == (
        "[success] order.created evt-1 on October 19, 2026 at 3:04 PM UTC"
    )


def test_github_dashboard_counts() -> None:
    """Test the summary line of the GitHub view."""
    state = DashboardState(
        events=[
            {"action": "push", "author": "a", "to_branch": "main"},
            {"action": "push", "author": "b", "to_branch": "dev"},
            {"action": "merge", "author": "c", "from_branch": "x", "to_branch": "main"},
        ],
        loading=False,
        last_updated=datetime(2026, 10, 19, 15, 4, 5, tzinfo=UTC),
    )

    output = render_github_dashboard(state)

    assert output.startswith("GitHub Repository Activity\n")
    assert "Total: 3  Pushes: 2  Pull requests: 0  Merges: 1" in output
    assert output.endswith("Last updated 15:04:05 UTC")
    assert EMPTY_NOTICE not in output


def test_github_dashboard_loading() -> None:
    """Test that nothing but the loading footer shows before the first fetch."""
    output = render_github_dashboard(DashboardState())

    assert output.endswith("Loading...")
    assert EMPTY_NOTICE not in output


def test_github_dashboard_empty() -> None:
    state = DashboardState(loading=False, last_updated=datetime.now(UTC))

    assert EMPTY_NOTICE in render_github_dashboard(state)


def test_needs_init_banner_replaces_empty_notice() -> None:
    state = DashboardState(needs_init=True, loading=False, last_updated=datetime.now(UTC))

    output = render_webhook_dashboard(state)

    assert f"! {NEEDS_INIT_NOTICE}" in output
    assert EMPTY_NOTICE not in output


def test_error_banner_keeps_previous_events() -> None:
    """Test that a failed refresh shows the error above stale events."""
    state = DashboardState(
        events=[{"id": "evt-1", "event_type": "user.created", "status": "failed"}],
        error="Network error while fetching events",
        loading=False,
        last_updated=datetime.now(UTC),
    )

    output = render_webhook_dashboard(state)

    assert "! Network error while fetching events" in output
    assert "Total: 1  Success: 0  Failed: 1  Pending: 0" in output
    assert "[failed] user.created evt-1" in output
