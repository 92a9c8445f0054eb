"""Tests for the dashboard polling loop."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from hookboard.dashboard.poller import (
    NETWORK_ERROR_MESSAGE,
    WEBHOOK_EVENTS_PATH,
    DashboardPoller,
    DashboardState,
)


def make_response(status: int, data: Any) -> MagicMock:
    """Create an async context manager yielding a mock response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=data)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=None)
    return context


def make_session(status: int = 200, data: Any = None) -> MagicMock:
    """Create a mock aiohttp session whose get() always answers the same."""
    session = MagicMock()
    session.close = AsyncMock()
    session.get = MagicMock(
        side_effect=lambda url: make_response(status, data or {"events": [], "needsInit": False})
    )
    return session


@pytest.mark.asyncio
async def test_fetch_events_updates_state() -> None:
    """Test that a successful fetch replaces the events."""
    events = [{"id": "evt-1", "action": "push"}]
    session = make_session(data={"success": True, "events": events, "needsInit": False})
    poller = DashboardPoller("http://localhost:8000/", session=session)

    await poller.fetch_events()

    session.get.assert_called_once_with("http://localhost:8000/api/github/events")
    assert poller.state.events == events
    assert poller.state.error is None
    assert poller.state.loading is False
    assert poller.state.last_updated is not None


@pytest.mark.asyncio
async def test_fetch_events_reports_needs_init() -> None:
    """Test that the needsInit flag reaches the state."""
    session = make_session(data={"success": True, "events": [], "needsInit": True})
    poller = DashboardPoller("http://localhost:8000", path=WEBHOOK_EVENTS_PATH, session=session)

    await poller.fetch_events()

    assert poller.state.needs_init is True
    session.get.assert_called_once_with("http://localhost:8000/api/webhooks/events")


@pytest.mark.asyncio
async def test_server_error_becomes_banner() -> None:
    """Test that a 500 keeps old events and shows the server message."""
    session = make_session(status=500, data={"success": False, "message": "connection timed out"})
    poller = DashboardPoller("http://localhost:8000", session=session)
    poller.state.events = [{"id": "old"}]

    await poller.fetch_events()

    assert poller.state.error == "connection timed out"
    assert poller.state.events == [{"id": "old"}]


@pytest.mark.asyncio
async def test_network_error_becomes_banner() -> None:
    """Test that connection failures never raise."""
    session = make_session()
    session.get.side_effect = aiohttp.ClientConnectionError("refused")
    rendered: list[DashboardState] = []
    poller = DashboardPoller(
        "http://localhost:8000", session=session, renderer=rendered.append
    )

    await poller.fetch_events()

    assert poller.state.error == NETWORK_ERROR_MESSAGE
    assert rendered == [poller.state]


@pytest.mark.asyncio
async def test_error_is_cleared_by_next_success() -> None:
    """Test that a successful fetch removes a stale banner."""
    poller = DashboardPoller("http://localhost:8000", session=make_session())
    poller.state.error = NETWORK_ERROR_MESSAGE

    await poller.fetch_events()

    assert poller.state.error is None


@pytest.mark.asyncio
async def test_renderer_failure_is_contained() -> None:
    """Test that a broken renderer does not break fetching."""

    def broken(state: DashboardState) -> None:
        raise RuntimeError("render failed")

    poller = DashboardPoller("http://localhost:8000", session=make_session(), renderer=broken)

    await poller.fetch_events()

    assert poller.state.loading is False


@pytest.mark.asyncio
async def test_start_fetches_immediately_and_stop_clears_timer() -> None:
    """Test the mount/unmount lifecycle."""
    fetched = asyncio.Event()
    session = make_session()
    poller = DashboardPoller(
        "http://localhost:8000",
        interval_seconds=3600,
        session=session,
        renderer=lambda state: fetched.set(),
    )

    await poller.start()
    await asyncio.wait_for(fetched.wait(), timeout=1)
    await poller.stop()

    assert session.get.call_count == 1
    assert poller.task is not None and poller.task.done()
    # Injected sessions belong to the caller
    session.close.assert_not_called()


@pytest.mark.asyncio
async def test_timer_refetches_on_interval() -> None:
    """Test that the poller keeps fetching on its cadence."""
    session = make_session()
    poller = DashboardPoller("http://localhost:8000", interval_seconds=0.01, session=session)

    await poller.start()
    await asyncio.sleep(0.1)
    await poller.stop()

    assert session.get.call_count >= 3


@pytest.mark.asyncio
async def test_slow_fetch_overlaps_next_tick() -> None:
    """Test that a slow fetch does not hold back the next tick."""
    release = asyncio.Event()
    calls = 0

    async def slow_json(content_type: str | None = None) -> dict[str, Any]:
        await release.wait()
        return {"events": [], "needsInit": False}

    def get(url: str) -> MagicMock:
        nonlocal calls
        calls += 1
        context = make_response(200, None)
        if calls == 1:
            context.__aenter__.return_value.json = slow_json
        return context

    session = make_session()
    session.get.side_effect = get
    poller = DashboardPoller("http://localhost:8000", interval_seconds=0.01, session=session)

    await poller.start()
    await asyncio.sleep(0.05)

    # First fetch is still blocked while later ticks went ahead
    assert calls >= 2
    assert poller._in_flight

    release.set()
    await poller.stop()

    assert not poller._in_flight


@pytest.mark.asyncio
async def test_refresh_is_out_of_band() -> None:
    """Test that a manual refresh fetches without the timer."""
    session = make_session()
    poller = DashboardPoller("http://localhost:8000", session=session)

    await poller.refresh()

    assert session.get.call_count == 1
    assert poller.state.refreshing is False
    assert poller.running is False


@pytest.mark.asyncio
async def test_owned_session_is_closed_on_stop(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a session created by start() is closed by stop()."""
    created = make_session()
    monkeypatch.setattr(aiohttp, "ClientSession", MagicMock(return_value=created))
    poller = DashboardPoller("http://localhost:8000", interval_seconds=3600)

    await poller.start()
    await poller.stop()

    created.close.assert_awaited_once()
    assert poller.session is None
