"""Periodic fetch-and-render loop for the dashboard views."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiohttp

from hookboard.core.logging import get_logger

logger = get_logger(__name__)

GITHUB_EVENTS_PATH = "/api/github/events"
WEBHOOK_EVENTS_PATH = "/api/webhooks/events"

NETWORK_ERROR_MESSAGE = "Network error while fetching events"


@dataclass
class DashboardState:
    """What the view currently shows.

    Attributes:
        events: Events from the last successful fetch, newest first
        needs_init: Server reported that the schema is missing
        error: Banner text from the last failed fetch, if any
        loading: True until the first fetch completes
        refreshing: True while a manual refresh is in flight
        last_updated: Completion time of the last fetch
    """

    events: list[dict[str, Any]] = field(default_factory=list)
    needs_init: bool = False
    error: str | None = None
    loading: bool = True
    refreshing: bool = False
    last_updated: datetime | None = None


Renderer = Callable[[DashboardState], None]


class DashboardPoller:
    """Fetches an events endpoint on a fixed interval and re-renders.

    Every tick starts an independent fetch. A slow fetch may still be
    running when the next tick fires; neither is cancelled.

    Attributes:
        url: Full URL of the events endpoint
        interval_seconds: Seconds between timer ticks
        state: Current view state
    """

    def __init__(
        self,
        base_url: str,
        path: str = GITHUB_EVENTS_PATH,
        interval_seconds: float = 15,
        renderer: Renderer | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the poller.

        Args:
            base_url: Dashboard server root, e.g. http://localhost:8000
            path: Events endpoint path
            interval_seconds: Refresh cadence (15 for the GitHub view)
            renderer: Called with the state after every fetch
            session: Optional shared HTTP session; created on start otherwise
        """
        self.url = base_url.rstrip("/") + path
        self.interval_seconds = interval_seconds
        self.renderer = renderer
        self.session = session
        self._owns_session = session is None
        self.state = DashboardState()
        self.running = False
        self.task: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()

    async def start(self) -> None:
        """Fetch immediately, then keep fetching every interval."""
        if self.running:
            logger.warning("dashboard.poller.already_running", url=self.url)
            return

        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={"Accept": "application/json", "User-Agent": "hookboard-dashboard"}
            )

        self.running = True
        self.task = asyncio.create_task(self._timer_loop())
        logger.info("dashboard.poller.started", url=self.url, interval=self.interval_seconds)

    async def stop(self) -> None:
        """Clear the timer, let in-flight fetches finish and close the session."""
        if not self.running:
            logger.warning("dashboard.poller.not_running", url=self.url)
            return

        self.running = False

        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

        if self._owns_session and self.session:
            await self.session.close()
            self.session = None

        logger.info("dashboard.poller.stopped", url=self.url)

    async def refresh(self) -> None:
        """Fetch once outside the timer cadence."""
        self.state.refreshing = True
        await self.fetch_events()

    def _spawn_fetch(self) -> None:
        task = asyncio.create_task(self.fetch_events())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _timer_loop(self) -> None:
        while self.running:
            self._spawn_fetch()
            await asyncio.sleep(self.interval_seconds)

    async def fetch_events(self) -> None:
        """Fetch the endpoint once and update the state.

        Errors become the state's banner text; they are never raised.
        """
        if self.session is None:
            raise RuntimeError("DashboardPoller.start() must be called before fetching")

        self.state.error = None
        try:
            async with self.session.get(self.url) as response:
                data = await response.json(content_type=None)
                if not isinstance(data, dict):
                    data = {}
                if response.status < 400:
                    self.state.events = list(data.get("events") or [])
                    self.state.needs_init = bool(data.get("needsInit"))
                else:
                    self.state.error = data.get("message") or "Failed to fetch events"
                    logger.warning(
                        "dashboard.fetch.rejected", url=self.url, status=response.status
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error("dashboard.fetch.failed", url=self.url, error=str(e))
            self.state.error = NETWORK_ERROR_MESSAGE
        finally:
            self.state.loading = False
            self.state.refreshing = False
            self.state.last_updated = datetime.now(UTC)

        self._render()

    def _render(self) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer(self.state)
        except Exception as e:
            logger.error("dashboard.render.failed", error=str(e), exc_info=True)
