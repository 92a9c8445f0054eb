"""HTTP server for webhook ingestion and the dashboard reader API."""

import json
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from aiohttp import web

from hookboard.core.config import Settings
from hookboard.core.database import DatabaseClient
from hookboard.core.logging import get_logger, set_correlation_id
from hookboard.github.normalizer import SUPPORTED_EVENTS, normalize_github_event
from hookboard.server.signature import verify_signature
from hookboard.shared.exceptions import DatabaseError, PayloadError, TableMissingError
from hookboard.shared.models import EventPage, GenericWebhookEvent, GitHubEvent
from hookboard.webhooks.dispatch import process_webhook_event
from hookboard.webhooks.normalizer import build_generic_event, build_test_event, parse_body

logger = get_logger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

NOT_INITIALIZED_MESSAGE = (
    "Database tables not initialized. Please initialize the database first."
)
# Substrings of storage errors that mean the schema is missing
NEEDS_INIT_MARKERS: tuple[str, ...] = ("does not exist", "relation")


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _request_headers(request: web.Request) -> dict[str, str]:
    return {key.lower(): value for key, value in request.headers.items()}


def needs_init_error(error: BaseException) -> bool:
    """Whether a storage error means the schema has not been created."""
    message = str(error)
    return any(marker in message for marker in NEEDS_INIT_MARKERS)


@web.middleware
async def correlation_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Tag every log line of a request with its delivery id."""
    set_correlation_id(request.headers.get("X-GitHub-Delivery"))
    return await handler(request)


class WebhookServer:
    """Async HTTP server for webhook deliveries and event listings.

    Provides endpoints for:
    - POST /api/github/webhook: GitHub push and pull_request deliveries
    - GET /api/github/events: recent GitHub events
    - POST /api/webhooks/generic: arbitrary typed webhook deliveries
    - POST /api/webhooks/test: synthesized test event
    - GET /api/webhooks/events: recent generic events
    - GET /api/health: service and database health
    - POST /api/init: idempotent schema creation

    Attributes:
        settings: Application settings
        db: Event store client, opened by the caller
    """

    def __init__(self, settings: Settings, db: DatabaseClient) -> None:
        """Initialize webhook server.

        Args:
            settings: Application settings (host, port, webhook secret)
            db: Database client used for every request
        """
        self.settings = settings
        self.db = db
        self.app: web.Application | None = None
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None
        self._running = False

    def build_app(self) -> web.Application:
        """Create the aiohttp application with all routes registered."""
        app = web.Application(middlewares=[correlation_middleware])
        app.router.add_get("/api/health", self._handle_health)
        app.router.add_get("/api/init", self._handle_init_usage)
        app.router.add_post("/api/init", self._handle_init)
        app.router.add_get("/api/github/events", self._handle_github_events)
        app.router.add_get("/api/github/webhook", self._handle_github_probe)
        app.router.add_post("/api/github/webhook", self._handle_github_webhook)
        app.router.add_get("/api/webhooks/events", self._handle_webhook_events)
        app.router.add_get("/api/webhooks/generic", self._handle_generic_probe)
        app.router.add_post("/api/webhooks/generic", self._handle_generic_webhook)
        app.router.add_post("/api/webhooks/test", self._handle_test_webhook)
        return app

    async def start(self) -> None:
        """Start serving on the configured host and port."""
        self.app = self.build_app()

        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, self.settings.server_host, self.settings.server_port)
        await self.site.start()

        self._running = True
        logger.info(
            "server.started",
            host=self.settings.server_host,
            port=self.settings.server_port,
            signature_enforced=self.settings.webhook_secret_configured,
        )

    async def stop(self) -> None:
        """Stop the server gracefully."""
        self._running = False

        if self.site:
            await self.site.stop()

        if self.runner:
            await self.runner.cleanup()

        logger.info("server.stopped")

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    # Health and schema

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Report service health and whether the GitHub table exists."""
        environment = {
            "database_url_configured": self.settings.database_configured,
            "webhook_secret_configured": self.settings.webhook_secret_configured,
        }
        try:
            await self.db.ping()
            table_exists = await self.db.table_exists("github_events")
        except Exception as e:
            logger.error("health.check.failed", error=str(e))
            return web.json_response(
                {
                    "status": "unhealthy",
                    "timestamp": _now_iso(),
                    "service": self.settings.service_name,
                    "error": str(e),
                    "database": {"connected": False},
                    "environment": environment,
                },
                status=500,
            )

        return web.json_response(
            {
                "status": "healthy",
                "timestamp": _now_iso(),
                "service": self.settings.service_name,
                "version": self.settings.app_version,
                "database": {"connected": True, "github_events_table": table_exists},
                "environment": environment,
            },
            headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
        )

    async def _handle_init_usage(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "message": "Database initialization endpoint",
                "usage": "Send POST request to initialize database tables",
                "timestamp": _now_iso(),
            }
        )

    async def _handle_init(self, request: web.Request) -> web.Response:
        """Create the event tables; repeated calls are harmless."""
        try:
            await self.db.ensure_schema()
        except Exception as e:
            logger.error("init.failed", error=str(e))
            return web.json_response(
                {
                    "success": False,
                    "error": "Database initialization failed",
                    "message": str(e),
                    "timestamp": _now_iso(),
                },
                status=500,
            )

        logger.info("init.completed")
        return web.json_response(
            {
                "success": True,
                "message": "Webhook database tables initialized successfully",
                "timestamp": _now_iso(),
            }
        )

    # Reader API

    def _events_response(self, page: EventPage[Any]) -> web.Response:
        if page.needs_init:
            return web.json_response(
                {
                    "success": True,
                    "events": [],
                    "message": NOT_INITIALIZED_MESSAGE,
                    "needsInit": True,
                }
            )
        return web.json_response(
            {"success": True, "events": page.serialized_events(), "needsInit": False}
        )

    def _events_failure_response(self, source: str, error: Exception) -> web.Response:
        needs_init = needs_init_error(error)
        logger.error("events.fetch.failed", source=source, error=str(error), needs_init=needs_init)
        return web.json_response(
            {
                "success": False,
                "error": "Failed to fetch events",
                "message": str(error),
                "events": [],
                "needsInit": needs_init,
            },
            status=200 if needs_init else 500,
        )

    async def _handle_github_events(self, request: web.Request) -> web.Response:
        """List the most recent GitHub events, newest first."""
        try:
            page: EventPage[GitHubEvent] = await self.db.fetch_github_events(
                self.settings.events_limit
            )
        except Exception as e:
            return self._events_failure_response("github", e)
        return self._events_response(page)

    async def _handle_webhook_events(self, request: web.Request) -> web.Response:
        """List the most recent generic webhook events, newest first."""
        try:
            page: EventPage[GenericWebhookEvent] = await self.db.fetch_webhook_events(
                self.settings.events_limit
            )
        except Exception as e:
            return self._events_failure_response("generic", e)
        return self._events_response(page)

    # Ingestion

    async def _store(self, store: Callable[[], Awaitable[None]], event_id: str) -> None:
        """Persist an event, logging storage failures instead of raising."""
        try:
            await store()
        except TableMissingError:
            logger.warning("webhook.store.not_initialized", event_id=event_id)
        except DatabaseError as e:
            logger.error("webhook.store.failed", event_id=event_id, error=str(e))

    async def _handle_github_probe(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "message": "GitHub webhook endpoint is active",
                "timestamp": _now_iso(),
                "methods": ["POST"],
                "status": "healthy",
                "supportedEvents": SUPPORTED_EVENTS,
            }
        )

    async def _handle_github_webhook(self, request: web.Request) -> web.Response:
        """Verify, normalize and store one GitHub delivery."""
        try:
            body = await request.read()

            signature = request.headers.get("X-Hub-Signature-256")
            if not verify_signature(body, signature, self.settings.webhook_secret):
                logger.warning("webhook.github.signature_invalid")
                return web.json_response({"error": "Invalid signature"}, status=401)

            try:
                payload = json.loads(body)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise PayloadError(f"Invalid JSON body: {e}") from e

            event_type = request.headers.get("X-GitHub-Event")
            delivery_id = request.headers.get("X-GitHub-Delivery")
            logger.info("webhook.github.received", event_type=event_type, delivery_id=delivery_id)

            event = normalize_github_event(event_type, payload, delivery_id)
            if event is not None:
                await self._store(lambda: self.db.insert_github_event(event), event.id)

            return web.json_response(
                {
                    "success": True,
                    "message": "GitHub webhook processed successfully",
                    "eventType": event_type,
                    "deliveryId": delivery_id,
                }
            )
        except Exception as e:
            logger.error("webhook.github.failed", error=str(e), exc_info=True)
            return web.json_response(
                {"error": "GitHub webhook processing failed", "message": str(e)},
                status=500,
            )

    async def _handle_generic_probe(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "message": "Webhook endpoint is active",
                "timestamp": _now_iso(),
                "methods": ["POST"],
                "status": "healthy",
            }
        )

    async def _handle_generic_webhook(self, request: web.Request) -> web.Response:
        """Store any typed delivery; undecodable bodies are kept as raw text."""
        try:
            body = await request.read()

            signature = request.headers.get("X-Webhook-Signature") or request.headers.get(
                "X-Hub-Signature-256"
            )
            if not verify_signature(body, signature, self.settings.webhook_secret):
                logger.warning("webhook.generic.signature_invalid")
                return web.json_response({"error": "Invalid signature"}, status=401)

            event = build_generic_event(parse_body(body), _request_headers(request))
            await self._store(lambda: self.db.insert_webhook_event(event), event.id)
            logger.info("webhook.generic.processed", event_id=event.id, event_type=event.event_type)

            process_webhook_event(event.event_type, event.payload)

            return web.json_response(
                {
                    "success": True,
                    "eventId": event.id,
                    "eventType": event.event_type,
                    "message": "Webhook processed successfully",
                }
            )
        except Exception as e:
            logger.error("webhook.generic.failed", error=str(e), exc_info=True)
            return web.json_response(
                {"error": "Webhook processing failed", "message": str(e)},
                status=500,
            )

    async def _handle_test_webhook(self, request: web.Request) -> web.Response:
        """Create a test.event row; storage failures are reported as 500."""
        try:
            body = await request.json()
            if not isinstance(body, dict):
                raise PayloadError("Test webhook body must be a JSON object")

            event = build_test_event(body, _request_headers(request))
            await self.db.insert_webhook_event(event)
            logger.info("webhook.test.created", event_id=event.id)

            return web.json_response(
                {
                    "success": True,
                    "eventId": event.id,
                    "eventType": event.event_type,
                    "message": "Test webhook event created successfully",
                }
            )
        except Exception as e:
            logger.error("webhook.test.failed", error=str(e), exc_info=True)
            return web.json_response(
                {"error": "Failed to create test webhook", "message": str(e)},
                status=500,
            )
