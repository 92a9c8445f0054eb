"""Hookboard entry point.

Commands:
    serve    run the webhook server and reader API (default)
    watch    poll the reader API and print the dashboard
    init-db  create the event tables and exit
"""

import argparse
import asyncio
import signal
import sys

from hookboard.core.config import Settings, get_settings
from hookboard.core.database import DatabaseClient
from hookboard.core.logging import get_logger, setup_logging
from hookboard.dashboard.poller import GITHUB_EVENTS_PATH, WEBHOOK_EVENTS_PATH, DashboardPoller
from hookboard.dashboard.render import render_github_dashboard, render_webhook_dashboard
from hookboard.server.app import WebhookServer
from hookboard.shared.exceptions import ConfigError, DatabaseError

logger = get_logger(__name__)

# Module-level variables for lifecycle management
database_client: DatabaseClient | None = None
webhook_server: WebhookServer | None = None


async def startup(settings: Settings) -> None:
    """Open the database pool and start the HTTP server."""
    global database_client, webhook_server

    logger.info(
        "application.lifecycle.started",
        version=settings.app_version,
        environment=settings.environment,
    )
    logger.info(
        "application.config.loaded",
        log_level=settings.log_level,
        database_configured=settings.database_configured,
        webhook_secret_configured=settings.webhook_secret_configured,
    )

    database_client = DatabaseClient(settings.database_url)
    await database_client.__aenter__()

    webhook_server = WebhookServer(settings, database_client)
    await webhook_server.start()

    logger.info("application.initialization.completed")


async def shutdown() -> None:
    """Stop the server and close the database pool."""
    global database_client, webhook_server

    logger.info("application.shutdown.started")

    if webhook_server:
        await webhook_server.stop()
        webhook_server = None

    if database_client:
        await database_client.__aexit__(None, None, None)
        database_client = None

    logger.info("application.shutdown.completed")


async def serve(settings: Settings) -> None:
    """Run the server until SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):

        def make_handler(s: int = sig) -> None:
            logger.info("application.signal.received", signal=signal.Signals(s).name)
            stop_event.set()

        loop.add_signal_handler(sig, make_handler)

    try:
        await startup(settings)
        await stop_event.wait()
    except Exception as e:
        logger.error("application.error.fatal", error=str(e), exc_info=True)
        raise
    finally:
        await shutdown()


async def watch(settings: Settings, view: str) -> None:
    """Poll the reader API and reprint the chosen view after each fetch."""
    if view == "github":
        path, interval, render = (
            GITHUB_EVENTS_PATH,
            settings.github_refresh_seconds,
            render_github_dashboard,
        )
    else:
        path, interval, render = (
            WEBHOOK_EVENTS_PATH,
            settings.webhook_refresh_seconds,
            render_webhook_dashboard,
        )

    poller = DashboardPoller(
        settings.dashboard_url,
        path=path,
        interval_seconds=interval,
        renderer=lambda state: print(render(state) + "\n", flush=True),
    )
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await poller.start()
    try:
        await stop_event.wait()
    finally:
        await poller.stop()


async def init_db(settings: Settings) -> None:
    """Create the event tables once and exit."""
    if not settings.database_configured:
        raise ConfigError("DATABASE_URL is not set")
    async with DatabaseClient(settings.database_url) as db:
        await db.ensure_schema()
    logger.info("application.init_db.completed")


def build_parser() -> argparse.ArgumentParser:
    """Command line parser for the hookboard console script."""
    parser = argparse.ArgumentParser(prog="hookboard", description=__doc__.splitlines()[0])
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="run the webhook server")
    watch_parser = subparsers.add_parser("watch", help="print the dashboard periodically")
    watch_parser.add_argument("--view", choices=["github", "webhooks"], default="github")
    subparsers.add_parser("init-db", help="create the event tables")
    return parser


def run(argv: list[str] | None = None) -> None:
    """Entry point for the hookboard console script."""
    args = build_parser().parse_args(argv)
    command = args.command or "serve"

    try:
        # Load settings first to validate configuration
        settings = get_settings()
        setup_logging(log_level=settings.log_level)

        if command == "watch":
            asyncio.run(watch(settings, args.view))
        elif command == "init-db":
            asyncio.run(init_db(settings))
        else:
            asyncio.run(serve(settings))

    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except DatabaseError as e:
        print(f"Database error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
