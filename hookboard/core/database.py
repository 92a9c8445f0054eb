"""PostgreSQL event store with connection pooling."""

import asyncio
import json
from datetime import UTC, datetime
from types import TracebackType
from typing import Any, ClassVar

import asyncpg

from hookboard.core.config import get_settings
from hookboard.core.logging import get_logger
from hookboard.shared.exceptions import DatabaseError, DuplicateKeyError, TableMissingError
from hookboard.shared.models import EventPage, GenericWebhookEvent, GitHubEvent

logger = get_logger(__name__)

GITHUB_EVENTS_TABLE = "github_events"
WEBHOOK_EVENTS_TABLE = "webhook_events"

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS github_events (
        id VARCHAR(255) PRIMARY KEY,
        action VARCHAR(50) NOT NULL,
        author VARCHAR(255) NOT NULL,
        from_branch VARCHAR(255),
        to_branch VARCHAR(255) NOT NULL,
        timestamp TIMESTAMP NOT NULL,
        request_id VARCHAR(255) NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_github_events_timestamp ON github_events(timestamp DESC)",
    "CREATE INDEX IF NOT EXISTS idx_github_events_action ON github_events(action)",
    "CREATE INDEX IF NOT EXISTS idx_github_events_author ON github_events(author)",
    """
    CREATE TABLE IF NOT EXISTS webhook_events (
        id VARCHAR(255) PRIMARY KEY,
        event_type VARCHAR(100) NOT NULL,
        payload JSONB NOT NULL,
        headers JSONB,
        status VARCHAR(20) DEFAULT 'pending',
        error_message TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        processed_at TIMESTAMP,
        retry_count INTEGER DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_webhook_events_created_at ON webhook_events(created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_webhook_events_status ON webhook_events(status)",
    "CREATE INDEX IF NOT EXISTS idx_webhook_events_event_type ON webhook_events(event_type)",
)


def _to_naive_utc(dt: datetime | None) -> datetime | None:
    """Convert timezone-aware datetime to naive UTC datetime.

    PostgreSQL TIMESTAMP columns (without timezone) expect naive datetimes.

    Args:
        dt: Datetime object (timezone-aware or naive), or None

    Returns:
        Naive datetime in UTC, or None
    """
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


class DatabaseClient:
    """Async PostgreSQL client with connection pooling.

    Each operation acquires its own connection from the pool and releases
    it when done. The pool itself lives for the lifetime of the server.
    """

    MAX_RETRIES: ClassVar[int] = 3
    RETRY_DELAYS: ClassVar[list[int]] = [2, 4, 8]

    def __init__(self, dsn: str | None = None) -> None:
        self.dsn = dsn
        self.pool: asyncpg.Pool | None = None

    async def __aenter__(self) -> "DatabaseClient":
        """Create connection pool with retry logic.

        Without a configured DSN the client stays disconnected and every
        operation raises DatabaseError, which callers on the ingestion path
        log and swallow.
        """
        dsn = self.dsn or get_settings().database_url
        if not dsn:
            logger.warning("database.not_configured")
            return self

        for attempt in range(self.MAX_RETRIES):
            try:
                self.pool = await asyncpg.create_pool(
                    dsn=dsn,
                    min_size=1,
                    max_size=5,
                    timeout=60.0,
                )
                logger.info("database.pool.created", min_size=1, max_size=5)
                return self
            except (asyncpg.PostgresError, OSError) as e:
                if attempt < self.MAX_RETRIES - 1:
                    logger.warning("database.pool.retry", attempt=attempt + 1, error=str(e))
                    await asyncio.sleep(self.RETRY_DELAYS[attempt])
                else:
                    logger.error("database.pool.failed", error=str(e), exc_info=True)
                    raise DatabaseError(f"Failed to create pool: {e}") from e
        raise DatabaseError("Unreachable")

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("database.pool.closed")

    def _require_pool(self) -> asyncpg.Pool:
        if not self.pool:
            raise DatabaseError("Connection pool not initialized")
        return self.pool

    async def ping(self) -> None:
        """Run a trivial query to prove the database is reachable.

        Raises:
            DatabaseError: If the pool is missing or the query fails
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("database.ping.failed", error=str(e))
            raise DatabaseError(f"Database unreachable: {e}") from e

    async def table_exists(self, table_name: str) -> bool:
        """Check information_schema for a table by name.

        Raises:
            DatabaseError: If the pool is missing or the query fails
        """
        pool = self._require_pool()
        query = """
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_name = $1
            )
        """
        try:
            async with pool.acquire() as conn:
                return bool(await conn.fetchval(query, table_name))
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("database.table_exists.failed", table=table_name, error=str(e))
            raise DatabaseError(f"Failed to check table {table_name}: {e}") from e

    async def ensure_schema(self) -> None:
        """Create event tables and indexes if they are absent.

        Statements use IF NOT EXISTS and run outside a transaction, so two
        concurrent callers both do the work; a catalog collision from that
        race means the object already exists and is ignored.

        Raises:
            DatabaseError: If the pool is missing or a statement fails
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                for statement in SCHEMA_STATEMENTS:
                    try:
                        await conn.execute(statement)
                    except (
                        asyncpg.DuplicateTableError,
                        asyncpg.DuplicateObjectError,
                        asyncpg.UniqueViolationError,
                    ) as e:
                        logger.debug("database.ensure_schema.race", error=str(e))
            logger.info("database.ensure_schema.success", statements=len(SCHEMA_STATEMENTS))
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("database.ensure_schema.failed", error=str(e), exc_info=True)
            raise DatabaseError(f"Failed to initialize schema: {e}") from e

    async def _insert(self, table: str, query: str, *args: Any) -> None:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(query, *args)
        except asyncpg.UniqueViolationError as e:
            logger.error("database.insert.duplicate", table=table, error=str(e))
            raise DuplicateKeyError(f"Duplicate id in {table}: {e}") from e
        except asyncpg.UndefinedTableError as e:
            logger.warning("database.insert.table_missing", table=table)
            raise TableMissingError(f"Table {table} not initialized: {e}") from e
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("database.insert.failed", table=table, error=str(e), exc_info=True)
            raise DatabaseError(f"Failed to insert into {table}: {e}") from e

    async def insert_github_event(self, event: GitHubEvent) -> None:
        """Append a normalized GitHub event.

        Raises:
            DuplicateKeyError: If the id already exists
            TableMissingError: If the schema has not been initialized
            DatabaseError: For any other storage failure
        """
        query = """
            INSERT INTO github_events (
                id, action, author, from_branch, to_branch, timestamp, request_id
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
        """
        await self._insert(
            GITHUB_EVENTS_TABLE,
            query,
            event.id,
            event.action.value,
            event.author,
            event.from_branch,
            event.to_branch,
            _to_naive_utc(event.timestamp),
            event.request_id,
        )
        logger.info(
            "database.insert_github_event.success",
            event_id=event.id,
            action=event.action.value,
            author=event.author,
        )

    async def insert_webhook_event(self, event: GenericWebhookEvent) -> None:
        """Append a generic webhook event.

        retry_count is left to its column default.

        Raises:
            DuplicateKeyError: If the id already exists
            TableMissingError: If the schema has not been initialized
            DatabaseError: For any other storage failure
        """
        query = """
            INSERT INTO webhook_events (
                id, event_type, payload, headers, status, error_message,
                created_at, processed_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        """
        await self._insert(
            WEBHOOK_EVENTS_TABLE,
            query,
            event.id,
            event.event_type,
            json.dumps(event.payload, default=str),
            json.dumps(event.headers),
            event.status.value,
            event.error_message,
            _to_naive_utc(event.created_at),
            _to_naive_utc(event.processed_at),
        )
        logger.info(
            "database.insert_webhook_event.success",
            event_id=event.id,
            event_type=event.event_type,
        )

    async def _fetch_recent(self, table: str, order_column: str, limit: int) -> list[Any] | None:
        """Return newest rows of a table, or None when the table is absent."""
        if not await self.table_exists(table):
            logger.info("database.fetch.needs_init", table=table)
            return None

        pool = self._require_pool()
        query = f"SELECT * FROM {table} ORDER BY {order_column} DESC LIMIT $1"  # noqa: S608
        try:
            async with pool.acquire() as conn:
                return list(await conn.fetch(query, limit))
        except asyncpg.UndefinedTableError as e:
            raise TableMissingError(f"Table {table} not initialized: {e}") from e
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("database.fetch.failed", table=table, error=str(e), exc_info=True)
            raise DatabaseError(f"Failed to fetch from {table}: {e}") from e

    async def fetch_github_events(self, limit: int = 50) -> EventPage[GitHubEvent]:
        """Fetch the most recent GitHub events, newest first."""
        rows = await self._fetch_recent(GITHUB_EVENTS_TABLE, "timestamp", limit)
        if rows is None:
            return EventPage[GitHubEvent](needs_init=True)
        return EventPage[GitHubEvent](events=[GitHubEvent.from_row(row) for row in rows])

    async def fetch_webhook_events(self, limit: int = 50) -> EventPage[GenericWebhookEvent]:
        """Fetch the most recent generic webhook events, newest first."""
        rows = await self._fetch_recent(WEBHOOK_EVENTS_TABLE, "created_at", limit)
        if rows is None:
            return EventPage[GenericWebhookEvent](needs_init=True)
        return EventPage[GenericWebhookEvent](
            events=[GenericWebhookEvent.from_row(row) for row in rows]
        )
