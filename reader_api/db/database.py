"""
Async database access: connection pool, query executor, transaction executor.
Challenge: Connection pooling, guaranteed connection release, retry only where it is safe.
Design: One Database object built by the composition root and injected into repositories
(no module-level engine), so tests can point it at SQLite.
"""

import asyncio
import logging
import signal
import time
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import CursorResult, make_url
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql import Executable

from reader_api.config import Settings, get_settings
from reader_api.core.exceptions import DatabaseClosedError, RetryExhaustedError
from reader_api.core.metrics import (
    DB_QUERIES,
    DB_QUERY_DURATION,
    DB_QUERY_RETRIES,
    DB_TRANSACTIONS,
)

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Statement = Executable | str
Params = Mapping[str, Any] | Sequence[Mapping[str, Any]] | None

# Errors worth retrying: the statement never reached (or never finished on) a healthy connection
TRANSIENT_ERRORS = (
    DisconnectionError,
    PoolTimeoutError,
    OSError,
    asyncio.TimeoutError,
)

# SQLSTATE classes: 08 connection exception, 53 insufficient resources, 57P0x server shutdown
TRANSIENT_SQLSTATES = ("08", "53", "57P")

# SQLite has no SQLSTATE; lock contention only shows up in the message
TRANSIENT_SQLITE_MESSAGES = ("database is locked", "database table is locked", "disk i/o error")


def is_transient(exc: BaseException) -> bool:
    """
    Connection-level failures only. An OperationalError also covers a missing
    table or bad SQL on SQLite, so it counts only with a connection cause.
    """
    if isinstance(exc, TRANSIENT_ERRORS):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    if not isinstance(exc, OperationalError):
        return False
    orig = exc.orig
    if isinstance(orig, (OSError, asyncio.TimeoutError)):
        return True
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        return str(sqlstate).startswith(TRANSIENT_SQLSTATES)
    message = str(orig).lower()
    return any(fragment in message for fragment in TRANSIENT_SQLITE_MESSAGES)


def fetch_rows(result: CursorResult) -> list[Row]:
    """Materialize a result as plain dicts. Statements without RETURNING yield []."""
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings()]


def _as_executable(statement: Statement) -> Executable:
    return text(statement) if isinstance(statement, str) else statement


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine (connection pool) and runs statements against it."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._engine: AsyncEngine | None = None
        self._closed = False
        self._main_task: asyncio.Task | None = None
        self._shutdown_task: asyncio.Task | None = None

    # --- Connection manager ---

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def engine(self) -> AsyncEngine:
        """Create the pool on first use. Raises DatabaseClosedError after a shutdown signal."""
        if self._closed:
            raise DatabaseClosedError("Database pool was shut down and cannot be reopened")
        if self._engine is None:
            self._engine = create_async_engine(self.settings.database_url, **self._engine_options())
            if self._engine.dialect.name == "sqlite":
                event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return self._engine

    def _engine_options(self) -> dict[str, Any]:
        url = make_url(self.settings.database_url)
        backend = url.get_backend_name()
        options: dict[str, Any] = {"echo": self.settings.debug, "pool_pre_ping": True}
        # In-memory SQLite runs on a StaticPool, which takes no sizing arguments
        if not (backend == "sqlite" and url.database in (None, "", ":memory:")):
            options.update(
                pool_size=self.settings.db_pool_size,
                max_overflow=self.settings.db_max_overflow,
                pool_timeout=self.settings.db_pool_timeout,
                pool_recycle=self.settings.db_idle_timeout,
            )
        connect_args: dict[str, Any] = {"timeout": self.settings.db_connect_timeout}
        if backend == "postgresql" and self.settings.db_ssl:
            connect_args["ssl"] = "require"
        options["connect_args"] = connect_args
        return options

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def connect(self) -> bool:
        """Probe the pool with a trivial query. Logs and returns False instead of raising."""
        safe_url = make_url(self.settings.database_url).render_as_string(hide_password=True)
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database connection check failed for %s", safe_url)
            return False
        logger.info("Database connection established: %s", safe_url)
        return True

    async def disconnect(self) -> None:
        """Drain and close the pool. A second call is a no-op."""
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        logger.info("Database pool closed")

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        On SIGINT/SIGTERM: close the pool for good, then cancel the task that installed
        the handlers (the script's main coroutine) so the process stops.
        """
        loop = loop or asyncio.get_running_loop()
        self._main_task = asyncio.current_task(loop)
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._on_shutdown_signal, sig)

    def _on_shutdown_signal(self, sig: signal.Signals) -> None:
        if self._shutdown_task is not None:
            return
        logger.info("Received %s, closing database pool", sig.name)
        # Set before the drain starts so nothing in flight can build a new pool
        self._closed = True
        self._shutdown_task = asyncio.ensure_future(self._shutdown())

    async def _shutdown(self) -> None:
        await self.disconnect()
        if self._main_task is not None and not self._main_task.done():
            logger.info("Stopping after database shutdown")
            self._main_task.cancel()

    # --- Query executor ---

    async def execute_query(
        self,
        statement: Statement,
        params: Params = None,
        *,
        retries: int | None = None,
    ) -> list[Row]:
        """
        Run one statement in its own short transaction and return its rows.
        Transient failures are retried with linear backoff (attempt x base delay);
        each failed attempt's connection is released before sleeping.
        """
        attempts = max(1, retries if retries is not None else self.settings.db_query_retries)
        stmt = _as_executable(statement)
        attempt = 0
        while True:
            attempt += 1
            started = time.perf_counter()
            try:
                async with self.engine.begin() as conn:
                    rows = fetch_rows(await conn.execute(stmt, params))
            except Exception as exc:
                if not is_transient(exc):
                    DB_QUERIES.labels(outcome="error").inc()
                    raise
                if attempt >= attempts:
                    DB_QUERIES.labels(outcome="error").inc()
                    logger.error("Query failed after %d attempt(s): %s", attempt, exc)
                    raise RetryExhaustedError(attempt, exc) from exc
                DB_QUERY_RETRIES.inc()
                delay = attempt * self.settings.db_retry_base_delay
                logger.warning(
                    "Query failed (attempt %d/%d), retrying in %.2fs: %s",
                    attempt,
                    attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
            else:
                DB_QUERIES.labels(outcome="ok").inc()
                return rows
            finally:
                DB_QUERY_DURATION.observe(time.perf_counter() - started)

    # --- Transaction executor ---

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """
        Yield one connection inside BEGIN. COMMIT on normal exit; ROLLBACK and re-raise
        on any error. A failing ROLLBACK is logged and never masks the original error.
        No retry here: replaying half of a multi-statement unit would break atomicity.
        """
        async with self.engine.connect() as conn:
            await conn.begin()
            try:
                yield conn
            except Exception:
                try:
                    await conn.rollback()
                except Exception:
                    logger.exception("Rollback failed; re-raising the original error")
                DB_TRANSACTIONS.labels(outcome="rolled_back").inc()
                raise
            await conn.commit()
            DB_TRANSACTIONS.labels(outcome="committed").inc()

    async def execute_transaction(
        self, statements: Sequence[tuple[Statement, Params]]
    ) -> list[list[Row]]:
        """Run statements in order, atomically. Returns one row-set per statement."""
        results: list[list[Row]] = []
        async with self.transaction() as conn:
            for statement, params in statements:
                result = await conn.execute(_as_executable(statement), params)
                results.append(fetch_rows(result))
        return results
