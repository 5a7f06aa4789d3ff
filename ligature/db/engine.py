"""
Ligature Database Engine — async connection manager over backend adapters.

Provides:
- LigatureDatabase: connection with retries, statements, transactions, savepoints
- Module-level default database (``configure_database`` / ``get_database``)

Driver errors never escape: they are re-raised as ``QueryFault`` (statements)
or ``DatabaseConnectionFault`` (connection lifecycle).
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from ..faults.domains import DatabaseConnectionFault, QueryFault
from .backends.base import AdapterCapabilities, ColumnInfo, DatabaseAdapter

if TYPE_CHECKING:
    from ..config import ConfigLoader

logger = logging.getLogger("ligature.db")

_SAVEPOINT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _create_adapter(url: str) -> DatabaseAdapter:
    if url.startswith("sqlite"):
        from .backends.sqlite import SQLiteAdapter
        return SQLiteAdapter()
    raise DatabaseConnectionFault(url=url, reason="unsupported database URL scheme")


class LigatureDatabase:
    """
    Async database used by the record layer.

    Statements use ``?`` placeholders. Rows come back as dicts.

    Usage:
        db = LigatureDatabase("sqlite:///forum.db")
        await db.connect()
        rows = await db.fetch_all('SELECT * FROM "posts" WHERE "ThreadID" = ?', [5])

        async with db.transaction():
            await thread.save()
    """

    __slots__ = (
        "_url",
        "_adapter",
        "_lock",
        "_options",
        "_connected",
        "_in_transaction",
        "_connect_retries",
        "_connect_retry_delay",
    )

    def __init__(self, url: str = "sqlite:///:memory:", **options: Any):
        """
        Args:
            url: ``sqlite:///path/to/file.db`` or ``sqlite:///:memory:``
            **options: ``connect_retries`` (default 3) and
                ``connect_retry_delay`` seconds (default 0.5); anything else
                goes to the driver.
        """
        self._url = url
        self._adapter = _create_adapter(url)
        self._lock = asyncio.Lock()
        self._connect_retries = int(options.pop("connect_retries", 3))
        self._connect_retry_delay = float(options.pop("connect_retry_delay", 0.5))
        self._options = options
        self._connected = False
        self._in_transaction = False

    # ── Connection ───────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the connection, retrying driver failures."""
        async with self._lock:
            if self._connected:
                return

            for attempt in range(1, self._connect_retries + 1):
                try:
                    await self._adapter.connect(self._url, **self._options)
                except Exception as exc:
                    if attempt == self._connect_retries:
                        raise DatabaseConnectionFault(
                            url=self._url,
                            reason=f"failed after {attempt} attempt(s): {exc}",
                        ) from exc
                    logger.warning(
                        f"Connection attempt {attempt} failed: {exc}, "
                        f"retrying in {self._connect_retry_delay}s"
                    )
                    await asyncio.sleep(self._connect_retry_delay)
                else:
                    self._connected = True
                    logger.info(f"Database connected: {self._url}")
                    return

    async def disconnect(self) -> None:
        async with self._lock:
            if not self._connected:
                return
            self._connected = False
            try:
                await self._adapter.disconnect()
            except Exception as exc:
                raise DatabaseConnectionFault(url=self._url, reason=f"disconnect failed: {exc}") from exc
            logger.info("Database disconnected")

    async def ensure_connected(self) -> None:
        if not (self._connected and self._adapter.is_connected):
            self._connected = False
            await self.connect()

    # ── Statements ───────────────────────────────────────────────────

    async def _run(
        self,
        operation: str,
        call: Callable[..., Awaitable[Any]],
        sql: str,
        params: Optional[Sequence[Any]],
    ) -> Any:
        await self.ensure_connected()
        try:
            return await call(sql, list(params or ()))
        except Exception as exc:
            raise QueryFault(
                model="<raw>",
                operation=operation,
                reason=str(exc),
                metadata={"sql": sql[:200]},
            ) from exc

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Run a statement. The result exposes ``lastrowid`` and ``rowcount``."""
        return await self._run("execute", self._adapter.execute, sql, params)

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        return await self._run("fetch_all", self._adapter.fetch_all, sql, params)

    async def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        return await self._run("fetch_one", self._adapter.fetch_one, sql, params)

    async def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        return await self._run("fetch_val", self._adapter.fetch_val, sql, params)

    # ── Transactions ─────────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Commit on success, roll back and re-raise on any exception."""
        await self.ensure_connected()
        await self._adapter.begin()
        self._in_transaction = True
        try:
            yield
        except BaseException:
            await self._adapter.rollback()
            raise
        else:
            await self._adapter.commit()
        finally:
            self._in_transaction = False

    @staticmethod
    def _savepoint_name(name: str) -> str:
        if not _SAVEPOINT_RE.match(name):
            raise QueryFault(
                model="<transaction>",
                operation="savepoint",
                reason=f"invalid savepoint name {name!r}",
            )
        return name

    async def savepoint(self, name: str) -> None:
        await self.ensure_connected()
        await self._adapter.savepoint(self._savepoint_name(name))

    async def release_savepoint(self, name: str) -> None:
        await self.ensure_connected()
        await self._adapter.release_savepoint(self._savepoint_name(name))

    async def rollback_to_savepoint(self, name: str) -> None:
        await self.ensure_connected()
        await self._adapter.rollback_to_savepoint(self._savepoint_name(name))

    # ── Introspection ────────────────────────────────────────────────

    async def table_exists(self, table_name: str) -> bool:
        await self.ensure_connected()
        return await self._adapter.table_exists(table_name)

    async def get_tables(self) -> List[str]:
        await self.ensure_connected()
        return await self._adapter.get_tables()

    async def get_columns(self, table_name: str) -> List[ColumnInfo]:
        await self.ensure_connected()
        return await self._adapter.get_columns(table_name)

    # ── Properties ───────────────────────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._connected and self._adapter.is_connected

    @property
    def url(self) -> str:
        return self._url

    @property
    def dialect(self) -> str:
        return self._adapter.dialect

    @property
    def capabilities(self) -> AdapterCapabilities:
        return self._adapter.capabilities

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"<LigatureDatabase {self._url} ({state})>"


# ── Default database ────────────────────────────────────────────────────────

_databases: Dict[str, LigatureDatabase] = {}


def get_database(alias: str = "default") -> LigatureDatabase:
    """
    Raises:
        DatabaseConnectionFault: nothing is configured under ``alias``
    """
    db = _databases.get(alias or "default")
    if db is None:
        raise DatabaseConnectionFault(
            url=f"<alias:{alias}>",
            reason="no database configured; call configure_database() first",
        )
    return db


def configure_database(url: str = "sqlite:///:memory:", *, alias: str = "default", **options: Any) -> LigatureDatabase:
    """Create a database and register it under ``alias``."""
    db = LigatureDatabase(url, **options)
    _databases[alias] = db
    return db


def configure_database_from(loader: ConfigLoader, *, alias: str = "default") -> LigatureDatabase:
    """Configure a database from the ``database`` section of a ConfigLoader."""
    db_config = dict(loader.get_database_config())
    url = db_config.pop("url")
    return configure_database(url, alias=alias, **db_config)


def set_database(db: Optional[LigatureDatabase], *, alias: str = "default") -> None:
    """Register an existing database under ``alias``; ``None`` removes it."""
    if db is None:
        _databases.pop(alias, None)
    else:
        _databases[alias] = db
