"""
Ligature DB Backend — SQLite via aiosqlite.

Outside a transaction every statement is committed as soon as it runs,
so records written by ``Model.save()`` are visible to the next lookup.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import aiosqlite

from .base import AdapterCapabilities, ColumnInfo, DatabaseAdapter

logger = logging.getLogger("ligature.db.backends.sqlite")

__all__ = ["SQLiteAdapter"]


class SQLiteAdapter(DatabaseAdapter):
    """aiosqlite connection with dict rows and foreign keys enforced."""

    capabilities = AdapterCapabilities(name="sqlite", supports_savepoints=True)

    def __init__(self):
        self._connection: aiosqlite.Connection | None = None
        self._in_transaction = False

    async def connect(self, url: str, **options) -> None:
        if self._connection is not None:
            return
        path = self._parse_url(url)
        self._connection = await aiosqlite.connect(path, **options)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA foreign_keys=ON")
        logger.info(f"SQLite connected: {path}")

    async def disconnect(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        self._in_transaction = False
        logger.info("SQLite disconnected")

    def _require(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("SQLite adapter is not connected")
        return self._connection

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> Any:
        connection = self._require()
        cursor = await connection.execute(sql, list(params))
        if not self._in_transaction:
            await connection.commit()
        return cursor

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        async with self._require().execute(sql, list(params)) as cursor:
            return [dict(row) for row in await cursor.fetchall()]

    async def begin(self) -> None:
        await self._require().execute("BEGIN")
        self._in_transaction = True

    async def commit(self) -> None:
        await self._require().commit()
        self._in_transaction = False

    async def rollback(self) -> None:
        await self._require().rollback()
        self._in_transaction = False

    async def get_tables(self) -> List[str]:
        rows = await self.fetch_all(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]

    async def get_columns(self, table_name: str) -> List[ColumnInfo]:
        rows = await self.fetch_all(f'PRAGMA table_info("{table_name}")')
        return [
            ColumnInfo(
                name=row["name"],
                data_type=row["type"],
                nullable=not row["notnull"],
                default=row["dflt_value"],
                primary_key=bool(row["pk"]),
            )
            for row in rows
        ]

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @staticmethod
    def _parse_url(url: str) -> str:
        """``sqlite:///forum.db`` → ``forum.db``; an empty path means memory."""
        for prefix in ("sqlite:///", "sqlite://", "sqlite:"):
            if url.startswith(prefix):
                return url[len(prefix):] or ":memory:"
        return url or ":memory:"
