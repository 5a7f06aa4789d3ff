"""
Ligature DB Backend — adapter interface.

``LigatureDatabase`` picks an adapter from the connection URL and delegates
every statement to it. Adapters speak ``?`` placeholders and return rows as
plain dicts; anything a backend can express in portable SQL (savepoints,
single-row fetches) is implemented here once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
    "ColumnInfo",
]


@dataclass
class AdapterCapabilities:
    """What a backend supports."""

    name: str = "base"
    supports_savepoints: bool = True


@dataclass
class ColumnInfo:
    """One column as reported by schema introspection."""

    name: str
    data_type: str
    nullable: bool = True
    default: Optional[str] = None
    primary_key: bool = False


class DatabaseAdapter(ABC):
    """Backend interface used by ``LigatureDatabase``."""

    capabilities: AdapterCapabilities = AdapterCapabilities()

    @abstractmethod
    async def connect(self, url: str, **options) -> None: ...

    @abstractmethod
    async def disconnect(self) -> None: ...

    @abstractmethod
    async def execute(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Run a statement. The result exposes ``lastrowid`` and ``rowcount``."""

    @abstractmethod
    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def begin(self) -> None: ...

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    @abstractmethod
    async def get_tables(self) -> List[str]: ...

    @abstractmethod
    async def get_columns(self, table_name: str) -> List[ColumnInfo]: ...

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def fetch_val(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = await self.fetch_one(sql, params)
        if row is None:
            return None
        return next(iter(row.values()), None)

    # Names are checked by the engine before they reach these methods.
    async def savepoint(self, name: str) -> None:
        await self.execute(f'SAVEPOINT "{name}"')

    async def release_savepoint(self, name: str) -> None:
        await self.execute(f'RELEASE SAVEPOINT "{name}"')

    async def rollback_to_savepoint(self, name: str) -> None:
        await self.execute(f'ROLLBACK TO SAVEPOINT "{name}"')

    async def table_exists(self, table_name: str) -> bool:
        return table_name in await self.get_tables()

    @property
    def is_connected(self) -> bool:
        return False

    @property
    def dialect(self) -> str:
        return self.capabilities.name
