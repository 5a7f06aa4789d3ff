"""
Versioned records — a history table holding one row per saved revision.

    class Page(Versioned):
        table = "pages"

        Title = CharField(max_length=150)

        relationships = {
            "History": {"kind": "history"},
        }

Every write of a ``Page`` appends a copy of its columns to
``history_pages`` under a new ``RevisionID`` (disable with
``Meta.create_revision_on_save = False``). ``await page.related("History")``
returns the revisions newest first.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from ..relations.definition import History
from .base import Model
from .query import compile_conditions, compile_order

logger = logging.getLogger("ligature.models.versioning")

__all__ = ["Versioned", "REVISION_FIELD"]

REVISION_FIELD = "RevisionID"


class Versioned(Model):
    """Abstract base for models that keep a revision history."""

    class Meta:
        abstract = True

    @classmethod
    def is_versioned(cls) -> bool:
        return True

    @classmethod
    def generate_create_table_sql(cls, dialect: str = "sqlite") -> List[str]:
        statements = super().generate_create_table_sql(dialect)
        cols = [f'"{REVISION_FIELD}" INTEGER PRIMARY KEY AUTOINCREMENT']
        cols.extend(f.sql_column_def(dialect, as_history=True) for f in cls.table_fields().values())
        body = ",\n  ".join(cols)
        statements.append(f'CREATE TABLE IF NOT EXISTS "{cls._meta.history_table}" (\n  {body}\n);')
        return statements

    async def _on_written(self, created: bool) -> None:
        await super()._on_written(created)
        if self._meta.create_revision_on_save:
            await self.create_revision()

    async def create_revision(self) -> int:
        """Copy the record's current columns into the history table."""
        data = {
            field.column_name: field.to_db(self.__dict__.get(attr_name))
            for attr_name, field in self._fields.items()
        }
        cols = ", ".join(f'"{c}"' for c in data)
        placeholders = ", ".join("?" for _ in data)
        cursor = await self._get_db().execute(
            f'INSERT INTO "{self._meta.history_table}" ({cols}) VALUES ({placeholders})',
            list(data.values()),
        )
        logger.debug(f"Revision {cursor.lastrowid} of {self!r}")
        return cursor.lastrowid

    @classmethod
    async def get_revisions_by_id(cls, pk: Any, definition: Optional[History] = None) -> List[Versioned]:
        """
        All revisions of the record with primary key ``pk``.

        A history relationship definition contributes its conditions and
        order; without one, revisions come newest first.
        """
        pk_column = cls._fields[cls._meta.pk_name].column_name
        conditions: List[Any] = list(definition.conditions) if definition else []
        conditions.append((pk_column, pk))
        order = definition.order if definition else ((REVISION_FIELD, "DESC"),)

        where, params = compile_conditions(conditions)
        sql = f'SELECT * FROM "{cls._meta.history_table}" WHERE {where}'
        order_sql = compile_order(order)
        if order_sql:
            sql += f" ORDER BY {order_sql}"

        rows = await cls._get_db().fetch_all(sql, params)
        revisions = []
        for row in rows:
            revision = cls.from_row(row)
            object.__setattr__(revision, "revision_id", row.get(REVISION_FIELD))
            revisions.append(revision)
        return revisions
