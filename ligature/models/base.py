"""
Ligature Model Base — records with declarative relationships.

Usage:
    from ligature.models import Model
    from ligature.models.fields import CharField, IntegerField

    class Thread(Model):
        table = "threads"

        Title = CharField(max_length=150)

        relationships = {
            "Posts": {"kind": "one-many", "target": "Post", "order": "ID"},
        }

    class Post(Model):
        table = "posts"

        ThreadID = IntegerField(null=True)
        Body = TextField()

        relationships = {
            "Thread": "Thread",
        }

API:
    thread = await Thread.create(Title="Hello")
    post = Post(Body="First!")
    post.set_related("Thread", thread)      # copies thread.ID into ThreadID
    await post.save()

    posts = await thread.related("Posts")  # resolved once, then cached
    thread.append_related("Posts", Post(Body="Second"))
    await thread.save()                     # cascades into the new post
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, ClassVar, Dict, List, Optional, Set, Tuple, Type, TYPE_CHECKING

from ..faults.domains import QueryFault
from ..relations.definition import HANDLE_FIELD, RelationshipDefinition
from ..relations.mutator import RelationshipMutator
from ..relations.persister import RelationshipPersister
from ..relations.resolver import RelationshipResolver
from .fields import AutoField, DateTimeField, Field
from .metaclass import CLASS_FIELD, ModelMeta
from .options import Options
from .query import compile_conditions, compile_order, index_records
from .registry import ModelRegistry
from .signals import post_delete, post_save, pre_delete, pre_save

if TYPE_CHECKING:
    from ..db.engine import LigatureDatabase

logger = logging.getLogger("ligature.models")

__all__ = ["Model"]

_resolver = RelationshipResolver(ModelRegistry.relationships)
_mutator = RelationshipMutator(ModelRegistry.relationships)
_persister = RelationshipPersister(ModelRegistry.relationships)


class Model(metaclass=ModelMeta):
    """
    Ligature Model base class.

    Instance state:
        _related   – relationship cache (name → record, list, dict or None)
        _is_phantom – not yet written to the database
        _is_dirty  – changed since it was loaded or last saved
    """

    # Class-level attributes set by metaclass
    _fields: ClassVar[Dict[str, Field]] = {}
    _meta: ClassVar[Options]
    _table_name: ClassVar[str] = ""
    _root_class: ClassVar[Type[Model]]
    _field_hooks: ClassVar[Dict[str, Set[str]]] = {}

    def __init__(self, **kwargs: Any):
        """Create a record in memory (phantom until saved)."""
        self._init_state(phantom=True)

        related: Dict[str, Any] = {}
        for key in list(kwargs):
            if key not in self._fields:
                if not ModelRegistry.relationships.exists(type(self), key):
                    raise TypeError(
                        f"{self.__class__.__name__}() got an unexpected keyword argument '{key}'"
                    )
                related[key] = kwargs.pop(key)

        for attr_name, field in self._fields.items():
            if attr_name in kwargs:
                value = field.coerce(kwargs[attr_name])
            elif field.has_default():
                value = field.get_default()
            else:
                value = None
            self.__dict__[attr_name] = value

        if CLASS_FIELD in self._fields and self.__dict__.get(CLASS_FIELD) is None:
            self.__dict__[CLASS_FIELD] = type(self).__name__

        for name, value in related.items():
            self.set_related(name, value)

    def _init_state(self, *, phantom: bool) -> None:
        object.__setattr__(self, "_related", {})
        object.__setattr__(self, "_is_phantom", phantom)
        object.__setattr__(self, "_is_dirty", False)
        object.__setattr__(self, "_saving", False)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self._fields:
            self.set_field_value(name, value)
        else:
            object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} pk={self.pk if self.pk is not None else '?'}>"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Model) or other._root_class is not self._root_class:
            return False
        if self.pk is None or other.pk is None:
            return self is other
        return self.pk == other.pk

    def __hash__(self) -> int:
        return hash((self._root_class.__name__, self.pk if self.pk is not None else id(self)))

    # ── Field access ─────────────────────────────────────────────────

    @property
    def pk(self) -> Any:
        return self.__dict__.get(self._meta.pk_name)

    @property
    def is_phantom(self) -> bool:
        return self._is_phantom

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    def mark_dirty(self) -> None:
        object.__setattr__(self, "_is_dirty", True)

    @classmethod
    def field_exists(cls, name: str) -> bool:
        return name in cls._fields

    @classmethod
    def is_versioned(cls) -> bool:
        return False

    def get_field_value(self, name: str) -> Any:
        if name not in self._fields:
            raise AttributeError(f"{self.__class__.__name__} has no field '{name}'")
        return self.__dict__.get(name)

    def set_field_value(self, name: str, value: Any, *, invalidate: bool = True) -> None:
        """
        Write a field directly.

        The value is coerced by the field. When it differs from the current
        value the record becomes dirty and, unless ``invalidate`` is False,
        every cached relationship hooked on the field is dropped.
        """
        field = self._fields.get(name)
        if field is None:
            raise AttributeError(f"{self.__class__.__name__} has no field '{name}'")

        value = field.coerce(value)
        if name in self.__dict__ and self.__dict__[name] == value:
            return

        self.__dict__[name] = value
        self.mark_dirty()

        if invalidate:
            for relationship in type(self)._field_hooks.get(name, ()):
                if self._related.pop(relationship, None) is not None:
                    logger.debug(
                        f"Invalidated {self.__class__.__name__}.{relationship} ({name} changed)"
                    )

    @classmethod
    def hook_relationship(cls, field_name: str, relationship: str) -> None:
        """Drop ``relationship`` from the cache whenever ``field_name`` is written."""
        cls._field_hooks.setdefault(field_name, set()).add(relationship)

    # ── Relationships ────────────────────────────────────────────────

    @classmethod
    def get_relationship(cls, name: str) -> RelationshipDefinition:
        return ModelRegistry.relationships.get(cls, name)

    @classmethod
    def relationship_names(cls) -> List[str]:
        return ModelRegistry.relationships.names(cls)

    async def related(self, name: str) -> Any:
        """
        Resolve a relationship, cached after the first access.

        Usage:
            thread = await post.related("Thread")
            posts = await thread.related("Posts")
        """
        return await _resolver.get(self, name)

    def set_related(self, name: str, value: Any) -> None:
        """Assign a relationship value, updating key fields."""
        _mutator.set(self, name, value)

    def append_related(self, name: str, values: Any) -> None:
        """Append to a one-to-many relationship."""
        _mutator.append(self, name, values)

    def is_related_loaded(self, name: str) -> bool:
        return _resolver.is_loaded(self, name)

    def invalidate_related(self, name: Optional[str] = None) -> None:
        _resolver.invalidate(self, name)

    # ── Class-level DB ───────────────────────────────────────────────

    @classmethod
    def _get_db(cls) -> LigatureDatabase:
        db = ModelRegistry.get_database()
        if db is None:
            from ..db.engine import get_database
            db = get_database()
        return db

    # ── Shared tables ────────────────────────────────────────────────

    @classmethod
    def table_classes(cls) -> List[Type[Model]]:
        """Registered concrete models stored in this model's table, root first."""
        root = cls._root_class
        return [
            model_cls for model_cls in ModelRegistry.all_models().values()
            if model_cls._root_class is root
        ]

    @classmethod
    def class_scope(cls, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
        """
        Condition limiting a shared table to ``cls`` and its subclasses.

        Empty for root classes, whose lookups see every row of the table.
        """
        if cls._root_class is cls:
            return "", []
        names = [m.__name__ for m in cls.table_classes() if issubclass(m, cls)]
        column = f'"{CLASS_FIELD}"' if alias is None else f'{alias}."{CLASS_FIELD}"'
        placeholders = ", ".join("?" for _ in names)
        return f"{column} IN ({placeholders})", names

    @classmethod
    def table_fields(cls) -> Dict[str, Field]:
        """Columns of this model's table: the root's fields, then subclass additions."""
        root = cls._root_class
        fields = dict(root._fields)
        for model_cls in cls.table_classes():
            for attr_name, field in model_cls._fields.items():
                fields.setdefault(attr_name, field)
        return fields

    # ── Repository lookups ───────────────────────────────────────────

    @classmethod
    async def get_by_field(cls, field: str, value: Any) -> Optional[Model]:
        return await cls.get_by_where({field: value})

    @classmethod
    async def get_by_id(cls, pk: Any) -> Optional[Model]:
        return await cls.get_by_field(cls._meta.pk_name, pk)

    @classmethod
    async def get_by_handle(cls, handle: Any) -> Optional[Model]:
        """Look up by the ``Handle`` field, or by primary key when there is none."""
        if cls.field_exists(HANDLE_FIELD):
            return await cls.get_by_field(HANDLE_FIELD, handle)
        if isinstance(handle, int) or (isinstance(handle, str) and handle.isdigit()):
            return await cls.get_by_id(int(handle))
        return None

    @classmethod
    async def get_by_where(cls, conditions: Any, *, order: Any = None) -> Optional[Model]:
        records = await cls.get_all_by_where(conditions, order=order, limit=1)
        return records[0] if records else None

    @classmethod
    async def get_all_by_where(
        cls,
        conditions: Any = None,
        *,
        order: Any = None,
        index_field: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Any:
        """
        Fetch every record matching ``conditions``.

        Returns a list, or a dict keyed by ``index_field`` when given.
        """
        sql = f'SELECT * FROM "{cls._table_name}"'
        where, params = compile_conditions(conditions)
        scope, scope_params = cls.class_scope()
        if scope:
            where = f"({where}) AND {scope}" if where else scope
            params = [*params, *scope_params]
        if where:
            sql += f" WHERE {where}"
        order_sql = compile_order(order)
        if order_sql:
            sql += f" ORDER BY {order_sql}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        records = await cls.get_all_by_query(sql, params)
        if index_field:
            return index_records(records, index_field)
        return records

    @classmethod
    async def get_all_by_query(cls, sql: str, params: Optional[List[Any]] = None) -> List[Model]:
        rows = await cls._get_db().fetch_all(sql, params or [])
        return [cls.from_row(row) for row in rows]

    @classmethod
    async def get_all(cls, *, order: Any = None) -> List[Model]:
        return await cls.get_all_by_where(None, order=order)

    # ── Persistence ──────────────────────────────────────────────────

    @classmethod
    async def create(cls, **data: Any) -> Model:
        """
        Create and persist a new record.

        Usage:
            thread = await Thread.create(Title="Hello")
        """
        instance = cls(**data)
        await instance.save()
        return instance

    async def save(self, deep: bool = True) -> Model:
        """
        Save the record and, when ``deep``, its cached relationships.

        Order: pre-save cascade, ``pre_save``, INSERT or UPDATE, revision,
        ``post_save``, post-save cascade. A clean persisted record is not
        written. Re-entrant calls made by a cascade return immediately.
        """
        if self._saving:
            return self
        object.__setattr__(self, "_saving", True)
        try:
            if deep:
                await _persister.save_relationships(self)

            created = self._is_phantom
            await pre_save.send(type(self), instance=self, created=created)

            if created:
                await self._insert()
                wrote = True
            elif self._is_dirty:
                await self._update()
                wrote = True
            else:
                wrote = False

            if wrote:
                object.__setattr__(self, "_is_phantom", False)
                object.__setattr__(self, "_is_dirty", False)
                await self._on_written(created)

            await post_save.send(type(self), instance=self, created=created)

            if deep:
                await _persister.post_save_relationships(self)
        finally:
            object.__setattr__(self, "_saving", False)

        return self

    def _column_values(self, *, is_create: bool) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attr_name, field in self._fields.items():
            value = self.__dict__.get(attr_name)

            if field.primary_key:
                if value is None and isinstance(field, AutoField):
                    continue
                data[field.column_name] = field.to_db(field.validate(value))
                continue

            if isinstance(field, DateTimeField):
                stamped = field.pre_save(value, is_create)
                if stamped is not value:
                    self.__dict__[attr_name] = stamped
                    value = stamped

            if value is None and field.has_default():
                value = field.get_default()
                self.__dict__[attr_name] = value

            data[field.column_name] = field.to_db(field.validate(value))
        return data

    async def _insert(self) -> None:
        data = self._column_values(is_create=True)
        if data:
            cols = ", ".join(f'"{c}"' for c in data)
            placeholders = ", ".join("?" for _ in data)
            sql = f'INSERT INTO "{self._table_name}" ({cols}) VALUES ({placeholders})'
        else:
            sql = f'INSERT INTO "{self._table_name}" DEFAULT VALUES'

        cursor = await self._get_db().execute(sql, list(data.values()))

        if self.pk is None:
            if not cursor.lastrowid:
                raise QueryFault(
                    model=self.__class__.__name__,
                    operation="insert",
                    reason="database did not report a primary key",
                )
            # Bypass set_field_value: the new key must not drop cached children
            self.__dict__[self._meta.pk_name] = cursor.lastrowid

        logger.debug(f"Inserted {self!r}")

    async def _update(self) -> None:
        pk_name = self._meta.pk_name
        pk_column = self._fields[pk_name].column_name
        data = self._column_values(is_create=False)
        data.pop(pk_column, None)
        if not data:
            return

        set_parts = ", ".join(f'"{c}" = ?' for c in data)
        sql = f'UPDATE "{self._table_name}" SET {set_parts} WHERE "{pk_column}" = ?'
        await self._get_db().execute(sql, list(data.values()) + [self.pk])
        logger.debug(f"Updated {self!r}")

    async def _on_written(self, created: bool) -> None:
        """Called after each INSERT or UPDATE of this record."""

    async def destroy(self) -> bool:
        """
        Delete this record. Returns True when a row was removed.

        Raises:
            QueryFault: the record was never saved
        """
        if self.pk is None:
            raise QueryFault(
                model=self.__class__.__name__,
                operation="destroy",
                reason="cannot delete a phantom record",
            )

        await pre_delete.send(type(self), instance=self)
        pk_column = self._fields[self._meta.pk_name].column_name
        cursor = await self._get_db().execute(
            f'DELETE FROM "{self._table_name}" WHERE "{pk_column}" = ?', [self.pk],
        )
        self._related.clear()
        await post_delete.send(type(self), instance=self)
        return bool(cursor.rowcount)

    # ── Serialization ────────────────────────────────────────────────

    def to_dict(self, *, exclude: Optional[List[str]] = None) -> Dict[str, Any]:
        """Serialize record fields to a dict."""
        exclude_set = set(exclude or [])
        result: Dict[str, Any] = {}
        for attr_name in self._fields:
            if attr_name in exclude_set:
                continue
            value = self.__dict__.get(attr_name)
            if isinstance(value, datetime.datetime):
                value = value.isoformat()
            result[attr_name] = value
        return result

    @classmethod
    def from_row(cls, row: Any) -> Model:
        """
        Create a clean, persisted record from a database row.

        Rows of a shared table come back as the subclass named in their
        ``Class`` column.
        """
        row = dict(row)
        model_cls = cls._row_class(row.get(CLASS_FIELD))
        instance = model_cls.__new__(model_cls)
        instance._init_state(phantom=False)

        for attr_name, field in model_cls._fields.items():
            if field.column_name in row:
                instance.__dict__[attr_name] = field.to_python(row[field.column_name])
            else:
                instance.__dict__[attr_name] = None

        return instance

    @classmethod
    def _row_class(cls, tag: Optional[str]) -> Type[Model]:
        if not tag or tag == cls.__name__:
            return cls
        model_cls = ModelRegistry.get(tag)
        if model_cls is None or not issubclass(model_cls, cls):
            return cls
        return model_cls

    # ── SQL Generation ───────────────────────────────────────────────

    @classmethod
    def generate_create_table_sql(cls, dialect: str = "sqlite") -> List[str]:
        """
        CREATE TABLE statements this model needs.

        Columns that only subclasses declare are created without
        constraints, since rows of other classes leave them empty.
        """
        root_fields = cls._root_class._fields
        fields = cls.table_fields()
        cols = [
            field.sql_column_def(dialect, as_history=attr_name not in root_fields)
            for attr_name, field in fields.items()
        ]
        body = ",\n  ".join(cols)
        statements = [f'CREATE TABLE IF NOT EXISTS "{cls._table_name}" (\n  {body}\n);']
        for field in fields.values():
            if field.db_index and not field.unique and not field.primary_key:
                statements.append(
                    f'CREATE INDEX IF NOT EXISTS "idx_{cls._table_name}_{field.column_name}" '
                    f'ON "{cls._table_name}" ("{field.column_name}");'
                )
        return statements
