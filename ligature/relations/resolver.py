"""
Relationship resolver — lazy, memoized relationship values.

``await resolver.get(record, name)`` returns the cached value when one is
present. Otherwise it resolves the relationship through the target model's
repository methods, stores the result in the record's cache (``None`` and
empty collections are valid cached results) and hooks every local field the
relationship depends on, so a direct write to that field drops the entry.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TYPE_CHECKING

from ..faults.domains import ModelNotFoundFault
from .definition import (
    CONTEXT_CLASS_FIELD,
    CONTEXT_ID_FIELD,
    Condition,
    ContextChild,
    ContextChildren,
    ContextParent,
    Handle,
    History,
    ManyToMany,
    OneToMany,
    OneToOne,
    RelationshipDefinition,
    RelationshipKind,
)
from .registry import RelationshipRegistry

if TYPE_CHECKING:
    from ..models.base import Model

logger = logging.getLogger("ligature.relations.resolver")

__all__ = ["RelationshipResolver"]


class RelationshipResolver:
    """Computes and caches relationship values on record instances."""

    _HANDLERS: Dict[RelationshipKind, str] = {
        RelationshipKind.ONE_TO_ONE: "_resolve_one_to_one",
        RelationshipKind.ONE_TO_MANY: "_resolve_one_to_many",
        RelationshipKind.MANY_TO_MANY: "_resolve_many_to_many",
        RelationshipKind.CONTEXT_CHILDREN: "_resolve_context_children",
        RelationshipKind.CONTEXT_CHILD: "_resolve_context_child",
        RelationshipKind.CONTEXT_PARENT: "_resolve_context_parent",
        RelationshipKind.HANDLE: "_resolve_handle",
        RelationshipKind.HISTORY: "_resolve_history",
    }

    def __init__(self, registry: RelationshipRegistry):
        self.registry = registry

    async def get(self, instance: Model, name: str) -> Any:
        """
        Resolve relationship ``name`` on ``instance``.

        Raises:
            RelationshipNotFoundFault: no such relationship on the class
        """
        definition = self.registry.get(type(instance), name)

        if name in instance._related:
            return instance._related[name]

        value = await self.resolve(instance, definition)
        instance._related[name] = value

        for field_name in definition.depends_on:
            type(instance).hook_relationship(field_name, name)

        logger.debug(
            f"Resolved {type(instance).__name__}.{name} ({definition.kind.value})"
        )
        return value

    async def resolve(self, instance: Model, definition: RelationshipDefinition) -> Any:
        """Compute a relationship value without touching the cache."""
        handler = getattr(self, self._HANDLERS[definition.kind])
        return await handler(instance, definition)

    def is_loaded(self, instance: Model, name: str) -> bool:
        return name in instance._related

    def invalidate(self, instance: Model, name: Optional[str] = None) -> None:
        """Drop one cached relationship, or all of them."""
        if name is None:
            instance._related.clear()
        else:
            instance._related.pop(name, None)

    # ── Kind handlers ────────────────────────────────────────────────

    async def _resolve_one_to_one(self, instance: Model, definition: OneToOne) -> Optional[Model]:
        local = instance.get_field_value(definition.local_key)
        if local is None:
            return None
        return await definition.target.get_by_field(definition.foreign_key, local)

    async def _resolve_one_to_many(self, instance: Model, definition: OneToMany) -> Any:
        index_field = self._index_field(definition.target, definition.index_field)
        local = instance.get_field_value(definition.local_key)
        if local is None:
            return {} if index_field else []

        conditions: List[Condition] = list(definition.conditions)
        conditions.append((definition.foreign_key, local))
        return await definition.target.get_all_by_where(
            conditions, order=definition.order, index_field=index_field,
        )

    async def _resolve_many_to_many(self, instance: Model, definition: ManyToMany) -> Any:
        from ..models.query import compile_conditions, compile_order, index_records

        index_field = self._index_field(definition.target, definition.index_field)
        local = instance.get_field_value(definition.local_key)
        if local is None:
            return {} if index_field else []

        sql = (
            f'SELECT Related.* FROM "{definition.link._table_name}" Link '
            f'JOIN "{definition.target._table_name}" Related '
            f'ON (Related."{definition.foreign_key}" = Link."{definition.link_foreign_key}") '
            f'WHERE Link."{definition.link_local_key}" = ?'
        )
        params: List[Any] = [local]

        where, where_params = compile_conditions(definition.conditions, alias="Related")
        if where:
            sql += f" AND {where}"
            params.extend(where_params)

        scope, scope_params = definition.target.class_scope(alias="Related")
        if scope:
            sql += f" AND {scope}"
            params.extend(scope_params)

        order = compile_order(definition.order, alias="Related")
        if order:
            sql += f" ORDER BY {order}"

        records = await definition.target.get_all_by_query(sql, params)
        return index_records(records, index_field) if index_field else records

    async def _resolve_context_children(self, instance: Model, definition: ContextChildren) -> Any:
        index_field = self._index_field(definition.target, definition.index_field)
        local = instance.get_field_value(definition.local_key)
        if local is None:
            return {} if index_field else []

        return await definition.target.get_all_by_where(
            self._context_conditions(definition, local),
            order=definition.order,
            index_field=index_field,
        )

    async def _resolve_context_child(self, instance: Model, definition: ContextChild) -> Optional[Model]:
        local = instance.get_field_value(definition.local_key)
        if local is None:
            return None
        return await definition.target.get_by_where(
            self._context_conditions(definition, local), order=definition.order,
        )

    async def _resolve_context_parent(self, instance: Model, definition: ContextParent) -> Optional[Model]:
        from ..models.registry import ModelRegistry

        class_tag = instance.get_field_value(definition.class_field)
        if not class_tag:
            return None
        local = instance.get_field_value(definition.local_key)
        if local is None:
            return None

        parent_cls = ModelRegistry.get(class_tag)
        if parent_cls is None:
            raise ModelNotFoundFault(class_tag)
        return await parent_cls.get_by_field(definition.foreign_key, local)

    async def _resolve_handle(self, instance: Model, definition: Handle) -> Optional[Model]:
        local = instance.get_field_value(definition.local_key)
        if not local:
            return None
        return await definition.target.get_by_handle(local)

    async def _resolve_history(self, instance: Model, definition: History) -> List[Model]:
        if instance.pk is None:
            return []
        return await definition.target.get_revisions_by_id(instance.pk, definition)

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _context_conditions(definition: Any, local: Any) -> List[Condition]:
        conditions: List[Condition] = list(definition.conditions)
        conditions.append((CONTEXT_CLASS_FIELD, definition.context_class))
        conditions.append((CONTEXT_ID_FIELD, local))
        return conditions

    @staticmethod
    def _index_field(target: Type[Model], index_field: Optional[str]) -> Optional[str]:
        if index_field and not target.field_exists(index_field):
            logger.warning(
                f"Index field '{index_field}' does not exist on {target.__name__}; "
                f"returning a list"
            )
            return None
        return index_field
