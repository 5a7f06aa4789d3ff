"""
Relationship persister — the save cascade around a record's own write.

``save_relationships`` runs before the owner is written: records the owner
points at are saved first and their keys copied into the owner.
``post_save_relationships`` runs after the owner has its primary key: records
that point at the owner receive that key and are saved.

Relationships are visited in declaration order. Only those with a populated,
non-empty cache entry take part, so an untouched relationship is never
fetched just to be saved. Key copies made
here do not drop the cache entry they were read from.
"""

from __future__ import annotations

import logging
from typing import Any, List, TYPE_CHECKING

from .definition import HANDLE_FIELD, RelationshipKind
from .registry import RelationshipRegistry

if TYPE_CHECKING:
    from ..models.base import Model

logger = logging.getLogger("ligature.relations.persister")

__all__ = ["RelationshipPersister"]


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (list, tuple, dict)) and not value)


def _members(value: Any) -> List[Model]:
    if isinstance(value, dict):
        return list(value.values())
    return list(value)


class RelationshipPersister:
    """Two-phase save cascade for cached relationships."""

    def __init__(self, registry: RelationshipRegistry):
        self.registry = registry

    async def save_relationships(self, instance: Model) -> None:
        """Pre-save phase: persist records the owner refers to."""
        definitions = self.registry.definitions(type(instance))
        pk_name = instance._meta.pk_name

        for name, definition in definitions.items():
            value = instance._related.get(name)
            if _is_empty(value):
                continue
            kind = definition.kind

            if kind is RelationshipKind.ONE_TO_ONE and definition.local_key != pk_name:
                await value.save()
                instance.set_field_value(
                    definition.local_key,
                    value.get_field_value(definition.foreign_key),
                    invalidate=False,
                )

            elif kind is RelationshipKind.ONE_TO_MANY and definition.local_key != pk_name:
                local = instance.get_field_value(definition.local_key)
                for related in _members(value):
                    if related.is_phantom:
                        related.set_field_value(definition.foreign_key, local)
                    await related.save()

            elif kind is RelationshipKind.HANDLE:
                instance.set_field_value(
                    definition.local_key, value.get_field_value(HANDLE_FIELD), invalidate=False,
                )

            elif kind is RelationshipKind.CONTEXT_PARENT:
                if value.is_phantom:
                    await value.save()
                instance.set_field_value(
                    definition.class_field, value._root_class.__name__, invalidate=False,
                )
                instance.set_field_value(
                    definition.local_key,
                    value.get_field_value(definition.foreign_key),
                    invalidate=False,
                )

            else:
                continue

            logger.debug(f"Pre-save cascade {type(instance).__name__}.{name}")

    async def post_save_relationships(self, instance: Model) -> None:
        """Post-save phase: persist records that refer to the owner."""
        definitions = self.registry.definitions(type(instance))
        pk_name = instance._meta.pk_name

        for name, definition in definitions.items():
            value = instance._related.get(name)
            if _is_empty(value):
                continue
            kind = definition.kind

            if kind is RelationshipKind.HANDLE:
                value.set_related("Context", instance)
                await value.save()

            elif kind is RelationshipKind.ONE_TO_ONE and definition.local_key == pk_name:
                value.set_field_value(definition.foreign_key, instance.pk)
                await value.save()

            elif kind is RelationshipKind.ONE_TO_MANY and definition.local_key == pk_name:
                for related in _members(value):
                    related.set_field_value(definition.foreign_key, instance.pk)
                    await related.save()

            else:
                continue

            logger.debug(f"Post-save cascade {type(instance).__name__}.{name}")
