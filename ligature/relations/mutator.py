"""
Relationship mutator — assigning and appending relationship values.

Assignment keeps the owner's key fields consistent with the value and
stores the value in the relationship cache. Key copies made here are
direct field writes, so they would normally drop the very cache entry
being assigned; the mutator writes keys first and caches afterwards.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, TYPE_CHECKING

from ..faults.domains import RelationshipTypeFault, UnsupportedRelationshipOperationFault
from .definition import (
    ContextParent,
    Handle,
    HANDLE_FIELD,
    OneToMany,
    OneToOne,
    RelationshipDefinition,
    RelationshipKind,
)
from .registry import RelationshipRegistry

if TYPE_CHECKING:
    from ..models.base import Model

logger = logging.getLogger("ligature.relations.mutator")

__all__ = ["RelationshipMutator"]


class RelationshipMutator:
    """Assigns relationship values and keeps key fields in step."""

    def __init__(self, registry: RelationshipRegistry):
        self.registry = registry

    def set(self, instance: Model, name: str, value: Any) -> None:
        """
        Assign ``value`` to relationship ``name``.

        Raises:
            RelationshipNotFoundFault: no such relationship
            RelationshipTypeFault: value of the wrong type (nothing is changed)
            UnsupportedRelationshipOperationFault: kind cannot be assigned
        """
        definition = self.registry.get(type(instance), name)
        kind = definition.kind

        if kind is RelationshipKind.ONE_TO_ONE:
            cached = self._set_one_to_one(instance, definition, value)
        elif kind is RelationshipKind.HANDLE:
            cached = self._set_handle(instance, definition, value)
        elif kind is RelationshipKind.CONTEXT_PARENT:
            cached = self._set_context_parent(instance, definition, value)
        elif kind is RelationshipKind.ONE_TO_MANY:
            cached = self._set_one_to_many(instance, definition, value)
        else:
            raise UnsupportedRelationshipOperationFault(
                type(instance).__name__, name, "set", kind.value,
            )

        instance._related[name] = cached
        self._hook(instance, definition)
        instance.mark_dirty()
        logger.debug(f"Assigned {type(instance).__name__}.{name}")

    def append(self, instance: Model, name: str, values: Any) -> None:
        """
        Append one record or a list of records to a one-to-many relationship.

        Entries that are not instances of the target class are skipped.

        Raises:
            RelationshipNotFoundFault: no such relationship
            UnsupportedRelationshipOperationFault: not a one-to-many relationship
        """
        definition = self.registry.get(type(instance), name)
        if definition.kind is not RelationshipKind.ONE_TO_MANY:
            raise UnsupportedRelationshipOperationFault(
                type(instance).__name__, name, "append", definition.kind.value,
            )

        if not isinstance(values, (list, tuple)):
            values = [values]
        accepted = self._stamp_children(instance, definition, values)

        current = instance._related.get(name)
        if isinstance(current, dict) and definition.index_field:
            for related in accepted:
                current[related.get_field_value(definition.index_field)] = related
        elif isinstance(current, list):
            current.extend(accepted)
        else:
            instance._related[name] = accepted

        self._hook(instance, definition)
        instance.mark_dirty()
        logger.debug(
            f"Appended {len(accepted)} record(s) to {type(instance).__name__}.{name}"
        )

    # ── Kind handlers ────────────────────────────────────────────────

    def _set_one_to_one(self, instance: Model, definition: OneToOne, value: Any) -> Any:
        self._check_target(instance, definition, value)
        if definition.local_key != instance._meta.pk_name:
            instance.set_field_value(
                definition.local_key,
                value.get_field_value(definition.foreign_key) if value is not None else None,
            )
        return value

    def _set_handle(self, instance: Model, definition: Handle, value: Any) -> Any:
        self._check_target(instance, definition, value)
        instance.set_field_value(
            definition.local_key,
            value.get_field_value(HANDLE_FIELD) if value is not None else None,
        )
        return value

    def _set_context_parent(self, instance: Model, definition: ContextParent, value: Any) -> Any:
        from ..models.base import Model

        if value is None:
            instance.set_field_value(definition.class_field, None)
            instance.set_field_value(definition.local_key, None)
            return None

        if not isinstance(value, Model):
            raise RelationshipTypeFault(
                type(instance).__name__, definition.name, "Model", type(value).__name__,
            )

        class_tag = value._root_class.__name__
        if definition.allowed_classes and class_tag not in definition.allowed_classes:
            raise RelationshipTypeFault(
                type(instance).__name__, definition.name,
                " | ".join(sorted(definition.allowed_classes)), class_tag,
            )

        instance.set_field_value(definition.class_field, class_tag)
        instance.set_field_value(
            definition.local_key, value.get_field_value(definition.foreign_key),
        )
        return value

    def _set_one_to_many(self, instance: Model, definition: OneToMany, value: Any) -> List[Model]:
        if not isinstance(value, (list, tuple)):
            raise RelationshipTypeFault(
                type(instance).__name__, definition.name, "list", type(value).__name__,
            )
        return self._stamp_children(instance, definition, value)

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _hook(instance: Model, definition: RelationshipDefinition) -> None:
        for field_name in definition.depends_on:
            type(instance).hook_relationship(field_name, definition.name)

    @staticmethod
    def _check_target(instance: Model, definition: Any, value: Any) -> None:
        if value is not None and not isinstance(value, definition.target):
            raise RelationshipTypeFault(
                type(instance).__name__, definition.name,
                definition.target.__name__, type(value).__name__,
            )

    @staticmethod
    def _stamp_children(instance: Model, definition: OneToMany, values: Iterable[Any]) -> List[Model]:
        """Keep target instances only and point their foreign key at the owner."""
        local = instance.get_field_value(definition.local_key)
        accepted: List[Model] = []
        for related in values:
            if not isinstance(related, definition.target):
                continue
            related.set_field_value(definition.foreign_key, local)
            accepted.append(related)
        return accepted
