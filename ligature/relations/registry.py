"""
Relationship registry — per-class cache of normalized definitions.

Raw declarations live on each class as ``_declared_relationships`` (the
``relationships`` attribute, captured by the metaclass for that class only).
The registry merges them ancestor-first, the descendant's same-named entry
replacing the ancestor's, then normalizes the merged set exactly once.

The build is guarded by a re-entrant lock so concurrent first accesses never
interleave merge and normalize for the same class.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Type, TYPE_CHECKING

from ..faults.domains import RelationshipConfigFault, RelationshipNotFoundFault
from .definition import RelationshipDefinition
from .normalizer import check_declaration, normalize

if TYPE_CHECKING:
    from ..models.base import Model

logger = logging.getLogger("ligature.relations.registry")

__all__ = ["RelationshipRegistry"]


def _clear_hooks(cls: Type[Model]) -> None:
    hooks = cls.__dict__.get("_field_hooks")
    if hooks:
        hooks.clear()


class RelationshipRegistry:
    """
    Mapping model class → ordered mapping name → definition.

    Usage:
        registry = RelationshipRegistry()
        definition = registry.get(Post, "Thread")
    """

    def __init__(self) -> None:
        self._raw: Dict[Type[Model], Dict[str, Any]] = {}
        self._definitions: Dict[Type[Model], Dict[str, RelationshipDefinition]] = {}
        self._lock = threading.RLock()

    # ── Build ────────────────────────────────────────────────────────

    def define_relationships(self, cls: Type[Model]) -> Dict[str, Any]:
        """Merge raw declarations from the root ancestor down to ``cls``."""
        with self._lock:
            if cls in self._raw:
                return self._raw[cls]

            merged: Dict[str, Any] = {}
            for klass in reversed(cls.__mro__):
                declared = klass.__dict__.get("_declared_relationships")
                if not declared:
                    continue
                merged.update(declared)

            self._raw[cls] = merged
            return merged

    def init_relationships(self, cls: Type[Model]) -> Dict[str, RelationshipDefinition]:
        """Normalize the merged declarations of ``cls`` (once)."""
        with self._lock:
            if cls in self._definitions:
                return self._definitions[cls]

            raw = self.define_relationships(cls)
            definitions: Dict[str, RelationshipDefinition] = {}
            for name, declaration in raw.items():
                if not declaration:
                    continue
                definitions[name] = normalize(cls, name, declaration)

            self._definitions[cls] = definitions
            logger.debug(
                f"Initialized {len(definitions)} relationship(s) for {cls.__name__}"
            )
            return definitions

    def definitions(self, cls: Type[Model]) -> Dict[str, RelationshipDefinition]:
        """All normalized definitions for ``cls``, building them on first use."""
        definitions = self._definitions.get(cls)
        if definitions is not None:
            return definitions
        with self._lock:
            self.define_relationships(cls)
            return self.init_relationships(cls)

    # ── Lookup ───────────────────────────────────────────────────────

    def get(self, cls: Type[Model], name: str) -> RelationshipDefinition:
        """
        Get one definition.

        Raises:
            RelationshipNotFoundFault: ``cls`` declares no such relationship
        """
        definition = self.definitions(cls).get(name)
        if definition is None:
            raise RelationshipNotFoundFault(cls.__name__, name)
        return definition

    def exists(self, cls: Type[Model], name: str) -> bool:
        return name in self.definitions(cls)

    def names(self, cls: Type[Model]) -> List[str]:
        return list(self.definitions(cls))

    # ── Validation ───────────────────────────────────────────────────

    def check(self, cls: Type[Model]) -> List[RelationshipConfigFault]:
        """
        Validate the merged raw declarations of ``cls`` without resolving
        target classes. Returns the faults found; raising is up to the caller.
        """
        faults: List[RelationshipConfigFault] = []
        declared = cls.__dict__.get("_declared_relationships")
        if declared is not None and not isinstance(declared, dict):
            faults.append(RelationshipConfigFault(
                cls.__name__, "relationships",
                "relationships must be a mapping of name to options",
            ))
            return faults

        merged: Dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            own = klass.__dict__.get("_declared_relationships")
            if isinstance(own, dict):
                merged.update(own)

        for name, declaration in merged.items():
            if not declaration:
                continue
            try:
                check_declaration(cls, name, declaration)
            except RelationshipConfigFault as fault:
                faults.append(fault)
        return faults

    def is_initialized(self, cls: Type[Model]) -> bool:
        return cls in self._definitions

    def forget(self, cls: Type[Model]) -> None:
        """Drop cached definitions and field hooks for one class."""
        with self._lock:
            self._raw.pop(cls, None)
            self._definitions.pop(cls, None)
            _clear_hooks(cls)

    def reset(self) -> None:
        """Clear every cached definition (for testing)."""
        with self._lock:
            for cls in {*self._raw, *self._definitions}:
                _clear_hooks(cls)
            self._raw.clear()
            self._definitions.clear()

    def __repr__(self) -> str:
        return f"<RelationshipRegistry classes={len(self._definitions)}>"
