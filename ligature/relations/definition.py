"""
Relationship definitions — one immutable variant per relationship kind.

A definition is produced by the normalizer and never changes afterwards.
Each variant carries only the options its kind uses:

    OneToOne          name, target, local_key, foreign_key
    OneToMany         + conditions, order, index_field
    ManyToMany        + link, link_local_key, link_foreign_key
    ContextChildren   name, target, local_key, context_class, conditions, order, index_field
    ContextChild      name, target, local_key, context_class, conditions, order
    ContextParent     name, local_key, foreign_key, class_field, allowed_classes
    Handle            name, target, local_key
    History           name, target, conditions, order
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, FrozenSet, Optional, Tuple, Type, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from ..models.base import Model

__all__ = [
    "RelationshipKind",
    "Condition",
    "OrderSpec",
    "Relationship",
    "OneToOne",
    "OneToMany",
    "ManyToMany",
    "ContextChildren",
    "ContextChild",
    "ContextParent",
    "Handle",
    "History",
    "RelationshipDefinition",
    "CONTEXT_CLASS_FIELD",
    "CONTEXT_ID_FIELD",
    "HANDLE_FIELD",
]

CONTEXT_CLASS_FIELD = "ContextClass"
CONTEXT_ID_FIELD = "ContextID"
HANDLE_FIELD = "Handle"

# A condition is either a raw SQL fragment or a (field, value) equality pair.
Condition = Union[str, Tuple[str, Any]]
# Order is a sequence of (field, "ASC" | "DESC").
OrderSpec = Tuple[Tuple[str, str], ...]


class RelationshipKind(str, Enum):
    """Relationship kinds, valued by their declaration spelling."""

    ONE_TO_ONE = "one-one"
    ONE_TO_MANY = "one-many"
    MANY_TO_MANY = "many-many"
    CONTEXT_PARENT = "context-parent"
    CONTEXT_CHILD = "context-child"
    CONTEXT_CHILDREN = "context-children"
    HANDLE = "handle"
    HISTORY = "history"


@dataclass(frozen=True)
class Relationship:
    """Fields shared by every relationship variant."""

    kind: ClassVar[RelationshipKind]

    name: str

    @property
    def depends_on(self) -> Tuple[str, ...]:
        """Local fields whose direct mutation invalidates a cached value."""
        return ()


@dataclass(frozen=True)
class OneToOne(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.ONE_TO_ONE

    target: Type[Model]
    local_key: str
    foreign_key: str

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return (self.local_key,)


@dataclass(frozen=True)
class OneToMany(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.ONE_TO_MANY

    target: Type[Model]
    local_key: str
    foreign_key: str
    conditions: Tuple[Condition, ...] = ()
    order: OrderSpec = ()
    index_field: Optional[str] = None

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return (self.local_key,)


@dataclass(frozen=True)
class ManyToMany(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.MANY_TO_MANY

    target: Type[Model]
    link: Type[Model]
    local_key: str
    foreign_key: str
    link_local_key: str
    link_foreign_key: str
    conditions: Tuple[Condition, ...] = ()
    order: OrderSpec = ()
    index_field: Optional[str] = None

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return (self.local_key,)


@dataclass(frozen=True)
class ContextChildren(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.CONTEXT_CHILDREN

    target: Type[Model]
    local_key: str
    context_class: str
    conditions: Tuple[Condition, ...] = ()
    order: OrderSpec = ()
    index_field: Optional[str] = None

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return (self.local_key,)


@dataclass(frozen=True)
class ContextChild(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.CONTEXT_CHILD

    target: Type[Model]
    local_key: str
    context_class: str
    conditions: Tuple[Condition, ...] = ()
    order: OrderSpec = (("ID", "DESC"),)

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return (self.local_key,)


@dataclass(frozen=True)
class ContextParent(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.CONTEXT_PARENT

    local_key: str
    foreign_key: str
    class_field: str
    allowed_classes: FrozenSet[str] = frozenset()

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return (self.class_field, self.local_key)


@dataclass(frozen=True)
class Handle(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.HANDLE

    target: Type[Model]
    local_key: str

    @property
    def depends_on(self) -> Tuple[str, ...]:
        return (self.local_key,)


@dataclass(frozen=True)
class History(Relationship):
    kind: ClassVar[RelationshipKind] = RelationshipKind.HISTORY

    target: Type[Model]
    conditions: Tuple[Condition, ...] = ()
    order: OrderSpec = (("RevisionID", "DESC"),)


RelationshipDefinition = Union[
    OneToOne,
    OneToMany,
    ManyToMany,
    ContextChildren,
    ContextChild,
    ContextParent,
    Handle,
    History,
]
