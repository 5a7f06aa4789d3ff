"""
Ligature relationship engine.

Record classes declare named relationships; the engine turns those
declarations into immutable definitions and uses them to resolve, assign
and save related records:

- definition: one frozen dataclass per relationship kind
- normalizer: raw declaration → definition, kind defaults applied
- registry: per-class definitions, merged along the inheritance chain
- resolver: lazy, cached relationship values
- mutator: assignment and append with key bookkeeping
- persister: the two-phase save cascade
"""

from .definition import (
    CONTEXT_CLASS_FIELD,
    CONTEXT_ID_FIELD,
    HANDLE_FIELD,
    Condition,
    ContextChild,
    ContextChildren,
    ContextParent,
    Handle,
    History,
    ManyToMany,
    OneToMany,
    OneToOne,
    OrderSpec,
    Relationship,
    RelationshipDefinition,
    RelationshipKind,
)
from .normalizer import check_declaration, normalize, parse_kind
from .registry import RelationshipRegistry
from .resolver import RelationshipResolver
from .mutator import RelationshipMutator
from .persister import RelationshipPersister

__all__ = [
    "RelationshipKind",
    "Relationship",
    "RelationshipDefinition",
    "OneToOne",
    "OneToMany",
    "ManyToMany",
    "ContextChildren",
    "ContextChild",
    "ContextParent",
    "Handle",
    "History",
    "Condition",
    "OrderSpec",
    "CONTEXT_CLASS_FIELD",
    "CONTEXT_ID_FIELD",
    "HANDLE_FIELD",
    "check_declaration",
    "normalize",
    "parse_kind",
    "RelationshipRegistry",
    "RelationshipResolver",
    "RelationshipMutator",
    "RelationshipPersister",
]
