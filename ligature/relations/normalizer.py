"""
Relationship normalizer — raw declaration in, complete definition out.

A raw declaration is either a bare target (a model class or a registered
model name, shorthand for a default one-to-one) or a mapping of options.
Normalization is pure: the same owner/name/declaration always produces an
equal definition.

Shape problems and missing required options are detected by
``check_declaration`` without resolving any model names, so they can be
reported while a class is being registered. ``normalize`` resolves target
and link classes, which may be forward references until then.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type, TYPE_CHECKING

from ..faults.domains import RelationshipConfigFault
from .definition import (
    Condition,
    ContextChild,
    ContextChildren,
    ContextParent,
    CONTEXT_CLASS_FIELD,
    CONTEXT_ID_FIELD,
    Handle,
    HANDLE_FIELD,
    History,
    ManyToMany,
    OneToMany,
    OneToOne,
    OrderSpec,
    RelationshipDefinition,
    RelationshipKind,
)

if TYPE_CHECKING:
    from ..models.base import Model

logger = logging.getLogger("ligature.relations.normalizer")

__all__ = ["check_declaration", "normalize", "parse_kind"]

GLOBAL_HANDLE_MODEL = "GlobalHandle"

_KIND_ALIASES: Dict[str, RelationshipKind] = {
    "one-to-one": RelationshipKind.ONE_TO_ONE,
    "one-to-many": RelationshipKind.ONE_TO_MANY,
    "many-to-many": RelationshipKind.MANY_TO_MANY,
}

_OPTIONS: Dict[RelationshipKind, FrozenSet[str]] = {
    RelationshipKind.ONE_TO_ONE: frozenset({"target", "local", "foreign"}),
    RelationshipKind.ONE_TO_MANY: frozenset(
        {"target", "local", "foreign", "conditions", "order", "index_field"}
    ),
    RelationshipKind.MANY_TO_MANY: frozenset({
        "target", "link", "local", "foreign", "link_local", "link_foreign",
        "conditions", "order", "index_field",
    }),
    RelationshipKind.CONTEXT_CHILDREN: frozenset(
        {"target", "local", "context_class", "conditions", "order", "index_field"}
    ),
    RelationshipKind.CONTEXT_CHILD: frozenset(
        {"target", "local", "context_class", "conditions", "order"}
    ),
    RelationshipKind.CONTEXT_PARENT: frozenset(
        {"local", "foreign", "class_field", "allowed_classes"}
    ),
    RelationshipKind.HANDLE: frozenset({"target", "local"}),
    RelationshipKind.HISTORY: frozenset({"target", "conditions", "order"}),
}

_REQUIRED: Dict[RelationshipKind, Tuple[str, ...]] = {
    RelationshipKind.ONE_TO_ONE: ("target",),
    RelationshipKind.ONE_TO_MANY: ("target",),
    RelationshipKind.MANY_TO_MANY: ("target", "link"),
    RelationshipKind.CONTEXT_CHILDREN: ("target",),
    RelationshipKind.CONTEXT_CHILD: ("target",),
}


def parse_kind(value: Any) -> Optional[RelationshipKind]:
    """Map a declared kind (enum, spelling or alias) to a RelationshipKind."""
    if isinstance(value, RelationshipKind):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace("_", "-")
    if key in _KIND_ALIASES:
        return _KIND_ALIASES[key]
    try:
        return RelationshipKind(key)
    except ValueError:
        return None


def check_declaration(owner: Type[Model], name: Any, raw: Any) -> Dict[str, Any]:
    """
    Validate one raw declaration and return it as an options mapping.

    Raises:
        RelationshipConfigFault: malformed declaration or missing required option
    """
    model = owner.__name__

    if not isinstance(name, str) or not name:
        raise RelationshipConfigFault(
            model, str(name), "relationship must map a name to an options dict"
        )

    if isinstance(raw, (str, type)):
        options: Dict[str, Any] = {"kind": RelationshipKind.ONE_TO_ONE, "target": raw}
    elif isinstance(raw, Mapping):
        options = dict(raw)
    else:
        raise RelationshipConfigFault(
            model, name, "relationship must map a name to an options dict"
        )

    if "type" in options:
        if "kind" in options:
            raise RelationshipConfigFault(model, name, "use either 'kind' or 'type', not both")
        options["kind"] = options.pop("type")

    raw_kind = options.get("kind") or RelationshipKind.ONE_TO_ONE
    kind = parse_kind(raw_kind)
    if kind is None:
        raise RelationshipConfigFault(model, name, f"unknown relationship kind {raw_kind!r}")
    options["kind"] = kind

    unknown = set(options) - _OPTIONS[kind] - {"kind"}
    if unknown:
        raise RelationshipConfigFault(
            model, name, f"unknown option(s) for {kind.value}: {', '.join(sorted(unknown))}"
        )

    for option in _REQUIRED.get(kind, ()):
        if not options.get(option):
            raise RelationshipConfigFault(
                model, name, f"required {kind.value} option '{option}' missing"
            )

    if kind is RelationshipKind.HISTORY and not options.get("target") and not owner.is_versioned():
        raise RelationshipConfigFault(
            model, name, "history relationships require a versioned model"
        )

    if "conditions" in options:
        options["conditions"] = _normalize_conditions(model, name, options["conditions"])
    if "order" in options:
        options["order"] = _normalize_order(model, name, options["order"])

    return options


def normalize(owner: Type[Model], name: str, raw: Any) -> RelationshipDefinition:
    """
    Apply kind-specific defaults to a raw declaration.

    Raises:
        RelationshipConfigFault: invalid declaration or unresolvable model
    """
    options = check_declaration(owner, name, raw)
    kind: RelationshipKind = options["kind"]
    owner_root = owner._root_class.__name__

    if kind is RelationshipKind.ONE_TO_ONE:
        definition: RelationshipDefinition = OneToOne(
            name=name,
            target=_resolve_model(owner, name, options["target"]),
            local_key=options.get("local") or f"{name}ID",
            foreign_key=options.get("foreign") or "ID",
        )

    elif kind is RelationshipKind.ONE_TO_MANY:
        definition = OneToMany(
            name=name,
            target=_resolve_model(owner, name, options["target"]),
            local_key=options.get("local") or "ID",
            foreign_key=options.get("foreign") or f"{owner_root}ID",
            conditions=options.get("conditions", ()),
            order=options.get("order", ()),
            index_field=options.get("index_field") or None,
        )

    elif kind is RelationshipKind.MANY_TO_MANY:
        target = _resolve_model(owner, name, options["target"])
        definition = ManyToMany(
            name=name,
            target=target,
            link=_resolve_model(owner, name, options["link"], option="link"),
            local_key=options.get("local") or "ID",
            foreign_key=options.get("foreign") or "ID",
            link_local_key=options.get("link_local") or f"{owner_root}ID",
            link_foreign_key=options.get("link_foreign") or f"{target._root_class.__name__}ID",
            conditions=options.get("conditions", ()),
            order=options.get("order", ()),
            index_field=options.get("index_field") or None,
        )

    elif kind is RelationshipKind.CONTEXT_CHILDREN:
        definition = ContextChildren(
            name=name,
            target=_resolve_model(owner, name, options["target"]),
            local_key=options.get("local") or "ID",
            context_class=_class_tag(options.get("context_class") or owner),
            conditions=options.get("conditions", ()),
            order=options.get("order", ()),
            index_field=options.get("index_field") or None,
        )

    elif kind is RelationshipKind.CONTEXT_CHILD:
        definition = ContextChild(
            name=name,
            target=_resolve_model(owner, name, options["target"]),
            local_key=options.get("local") or "ID",
            context_class=_class_tag(options.get("context_class") or owner),
            conditions=options.get("conditions", ()),
            order=options.get("order") or (("ID", "DESC"),),
        )

    elif kind is RelationshipKind.CONTEXT_PARENT:
        allowed = options.get("allowed_classes") or owner._meta.context_classes
        definition = ContextParent(
            name=name,
            local_key=options.get("local") or CONTEXT_ID_FIELD,
            foreign_key=options.get("foreign") or "ID",
            class_field=options.get("class_field") or CONTEXT_CLASS_FIELD,
            allowed_classes=frozenset(_class_tag(c) for c in allowed),
        )

    elif kind is RelationshipKind.HANDLE:
        definition = Handle(
            name=name,
            target=_resolve_model(owner, name, options.get("target") or GLOBAL_HANDLE_MODEL),
            local_key=options.get("local") or HANDLE_FIELD,
        )

    else:
        target = _resolve_model(owner, name, options.get("target") or owner)
        if not target.is_versioned():
            raise RelationshipConfigFault(
                owner.__name__, name, f"history target '{target.__name__}' is not versioned"
            )
        definition = History(
            name=name,
            target=target,
            conditions=options.get("conditions", ()),
            order=options.get("order") or (("RevisionID", "DESC"),),
        )

    logger.debug(f"Normalized {owner.__name__}.{name}: {definition}")
    return definition


# ── Helpers ──────────────────────────────────────────────────────────────────


def _resolve_model(owner: Type[Model], name: str, ref: Any, option: str = "target") -> Type[Model]:
    from ..models.base import Model
    from ..models.registry import ModelRegistry

    if isinstance(ref, type) and issubclass(ref, Model):
        return ref
    if isinstance(ref, str):
        model_cls = ModelRegistry.get(ref)
        if model_cls is not None:
            return model_cls
    raise RelationshipConfigFault(
        owner.__name__, name, f"{option} {ref!r} is not a registered model"
    )


def _class_tag(ref: Any) -> str:
    """Polymorphic type tag: the root class name of a model, or the given name."""
    if isinstance(ref, type):
        root = getattr(ref, "_root_class", None) or ref
        return root.__name__
    return str(ref)


def _normalize_conditions(model: str, name: str, raw: Any) -> Tuple[Condition, ...]:
    from ..models.query import parse_conditions

    try:
        return parse_conditions(raw)
    except ValueError as exc:
        raise RelationshipConfigFault(model, name, str(exc)) from exc


def _normalize_order(model: str, name: str, raw: Any) -> OrderSpec:
    from ..models.query import parse_order

    try:
        return parse_order(raw)
    except ValueError as exc:
        raise RelationshipConfigFault(model, name, str(exc)) from exc
