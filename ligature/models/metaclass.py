"""
Ligature model metaclass.

Turns a class body into a record type: gathers fields (inherited first),
parses ``Meta`` into :class:`Options`, gives concrete models an ``ID``
primary key when none is declared, records the class's own
``relationships`` and registers the result.

A concrete model that extends another concrete model is stored in its root
class's table. The root gains a ``Class`` column naming the concrete class
of each row, so lookups come back as the right subclass.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ..faults.domains import ModelRegistrationFault
from .fields import AutoField, CharField, Field
from .options import Options

__all__ = ["ModelMeta", "CLASS_FIELD"]

CLASS_FIELD = "Class"


def _inherited_fields(bases: Tuple[type, ...]) -> Dict[str, Field]:
    merged: Dict[str, Field] = {}
    for base in reversed(bases):
        merged.update(getattr(base, "_fields", {}))
    return merged


def _own_fields(namespace: Dict[str, Any]) -> Dict[str, Field]:
    return {key: value for key, value in namespace.items() if isinstance(value, Field)}


def _primary_key(fields: Dict[str, Field]) -> Optional[str]:
    return next((fname for fname, f in fields.items() if f.primary_key), None)


def _concrete_root(bases: Tuple[type, ...]) -> Optional[type]:
    """The concrete model whose table the bases are stored in, if any."""
    for base in bases:
        root = getattr(base, "_root_class", None)
        if root is not None and not root._meta.abstract:
            return root
    return None


def _class_field(root: type) -> Field:
    """The root's ``Class`` column, added on first use."""
    field = root._fields.get(CLASS_FIELD)
    if field is None:
        field = CharField(max_length=100, null=True, db_index=True)
        field.__set_name__(root, CLASS_FIELD)
        field.model = root
        setattr(root, CLASS_FIELD, field)
        root._fields = {**root._fields, CLASS_FIELD: field}
    return field


class ModelMeta(type):
    """Metaclass for Ligature models."""

    def __new__(mcs, name: str, bases: Tuple[type, ...], namespace: Dict[str, Any], **kwargs):
        # The Model base itself carries no fields
        if not any(isinstance(b, ModelMeta) for b in bases):
            return super().__new__(mcs, name, bases, namespace)

        opts = Options(
            name,
            namespace.pop("Meta", None),
            namespace.pop("table", None) or namespace.pop("table_name", None),
        )
        root = _concrete_root(bases)

        # Ancestor declarations are merged by the relationship registry
        if "relationships" in namespace:
            namespace["_declared_relationships"] = namespace.pop("relationships")

        own = _own_fields(namespace)
        fields = {**_inherited_fields(bases), **own}

        if root is not None:
            if opts.table_declared and opts.table_name != root._meta.table_name:
                raise ModelRegistrationFault(
                    name, f"rows are stored in '{root._meta.table_name}' with {root.__name__}",
                )
            opts.table_name = root._meta.table_name
            opts.history_table = root._meta.history_table
            if not opts.abstract:
                fields.setdefault(CLASS_FIELD, _class_field(root))

        if not opts.abstract and _primary_key(fields) is None:
            auto = AutoField()
            auto.__set_name__(None, "ID")
            namespace["ID"] = auto
            fields = {"ID": auto, **fields}

        cls = super().__new__(mcs, name, bases, namespace)

        for fname, field in own.items():
            field.__set_name__(cls, fname)
            field.model = cls

        opts.pk_name = _primary_key(fields) or opts.pk_name
        cls._fields = fields
        cls._meta = opts
        cls._table_name = opts.table_name
        cls._field_hooks = {}
        cls._root_class = root or cls

        mcs._finalize(cls)
        return cls

    @staticmethod
    def _finalize(cls: type) -> None:
        from .registry import ModelRegistry

        problems = ModelRegistry.relationships.check(cls)
        if problems:
            raise problems[0]

        if cls._meta.abstract:
            return

        ModelRegistry.register(cls)

        from .signals import class_prepared

        class_prepared.send_sync(sender=cls)
