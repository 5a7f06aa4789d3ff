"""
Ligature model options, read from a model's inner ``Meta`` class.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

__all__ = ["Options"]

_NOTHING = object()


class Options:
    """
    Per-model settings.

    Attributes:
        table_name: Table the records live in (defaults to the lowercased name,
            or the root class's table for subclasses of a concrete model)
        table_declared: Whether the table name was given explicitly
        abstract: Abstract models get no table and are never registered
        context_classes: Root class names a context-parent may point at
        history_table: Revision table for versioned models
        create_revision_on_save: Write a revision row on every save
        pk_name: Primary key field, filled in by the metaclass
    """

    __slots__ = (
        "model_name",
        "table_name",
        "table_declared",
        "abstract",
        "context_classes",
        "history_table",
        "create_revision_on_save",
        "pk_name",
    )

    def __init__(self, model_name: str, meta: Optional[type] = None, table_attr: Optional[str] = None):
        def read(attr: str, default: Any = None) -> Any:
            value = getattr(meta, attr, _NOTHING) if meta is not None else _NOTHING
            return default if value is _NOTHING else value

        self.model_name = model_name
        self.table_declared: bool = bool(table_attr or read("table") or read("table_name"))
        self.table_name: str = (
            table_attr or read("table") or read("table_name") or model_name.lower()
        )
        self.abstract: bool = bool(read("abstract", False))
        self.context_classes: Tuple[str, ...] = tuple(
            entry if isinstance(entry, str) else entry.__name__
            for entry in read("context_classes", ())
        )
        self.history_table: str = read("history_table") or f"history_{self.table_name}"
        self.create_revision_on_save: bool = read("create_revision_on_save", True)
        self.pk_name = "ID"

    def __repr__(self) -> str:
        return f"<Options {self.model_name}: {self.table_name}>"
