"""
Ligature query helpers — condition and order compilation.

Conditions are the small predicate language repository lookups and
relationship definitions share:

    "Status = 'open'"                     raw SQL fragment
    {"ThreadID": 5, "Deleted": None}      field equality (None → IS NULL)
    [("ThreadID", 5), "Created > '2020'"] mixed sequence

A pair whose value is a list or tuple compiles to ``IN (...)``.

Order is written as ``"-Created"``, ``"Created DESC"``, a sequence of those,
``(field, direction)`` pairs, or a mapping field → direction; it is parsed
into a tuple of ``(field, "ASC" | "DESC")``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Tuple

__all__ = [
    "parse_conditions",
    "parse_order",
    "compile_conditions",
    "compile_order",
    "index_records",
    "quote",
]

ConditionList = Tuple[Any, ...]
OrderList = Tuple[Tuple[str, str], ...]


def quote(field: str, alias: Optional[str] = None) -> str:
    if alias:
        return f'{alias}."{field}"'
    return f'"{field}"'


def parse_conditions(raw: Any) -> ConditionList:
    """
    Flatten any accepted condition form into a tuple of raw strings and
    ``(field, value)`` pairs.

    Raises:
        ValueError: unrecognized condition shape
    """
    if raw is None or raw is False:
        return ()
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, Mapping):
        return tuple((str(field), value) for field, value in raw.items())
    if isinstance(raw, (list, tuple)):
        conditions: List[Any] = []
        for item in raw:
            if isinstance(item, str):
                conditions.append(item)
            elif isinstance(item, Mapping):
                conditions.extend((str(field), value) for field, value in item.items())
            elif isinstance(item, (list, tuple)) and len(item) == 2 and isinstance(item[0], str):
                conditions.append((item[0], item[1]))
            else:
                raise ValueError(f"invalid condition {item!r}")
        return tuple(conditions)
    raise ValueError(f"invalid conditions {raw!r}")


def parse_order(raw: Any) -> OrderList:
    """
    Parse any accepted order form.

    Raises:
        ValueError: unrecognized order term or direction
    """
    if raw is None or raw is False:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    elif isinstance(raw, Mapping):
        raw = list(raw.items())
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"invalid order {raw!r}")

    order = []
    for item in raw:
        if isinstance(item, str):
            parts = item.split()
            if len(parts) == 1:
                field = parts[0]
                direction = "DESC" if field.startswith("-") else "ASC"
                field = field.lstrip("-")
            elif len(parts) == 2:
                field, direction = parts
            else:
                raise ValueError(f"invalid order term {item!r}")
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            field, direction = item
        else:
            raise ValueError(f"invalid order term {item!r}")

        direction = str(direction).upper()
        if not field or direction not in ("ASC", "DESC"):
            raise ValueError(f"invalid order term {item!r}")
        order.append((str(field), direction))
    return tuple(order)


def compile_conditions(raw: Any, alias: Optional[str] = None) -> Tuple[str, List[Any]]:
    """
    Compile conditions into a WHERE body and its parameters.

    Returns ("", []) when there is nothing to filter on.
    """
    clauses: List[str] = []
    params: List[Any] = []

    for condition in parse_conditions(raw):
        if isinstance(condition, str):
            clauses.append(f"({condition})")
            continue

        field, value = condition
        column = quote(field, alias)
        if value is None:
            clauses.append(f"{column} IS NULL")
        elif isinstance(value, (list, tuple, set, frozenset)):
            values = list(value)
            if not values:
                clauses.append("0")
                continue
            placeholders = ", ".join("?" for _ in values)
            clauses.append(f"{column} IN ({placeholders})")
            params.extend(values)
        else:
            clauses.append(f"{column} = ?")
            params.append(value)

    return " AND ".join(clauses), params


def compile_order(raw: Any, alias: Optional[str] = None) -> str:
    """Compile order into an ORDER BY body ("" for natural order)."""
    return ", ".join(
        f"{quote(field, alias)} {direction}" for field, direction in parse_order(raw)
    )


def index_records(records: Sequence[Any], index_field: str) -> Dict[Any, Any]:
    """Key records by a field value. On duplicate keys the last record wins."""
    indexed: Dict[Any, Any] = {}
    for record in records:
        indexed[record.get_field_value(index_field)] = record
    return indexed
