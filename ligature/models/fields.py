"""
Ligature Model Fields — the column types records are built from.

    class Post(Model):
        table = "posts"

        ThreadID = IntegerField(null=True)
        Title = CharField(max_length=150)
        Body = TextField(blank=True, null=True)
        Created = DateTimeField(auto_now_add=True)

Field objects live on the class; values live on the instance. Assigning
to a field attribute coerces the value through ``Field.coerce``; the full
``validate`` (null and length checks) runs when the record is written.
"""

from __future__ import annotations

import copy
import datetime
from typing import Any, Optional, Type, TYPE_CHECKING

if TYPE_CHECKING:
    from .base import Model

__all__ = [
    "FieldValidationError",
    "UNSET",
    "Field",
    "AutoField",
    "IntegerField",
    "CharField",
    "TextField",
    "BooleanField",
    "DateTimeField",
]


class FieldValidationError(ValueError):
    """A value cannot be stored in a field."""

    def __init__(self, field_name: str, message: str, value: Any = None):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Field '{field_name}': {message}")


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# No default given (None is a legitimate default)
UNSET: Any = _Unset()


class Field:
    """
    Base field.

    Options shared by every field:
        null        – column accepts NULL
        blank       – empty values pass validation
        default     – value or zero-argument callable
        unique      – UNIQUE constraint
        primary_key – primary key column
        db_index    – CREATE INDEX alongside the table
        db_column   – column name when it differs from the attribute
    """

    column_type = "TEXT"

    def __init__(
        self,
        *,
        null: bool = False,
        blank: bool = False,
        default: Any = UNSET,
        unique: bool = False,
        primary_key: bool = False,
        db_index: bool = False,
        db_column: Optional[str] = None,
    ):
        self.null = null
        self.blank = blank
        self.default = default
        self.unique = unique
        self.primary_key = primary_key
        self.db_index = db_index
        self.db_column = db_column

        self.name = ""
        self.attr_name = ""
        self.model: Optional[Type[Model]] = None

    def __set_name__(self, owner: Any, name: str) -> None:
        self.attr_name = name
        self.name = self.db_column or name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.attr_name or '?'}>"

    @property
    def column_name(self) -> str:
        return self.db_column or self.name

    # ── Values ───────────────────────────────────────────────────────

    def has_default(self) -> bool:
        return self.default is not UNSET

    def get_default(self) -> Any:
        if self.default is UNSET:
            return None
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)

    def coerce(self, value: Any) -> Any:
        """Convert an assigned value to the field's Python type. None passes."""
        return value

    def validate(self, value: Any) -> Any:
        """Coerce and check a value about to be written."""
        if value is None:
            if self.null or self.blank:
                return None
            raise FieldValidationError(self.name, "Cannot be null")
        return self.coerce(value)

    def to_python(self, value: Any) -> Any:
        return value

    def to_db(self, value: Any) -> Any:
        return value

    def _reject(self, value: Any, expected: str) -> FieldValidationError:
        return FieldValidationError(
            self.name, f"Expected {expected}, got {type(value).__name__}", value,
        )

    # ── DDL ──────────────────────────────────────────────────────────

    def sql_type(self, dialect: str = "sqlite") -> str:
        return self.column_type

    def sql_column_def(self, dialect: str = "sqlite", *, as_history: bool = False) -> str:
        """
        Column definition for CREATE TABLE.

        History tables hold many rows per record, so ``as_history`` leaves
        out every constraint.
        """
        parts = [f'"{self.column_name}"', self.sql_type(dialect)]
        if as_history:
            return " ".join(parts)

        if self.primary_key:
            parts.append("PRIMARY KEY")
        else:
            if self.unique:
                parts.append("UNIQUE")
            if not self.null:
                parts.append("NOT NULL")

        literal = self._sql_literal(self.default)
        if literal is not None:
            parts.append(f"DEFAULT {literal}")
        return " ".join(parts)

    @staticmethod
    def _sql_literal(value: Any) -> Optional[str]:
        if isinstance(value, bool):
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return "'" + value.replace("'", "''") + "'"
        return None


class IntegerField(Field):
    column_type = "INTEGER"

    def coerce(self, value: Any) -> Any:
        if value is None or (isinstance(value, int) and not isinstance(value, bool)):
            return value
        try:
            return int(value)
        except (TypeError, ValueError):
            raise self._reject(value, "integer") from None


class AutoField(IntegerField):
    """Integer primary key assigned by the database."""

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("primary_key", True)
        super().__init__(**kwargs)

    def validate(self, value: Any) -> Any:
        return self.coerce(value)

    def sql_column_def(self, dialect: str = "sqlite", *, as_history: bool = False) -> str:
        column = super().sql_column_def(dialect, as_history=as_history)
        if self.primary_key and not as_history:
            column += " AUTOINCREMENT"
        return column


class CharField(Field):
    """Text with a maximum length."""

    def __init__(self, *, max_length: int = 255, **kwargs: Any):
        self.max_length = max_length
        super().__init__(**kwargs)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return f"VARCHAR({self.max_length})"

    def coerce(self, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)

    def validate(self, value: Any) -> Any:
        value = super().validate(value)
        if value is None:
            return None
        if not self.blank and not value.strip():
            raise FieldValidationError(self.name, "Cannot be blank", value)
        if len(value) > self.max_length:
            raise FieldValidationError(
                self.name, f"Max length is {self.max_length}, got {len(value)} characters", value,
            )
        return value


class TextField(CharField):
    """Text without a length limit."""

    def __init__(self, **kwargs: Any):
        super().__init__(max_length=2**31 - 1, **kwargs)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "TEXT"


class BooleanField(Field):
    """Stored as 0/1."""

    column_type = "INTEGER"

    _WORDS = {"true": True, "1": True, "yes": True, "false": False, "0": False, "no": False}

    def coerce(self, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, int):
            return bool(value)
        if isinstance(value, str) and value.lower() in self._WORDS:
            return self._WORDS[value.lower()]
        raise self._reject(value, "boolean")

    def to_python(self, value: Any) -> Any:
        return None if value is None else bool(value)

    def to_db(self, value: Any) -> Any:
        return None if value is None else int(bool(value))


class DateTimeField(Field):
    """
    Stored as ISO-8601 text.

    ``auto_now`` stamps every write, ``auto_now_add`` only the INSERT of a
    record that has no value yet.
    """

    column_type = "TIMESTAMP"

    def __init__(self, *, auto_now: bool = False, auto_now_add: bool = False, **kwargs: Any):
        self.auto_now = auto_now
        self.auto_now_add = auto_now_add
        if auto_now or auto_now_add:
            kwargs.setdefault("blank", True)
        super().__init__(**kwargs)

    def coerce(self, value: Any) -> Any:
        if value is None or isinstance(value, datetime.datetime):
            return value
        if not isinstance(value, str):
            raise self._reject(value, "datetime")
        try:
            return datetime.datetime.fromisoformat(value)
        except ValueError:
            raise FieldValidationError(self.name, f"Invalid datetime format: '{value}'", value) from None

    def to_python(self, value: Any) -> Any:
        return self.coerce(value)

    def to_db(self, value: Any) -> Any:
        return value.isoformat() if isinstance(value, datetime.datetime) else value

    def pre_save(self, current: Any, is_create: bool) -> Any:
        """Value to write, stamped with the current UTC time when due."""
        if self.auto_now or (self.auto_now_add and is_create and current is None):
            return datetime.datetime.now(datetime.timezone.utc)
        return current
