"""
Ligature Model System — records, fields and repository lookups.

Usage:
    from ligature.models import Model, CharField, IntegerField

    class Post(Model):
        table = "posts"

        ThreadID = IntegerField(null=True)
        Title = CharField(max_length=150)

        relationships = {
            "Thread": "Thread",
        }

Public API:
    - Model: Base class for all records
    - Versioned: Base class for records with a revision history
    - GlobalHandle: Handle → record lookup table
    - Fields: AutoField, IntegerField, CharField, TextField, BooleanField, DateTimeField
    - ModelRegistry: Global model registry (owns the relationship registry)
    - Signals: pre_save, post_save, pre_delete, post_delete, class_prepared
"""

from .base import Model
from .fields import (
    AutoField,
    BooleanField,
    CharField,
    DateTimeField,
    Field,
    FieldValidationError,
    IntegerField,
    TextField,
    UNSET,
)
from .metaclass import ModelMeta
from .options import Options
from .registry import ModelRegistry
from .signals import (
    Signal,
    class_prepared,
    post_delete,
    post_save,
    pre_delete,
    pre_save,
    receiver,
)
from .versioning import Versioned
from .handles import GlobalHandle

__all__ = [
    "Model",
    "ModelMeta",
    "Options",
    "ModelRegistry",
    "Versioned",
    "GlobalHandle",
    "Field",
    "FieldValidationError",
    "UNSET",
    "AutoField",
    "IntegerField",
    "CharField",
    "TextField",
    "BooleanField",
    "DateTimeField",
    "Signal",
    "pre_save",
    "post_save",
    "pre_delete",
    "post_delete",
    "class_prepared",
    "receiver",
]
