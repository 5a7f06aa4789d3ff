"""
Ligature — async records with declarative relationships.

    from ligature import Model, CharField, IntegerField, configure_database

    configure_database("sqlite:///forum.db")
"""

__version__ = "0.3.0"

from .config import ConfigLoader, configure_logging
from .db import LigatureDatabase, configure_database, get_database, set_database
from .faults import Fault
from .models import (
    BooleanField,
    CharField,
    DateTimeField,
    GlobalHandle,
    IntegerField,
    Model,
    ModelRegistry,
    TextField,
    Versioned,
)

__all__ = [
    "__version__",
    "ConfigLoader",
    "configure_logging",
    "LigatureDatabase",
    "configure_database",
    "get_database",
    "set_database",
    "Fault",
    "Model",
    "ModelRegistry",
    "Versioned",
    "GlobalHandle",
    "CharField",
    "IntegerField",
    "TextField",
    "BooleanField",
    "DateTimeField",
]
