"""
Ligature Model Registry — global registry for all Model subclasses.

Tracks every concrete model by class name, owns the shared
RelationshipRegistry, creates and drops tables, and holds the database
the models run against.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type, TYPE_CHECKING

from ..faults.domains import (
    ModelNotFoundFault,
    ModelRegistrationFault,
    QueryFault,
    RelationshipConfigFault,
    SchemaFault,
)
from ..relations.registry import RelationshipRegistry

if TYPE_CHECKING:
    from ..db.engine import LigatureDatabase
    from .base import Model

logger = logging.getLogger("ligature.models.registry")

__all__ = ["ModelRegistry"]


class ModelRegistry:
    """
    Global registry for all Model subclasses.

    Model names double as polymorphic type tags, so two concrete models
    with the same class name cannot be registered at once.
    """

    _models: Dict[str, Type[Model]] = {}
    _db: Optional[LigatureDatabase] = None
    relationships: RelationshipRegistry = RelationshipRegistry()

    @classmethod
    def register(cls, model_cls: Type[Model]) -> None:
        """
        Register a model class.

        Raises:
            ModelRegistrationFault: another class already owns the name
        """
        name = model_cls.__name__
        existing = cls._models.get(name)
        if existing is not None and existing is not model_cls:
            if existing.__module__ != model_cls.__module__ or existing.__qualname__ != model_cls.__qualname__:
                raise ModelRegistrationFault(
                    name, f"already registered by {existing.__module__}.{existing.__qualname__}"
                )
            # Same class re-executed (module reload): the new one wins
            cls.relationships.forget(existing)
        cls._models[name] = model_cls
        logger.debug(f"Registered model {name} (table {model_cls._table_name})")

    @classmethod
    def unregister(cls, model_cls: Type[Model]) -> None:
        if cls._models.get(model_cls.__name__) is model_cls:
            del cls._models[model_cls.__name__]
        cls.relationships.forget(model_cls)

    @classmethod
    def get(cls, name: str) -> Optional[Type[Model]]:
        """Get model class by name."""
        return cls._models.get(name)

    @classmethod
    def require(cls, name: str) -> Type[Model]:
        """Get model class by name or raise ModelNotFoundFault."""
        model_cls = cls._models.get(name)
        if model_cls is None:
            raise ModelNotFoundFault(name)
        return model_cls

    @classmethod
    def all_models(cls) -> Dict[str, Type[Model]]:
        """Get all registered models."""
        return dict(cls._models)

    @classmethod
    def set_database(cls, db: Optional[LigatureDatabase]) -> None:
        """Set global database for all models."""
        cls._db = db

    @classmethod
    def get_database(cls) -> Optional[LigatureDatabase]:
        return cls._db

    @classmethod
    def check_relationships(cls) -> List[RelationshipConfigFault]:
        """
        Fully normalize every registered model's relationships, resolving
        target classes. Returns the configuration faults found.
        """
        faults: List[RelationshipConfigFault] = []
        for model_cls in cls._models.values():
            try:
                cls.relationships.definitions(model_cls)
            except RelationshipConfigFault as fault:
                faults.append(fault)
        return faults

    @classmethod
    async def create_tables(cls, db: Optional[LigatureDatabase] = None) -> List[str]:
        """Create tables (and history tables) for all registered models."""
        target_db = cls._target_db(db)

        statements: List[str] = []
        for model_cls in cls._models.values():
            if model_cls._root_class is not model_cls:
                continue
            for sql in model_cls.generate_create_table_sql():
                try:
                    await target_db.execute(sql)
                except QueryFault as fault:
                    raise SchemaFault(model_cls._table_name, fault.metadata.get("reason", str(fault))) from fault
                statements.append(sql)

        logger.info(f"Created tables for {len(cls._models)} model(s)")
        return statements

    @classmethod
    async def drop_tables(cls, db: Optional[LigatureDatabase] = None) -> List[str]:
        """Drop all registered model tables (dangerous!)."""
        target_db = cls._target_db(db)

        statements: List[str] = []
        for model_cls in reversed(list(cls._models.values())):
            if model_cls._root_class is not model_cls:
                continue
            tables = [model_cls._table_name]
            if model_cls.is_versioned():
                tables.append(model_cls._meta.history_table)
            for table in tables:
                sql = f'DROP TABLE IF EXISTS "{table}"'
                await target_db.execute(sql)
                statements.append(sql)

        return statements

    @classmethod
    def _target_db(cls, db: Optional[LigatureDatabase]) -> LigatureDatabase:
        target_db = db or cls._db
        if target_db is None:
            from ..db.engine import get_database
            target_db = get_database()
        return target_db

    @classmethod
    def reset(cls) -> None:
        """Clear registry (for testing)."""
        cls._models.clear()
        cls._db = None
        cls.relationships.reset()
