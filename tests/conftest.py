"""
Shared test fixtures for the Ligature test suite.
"""

import pytest
import pytest_asyncio

from ligature.db import LigatureDatabase
from ligature.models import ModelRegistry


@pytest.fixture(autouse=True)
def _isolate_registry():
    """Snapshot and restore ModelRegistry state between tests."""
    old_models = ModelRegistry._models.copy()
    old_db = ModelRegistry._db
    yield
    ModelRegistry._models = old_models
    ModelRegistry._db = old_db
    ModelRegistry.relationships.reset()


@pytest_asyncio.fixture
async def db():
    """In-memory SQLite database with every registered model's tables."""
    database = LigatureDatabase("sqlite:///:memory:")
    await database.connect()
    ModelRegistry.set_database(database)
    await ModelRegistry.create_tables(database)
    yield database
    ModelRegistry.set_database(None)
    await database.disconnect()
