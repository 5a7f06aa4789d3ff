"""
Ligature Database — async-first database layer.

Provides:
- LigatureDatabase: Connection manager with transaction support
- SQLite driver (default) behind a pluggable adapter interface
- Module-level accessors for the default database
- Structured faults (DatabaseConnectionFault, QueryFault, SchemaFault)
"""

from .engine import (
    LigatureDatabase,
    get_database,
    configure_database,
    configure_database_from,
    set_database,
)

from .backends import (
    DatabaseAdapter,
    AdapterCapabilities,
    SQLiteAdapter,
)

from ..faults.domains import (
    DatabaseConnectionFault,
    QueryFault,
    SchemaFault,
)

__all__ = [
    "LigatureDatabase",
    "DatabaseConnectionFault",
    "QueryFault",
    "SchemaFault",
    "get_database",
    "configure_database",
    "configure_database_from",
    "set_database",
    "DatabaseAdapter",
    "AdapterCapabilities",
    "SQLiteAdapter",
]
