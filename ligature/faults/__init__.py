"""
Ligature faults - typed fault signals.

Errors in Ligature are structured fault objects carrying a stable code,
a domain, a severity and retry semantics.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
- Domain faults for configuration, models/queries and relationships
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    ConfigFault,
    ConfigMissingFault,
    ConfigInvalidFault,
    ModelFault,
    ModelNotFoundFault,
    ModelRegistrationFault,
    QueryFault,
    DatabaseConnectionFault,
    SchemaFault,
    RelationshipFault,
    RelationshipConfigFault,
    RelationshipNotFoundFault,
    RelationshipTypeFault,
    UnsupportedRelationshipOperationFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # Domain faults
    "ConfigFault",
    "ConfigMissingFault",
    "ConfigInvalidFault",
    "ModelFault",
    "ModelNotFoundFault",
    "ModelRegistrationFault",
    "QueryFault",
    "DatabaseConnectionFault",
    "SchemaFault",
    "RelationshipFault",
    "RelationshipConfigFault",
    "RelationshipNotFoundFault",
    "RelationshipTypeFault",
    "UnsupportedRelationshipOperationFault",
]
