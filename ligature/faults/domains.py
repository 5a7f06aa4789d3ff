"""
Ligature faults - the concrete fault types.

Each class fixes its code, domain and severity; constructor arguments
become both the message and the ``metadata`` mapping. Extra metadata can
be passed as ``metadata={...}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .core import Fault, FaultDomain, Severity


class _DomainFault(Fault):
    domain_: FaultDomain
    code_: str
    severity_: Optional[Severity] = None
    retryable_: Optional[bool] = None

    def __init__(self, message: str, details: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=self.code_,
            message=message,
            domain=self.domain_,
            severity=self.severity_,
            retryable=self.retryable_,
            metadata={**details, **(metadata or {})},
        )


# ============================================================================
# CONFIG
# ============================================================================

class ConfigFault(_DomainFault):
    """Base class for configuration faults."""

    domain_ = FaultDomain.CONFIG


class ConfigMissingFault(ConfigFault):
    """A required configuration key is absent."""

    code_ = "CONFIG_MISSING"

    def __init__(self, key: str, **kwargs):
        super().__init__(
            f"Required configuration key '{key}' is missing",
            {"key": key},
            kwargs.get("metadata"),
        )


class ConfigInvalidFault(ConfigFault):
    """A configuration value has the wrong type or range."""

    code_ = "CONFIG_INVALID"

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            f"Configuration key '{key}' is invalid: {reason}",
            {"key": key, "reason": reason},
            kwargs.get("metadata"),
        )


# ============================================================================
# MODEL (registry, queries, database)
# ============================================================================

class ModelFault(_DomainFault):
    """Base class for model and database faults."""

    domain_ = FaultDomain.MODEL


class ModelNotFoundFault(ModelFault):
    """No model is registered under the name."""

    code_ = "MODEL_NOT_FOUND"

    def __init__(self, model_name: str, **kwargs):
        super().__init__(
            f"Model '{model_name}' not found in ModelRegistry",
            {"model": model_name},
            kwargs.get("metadata"),
        )


class ModelRegistrationFault(ModelFault):
    """A model class could not be registered."""

    code_ = "MODEL_REGISTRATION_FAILED"
    severity_ = Severity.FATAL

    def __init__(self, model_name: str, reason: str, **kwargs):
        super().__init__(
            f"Failed to register model '{model_name}': {reason}",
            {"model": model_name, "reason": reason},
            kwargs.get("metadata"),
        )


class QueryFault(ModelFault):
    """A statement failed or an operation is impossible for the record."""

    code_ = "QUERY_FAILED"
    retryable_ = True

    def __init__(self, model: str, operation: str, reason: str, **kwargs):
        super().__init__(
            f"Query on '{model}' ({operation}) failed: {reason}",
            {"model": model, "operation": operation, "reason": reason},
            kwargs.get("metadata"),
        )


class DatabaseConnectionFault(ModelFault):
    """The database could not be reached or is not configured."""

    code_ = "DB_CONNECTION_FAILED"
    severity_ = Severity.FATAL
    retryable_ = True

    def __init__(self, url: str, reason: str, **kwargs):
        super().__init__(
            f"Database connection failed ({url}): {reason}",
            {"url": url, "reason": reason},
            kwargs.get("metadata"),
        )


class SchemaFault(ModelFault):
    """A table could not be created."""

    code_ = "SCHEMA_FAULT"
    severity_ = Severity.FATAL

    def __init__(self, table: str, reason: str, **kwargs):
        super().__init__(
            f"Schema error for table '{table}': {reason}",
            {"table": table, "reason": reason},
            kwargs.get("metadata"),
        )


# ============================================================================
# RELATION
# ============================================================================

class RelationshipFault(_DomainFault):
    """Base class for relationship faults."""

    domain_ = FaultDomain.RELATION


class RelationshipConfigFault(RelationshipFault):
    """A relationship declaration is malformed or misses a required option."""

    code_ = "RELATIONSHIP_CONFIG_INVALID"
    severity_ = Severity.FATAL

    def __init__(self, model: str, relationship: str, reason: str, **kwargs):
        super().__init__(
            f"Relationship '{model}.{relationship}' is misconfigured: {reason}",
            {"model": model, "relationship": relationship, "reason": reason},
            kwargs.get("metadata"),
        )


class RelationshipNotFoundFault(RelationshipFault):
    """No relationship with the given name is declared on the model."""

    code_ = "RELATIONSHIP_NOT_FOUND"

    def __init__(self, model: str, relationship: str, **kwargs):
        super().__init__(
            f"Model '{model}' has no relationship '{relationship}'",
            {"model": model, "relationship": relationship},
            kwargs.get("metadata"),
        )


class RelationshipTypeFault(RelationshipFault):
    """A value of the wrong type was assigned to a relationship."""

    code_ = "RELATIONSHIP_TYPE_MISMATCH"

    def __init__(self, model: str, relationship: str, expected: str, got: str, **kwargs):
        super().__init__(
            f"Relationship '{model}.{relationship}' expects {expected}, got {got}",
            {"model": model, "relationship": relationship, "expected": expected, "got": got},
            kwargs.get("metadata"),
        )


class UnsupportedRelationshipOperationFault(RelationshipFault):
    """The operation is not available for this kind of relationship."""

    code_ = "RELATIONSHIP_OPERATION_UNSUPPORTED"

    def __init__(self, model: str, relationship: str, operation: str, kind: str, **kwargs):
        super().__init__(
            f"Cannot {operation} relationship '{model}.{relationship}' of kind '{kind}'",
            {"model": model, "relationship": relationship, "operation": operation, "kind": kind},
            kwargs.get("metadata"),
        )
