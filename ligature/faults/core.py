"""
Ligature faults - core types.

A fault is an exception that also carries a stable ``code``, the
``domain`` it belongs to, a ``severity``, retry semantics and free-form
``metadata``. Callers branch on ``code`` and ``domain``, never on the
message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class Severity(str, Enum):
    """How bad a fault is. FATAL means the program cannot continue as configured."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Functional area a fault comes from.

    Domains compare equal to their name, so ``fault.domain == "relation"``
    works. The standard domains are attributes of the class.
    """

    CONFIG: ClassVar[FaultDomain]
    MODEL: ClassVar[FaultDomain]
    RELATION: ClassVar[FaultDomain]

    def __init__(self, name: str, description: str = "", *, severity: Severity = Severity.ERROR,
                 retryable: bool = False):
        self.name = name
        self.description = description
        self.default_severity = severity
        self.default_retryable = retryable

    @property
    def value(self) -> str:
        return self.name

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return self.name == other

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain({self.name!r})"


FaultDomain.CONFIG = FaultDomain("config", "Configuration loading and validation", severity=Severity.FATAL)
FaultDomain.MODEL = FaultDomain("model", "Model registry, queries and the database")
FaultDomain.RELATION = FaultDomain("relation", "Relationship declarations and their use")


class Fault(Exception):
    """
    Base class of every Ligature error.

    Severity and retryability default to the domain's defaults.

    Example:
        raise Fault(
            code="THREAD_LOCKED",
            message="Thread 12 is locked",
            domain=FaultDomain.MODEL,
        )
    """

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        if not (code and message and domain):
            raise TypeError(f"{type(self).__name__} requires code, message and domain")
        super().__init__(message)

        self.code = code
        self.message = message
        self.domain = domain
        self.severity = severity or domain.default_severity
        self.retryable = domain.default_retryable if retryable is None else retryable
        self.public = public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, domain={self.domain.name!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form for logs."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.name,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }
