"""
Fault base type shared by every error Gantry raises on purpose.

A fault is an exception that also carries the facts the filter layer
needs to answer the client: a stable code, a message that is safe to
show, the functional area it came from and how loudly to log it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class Severity(str, Enum):
    """Logging weight of a fault."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


@dataclass(frozen=True)
class FaultDomain:
    """
    Functional area a fault belongs to.

    The standard areas are class attributes (``FaultDomain.ROUTING``);
    applications may create their own, e.g. ``FaultDomain("billing")``.
    """
    name: str
    description: str = ""

    CONFIG: ClassVar["FaultDomain"]
    ROUTING: ClassVar["FaultDomain"]
    HTTP: ClassVar["FaultDomain"]
    VALIDATION: ClassVar["FaultDomain"]
    SECURITY: ClassVar["FaultDomain"]
    IO: ClassVar["FaultDomain"]
    SYSTEM: ClassVar["FaultDomain"]

    @property
    def value(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.name


FaultDomain.CONFIG = FaultDomain("config", "Invalid or missing configuration")
FaultDomain.ROUTING = FaultDomain("routing", "Route registration and matching")
FaultDomain.HTTP = FaultDomain("http", "Declared HTTP errors")
FaultDomain.VALIDATION = FaultDomain("validation", "Rejected input")
FaultDomain.SECURITY = FaultDomain("security", "Authentication and authorization")
FaultDomain.IO = FaultDomain("io", "Request body and upstream I/O")
FaultDomain.SYSTEM = FaultDomain("system", "Unexpected internal state")

_DEFAULT_SEVERITY: Dict[FaultDomain, Severity] = {
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.SYSTEM: Severity.FATAL,
    FaultDomain.ROUTING: Severity.ERROR,
}


class Fault(Exception):
    """
    Structured exception.

    ``code``, ``message`` and ``domain`` may be given to the constructor
    or declared on a subclass; a fault missing any of them is a
    programming error and raises ``TypeError``.

    Example:
        class QuotaExceeded(Fault):
            code = "QUOTA_EXCEEDED"
            message = "Too many requests"
            domain = FaultDomain("billing")
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None
    public: bool = False

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        public: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.code = code or type(self).code
        self.message = message if message is not None else type(self).message
        self.domain = domain or type(self).domain
        missing = [n for n in ("code", "message", "domain") if getattr(self, n) is None]
        if missing:
            raise TypeError(f"{type(self).__name__} needs {', '.join(missing)}")

        super().__init__(self.message)
        self.severity = severity or _DEFAULT_SEVERITY.get(self.domain, Severity.WARN)
        if public is not None:
            self.public = public
        self.metadata = dict(metadata or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, domain={self.domain}, severity={self.severity.value})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }
