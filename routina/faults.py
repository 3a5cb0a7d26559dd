"""
Faults - Structured error types shared by the request pipeline.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
- Request, store and security faults raised by routina components
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when a fault is reported.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.IO = FaultDomain("io", "Request parsing and I/O")
FaultDomain.STORE = FaultDomain("store", "Document store operations")
FaultDomain.SECURITY = FaultDomain("security", "Security and auth")
FaultDomain.SYSTEM = FaultDomain("system", "System level faults")


DOMAIN_DEFAULTS = {
    FaultDomain.IO: Severity.WARN,
    FaultDomain.STORE: Severity.ERROR,
    FaultDomain.SECURITY: Severity.WARN,
    FaultDomain.SYSTEM: Severity.FATAL,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "USER_NOT_FOUND")
        message: Human-readable summary
        severity: Fault severity
        domain: Fault domain
        public: Whether the message is safe to expose to clients
        metadata: Additional context data

    Example:
        ```python
        raise Fault(
            code="STORE_UNAVAILABLE",
            message="Database is locked",
            domain=FaultDomain.STORE,
        )
        ```
    """

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        public: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        self.severity = severity or getattr(self, "severity", None) or DOMAIN_DEFAULTS.get(
            self.domain, Severity.ERROR
        )
        self.public = public if public is not None else getattr(self, "public", False)
        self.metadata = metadata or {}

    @property
    def name(self) -> str:
        """Error kind name, as reported to clients."""
        return type(self).__name__

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault to a dictionary suitable for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }


# ============================================================================
# Request Faults
# ============================================================================

class RequestFault(Fault):
    """Base class for request-related faults."""
    domain = FaultDomain.IO
    severity = Severity.WARN
    public = True
    status = 400

    def __init__(self, message: str | None = None, **metadata):
        super().__init__(
            code=self.code,
            message=message or self.message,
            metadata=metadata,
        )


class BadRequest(RequestFault):
    """Malformed request (400)."""
    code = "BAD_REQUEST"
    message = "Bad request"


class InvalidJSON(RequestFault):
    """Invalid JSON payload (400)."""
    code = "INVALID_JSON"
    message = "Invalid JSON"


class PayloadTooLarge(RequestFault):
    """Request payload exceeds limits (413)."""
    code = "PAYLOAD_TOO_LARGE"
    message = "Payload too large"
    status = 413


class UnsupportedMediaType(RequestFault):
    """Unsupported Content-Type (415)."""
    code = "UNSUPPORTED_MEDIA_TYPE"
    message = "Unsupported media type"
    status = 415


class ClientDisconnect(RequestFault):
    """Client disconnected while the body was being read."""
    code = "CLIENT_DISCONNECT"
    message = "Client disconnected"


# ============================================================================
# Store Faults
# ============================================================================

class StoreFault(Fault):
    """The document store could not complete an operation."""
    domain = FaultDomain.STORE
    code = "STORE_ERROR"
    message = "Store operation failed"

    def __init__(self, message: str | None = None, *, operation: str = "", **metadata):
        super().__init__(
            code=self.code,
            message=message or self.message,
            metadata={"operation": operation, **metadata},
        )


class ValidationFault(StoreFault):
    """
    The store rejected a record.

    ``errors`` maps field names to messages, in the order they were found.
    """
    code = "VALIDATION_ERROR"
    message = "Validation failed"
    severity = Severity.WARN
    public = True

    def __init__(self, errors: Optional[dict[str, str]] = None, message: str | None = None):
        self.errors = dict(errors or {})
        if message is None and self.errors:
            message = "Validation failed: " + ", ".join(
                f"{field}: {msg}" for field, msg in self.errors.items()
            )
        super().__init__(message, operation="validate")


class DuplicateKeyFault(ValidationFault):
    """A uniqueness constraint was violated on ``field``."""
    code = "DUPLICATE_KEY"

    def __init__(self, field: str | None, message: str | None = None):
        self.field = field
        super().__init__(message=message or f"Duplicate value for {field or 'unique field'}")


class UserNotFoundFault(StoreFault):
    """No record exists for the identifier (or it is malformed)."""
    code = "USER_NOT_FOUND"
    message = "User not found"
    severity = Severity.INFO
    public = True

    def __init__(self, identifier: str = ""):
        super().__init__(self.message, operation="find_by_id", identifier=identifier)


# ============================================================================
# Security Faults
# ============================================================================

class UnauthorizedError(Fault):
    """
    Raised by authentication collaborators when a request carries no
    valid credentials. Answered with 401 by the terminal interceptor.
    """
    domain = FaultDomain.SECURITY
    code = "UNAUTHORIZED"
    message = "No authorization token was found"
    public = True

    def __init__(self, message: str | None = None, **metadata):
        super().__init__(code=self.code, message=message or self.message, metadata=metadata)


__all__ = [
    "Severity",
    "FaultDomain",
    "Fault",
    "RequestFault",
    "BadRequest",
    "InvalidJSON",
    "PayloadTooLarge",
    "UnsupportedMediaType",
    "ClientDisconnect",
    "StoreFault",
    "ValidationFault",
    "DuplicateKeyFault",
    "UserNotFoundFault",
    "UnauthorizedError",
]
