"""
RBAC error taxonomy.

Domain errors raised by the role graph, management services and reporting
graph, plus the three guard outcomes. Transport layers translate these
(see ``security.api_errors``); the engine itself never retries.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Machine-readable category of an RBAC failure."""
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CYCLE = "cycle"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"


class RBACError(Exception):
    """Base class for all authorization engine errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "Authorization engine error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)


class InvalidInputError(RBACError):
    """An argument the engine cannot act on, such as a negative hierarchy level."""
    kind = ErrorKind.INVALID
    default_message = "Invalid input"


class NotFoundError(RBACError):
    """A referenced role, permission, user, assignment or edge does not exist."""
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class ConflictError(RBACError):
    """Uniqueness violation, duplicate assignment or a delete blocked by references."""
    kind = ErrorKind.CONFLICT
    default_message = "Resource conflict"


class CycleError(ConflictError):
    """A parent or manager assignment would close a cycle."""
    kind = ErrorKind.CYCLE
    default_message = "Assignment would create a cycle"


class UnauthenticatedError(RBACError):
    """No usable caller identity."""
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication required"


class ForbiddenError(RBACError):
    """The caller is identified but fails the requirement."""
    kind = ErrorKind.FORBIDDEN
    default_message = "Insufficient permissions"


class InternalError(RBACError):
    """The decision could not be computed (store failure)."""
    kind = ErrorKind.INTERNAL
    default_message = "Internal error"


ERRORS_BY_KIND = {
    ErrorKind.INVALID: InvalidInputError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.CYCLE: CycleError,
    ErrorKind.UNAUTHENTICATED: UnauthenticatedError,
    ErrorKind.FORBIDDEN: ForbiddenError,
    ErrorKind.INTERNAL: InternalError,
}
