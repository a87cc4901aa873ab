"""
Failure types raised by the governed services.

Each failure carries a stable ``code`` so callers can react to the kind of
failure rather than parse its message.
"""
from django.core.exceptions import PermissionDenied


class GovernanceError(Exception):
    """Base class for failures raised by newsletter_engine services."""

    code = "governance_error"
    default_message = "Operation failed"

    def __init__(self, message=None, payload=None):
        self.message = message or self.default_message
        self.payload = payload
        super().__init__(self.message)

    def to_dict(self):
        rv = dict(self.payload or ())
        rv["error"] = self.message
        rv["code"] = self.code
        return rv


class AccessDenied(GovernanceError, PermissionDenied):
    """The caller may not read or change the resource. No side effects occurred."""

    code = "access_denied"
    default_message = "Access denied"


class InsufficientPermissions(GovernanceError, PermissionDenied):
    """The caller's profile lacks the capability the operation requires."""

    code = "insufficient_permissions"
    default_message = "Insufficient publishing permissions"


class RateLimited(GovernanceError):
    """The (user, action) window is exhausted. No side effects occurred."""

    code = "rate_limited"
    default_message = "Rate limit exceeded"

    def __init__(self, action, message=None):
        self.action = action
        super().__init__(message, payload={"action": action})


class ContentValidationFailed(GovernanceError):
    """Submitted content broke one or more rules. Carries every error found."""

    code = "validation_failed"
    default_message = "Validation failed"

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(
            f"Validation failed: {', '.join(self.errors)}",
            payload={"errors": self.errors},
        )


class PersistenceError(GovernanceError):
    """A round trip to the persistence layer failed."""

    code = "persistence_error"
    default_message = "Persistence error"


class StaleRecord(PersistenceError):
    """The record changed between the permission check and the write."""

    code = "stale_record"
    default_message = "Record was modified concurrently"
