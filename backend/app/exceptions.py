"""
PetMatch Backend - Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every failure kind the adoption
       lifecycle and activity registration engines can produce.
How:   Each exception carries a user-facing message and a context dict naming
       the offending field or state. Global exception handlers (registered in
       main.py) convert them to structured JSON responses.
Who:   Raised by services and the security dependency; caught by global handlers.

Exception Hierarchy:
    PetMatchError (base)
    ├── ValidationError          → 400 Bad Request (malformed input)
    ├── AuthenticationError      → 401 Unauthorized (missing/invalid token)
    ├── ForbiddenError           → 403 Forbidden (role insufficient)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (duplicate, lost concurrent write)
    ├── InvalidTransitionError   → 409 Conflict (status not reachable)
    ├── InvalidStateError        → 409 Conflict (preconditions unmet)
    ├── PartialFailureError      → 500 (secondary write failed, nothing persisted)
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Iterable, Optional


class PetMatchError(Exception):
    """
    Base exception for all PetMatch application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Offending field/state details, returned as `details`
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PetMatchError):
    """
    Raised when client input fails a business validation rule.

    When:    Non-positive payment or fee amount, visit date in the past.
    HTTP:    400 Bad Request

    Schema-level problems (wrong types, missing fields) are still reported by
    FastAPI as 422; this class covers rules the schemas cannot express.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(PetMatchError):
    """Missing, malformed, expired or unverifiable bearer token (401)."""

    def __init__(
        self,
        message: str = "Not authorized to access this route",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(PetMatchError):
    """
    Raised when the acting principal's role does not permit the operation.

    HTTP:    403 Forbidden
    Context: operation, role and (for ownership checks) the resource id.
    """

    def __init__(
        self,
        operation: str,
        role: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["operation"] = operation
        ctx["role"] = role
        super().__init__(
            message=message or f"Role '{role}' is not authorized to {operation.replace('_', ' ')}",
            context=ctx,
        )
        self.operation = operation
        self.role = role


class NotFoundError(PetMatchError):
    """
    Raised when a referenced entity id does not resolve.

    HTTP:    404 Not Found

    SQLAlchemy returns None for missing records; services convert that into
    this exception so routes never check for None themselves.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(PetMatchError):
    """
    Raised on duplicate active applications, duplicate registrations, an
    unavailable pet, and lost optimistic-lock races.

    HTTP:    409 Conflict. A lost race is safe to retry.
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidTransitionError(PetMatchError):
    """Requested status is not reachable from the current status (409)."""

    def __init__(
        self,
        current: str,
        target: str,
        allowed: Iterable[str] = (),
        context: Optional[Dict[str, Any]] = None,
    ):
        allowed_sorted = sorted(allowed)
        ctx = context or {}
        ctx.update({"current_status": current, "requested_status": target, "allowed": allowed_sorted})
        super().__init__(
            message=f"Cannot move application from '{current}' to '{target}'",
            context=ctx,
        )
        self.current = current
        self.target = target
        self.allowed = allowed_sorted


class InvalidStateError(PetMatchError):
    """
    Raised when an operation's preconditions are unmet.

    When:    Visit type incompatible with the application status, activity
             already started, registration closed, editing a reviewed application.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The operation is not allowed in the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PartialFailureError(PetMatchError):
    """
    Raised when the secondary write of a cross-entity transition fails.

    What:    The application status change was written, then the pet/shelter
             update failed. The whole transaction is rolled back before this is
             raised, so `persisted` is always False and the caller may retry.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        step: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["failed_step"] = step
        ctx["persisted"] = False
        super().__init__(
            message=message or (
                f"The adoption could not be finalized because the '{step}' update failed. "
                "No changes were saved; the request can be retried."
            ),
            context=ctx,
        )
        self.step = step


class DatabaseError(PetMatchError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; driver details are
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
