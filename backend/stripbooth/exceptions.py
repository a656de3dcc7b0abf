"""
StripBooth Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for the booth's error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with the right status code.
Who:   Raised by services and middleware; caught by global handlers.

Exception Hierarchy:
    StripBoothError (base)             → 500
    ├── ValidationError                → 400 Bad Request (client can fix)
    ├── NotFoundError                  → 404 Not Found
    ├── InvalidTransitionError         → 409 Conflict (lifecycle state)
    ├── RaffleExhaustedError           → 409 Conflict (nothing left to draw)
    ├── StorageError                   → 500 Internal Server Error
    ├── DatabaseError                  → 500 Internal Server Error
    └── RateLimitExceededError         → 429 Too Many Requests
"""

from typing import Any, Dict, Optional


class StripBoothError(Exception):
    """
    Base exception for all StripBooth application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(StripBoothError):
    """
    Raised when client input fails a business rule.

    When:  Malformed slot payload (non-UUID ids, position outside the
           sheet), unsupported package type, bad status string, empty or
           oversize upload.
    HTTP:  400 Bad Request (schema-level problems stay FastAPI's 422).
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


class NotFoundError(StripBoothError):
    """Raised when a requested order, project, template or file does not exist."""

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


class InvalidTransitionError(StripBoothError):
    """
    Raised when a lifecycle transition is not allowed from the current state.

    Example: downloading a template that is still filling, or marking a
    template printed twice.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        entity: str,
        current: str,
        target: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"Cannot move {entity} from '{current}' to '{target}'"
        ctx = context or {}
        ctx.update({"entity": entity, "current": current, "target": target})
        super().__init__(message=message, context=ctx)
        self.current = current
        self.target = target


class RaffleExhaustedError(StripBoothError):
    """Raised when a draw is requested but every entry has already won."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="There are no raffle entries left to draw", context=context)


class StorageError(StripBoothError):
    """
    Raised when the media blob store cannot read or write an object.

    HTTP:  500 Internal Server Error (paths are logged, never returned)
    """

    def __init__(
        self,
        message: str = "Media storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(StripBoothError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the SQL error is
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(StripBoothError):
    """Raised when a client exceeds the per-IP request rate limit."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
