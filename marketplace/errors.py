# marketplace/errors.py
"""
Exception hierarchy for the listing core.

Every error the lifecycle manager or the query planner raises derives from
``MarketplaceError`` so the HTTP layer can map it to a status code in one place.

Usage:
    from marketplace.errors import NotFoundError, ConflictError

    try:
        manager.mark_sold(listing_id, user.id)
    except ConflictError as e:
        logger.info("Double sell rejected: %s", e)
"""
from typing import Any, Dict, Iterable, Optional


class MarketplaceError(Exception):
    """Base exception for all listing-core errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "MARKETPLACE_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ValidationError(MarketplaceError):
    """Malformed or missing input. ``details["fields"]`` names the offending fields."""

    status_code = 400

    def __init__(
        self,
        message: str,
        fields: Optional[Dict[str, str]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"fields": fields} if fields else None,
            cause=cause,
        )
        self.fields = fields or {}

    @classmethod
    def for_field(cls, field: str, reason: str) -> "ValidationError":
        return cls(f"Invalid value for '{field}': {reason}", fields={field: reason})

    @classmethod
    def for_fields(cls, fields: Iterable[str], reason: str) -> "ValidationError":
        names = sorted(fields)
        return cls(
            f"{reason}: {', '.join(names)}",
            fields={name: reason for name in names},
        )


class UnauthenticatedError(MarketplaceError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, code="UNAUTHENTICATED")


class ForbiddenError(MarketplaceError):
    """The caller is authenticated but does not own the resource."""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="FORBIDDEN")


class NotFoundError(MarketplaceError):
    status_code = 404

    def __init__(self, resource: str, identifier: Optional[str] = None):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            details={"resource": resource, "id": identifier} if identifier else {"resource": resource},
        )
        self.resource = resource
        self.identifier = identifier


class ConflictError(MarketplaceError):
    """The requested transition is not allowed from the current state."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class StoreUnavailableError(MarketplaceError):
    """The listing store could not be reached or refused the operation."""

    status_code = 503

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        super().__init__(
            message=f"Listing store unavailable during {operation}",
            code="STORE_UNAVAILABLE",
            details={"operation": operation},
            cause=cause,
        )
        self.operation = operation


class ConfigurationError(MarketplaceError):
    """Settings are inconsistent. Raised at start-up, never per request."""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else None,
        )
