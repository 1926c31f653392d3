"""
Normalized exceptions for the listing data-access core.

Every public operation surfaces one of these. They represent domain-level
errors and are independent of the gateway and storage transports.
"""

from typing import Any, Optional


class ListingCoreException(Exception):
    """Base exception for all normalized listing errors."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationRequired(ListingCoreException):
    """Raised when an operation needs a current user and there is none."""

    code = "AUTHENTICATION_REQUIRED"

    def __init__(self, reason: Optional[str] = None):
        message = "User must be authenticated"
        if reason:
            message += f": {reason}"
        super().__init__(message=message, details={"reason": reason})


class Unauthorized(ListingCoreException):
    """Raised when the acting user does not own the listing being mutated."""

    code = "UNAUTHORIZED"

    def __init__(self, user_id: str, listing_id: str, action: str = "modify"):
        message = f"You can only {action} your own listings"
        super().__init__(
            message=message,
            details={"user_id": user_id, "listing_id": listing_id, "action": action},
        )


class ValidationFailed(ListingCoreException):
    """Raised when a file or input violates a client-side constraint."""

    code = "VALIDATION_FAILED"

    def __init__(self, field: str, value: Any, reason: str):
        message = f"Validation failed for {field}: {reason}"
        super().__init__(
            message=message,
            details={"field": field, "value": str(value), "reason": reason},
        )


class RemoteOperationFailed(ListingCoreException):
    """Raised when the gateway or storage reports a failure."""

    code = "REMOTE_OPERATION_FAILED"

    def __init__(
        self,
        service: str,
        reason: Optional[str] = None,
        error_type: Optional[str] = None,
    ):
        message = f"Remote operation on '{service}' failed"
        if reason:
            message += f": {reason}"
        super().__init__(
            message=message,
            details={"service": service, "reason": reason, "error_type": error_type},
        )
        self.service = service
        self.reason = reason
        self.error_type = error_type


class NotFound(ListingCoreException):
    """Raised when a listing, favorite or stored object does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, identifier: Optional[str] = None):
        message = f"{entity} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(
            message=message, details={"entity": entity, "identifier": identifier}
        )


class Unknown(ListingCoreException):
    """Raised for failures that fit no other category."""

    code = "UNKNOWN_ERROR"

    def __init__(self, reason: Optional[str] = None):
        super().__init__(
            message=reason or "An unexpected error occurred",
            details={"reason": reason},
        )
