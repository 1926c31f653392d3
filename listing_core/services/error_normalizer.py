"""
Error normalizer.

Classifies raw failures from the gateway, storage, transport, token and
model layers into the ``ListingCoreException`` taxonomy, and maps
normalized errors to user-facing details.
"""

import functools
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx
import jwt
from pydantic import ValidationError

from ..domain.exceptions import (
    AuthenticationRequired,
    ListingCoreException,
    NotFound,
    RemoteOperationFailed,
    Unauthorized,
    Unknown,
    ValidationFailed,
)
from ..infrastructure.gateway import GatewayError
from ..infrastructure.storage import StorageError
from ..logging_config import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

# errorType values the gateway uses for authorization failures
UNAUTHORIZED_ERROR_TYPES = {"Unauthorized", "UnauthorizedException"}


@dataclass(frozen=True)
class ErrorDetails:
    """User-facing description of a normalized error."""

    title: str
    message: str
    code: str
    recoverable: bool = True
    suggestions: List[str] = field(default_factory=list)


ERROR_DETAILS: Dict[str, ErrorDetails] = {
    "AUTHENTICATION_REQUIRED": ErrorDetails(
        title="Sign In Required",
        message="Please sign in to continue.",
        code="AUTHENTICATION_REQUIRED",
        suggestions=["Sign in to your account", "Create a new account"],
    ),
    "UNAUTHORIZED": ErrorDetails(
        title="Not Allowed",
        message="You can only change your own listings.",
        code="UNAUTHORIZED",
        recoverable=False,
    ),
    "FILE_SIZE_ERROR": ErrorDetails(
        title="File Too Large",
        message="The selected file is too large. Please choose a smaller file.",
        code="FILE_SIZE_ERROR",
        suggestions=[
            "Choose a file smaller than 10MB",
            "Compress your image before uploading",
            "Try a different image format",
        ],
    ),
    "FILE_TYPE_ERROR": ErrorDetails(
        title="Invalid File Type",
        message="This file type is not supported. Please choose a valid image file.",
        code="FILE_TYPE_ERROR",
        suggestions=[
            "Use JPEG, PNG, or WebP format",
            "Convert your file to a supported format",
            "Choose a different image",
        ],
    ),
    "VALIDATION_FAILED": ErrorDetails(
        title="Invalid Input",
        message="Some of the information entered is not valid.",
        code="VALIDATION_FAILED",
        suggestions=["Review the highlighted fields"],
    ),
    "NETWORK_ERROR": ErrorDetails(
        title="Connection Error",
        message="Unable to connect to our servers. Please check your internet connection.",
        code="NETWORK_ERROR",
        suggestions=[
            "Check your internet connection",
            "Try refreshing the page",
            "Try again in a few moments",
        ],
    ),
    "TIMEOUT_ERROR": ErrorDetails(
        title="Request Timeout",
        message="The request took too long to complete. Please try again.",
        code="TIMEOUT_ERROR",
        suggestions=[
            "Try again",
            "Check your internet connection",
            "Contact support if problem persists",
        ],
    ),
    "REMOTE_OPERATION_FAILED": ErrorDetails(
        title="Server Error",
        message="An error occurred while processing your request. Please try again.",
        code="GRAPHQL_ERROR",
        suggestions=[
            "Try refreshing the page",
            "Try again in a few moments",
            "Contact support if problem persists",
        ],
    ),
    "NOT_FOUND": ErrorDetails(
        title="Not Found",
        message="The item you are looking for does not exist or was removed.",
        code="NOT_FOUND",
        recoverable=False,
    ),
    "UNKNOWN_ERROR": ErrorDetails(
        title="Something Went Wrong",
        message="An unexpected error occurred. Please try again.",
        code="UNKNOWN_ERROR",
        suggestions=[
            "Try refreshing the page",
            "Try again later",
            "Contact support if problem persists",
        ],
    ),
}


def _denied(service: str, reason: str, context: Dict[str, Any]) -> ListingCoreException:
    """
    Classify an access denial reported by a remote service.

    Only a signed-in user mutating a listing is an ownership violation.
    Guests need to sign in; any other denial is a remote failure.
    """
    user_id = context.get("user_id")
    if not user_id:
        return AuthenticationRequired(reason)
    if context.get("mutation") and context.get("listing_id"):
        return Unauthorized(user_id, context["listing_id"], context.get("action", "modify"))
    return RemoteOperationFailed(service, reason, "Forbidden")


def _from_status(
    status_code: Optional[int], service: str, reason: str, context: Dict[str, Any]
) -> Optional[ListingCoreException]:
    if status_code == 401:
        return AuthenticationRequired(reason)
    if status_code == 403:
        return _denied(service, reason, context)
    if status_code == 404:
        return NotFound(context.get("entity", "Resource"), context.get("identifier"))
    return None


def normalize_error(
    error: BaseException, context: Optional[Dict[str, Any]] = None
) -> ListingCoreException:
    """
    Classify a raw failure.

    Already normalized errors are returned unchanged.

    Args:
        error: Raw exception
        context: Optional hints (``entity``, ``identifier``, ``listing_id``,
            ``user_id``, ``mutation``, ``action``) used to build NotFound
            and Unauthorized errors

    Returns:
        Exactly one normalized exception
    """
    context = context or {}

    if isinstance(error, ListingCoreException):
        return error

    if isinstance(error, GatewayError):
        first = error.first_error
        error_type = first.get("errorType")
        reason = first.get("message") or error.message
        if error_type in UNAUTHORIZED_ERROR_TYPES:
            return _denied("gateway", reason, context)
        mapped = _from_status(error.status_code, "gateway", reason, context)
        if mapped is not None:
            return mapped
        return RemoteOperationFailed("gateway", reason, error_type)

    if isinstance(error, StorageError):
        mapped = _from_status(error.status_code, "storage", error.message, context)
        if mapped is not None:
            return mapped
        return RemoteOperationFailed("storage", error.message, error.operation)

    if isinstance(error, httpx.TimeoutException):
        return RemoteOperationFailed("network", "request timed out", "TimeoutError")

    if isinstance(error, httpx.TransportError):
        return RemoteOperationFailed("network", str(error) or None, "NetworkError")

    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        mapped = _from_status(status_code, "gateway", str(error), context)
        if mapped is not None:
            return mapped
        return RemoteOperationFailed("gateway", f"HTTP {status_code}")

    if isinstance(error, jwt.ExpiredSignatureError):
        return AuthenticationRequired("token has expired")

    if isinstance(error, jwt.InvalidTokenError):
        return AuthenticationRequired(f"invalid token: {error}")

    if isinstance(error, ValidationError):
        first = error.errors()[0] if error.errors() else {}
        loc = ".".join(str(part) for part in first.get("loc", ())) or error.title
        return ValidationFailed(loc, first.get("input"), first.get("msg", str(error)))

    return Unknown(str(error) or None)


def describe_error(error: BaseException) -> ErrorDetails:
    """
    User-facing details for any error.

    Raw errors are normalized first.
    """
    normalized_error = normalize_error(error)

    if isinstance(normalized_error, ValidationFailed):
        reason = (normalized_error.details.get("reason") or "").lower()
        if "file" in reason and "size" in reason:
            return ERROR_DETAILS["FILE_SIZE_ERROR"]
        if "file" in reason and "type" in reason:
            return ERROR_DETAILS["FILE_TYPE_ERROR"]

    if isinstance(normalized_error, RemoteOperationFailed):
        if normalized_error.error_type == "TimeoutError":
            return ERROR_DETAILS["TIMEOUT_ERROR"]
        if normalized_error.service == "network":
            return ERROR_DETAILS["NETWORK_ERROR"]

    return ERROR_DETAILS.get(normalized_error.code, ERROR_DETAILS["UNKNOWN_ERROR"])


def normalized(operation: str, mutation: bool = False) -> Callable[[F], F]:
    """
    Decorator funneling every failure of a coroutine through ``normalize_error``.

    The normalized error is raised from the original one, so the cause
    stays on ``__cause__``. Keyword arguments named ``listing_id`` and
    ``session`` feed the classification context.

    Args:
        operation: Name used in log events
        mutation: Whether the coroutine changes a listing; a denied
            mutation by a signed-in user is an ownership violation
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except ListingCoreException as e:
                logger.warning(
                    "Operation failed",
                    operation=operation,
                    error_code=e.code,
                    error=e.message,
                )
                raise
            except Exception as e:
                context = _context_from_call(func, args, kwargs)
                if mutation:
                    context.update(mutation=True, action=operation.rsplit(".", 1)[-1])
                error = normalize_error(e, context)
                logger.error(
                    "Operation failed",
                    operation=operation,
                    error_code=error.code,
                    error=error.message,
                    error_type=type(e).__name__,
                )
                raise error from e

        return wrapper  # type: ignore[return-value]

    return decorator


def _context_from_call(
    func: Callable[..., Any], args: tuple, kwargs: Dict[str, Any]
) -> Dict[str, Any]:
    try:
        arguments = inspect.signature(func).bind_partial(*args, **kwargs).arguments
    except TypeError:
        arguments = dict(kwargs)

    context: Dict[str, Any] = {}
    session = arguments.get("session")
    if session is not None:
        context["user_id"] = getattr(session, "user_id", None)

    for name, entity in (("listing_id", "Listing"), ("favorite_id", "Favorite")):
        identifier = arguments.get(name)
        if identifier:
            context[name] = identifier
            context["entity"] = entity
            context["identifier"] = identifier
    return context
