"""
dineAR Backend — Custom Exception Hierarchy
============================================

What:  Defines application-specific exceptions for every expected failure.
Why:   Each pipeline stage raises its own exception type; a single translator
       in main.py maps the exception's `kind` to an HTTP status. Routes and
       services never build error responses themselves.
How:   Each exception class carries a `kind` tag, a client-safe message and an
       optional context dict (logged server-side, never returned).
Who:   Raised by services, dependencies and middleware; caught by global handlers.

Exception Hierarchy:
    DineARError (base)                       INTERNAL        → 500
    ├── AuthenticationError                  AUTHENTICATION  → 401
    │   ├── TokenInvalidError
    │   ├── TokenExpiredError
    │   └── InvalidCredentialsError
    ├── AuthorizationError                   AUTHORIZATION   → 403
    ├── ValidationError                      VALIDATION      → 400 (batched details)
    ├── NotFoundError                        NOT_FOUND       → 404
    ├── RateLimitExceededError               RATE_LIMITED    → 429 (+ Retry-After)
    ├── UploadRejectedError                  UPLOAD_REJECTED → 400
    ├── ConflictError                        CONFLICT        → 409
    ├── FileStorageError                     INTERNAL        → 500
    └── DatabaseError                        INTERNAL        → 500

Security Note:
    Every AuthenticationError subclass except InvalidCredentialsError shares one
    public message. Clients cannot distinguish a forged token from an expired one
    or from a token whose user no longer exists.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Tag switched on by the central exception translator."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UPLOAD_REJECTED = "upload_rejected"
    CONFLICT = "conflict"
    INTERNAL = "internal"


HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPLOAD_REJECTED: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}

AUTHENTICATION_FAILED = "Authentication failed"


class DineARError(Exception):
    """
    Base exception for all dineAR application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]


class AuthenticationError(DineARError):
    """
    Missing, malformed, forged or expired bearer token, or a token whose
    identity no longer exists.

    HTTP: 401 Unauthorized
    """

    kind = ErrorKind.AUTHENTICATION

    def __init__(
        self,
        message: str = AUTHENTICATION_FAILED,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TokenInvalidError(AuthenticationError):
    """Signature mismatch, malformed token or unusable claims."""

    def __init__(self, reason: str = "invalid", context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["reason"] = reason
        super().__init__(context=ctx)


class TokenExpiredError(AuthenticationError):
    """Token is past its `exp` claim."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["reason"] = "expired"
        super().__init__(context=ctx)


class InvalidCredentialsError(AuthenticationError):
    """
    Login failed.

    Raised for both unknown email and wrong password with the same message, so
    the response cannot be used to enumerate registered addresses.
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid credentials", context=context)


class AuthorizationError(DineARError):
    """
    Authenticated identity does not own the resource it tried to change.

    HTTP: 403 Forbidden
    """

    kind = ErrorKind.AUTHORIZATION

    def __init__(
        self,
        message: str = "Not authorized to access this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(DineARError):
    """
    Raised when client input fails validation.

    Carries every violation found, not just the first, as a list of
    {"field": ..., "message": ...} dicts returned to the client under `details`.

    Example response:
        {
            "success": false,
            "error": "Validation failed",
            "details": [
                {"field": "name", "message": "Dish name is required"},
                {"field": "plate_size", "message": "Plate size must be small, medium, or large"}
            ]
        }
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[List[Dict[str, str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.details = details or []


class NotFoundError(DineARError):
    """
    Raised when a well-formed id does not resolve to a stored record.

    HTTP: 404 Not Found
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource.capitalize()} not found", context=ctx)


class RateLimitExceededError(DineARError):
    """
    Raised when a rate-limit key exceeds its ceiling within the window.

    HTTP: 429 Too Many Requests

    Response includes:
        - retry_after: Seconds until the window resets
        - Retry-After header for HTTP-compliant clients
    """

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        retry_after: int = 60,
        message: str = "Too many requests, please slow down",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class UploadRejectedError(DineARError):
    """
    Uploaded file refused: wrong content type, too large, empty, wrong field
    name or more than one file.

    HTTP: 400 Bad Request
    """

    kind = ErrorKind.UPLOAD_REJECTED

    def __init__(
        self,
        message: str = "File upload error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConflictError(DineARError):
    """
    A unique field already holds the submitted value.

    HTTP: 409 Conflict
    """

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(DineARError):
    """
    Raised when file system operations fail (disk full, permission denied).

    HTTP: 500. The message is generic; paths and OS errors stay in context.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(DineARError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500. Detailed error info (SQL, constraint names) is logged only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
