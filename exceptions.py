"""
Custom Exceptions for ClipShare API
===================================

This module defines a hierarchy of custom exceptions that:

1. **Categorize Errors**: Every exception belongs to exactly one ErrorKind
2. **Carry Context**: A human-readable message safe to show to clients
3. **Enable Recovery**: Flows catch specific errors and compensate
4. **Support APIs**: ErrorKind maps to an HTTP status in one place
   (api/middleware/error_handler.py)

Exception Hierarchy:
    ClipShareError (base)
    ├── ValidationError                  (VALIDATION)
    │   └── UserNotFoundError
    ├── UserAlreadyExistsError           (CONFLICT)
    ├── AuthError                        (AUTH)
    │   ├── InvalidCredentialsError
    │   └── InvalidTokenError
    └── UpstreamError                    (UPSTREAM)
        ├── AssetUploadError
        ├── AssetDeleteError
        ├── DocumentStoreError
        │   └── DuplicateRecordError
        ├── RegistrationError
        ├── TokenIssueError
        └── ConfigurationError
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of error categories understood by the API layer."""
    VALIDATION = "validation"
    CONFLICT = "conflict"
    AUTH = "auth"
    UPSTREAM = "upstream"


class ClipShareError(Exception):
    """
    Base exception for all ClipShare errors.

    All custom exceptions inherit from this, allowing code to catch
    all ClipShare-related errors with a single except clause:

        try:
            await service.register_user(...)
        except ClipShareError as e:
            logger.error(f"Registration error: {e}")

    Attributes:
        message: Human-readable error description
        kind: ErrorKind used to pick the HTTP status
    """

    kind: ErrorKind = ErrorKind.UPSTREAM
    default_message = "Something went wrong"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self, status_code: int) -> dict:
        """Convert to the API error envelope."""
        return {
            "statusCode": status_code,
            "message": self.message,
            "success": False,
        }


# =============================================================================
# Client Errors
# =============================================================================

class ValidationError(ClipShareError):
    """Raised when required input is missing or malformed."""
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"


class UserNotFoundError(ValidationError):
    """
    Raised when login cannot find a user by email or username.

    Reported as a validation error so the response does not reveal which
    of the two lookup keys was wrong.
    """
    default_message = "User not found"


class UserAlreadyExistsError(ClipShareError):
    """Raised when the username or email is already registered."""
    kind = ErrorKind.CONFLICT
    default_message = "User with email or username already exists"


# =============================================================================
# Authentication Errors
# =============================================================================

class AuthError(ClipShareError):
    """Base class for authentication failures."""
    kind = ErrorKind.AUTH
    default_message = "Unauthorized request"


class InvalidCredentialsError(AuthError):
    """Raised when the submitted password does not match the stored hash."""
    default_message = "Invalid credentials"


class InvalidTokenError(AuthError):
    """Raised when a token is malformed, expired, revoked or unknown."""
    default_message = "Invalid token"


# =============================================================================
# Upstream Errors (asset host, document store, internal failures)
# =============================================================================

class UpstreamError(ClipShareError):
    """Base class for failures of collaborators or internal steps."""
    kind = ErrorKind.UPSTREAM


class AssetUploadError(UpstreamError):
    """Raised when the remote asset store rejects or fails an upload."""

    def __init__(self, message: str = "Failed to upload file", file_path: str = ""):
        self.file_path = file_path
        super().__init__(message)


class AssetDeleteError(UpstreamError):
    """Raised when the remote asset store does not confirm a deletion."""

    def __init__(self, public_id: str, result: str = ""):
        self.public_id = public_id
        self.result = result
        super().__init__(f"Deletion failed for {public_id}: {result or 'unknown error'}")


class DocumentStoreError(UpstreamError):
    """Raised when the document store fails an operation."""
    default_message = "Document store operation failed"


class DuplicateRecordError(DocumentStoreError):
    """Raised by the document store when a unique index is violated."""
    default_message = "Duplicate key error"


class RegistrationError(UpstreamError):
    """Raised when a user record cannot be created after uploads succeeded."""
    default_message = "Failed to register user"


class TokenIssueError(UpstreamError):
    """Raised when a token pair cannot be generated or persisted."""
    default_message = "Something went wrong while generating access and refresh tokens"


class ConfigurationError(UpstreamError):
    """Raised when there's a configuration problem."""

    def __init__(self, setting_name: str, issue: str):
        self.setting_name = setting_name
        super().__init__(f"Configuration error for '{setting_name}': {issue}")
