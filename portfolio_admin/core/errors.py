"""
Remote Call Error Taxonomy
==========================

Typed exceptions shared by the Content API client, the media host client and
the orchestrators built on top of them. HTTP status codes are translated into
these classes at the client boundary; everything above that boundary reasons
about error *kinds* only.

Every error carries a ``user_message`` that is safe to show in the console.
The technical message (``str(error)``) is meant for logs.

Author: Portfolio Admin Project
"""

from typing import Optional


# ============================================================================
# REMOTE CALL ERRORS
# ============================================================================

class RemoteCallError(Exception):
    """Base exception for all failed calls to the Content API or media host."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message or self.default_user_message)
        self.status_code = status_code
        self._user_message = user_message

    @property
    def user_message(self) -> str:
        """Human-readable description of the failure."""
        return self._user_message or self.default_user_message


class RateLimitError(RemoteCallError):
    """Raised when the server rejects a call with 429. The only retryable kind."""
    default_user_message = "Too many requests. Please wait a moment and try again."


class ConflictError(RemoteCallError):
    """Raised when a unique field (usually the slug) collides with an existing entity."""
    default_user_message = (
        "An item with this title or slug already exists. "
        "Please use a different title or slug."
    )


class PayloadTooLargeError(RemoteCallError):
    """Raised when the server refuses a request body as too large (413)."""
    default_user_message = "The submitted content is too large."


class NetworkUnreachableError(RemoteCallError):
    """Raised when no HTTP response was received at all."""
    default_user_message = "Unable to reach the server. Check your connection and try again."


class RequestTimeoutError(NetworkUnreachableError):
    """Raised when a request exceeds its timeout."""
    default_user_message = "The server took too long to respond. Please try again."


class ServerError(RemoteCallError):
    """Raised for 5xx responses."""
    default_user_message = "The server encountered an error. Please try again later."


class AuthenticationError(RemoteCallError):
    """Raised when the server rejects the credentials (401)."""
    default_user_message = "Your session has expired. Please log in again."


class PermissionDeniedError(RemoteCallError):
    """Raised when the user lacks permission for an operation (403)."""
    default_user_message = "You do not have permission to perform this action."


class NotFoundError(RemoteCallError):
    """Raised when a resource is not found (404)."""
    default_user_message = "The requested item no longer exists."


class BadRequestError(RemoteCallError):
    """Raised for 4xx responses without a more specific mapping."""
    default_user_message = "The server rejected the request."

    @property
    def user_message(self) -> str:
        # Validation failures carry a useful server message
        return self._user_message or str(self) or self.default_user_message


# ============================================================================
# MEDIA HOST ERRORS
# ============================================================================

class UploadConfigurationError(RemoteCallError):
    """Raised when the media host rejects the upload configuration (preset, cloud name)."""
    default_user_message = (
        "Image uploads are not configured correctly. "
        "You can still save without images."
    )


class MediaTransferError(RemoteCallError):
    """Raised when a file could not be transferred to the media host."""
    default_user_message = "The file could not be uploaded. Please try again."


# ============================================================================
# CLIENT-SIDE VALIDATION ERRORS
# ============================================================================
# These never reach the network layer.

class UploadValidationError(ValueError):
    """Raised when a file fails local type or size checks."""
    pass


class DraftValidationError(ValueError):
    """Raised when a draft is submitted with failing step validation."""

    def __init__(self, errors):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Draft validation failed for: {fields}")


def describe_error(error: BaseException) -> str:
    """Return the user-facing message for any error raised by a user action."""
    if isinstance(error, RemoteCallError):
        return error.user_message
    return str(error) or error.__class__.__name__
