"""Error taxonomy for Journey Archive.

Every failure the core can produce falls into one of four families:

- ContentValidationError: client-side, raised before any network call
  (bad mime type, oversized file, empty required field, readiness not met).
- TransportError: the request never produced a usable response
  (connection refused, malformed body). Mapped to a generic retry message.
- ApplicationError: the backend answered ``{"success": false, ...}``.
  Mapped per known error code to calm, specific user copy.
- SilentGuardViolation: an attempted mutation of a locked record. It is
  created and returned internally but never raised.

Example:
    >>> try:
    ...     await client.delete_archive_item("item-1")
    ... except ApplicationError as e:
    ...     print(e.user_message)
    ... except TransportError as e:
    ...     print(e.user_message)
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# User-facing copy
# =============================================================================

GENERIC_TRANSPORT_MESSAGE = (
    "We could not reach the archive service. Please check your connection and try again."
)

GENERIC_APPLICATION_MESSAGE = "Something went wrong on our end. Please try again later."

ERROR_CODE_MESSAGES: dict[str, str] = {
    "auth_required": "Please sign in to continue.",
    "permission_denied": "You do not have permission to perform this action.",
    "not_found": "The requested item could not be found.",
    "validation_error": "Please check your input and try again.",
    "rate_limited": "Too many requests. Please wait a moment and try again.",
    "network_error": "Unable to connect. Please check your internet connection.",
    "timeout": "The request took too long. Please try again.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "parse_error": "We received an unexpected response. Please try again.",
    "steward_required": "Steward access is required for this action.",
    "already_processed": "This item has already been processed.",
    "invalid_status": "This action cannot be performed on items with this status.",
}


# =============================================================================
# Exceptions
# =============================================================================


class ArchiveError(Exception):
    """Base exception for all Journey Archive errors.

    Attributes:
        message: Technical message (safe to log).
        user_message: Calm, plain-English message (safe to show).
    """

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message


class ContentValidationError(ArchiveError):
    """Raised when input fails a client-side check before any network call.

    Attributes:
        field: Name of the offending field or file, if known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class SubmissionUnavailableError(ContentValidationError):
    """Raised when submit is invoked while the readiness predicate fails.

    Attributes:
        unmet: Names of the unmet readiness conditions (e.g. ``["introduction"]``).
    """

    def __init__(self, unmet: list[str]) -> None:
        names = ", ".join(unmet)
        super().__init__(f"Submission is not available yet: {names}", field=names)
        self.unmet = list(unmet)


class TransportError(ArchiveError):
    """Raised when a backend call fails below the application layer."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, GENERIC_TRANSPORT_MESSAGE)
        self.cause = cause


class ApplicationError(ArchiveError):
    """Raised when a collaborator answers with ``success: false``.

    Attributes:
        error_code: The ``error`` field of the response envelope.
        detail: Optional ``detail`` field of the response envelope.
        action: The action that was requested.
    """

    def __init__(
        self,
        error_code: str,
        detail: str | None = None,
        action: str | None = None,
    ) -> None:
        message = detail or error_code
        if action:
            message = f"{action} failed: {message}"
        super().__init__(message, user_message_for(error_code, detail))
        self.error_code = error_code
        self.detail = detail
        self.action = action

    def to_dict(self) -> dict[str, Any]:
        """Serialize back into a failure envelope."""
        data: dict[str, Any] = {"success": False, "error": self.error_code}
        if self.detail:
            data["detail"] = self.detail
        return data


class InvalidTransitionError(ArchiveError):
    """Raised when a review action is not permitted from the current status."""

    def __init__(self, status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} from status '{status}'",
            ERROR_CODE_MESSAGES["invalid_status"],
        )
        self.status = status
        self.action = action


class UploadInProgressError(ArchiveError):
    """Raised when the upload queue is asked to start or clear while a run is active."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} while uploads are in progress",
            "Please wait for the current uploads to finish.",
        )
        self.operation = operation


class SilentGuardViolation(ArchiveError):
    """An attempted mutation of a read-only record.

    Never raised. Carried on a MutationResult so tests and logs can see why
    a field did not change while the editing UI stays quiet.
    """

    def __init__(self, field: str, status: str) -> None:
        super().__init__(f"Field '{field}' is locked while status is '{status}'")
        self.field = field
        self.status = status


def user_message_for(error_code: str, detail: str | None = None) -> str:
    """Map an application error code to user copy.

    Unknown codes fall back to the backend detail, then to a generic message.
    """
    if error_code in ERROR_CODE_MESSAGES:
        return ERROR_CODE_MESSAGES[error_code]
    return detail or GENERIC_APPLICATION_MESSAGE
