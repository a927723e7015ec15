"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and get
consistent HTTP status codes everywhere.

Usage:
    from finishline.core.exceptions import NotFoundError, InvalidStateError

    raise NotFoundError(resource="WBS Element", resource_id=42)
    raise InvalidStateError("Cannot implement a denied change request")
"""


class NotFoundError(Exception):
    """Raised when a referenced WBS element, change request, or user does not exist.

    Args:
        resource: Human-readable entity name (e.g. "WBS Element", "Change Request").
        resource_id: The identifier that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" with id {resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidStateError(Exception):
    """Raised when the target record is in a state that forbids the operation.

    Examples: a change request that is unreviewed, denied, deleted, already
    reviewed, or too old to tie further changes to. The caller must change the
    underlying state before retrying. Maps to HTTP 400.
    """


class ExternalNotificationError(Exception):
    """Raised when the messaging provider rejects or fails a notification.

    Persisted state is never rolled back because of this error. Maps to HTTP 500.
    """
