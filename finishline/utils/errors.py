"""JSON error bodies shared by every blueprint.

Body shape: ``{"error": <message>, "code": <E.*>, "details"?: {...}}``.

Usage:
    from finishline.utils.errors import api_error, error_for, E

    return api_error(E.VALIDATION_REQUIRED, "accepted (boolean) is required")
    return api_error(*error_for(exc))
"""

from __future__ import annotations

from flask import jsonify

from finishline.core.exceptions import (
    ExternalNotificationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


class E:
    """Machine-readable error codes."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"   # missing request field
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"     # malformed request field
    VALIDATION_RULE = "ERR_VALIDATION_RULE"           # business rule (422)
    NOT_FOUND = "ERR_NOT_FOUND"
    INVALID_STATE = "ERR_INVALID_STATE"               # CR / element state forbids the call
    NOTIFICATION = "ERR_NOTIFICATION"                 # Slack failed after commit
    INTERNAL = "ERR_INTERNAL"


STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_RULE: 422,
    E.NOT_FOUND: 404,
    E.INVALID_STATE: 400,
    E.NOTIFICATION: 500,
    E.INTERNAL: 500,
}

_CODE_BY_EXCEPTION = (
    (NotFoundError, E.NOT_FOUND),
    (ValidationError, E.VALIDATION_RULE),
    (InvalidStateError, E.INVALID_STATE),
    (ExternalNotificationError, E.NOTIFICATION),
)


def error_for(exc: Exception) -> tuple[str, str]:
    """Map a service exception to ``(code, message)``; unknown types are internal."""
    for exc_type, code in _CODE_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return code, str(exc)
    return E.INTERNAL, "Internal server error"


def api_error(code: str, message: str, *, status: int | None = None,
              details: dict | None = None):
    """Build a ``(response, status)`` tuple for a Flask view.

    Args:
        code: One of the ``E.*`` constants.
        message: Human-readable explanation.
        status: HTTP status override; defaults to ``STATUS_BY_CODE[code]`` or 400.
        details: Optional structured payload (field values, ids).
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_BY_CODE.get(code, 400)
