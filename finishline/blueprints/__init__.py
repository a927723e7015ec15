"""
FinishLine
Blueprint helpers shared by every API blueprint.
"""

import logging

from flask import request

from finishline.core.exceptions import (
    ExternalNotificationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from finishline.utils.errors import api_error, error_for

logger = logging.getLogger(__name__)


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def current_user_id():
    """Acting user id from the ``X-User-Id`` header (set by the auth proxy)."""
    return request.headers.get("X-User-Id", type=int)


def register_error_handlers(bp):
    """Map service-layer exceptions to standard JSON error responses."""

    @bp.errorhandler(NotFoundError)
    @bp.errorhandler(InvalidStateError)
    def _handle_client_error(error):
        return api_error(*error_for(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error):
        return api_error(*error_for(error), details=error.details)

    @bp.errorhandler(ExternalNotificationError)
    def _handle_notification(error):
        logger.error("Notification failed endpoint=%s: %s", request.endpoint, error)
        return api_error(*error_for(error))
