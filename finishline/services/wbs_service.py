"""
WBS elements — Service Layer.

Read access to WBS elements and their audit trail, plus soft delete. A
deleted element stays in the blocking graph as a propagation boundary.
"""

import logging

from finishline.core.exceptions import InvalidStateError, NotFoundError
from finishline.models import db
from finishline.models.change_request import Change
from finishline.models.wbs import WbsElement

logger = logging.getLogger(__name__)


def get_wbs_element(wbs_element_id) -> WbsElement:
    element = db.session.get(WbsElement, wbs_element_id)
    if element is None:
        raise NotFoundError("WBS Element", wbs_element_id)
    return element


def list_element_changes(wbs_element_id) -> list[Change]:
    """Audit trail of a WBS element, oldest first."""
    element = get_wbs_element(wbs_element_id)
    return (
        Change.query.filter_by(wbs_element_id=element.id)
        .order_by(Change.date_implemented, Change.id)
        .all()
    )


def delete_wbs_element(user, wbs_element_id) -> WbsElement:
    element = get_wbs_element(wbs_element_id)
    if element.is_deleted:
        raise InvalidStateError("This WBS element has already been deleted!")
    element.soft_delete()
    db.session.commit()
    logger.info("WBS element %s deleted by user=%s", element.wbs_num, user.id)
    return element
