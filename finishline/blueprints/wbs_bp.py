"""
WBS Blueprint.

Endpoints:
  GET    /api/v1/wbs-elements/<id>                – element + work package + blocking ids
  GET    /api/v1/wbs-elements/<id>/changes        – audit trail of the element
  PUT    /api/v1/wbs-elements/<id>/work-package   – edit work package under an accepted CR
  DELETE /api/v1/wbs-elements/<id>                – soft delete
"""

from flask import Blueprint, jsonify, request

import finishline.services.wbs_service as wbs
from finishline.blueprints import current_user_id, register_error_handlers
from finishline.services.change_request_service import edit_work_package, get_user
from finishline.utils.errors import E, api_error

wbs_bp = Blueprint("wbs", __name__, url_prefix="/api/v1/wbs-elements")
register_error_handlers(wbs_bp)


@wbs_bp.route("/<int:wbs_id>", methods=["GET"])
def get_wbs_element(wbs_id):
    return jsonify(wbs.get_wbs_element(wbs_id).to_dict())


@wbs_bp.route("/<int:wbs_id>/changes", methods=["GET"])
def list_changes(wbs_id):
    changes = wbs.list_element_changes(wbs_id)
    return jsonify({"items": [c.to_dict() for c in changes], "total": len(changes)})


@wbs_bp.route("/<int:wbs_id>/work-package", methods=["PUT"])
def update_work_package(wbs_id):
    """Edit a work package; every differing field is recorded as a Change.

    Body: { cr_id, name?, start_date?: "YYYY-MM-DD", duration?: weeks }
    """
    data = request.get_json(silent=True) or {}
    cr_id = data.pop("cr_id", None)
    if not isinstance(cr_id, int):
        return api_error(E.VALIDATION_REQUIRED, "cr_id is required")
    fields = {k: v for k, v in data.items() if k in ("name", "start_date", "duration")}

    editor = get_user(current_user_id())
    changes = edit_work_package(editor, wbs_id, cr_id, fields)
    element = wbs.get_wbs_element(wbs_id)
    return jsonify({"wbs_element": element.to_dict(), "changes": [c.to_dict() for c in changes]})


@wbs_bp.route("/<int:wbs_id>", methods=["DELETE"])
def delete_wbs_element(wbs_id):
    user = get_user(current_user_id())
    element = wbs.delete_wbs_element(user, wbs_id)
    return jsonify({"deleted": True, "id": element.id})
