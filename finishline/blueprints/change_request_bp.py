"""
Change Request Blueprint.

Endpoints:
  GET    /api/v1/change-requests                 – list active CRs (status derived)
  POST   /api/v1/change-requests                 – submit a CR (+ proposed solutions)
  GET    /api/v1/change-requests/<id>            – CR detail with changes
  POST   /api/v1/change-requests/<id>/review     – accept / deny; cascades timeline impact
  DELETE /api/v1/change-requests/<id>            – soft delete an unreviewed CR

Acting user: ``X-User-Id`` header. Service layer owns all business logic and commits.
"""

from flask import Blueprint, jsonify, request

import finishline.services.change_request_service as crs
from finishline.blueprints import current_user_id, paginate_query, register_error_handlers
from finishline.services.notification_service import notifier_from_config
from finishline.utils.errors import E, api_error

change_request_bp = Blueprint("change_requests", __name__, url_prefix="/api/v1/change-requests")
register_error_handlers(change_request_bp)


@change_request_bp.route("", methods=["GET"])
def list_change_requests():
    """List active change requests, optionally filtered by wbs_element_id."""
    q = crs.list_change_requests_query(request.args.get("wbs_element_id", type=int))
    items, total = paginate_query(q)
    return jsonify({"items": [cr.to_dict(include_children=False) for cr in items], "total": total})


@change_request_bp.route("", methods=["POST"])
def create_change_request():
    """Submit a change request.

    Body: { wbs_element_id, type, what?, proposed_solutions?: [
              {description, scope_impact, timeline_impact, budget_impact}] }
    """
    data = request.get_json(silent=True) or {}
    if not data.get("wbs_element_id") or not data.get("type"):
        return api_error(E.VALIDATION_REQUIRED, "wbs_element_id and type are required")
    solutions = data.get("proposed_solutions") or []
    if not isinstance(solutions, list):
        return api_error(E.VALIDATION_INVALID, "proposed_solutions must be an array")

    submitter = crs.get_user(current_user_id())
    cr = crs.create_change_request(
        submitter,
        data["wbs_element_id"],
        data["type"],
        what=data.get("what", ""),
        proposed_solutions=solutions,
        notifier=notifier_from_config(),
    )
    return jsonify(cr.to_dict()), 201


@change_request_bp.route("/<int:cr_id>", methods=["GET"])
def get_change_request(cr_id):
    return jsonify(crs.get_change_request(cr_id).to_dict())


@change_request_bp.route("/<int:cr_id>/review", methods=["POST"])
def review_change_request(cr_id):
    """Accept or deny a change request.

    Body: { accepted: bool, review_notes?: str, ps_id?: int }
    """
    data = request.get_json(silent=True) or {}
    accepted = data.get("accepted")
    if not isinstance(accepted, bool):
        return api_error(E.VALIDATION_REQUIRED, "accepted (boolean) is required")
    ps_id = data.get("ps_id")
    if ps_id is not None and (isinstance(ps_id, bool) or not isinstance(ps_id, int)):
        return api_error(E.VALIDATION_INVALID, "ps_id must be an integer")

    reviewer = crs.get_user(current_user_id())
    cr = crs.review_change_request(
        reviewer,
        cr_id,
        accepted,
        review_notes=data.get("review_notes", ""),
        ps_id=ps_id,
        notifier=notifier_from_config(),
    )
    return jsonify(cr.to_dict())


@change_request_bp.route("/<int:cr_id>", methods=["DELETE"])
def delete_change_request(cr_id):
    user = crs.get_user(current_user_id())
    cr = crs.delete_change_request(user, cr_id)
    return jsonify({"deleted": True, "id": cr.id})
