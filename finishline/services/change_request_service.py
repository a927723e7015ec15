"""
Change Requests — Service Layer.

Business logic for:
    - Status derivation:   Open / Accepted / Denied / Implemented (pure, never stored)
    - Date implemented:    earliest Change timestamp of a CR
    - Acceptance guard:    deleted / unreviewed / denied / stale CRs are rejected
    - Review:              accept or deny; accepted timeline impact cascades
                           through the blocking graph
    - Lifecycle:           create (with proposed solutions), soft delete, read
    - CR-tied edits:       work-package edits recorded as Changes of an accepted CR

Services commit; blueprints only translate HTTP. Notifications are sent after
the commit so a Slack failure never undoes a persisted review.
"""

import logging
from datetime import date, datetime, timedelta, timezone

from flask import current_app, has_app_context

from finishline.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from finishline.models import db
from finishline.models.change_request import (
    CR_STATUS_ACCEPTED,
    CR_STATUS_DENIED,
    CR_STATUS_IMPLEMENTED,
    CR_STATUS_OPEN,
    CR_TYPES,
    STANDARD_CR_TYPES,
    Change,
    ChangeRequest,
    MessageInfo,
    ProposedSolution,
)
from finishline.models.team import User
from finishline.models.wbs import WbsElement
from finishline.services.blocking_propagation import (
    build_change_detail,
    format_date,
    update_blocking,
)

logger = logging.getLogger(__name__)

# Accepted CRs can only have further changes tied to them for this long
STALE_AFTER_DAYS = 5


def _to_utc(dt: datetime) -> datetime:
    """Normalise naive (SQLite) datetimes to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _stale_after_days() -> int:
    if has_app_context():
        return current_app.config.get("CR_STALE_AFTER_DAYS", STALE_AFTER_DAYS)
    return STALE_AFTER_DAYS


# ── Derived status ───────────────────────────────────────────────────────────


def calculate_change_request_status(change_request) -> str:
    """
    Derive the lifecycle status of a change request. First match wins:

        has ≥1 Change                     → Implemented
        accepted is True and reviewed     → Accepted
        reviewed                          → Denied
        otherwise                         → Open
    """
    if change_request.changes:
        return CR_STATUS_IMPLEMENTED
    if change_request.accepted is True and change_request.date_reviewed:
        return CR_STATUS_ACCEPTED
    if change_request.date_reviewed:
        return CR_STATUS_DENIED
    return CR_STATUS_OPEN


def get_date_implemented(change_request) -> datetime | None:
    """Earliest ``date_implemented`` among the CR's Changes, or None."""
    result = None
    for change in change_request.changes:
        if result is None or _to_utc(change.date_implemented) < _to_utc(result):
            result = change.date_implemented
    return result


def all_change_requests_reviewed(change_requests) -> bool:
    """True when every change request in the iterable has been reviewed."""
    return all(cr.date_reviewed for cr in change_requests)


# ── Lookups ──────────────────────────────────────────────────────────────────


def get_user(user_id) -> User:
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def get_change_request(cr_id) -> ChangeRequest:
    """Return an active (not deleted) change request."""
    cr = db.session.get(ChangeRequest, cr_id)
    if cr is None or cr.is_deleted:
        raise NotFoundError("Change Request", cr_id)
    return cr


def list_change_requests_query(wbs_element_id=None):
    """Query of active change requests, newest first (caller paginates)."""
    q = ChangeRequest.query_active()
    if wbs_element_id:
        q = q.filter_by(wbs_element_id=wbs_element_id)
    return q.order_by(ChangeRequest.id.desc())


# ── Acceptance guard ─────────────────────────────────────────────────────────


def validate_change_request_accepted(cr_id, now: datetime | None = None) -> ChangeRequest:
    """
    Make sure a change request can have changes tied to it.

    Raises:
        NotFoundError: no such change request.
        InvalidStateError: deleted, unreviewed, denied, or stale (first
            implemented more than CR_STALE_AFTER_DAYS ago).
    """
    cr = db.session.get(ChangeRequest, cr_id)
    now = now or datetime.now(timezone.utc)

    if cr is None:
        raise NotFoundError("Change Request", cr_id)
    if cr.is_deleted:
        raise InvalidStateError("Cannot use a deleted change request!")
    if cr.accepted is None:
        raise InvalidStateError("Cannot implement an unreviewed change request")
    if not cr.accepted:
        raise InvalidStateError("Cannot implement a denied change request")
    if not cr.date_reviewed:
        raise InvalidStateError("Cannot use an unreviewed change request")

    date_implemented = get_date_implemented(cr)
    if date_implemented and _to_utc(now) - _to_utc(date_implemented) > timedelta(days=_stale_after_days()):
        raise InvalidStateError("Cannot tie changes to outdated change request")

    return cr


# ── Create / delete ──────────────────────────────────────────────────────────


def create_change_request(submitter, wbs_element_id, cr_type, what="",
                          proposed_solutions=None, notifier=None) -> ChangeRequest:
    """
    Create a change request (plus proposed solutions) and announce it.

    The CR is committed before any Slack call; posted threads are stored as
    MessageInfo rows so the review can reply to them.
    """
    if cr_type not in CR_TYPES:
        raise ValidationError(
            f"type must be one of {sorted(CR_TYPES)}", details={"type": cr_type},
        )
    wbs_element = db.session.get(WbsElement, wbs_element_id)
    if wbs_element is None:
        raise NotFoundError("WBS Element", wbs_element_id)
    if wbs_element.is_deleted:
        raise InvalidStateError("Cannot create a change request on a deleted WBS element!")

    cr = ChangeRequest(
        wbs_element_id=wbs_element.id,
        submitter_id=submitter.id,
        type=cr_type,
        what=what or "",
    )
    for index, ps in enumerate(proposed_solutions or []):
        cr.proposed_solutions.append(_build_proposed_solution(index, ps))
    db.session.add(cr)
    db.session.commit()
    logger.info("Change request %s (%s) created on wbs=%s by user=%s",
                cr.id, cr_type, wbs_element.wbs_num, submitter.id)

    if notifier is not None:
        project = wbs_element.project_element() or wbs_element
        teams = [project.team] if project.team else []
        budget_impact = sum(ps.budget_impact for ps in cr.proposed_solutions)
        threads = []
        # Threads posted before a Slack failure are still stored for the review replies
        try:
            notifier.notify_new_change_request(
                teams, cr, submitter, wbs_element, project.name, budget_impact, posted=threads,
            )
        finally:
            add_slack_threads_to_change_request(cr.id, threads)

    return cr


def _build_proposed_solution(index, data) -> ProposedSolution:
    if not isinstance(data, dict):
        raise ValidationError("each proposed solution must be an object",
                              details={"proposed_solutions": index})
    impacts = {}
    for field in ("timeline_impact", "budget_impact"):
        value = data.get(field, 0)
        if value is None:
            value = 0
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{field} must be an integer",
                                  details={"proposed_solutions": index, field: value})
        impacts[field] = value
    return ProposedSolution(
        description=data.get("description") or "",
        scope_impact=data.get("scope_impact") or "",
        **impacts,
    )


def add_slack_threads_to_change_request(cr_id, threads) -> list[MessageInfo]:
    """Persist the Slack messages posted for a change request."""
    infos = [
        MessageInfo(change_request_id=cr_id, channel_id=t["channel_id"], timestamp=t["ts"])
        for t in threads
    ]
    if infos:
        db.session.add_all(infos)
        db.session.commit()
    return infos


def delete_change_request(user, cr_id) -> ChangeRequest:
    """Soft-delete an unreviewed change request."""
    cr = db.session.get(ChangeRequest, cr_id)
    if cr is None:
        raise NotFoundError("Change Request", cr_id)
    if cr.is_deleted:
        raise InvalidStateError("This change request has already been deleted!")
    if cr.date_reviewed:
        raise InvalidStateError("Cannot delete a reviewed change request!")

    cr.soft_delete()
    db.session.commit()
    logger.info("Change request %s deleted by user=%s", cr.id, user.id)
    return cr


# ── Review ───────────────────────────────────────────────────────────────────


def review_change_request(reviewer, cr_id, accepted, review_notes="",
                          ps_id=None, notifier=None) -> ChangeRequest:
    """
    Accept or deny a change request.

    When accepted with a proposed solution that has a timeline impact on a
    work package, that work package's duration grows by the impact and every
    work package it transitively blocks starts later by the same amount.
    All writes commit together; any failure rolls the whole review back.

    Raises:
        NotFoundError: CR or proposed solution missing, or a blocking element
            disappeared mid-traversal.
        InvalidStateError: CR deleted, already reviewed, or on a deleted element.
        ValidationError: accepting a standard CR without choosing a solution.
        ExternalNotificationError: Slack failed after the review was committed.
    """
    cr = db.session.get(ChangeRequest, cr_id)
    if cr is None:
        raise NotFoundError("Change Request", cr_id)
    if cr.is_deleted:
        raise InvalidStateError("Cannot review a deleted change request!")
    if cr.date_reviewed:
        raise InvalidStateError("This change request has already been reviewed!")
    if cr.wbs_element.is_deleted:
        raise InvalidStateError("Cannot review a change request on a deleted WBS element!")

    proposed_solution = None
    if ps_id is not None:
        proposed_solution = next((ps for ps in cr.proposed_solutions if ps.id == ps_id), None)
        if proposed_solution is None:
            raise NotFoundError("Proposed Solution", ps_id)
    elif accepted and cr.type in STANDARD_CR_TYPES and cr.proposed_solutions:
        raise ValidationError("No proposed solution selected for scope change request")

    try:
        if accepted and proposed_solution is not None:
            proposed_solution.approved = True
            work_package = cr.wbs_element.work_package
            if proposed_solution.timeline_impact and work_package is not None:
                _extend_duration(work_package, proposed_solution.timeline_impact, cr.id, reviewer.id)
                update_blocking(work_package, proposed_solution.timeline_impact, cr.id, reviewer)

        cr.accepted = bool(accepted)
        cr.reviewer_id = reviewer.id
        cr.review_notes = review_notes or ""
        cr.date_reviewed = datetime.now(timezone.utc)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Review of change request %s failed; rolled back", cr_id)
        raise

    logger.info("Change request %s %s by user=%s",
                cr.id, "accepted" if cr.accepted else "denied", reviewer.id)

    if notifier is not None:
        submitter = cr.submitter
        notifier.notify_reviewed(submitter.slack_id if submitter else None, cr.id)
        notifier.notify_status_in_threads(cr.message_infos, cr.id, cr.accepted)

    return cr


def _extend_duration(work_package, weeks, cr_id, implementer_id) -> Change:
    """Grow the seed work package by the accepted timeline impact."""
    old = work_package.duration
    new = old + weeks
    change = Change(
        change_request_id=cr_id,
        wbs_element_id=work_package.wbs_element_id,
        implementer_id=implementer_id,
        detail=build_change_detail("Duration", f"{old} weeks", f"{new} weeks"),
        old_value=str(old),
        new_value=str(new),
    )
    work_package.duration = new
    db.session.add(change)
    db.session.flush()
    return change


# ── Work package edits tied to a CR ──────────────────────────────────────────


_EDITABLE_FIELDS = (
    ("name", "Name"),
    ("start_date", "Start Date"),
    ("duration", "Duration"),
)


def _display(field, value):
    if field == "start_date":
        return format_date(value)
    if field == "duration":
        return f"{value} weeks"
    return value


def _parse_edits(data) -> dict:
    """Validate work-package edit fields; raise ValidationError on bad input."""
    updates = dict(data)
    if "name" in updates:
        name = updates["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name must be a non-empty string", details={"name": name})
        updates["name"] = name.strip()
    if "start_date" in updates:
        raw = updates["start_date"]
        if isinstance(raw, str):
            try:
                updates["start_date"] = date.fromisoformat(raw)
            except ValueError as exc:
                raise ValidationError("start_date must be an ISO date",
                                      details={"start_date": raw}) from exc
        elif not isinstance(raw, date) or isinstance(raw, datetime):
            raise ValidationError("start_date must be an ISO date", details={"start_date": raw})
    if "duration" in updates:
        duration = updates["duration"]
        if isinstance(duration, bool) or not isinstance(duration, int):
            raise ValidationError("duration must be an integer number of weeks",
                                  details={"duration": duration})
        if duration < 1:
            raise ValidationError("duration must be at least 1 week", details={"duration": duration})
    return updates


def edit_work_package(editor, wbs_element_id, cr_id, data) -> list[Change]:
    """
    Apply edits to a work package under an accepted change request.

    ``data`` may carry ``name``, ``start_date`` (date or ISO string) and
    ``duration``; one Change is recorded per field that actually differs.
    """
    cr = validate_change_request_accepted(cr_id)

    element = db.session.get(WbsElement, wbs_element_id)
    if element is None or element.work_package is None:
        raise NotFoundError("Work Package", wbs_element_id)
    if element.is_deleted:
        raise InvalidStateError("Cannot edit a deleted work package!")

    wp = element.work_package
    updates = _parse_edits(data)

    try:
        changes = []
        for field, label in _EDITABLE_FIELDS:
            if field not in updates:
                continue
            target = element if field == "name" else wp
            old, new = getattr(target, field), updates[field]
            if old == new:
                continue
            changes.append(Change(
                change_request_id=cr.id,
                wbs_element_id=element.id,
                implementer_id=editor.id,
                detail=build_change_detail(label, _display(field, old), _display(field, new)),
                old_value=str(old),
                new_value=str(new),
            ))
            setattr(target, field, new)

        db.session.add_all(changes)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Edit of work package %s under cr=%s failed; rolled back", wbs_element_id, cr_id)
        raise

    logger.info("Work package %s edited under cr=%s: %d change(s)", element.wbs_num, cr.id, len(changes))
    return changes
