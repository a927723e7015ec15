"""
Blocking propagation — cascades timeline impact through the blocking graph.

When a change request with a timeline impact is accepted on a work package,
every work package transitively blocked by it starts later (or earlier) by
the same number of weeks. Each shifted work package gets a Change audit row
attributed to the change request and its reviewer.

Traversal rules:
    - iterative, LIFO work queue + visited set (cycle safe, each node once)
    - the seed is never re-processed, it already carries the impact
    - a missing element aborts the traversal with NotFoundError
    - a soft-deleted element is a boundary: not updated, not traversed through
    - an element without a work package (project container) is not updated,
      but its own blocking elements are still queued

Writes are flushed, never committed: the caller owns the transaction.
"""

import logging
from datetime import date, timedelta

from finishline.core.exceptions import NotFoundError
from finishline.models import db
from finishline.models.change_request import Change
from finishline.models.wbs import WbsElement, WorkPackage

logger = logging.getLogger(__name__)


# ── Date + detail helpers ────────────────────────────────────────────────────


def add_weeks_to_date(start: date, weeks: int) -> date:
    """Shift a date by a signed number of weeks."""
    return start + timedelta(weeks=weeks)


def format_date(value: date) -> str:
    """Render a date as M/D/YYYY, the format used in change details."""
    return f"{value.month}/{value.day}/{value.year}"


def build_change_detail(field: str, old_value, new_value) -> str:
    """Human-readable description of a single field change."""
    return f'"{field}" changed from {old_value} to {new_value}'


# ── Date Shift Applier ───────────────────────────────────────────────────────


def apply_start_date_shift(
    work_package: WorkPackage,
    weeks: int,
    cr_id: int,
    implementer_id: int,
) -> Change:
    """
    Move a work package's start date by ``weeks`` and record the Change.

    No bounds are enforced on the resulting date; negative impacts may move
    it into the past.

    Returns:
        The flushed Change row.
    """
    old_start = work_package.start_date
    new_start = add_weeks_to_date(old_start, weeks)

    change = Change(
        change_request_id=cr_id,
        wbs_element_id=work_package.wbs_element_id,
        implementer_id=implementer_id,
        detail=build_change_detail("Start Date", format_date(old_start), format_date(new_start)),
        old_value=old_start.isoformat(),
        new_value=new_start.isoformat(),
    )
    work_package.start_date = new_start
    db.session.add(change)
    db.session.flush()

    logger.debug(
        "Shifted work package %s start %s → %s (cr=%s)",
        work_package.id, old_start, new_start, cr_id,
    )
    return change


# ── Graph Walker ─────────────────────────────────────────────────────────────


def update_blocking(
    initial_work_package: WorkPackage,
    timeline_impact: int,
    cr_id: int,
    reviewer,
) -> list[Change]:
    """
    Shift the start date of every work package transitively blocked by
    ``initial_work_package`` by ``timeline_impact`` weeks.

    Args:
        initial_work_package: Seed work package (already carries the impact).
        timeline_impact: Signed week delta.
        cr_id: Change request that caused the shift.
        reviewer: User approving the change request; recorded as implementer.

    Returns:
        Changes created, in processing order.

    Raises:
        NotFoundError: a blocking element id does not resolve to a row.
    """
    seed = initial_work_package.wbs_element
    seen = {seed.id}
    queue = [b.id for b in seed.blocking]
    changes = []

    while queue:
        current_id = queue.pop()
        if current_id in seen:
            continue
        seen.add(current_id)

        current = db.session.get(WbsElement, current_id)
        if current is None:
            raise NotFoundError("WBS Element", current_id)
        if current.is_deleted:
            continue

        if current.work_package is not None:
            changes.append(
                apply_start_date_shift(current.work_package, timeline_impact, cr_id, reviewer.id)
            )

        queue.extend(b.id for b in current.blocking)

    logger.info(
        "Blocking propagation for cr=%s from wbs=%s: %d visited, %d shifted by %+dw",
        cr_id, seed.id, len(seen) - 1, len(changes), timeline_impact,
    )
    return changes
