"""
FinishLine
Change-request domain models.

Models:
    - ChangeRequest:    request to change a WBS element (scope, activation, stage gate, …)
    - ProposedSolution: candidate solution with scope / timeline / budget impact
    - Change:           immutable audit record of one field mutation caused by a CR
    - MessageInfo:      Slack message (channel + ts) posted for a CR, replied to on review

Architecture:
    WbsElement ──1:N──▶ ChangeRequest ──1:N──▶ ProposedSolution
    ChangeRequest ──1:N──▶ Change ◀──N:1── WbsElement
    ChangeRequest ──1:N──▶ MessageInfo

Status is derived, never stored:
    Open → Accepted | Denied → Implemented
    (see services.change_request_service.calculate_change_request_status)
"""

from datetime import datetime, timezone

from finishline.models import db
from finishline.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

CR_TYPES = {"ACTIVATION", "STAGE_GATE", "ISSUE", "DEFINITION_CHANGE", "OTHER"}

# Standard (scope) change requests carry proposed solutions; activation and
# stage-gate requests do not.
STANDARD_CR_TYPES = {"ISSUE", "DEFINITION_CHANGE", "OTHER"}

CR_STATUS_OPEN = "Open"
CR_STATUS_ACCEPTED = "Accepted"
CR_STATUS_DENIED = "Denied"
CR_STATUS_IMPLEMENTED = "Implemented"

CR_STATUSES = {CR_STATUS_OPEN, CR_STATUS_ACCEPTED, CR_STATUS_DENIED, CR_STATUS_IMPLEMENTED}


class ChangeRequest(SoftDeleteMixin, db.Model):
    """Change request raised against a WBS element."""

    __tablename__ = "change_requests"

    id = db.Column(db.Integer, primary_key=True)
    wbs_element_id = db.Column(
        db.Integer, db.ForeignKey("wbs_elements.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    submitter_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    reviewer_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    type = db.Column(
        db.String(30), nullable=False, default="OTHER",
        comment="ACTIVATION | STAGE_GATE | ISSUE | DEFINITION_CHANGE | OTHER",
    )
    what = db.Column(db.Text, default="")

    # Review facts; status is computed from these plus the Changes
    accepted = db.Column(db.Boolean, nullable=True, comment="NULL = unreviewed")
    review_notes = db.Column(db.Text, nullable=True)
    date_submitted = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    date_reviewed = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "type IN ('ACTIVATION','STAGE_GATE','ISSUE','DEFINITION_CHANGE','OTHER')",
            name="ck_change_request_type",
        ),
    )

    # ── Relationships ────────────────────────────────────────────────────
    wbs_element = db.relationship("WbsElement")
    submitter = db.relationship("User", foreign_keys=[submitter_id])
    reviewer = db.relationship("User", foreign_keys=[reviewer_id])
    proposed_solutions = db.relationship(
        "ProposedSolution",
        back_populates="change_request",
        cascade="all, delete-orphan",
        order_by="ProposedSolution.id",
    )
    changes = db.relationship(
        "Change",
        back_populates="change_request",
        order_by="Change.id",
    )
    message_infos = db.relationship(
        "MessageInfo",
        back_populates="change_request",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_children=True):
        from finishline.services.change_request_service import (
            calculate_change_request_status,
            get_date_implemented,
        )

        date_implemented = get_date_implemented(self)
        result = {
            "id": self.id,
            "wbs_element_id": self.wbs_element_id,
            "wbs_num": self.wbs_element.wbs_num if self.wbs_element else None,
            "type": self.type,
            "what": self.what,
            "submitter_id": self.submitter_id,
            "reviewer_id": self.reviewer_id,
            "accepted": self.accepted,
            "review_notes": self.review_notes,
            "date_submitted": self.date_submitted.isoformat() if self.date_submitted else None,
            "date_reviewed": self.date_reviewed.isoformat() if self.date_reviewed else None,
            "date_implemented": date_implemented.isoformat() if date_implemented else None,
            "status": calculate_change_request_status(self),
        }
        if include_children:
            result["proposed_solutions"] = [ps.to_dict() for ps in self.proposed_solutions]
            result["changes"] = [c.to_dict() for c in self.changes]
        return result

    def __repr__(self):
        return f"<ChangeRequest {self.id}: {self.type} on wbs={self.wbs_element_id}>"


class ProposedSolution(db.Model):
    """Candidate solution of a standard change request; one may be approved on review."""

    __tablename__ = "proposed_solutions"

    id = db.Column(db.Integer, primary_key=True)
    change_request_id = db.Column(
        db.Integer, db.ForeignKey("change_requests.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    description = db.Column(db.Text, default="")
    scope_impact = db.Column(db.Text, default="")
    timeline_impact = db.Column(db.Integer, nullable=False, default=0, comment="signed weeks")
    budget_impact = db.Column(db.Integer, nullable=False, default=0, comment="dollars")
    approved = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    change_request = db.relationship("ChangeRequest", back_populates="proposed_solutions")

    def to_dict(self):
        return {
            "id": self.id,
            "change_request_id": self.change_request_id,
            "description": self.description,
            "scope_impact": self.scope_impact,
            "timeline_impact": self.timeline_impact,
            "budget_impact": self.budget_impact,
            "approved": self.approved,
        }

    def __repr__(self):
        return f"<ProposedSolution {self.id}: {self.timeline_impact:+d}w ${self.budget_impact}>"


class Change(db.Model):
    """
    Immutable audit record: one field of one WBS element changed because of
    one change request. Append-only; never updated or deleted.
    """

    __tablename__ = "changes"
    __table_args__ = (
        db.Index("idx_change_cr", "change_request_id"),
        db.Index("idx_change_wbs", "wbs_element_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    change_request_id = db.Column(
        db.Integer, db.ForeignKey("change_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    wbs_element_id = db.Column(
        db.Integer, db.ForeignKey("wbs_elements.id", ondelete="CASCADE"),
        nullable=False,
    )
    implementer_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    detail = db.Column(db.Text, nullable=False)
    old_value = db.Column(db.String(255), nullable=True)
    new_value = db.Column(db.String(255), nullable=True)
    date_implemented = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    change_request = db.relationship("ChangeRequest", back_populates="changes")
    wbs_element = db.relationship("WbsElement", back_populates="changes")
    implementer = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "change_request_id": self.change_request_id,
            "wbs_element_id": self.wbs_element_id,
            "implementer_id": self.implementer_id,
            "detail": self.detail,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "date_implemented": self.date_implemented.isoformat() if self.date_implemented else None,
        }

    def __repr__(self):
        return f"<Change {self.id}: cr={self.change_request_id} {self.detail[:40]}>"


class MessageInfo(db.Model):
    """Slack message posted about a change request (thread parent for review replies)."""

    __tablename__ = "message_infos"

    id = db.Column(db.Integer, primary_key=True)
    change_request_id = db.Column(
        db.Integer, db.ForeignKey("change_requests.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    channel_id = db.Column(db.String(50), nullable=False)
    timestamp = db.Column(db.String(30), nullable=False, comment="Slack message ts")

    change_request = db.relationship("ChangeRequest", back_populates="message_infos")

    def to_dict(self):
        return {
            "id": self.id,
            "change_request_id": self.change_request_id,
            "channel_id": self.channel_id,
            "timestamp": self.timestamp,
        }

    def __repr__(self):
        return f"<MessageInfo {self.channel_id}/{self.timestamp} cr={self.change_request_id}>"
