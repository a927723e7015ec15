"""
FinishLine
Work Breakdown Structure domain models.

Models:
    - WbsElement:  any trackable unit of work, numbered car.project.work_package
    - WorkPackage: schedulable payload of a WBS element (start date + duration)
    - WbsBlocking: blocker → blocked edge between WBS elements

Architecture:
    WbsElement ──1:0..1──▶ WorkPackage
    WbsElement ──N:M──▶ WbsElement  (via WbsBlocking; ``blocking`` lists the
                                     elements that shift when this one shifts)
    WbsElement ──1:N──▶ Change      (audit trail, see change_request.py)

A project element has ``work_package_number == 0`` and no WorkPackage; it is
a container and is never rescheduled.
"""

from datetime import datetime, timezone

from finishline.models import db
from finishline.models.soft_delete import SoftDeleteMixin


def wbs_pipe(car_number, project_number, work_package_number):
    """Format a WBS number the way it is shown to users: ``1.2.0``."""
    return f"{car_number}.{project_number}.{work_package_number}"


class WbsBlocking(db.Model):
    """
    Blocking edge: ``blocked`` cannot start until ``blocker`` completes, so a
    start-date shift of the blocker cascades to the blocked element.
    """

    __tablename__ = "wbs_blocking"

    blocker_id = db.Column(
        db.Integer, db.ForeignKey("wbs_elements.id", ondelete="CASCADE"),
        primary_key=True,
    )
    blocked_id = db.Column(
        db.Integer, db.ForeignKey("wbs_elements.id", ondelete="CASCADE"),
        primary_key=True, index=True,
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("blocker_id != blocked_id", name="ck_wbs_blocking_no_self_loop"),
    )

    def __repr__(self):
        return f"<WbsBlocking {self.blocker_id} → {self.blocked_id}>"


class WbsElement(SoftDeleteMixin, db.Model):
    """Node of the work breakdown structure (project or work package)."""

    __tablename__ = "wbs_elements"

    id = db.Column(db.Integer, primary_key=True)
    car_number = db.Column(db.Integer, nullable=False)
    project_number = db.Column(db.Integer, nullable=False)
    work_package_number = db.Column(
        db.Integer, nullable=False, default=0,
        comment="0 for project elements",
    )
    name = db.Column(db.String(200), nullable=False)
    team_id = db.Column(
        db.Integer, db.ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "car_number", "project_number", "work_package_number",
            name="uq_wbs_number",
        ),
    )

    # ── Relationships ────────────────────────────────────────────────────
    team = db.relationship("Team")
    work_package = db.relationship(
        "WorkPackage",
        back_populates="wbs_element",
        uselist=False,
        cascade="all, delete-orphan",
    )
    blocking = db.relationship(
        "WbsElement",
        secondary="wbs_blocking",
        primaryjoin="WbsElement.id == WbsBlocking.blocker_id",
        secondaryjoin="WbsElement.id == WbsBlocking.blocked_id",
        backref="blocked_by",
        lazy="select",
    )
    changes = db.relationship(
        "Change",
        back_populates="wbs_element",
        lazy="select",
        order_by="Change.id",
    )

    @property
    def wbs_num(self):
        return wbs_pipe(self.car_number, self.project_number, self.work_package_number)

    @property
    def is_project(self):
        return self.work_package_number == 0

    def project_element(self):
        """Return the project element this element belongs to (itself for projects)."""
        if self.is_project:
            return self
        return WbsElement.query.filter_by(
            car_number=self.car_number,
            project_number=self.project_number,
            work_package_number=0,
        ).first()

    def to_dict(self, include_work_package=True):
        result = {
            "id": self.id,
            "wbs_num": self.wbs_num,
            "name": self.name,
            "team_id": self.team_id,
            "blocking_ids": [b.id for b in self.blocking],
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }
        if include_work_package:
            result["work_package"] = self.work_package.to_dict() if self.work_package else None
        return result

    def __repr__(self):
        return f"<WbsElement {self.id}: {self.wbs_num} {self.name[:40]}>"


class WorkPackage(db.Model):
    """Schedulable attributes of a WBS element. Start dates begin on a Monday."""

    __tablename__ = "work_packages"

    id = db.Column(db.Integer, primary_key=True)
    wbs_element_id = db.Column(
        db.Integer, db.ForeignKey("wbs_elements.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    start_date = db.Column(db.Date, nullable=False)
    duration = db.Column(db.Integer, nullable=False, default=1, comment="weeks")

    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    wbs_element = db.relationship("WbsElement", back_populates="work_package")

    def to_dict(self):
        return {
            "id": self.id,
            "wbs_element_id": self.wbs_element_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "duration": self.duration,
        }

    def __repr__(self):
        return f"<WorkPackage {self.id}: starts {self.start_date} for {self.duration}w>"
