"""
Soft deletion for WBS elements and change requests.

A deleted row keeps its id, its blocking edges and its audit history; only
``deleted_at`` is set. Deleted WBS elements stop schedule propagation and
deleted change requests can no longer be reviewed or implemented.
"""

from datetime import datetime, timezone

from finishline.models import db


class SoftDeleteMixin:
    """Adds ``deleted_at`` plus helpers; combine as ``class X(SoftDeleteMixin, db.Model)``."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, when: datetime | None = None) -> None:
        self.deleted_at = when or datetime.now(timezone.utc)

    @classmethod
    def query_active(cls):
        """Query over rows that have not been deleted."""
        return cls.query.filter(cls.deleted_at.is_(None))
