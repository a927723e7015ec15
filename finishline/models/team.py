"""
FinishLine
People domain models.

Models:
    - User: a team member; reviewer / submitter / implementer of change requests
    - Team: a group with its own Slack channel, owning projects
"""

from datetime import datetime, timezone

from finishline.models import db


class User(db.Model):
    """Member of the organization. ``slack_id`` is the DM target for notifications."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    slack_id = db.Column(db.String(50), nullable=True, comment="Slack member id for DMs")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.full_name}>"


class Team(db.Model):
    """Team that owns one or more projects and is notified about their change requests."""

    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    slack_id = db.Column(db.String(50), nullable=False, comment="Slack channel id")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {"id": self.id, "name": self.name, "slack_id": self.slack_id}

    def __repr__(self):
        return f"<Team {self.id}: {self.name}>"
