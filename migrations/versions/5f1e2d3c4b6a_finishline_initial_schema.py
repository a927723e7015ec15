"""finishline_initial_schema

Create people, WBS, blocking graph and change-request tables.

Revision ID: 5f1e2d3c4b6a
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5f1e2d3c4b6a"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("slack_id", sa.String(length=50), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if "teams" not in existing_tables:
        op.create_table(
            "teams",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("slack_id", sa.String(length=50), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "wbs_elements" not in existing_tables:
        op.create_table(
            "wbs_elements",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("car_number", sa.Integer(), nullable=False),
            sa.Column("project_number", sa.Integer(), nullable=False),
            sa.Column("work_package_number", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("team_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["team_id"], ["teams.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("car_number", "project_number", "work_package_number",
                                name="uq_wbs_number"),
        )
        op.create_index("ix_wbs_elements_team_id", "wbs_elements", ["team_id"])
        op.create_index("ix_wbs_elements_deleted_at", "wbs_elements", ["deleted_at"])

    if "wbs_blocking" not in existing_tables:
        op.create_table(
            "wbs_blocking",
            sa.Column("blocker_id", sa.Integer(), nullable=False),
            sa.Column("blocked_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("blocker_id != blocked_id", name="ck_wbs_blocking_no_self_loop"),
            sa.ForeignKeyConstraint(["blocker_id"], ["wbs_elements.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["blocked_id"], ["wbs_elements.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("blocker_id", "blocked_id"),
        )
        op.create_index("ix_wbs_blocking_blocked_id", "wbs_blocking", ["blocked_id"])

    if "work_packages" not in existing_tables:
        op.create_table(
            "work_packages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("wbs_element_id", sa.Integer(), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("duration", sa.Integer(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["wbs_element_id"], ["wbs_elements.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("wbs_element_id"),
        )

    if "change_requests" not in existing_tables:
        op.create_table(
            "change_requests",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("wbs_element_id", sa.Integer(), nullable=False),
            sa.Column("submitter_id", sa.Integer(), nullable=True),
            sa.Column("reviewer_id", sa.Integer(), nullable=True),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("what", sa.Text(), nullable=True),
            sa.Column("accepted", sa.Boolean(), nullable=True),
            sa.Column("review_notes", sa.Text(), nullable=True),
            sa.Column("date_submitted", sa.DateTime(timezone=True), nullable=False),
            sa.Column("date_reviewed", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint(
                "type IN ('ACTIVATION','STAGE_GATE','ISSUE','DEFINITION_CHANGE','OTHER')",
                name="ck_change_request_type",
            ),
            sa.ForeignKeyConstraint(["wbs_element_id"], ["wbs_elements.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["submitter_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["reviewer_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_change_requests_wbs_element_id", "change_requests", ["wbs_element_id"])
        op.create_index("ix_change_requests_deleted_at", "change_requests", ["deleted_at"])

    if "proposed_solutions" not in existing_tables:
        op.create_table(
            "proposed_solutions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("change_request_id", sa.Integer(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("scope_impact", sa.Text(), nullable=True),
            sa.Column("timeline_impact", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("budget_impact", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["change_request_id"], ["change_requests.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_proposed_solutions_change_request_id", "proposed_solutions",
                        ["change_request_id"])

    if "changes" not in existing_tables:
        op.create_table(
            "changes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("change_request_id", sa.Integer(), nullable=False),
            sa.Column("wbs_element_id", sa.Integer(), nullable=False),
            sa.Column("implementer_id", sa.Integer(), nullable=True),
            sa.Column("detail", sa.Text(), nullable=False),
            sa.Column("old_value", sa.String(length=255), nullable=True),
            sa.Column("new_value", sa.String(length=255), nullable=True),
            sa.Column("date_implemented", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["change_request_id"], ["change_requests.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["wbs_element_id"], ["wbs_elements.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["implementer_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_change_cr", "changes", ["change_request_id"])
        op.create_index("idx_change_wbs", "changes", ["wbs_element_id"])

    if "message_infos" not in existing_tables:
        op.create_table(
            "message_infos",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("change_request_id", sa.Integer(), nullable=False),
            sa.Column("channel_id", sa.String(length=50), nullable=False),
            sa.Column("timestamp", sa.String(length=30), nullable=False),
            sa.ForeignKeyConstraint(["change_request_id"], ["change_requests.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_message_infos_change_request_id", "message_infos", ["change_request_id"])


def downgrade():
    for table in (
        "message_infos",
        "changes",
        "proposed_solutions",
        "change_requests",
        "work_packages",
        "wbs_blocking",
        "wbs_elements",
        "teams",
        "users",
    ):
        op.drop_table(table)
