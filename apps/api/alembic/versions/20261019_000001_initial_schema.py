"""create automation routing schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("monthly_dm_limit", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "instagram_accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("instagram_user_id", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("access_token_encrypted", sa.Text(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_instagram_accounts_user_id"), "instagram_accounts", ["user_id"], unique=False)
    op.create_index(op.f("ix_instagram_accounts_instagram_user_id"), "instagram_accounts", ["instagram_user_id"], unique=False)
    op.create_index(op.f("ix_instagram_accounts_status"), "instagram_accounts", ["status"], unique=False)

    op.create_table(
        "automations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("instagram_account_id", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("trigger_type", sa.String(), nullable=False),
        sa.Column("trigger_config", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="inactive"),
        sa.Column("workflow_ref", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["instagram_account_id"], ["instagram_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_automations_user_id"), "automations", ["user_id"], unique=False)
    op.create_index(op.f("ix_automations_instagram_account_id"), "automations", ["instagram_account_id"], unique=False)
    op.create_index(op.f("ix_automations_trigger_type"), "automations", ["trigger_type"], unique=False)
    op.create_index(op.f("ix_automations_status"), "automations", ["status"], unique=False)
    op.create_index(op.f("ix_automations_workflow_ref"), "automations", ["workflow_ref"], unique=True)

    op.create_table(
        "automation_routes",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("automation_id", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("sub_type", sa.String(), nullable=True),
        sa.Column("workflow_ref", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["automation_id"], ["automations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", "workflow_ref", name="uq_automation_routes_account_workflow"),
    )
    op.create_index(op.f("ix_automation_routes_account_id"), "automation_routes", ["account_id"], unique=False)
    op.create_index(op.f("ix_automation_routes_user_id"), "automation_routes", ["user_id"], unique=False)
    op.create_index(op.f("ix_automation_routes_automation_id"), "automation_routes", ["automation_id"], unique=False)
    op.create_index(op.f("ix_automation_routes_workflow_ref"), "automation_routes", ["workflow_ref"], unique=False)
    op.create_index(
        "ix_automation_routes_lookup",
        "automation_routes",
        ["account_id", "event_type", "is_active"],
        unique=False,
    )

    op.create_table(
        "processed_events",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "account_id", name="uq_processed_events_event_account"),
    )
    op.create_index(
        "ix_processed_events_account_created",
        "processed_events",
        ["account_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "automation_activities",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("automation_id", sa.String(), nullable=True),
        sa.Column("instagram_account_id", sa.String(), nullable=True),
        sa.Column("activity_type", sa.String(), nullable=False),
        sa.Column("target_username", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["automation_id"], ["automations.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["instagram_account_id"], ["instagram_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_automation_activities_user_id"), "automation_activities", ["user_id"], unique=False)
    op.create_index(op.f("ix_automation_activities_automation_id"), "automation_activities", ["automation_id"], unique=False)
    op.create_index(
        op.f("ix_automation_activities_instagram_account_id"),
        "automation_activities",
        ["instagram_account_id"],
        unique=False,
    )
    op.create_index(op.f("ix_automation_activities_activity_type"), "automation_activities", ["activity_type"], unique=False)
    op.create_index(op.f("ix_automation_activities_status"), "automation_activities", ["status"], unique=False)
    op.create_index(op.f("ix_automation_activities_created_at"), "automation_activities", ["created_at"], unique=False)

    op.create_table(
        "failed_events",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("event_id", sa.String(), nullable=True),
        sa.Column("account_id", sa.String(), nullable=True),
        sa.Column("workflow_ref", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_failed_events_event_id"), "failed_events", ["event_id"], unique=False)
    op.create_index(op.f("ix_failed_events_account_id"), "failed_events", ["account_id"], unique=False)
    op.create_index(op.f("ix_failed_events_created_at"), "failed_events", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("failed_events")
    op.drop_table("automation_activities")
    op.drop_index("ix_processed_events_account_created", table_name="processed_events")
    op.drop_table("processed_events")
    op.drop_index("ix_automation_routes_lookup", table_name="automation_routes")
    op.drop_table("automation_routes")
    op.drop_table("automations")
    op.drop_table("instagram_accounts")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
