"""Initial schema: change-feed cursor, synced heartbeats, summaries, watermarks, preferences.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all spyglass-owned tables."""
    # --- Change feed ---
    op.create_table(
        "sync_cursor",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("heartbeat_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.execute("ALTER TABLE sync_cursor ADD CONSTRAINT ck_sync_cursor_singleton CHECK (id = 1)")

    op.create_table(
        "synced_heartbeats",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("entity", sa.Text(), nullable=True),
        sa.Column("type", sa.String(32), nullable=True),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("project", sa.Text(), nullable=True),
        sa.Column("branch", sa.Text(), nullable=True),
        sa.Column("language", sa.String(128), nullable=True),
        sa.Column("is_write", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("editor", sa.String(128), nullable=True),
        sa.Column("operating_system", sa.String(128), nullable=True),
        sa.Column("machine", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("hash", sa.String(64), nullable=True),
        sa.Column("origin", sa.Text(), nullable=True),
        sa.Column("origin_id", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("project_root_count", sa.Integer(), nullable=True),
        sa.Column("line_additions", sa.Integer(), nullable=True),
        sa.Column("line_deletions", sa.Integer(), nullable=True),
        sa.Column("lines", sa.Integer(), nullable=True),
        sa.Column("line_number", sa.Integer(), nullable=True),
        sa.Column("cursor_position", sa.Integer(), nullable=True),
        sa.Column("dependencies", sa.Text(), nullable=True),
    )
    op.create_index("idx_synced_heartbeats_created_at", "synced_heartbeats", ["created_at"])
    op.create_index("idx_synced_heartbeats_user_id", "synced_heartbeats", ["user_id"])
    op.create_index("idx_synced_heartbeats_time", "synced_heartbeats", ["time"])

    # --- Summaries & milestones ---
    op.create_table(
        "user_summaries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("summary_data", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("idx_user_summaries_user_id", "user_summaries", ["user_id"])
    op.create_index("idx_user_summaries_created_at", "user_summaries", ["created_at"])

    op.create_table(
        "project_notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("project_name", sa.Text(), nullable=False),
        sa.Column("last_notified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_total_seconds", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.UniqueConstraint("user_id", "project_name", name="uq_project_notifications_user_project"),
    )
    op.create_index("idx_project_notifications_user_id", "project_notifications", ["user_id"])

    # --- Slack preferences ---
    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slack_user_id", sa.String(64), nullable=False),
        sa.Column("slack_channel_id", sa.String(64), nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.UniqueConstraint(
            "slack_user_id", "slack_channel_id", name="uq_notification_preferences_user_channel"
        ),
    )
    op.create_index("idx_notification_preferences_channel", "notification_preferences", ["slack_channel_id"])


def downgrade() -> None:
    """Drop all spyglass-owned tables."""
    op.drop_table("notification_preferences")
    op.drop_table("project_notifications")
    op.drop_table("user_summaries")
    op.drop_table("synced_heartbeats")
    op.drop_table("sync_cursor")
