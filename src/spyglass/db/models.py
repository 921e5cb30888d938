"""ORM models for spyglass local state.

The schema itself is owned by Alembic (see alembic/versions); these models
mirror it so the services can read and write through SQLAlchemy.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from spyglass.db.base import Base
from spyglass.time_utils import utcnow

# JSONB on PostgreSQL, plain JSON text everywhere else.
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Change feed
# ---------------------------------------------------------------------------


class SyncCursor(Base):
    """Singleton row holding the upstream created_at of the newest ingested heartbeat."""

    __tablename__ = "sync_cursor"

    SINGLETON_ID = 1

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    heartbeat_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class SyncedHeartbeat(Base):
    """Local copy of an upstream heartbeat, keyed by the upstream id."""

    __tablename__ = "synced_heartbeats"
    __table_args__ = (
        Index("idx_synced_heartbeats_created_at", "created_at"),
        Index("idx_synced_heartbeats_user_id", "user_id"),
        Index("idx_synced_heartbeats_time", "time"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    project: Mapped[str | None] = mapped_column(Text, nullable=True)
    branch: Mapped[str | None] = mapped_column(Text, nullable=True)
    language: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_write: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    editor: Mapped[str | None] = mapped_column(String(128), nullable=True)
    operating_system: Mapped[str | None] = mapped_column(String(128), nullable=True)
    machine: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    origin: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    project_root_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    line_additions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    line_deletions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lines: Mapped[int | None] = mapped_column(Integer, nullable=True)
    line_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cursor_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dependencies: Mapped[str | None] = mapped_column(Text, nullable=True)


# ---------------------------------------------------------------------------
# Summaries & milestones
# ---------------------------------------------------------------------------


class UserSummary(Base):
    """Append-only snapshot of a user's all-time per-project/per-language totals."""

    __tablename__ = "user_summaries"
    __table_args__ = (
        Index("idx_user_summaries_user_id", "user_id"),
        Index("idx_user_summaries_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    summary_data: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ProjectNotification(Base):
    """Per (user, project) milestone watermark."""

    __tablename__ = "project_notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "project_name", name="uq_project_notifications_user_project"),
        Index("idx_project_notifications_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    project_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_notified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_total_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Slack preferences
# ---------------------------------------------------------------------------


class NotificationPreference(Base):
    """Opt-in flag per (Slack user, Slack channel)."""

    __tablename__ = "notification_preferences"
    __table_args__ = (
        UniqueConstraint(
            "slack_user_id", "slack_channel_id", name="uq_notification_preferences_user_channel"
        ),
        Index("idx_notification_preferences_channel", "slack_channel_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slack_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    slack_channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
