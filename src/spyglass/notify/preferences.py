"""Notification preference reads and upserts.

One row per (Slack user, Slack channel). Opt-in and opt-out both upsert
the same row; a missing row means "never configured" and is treated as
disabled everywhere.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select

from spyglass.database import Database
from spyglass.db.models import NotificationPreference
from spyglass.time_utils import utcnow

logger = structlog.get_logger()


class PreferenceService:
    """Owns the notification_preferences table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def set_preference(self, user_id: str, channel_id: str, enabled: bool) -> NotificationPreference:
        async with self._db.session() as session:
            result = await session.execute(
                select(NotificationPreference).where(
                    NotificationPreference.slack_user_id == user_id,
                    NotificationPreference.slack_channel_id == channel_id,
                )
            )
            pref = result.scalar_one_or_none()
            now = utcnow()

            if pref is None:
                pref = NotificationPreference(
                    slack_user_id=user_id,
                    slack_channel_id=channel_id,
                    enabled=enabled,
                    created_at=now,
                    updated_at=now,
                )
                session.add(pref)
            else:
                pref.enabled = enabled
                pref.updated_at = now

            await session.commit()

        logger.info("preference_updated", user=user_id, channel=channel_id, enabled=enabled)
        return pref

    async def get_preference(self, user_id: str, channel_id: str) -> bool | None:
        """Return the enabled flag, or None when the user never set one for this channel."""
        async with self._db.session() as session:
            result = await session.execute(
                select(NotificationPreference.enabled).where(
                    NotificationPreference.slack_user_id == user_id,
                    NotificationPreference.slack_channel_id == channel_id,
                )
            )
            return result.scalar_one_or_none()

    async def enabled_channels_for_user(self, user_id: str) -> list[str]:
        async with self._db.session() as session:
            result = await session.execute(
                select(NotificationPreference.slack_channel_id)
                .where(
                    NotificationPreference.slack_user_id == user_id,
                    NotificationPreference.enabled.is_(True),
                )
                .order_by(NotificationPreference.slack_channel_id)
            )
            return list(result.scalars().all())

    async def enabled_users_for_channel(self, channel_id: str) -> list[str]:
        async with self._db.session() as session:
            result = await session.execute(
                select(NotificationPreference.slack_user_id)
                .where(
                    NotificationPreference.slack_channel_id == channel_id,
                    NotificationPreference.enabled.is_(True),
                )
                .order_by(NotificationPreference.slack_user_id)
            )
            return list(result.scalars().all())
