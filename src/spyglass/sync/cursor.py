"""Change-feed cursor: the created_at of the newest heartbeat already ingested."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import select

from spyglass.database import Database
from spyglass.db.models import SyncCursor
from spyglass.time_utils import as_utc, utcnow

logger = structlog.get_logger()


class CursorRepository:
    """Reads and advances the singleton cursor row.

    The cursor never moves backwards: ``advance`` keeps the larger of the
    stored value and the candidate.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self) -> datetime | None:
        async with self._db.session() as session:
            cursor = await session.get(SyncCursor, SyncCursor.SINGLETON_ID)
            if cursor is None:
                return None
            return as_utc(cursor.heartbeat_created_at)

    async def advance(self, candidate: datetime) -> datetime:
        """Move the cursor to ``candidate`` unless it is already further ahead.

        Returns the cursor value after the call.
        """
        candidate = as_utc(candidate)
        async with self._db.session() as session:
            result = await session.execute(
                select(SyncCursor).where(SyncCursor.id == SyncCursor.SINGLETON_ID)
            )
            cursor = result.scalar_one_or_none()

            if cursor is None:
                session.add(SyncCursor(
                    id=SyncCursor.SINGLETON_ID,
                    heartbeat_created_at=candidate,
                    updated_at=utcnow(),
                ))
                await session.commit()
                logger.info("cursor_initialized", cursor=candidate.isoformat())
                return candidate

            current = as_utc(cursor.heartbeat_created_at)
            if candidate <= current:
                return current

            cursor.heartbeat_created_at = candidate
            cursor.updated_at = utcnow()
            await session.commit()
            logger.debug("cursor_advanced", previous=current.isoformat(), cursor=candidate.isoformat())
            return candidate
