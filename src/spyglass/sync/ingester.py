"""Heartbeat ingester: incremental pull from the upstream activity store.

Each call to ``ingest``:
  1. reads the cursor and decides where to resume (bootstrap / stale / normal)
  2. selects every upstream heartbeat newer than that point, newest first
  3. upserts each row by id, isolating validation and storage failures
  4. advances the cursor to the newest created_at of the selected batch
     when at least one row was stored

A failure to reach the upstream store propagates and leaves the cursor
untouched, so the next tick retries the same range.

Stale-cursor gap: when the cursor is older than the retention window the
ingester resumes from ``now - poll_interval`` and the range in between is
never backfilled. The gap is logged as ``stale_cursor_gap``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from spyglass.config import Settings
from spyglass.database import Database
from spyglass.db.models import SyncedHeartbeat
from spyglass.schemas import HeartbeatRecord, parse_timestamp
from spyglass.sync.cursor import CursorRepository
from spyglass.time_utils import retention_cutoff, utcnow
from spyglass.upstream.store import ActivityStore

logger = structlog.get_logger()


@dataclass
class IngestResult:
    """Outcome of one ingest cycle."""

    records: list[dict[str, Any]] = field(default_factory=list)
    count: int = 0
    stored: int = 0
    failed: int = 0
    cursor: datetime | None = None

    @property
    def user_ids(self) -> set[str]:
        """Distinct users present in the selected batch, stored or not."""
        return {str(r["user_id"]) for r in self.records if r.get("user_id") not in (None, "")}


class HeartbeatIngester:
    """Pulls new heartbeats from upstream into ``synced_heartbeats``."""

    def __init__(
        self,
        database: Database,
        store: ActivityStore,
        cursor: CursorRepository,
        poll_interval_seconds: float = 5.0,
        retention_hours: int = 24,
    ) -> None:
        self._db = database
        self._store = store
        self._cursor = cursor
        self._poll_interval = timedelta(seconds=poll_interval_seconds)
        self._retention_hours = retention_hours

    @classmethod
    def from_settings(
        cls, settings: Settings, database: Database, store: ActivityStore
    ) -> HeartbeatIngester:
        return cls(
            database,
            store,
            CursorRepository(database),
            poll_interval_seconds=settings.poll_interval_seconds,
            retention_hours=settings.retention_hours,
        )

    async def resolve_start(self, now: datetime | None = None) -> datetime:
        """Where the next upstream query should resume from."""
        if now is None:
            now = utcnow()
        cursor = await self._cursor.get()
        bootstrap_from = now - self._poll_interval

        if cursor is None:
            logger.info("cursor_bootstrap", resume_from=bootstrap_from.isoformat())
            return bootstrap_from

        if cursor < retention_cutoff(self._retention_hours, now):
            logger.warning(
                "stale_cursor_gap",
                cursor=cursor.isoformat(),
                resume_from=bootstrap_from.isoformat(),
                gap_seconds=int((bootstrap_from - cursor).total_seconds()),
            )
            return bootstrap_from

        return cursor

    async def ingest(self) -> IngestResult:
        """Run one ingest cycle. Raises UpstreamUnavailableError if upstream is unreachable."""
        start = await self.resolve_start()
        rows = await self._store.fetch_heartbeats_since(start)

        if not rows:
            return IngestResult()

        logger.info("heartbeats_found", count=len(rows), since=start.isoformat())
        result = IngestResult(records=rows, count=len(rows))

        for row in rows:
            try:
                record = HeartbeatRecord.model_validate(row)
            except ValidationError as exc:
                result.failed += 1
                logger.error(
                    "heartbeat_invalid",
                    heartbeat_id=row.get("id"),
                    errors=exc.errors(include_url=False, include_context=False),
                    payload=row,
                )
                continue

            try:
                await self._upsert(record)
            except SQLAlchemyError:
                result.failed += 1
                logger.exception("heartbeat_store_failed", heartbeat_id=record.id, payload=row)
                continue

            result.stored += 1

        if result.stored:
            logger.info("heartbeats_stored", count=result.stored)
        if result.failed:
            logger.warning("heartbeats_failed", count=result.failed)

        if result.stored > 0:
            newest = newest_created_at(rows)
            if newest is not None:
                result.cursor = await self._cursor.advance(newest)

        return result

    async def _upsert(self, record: HeartbeatRecord) -> None:
        """Create-or-replace by id."""
        async with self._db.session() as session:
            await session.merge(SyncedHeartbeat(**record.model_dump()))
            await session.commit()

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete synced heartbeats whose created_at is older than the retention window."""
        cutoff = retention_cutoff(self._retention_hours, now)
        async with self._db.session() as session:
            result = await session.execute(
                delete(SyncedHeartbeat).where(SyncedHeartbeat.created_at < cutoff)
            )
            await session.commit()

        count = result.rowcount or 0
        if count > 0:
            logger.info("heartbeats_purged", count=count, retention_hours=self._retention_hours)
        return count


def newest_created_at(rows: list[dict[str, Any]]) -> datetime | None:
    """Largest parseable created_at across the rows; unparseable values are skipped."""
    newest: datetime | None = None
    for row in rows:
        try:
            created_at = parse_timestamp(row.get("created_at"))
        except ValueError:
            continue
        if newest is None or created_at > newest:
            newest = created_at
    return newest
