"""Activity summarizer: snapshot each active user's all-time totals.

Invoked with the distinct users of a freshly ingested batch. For each
user: resolve the API key, fetch the summary, append a ``user_summaries``
row and hand the summary to the milestone detector. Users are processed
independently; a failure for one is logged and does not stop the rest.
There is no retry inside a cycle, the next batch containing the user
retries naturally.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete

from spyglass.activity.milestones import MilestoneDetector
from spyglass.database import Database
from spyglass.db.models import UserSummary
from spyglass.exceptions import SummaryFetchError, UpstreamUnavailableError
from spyglass.schemas import ActivitySummary
from spyglass.time_utils import utcnow
from spyglass.upstream.store import ActivityStore
from spyglass.upstream.summary_client import SummaryClient

logger = structlog.get_logger()


class ActivitySummarizer:
    """Fetches summaries for active users and records immutable snapshots."""

    def __init__(
        self,
        database: Database,
        store: ActivityStore,
        client: SummaryClient,
        detector: MilestoneDetector,
        snapshot_retention_days: int = 8,
    ) -> None:
        self._db = database
        self._store = store
        self._client = client
        self._detector = detector
        self._snapshot_retention = timedelta(days=snapshot_retention_days)

    async def summarize(self, user_ids: Iterable[str]) -> int:
        """Process every user in ``user_ids``. Returns how many snapshots were written."""
        written = 0
        for user_id in sorted(set(user_ids)):
            try:
                if await self.summarize_user(user_id):
                    written += 1
            except Exception:
                logger.exception("summarize_user_failed", user=user_id)
        return written

    async def summarize_user(self, user_id: str) -> bool:
        """Snapshot one user and run milestone detection. Returns False when skipped."""
        try:
            api_key = await self._store.get_api_key(user_id)
        except UpstreamUnavailableError:
            logger.warning("api_key_lookup_failed", user=user_id, exc_info=True)
            return False

        if not api_key:
            logger.info("api_key_missing", user=user_id)
            return False

        try:
            summary = await self._client.fetch_summary(api_key)
        except SummaryFetchError as exc:
            logger.warning("summary_fetch_failed", user=user_id, status=exc.status_code, error=str(exc))
            return False

        await self.record_snapshot(user_id, summary)
        await self._detector.detect_and_notify(user_id, summary)
        return True

    async def record_snapshot(
        self, user_id: str, summary: ActivitySummary, created_at: datetime | None = None
    ) -> UserSummary:
        snapshot = UserSummary(
            user_id=user_id,
            summary_data=summary.snapshot_data(),
            created_at=created_at or utcnow(),
        )
        async with self._db.session() as session:
            session.add(snapshot)
            await session.commit()

        logger.debug(
            "summary_snapshot_recorded",
            user=user_id,
            projects=len(summary.projects),
            total_seconds=summary.total_seconds,
        )
        return snapshot

    async def prune_snapshots(self, now: datetime | None = None) -> int:
        """Delete snapshots older than the retention window used for leaderboards."""
        cutoff = (now or utcnow()) - self._snapshot_retention
        async with self._db.session() as session:
            result = await session.execute(delete(UserSummary).where(UserSummary.created_at < cutoff))
            await session.commit()

        count = result.rowcount or 0
        if count > 0:
            logger.info("summary_snapshots_pruned", count=count)
        return count
