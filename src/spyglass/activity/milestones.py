"""Milestone detector: per (user, project) notification watermarks.

A watermark row holds ``last_total_seconds``, the project's cumulative
seconds at the last notification (or when the project was first seen).

First observation of a project creates the row at the observed total and
sends nothing, so time accumulated before tracking began never triggers a
celebration. On later observations:

    delta   = total - last_total_seconds
    periods = delta // period_seconds

When ``periods >= 1`` one event is emitted for the whole jump and the
watermark moves forward by ``periods * period_seconds`` (not to ``total``),
keeping the sub-period remainder for the next cycle. A negative delta is
treated as no progress and leaves the watermark alone.

Watermarks are committed before any Slack call; a failed send is logged
and the notification is lost.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select

from spyglass.database import Database
from spyglass.db.models import ProjectNotification
from spyglass.notify.preferences import PreferenceService
from spyglass.notify.slack import BaseNotifier
from spyglass.notify.templates import milestone_message
from spyglass.schemas import ActivitySummary, MilestoneEvent
from spyglass.time_utils import utcnow

logger = structlog.get_logger()


def compute_milestone(last_total_seconds: int, current_total_seconds: int, period_seconds: int) -> int:
    """Number of whole notification periods completed since the watermark."""
    if period_seconds <= 0:
        raise ValueError("period_seconds must be positive")
    delta = current_total_seconds - last_total_seconds
    if delta <= 0:
        return 0
    return delta // period_seconds


class MilestoneDetector:
    """Advances project watermarks from a fresh summary and announces milestones."""

    def __init__(
        self,
        database: Database,
        preferences: PreferenceService,
        notifier: BaseNotifier,
        period_seconds: int = 3600,
    ) -> None:
        self._db = database
        self._preferences = preferences
        self._notifier = notifier
        self.period_seconds = period_seconds

    async def detect_and_notify(self, user_id: str, summary: ActivitySummary) -> list[MilestoneEvent]:
        events = await self.detect(user_id, summary)
        for event in events:
            await self.notify(event)
        return events

    async def detect(self, user_id: str, summary: ActivitySummary) -> list[MilestoneEvent]:
        """Update watermarks for every project in ``summary`` and return fired events."""
        totals = {key: total for key, total in summary.project_totals().items() if key}
        if not totals:
            return []

        now = utcnow()
        events: list[MilestoneEvent] = []

        async with self._db.session() as session:
            result = await session.execute(
                select(ProjectNotification).where(
                    ProjectNotification.user_id == user_id,
                    ProjectNotification.project_name.in_(list(totals)),
                )
            )
            watermarks = {wm.project_name: wm for wm in result.scalars()}

            for project, total in totals.items():
                watermark = watermarks.get(project)

                if watermark is None:
                    session.add(ProjectNotification(
                        user_id=user_id,
                        project_name=project,
                        last_notified_at=now,
                        last_total_seconds=total,
                        created_at=now,
                        updated_at=now,
                    ))
                    logger.debug("project_tracking_started", user=user_id, project=project, total=total)
                    continue

                periods = compute_milestone(watermark.last_total_seconds, total, self.period_seconds)
                if periods < 1:
                    continue

                elapsed = periods * self.period_seconds
                watermark.last_total_seconds += elapsed
                watermark.last_notified_at = now
                watermark.updated_at = now

                events.append(MilestoneEvent(
                    user_id=user_id,
                    project=project,
                    periods=periods,
                    elapsed_seconds=elapsed,
                    total_seconds=total,
                ))
                logger.info(
                    "milestone_reached",
                    user=user_id,
                    project=project,
                    periods=periods,
                    total=total,
                    watermark=watermark.last_total_seconds,
                )

            await session.commit()

        return events

    async def notify(self, event: MilestoneEvent) -> int:
        """Send ``event`` to every channel the user opted into. Returns successful sends."""
        channels = await self._preferences.enabled_channels_for_user(event.user_id)
        if not channels:
            logger.debug("milestone_no_channels", user=event.user_id, project=event.project)
            return 0

        text = milestone_message(event.user_id, event.project, event.elapsed_seconds, event.total_seconds)
        delivered = 0
        for channel in channels:
            try:
                if await self._notifier.send(channel, text):
                    delivered += 1
            except Exception:
                logger.warning("milestone_send_failed", user=event.user_id, channel=channel, exc_info=True)

        return delivered
