"""Service wiring shared by the API lifespan and the standalone poller."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from fastapi import Request

from spyglass.activity.leaderboard import LeaderboardService
from spyglass.activity.milestones import MilestoneDetector
from spyglass.activity.summarizer import ActivitySummarizer
from spyglass.config import Settings
from spyglass.database import Database
from spyglass.exceptions import UpstreamUnavailableError
from spyglass.notify.preferences import PreferenceService
from spyglass.notify.slack import SlackNotifier
from spyglass.sync.ingester import HeartbeatIngester
from spyglass.upstream.store import ActivityStore
from spyglass.upstream.summary_client import SummaryClient
from spyglass.workers.poller import SyncPoller

logger = structlog.get_logger()


@dataclass
class Services:
    """Every long-lived collaborator, constructed once and passed explicitly."""

    settings: Settings
    database: Database
    store: ActivityStore
    summary_client: SummaryClient
    notifier: SlackNotifier
    preferences: PreferenceService
    leaderboard: LeaderboardService
    ingester: HeartbeatIngester
    summarizer: ActivitySummarizer
    poller: SyncPoller

    @classmethod
    def from_settings(cls, settings: Settings) -> Services:
        database = Database.from_settings(settings)
        store = ActivityStore.from_settings(settings)
        summary_client = SummaryClient.from_settings(settings)
        notifier = SlackNotifier.from_settings(settings)

        preferences = PreferenceService(database)
        detector = MilestoneDetector(
            database,
            preferences,
            notifier,
            period_seconds=settings.notification_period_seconds,
        )
        summarizer = ActivitySummarizer(
            database,
            store,
            summary_client,
            detector,
            snapshot_retention_days=settings.summary_retention_days,
        )
        ingester = HeartbeatIngester.from_settings(settings, database, store)

        return cls(
            settings=settings,
            database=database,
            store=store,
            summary_client=summary_client,
            notifier=notifier,
            preferences=preferences,
            leaderboard=LeaderboardService(database, preferences),
            ingester=ingester,
            summarizer=summarizer,
            poller=SyncPoller(ingester, summarizer, interval_seconds=settings.poll_interval_seconds),
        )

    async def open(self) -> None:
        """Open local resources; the upstream store may stay unreachable.

        An unreachable upstream is logged and retried lazily by the next
        query. Any other failure closes what was already opened and raises.
        """
        try:
            await self.database.open()
            try:
                await self.store.connect()
            except UpstreamUnavailableError as exc:
                logger.warning("upstream_unavailable_at_startup", error=str(exc))
            await self.summary_client.open()
            await self.notifier.open()
        except Exception:
            await self.close()
            raise

    async def close(self) -> None:
        """Release resources in reverse order of ``open``."""
        await self.notifier.close()
        await self.summary_client.close()
        await self.store.close()
        await self.database.close()


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services attached by the lifespan."""
    return request.app.state.services
