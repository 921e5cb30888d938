"""Sync poller: the single sequential loop driving the pipeline.

One tick runs ingest, then summarize (which runs milestone detection and
notification), then retention cleanup. Ticks never overlap; the next one
is scheduled only after the current one has finished. Any failure is
logged and the loop carries on, so transient upstream problems heal on a
later tick.
"""

from __future__ import annotations

import asyncio
import logging

from spyglass.activity.summarizer import ActivitySummarizer
from spyglass.sync.ingester import HeartbeatIngester, IngestResult

logger = logging.getLogger(__name__)


class SyncPoller:
    """Runs ``tick`` every ``interval_seconds`` until ``stop`` is called."""

    def __init__(
        self,
        ingester: HeartbeatIngester,
        summarizer: ActivitySummarizer,
        interval_seconds: float = 5.0,
    ) -> None:
        self.ingester = ingester
        self.summarizer = summarizer
        self.interval_seconds = interval_seconds
        self._stop_event = asyncio.Event()
        self._running = False
        self._ticks = 0
        self._errors = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict[str, int]:
        return {"ticks": self._ticks, "errors": self._errors}

    async def tick(self) -> IngestResult | None:
        """One full pipeline pass. Returns the ingest result, or None if it failed."""
        self._ticks += 1
        result = None

        try:
            result = await self.ingester.ingest()
            if result.stored > 0:
                users = result.user_ids
                written = await self.summarizer.summarize(users)
                logger.info("Summarized %d of %d active users", written, len(users))
        except Exception:
            self._errors += 1
            logger.exception("Sync tick failed")

        try:
            await self.cleanup()
        except Exception:
            self._errors += 1
            logger.exception("Retention cleanup failed")

        return result

    async def cleanup(self) -> None:
        purged = await self.ingester.purge_expired()
        pruned = await self.summarizer.prune_snapshots()
        if purged or pruned:
            logger.info("Cleanup: purged %d heartbeats, pruned %d snapshots", purged, pruned)

    async def run(self) -> None:
        """Main loop. Returns after ``stop`` once the in-flight tick completes."""
        self._stop_event.clear()
        self._running = True
        logger.info("Sync poller started (interval=%.1fs)", self.interval_seconds)

        try:
            while not self._stop_event.is_set():
                await self.tick()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Sync poller stopped after %d ticks (%d errors)", self._ticks, self._errors)

    def stop(self) -> None:
        """Signal the loop to exit after the current tick."""
        self._stop_event.set()
