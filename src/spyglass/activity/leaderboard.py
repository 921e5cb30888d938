"""Leaderboard aggregator: incremental coding time per opted-in user.

Snapshots hold cumulative all-time totals, so a window's activity is the
difference between the smallest and largest snapshot inside it. Min and
max are picked by total seconds rather than by time so out-of-order
inserts cannot produce a negative window.

The upstream summary has no per-project language breakdown. Every
language that grew in the window is attributed to every project that
grew, and the displayed language is the alphabetically first of those
that is not a placeholder.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy import select

from spyglass.database import Database
from spyglass.db.models import UserSummary
from spyglass.notify.preferences import PreferenceService
from spyglass.notify.templates import format_minutes, leaderboard_empty, leaderboard_header, rank_marker
from spyglass.schemas import ActivitySummary
from spyglass.time_utils import get_window_start, utcnow

logger = structlog.get_logger()

IGNORED_LANGUAGES = frozenset({"unknown", "AUTO_DETECTED", "PLAIN_TEXT", "Text"})


@dataclass
class ProjectDelta:
    name: str
    seconds: int
    language: str | None = None

    @property
    def minutes(self) -> int:
        return self.seconds // 60


@dataclass
class LeaderboardEntry:
    user_id: str
    total_seconds: int
    projects: list[ProjectDelta] = field(default_factory=list)

    @property
    def total_minutes(self) -> int:
        return self.total_seconds // 60


def pick_bounds(snapshots: Sequence[ActivitySummary]) -> tuple[ActivitySummary, ActivitySummary]:
    """Snapshots with the smallest and largest total seconds.

    Ties keep the earliest snapshot as the minimum and the latest as the
    maximum, given ``snapshots`` in ascending creation order.
    """
    if not snapshots:
        raise ValueError("at least one snapshot is required")
    low = high = snapshots[0]
    for snapshot in snapshots[1:]:
        if snapshot.total_seconds < low.total_seconds:
            low = snapshot
        if snapshot.total_seconds >= high.total_seconds:
            high = snapshot
    return low, high


def positive_deltas(before: dict[str, int], after: dict[str, int]) -> dict[str, int]:
    """Per-key growth from ``before`` to ``after``. Keys new in ``after`` start from 0."""
    deltas = {}
    for key, total in after.items():
        diff = total - before.get(key, 0)
        if diff > 0:
            deltas[key] = diff
    return deltas


def main_language(languages: dict[str, int]) -> str | None:
    eligible = sorted(name for name in languages if name and name not in IGNORED_LANGUAGES)
    return eligible[0] if eligible else None


def build_entry(user_id: str, snapshots: Sequence[ActivitySummary]) -> LeaderboardEntry | None:
    """Window activity for one user, or None when they do not qualify."""
    if len(snapshots) < 2:
        return None

    low, high = pick_bounds(snapshots)
    total = high.total_seconds - low.total_seconds
    if total <= 0:
        return None

    project_deltas = positive_deltas(low.project_totals(), high.project_totals())
    language = main_language(positive_deltas(low.language_totals(), high.language_totals()))

    projects = [ProjectDelta(name, seconds, language) for name, seconds in project_deltas.items()]
    projects.sort(key=lambda p: (-p.minutes, p.name))
    return LeaderboardEntry(user_id=user_id, total_seconds=total, projects=projects)


def rank_entries(entries: list[LeaderboardEntry], limit: int | None) -> list[LeaderboardEntry]:
    """Sort by total minutes descending and truncate. ``limit=None`` keeps everyone."""
    ranked = sorted(entries, key=lambda e: (-e.total_minutes, -e.total_seconds, e.user_id))
    if limit is not None:
        ranked = ranked[:max(limit, 0)]
    return ranked


def format_project(project: ProjectDelta) -> str:
    if project.language:
        return f"{project.name} [{project.language}]: {project.minutes}m"
    return f"{project.name}: {project.minutes}m"


def format_entry(rank: int, entry: LeaderboardEntry) -> str:
    line = f"{rank_marker(rank)} <@{entry.user_id}>: {format_minutes(entry.total_minutes)}"
    breakdown = " + ".join(format_project(p) for p in entry.projects if p.minutes > 0)
    if breakdown:
        line += f" ({breakdown})"
    return line


def render_leaderboard(period: str, entries: list[LeaderboardEntry]) -> str:
    if not entries:
        return leaderboard_empty(period)
    lines = [format_entry(rank, entry) for rank, entry in enumerate(entries, start=1)]
    return leaderboard_header(period) + "\n".join(lines) + "\n"


class LeaderboardService:
    """Read-only ranking over summary snapshots for a channel's opted-in users."""

    def __init__(self, database: Database, preferences: PreferenceService) -> None:
        self._db = database
        self._preferences = preferences

    async def snapshots_for_user(self, user_id: str, start: datetime, end: datetime) -> list[ActivitySummary]:
        async with self._db.session() as session:
            result = await session.execute(
                select(UserSummary.summary_data)
                .where(
                    UserSummary.user_id == user_id,
                    UserSummary.created_at >= start,
                    UserSummary.created_at <= end,
                )
                .order_by(UserSummary.created_at.asc(), UserSummary.id.asc())
            )
            return [ActivitySummary.model_validate(data) for data in result.scalars()]

    async def entries(self, channel_id: str, period: str, now: datetime | None = None) -> list[LeaderboardEntry]:
        if now is None:
            now = utcnow()
        start = get_window_start(period, now)

        entries = []
        for user_id in await self._preferences.enabled_users_for_channel(channel_id):
            snapshots = await self.snapshots_for_user(user_id, start, now)
            entry = build_entry(user_id, snapshots)
            if entry is not None:
                entries.append(entry)
        return entries

    async def leaderboard(
        self,
        channel_id: str,
        period: str = "day",
        limit: int | None = None,
        now: datetime | None = None,
    ) -> str:
        """Formatted leaderboard text for ``channel_id`` over ``period``."""
        entries = rank_entries(await self.entries(channel_id, period, now), limit)
        logger.info("leaderboard_built", channel=channel_id, period=period, limit=limit, entries=len(entries))
        return render_leaderboard(period, entries)
