"""Shared test fixtures.

Database-backed tests run against in-memory SQLite through the same
``Database`` class production uses. Upstream collaborators are replaced
by the in-memory fakes below.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from spyglass.activity.leaderboard import LeaderboardService
from spyglass.activity.milestones import MilestoneDetector
from spyglass.activity.summarizer import ActivitySummarizer
from spyglass.config import Settings
from spyglass.database import Database
from spyglass.exceptions import SummaryFetchError, UpstreamUnavailableError
from spyglass.main import create_app
from spyglass.notify.preferences import PreferenceService
from spyglass.notify.slack import BaseNotifier
from spyglass.schemas import ActivitySummary, parse_timestamp
from spyglass.services import Services
from spyglass.sync.cursor import CursorRepository
from spyglass.sync.ingester import HeartbeatIngester
from spyglass.workers.poller import SyncPoller


class FakeActivityStore:
    """In-memory stand-in for the upstream heartbeats/users tables."""

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.api_keys: dict[str, str] = {}
        self.unavailable = False
        self.queries: list[datetime] = []

    async def fetch_heartbeats_since(self, since: datetime) -> list[dict[str, Any]]:
        self.queries.append(since)
        if self.unavailable:
            raise UpstreamUnavailableError("connection refused")
        selected = [r for r in self.rows if parse_timestamp(r["created_at"]) > since]
        return sorted(selected, key=lambda r: parse_timestamp(r["created_at"]), reverse=True)

    async def get_api_key(self, user_id: str) -> str | None:
        if self.unavailable:
            raise UpstreamUnavailableError("connection refused")
        return self.api_keys.get(user_id)

    async def ping(self) -> None:
        if self.unavailable:
            raise UpstreamUnavailableError("connection refused")


class FakeSummaryClient:
    """Returns canned summaries keyed by API key."""

    def __init__(self) -> None:
        self.summaries: dict[str, ActivitySummary] = {}
        self.failures: dict[str, SummaryFetchError] = {}
        self.calls: list[str] = []

    def set_summary(self, api_key: str, projects: dict[str, int], languages: dict[str, int] | None = None) -> None:
        self.summaries[api_key] = make_summary(projects, languages)

    async def fetch_summary(self, api_key: str) -> ActivitySummary:
        self.calls.append(api_key)
        if api_key in self.failures:
            raise self.failures[api_key]
        return self.summaries[api_key]


class RecordingNotifier(BaseNotifier):
    """Records every send; selected channels fail or raise."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing_channels: set[str] = set()
        self.raising_channels: set[str] = set()

    async def send(self, channel_id: str, text: str) -> bool:
        if channel_id in self.raising_channels:
            raise RuntimeError("boom")
        if channel_id in self.failing_channels:
            return False
        self.sent.append((channel_id, text))
        return True


def make_summary(projects: dict[str, int], languages: dict[str, int] | None = None) -> ActivitySummary:
    return ActivitySummary.model_validate({
        "projects": [{"key": k, "total": v} for k, v in projects.items()],
        "languages": [{"key": k, "total": v} for k, v in (languages or {}).items()],
    })


def make_heartbeat(hb_id: int | str, user_id: str, created_at: datetime, **overrides: Any) -> dict[str, Any]:  # noqa: ANN401
    row: dict[str, Any] = {
        "id": hb_id,
        "user_id": user_id,
        "entity": "/src/app.py",
        "type": "file",
        "category": "coding",
        "project": "site",
        "branch": "main",
        "language": "Python",
        "is_write": True,
        "editor": "vscode",
        "operating_system": "linux",
        "machine": "laptop",
        "user_agent": "wakatime/1.0",
        "time": created_at.timestamp(),
        "hash": f"hash-{hb_id}",
        "origin": None,
        "origin_id": None,
        "created_at": created_at,
        "project_root_count": 3,
        "line_additions": 2,
        "line_deletions": 1,
        "lines": 120,
        "line_number": 10,
        "cursor_position": 42,
        "dependencies": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        slack_signing_secret="test-signing-secret",
        slack_bot_token="xoxb-test",
        poller_enabled=False,
        log_format="console",
    )


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Fresh in-memory schema per test."""
    db = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.open()
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def store() -> FakeActivityStore:
    return FakeActivityStore()


@pytest.fixture
def summary_client() -> FakeSummaryClient:
    return FakeSummaryClient()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(settings, database, store, summary_client, notifier) -> Services:
    preferences = PreferenceService(database)
    detector = MilestoneDetector(database, preferences, notifier, settings.notification_period_seconds)
    summarizer = ActivitySummarizer(database, store, summary_client, detector)
    ingester = HeartbeatIngester(database, store, CursorRepository(database))
    return Services(
        settings=settings,
        database=database,
        store=store,
        summary_client=summary_client,
        notifier=notifier,
        preferences=preferences,
        leaderboard=LeaderboardService(database, preferences),
        ingester=ingester,
        summarizer=summarizer,
        poller=SyncPoller(ingester, summarizer),
    )


@pytest_asyncio.fixture
async def api_client(services) -> AsyncGenerator[AsyncClient, None]:
    """App wired to test services; the lifespan is not run."""
    app = create_app()
    app.state.services = services
    app.state.database = services.database
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
