"""Read-only access to the upstream activity database.

Uses an asyncpg pool; every query acquires a connection for its own
duration and releases it on all exit paths.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import asyncpg

from spyglass.config import Settings
from spyglass.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

HEARTBEAT_COLUMNS = (
    "id",
    "user_id",
    "entity",
    "type",
    "category",
    "project",
    "branch",
    "language",
    "is_write",
    "editor",
    "operating_system",
    "machine",
    "user_agent",
    "time",
    "hash",
    "origin",
    "origin_id",
    "created_at",
    "project_root_count",
    "line_additions",
    "line_deletions",
    "lines",
    "line_number",
    "cursor_position",
    "dependencies",
)

_SELECT_HEARTBEATS_SINCE = f"""
    SELECT {", ".join(HEARTBEAT_COLUMNS)}
    FROM heartbeats
    WHERE created_at > $1
    ORDER BY created_at DESC
"""  # noqa: S608

_SELECT_API_KEY = "SELECT api_key FROM users WHERE id = $1"


# Connection-level failures: server errors, refused or dropped sockets,
# and client-side encoding errors raised by asyncpg itself.
_UPSTREAM_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def to_upstream_timestamp(value: datetime) -> datetime:
    """Naive UTC, as stored in the upstream ``timestamp without time zone`` columns."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ActivityStore:
    """Pooled query surface over the upstream ``heartbeats`` and ``users`` tables.

    The pool is created lazily: ``connect`` failing at startup is logged by
    the caller and the next query tries again.
    """

    def __init__(self, dsn: str, min_size: int = 0, max_size: int = 5) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ActivityStore:
        return cls(
            settings.upstream_database_url,
            min_size=settings.upstream_pool_min_size,
            max_size=settings.upstream_pool_max_size,
        )

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Create the connection pool. Raises UpstreamUnavailableError on failure."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
            )
        except _UPSTREAM_ERRORS as exc:
            raise UpstreamUnavailableError(f"Could not connect to upstream store: {exc}") from exc
        logger.info("Connected to upstream activity store")

    async def close(self) -> None:
        """Close the pool, waiting for in-flight queries to release their connections."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Upstream activity store closed")

    async def fetch_heartbeats_since(self, since: datetime) -> list[dict[str, Any]]:
        """Return every heartbeat with created_at strictly after ``since``, newest first."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(_SELECT_HEARTBEATS_SINCE, to_upstream_timestamp(since))
        except _UPSTREAM_ERRORS as exc:
            raise UpstreamUnavailableError(f"Heartbeat query failed: {exc}") from exc
        return [dict(row) for row in rows]

    async def get_api_key(self, user_id: str) -> str | None:
        """Look up the summary API key for an upstream user id."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval(_SELECT_API_KEY, user_id)
        except _UPSTREAM_ERRORS as exc:
            raise UpstreamUnavailableError(f"API key lookup failed: {exc}") from exc

    async def ping(self) -> None:
        """Round-trip a trivial query; raises UpstreamUnavailableError on failure."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except _UPSTREAM_ERRORS as exc:
            raise UpstreamUnavailableError(f"Upstream ping failed: {exc}") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            await self.connect()
        return self._pool
