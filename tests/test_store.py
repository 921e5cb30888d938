"""Upstream store: parameter encoding, error wrapping and lazy connection."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import asyncpg
import pytest

from spyglass.exceptions import UpstreamUnavailableError
from spyglass.upstream.store import ActivityStore, to_upstream_timestamp

DSN = "postgresql://spyglass@127.0.0.1:1/upstream"


class FakeConnection:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    async def fetch(self, query, *args):
        self.calls.append((query, args))
        if self.error:
            raise self.error
        return self.rows

    async def fetchval(self, query, *args):
        self.calls.append((query, args))
        if self.error:
            raise self.error
        return "key-1"


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self):
        self.closed = True


def pool_factory(pool, calls):
    async def create_pool(dsn, **kwargs):
        calls.append(kwargs)
        return pool
    return create_pool


async def refuse(dsn, **kwargs):
    raise ConnectionRefusedError(111, "Connection refused")


class TestToUpstreamTimestamp:
    def test_aware_becomes_naive_utc(self):
        since = datetime(2026, 10, 19, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_upstream_timestamp(since) == datetime(2026, 10, 19, 12, 0)
        assert to_upstream_timestamp(since).tzinfo is None

    def test_naive_is_kept(self):
        since = datetime(2026, 10, 19, 12, 0)
        assert to_upstream_timestamp(since) is since


class TestActivityStore:
    async def test_fetch_binds_naive_utc_cursor(self, monkeypatch):
        conn = FakeConnection(rows=[{"id": 1, "user_id": "U1"}])
        monkeypatch.setattr(asyncpg, "create_pool", pool_factory(FakePool(conn), []))
        store = ActivityStore(DSN)

        rows = await store.fetch_heartbeats_since(datetime(2026, 10, 19, 12, 0, 5, tzinfo=timezone.utc))

        assert rows == [{"id": 1, "user_id": "U1"}]
        (_, args), = conn.calls
        assert args == (datetime(2026, 10, 19, 12, 0, 5),)
        assert args[0].tzinfo is None

    async def test_client_side_encoding_error_is_wrapped(self, monkeypatch):
        conn = FakeConnection(error=asyncpg.InterfaceError("invalid input for query argument $1"))
        monkeypatch.setattr(asyncpg, "create_pool", pool_factory(FakePool(conn), []))
        store = ActivityStore(DSN)

        with pytest.raises(UpstreamUnavailableError):
            await store.fetch_heartbeats_since(datetime(2026, 10, 19, tzinfo=timezone.utc))

    async def test_pool_is_lazy_by_default(self, monkeypatch):
        calls = []
        monkeypatch.setattr(asyncpg, "create_pool", pool_factory(FakePool(FakeConnection()), calls))

        await ActivityStore(DSN).connect()

        assert calls[0]["min_size"] == 0

    async def test_connect_failure_raises_upstream_error(self, monkeypatch):
        monkeypatch.setattr(asyncpg, "create_pool", refuse)
        store = ActivityStore(DSN)

        with pytest.raises(UpstreamUnavailableError):
            await store.connect()
        assert not store.connected

    async def test_query_retries_connection_after_outage(self, monkeypatch):
        monkeypatch.setattr(asyncpg, "create_pool", refuse)
        store = ActivityStore(DSN)
        with pytest.raises(UpstreamUnavailableError):
            await store.get_api_key("U1")

        pool = FakePool(FakeConnection())
        monkeypatch.setattr(asyncpg, "create_pool", pool_factory(pool, []))

        assert await store.get_api_key("U1") == "key-1"
        assert store.connected

        await store.close()
        assert pool.closed
        assert not store.connected
