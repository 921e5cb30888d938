"""Cursor persistence and monotonicity."""

from datetime import datetime, timedelta, timezone

import pytest

from spyglass.sync.cursor import CursorRepository

pytestmark = pytest.mark.asyncio

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestCursorRepository:
    async def test_missing_cursor_is_none(self, database):
        assert await CursorRepository(database).get() is None

    async def test_first_advance_creates_row(self, database):
        repo = CursorRepository(database)
        assert await repo.advance(T0) == T0
        assert await repo.get() == T0

    async def test_advance_moves_forward(self, database):
        repo = CursorRepository(database)
        await repo.advance(T0)
        later = T0 + timedelta(seconds=5)
        assert await repo.advance(later) == later
        assert await repo.get() == later

    async def test_never_moves_backwards(self, database):
        repo = CursorRepository(database)
        await repo.advance(T0)
        assert await repo.advance(T0 - timedelta(hours=1)) == T0
        assert await repo.get() == T0

    async def test_sequence_is_monotonic(self, database):
        repo = CursorRepository(database)
        offsets = [5, 3, 10, 10, 1, 20, 15]
        seen = []
        for offset in offsets:
            await repo.advance(T0 + timedelta(seconds=offset))
            seen.append(await repo.get())
        assert seen == sorted(seen)
        assert seen[-1] == T0 + timedelta(seconds=20)
