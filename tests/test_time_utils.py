"""Unit tests for window and retention boundaries."""

from datetime import datetime, timedelta, timezone

import pytest

from spyglass.time_utils import as_utc, get_window_start, retention_cutoff, start_of_day

NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


class TestWindows:
    def test_day_starts_at_utc_midnight(self):
        assert get_window_start("day", NOW) == datetime(2026, 10, 19, tzinfo=timezone.utc)

    def test_week_is_seven_days_back(self):
        assert get_window_start("week", NOW) == NOW - timedelta(days=7)

    def test_unknown_period(self):
        with pytest.raises(ValueError, match="Unknown period"):
            get_window_start("month", NOW)

    def test_start_of_day_converts_offset(self):
        local = datetime(2026, 10, 19, 1, 0, tzinfo=timezone(timedelta(hours=5)))
        assert start_of_day(local) == datetime(2026, 10, 18, tzinfo=timezone.utc)


class TestRetention:
    def test_cutoff(self):
        assert retention_cutoff(24, NOW) == NOW - timedelta(hours=24)

    def test_as_utc_naive(self):
        assert as_utc(datetime(2026, 1, 1)).tzinfo == timezone.utc
