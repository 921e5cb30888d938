"""Settings loading."""

import pytest
from pydantic import ValidationError

from spyglass.config import Settings, get_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.poll_interval_seconds == 5.0
        assert settings.retention_hours == 24
        assert settings.notification_period_seconds == 3600
        assert settings.summary_interval == "all_time"
        assert settings.slack_command == "/spyglass"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SPYGLASS_POLL_INTERVAL_SECONDS", "2.5")
        monkeypatch.setenv("SPYGLASS_NOTIFICATION_PERIOD_SECONDS", "1800")
        settings = Settings(_env_file=None)
        assert settings.poll_interval_seconds == 2.5
        assert settings.notification_period_seconds == 1800

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, poll_interval_seconds=0)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
