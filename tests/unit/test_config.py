"""
Unit tests for environment-driven Config.
"""

import pytest

from guildroster.core.config.config import Config, Environment


@pytest.fixture
def reload_config(monkeypatch):
    """Reload Config after the test's env changes, then restore it."""
    yield monkeypatch
    monkeypatch.undo()
    Config.load()


class TestEnvironment:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("production", Environment.PRODUCTION),
            (" Staging ", Environment.STAGING),
            ("test", Environment.TESTING),
            ("nonsense", Environment.DEVELOPMENT),
        ],
    )
    def test_parse(self, raw, expected):
        assert Environment.parse(raw) is expected

    def test_suite_runs_as_testing(self):
        assert Config.is_testing()
        assert not Config.is_production()


class TestLoad:
    def test_integer_settings_read_from_env(self, reload_config):
        reload_config.setenv("DATABASE_POOL_SIZE", "25")
        Config.load()
        assert Config.DATABASE_POOL_SIZE == 25

    @pytest.mark.parametrize("raw", ["lots", "0", "5000"])
    def test_bad_integer_falls_back_to_default(self, reload_config, raw):
        reload_config.setenv("DATABASE_POOL_SIZE", raw)
        Config.load()
        assert Config.DATABASE_POOL_SIZE == 10

    def test_booleans(self, reload_config):
        reload_config.setenv("DATABASE_ECHO", "yes")
        reload_config.setenv("LOG_JSON", "maybe")
        Config.load()
        assert Config.DATABASE_ECHO is True
        assert Config.LOG_JSON is None

    def test_invalid_log_level_becomes_info(self, reload_config):
        reload_config.setenv("LOG_LEVEL", "chatty")
        Config.load()
        assert Config.LOG_LEVEL == "INFO"

    def test_summary_hides_credentials(self, reload_config):
        reload_config.setenv("DATABASE_URL", "postgresql+asyncpg://admin:secret@db/roster")
        Config.load()
        summary = Config.summary()
        assert summary["database_scheme"] == "postgresql+asyncpg"
        assert "secret" not in str(summary)
