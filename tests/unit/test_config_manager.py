"""
Unit tests for ConfigManager.

Covers YAML loading, dot-notation reads, overrides and validators.
"""

import pytest

from guildroster.core.config.manager import ConfigManager, ConfigWriteError


class TestReads:
    def test_reads_yaml_defaults(self, config_manager):
        assert config_manager.get("validation.guild_name.min_length") == 3
        assert config_manager.get("audit.enabled") is True
        assert config_manager.get("core.event.listener_timeout_seconds") == 5.0

    def test_missing_key_returns_default(self, config_manager):
        assert config_manager.get("no.such.key", "fallback") == "fallback"
        assert config_manager.get("audit.enabled.deeper") is None

    def test_top_level_keys(self, config_manager):
        assert {"validation", "users", "audit", "core"} <= set(config_manager.get_all_keys())

    def test_missing_directory_leaves_defaults_empty(self, tmp_path):
        ConfigManager.load(tmp_path / "absent")
        try:
            assert ConfigManager.get("audit.enabled", "default") == "default"
        finally:
            ConfigManager.load()


class TestDeepMerge:
    def test_later_files_merge_into_earlier(self, tmp_path):
        (tmp_path / "a.yaml").write_text("audit:\n  enabled: true\n  retention_days: 30\n")
        (tmp_path / "b.yaml").write_text("audit:\n  retention_days: 7\n")

        ConfigManager.load(tmp_path)
        try:
            assert ConfigManager.get("audit.enabled") is True
            assert ConfigManager.get("audit.retention_days") == 7
        finally:
            ConfigManager.load()


class TestOverrides:
    def test_override_wins_until_reset(self, config_manager):
        config_manager.set("audit.enabled", False)
        assert config_manager.get("audit.enabled") is False

        config_manager.reset()
        assert config_manager.get("audit.enabled") is True

    def test_snapshot_is_a_copy(self, config_manager):
        snapshot = config_manager.snapshot()
        snapshot["audit"]["enabled"] = False

        assert config_manager.get("audit.enabled") is True

    def test_validator_normalizes_value(self, config_manager):
        config_manager.register_validator("tests.page_size", int)
        config_manager.set("tests.page_size", "25")

        assert config_manager.get("tests.page_size") == 25

    def test_validator_rejection_raises(self, config_manager):
        config_manager.register_validator("tests.page_size", int)

        with pytest.raises(ConfigWriteError):
            config_manager.set("tests.page_size", "many")
