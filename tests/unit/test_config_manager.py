"""
Unit Tests for ConfigManager
============================

YAML defaults, dot-notation reads, overrides and reset.
"""

import pytest

from hunterfit.core.config.manager import ConfigManager


@pytest.fixture
def yaml_dir(tmp_path):
    (tmp_path / "a_progression.yaml").write_text(
        "leveling:\n"
        "  xp_base: 120\n"
        "  xp_growth: 1.5\n"
        "quests:\n"
        "  daily_count: 3\n",
        encoding="utf-8",
    )
    (tmp_path / "b_overrides.yml").write_text(
        "quests:\n"
        "  daily_count: 4\n",
        encoding="utf-8",
    )
    (tmp_path / "c_broken.yaml").write_text("quests: [unclosed\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def manager(yaml_dir):
    ConfigManager.reset()
    ConfigManager.initialize(yaml_dir)
    yield ConfigManager
    ConfigManager.reset()


@pytest.mark.unit
class TestConfigManager:
    def test_dot_notation(self, manager):
        assert manager.get("leveling.xp_base") == 120

    def test_later_files_win(self, manager):
        assert manager.get("quests.daily_count") == 4

    def test_nested_merge_keeps_siblings(self, manager):
        assert manager.get("leveling.xp_growth") == 1.5

    def test_broken_file_is_skipped(self, manager):
        assert manager.health_snapshot()["yaml_files_loaded"] == 2

    def test_missing_key_returns_default(self, manager):
        assert manager.get("dungeons.cooldown_hours", 24) == 24
        assert manager.get("leveling.xp_base.deeper", "x") == "x"

    def test_override_layers_on_top(self, manager):
        manager.override({"quests": {"daily_count": 5}})

        assert manager.get("quests.daily_count") == 5
        assert manager.get("leveling.xp_base") == 120

    def test_reset_drops_overrides(self, manager, yaml_dir):
        manager.override({"quests": {"daily_count": 9}})

        manager.reset()
        manager.initialize(yaml_dir)

        assert manager.get("quests.daily_count") == 4

    def test_missing_directory_uses_code_defaults(self, tmp_path):
        ConfigManager.reset()
        ConfigManager.initialize(tmp_path / "does-not-exist")
        try:
            assert ConfigManager.get("leveling.xp_base", 100) == 100
        finally:
            ConfigManager.reset()

    def test_top_level_keys(self, manager):
        manager.override({"raids": {"abandon_cooldown_factor": 0.5}})
        assert manager.get_all_keys() == ["leveling", "quests", "raids"]


@pytest.mark.unit
def test_project_config_loads(config_manager):
    assert config_manager.get("leveling.xp_base") == 100
    assert config_manager.health_snapshot()["yaml_files_loaded"] >= 1
