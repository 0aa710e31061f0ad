from __future__ import annotations

import json

import pytest

from work_tracker.config import (
    DEFAULT_CONFIG,
    ConfigStore,
    TrackerConfig,
    merge_with_defaults,
    validate_config,
)


class TestMergeWithDefaults:
    def test_empty_mapping_gives_defaults(self):
        assert merge_with_defaults({}) == TrackerConfig()

    def test_lists_replace_defaults(self):
        config = merge_with_defaults({"productiveApps": ["Emacs"]})
        assert config.productive_apps == ["Emacs"]

    def test_nested_objects_merge_key_by_key(self):
        config = merge_with_defaults({"notifications": {"dailySummaryTime": "17:30"}})
        assert config.notifications.daily_summary_time == "17:30"
        assert config.notifications.break_reminders is True

    def test_unknown_keys_are_ignored(self):
        config = merge_with_defaults({"theme": "dark", "dailyGoalMinutes": 240})
        assert config.daily_goal_minutes == 240

    def test_newer_version_still_loads(self, caplog):
        config = merge_with_defaults({"version": 99})
        assert config.version == DEFAULT_CONFIG["version"]
        assert "newer than supported" in caplog.text

    def test_to_dict_round_trips(self):
        config = merge_with_defaults({"projectKeywords": {"Site": ["web"]}})
        assert merge_with_defaults(config.to_dict()) == config


class TestValidateConfig:
    @pytest.mark.parametrize(
        "changes",
        [
            {"afkThresholdSeconds": 0},
            {"trackingIntervalSeconds": -5},
            {"dailyGoalMinutes": "eight hours"},
            {"notifications": {"dailySummaryTime": "25:00"}},
        ],
    )
    def test_rejects_bad_values(self, changes):
        with pytest.raises(ValueError):
            validate_config(merge_with_defaults(changes))

    def test_overrides_return_a_copy(self):
        config = TrackerConfig()
        overridden = config.with_overrides(interval_seconds=5, goal_minutes=60)
        assert overridden.tracking_interval_seconds == 5
        assert overridden.goal_seconds == 3600
        assert config.tracking_interval_seconds == 30


class TestConfigStore:
    def test_load_writes_defaults_when_missing(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        store = ConfigStore(path)
        assert store.load() == TrackerConfig()
        assert json.loads(path.read_text())["dailyGoalMinutes"] == 480

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert ConfigStore(path).load() == TrackerConfig()

    def test_get_uses_dot_notation(self, config_store):
        assert config_store.get("notifications.dailySummaryTime") == "18:00"
        assert config_store.get("notifications.missing") is None

    def test_set_persists(self, config_store):
        config_store.set("notifications.dailySummaryTime", "19:15")
        reloaded = ConfigStore(config_store.path).load()
        assert reloaded.notifications.daily_summary_time == "19:15"

    def test_set_rejects_unknown_root_key(self, config_store):
        with pytest.raises(ValueError):
            config_store.set("theme", "dark")

    def test_failed_validation_keeps_previous_value(self, config_store):
        with pytest.raises(ValueError):
            config_store.update({"dailyGoalMinutes": 0})
        assert config_store.get_all().daily_goal_minutes == 480

    def test_get_all_returns_a_copy(self, config_store):
        config_store.get_all().productive_apps.append("Mutated")
        assert "Mutated" not in config_store.get_all().productive_apps

    def test_productive_app_edits(self, config_store):
        config_store.add_productive_app("Figma")
        config_store.add_productive_app("Figma")
        assert config_store.get_all().productive_apps.count("Figma") == 1
        config_store.remove_productive_app("Figma")
        assert "Figma" not in config_store.get_all().productive_apps

    def test_productive_website_edits(self, config_store):
        config_store.add_productive_website("readthedocs.io")
        assert "readthedocs.io" in config_store.get_all().productive_websites
        config_store.remove_productive_website("readthedocs.io")
        assert "readthedocs.io" not in config_store.get_all().productive_websites

    def test_project_keywords(self, config_store):
        config_store.set_project_keywords("  Website ", ["site", " ", "web "])
        assert config_store.get_project_keywords() == {"Website": ["site", "web"]}
        assert config_store.remove_project("Website")
        assert not config_store.remove_project("Website")

    def test_blank_project_name_rejected(self, config_store):
        with pytest.raises(ValueError):
            config_store.set_project_keywords("  ", ["x"])

    def test_listeners_run_after_each_edit(self, config_store):
        calls = []
        config_store.add_listener(lambda: calls.append(True))
        config_store.set_project_keywords("A", ["a"])
        config_store.reset()
        assert len(calls) == 2
        assert config_store.get_project_keywords() == {}
