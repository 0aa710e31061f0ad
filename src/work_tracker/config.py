"""Configuration models and helpers for the work tracker.

The on-disk format is a JSON object with camelCase keys. Loading always goes
through :func:`merge_with_defaults`, so a partial or older file still yields a
fully populated :class:`TrackerConfig`.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

CONFIG_VERSION = 1

DEFAULT_PRODUCTIVE_APPS: tuple[str, ...] = (
    "Sublime Text",
    "sublime_text",
    "VSCode",
    "Visual Studio Code",
    "Code",
    "Terminal",
    "iTerm2",
    "TextEdit",
    "Xcode",
    "IntelliJ IDEA",
    "WebStorm",
    "PyCharm",
    "Android Studio",
    "Atom",
    "Vim",
    "Emacs",
    "Notepad++",
    "Eclipse",
)

DEFAULT_PRODUCTIVE_WEBSITES: tuple[str, ...] = (
    "Claude",
    "claude.ai",
    "localhost",
    "GitHub",
    "github.com",
    "stackoverflow.com",
    "docs.google.com",
    "notion.so",
    "jira.com",
    "Excalidraw",
    "Colab",
    "Jupyter",
    "gitlab.com",
    "bitbucket.org",
    "linear.app",
    "figma.com",
    "miro.com",
)

_TIME_OF_DAY = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


@dataclass(slots=True)
class NotificationSettings:
    break_reminders: bool = True
    daily_summary: bool = True
    daily_summary_time: str = "18:00"
    goal_reached: bool = True


@dataclass(slots=True)
class UiSettings:
    show_goal_progress: bool = True
    show_current_project: bool = True


@dataclass(slots=True)
class TrackerConfig:
    """Fully populated runtime configuration."""

    version: int = CONFIG_VERSION
    productive_apps: list[str] = field(default_factory=lambda: list(DEFAULT_PRODUCTIVE_APPS))
    productive_websites: list[str] = field(
        default_factory=lambda: list(DEFAULT_PRODUCTIVE_WEBSITES)
    )
    afk_threshold_seconds: int = 180
    tracking_interval_seconds: int = 30
    daily_goal_minutes: int = 480
    break_reminder_minutes: int = 60
    project_keywords: dict[str, list[str]] = field(default_factory=dict)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    ui: UiSettings = field(default_factory=UiSettings)

    @property
    def goal_seconds(self) -> int:
        return self.daily_goal_minutes * 60

    @property
    def sample_interval(self) -> timedelta:
        return timedelta(seconds=self.tracking_interval_seconds)

    @property
    def afk_threshold(self) -> timedelta:
        return timedelta(seconds=self.afk_threshold_seconds)

    def with_overrides(
        self,
        *,
        interval_seconds: Optional[int] = None,
        afk_threshold_seconds: Optional[int] = None,
        goal_minutes: Optional[int] = None,
    ) -> "TrackerConfig":
        """Return a copy with command-line overrides applied."""
        changes: dict[str, Any] = {}
        if interval_seconds is not None:
            changes["trackingIntervalSeconds"] = interval_seconds
        if afk_threshold_seconds is not None:
            changes["afkThresholdSeconds"] = afk_threshold_seconds
        if goal_minutes is not None:
            changes["dailyGoalMinutes"] = goal_minutes
        return validate_config(merge_with_defaults(_merge(self.to_dict(), changes)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "productiveApps": list(self.productive_apps),
            "productiveWebsites": list(self.productive_websites),
            "dailyGoalMinutes": self.daily_goal_minutes,
            "breakReminderMinutes": self.break_reminder_minutes,
            "afkThresholdSeconds": self.afk_threshold_seconds,
            "trackingIntervalSeconds": self.tracking_interval_seconds,
            "projectKeywords": {
                name: list(keywords) for name, keywords in self.project_keywords.items()
            },
            "notifications": {
                "breakReminders": self.notifications.break_reminders,
                "dailySummary": self.notifications.daily_summary,
                "dailySummaryTime": self.notifications.daily_summary_time,
                "goalReached": self.notifications.goal_reached,
            },
            "ui": {
                "showGoalProgress": self.ui.show_goal_progress,
                "showCurrentProject": self.ui.show_current_project,
            },
        }


DEFAULT_CONFIG: dict[str, Any] = TrackerConfig().to_dict()


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    # Nested objects merge key by key; lists and scalars replace.
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **copy.deepcopy(value)}
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_with_defaults(loaded: dict[str, Any]) -> TrackerConfig:
    """Combine a (possibly partial) config mapping with the defaults."""
    data = _merge(DEFAULT_CONFIG, {k: v for k, v in loaded.items() if k in DEFAULT_CONFIG})
    version = int(data.get("version") or CONFIG_VERSION)
    if version > CONFIG_VERSION:
        logger.warning(
            "Config version %s is newer than supported version %s; unknown fields ignored.",
            version,
            CONFIG_VERSION,
        )
    notifications = data["notifications"]
    ui = data["ui"]
    return TrackerConfig(
        version=CONFIG_VERSION,
        productive_apps=[str(app) for app in data["productiveApps"]],
        productive_websites=[str(site) for site in data["productiveWebsites"]],
        afk_threshold_seconds=data["afkThresholdSeconds"],
        tracking_interval_seconds=data["trackingIntervalSeconds"],
        daily_goal_minutes=data["dailyGoalMinutes"],
        break_reminder_minutes=data["breakReminderMinutes"],
        project_keywords={
            str(name): [str(keyword) for keyword in keywords]
            for name, keywords in (data["projectKeywords"] or {}).items()
            if isinstance(keywords, list)
        },
        notifications=NotificationSettings(
            break_reminders=bool(notifications.get("breakReminders")),
            daily_summary=bool(notifications.get("dailySummary")),
            daily_summary_time=str(notifications.get("dailySummaryTime")),
            goal_reached=bool(notifications.get("goalReached")),
        ),
        ui=UiSettings(
            show_goal_progress=bool(ui.get("showGoalProgress")),
            show_current_project=bool(ui.get("showCurrentProject")),
        ),
    )


def validate_config(config: TrackerConfig) -> TrackerConfig:
    """Raise ``ValueError`` when a field is out of range."""
    for name in (
        "afk_threshold_seconds",
        "tracking_interval_seconds",
        "daily_goal_minutes",
        "break_reminder_minutes",
    ):
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")
    if not _TIME_OF_DAY.match(config.notifications.daily_summary_time):
        raise ValueError(
            "dailySummaryTime must use HH:MM, "
            f"got {config.notifications.daily_summary_time!r}"
        )
    return config


class ConfigStore:
    """Loads, edits and persists the JSON configuration file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._config: Optional[TrackerConfig] = None
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.RLock()

    def load(self) -> TrackerConfig:
        with self._lock:
            if not self.path.exists():
                self._config = TrackerConfig()
                self.save()
                return self._config
            try:
                loaded = json.loads(self.path.read_text(encoding="utf-8"))
                if not isinstance(loaded, dict):
                    raise ValueError("config root must be a JSON object")
                self._config = validate_config(merge_with_defaults(loaded))
            except (OSError, ValueError, TypeError, KeyError, AttributeError):
                logger.exception("Failed to load config from %s; using defaults.", self.path)
                self._config = TrackerConfig()
            return self._config

    def save(self) -> None:
        with self._lock:
            config = self._current()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callable run synchronously after every edit."""
        self._listeners.append(callback)

    def get_all(self) -> TrackerConfig:
        with self._lock:
            return copy.deepcopy(self._current())

    def get(self, key: str) -> Any:
        value: Any = self._current().to_dict()
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return None
        return value

    def set(self, key: str, value: Any) -> None:
        parts = key.split(".")
        data = self._current().to_dict()
        if parts[0] not in data:
            raise ValueError(f"Unknown config key: {key}")
        target = data
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = value
        self._replace(data)

    def update(self, changes: dict[str, Any]) -> None:
        unknown = sorted(set(changes) - set(DEFAULT_CONFIG))
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        self._replace(_merge(self._current().to_dict(), changes))

    def reset(self) -> None:
        self._replace(TrackerConfig().to_dict())

    def add_productive_app(self, app_name: str) -> None:
        apps = self._current().productive_apps
        if app_name not in apps:
            self.update({"productiveApps": [*apps, app_name]})

    def remove_productive_app(self, app_name: str) -> None:
        apps = self._current().productive_apps
        if app_name in apps:
            self.update({"productiveApps": [app for app in apps if app != app_name]})

    def add_productive_website(self, website: str) -> None:
        sites = self._current().productive_websites
        if website not in sites:
            self.update({"productiveWebsites": [*sites, website]})

    def remove_productive_website(self, website: str) -> None:
        sites = self._current().productive_websites
        if website in sites:
            self.update({"productiveWebsites": [site for site in sites if site != website]})

    def get_project_keywords(self) -> dict[str, list[str]]:
        with self._lock:
            return copy.deepcopy(self._current().project_keywords)

    def set_project_keywords(self, project_name: str, keywords: list[str]) -> None:
        name = project_name.strip()
        if not name:
            raise ValueError("project name is required")
        cleaned = [keyword.strip() for keyword in keywords if keyword.strip()]
        data = self._current().to_dict()
        data["projectKeywords"][name] = cleaned
        self._replace(data)

    def remove_project(self, project_name: str) -> bool:
        data = self._current().to_dict()
        if project_name not in data["projectKeywords"]:
            return False
        del data["projectKeywords"][project_name]
        self._replace(data)
        return True

    def _current(self) -> TrackerConfig:
        if self._config is None:
            return self.load()
        return self._config

    def _replace(self, data: dict[str, Any]) -> None:
        with self._lock:
            self._config = validate_config(merge_with_defaults(data))
            self.save()
        for callback in self._listeners:
            callback()
