"""Helpers for locating application directories."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "WorkTracker"
APP_AUTHOR = "WorkTracker"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / "worktracker.db"


def get_config_path() -> Path:
    return get_data_dir() / "config.json"


def get_legacy_log_path() -> Path:
    """Flat-text activity log written by versions before the SQLite store."""
    return get_data_dir() / "activity_log.txt"
