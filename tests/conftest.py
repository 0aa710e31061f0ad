from __future__ import annotations

from datetime import date, datetime

import pytest

from work_tracker.activity_source import ActivitySource, ActivitySourceError, ForegroundApp
from work_tracker.config import ConfigStore
from work_tracker.db import MEMORY_DB, EventStore
from work_tracker.models import ActivityEvent
from work_tracker.tracker import WorkTracker

DAY = date(2024, 3, 11)
NOW = datetime(2024, 3, 12, 9, 0)


def at(hour: int, minute: int = 0, second: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, second)


def work(hour: int, minute: int = 0, app: str = "VSCode", title: str = "main.py", project=None, day: date = DAY):
    return ActivityEvent.activity(at(hour, minute, day=day), app, title, project)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSource(ActivitySource):
    platform = "fake"

    def __init__(self) -> None:
        self.idle = 0.0
        self.app = "VSCode"
        self.title = "website - Visual Studio Code"
        self.fail = False
        self.title_requests = []

    def sample_idle_seconds(self) -> float:
        if self.fail:
            raise ActivitySourceError("sampling failed")
        return self.idle

    def sample_foreground_app(self) -> ForegroundApp:
        return ForegroundApp(app_name=self.app)

    def sample_window_title(self, app_name):
        self.title_requests.append(app_name)
        return self.title


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def config_store(tmp_path):
    store = ConfigStore(tmp_path / "config.json")
    store.load()
    return store


@pytest.fixture
def event_store():
    store = EventStore(MEMORY_DB).open()
    yield store
    store.close()


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def tracker(config_store, event_store, clock, notifications):
    return WorkTracker(
        config_store,
        event_store,
        clock=clock,
        notify=lambda title, body: notifications.append((title, body)),
    )
