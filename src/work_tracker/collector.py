"""Periodic activity sampler."""

from __future__ import annotations

import logging
import subprocess
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .activity_source import UNKNOWN_WINDOW, ActivitySource, ActivitySourceError
from .classifier import ProjectClassifier
from .config import TrackerConfig
from .db import EventStore
from .models import ActivityEvent

logger = logging.getLogger(__name__)

# Window titles of these apps are never meaningful and querying them can hang.
_NO_TITLE_APPS = ("Finder", "Dock")


class AfkState(str, Enum):
    ACTIVE = "active"
    AFK = "afk"


class AfkStateMachine:
    """Turns idle-time samples into AFK start/end transitions."""

    def __init__(self, threshold_seconds: float) -> None:
        self.threshold_seconds = threshold_seconds
        self.state = AfkState.ACTIVE

    @property
    def is_afk(self) -> bool:
        return self.state is AfkState.AFK

    def observe(self, idle_seconds: float, timestamp: datetime) -> Optional[ActivityEvent]:
        if self.state is AfkState.ACTIVE and idle_seconds > self.threshold_seconds:
            self.state = AfkState.AFK
            return ActivityEvent.afk_start(timestamp)
        if self.state is AfkState.AFK and idle_seconds <= self.threshold_seconds:
            self.state = AfkState.ACTIVE
            return ActivityEvent.afk_end(timestamp)
        return None


class ActivityCollector:
    """Samples foreground activity at a fixed interval and appends events."""

    def __init__(
        self,
        source: ActivitySource,
        store: EventStore,
        classifier: ProjectClassifier,
        config_provider: Callable[[], TrackerConfig],
        *,
        clock: Callable[[], datetime] = datetime.now,
        on_tick: Optional[Callable[[datetime, bool, TrackerConfig], None]] = None,
    ) -> None:
        self.source = source
        self.store = store
        self.classifier = classifier
        self._config_provider = config_provider
        self._clock = clock
        self._on_tick = on_tick
        self._afk = AfkStateMachine(config_provider().afk_threshold_seconds)

    @property
    def is_afk(self) -> bool:
        return self._afk.is_afk

    def sample_once(self) -> list[ActivityEvent]:
        """Take one sample and return the events it stored."""
        now = self._clock()
        self._afk.threshold_seconds = self._config_provider().afk_threshold_seconds

        emitted: list[ActivityEvent] = []
        transition = self._afk.observe(self.source.sample_idle_seconds(), now)
        if transition is not None:
            logger.info(
                "User %s at %s",
                "went AFK" if self._afk.is_afk else "returned from AFK",
                now.isoformat(timespec="seconds"),
            )
            self.store.append(transition)
            emitted.append(transition)
        if self._afk.is_afk:
            return emitted

        app_name = self.source.sample_foreground_app().app_name
        window_title: Optional[str] = None
        if app_name and not any(skip in app_name for skip in _NO_TITLE_APPS):
            title = self.source.sample_window_title(app_name)
            window_title = None if title == UNKNOWN_WINDOW else title

        event = ActivityEvent.activity(
            now,
            app_name,
            window_title,
            project=self.classifier.detect_project(window_title, app_name),
        )
        self.store.append(event)
        emitted.append(event)
        logger.debug(
            "Sample stored: app=%s title=%s project=%s",
            event.app_name,
            event.window_title,
            event.project,
        )
        return emitted

    def tick(self) -> None:
        try:
            self.sample_once()
        except (ActivitySourceError, OSError, subprocess.SubprocessError):
            logger.exception("Sampling failed; skipping this tick.")
            return
        if self._on_tick is not None:
            try:
                self._on_tick(self._clock(), self._afk.is_afk, self._config_provider())
            except Exception:
                logger.exception("Post-sample hook failed.")

    def run_forever(self) -> None:
        stop_event = threading.Event()
        try:
            self._run_loop(stop_event)
        except KeyboardInterrupt:
            logger.info("Collector interrupted.")
        finally:
            logger.info("Collector stopped.")

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the collector until the provided event is set."""
        try:
            self._run_loop(stop_event)
        finally:
            logger.info("Collector stopped.")

    def _run_loop(self, stop_event: threading.Event) -> None:
        config = self._config_provider()
        logger.info(
            "Starting collector: every %ss, AFK after %ss, platform %s",
            config.tracking_interval_seconds,
            config.afk_threshold_seconds,
            self.source.platform,
        )
        while not stop_event.is_set():
            self.tick()
            # Sleep in an interruptible manner.
            stop_event.wait(self._config_provider().tracking_interval_seconds)
