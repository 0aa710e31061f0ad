"""Service facade tying configuration, the event store and the core together.

A single :class:`WorkTracker` is built at startup and handed to the CLI, the
dashboard and the collector. It holds no derived state of its own: every
query re-reads the event log and reconstructs sessions from scratch.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from . import aggregator
from .activity_source import ActivitySource
from .classifier import ProjectClassifier
from .collector import ActivityCollector
from .config import ConfigStore, TrackerConfig
from .db import EventStore, MigrationResult
from .models import (
    ActivityEvent,
    DailySummary,
    DayReport,
    GoalProgress,
    PeriodSummary,
    ProjectStat,
)
from .notifications import DailyScheduler, NotificationManager, Notifier, desktop_notification
from .sessions import group_events_by_day, reconstruct_day

logger = logging.getLogger(__name__)


def iter_days(start_day: date, end_day: date) -> list[date]:
    return [start_day + timedelta(days=offset) for offset in range((end_day - start_day).days + 1)]


class WorkTracker:
    def __init__(
        self,
        config_store: ConfigStore,
        store: EventStore,
        *,
        classifier: Optional[ProjectClassifier] = None,
        clock: Callable[[], datetime] = datetime.now,
        notify: Notifier = desktop_notification,
    ) -> None:
        self.config_store = config_store
        self.store = store
        self.classifier = classifier or ProjectClassifier(config_store.get_project_keywords)
        self.config_store.add_listener(self.classifier.invalidate_cache)
        self.notifications = NotificationManager(config_store.get_all, notify)
        self._clock = clock
        self._summary_scheduler: Optional[DailyScheduler] = None

    @classmethod
    def from_paths(cls, config_path: Path, db_path: Path, **kwargs: Any) -> "WorkTracker":
        config_store = ConfigStore(config_path)
        config_store.load()
        return cls(config_store, EventStore(db_path).open(), **kwargs)

    @property
    def config(self) -> TrackerConfig:
        return self.config_store.get_all()

    def today(self) -> date:
        return self._clock().date()

    def close(self) -> None:
        self.store.close()

    def analyze_day(self, day: Optional[date] = None) -> DayReport:
        day = day or self.today()
        config = self.config
        return reconstruct_day(
            self.store.query_by_date(day),
            day,
            config.productive_apps,
            config.productive_websites,
            now=self._clock(),
        )

    def analyze_range(self, start_day: date, end_day: date) -> list[DayReport]:
        """One report per day from ``start_day`` to ``end_day``, oldest first."""
        if end_day < start_day:
            raise ValueError("end date must be on or after start date")
        config = self.config
        now = self._clock()
        by_day = group_events_by_day(self.store.query_by_date_range(start_day, end_day))
        return [
            reconstruct_day(
                by_day.get(day, []),
                day,
                config.productive_apps,
                config.productive_websites,
                now=now,
            )
            for day in iter_days(start_day, end_day)
        ]

    def daily_goal_progress(self, total_work_seconds: float) -> GoalProgress:
        return aggregator.goal_progress(total_work_seconds, self.config.goal_seconds)

    def refresh_daily_summary(
        self, day: Optional[date] = None, *, goal_seconds: Optional[int] = None
    ) -> DayReport:
        report = self.analyze_day(day)
        self._store_summary(report, goal_seconds)
        return report

    def refresh_daily_summaries(self, start_day: date, end_day: date) -> list[DayReport]:
        """Recompute a range; empty days only get a row if one is already stored."""
        reports = self.analyze_range(start_day, end_day)
        today = self.today()
        for report in reports:
            if (
                report.sessions
                or report.day == today
                or self.store.get_daily_summary(report.day) is not None
            ):
                self._store_summary(report)
        return reports

    def work_summary(self, days: int = 7) -> PeriodSummary:
        """Roll-up of the last ``days`` days, today first."""
        if days < 1:
            raise ValueError("days must be at least 1")
        today = self.today()
        reports = self.refresh_daily_summaries(today - timedelta(days=days - 1), today)
        return aggregator.summarize_days(list(reversed(reports)), self.config.goal_seconds)

    def streak(self) -> int:
        return aggregator.calculate_streak(
            self.store.get_daily_summary, self.config.goal_seconds, self.today()
        )

    def hourly_stats(self, day: Optional[date] = None) -> list[int]:
        report = self.analyze_day(day)
        return aggregator.hourly_histogram(report.sessions, report.day)

    def project_stats(self, start_day: date, end_day: date) -> list[ProjectStat]:
        sessions = [
            session
            for report in self.analyze_range(start_day, end_day)
            for session in report.sessions
        ]
        return aggregator.project_stats(sessions)

    def stats(self, start_day: date, end_day: date) -> dict[str, Any]:
        """Everything the statistics view shows for a date range."""
        reports = self.refresh_daily_summaries(start_day, end_day)
        today_report = self.refresh_daily_summary()
        config = self.config
        progress = aggregator.goal_progress(today_report.total_work_seconds, config.goal_seconds)
        period = aggregator.summarize_days(reports, config.goal_seconds)
        sessions = [session for report in reports for session in report.sessions]
        return {
            "today": {
                "date": today_report.day.isoformat(),
                "total_work_seconds": today_report.total_work_seconds,
                "sessions_count": today_report.sessions_count,
                "progress": progress,
                "streak": self.streak(),
            },
            "project_stats": aggregator.project_stats(sessions),
            "summary": period,
            "config": {
                "daily_goal_minutes": config.daily_goal_minutes,
            },
        }

    def classify(self, event: ActivityEvent) -> Optional[str]:
        return self.classifier.detect_project(event.window_title, event.app_name)

    def migrate_legacy_log(self, log_path: Path) -> MigrationResult:
        return self.store.migrate_from_text_log(log_path, classify=self.classify)

    def create_collector(
        self,
        source: ActivitySource,
        config_provider: Optional[Callable[[], TrackerConfig]] = None,
    ) -> ActivityCollector:
        return ActivityCollector(
            source,
            self.store,
            self.classifier,
            config_provider or self.config_store.get_all,
            clock=self._clock,
            on_tick=self.after_tick,
        )

    def after_tick(
        self, now: datetime, is_afk: bool, config: Optional[TrackerConfig] = None
    ) -> None:
        """Refresh today's cached summary and drive notifications.

        ``config`` is the collector's snapshot, which may carry per-run
        overrides of the stored settings.
        """
        config = config or self.config
        report = self.refresh_daily_summary(now.date(), goal_seconds=config.goal_seconds)
        progress = aggregator.goal_progress(report.total_work_seconds, config.goal_seconds)
        self.notifications.track_work_activity(not is_afk, now)
        self.notifications.goal_reached(progress, report.total_work_seconds, now)

        summary_time = config.notifications.daily_summary_time
        if self._summary_scheduler is None:
            self._summary_scheduler = DailyScheduler(
                summary_time, self._send_daily_summary, now=now
            )
        elif self._summary_scheduler.at != summary_time:
            self._summary_scheduler.reschedule(summary_time, now)
        self._summary_scheduler.poll(now)

    def status(self) -> dict[str, Any]:
        return {
            "database_path": str(self.store.db_path),
            "store_degraded": self.store.degraded,
            "config_path": str(self.config_store.path),
        }

    def _send_daily_summary(self) -> None:
        report = self.analyze_day()
        self.notifications.daily_summary(report, self.daily_goal_progress(report.total_work_seconds))

    def _store_summary(self, report: DayReport, goal_seconds: Optional[int] = None) -> None:
        projects = {
            stat.project: {
                "totalSeconds": int(stat.total_seconds),
                "sessionCount": stat.session_count,
            }
            for stat in aggregator.project_stats(report.sessions)
        }
        self.store.upsert_daily_summary(
            DailySummary(
                day=report.day,
                total_work_seconds=int(report.total_work_seconds),
                goal_seconds=self.config.goal_seconds if goal_seconds is None else goal_seconds,
                sessions_count=report.sessions_count,
                productive_seconds=int(report.total_work_seconds),
                projects_json=json.dumps(projects) if projects else None,
            )
        )
