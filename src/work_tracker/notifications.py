"""Break reminders, goal notifications and the daily summary schedule.

Nothing here reads the event log. Callers pass in the numbers the messages
need (goal progress, a day's report) and a ``notify`` callable that actually
shows them.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from .aggregator import format_short
from .config import TrackerConfig
from .models import DayReport, GoalProgress

if sys.platform == "win32":
    from win10toast import ToastNotifier

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]

NOTIFY_TIMEOUT_SECONDS = 5


def log_notification(title: str, body: str) -> None:
    logger.info("%s: %s", title, body.replace("\n", " | "))


def _applescript_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def desktop_notification(title: str, body: str) -> None:
    """Log the message and show it as a native desktop notification."""
    log_notification(title, body)
    try:
        if sys.platform == "win32":
            ToastNotifier().show_toast(title, body, duration=5, threaded=True)
        elif sys.platform == "darwin":
            script = (
                f"display notification {_applescript_string(body)} "
                f"with title {_applescript_string(title)}"
            )
            subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                check=True,
                timeout=NOTIFY_TIMEOUT_SECONDS,
            )
        elif shutil.which("notify-send"):
            subprocess.run(
                ["notify-send", title, body],
                capture_output=True,
                check=True,
                timeout=NOTIFY_TIMEOUT_SECONDS,
            )
    except (OSError, subprocess.SubprocessError):
        logger.warning("Desktop notification %r could not be shown.", title, exc_info=True)


def parse_time_of_day(value: str) -> time:
    hours, minutes = value.split(":")
    return time(hour=int(hours), minute=int(minutes))


def next_fire_time(now: datetime, at: str) -> datetime:
    """Next occurrence of ``at`` (``HH:MM``) strictly after ``now``."""
    scheduled = datetime.combine(now.date(), parse_time_of_day(at))
    if scheduled <= now:
        scheduled += timedelta(days=1)
    return scheduled


class DailyScheduler:
    """Fires ``callback`` once a day at a wall-clock time.

    Driven by :meth:`poll` from an existing loop instead of owning a timer.
    """

    def __init__(self, at: str, callback: Callable[[], None], *, now: Optional[datetime] = None) -> None:
        self.at = at
        self.callback = callback
        self.next_fire = next_fire_time(now or datetime.now(), at)

    def reschedule(self, at: str, now: datetime) -> None:
        self.at = at
        self.next_fire = next_fire_time(now, at)

    def poll(self, now: datetime) -> bool:
        if now < self.next_fire:
            return False
        try:
            self.callback()
        finally:
            self.next_fire = next_fire_time(now, self.at)
        return True


def _describe_minutes(total_minutes: float) -> str:
    hours, minutes = divmod(int(total_minutes), 60)
    if hours > 0:
        text = f"{hours} hour{'s' if hours > 1 else ''}"
        if minutes > 0:
            text += f" {minutes} minutes"
        return text
    return f"{minutes} minutes"


class NotificationManager:
    def __init__(
        self,
        config_provider: Callable[[], TrackerConfig],
        notify: Notifier = log_notification,
    ) -> None:
        self._config_provider = config_provider
        self._notify = notify
        self.last_work_start: Optional[datetime] = None
        self.last_break_reminder: Optional[datetime] = None
        self.continuous_work_minutes = 0.0
        self.goal_notified_on: Optional[date] = None

    def track_work_activity(self, is_working: bool, now: datetime) -> bool:
        """Update continuous-work tracking; returns True if a reminder was sent."""
        config = self._config_provider()
        if not config.notifications.break_reminders:
            return False
        if not is_working:
            self.last_work_start = None
            self.continuous_work_minutes = 0.0
            return False

        if self.last_work_start is None:
            self.last_work_start = now
        self.continuous_work_minutes = (now - self.last_work_start).total_seconds() / 60
        if self.continuous_work_minutes < config.break_reminder_minutes:
            return False

        interval = timedelta(minutes=config.break_reminder_minutes)
        if self.last_break_reminder is not None and now - self.last_break_reminder < interval:
            return False
        self._notify(
            "Time for a Break",
            f"You've been working for {_describe_minutes(self.continuous_work_minutes)}. "
            "Take a short break to rest your eyes and stretch.",
        )
        self.last_break_reminder = now
        return True

    def reset_break_timer(self, now: datetime) -> None:
        self.last_work_start = now
        self.continuous_work_minutes = 0.0
        self.last_break_reminder = None

    def goal_reached(self, progress: GoalProgress, total_work_seconds: float, now: datetime) -> bool:
        """Congratulate once per calendar day when the goal is complete."""
        config = self._config_provider()
        if not config.notifications.goal_reached or not progress.is_complete:
            return False
        if self.goal_notified_on == now.date():
            return False
        self._notify(
            "Daily Goal Reached!",
            f"Congratulations! You've completed your {_describe_minutes(progress.goal_minutes)} "
            f"work goal for today. Total: {format_short(total_work_seconds)}",
        )
        self.goal_notified_on = now.date()
        return True

    def daily_summary(self, report: DayReport, progress: GoalProgress) -> bool:
        if not self._config_provider().notifications.daily_summary:
            return False
        body = f"Today's work: {format_short(report.total_work_seconds)} ({progress.percentage}% of goal)"
        if report.sessions_count > 0:
            body += f"\nWork sessions: {report.sessions_count}"
        self._notify("Daily Work Summary", body)
        return True
