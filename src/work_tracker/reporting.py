"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import date
from typing import Iterable

from .aggregator import format_duration, format_short, hourly_histogram, project_stats
from .models import UNCATEGORIZED, ProjectStat, WorkSession
from .tracker import WorkTracker


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, tracker: WorkTracker) -> None:
        self.tracker = tracker

    def print_daily_summary(self, day: date) -> None:
        report = (
            self.tracker.refresh_daily_summary(day)
            if day == self.tracker.today()
            else self.tracker.analyze_day(day)
        )
        if not report.sessions:
            print(f"No work recorded for {day.isoformat()}.")
            return

        progress = self.tracker.daily_goal_progress(report.total_work_seconds)
        print(f"Summary for {day.isoformat()}")
        print("-" * 40)
        print(f"Work time: {format_duration(report.total_work_seconds)}")
        print(f"Goal:      {progress.percentage}% of {format_short(progress.goal_minutes * 60)}")
        if not progress.is_complete:
            print(f"Remaining: {progress.remaining_formatted}")
        print(f"Sessions:  {report.sessions_count}")
        print()

        print("Sessions:")
        for line in format_sessions(report.sessions):
            print(f"  {line}")

        top_projects = project_stats(report.sessions)
        if top_projects:
            print()
            print("Top projects:")
            for line in format_projects(top_projects[:5]):
                print(f"  {line}")

        print()
        print("By hour:")
        for hour, minutes in enumerate(hourly_histogram(report.sessions, day)):
            if minutes:
                print(f"  {hour:02d}:00 {'#' * max(1, minutes // 5):<12} {minutes}m")

    def print_work_summary(self, days: int) -> None:
        summary = self.tracker.work_summary(days)
        goal_seconds = self.tracker.config.goal_seconds
        print("Work Time Summary")
        print("-" * 40)
        for report in summary.days:
            marker = " [Goal Reached]" if report.total_work_seconds >= goal_seconds else ""
            print(
                f"{report.day.strftime('%A'):<10} ({report.day.isoformat()}): "
                f"{format_duration(report.total_work_seconds)}{marker}"
            )
        print()
        print(f"Average daily work time: {format_short(summary.avg_daily_seconds)}")
        print(f"Goals reached: {summary.goals_reached}/{len(summary.days)}")
        print(f"Current streak: {self.tracker.streak()} day(s)")


def format_sessions(sessions: Iterable[WorkSession]) -> list[str]:
    lines = []
    for session in sessions:
        end = "now" if session.is_open else session.end.strftime("%H:%M")
        lines.append(
            f"{session.start.strftime('%H:%M')}-{end:<5} "
            f"{format_short(session.duration_seconds):>8}  {session.project or UNCATEGORIZED}"
        )
    return lines


def format_projects(stats: Iterable[ProjectStat]) -> list[str]:
    return [
        f"{stat.project:<30} {format_short(stat.total_seconds):>8} ({stat.session_count} sessions)"
        for stat in stats
    ]
