"""Roll-ups over reconstructed days: goals, streaks, projects, hours."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, Optional, Sequence

from .models import (
    UNCATEGORIZED,
    DailySummary,
    DayReport,
    GoalProgress,
    PeriodSummary,
    ProjectStat,
    WorkSession,
)

MAX_STREAK_DAYS = 365


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def hourly_histogram(sessions: Iterable[WorkSession], day: date) -> list[int]:
    """Minutes worked in each clock hour of ``day``.

    Each bucket is rounded to the nearest minute on its own, so the buckets
    need not add up to the day's rounded total.
    """
    seconds = [0.0] * 24
    day_start = datetime.combine(day, time.min)
    for session in sessions:
        for hour in range(24):
            bucket_start = day_start + timedelta(hours=hour)
            bucket_end = bucket_start + timedelta(hours=1)
            overlap = (min(session.end, bucket_end) - max(session.start, bucket_start)).total_seconds()
            if overlap > 0:
                seconds[hour] += overlap
    return [round_half_up(value / 60) for value in seconds]


def format_duration(seconds: float) -> str:
    total_seconds = int(seconds)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_short(seconds: float) -> str:
    """``"2h 5m"``, or ``"5m"`` under an hour."""
    total_seconds = int(seconds)
    hours, remainder = divmod(total_seconds, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def goal_progress(total_work_seconds: float, goal_seconds: int) -> GoalProgress:
    if goal_seconds <= 0:
        return GoalProgress(
            percentage=100,
            remaining_seconds=0,
            is_complete=True,
            goal_minutes=0,
            remaining_formatted=format_short(0),
        )
    percentage = min(100, round_half_up(total_work_seconds / goal_seconds * 100))
    remaining = max(0, int(goal_seconds - total_work_seconds))
    return GoalProgress(
        percentage=percentage,
        remaining_seconds=remaining,
        is_complete=total_work_seconds >= goal_seconds,
        goal_minutes=goal_seconds // 60,
        remaining_formatted=format_short(remaining),
    )


def calculate_streak(
    lookup: Callable[[date], Optional[DailySummary]],
    goal_seconds: int,
    today: date,
    *,
    max_days: int = MAX_STREAK_DAYS,
) -> int:
    """Count consecutive goal-meeting days, walking back from ``today``."""
    streak = 0
    for offset in range(max_days):
        summary = lookup(today - timedelta(days=offset))
        if summary is None or summary.total_work_seconds < goal_seconds:
            break
        streak += 1
    return streak


def project_stats(sessions: Iterable[WorkSession]) -> list[ProjectStat]:
    totals: defaultdict[str, float] = defaultdict(float)
    counts: defaultdict[str, int] = defaultdict(int)
    for session in sessions:
        project = session.project or UNCATEGORIZED
        totals[project] += session.duration_seconds
        counts[project] += 1
    return [
        ProjectStat(project=project, total_seconds=seconds, session_count=counts[project])
        for project, seconds in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]


def summarize_days(reports: Sequence[DayReport], goal_seconds: int) -> PeriodSummary:
    total = sum(report.total_work_seconds for report in reports)
    return PeriodSummary(
        days=list(reports),
        total_work_seconds=total,
        avg_daily_seconds=total / len(reports) if reports else 0.0,
        total_sessions=sum(report.sessions_count for report in reports),
        goals_reached=sum(
            1 for report in reports if goal_seconds > 0 and report.total_work_seconds >= goal_seconds
        ),
    )
