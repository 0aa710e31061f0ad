from __future__ import annotations

from datetime import timedelta

from conftest import DAY, at

from work_tracker.aggregator import (
    calculate_streak,
    format_duration,
    format_short,
    goal_progress,
    hourly_histogram,
    project_stats,
    round_half_up,
    summarize_days,
)
from work_tracker.models import UNCATEGORIZED, DailySummary, DayReport, WorkSession


def summary(day, seconds):
    return DailySummary(day=day, total_work_seconds=seconds, goal_seconds=3600, sessions_count=1)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2
        assert round_half_up(0.5) == 1


class TestFormatting:
    def test_format_duration(self):
        assert format_duration(3725) == "01:02:05"
        assert format_duration(0) == "00:00:00"

    def test_format_short(self):
        assert format_short(7500) == "2h 5m"
        assert format_short(300) == "5m"
        assert format_short(59) == "0m"


class TestGoalProgress:
    def test_half_way(self):
        progress = goal_progress(14400, 28800)
        assert progress.percentage == 50
        assert progress.remaining_seconds == 14400
        assert not progress.is_complete
        assert progress.goal_minutes == 480
        assert progress.remaining_formatted == "4h 0m"

    def test_capped_at_hundred(self):
        progress = goal_progress(40000, 28800)
        assert progress.percentage == 100
        assert progress.remaining_seconds == 0
        assert progress.is_complete

    def test_zero_goal_is_complete(self):
        progress = goal_progress(0, 0)
        assert progress.percentage == 100
        assert progress.is_complete


class TestHourlyHistogram:
    def test_session_spanning_hours(self):
        sessions = [WorkSession(at(9, 30), at(11, 15))]
        minutes = hourly_histogram(sessions, DAY)
        assert len(minutes) == 24
        assert minutes[9] == 30
        assert minutes[10] == 60
        assert minutes[11] == 15
        assert sum(minutes) == 105

    def test_partial_minutes_round_per_bucket(self):
        sessions = [WorkSession(at(9, 0, 0), at(9, 0, 30))]
        assert hourly_histogram(sessions, DAY)[9] == 1

    def test_empty(self):
        assert hourly_histogram([], DAY) == [0] * 24


class TestStreak:
    def test_counts_consecutive_days_including_today(self):
        rows = {DAY - timedelta(days=offset): summary(DAY - timedelta(days=offset), 4000) for offset in range(3)}
        assert calculate_streak(rows.get, 3600, DAY) == 3

    def test_stops_at_short_day(self):
        rows = {
            DAY: summary(DAY, 4000),
            DAY - timedelta(days=1): summary(DAY - timedelta(days=1), 100),
            DAY - timedelta(days=2): summary(DAY - timedelta(days=2), 4000),
        }
        assert calculate_streak(rows.get, 3600, DAY) == 1

    def test_missing_today_breaks_streak(self):
        rows = {DAY - timedelta(days=1): summary(DAY - timedelta(days=1), 4000)}
        assert calculate_streak(rows.get, 3600, DAY) == 0

    def test_bounded_walk(self):
        assert calculate_streak(lambda day: summary(day, 4000), 3600, DAY, max_days=10) == 10


class TestProjectStats:
    def test_sorted_by_total_descending(self):
        sessions = [
            WorkSession(at(9), at(10), "A"),
            WorkSession(at(10), at(12), "B"),
            WorkSession(at(13), at(13, 30), "A"),
            WorkSession(at(14), at(14, 10), None),
        ]
        stats = project_stats(sessions)
        assert [(s.project, s.total_seconds, s.session_count) for s in stats] == [
            ("B", 7200, 1),
            ("A", 5400, 2),
            (UNCATEGORIZED, 600, 1),
        ]


class TestSummarizeDays:
    def test_totals_and_goals(self):
        reports = [
            DayReport(DAY, 7200, [WorkSession(at(9), at(11))]),
            DayReport(DAY - timedelta(days=1), 1800, [WorkSession(at(9), at(9, 30))]),
        ]
        period = summarize_days(reports, 3600)
        assert period.total_work_seconds == 9000
        assert period.avg_daily_seconds == 4500
        assert period.total_sessions == 2
        assert period.goals_reached == 1

    def test_empty(self):
        period = summarize_days([], 3600)
        assert period.avg_daily_seconds == 0
