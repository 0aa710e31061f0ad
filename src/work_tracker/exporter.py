"""CSV and JSON export of sessions, daily summaries and project totals."""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, Union

from .aggregator import format_short, project_stats, round_half_up
from .models import UNCATEGORIZED, DailySummary, WorkSession
from .tracker import WorkTracker

logger = logging.getLogger(__name__)

EXPORT_VERSION = "2.0.0"

SESSION_HEADER = [
    "Date",
    "Start Time",
    "End Time",
    "Duration (minutes)",
    "Duration (formatted)",
    "Project",
]
DAILY_HEADER = [
    "Date",
    "Total Work (seconds)",
    "Total Work (formatted)",
    "Goal (seconds)",
    "Sessions",
    "Goal Progress (%)",
]
PROJECT_HEADER = [
    "Project",
    "Total Work (seconds)",
    "Total Work (formatted)",
    "Session Count",
]


class ExportError(Exception):
    """Raised when there is nothing to export."""


@dataclass(slots=True, frozen=True)
class ExportResult:
    path: Path
    record_count: Union[int, dict[str, int]]


def generate_filename(kind: str, start_day: date, end_day: date, extension: str) -> str:
    if start_day == end_day:
        date_range = start_day.isoformat()
    else:
        date_range = f"{start_day.isoformat()}_to_{end_day.isoformat()}"
    return f"worktracker_{kind}_{date_range}.{extension}"


def _goal_percentage(summary: DailySummary) -> int:
    if not summary.goal_seconds:
        return 0
    return round_half_up(summary.total_work_seconds / summary.goal_seconds * 100)


def _csv_text(header: list[str], rows: list[list[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def sessions_csv(sessions: list[WorkSession]) -> str:
    return _csv_text(
        SESSION_HEADER,
        [
            [
                session.start.date().isoformat(),
                session.start.isoformat(timespec="seconds"),
                session.end.isoformat(timespec="seconds"),
                round_half_up(session.duration_seconds / 60),
                format_short(session.duration_seconds),
                session.project or UNCATEGORIZED,
            ]
            for session in sessions
        ],
    )


def daily_summaries_csv(summaries: list[DailySummary]) -> str:
    return _csv_text(
        DAILY_HEADER,
        [
            [
                summary.day.isoformat(),
                summary.total_work_seconds,
                format_short(summary.total_work_seconds),
                summary.goal_seconds or 0,
                summary.sessions_count,
                _goal_percentage(summary),
            ]
            for summary in summaries
        ],
    )


class Exporter:
    """Writes export files for a date range using a :class:`WorkTracker`."""

    def __init__(self, tracker: WorkTracker) -> None:
        self.tracker = tracker

    def sessions(self, start_day: date, end_day: date) -> list[WorkSession]:
        return [
            session
            for report in self.tracker.analyze_range(start_day, end_day)
            for session in report.sessions
        ]

    def export_sessions_csv(self, start_day: date, end_day: date, path: Path) -> ExportResult:
        sessions = self.sessions(start_day, end_day)
        if not sessions:
            raise ExportError("No data to export for the specified date range")
        return self._write(path, sessions_csv(sessions), len(sessions))

    def export_daily_summary_csv(self, start_day: date, end_day: date, path: Path) -> ExportResult:
        self.tracker.refresh_daily_summaries(start_day, end_day)
        summaries = self.tracker.store.get_daily_summaries(start_day, end_day)
        if not summaries:
            raise ExportError("No daily summary data to export")
        return self._write(path, daily_summaries_csv(summaries), len(summaries))

    def export_projects_csv(self, start_day: date, end_day: date, path: Path) -> ExportResult:
        stats = project_stats(self.sessions(start_day, end_day))
        if not stats:
            raise ExportError("No project data to export")
        text = _csv_text(
            PROJECT_HEADER,
            [
                [
                    stat.project,
                    int(stat.total_seconds),
                    format_short(stat.total_seconds),
                    stat.session_count,
                ]
                for stat in stats
            ],
        )
        return self._write(path, text, len(stats))

    def build_json(self, start_day: date, end_day: date, *, exported_at: Optional[datetime] = None) -> dict[str, Any]:
        reports = self.tracker.refresh_daily_summaries(start_day, end_day)
        sessions = [session for report in reports for session in report.sessions]
        activities = self.tracker.store.query_by_date_range(start_day, end_day)
        summaries = self.tracker.store.get_daily_summaries(start_day, end_day)
        stats = project_stats(sessions)
        return {
            "exportInfo": {
                "exportedAt": (exported_at or datetime.now()).isoformat(timespec="seconds"),
                "startDate": start_day.isoformat(),
                "endDate": end_day.isoformat(),
                "version": EXPORT_VERSION,
            },
            "summary": {
                "totalSessions": len(sessions),
                "totalActivityEntries": len(activities),
                "totalDays": len(summaries),
                "projectBreakdown": {
                    stat.project: {
                        "totalSeconds": int(stat.total_seconds),
                        "sessionCount": stat.session_count,
                    }
                    for stat in stats
                },
            },
            "dailySummaries": [
                {
                    "date": summary.day.isoformat(),
                    "totalWorkSeconds": summary.total_work_seconds,
                    "totalWorkFormatted": format_short(summary.total_work_seconds),
                    "goalSeconds": summary.goal_seconds,
                    "sessionsCount": summary.sessions_count,
                    "goalProgress": _goal_percentage(summary),
                }
                for summary in summaries
            ],
            "sessions": [
                {
                    "startTime": session.start.isoformat(timespec="seconds"),
                    "endTime": session.end.isoformat(timespec="seconds"),
                    "durationSeconds": int(session.duration_seconds),
                    "durationFormatted": format_short(session.duration_seconds),
                    "project": session.project or UNCATEGORIZED,
                    "ongoing": session.is_open,
                }
                for session in sessions
            ],
            "activities": [
                {
                    "timestamp": event.timestamp.isoformat(timespec="seconds"),
                    "kind": event.kind.value,
                    "appName": event.app_name,
                    "windowTitle": event.window_title,
                    "isAfk": event.is_afk_marker,
                    "project": event.project,
                }
                for event in activities
            ],
        }

    def export_json(self, start_day: date, end_day: date, path: Path) -> ExportResult:
        data = self.build_json(start_day, end_day)
        counts = {
            "sessions": len(data["sessions"]),
            "activities": len(data["activities"]),
            "dailySummaries": len(data["dailySummaries"]),
        }
        return self._write(path, json.dumps(data, indent=2), counts)

    @staticmethod
    def _write(path: Path, text: str, record_count: Union[int, dict[str, int]]) -> ExportResult:
        path = Path(path)
        path.write_text(text, encoding="utf-8")
        logger.info("Exported %s to %s", record_count, path)
        return ExportResult(path=path, record_count=record_count)
