"""Rebuild work sessions from a day's ordered activity events.

Sessions are never stored; every query walks the immutable event log again.
A session opens on the first productive sample while none is open, and closes
on an AFK start or a non-productive sample. A session still open after the
last event is closed at the evaluation instant when the day is today, and at
the last observed timestamp for any earlier day.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from .classifier import is_productive
from .models import ActivityEvent, DayReport, EventKind, WorkSession


def reconstruct_day(
    events: Sequence[ActivityEvent],
    day: date,
    productive_apps: Iterable[str],
    productive_websites: Iterable[str],
    *,
    now: Optional[datetime] = None,
) -> DayReport:
    """Return the work sessions and total work time for ``day``.

    ``events`` must already be restricted to ``day`` and ordered by timestamp
    (ties in arrival order). ``now`` defaults to the wall clock and decides
    both whether ``day`` is the live day and where its open session ends.
    """
    apps = tuple(productive_apps)
    websites = tuple(productive_websites)
    evaluated_at = now or datetime.now()

    sessions: list[WorkSession] = []
    afk = False
    session_start: Optional[datetime] = None
    session_project: Optional[str] = None
    last_timestamp: Optional[datetime] = None

    def close(end: datetime, *, is_open: bool = False) -> None:
        assert session_start is not None
        session = WorkSession(
            start=session_start, end=end, project=session_project, is_open=is_open
        )
        if session.duration_seconds > 0:
            sessions.append(session)

    for event in events:
        if event.kind is EventKind.AFK_START:
            if session_start is not None and not afk:
                close(event.timestamp)
                session_start = None
                session_project = None
            afk = True
        elif event.kind is EventKind.AFK_END:
            afk = False
        elif not afk:
            productive = is_productive(event.app_name, event.window_title, apps, websites)
            if productive and session_start is None:
                session_start = event.timestamp
                session_project = event.project
            elif not productive and session_start is not None:
                close(event.timestamp)
                session_start = None
                session_project = None
        last_timestamp = event.timestamp

    if session_start is not None and not afk:
        if day == evaluated_at.date():
            close(evaluated_at, is_open=True)
        elif last_timestamp is not None:
            close(last_timestamp)

    return DayReport(
        day=day,
        total_work_seconds=sum(session.duration_seconds for session in sessions),
        sessions=sessions,
    )


def group_events_by_day(events: Iterable[ActivityEvent]) -> dict[date, list[ActivityEvent]]:
    """Split an ordered multi-day stream into per-day streams, keeping order."""
    grouped: dict[date, list[ActivityEvent]] = {}
    for event in events:
        grouped.setdefault(event.timestamp.date(), []).append(event)
    return grouped
