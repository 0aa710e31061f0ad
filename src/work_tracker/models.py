"""Domain models for recorded activity and derived work time."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

UNCATEGORIZED = "Uncategorized"


class EventKind(str, Enum):
    ACTIVITY = "activity"
    AFK_START = "afk_start"
    AFK_END = "afk_end"


@dataclass(slots=True)
class ActivityEvent:
    """A single sampled observation from the collector."""

    timestamp: datetime
    kind: EventKind = EventKind.ACTIVITY
    app_name: Optional[str] = None
    window_title: Optional[str] = None
    project: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def activity(
        cls,
        timestamp: datetime,
        app_name: Optional[str],
        window_title: Optional[str] = None,
        project: Optional[str] = None,
    ) -> "ActivityEvent":
        return cls(
            timestamp=timestamp,
            kind=EventKind.ACTIVITY,
            app_name=app_name,
            window_title=window_title,
            project=project,
        )

    @classmethod
    def afk_start(cls, timestamp: datetime) -> "ActivityEvent":
        return cls(timestamp=timestamp, kind=EventKind.AFK_START)

    @classmethod
    def afk_end(cls, timestamp: datetime) -> "ActivityEvent":
        return cls(timestamp=timestamp, kind=EventKind.AFK_END)

    @property
    def is_afk_marker(self) -> bool:
        return self.kind is not EventKind.ACTIVITY


@dataclass(slots=True, frozen=True)
class WorkSession:
    """A contiguous stretch of productive, non-AFK activity."""

    start: datetime
    end: datetime
    project: Optional[str] = None
    is_open: bool = False

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(slots=True)
class DayReport:
    """Sessions and totals reconstructed for one calendar day."""

    day: date
    total_work_seconds: float = 0.0
    sessions: list[WorkSession] = field(default_factory=list)

    @property
    def sessions_count(self) -> int:
        return len(self.sessions)


@dataclass(slots=True)
class DailySummary:
    """Cached per-day totals, one row per date."""

    day: date
    total_work_seconds: int
    goal_seconds: Optional[int]
    sessions_count: int
    productive_seconds: Optional[int] = None
    projects_json: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True, frozen=True)
class GoalProgress:
    percentage: int
    remaining_seconds: int
    is_complete: bool
    goal_minutes: int
    remaining_formatted: str


@dataclass(slots=True, frozen=True)
class ProjectStat:
    project: str
    total_seconds: float
    session_count: int


@dataclass(slots=True, frozen=True)
class PeriodSummary:
    """Roll-up across several days, newest first."""

    days: list[DayReport]
    total_work_seconds: float
    avg_daily_seconds: float
    total_sessions: int
    goals_reached: int
