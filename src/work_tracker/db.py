"""SQLite storage for activity events and cached daily summaries."""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, Union

from .models import ActivityEvent, DailySummary, EventKind

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"
DATE_FMT = "%Y-%m-%d"
MEMORY_DB = ":memory:"

_LEGACY_TIMESTAMP = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z):")
_LEGACY_APP = re.compile(r"App: ([^,]+)")
_LEGACY_WINDOW = re.compile(r"Window: (.+)$")


def open_database(
    path: Union[Path, str], *, check_same_thread: bool = True
) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        str(path),
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    if str(path) != MEMORY_DB:
        conn.execute("PRAGMA journal_mode=WAL;")
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Union[Path, str], *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS activity_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            kind TEXT NOT NULL DEFAULT 'activity',
            app_name TEXT,
            window_title TEXT,
            project TEXT,
            created_at TEXT DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS daily_summary (
            date TEXT PRIMARY KEY,
            total_work_seconds INTEGER NOT NULL DEFAULT 0,
            goal_seconds INTEGER,
            sessions_count INTEGER NOT NULL DEFAULT 0,
            productive_seconds INTEGER,
            projects_json TEXT,
            updated_at TEXT DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS migration_status (
            id INTEGER PRIMARY KEY,
            migrated_at TEXT,
            log_file_path TEXT,
            entries_migrated INTEGER,
            entries_skipped INTEGER
        );

        CREATE INDEX IF NOT EXISTS idx_activity_timestamp
            ON activity_log(timestamp);
        """
    )


def insert_events(conn: sqlite3.Connection, events: Iterable[ActivityEvent]) -> None:
    conn.executemany(
        """
        INSERT INTO activity_log (timestamp, kind, app_name, window_title, project)
        VALUES (?, ?, ?, ?, ?)
        """,
        [_event_params(event) for event in events],
    )


def insert_event(conn: sqlite3.Connection, event: ActivityEvent) -> int:
    cur = conn.execute(
        """
        INSERT INTO activity_log (timestamp, kind, app_name, window_title, project)
        VALUES (?, ?, ?, ?, ?)
        """,
        _event_params(event),
    )
    return int(cur.lastrowid)


def fetch_events_between(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ActivityEvent]:
    """Events with ``start <= timestamp < end``, oldest first, ties by insertion."""
    rows = conn.execute(
        """
        SELECT id, timestamp, kind, app_name, window_title, project
        FROM activity_log
        WHERE timestamp >= ? AND timestamp < ?
        ORDER BY timestamp, id;
        """,
        (start.strftime(DATETIME_FMT), end.strftime(DATETIME_FMT)),
    )
    return [_row_to_event(row) for row in rows]


def fetch_events_for_day(conn: sqlite3.Connection, day: date) -> list[ActivityEvent]:
    start = datetime.combine(day, time.min)
    return fetch_events_between(conn, start, start + timedelta(days=1))


def fetch_events_for_range(
    conn: sqlite3.Connection, start_day: date, end_day: date
) -> list[ActivityEvent]:
    """Events from ``start_day`` through ``end_day`` inclusive."""
    start = datetime.combine(start_day, time.min)
    end = datetime.combine(end_day, time.min) + timedelta(days=1)
    return fetch_events_between(conn, start, end)


def fetch_known_projects(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT project FROM activity_log
        WHERE project IS NOT NULL AND project != ''
        ORDER BY project;
        """
    )
    return [row["project"] for row in rows]


def upsert_daily_summary(conn: sqlite3.Connection, summary: DailySummary) -> None:
    """Insert or overwrite a day's totals.

    ``productive_seconds`` and ``projects_json`` keep their stored values when
    the new summary leaves them as ``None``.
    """
    conn.execute(
        """
        INSERT INTO daily_summary (
            date,
            total_work_seconds,
            goal_seconds,
            sessions_count,
            productive_seconds,
            projects_json,
            updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, datetime('now'))
        ON CONFLICT(date) DO UPDATE SET
            total_work_seconds = excluded.total_work_seconds,
            goal_seconds = excluded.goal_seconds,
            sessions_count = excluded.sessions_count,
            productive_seconds = COALESCE(excluded.productive_seconds, productive_seconds),
            projects_json = COALESCE(excluded.projects_json, projects_json),
            updated_at = datetime('now');
        """,
        (
            summary.day.strftime(DATE_FMT),
            int(summary.total_work_seconds),
            summary.goal_seconds,
            summary.sessions_count,
            summary.productive_seconds,
            summary.projects_json,
        ),
    )


def fetch_daily_summary(conn: sqlite3.Connection, day: date) -> Optional[DailySummary]:
    row = conn.execute(
        "SELECT * FROM daily_summary WHERE date = ?;", (day.strftime(DATE_FMT),)
    ).fetchone()
    return _row_to_summary(row) if row else None


def fetch_daily_summaries(
    conn: sqlite3.Connection, start_day: date, end_day: date
) -> list[DailySummary]:
    rows = conn.execute(
        """
        SELECT * FROM daily_summary
        WHERE date >= ? AND date <= ?
        ORDER BY date;
        """,
        (start_day.strftime(DATE_FMT), end_day.strftime(DATE_FMT)),
    )
    return [_row_to_summary(row) for row in rows]


@dataclass(slots=True, frozen=True)
class MigrationResult:
    migrated: int
    skipped: int
    already_done: bool = False


def parse_log_line(line: str) -> Optional[ActivityEvent]:
    """Parse one line of the legacy flat-text log, or return None."""
    match = _LEGACY_TIMESTAMP.match(line)
    if not match:
        return None
    timestamp = (
        datetime.strptime(match.group(1), "%Y-%m-%dT%H:%M:%S.%fZ")
        .replace(tzinfo=timezone.utc)
        .astimezone()
        .replace(tzinfo=None)
    )
    if "AFK START" in line:
        return ActivityEvent.afk_start(timestamp)
    if "AFK END" in line:
        return ActivityEvent.afk_end(timestamp)

    app = _LEGACY_APP.search(line)
    if not app:
        return None
    window = _LEGACY_WINDOW.search(line)
    return ActivityEvent.activity(
        timestamp,
        app.group(1).strip(),
        window.group(1).strip() if window else None,
    )


def migrate_from_text_log(
    conn: sqlite3.Connection,
    log_path: Path,
    *,
    classify: Optional[Callable[[ActivityEvent], Optional[str]]] = None,
) -> MigrationResult:
    """Import a legacy ``activity_log.txt`` once, skipping unparsable lines."""
    done = conn.execute(
        "SELECT entries_migrated, entries_skipped FROM migration_status WHERE id = 1;"
    ).fetchone()
    if done:
        logger.info("Legacy log already migrated (%d entries).", done["entries_migrated"])
        return MigrationResult(
            migrated=done["entries_migrated"] or 0,
            skipped=done["entries_skipped"] or 0,
            already_done=True,
        )

    log_path = Path(log_path)
    if not log_path.exists():
        logger.info("No legacy log at %s; nothing to migrate.", log_path)
        return MigrationResult(migrated=0, skipped=0)

    events: list[ActivityEvent] = []
    skipped = 0
    with log_path.open(encoding="utf-8", errors="replace") as handle:
        for line in handle:
            if not line.strip():
                continue
            try:
                event = parse_log_line(line.rstrip("\n"))
            except ValueError:
                event = None
            if event is None:
                skipped += 1
                continue
            if classify and event.kind is EventKind.ACTIVITY:
                event.project = classify(event)
            events.append(event)

    conn.execute("BEGIN;")
    try:
        insert_events(conn, events)
        conn.execute(
            """
            INSERT OR REPLACE INTO migration_status (
                id, migrated_at, log_file_path, entries_migrated, entries_skipped
            ) VALUES (1, datetime('now'), ?, ?, ?);
            """,
            (str(log_path), len(events), skipped),
        )
    except sqlite3.Error:
        conn.execute("ROLLBACK;")
        raise
    conn.execute("COMMIT;")
    logger.info("Migrated %d legacy entries (%d skipped).", len(events), skipped)
    return MigrationResult(migrated=len(events), skipped=skipped)


class EventStore:
    """Thread-safe event log with an in-memory fallback.

    When the database file cannot be opened the store keeps working against a
    private in-memory database and reports ``degraded``. Query failures are
    logged and answered with empty results.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = db_path
        self.degraded = False
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def open(self) -> "EventStore":
        with self._lock:
            if self._conn is not None:
                return self
            try:
                if str(self.db_path) != MEMORY_DB:
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._conn = open_database(self.db_path, check_same_thread=False)
                logger.debug("Opened event store at %s", self.db_path)
            except (sqlite3.Error, OSError):
                logger.exception(
                    "Cannot open event store at %s; keeping events in memory only.",
                    self.db_path,
                )
                self._conn = open_database(MEMORY_DB, check_same_thread=False)
                self.degraded = True
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "EventStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def append(self, event: ActivityEvent) -> Optional[int]:
        try:
            with self._lock:
                event.id = insert_event(self._connection(), event)
            return event.id
        except sqlite3.Error:
            logger.exception("Failed to store %s event at %s", event.kind.value, event.timestamp)
            return None

    def query_by_date(self, day: date) -> list[ActivityEvent]:
        return self._read(fetch_events_for_day, day, default=[])

    def query_by_date_range(self, start_day: date, end_day: date) -> list[ActivityEvent]:
        return self._read(fetch_events_for_range, start_day, end_day, default=[])

    def fetch_known_projects(self) -> list[str]:
        return self._read(fetch_known_projects, default=[])

    def upsert_daily_summary(self, summary: DailySummary) -> bool:
        try:
            with self._lock:
                upsert_daily_summary(self._connection(), summary)
            return True
        except sqlite3.Error:
            logger.exception("Failed to update daily summary for %s", summary.day)
            return False

    def get_daily_summary(self, day: date) -> Optional[DailySummary]:
        return self._read(fetch_daily_summary, day, default=None)

    def get_daily_summaries(self, start_day: date, end_day: date) -> list[DailySummary]:
        return self._read(fetch_daily_summaries, start_day, end_day, default=[])

    def migrate_from_text_log(
        self,
        log_path: Path,
        *,
        classify: Optional[Callable[[ActivityEvent], Optional[str]]] = None,
    ) -> MigrationResult:
        with self._lock:
            return migrate_from_text_log(self._connection(), log_path, classify=classify)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self.open()
        assert self._conn is not None
        return self._conn

    def _read(self, query: Callable[..., Any], *args: Any, default: Any) -> Any:
        try:
            with self._lock:
                return query(self._connection(), *args)
        except sqlite3.Error:
            logger.exception("Event store query %s failed", query.__name__)
            return default


def _event_params(event: ActivityEvent) -> tuple[object, ...]:
    return (
        event.timestamp.strftime(DATETIME_FMT),
        event.kind.value,
        event.app_name,
        event.window_title,
        event.project,
    )


def _row_to_event(row: sqlite3.Row) -> ActivityEvent:
    return ActivityEvent(
        id=row["id"],
        timestamp=datetime.strptime(row["timestamp"], DATETIME_FMT),
        kind=EventKind(row["kind"]),
        app_name=row["app_name"],
        window_title=row["window_title"],
        project=row["project"],
    )


def _row_to_summary(row: sqlite3.Row) -> DailySummary:
    return DailySummary(
        day=datetime.strptime(row["date"], DATE_FMT).date(),
        total_work_seconds=row["total_work_seconds"],
        goal_seconds=row["goal_seconds"],
        sessions_count=row["sessions_count"],
        productive_seconds=row["productive_seconds"],
        projects_json=row["projects_json"],
        updated_at=row["updated_at"],
    )
