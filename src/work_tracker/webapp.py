"""FastAPI application that exposes a local JSON API for the work tracker."""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict

from .activity_source import ActivitySource, ActivitySourceError, detect_activity_source
from .exporter import Exporter, generate_filename, sessions_csv
from .models import UNCATEGORIZED, DayReport, GoalProgress, WorkSession
from .paths import get_config_path, get_db_path
from .tracker import WorkTracker

logger = logging.getLogger(__name__)

DEFAULT_STATS_DAYS = 30


class CollectorRunner:
    """Manage the activity collector in a background thread."""

    def __init__(
        self, tracker: WorkTracker, source_factory: Callable[[], ActivitySource]
    ) -> None:
        self._tracker = tracker
        self._source_factory = source_factory
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            try:
                source = self._source_factory()
            except ActivitySourceError:
                logger.exception("No activity source for this platform; collector not started.")
                return
            stop_event = threading.Event()
            collector = self._tracker.create_collector(source)
            thread = threading.Thread(
                target=collector.run_until_stopped,
                args=(stop_event,),
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Collector background thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Collector background thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())


class ProjectKeywordsPayload(BaseModel):
    project_name: str
    keywords: list[str]

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    tracker: Optional[WorkTracker] = None,
    source_factory: Callable[[], ActivitySource] = detect_activity_source,
    start_collector: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_tracker = tracker or WorkTracker.from_paths(get_config_path(), get_db_path())
    runner = CollectorRunner(resolved_tracker, source_factory)

    app = FastAPI(title="Work Tracker", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.tracker = resolved_tracker
    app.state.collector_runner = runner

    @app.on_event("startup")
    async def _startup() -> None:
        if start_collector:
            runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    def _tracker(request: Request) -> WorkTracker:
        return request.app.state.tracker

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        tracker = _tracker(request)
        config = tracker.config
        return {
            **tracker.status(),
            "collector_running": request.app.state.collector_runner.is_running(),
            "tracking_interval_seconds": config.tracking_interval_seconds,
            "afk_threshold_seconds": config.afk_threshold_seconds,
        }

    @app.get("/api/today")
    def today(request: Request) -> Dict[str, Any]:
        tracker = _tracker(request)
        report = tracker.refresh_daily_summary()
        current = report.sessions[-1] if report.sessions and report.sessions[-1].is_open else None
        return {
            **_report_payload(report),
            "progress": _progress_payload(tracker.daily_goal_progress(report.total_work_seconds)),
            "streak": tracker.streak(),
            "current_project": (current.project or UNCATEGORIZED) if current else None,
        }

    @app.get("/api/summary")
    def summary(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        tracker = _tracker(request)
        report = tracker.analyze_day(_parse_date(date, tracker.today()))
        return {
            **_report_payload(report),
            "progress": _progress_payload(tracker.daily_goal_progress(report.total_work_seconds)),
        }

    @app.get("/api/hourly")
    def hourly(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
    ) -> Dict[str, Any]:
        tracker = _tracker(request)
        target_day = _parse_date(date, tracker.today())
        return {"date": target_day.isoformat(), "minutes": tracker.hourly_stats(target_day)}

    @app.get("/api/stats")
    def stats(
        request: Request,
        start: Optional[str] = Query(
            default=None,
            description="Start date in YYYY-MM-DD format (inclusive).",
        ),
        end: Optional[str] = Query(
            default=None,
            description="End date in YYYY-MM-DD format (inclusive).",
        ),
    ) -> Dict[str, Any]:
        tracker = _tracker(request)
        start_day, end_day = _parse_range(start, end, tracker.today())
        data = tracker.stats(start_day, end_day)
        period = data["summary"]
        return {
            "start": start_day.isoformat(),
            "end": end_day.isoformat(),
            "today": {
                **data["today"],
                "progress": _progress_payload(data["today"]["progress"]),
            },
            "project_stats": [dataclasses.asdict(stat) for stat in data["project_stats"]],
            "summary": {
                "total_work_seconds": period.total_work_seconds,
                "avg_daily_seconds": period.avg_daily_seconds,
                "total_sessions": period.total_sessions,
                "goals_reached": period.goals_reached,
            },
            "config": data["config"],
        }

    @app.get("/api/events")
    def events(
        request: Request,
        date: Optional[str] = Query(default=None, description="Target date in YYYY-MM-DD format."),
    ) -> Dict[str, Any]:
        tracker = _tracker(request)
        target_day = _parse_date(date, tracker.today())
        return {
            "date": target_day.isoformat(),
            "events": [
                {
                    "id": event.id,
                    "timestamp": event.timestamp.isoformat(),
                    "kind": event.kind.value,
                    "app_name": event.app_name,
                    "window_title": event.window_title,
                    "project": event.project,
                }
                for event in tracker.store.query_by_date(target_day)
            ],
        }

    @app.get("/api/projects")
    def list_projects(request: Request) -> Dict[str, Any]:
        tracker = _tracker(request)
        keywords = tracker.config_store.get_project_keywords()
        known = set(tracker.store.fetch_known_projects()) | set(keywords)
        return {
            "keywords": keywords,
            "projects": sorted(known, key=str.casefold),
        }

    @app.post("/api/projects")
    def set_project(payload: ProjectKeywordsPayload, request: Request) -> Dict[str, Any]:
        tracker = _tracker(request)
        try:
            tracker.config_store.set_project_keywords(payload.project_name, payload.keywords)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"keywords": tracker.config_store.get_project_keywords()}

    @app.delete("/api/projects/{project_name}")
    def delete_project(project_name: str, request: Request) -> Dict[str, Any]:
        tracker = _tracker(request)
        if not tracker.config_store.remove_project(project_name):
            raise HTTPException(status_code=404, detail="Project not found")
        return {"keywords": tracker.config_store.get_project_keywords()}

    @app.get("/api/config")
    def get_config(request: Request) -> Dict[str, Any]:
        return _tracker(request).config.to_dict()

    @app.patch("/api/config")
    def update_config(changes: Dict[str, Any], request: Request) -> Dict[str, Any]:
        tracker = _tracker(request)
        try:
            tracker.config_store.update(changes)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return tracker.config.to_dict()

    @app.get("/api/export")
    def export(
        request: Request,
        format: str = Query(default="json", pattern="^(csv|json)$"),
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ):
        tracker = _tracker(request)
        start_day, end_day = _parse_range(start, end, tracker.today())
        exporter = Exporter(tracker)
        if format == "json":
            return exporter.build_json(start_day, end_day)
        sessions = exporter.sessions(start_day, end_day)
        if not sessions:
            raise HTTPException(status_code=404, detail="No data to export for the specified date range")
        filename = generate_filename("sessions", start_day, end_day, "csv")
        return PlainTextResponse(
            sessions_csv(sessions),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


def _parse_date(value: Optional[str], default: date) -> date:
    if not value:
        return default
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _parse_range(start: Optional[str], end: Optional[str], today: date) -> tuple[date, date]:
    end_day = _parse_date(end, today)
    start_day = _parse_date(start, end_day - timedelta(days=DEFAULT_STATS_DAYS))
    if end_day < start_day:
        raise HTTPException(status_code=400, detail="end date must be on or after start date")
    return start_day, end_day


def _session_payload(session: WorkSession) -> Dict[str, Any]:
    return {
        "start": session.start.isoformat(),
        "end": session.end.isoformat(),
        "duration_seconds": session.duration_seconds,
        "project": session.project or UNCATEGORIZED,
        "ongoing": session.is_open,
    }


def _report_payload(report: DayReport) -> Dict[str, Any]:
    return {
        "date": report.day.isoformat(),
        "total_work_seconds": report.total_work_seconds,
        "sessions_count": report.sessions_count,
        "sessions": [_session_payload(session) for session in report.sessions],
    }


def _progress_payload(progress: GoalProgress) -> Dict[str, Any]:
    return dataclasses.asdict(progress)
