"""Helpers to launch the local web dashboard."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from typing import Optional

import uvicorn

from .tracker import WorkTracker
from .webapp import create_app


def run_dashboard(
    *,
    tracker: WorkTracker,
    host: str = "127.0.0.1",
    port: int = 8765,
    open_browser: bool = False,
    collect: bool = True,
    log_level: str = "info",
) -> None:
    """Start the FastAPI dashboard, its collector thread and an optional browser tab."""
    app = create_app(tracker=tracker, start_collector=collect)

    if open_browser:
        url = f"http://{host}:{port}/docs"
        threading.Thread(
            target=_launch_browser_after_delay, args=(url,), daemon=True
        ).start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    try:
        uvicorn.run(app, host=host, port=port, log_level=log_level)
    finally:
        tracker.close()


def _launch_browser_after_delay(url: str, delay: Optional[float] = 1.0) -> None:
    time.sleep(delay or 0)
    try:
        webbrowser.open(url)
    except Exception:
        logging.getLogger(__name__).exception("Failed to launch browser for %s", url)
