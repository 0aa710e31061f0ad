"""Productivity and project classification for activity samples."""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Iterable, Mapping, Optional, Sequence

from .models import UNCATEGORIZED

logger = logging.getLogger(__name__)

BROWSERS: tuple[str, ...] = (
    "Safari",
    "Google Chrome",
    "Chrome",
    "Firefox",
    "Edge",
    "Brave",
)

KEYWORD_CACHE_TTL = 30.0

_EDITOR_TITLE = re.compile(r"^([^-]+)\s*[-—]\s*Visual Studio Code", re.IGNORECASE)
_PATH_FRAGMENT = re.compile(r"(?:~|/\w+)(?:/[\w.-]+)*/([^/\s]+)")
_HOSTED_REPO = re.compile(r"(?:GitHub|GitLab|Bitbucket)\s*[-:]\s*[\w-]+/([^/\s-]+)", re.IGNORECASE)
_TICKET = re.compile(r"\[?([A-Z]+-\d+)\]?")

KeywordMap = Mapping[str, Sequence[str]]


def is_productive(
    app_name: Optional[str],
    window_title: Optional[str],
    productive_apps: Iterable[str],
    productive_websites: Iterable[str],
) -> bool:
    """Return True when the app, or a browser's current site, is allow-listed."""
    if not app_name:
        return False
    if any(app in app_name for app in productive_apps):
        return True
    if any(browser in app_name for browser in BROWSERS):
        if not window_title:
            return False
        return any(site in window_title for site in productive_websites)
    return False


def match_keywords(search_text: str, keywords: KeywordMap) -> Optional[str]:
    """First project (in map order) with a keyword contained in ``search_text``."""
    for project_name, project_keywords in keywords.items():
        if isinstance(project_keywords, (str, bytes)):
            continue
        for keyword in project_keywords:
            if keyword and keyword.lower() in search_text:
                return project_name
    return None


def project_from_title(window_title: Optional[str]) -> str:
    """Guess a project label from common window-title layouts."""
    if not window_title:
        return UNCATEGORIZED

    editor = _EDITOR_TITLE.match(window_title)
    if editor:
        folder = editor.group(1).strip()
        # Titles like "main.py - Visual Studio Code" name a file, not a project.
        if folder and "." not in folder and len(folder) < 50:
            return folder

    path = _PATH_FRAGMENT.search(window_title)
    if path:
        return path.group(1)

    repo = _HOSTED_REPO.search(window_title)
    if repo:
        return repo.group(1)

    ticket = _TICKET.search(window_title)
    if ticket:
        return ticket.group(1).split("-")[0]

    return UNCATEGORIZED


class ProjectClassifier:
    """Attach project labels using configured keywords, then title heuristics.

    The keyword map is fetched through ``keyword_loader`` and cached for
    ``ttl`` seconds. Call :meth:`invalidate_cache` whenever the map changes.
    """

    def __init__(
        self,
        keyword_loader: Callable[[], KeywordMap],
        *,
        ttl: float = KEYWORD_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._keyword_loader = keyword_loader
        self._ttl = ttl
        self._clock = clock
        self._cached: Optional[KeywordMap] = None
        self._loaded_at: Optional[float] = None

    def get_keywords(self) -> KeywordMap:
        now = self._clock()
        if self._cached is None or self._loaded_at is None or now - self._loaded_at > self._ttl:
            self._cached = self._keyword_loader()
            self._loaded_at = now
        return self._cached

    def invalidate_cache(self) -> None:
        self._cached = None
        self._loaded_at = None

    def detect_project(self, window_title: Optional[str], app_name: Optional[str] = None) -> str:
        if not window_title and not app_name:
            return UNCATEGORIZED

        search_text = f"{window_title or ''} {app_name or ''}".lower()
        try:
            keywords = self.get_keywords()
        except Exception:
            logger.exception("Could not load project keywords; using title heuristics only.")
            keywords = {}

        project = match_keywords(search_text, keywords)
        if project:
            return project
        return project_from_title(window_title)
