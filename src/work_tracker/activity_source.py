"""Platform samplers for idle time and the foreground application.

Each platform gets one :class:`ActivitySource` implementation;
:func:`detect_activity_source` picks it once at startup so nothing else in
the package branches on the operating system.
"""

from __future__ import annotations

import ctypes
import logging
import re
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

import psutil

logger = logging.getLogger(__name__)

UNKNOWN_WINDOW = "Unknown Window"
COMMAND_TIMEOUT_SECONDS = 5.0


class ActivitySourceError(RuntimeError):
    """Raised when the operating system could not be queried."""


@dataclass(slots=True, frozen=True)
class ForegroundApp:
    app_name: Optional[str]


@dataclass(slots=True)
class DependencyReport:
    platform: str
    available: bool = True
    missing: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ActivitySource(ABC):
    platform: str = "unknown"

    @abstractmethod
    def sample_idle_seconds(self) -> float:
        """Seconds since the last keyboard or mouse input."""

    @abstractmethod
    def sample_foreground_app(self) -> ForegroundApp:
        """Name of the frontmost application, if it can be determined."""

    @abstractmethod
    def sample_window_title(self, app_name: Optional[str]) -> str:
        """Title of the frontmost window; ``UNKNOWN_WINDOW`` on failure."""

    def check_dependencies(self) -> DependencyReport:
        return DependencyReport(platform=self.platform)


def _run(args: Sequence[str]) -> str:
    try:
        completed = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            check=True,
            timeout=COMMAND_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise ActivitySourceError(f"{args[0]} failed: {exc}") from exc
    return completed.stdout.strip()


def _process_name(pid: int) -> Optional[str]:
    try:
        return psutil.Process(pid).name()
    except (psutil.Error, ProcessLookupError):
        return None


class MacActivitySource(ActivitySource):
    """AppleScript and ``ioreg`` based samplers."""

    platform = "darwin"

    _FRONT_APP_SCRIPT = (
        'tell application "System Events" to get name of first application process '
        "whose frontmost is true"
    )
    _IDLE_PATTERN = re.compile(r"HIDIdleTime\"?\s*=\s*(\d+)")

    def sample_idle_seconds(self) -> float:
        output = _run(["ioreg", "-c", "IOHIDSystem"])
        match = self._IDLE_PATTERN.search(output)
        if not match:
            raise ActivitySourceError("Could not parse HIDIdleTime from ioreg output")
        return int(match.group(1)) / 1_000_000_000

    def sample_foreground_app(self) -> ForegroundApp:
        return ForegroundApp(app_name=_run(["osascript", "-e", self._FRONT_APP_SCRIPT]) or None)

    def sample_window_title(self, app_name: Optional[str]) -> str:
        if not app_name:
            return UNKNOWN_WINDOW
        escaped = app_name.replace("\\", "\\\\").replace('"', '\\"')
        script = (
            f'tell application "{escaped}"\n'
            "try\n"
            "set windowTitle to name of front window\n"
            "on error\n"
            f'set windowTitle to "{UNKNOWN_WINDOW}"\n'
            "end try\n"
            "return windowTitle\n"
            "end tell"
        )
        try:
            return _run(["osascript", "-e", script]) or UNKNOWN_WINDOW
        except ActivitySourceError:
            logger.debug("Window title unavailable for %s", app_name)
            return UNKNOWN_WINDOW


class WindowsActivitySource(ActivitySource):
    """Win32 samplers through ctypes."""

    platform = "win32"

    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", ctypes.c_uint), ("dwTime", ctypes.c_ulong)]

    def __init__(self) -> None:
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_ulonglong

    def sample_idle_seconds(self) -> float:
        last_input = self.LASTINPUTINFO()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ActivitySourceError("GetLastInputInfo failed")
        # dwTime wraps every ~49.7 days; compare against the low 32 bits.
        now_ms = self._kernel32.GetTickCount64() & 0xFFFFFFFF
        elapsed = (now_ms - last_input.dwTime) & 0xFFFFFFFF
        return elapsed / 1000.0

    def sample_foreground_app(self) -> ForegroundApp:
        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return ForegroundApp(app_name=None)
        pid = ctypes.c_ulong()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        name = _process_name(pid.value) if pid.value else None
        if name and name.lower().endswith(".exe"):
            name = name[:-4]
        return ForegroundApp(app_name=name)

    def sample_window_title(self, app_name: Optional[str]) -> str:
        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return UNKNOWN_WINDOW
        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        return buffer.value.strip() or UNKNOWN_WINDOW


class LinuxActivitySource(ActivitySource):
    """X11 samplers via ``xdotool``, ``xprop`` and ``xprintidle``."""

    platform = "linux"

    _WINDOW_ID = re.compile(r"window id # (0x[0-9a-fA-F]+)")
    _WM_NAME = re.compile(r'_NET_WM_NAME.*= "(.*?)"')

    def __init__(self) -> None:
        self._warned_idle = False

    def sample_idle_seconds(self) -> float:
        for command in (["xprintidle"], ["xssstate", "-i"]):
            if not shutil.which(command[0]):
                continue
            try:
                return int(_run(command)) / 1000.0
            except (ActivitySourceError, ValueError):
                logger.debug("%s did not report idle time", command[0])
        if not self._warned_idle:
            logger.warning(
                "Could not detect idle time. Install xprintidle for accurate AFK detection."
            )
            self._warned_idle = True
        return 0.0

    def sample_foreground_app(self) -> ForegroundApp:
        if not shutil.which("xdotool"):
            raise ActivitySourceError("xdotool is not installed")
        pid_text = _run(["xdotool", "getactivewindow", "getwindowpid"])
        try:
            pid = int(pid_text)
        except ValueError:
            return ForegroundApp(app_name=None)
        return ForegroundApp(app_name=_process_name(pid))

    def sample_window_title(self, app_name: Optional[str]) -> str:
        try:
            if shutil.which("xdotool"):
                title = _run(["xdotool", "getactivewindow", "getwindowname"])
                if title:
                    return title
            if shutil.which("xprop"):
                root = _run(["xprop", "-root", "_NET_ACTIVE_WINDOW"])
                window = self._WINDOW_ID.search(root)
                if window:
                    name = self._WM_NAME.search(_run(["xprop", "-id", window.group(1), "_NET_WM_NAME"]))
                    if name:
                        return name.group(1)
        except ActivitySourceError:
            logger.debug("Window title unavailable for %s", app_name)
        return UNKNOWN_WINDOW

    def check_dependencies(self) -> DependencyReport:
        report = DependencyReport(platform=self.platform)
        if not shutil.which("xdotool"):
            report.available = False
            report.missing.append("xdotool")
        if not shutil.which("xprintidle"):
            report.warnings.append("xprintidle not found - idle detection may not work")
        return report


def detect_activity_source(platform: Optional[str] = None) -> ActivitySource:
    """Return the sampler implementation for ``platform`` (default: this host)."""
    platform = platform or sys.platform
    if platform == "darwin":
        return MacActivitySource()
    if platform == "win32":
        return WindowsActivitySource()
    if platform.startswith("linux"):
        return LinuxActivitySource()
    raise ActivitySourceError(f"Unsupported platform: {platform}")
