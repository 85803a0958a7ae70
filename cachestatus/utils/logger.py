"""
Logging utility with timestamps and structured key/value data.
Provides colourful single-line console output for navigation and
classification events.  Optionally mirrors lines into a plain-text
file when WRITE_TO_FILE is set.

``LOG_LEVEL`` sets the lowest level emitted (``debug``, ``info``,
``warn``/``warning`` or ``error``/``critical``; anything else means
``info``).  It is read on every call so tests can flip it with
``monkeypatch.setenv``.
"""

from __future__ import annotations

import io
import os
import pathlib
import re
import sys
from datetime import UTC, datetime

_ANSI_PATTERN = re.compile(r"\033\[[0-9;]*m")

# ============================================================================
# File Logging
# ============================================================================

_log_file_stream: io.TextIOWrapper | None = None


def _write_to_file_enabled() -> bool:
    return os.environ.get("WRITE_TO_FILE", "").lower() == "true"


def start_log_file(label: str = "server") -> str | None:
    """Open a timestamped log file under ``.logs/``.

    Returns:
        The file path, or ``None`` when file logging is disabled
        or the file could not be opened.
    """
    global _log_file_stream
    if not _write_to_file_enabled():
        return None

    end_log_file()

    logs_dir = pathlib.Path.cwd() / ".logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    safe_label = "".join(c if c.isalnum() or c in ".-" else "_" for c in label)[:50]
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d_%H-%M-%S")
    path = logs_dir / f"{safe_label}_{timestamp}.log"

    try:
        _log_file_stream = open(path, "a", encoding="utf-8")  # noqa: SIM115
    except OSError as exc:
        print(f"\033[31m✗ [Logger] Failed to open log file: {exc}\033[0m", file=sys.stderr)
        return None
    return str(path)


def end_log_file() -> None:
    """Flush and close the current log file."""
    global _log_file_stream
    if _log_file_stream is not None:
        try:
            _log_file_stream.flush()
            _log_file_stream.close()
        except OSError:
            print("\033[33m⚠ [Logger] Failed to flush/close log file stream\033[0m", file=sys.stderr)
        _log_file_stream = None


def _write_to_log_file(line: str) -> None:
    """Write a line to the log file (without ANSI colours)."""
    if _log_file_stream is None:
        return
    _log_file_stream.write(_ANSI_PATTERN.sub("", line) + "\n")
    _log_file_stream.flush()


# ============================================================================
# ANSI Colours
# ============================================================================

_colours = {
    "reset": "\033[0m",
    "bright": "\033[1m",
    "dim": "\033[2m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "blue": "\033[34m",
    "gray": "\033[90m",
}

# Level -> (colour, symbol).
_LEVEL_STYLE: dict[str, tuple[str, str]] = {
    "info": (_colours["cyan"], "ℹ"),
    "success": (_colours["green"], "✓"),
    "warn": (_colours["yellow"], "⚠"),
    "error": (_colours["red"], "✗"),
    "debug": (_colours["gray"], "•"),
}


# Severity thresholds; LOG_LEVEL accepts these names and common aliases.
_LEVEL_RANK: dict[str, int] = {
    "debug": 0,
    "info": 1,
    "success": 1,
    "warn": 2,
    "warning": 2,
    "error": 3,
    "critical": 3,
}


def _threshold() -> int:
    """Minimum rank to emit; unknown LOG_LEVEL values mean ``info``."""
    return _LEVEL_RANK.get(os.environ.get("LOG_LEVEL", "info").strip().lower(), _LEVEL_RANK["info"])


def _get_timestamp() -> str:
    """Return the current UTC time as HH:MM:SS.mmm."""
    now = datetime.now(UTC)
    return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"


def _format_value(value: object) -> str:
    """Return an ANSI-coloured representation of *value*."""
    c = _colours
    if value is None:
        return f"{c['dim']}None{c['reset']}"
    if isinstance(value, bool):
        return f"{c['green']}True{c['reset']}" if value else f"{c['red']}False{c['reset']}"
    if isinstance(value, (int, float)):
        return f"{c['yellow']}{value}{c['reset']}"
    if isinstance(value, str):
        display = value[:197] + "..." if len(value) > 200 else value
        return f'{c["green"]}"{display}"{c["reset"]}'
    if isinstance(value, (list, tuple, set)):
        return f"{c['cyan']}[{len(value)} items]{c['reset']}"
    if isinstance(value, dict):
        return f"{c['cyan']}{{{len(value)} keys}}{c['reset']}"
    return str(value)


# ============================================================================
# Logger Class
# ============================================================================


class Logger:
    """Structured logger with a context prefix."""

    def __init__(self, context: str = "Server") -> None:
        self._context = context

    def _emit(self, line: str) -> None:
        print(line, file=sys.stderr)
        _write_to_log_file(line)

    def _log(self, level: str, message: str, data: dict[str, object] | None = None) -> None:
        """Format and emit a log line at the given level."""
        if _LEVEL_RANK[level] < _threshold():
            return

        c = _colours
        colour, symbol = _LEVEL_STYLE.get(level, _LEVEL_STYLE["info"])
        prefix = (
            f"{c['gray']}[{_get_timestamp()}]{c['reset']} {colour}{symbol}{c['reset']} "
            f"{c['bright']}[{self._context}]{c['reset']}"
        )

        if data:
            data_str = " ".join(f"{c['dim']}{k}={c['reset']}{_format_value(v)}" for k, v in data.items())
            self._emit(f"{prefix} {message} {data_str}")
        else:
            self._emit(f"{prefix} {message}")

    def info(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log an informational message."""
        self._log("info", message, data)

    def success(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log a success message."""
        self._log("success", message, data)

    def warn(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log a warning message."""
        self._log("warn", message, data)

    def error(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log an error message."""
        self._log("error", message, data)

    def debug(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log a debug-level message."""
        self._log("debug", message, data)

    def section(self, title: str) -> None:
        """Print a prominent section divider with *title* (info level)."""
        if _LEVEL_RANK["info"] < _threshold():
            return
        c = _colours
        line = "─" * 60
        for ln in (
            "",
            f"{c['blue']}{line}{c['reset']}",
            f"{c['blue']}{c['bright']}  {title}{c['reset']}",
            f"{c['blue']}{line}{c['reset']}",
            "",
        ):
            self._emit(ln)


def create_logger(context: str) -> Logger:
    """Create a logger for a specific module."""
    return Logger(context)
