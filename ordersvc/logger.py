"""Structured JSON-lines logger."""

from __future__ import annotations

import inspect
import json
import sys
import threading
from datetime import datetime
from typing import Any, TextIO

_LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}


def _caller() -> str:
    frame = inspect.currentframe()
    while frame is not None and frame.f_code.co_filename == __file__:
        frame = frame.f_back
    if frame is None:
        return ""
    return f"{frame.f_code.co_filename}:{frame.f_lineno}"


def _format(message: str, args: tuple[Any, ...]) -> str:
    if not args:
        return message
    try:
        return message.replace("%v", "%s") % args
    except (TypeError, ValueError):
        extras = ", ".join(f"{type(arg).__name__}={arg}" for arg in args)
        return f"{message}%!(EXTRA {extras})"


class Logger:
    """Writes one JSON object per line; every record is emitted at info severity."""

    def __init__(self, level: str = "info", stream: TextIO | None = None) -> None:
        name = level.lower()
        self.level = name if name in _LEVELS else "info"
        self._stream = stream
        self._lock = threading.Lock()

    def debug(self, message: Any, *args: Any) -> None:
        self._msg("debug", message, args)

    def info(self, message: str, *args: Any) -> None:
        self._log(message, args)

    def warn(self, message: str, *args: Any) -> None:
        self._log(message, args)

    def error(self, message: Any, *args: Any) -> None:
        self._msg("error", message, args)

    def fatal(self, message: Any, *args: Any) -> None:
        """Log the message and terminate with exit status 1."""
        self._msg("fatal", message, args)
        raise SystemExit(1)

    def _msg(self, level: str, message: Any, args: tuple[Any, ...]) -> None:
        if isinstance(message, BaseException):
            text = str(message)
        elif isinstance(message, str):
            text = message
        else:
            text = f"{level} message {message} has unknown type {message}"
        self._log(text, args)

    def _log(self, message: str, args: tuple[Any, ...]) -> None:
        if _LEVELS[self.level] > _LEVELS["info"]:
            return
        timestamp = datetime.now().astimezone().isoformat(timespec="seconds")
        if timestamp.endswith("+00:00"):
            timestamp = timestamp[:-6] + "Z"
        record = {
            "level": "info",
            "time": timestamp,
            "caller": _caller(),
            "message": _format(message, args),
        }
        stream = self._stream if self._stream is not None else sys.stdout
        with self._lock:
            stream.write(json.dumps(record, ensure_ascii=False) + "\n")
            stream.flush()