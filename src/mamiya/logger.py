"""Logging for the ``mamiya`` logger hierarchy.

Every module obtains its logger from :func:`get_logger`.  Nothing is printed
until :func:`configure` attaches a handler, so embedding applications (and
pytest's ``caplog``) keep full control over output.

Structured fields ride along in ``extra={"fields": {...}}`` and are rendered
as ``key=value`` pairs after the message::

    12:00:01.250 [WARN] router Discarded event[mamiya:fetch] with invalid payload origin='app-02'
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from typing import Any, TextIO

ROOT = "mamiya"

_RESET = "\033[0m"
_DIM = "\033[2m"

_LABELS = {
    logging.DEBUG: ("DEBUG", "\033[35m"),
    logging.INFO: ("INFO", "\033[36m"),
    logging.WARNING: ("WARN", "\033[33;1m"),
    logging.ERROR: ("ERROR", "\033[31;1m"),
    logging.CRITICAL: ("FATAL", "\033[31;1m"),
}

_root = logging.getLogger(ROOT)
_handler: logging.Handler | None = None


def get_logger(component: str) -> logging.Logger:
    """Return the logger for a mamiya component, e.g. ``get_logger("agent")``."""
    return _root.getChild(component)


def format_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(
        f"{key}={value!r}" if isinstance(value, str) else f"{key}={value}"
        for key, value in fields.items()
    )


class MamiyaFormatter(logging.Formatter):
    """One line per record, followed by the tab-indented traceback if any.

    The component is the logger name below ``mamiya``, so a failing event
    handler logs as ``router`` with its root cause underneath.
    """

    def __init__(self, colors: bool = False) -> None:
        super().__init__()
        self.colors = colors

    def _paint(self, text: str, code: str) -> str:
        return f"{code}{text}{_RESET}" if self.colors else text

    def format(self, record: logging.LogRecord) -> str:
        label, color = _LABELS.get(record.levelno, (record.levelname, ""))
        stamp = f"{self.formatTime(record, '%H:%M:%S')}.{int(record.msecs):03d}"
        component = record.name.removeprefix(f"{ROOT}.")

        line = " ".join([
            self._paint(stamp, _DIM),
            self._paint(f"[{label}]", color),
            component,
            record.getMessage(),
        ])
        fields = getattr(record, "fields", None)
        if fields:
            line += " " + format_fields(fields)

        if record.exc_info:
            trace = self.formatException(record.exc_info)
            line += "\n" + "\n".join(f"\t{frame}" for frame in trace.splitlines())
        return line


def configure(
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    colors: bool | None = None,
) -> logging.Handler:
    """Attach a single formatted handler to the ``mamiya`` logger.

    *level* takes a ``logging`` constant or a name such as ``"WARN"``.
    Colors default to on when *stream* is a terminal.  Calling it again
    replaces the previous handler instead of stacking another one.
    """
    global _handler

    stream = stream or sys.stderr
    if colors is None:
        colors = stream.isatty()

    if _handler is not None:
        _root.removeHandler(_handler)

    _handler = logging.StreamHandler(stream)
    _handler.setFormatter(MamiyaFormatter(colors=colors))
    _root.addHandler(_handler)
    _root.propagate = False
    _root.setLevel(level)
    return _handler
