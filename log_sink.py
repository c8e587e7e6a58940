"""
Log and progress side channels.

Front-ends pass in plain callables. Delivery is best-effort: a failing
callback is noted in the debug log and otherwise ignored, so it can never
interrupt a scan or an install.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from pack_types import LogEntry, LogLevel

LogCallback = Callable[[LogEntry], None]
ProgressCallback = Callable[[int, int, str], None]

_PY_LEVELS = {
    "INFO": logging.INFO,
    "SUCCESS": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_log = logging.getLogger(__name__)


def make_entry(level: LogLevel, message: str) -> LogEntry:
    return LogEntry(
        timestamp=datetime.now().strftime("%H:%M:%S.%f")[:-3],
        level=level,
        message=message,
    )


def send_log(
    logger: logging.Logger,
    callback: Optional[LogCallback],
    level: LogLevel,
    message: str,
) -> None:
    logger.log(_PY_LEVELS[level], message)
    if callback is None:
        return
    try:
        callback(make_entry(level, message))
    except Exception as exc:
        _log.debug("Log callback failed: %s", exc)


def send_progress(
    callback: Optional[ProgressCallback], current: int, total: int, message: str
) -> None:
    if callback is None:
        return
    try:
        callback(current, total, message)
    except Exception as exc:
        _log.debug("Progress callback failed: %s", exc)
