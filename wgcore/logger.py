"""Printf-style logging for a device, at three levels."""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Optional, TextIO

LogFunc = Callable[..., None]


class LogLevel(IntEnum):
    SILENT = 0
    ERROR = 1
    VERBOSE = 2


def discard_logf(format: str, *args: Any) -> None:
    """Log function that drops every line."""


@dataclass
class Logger:
    """Pair of log functions; each takes a %-style format and its arguments."""

    verbosef: LogFunc = discard_logf
    errorf: LogFunc = discard_logf


def _make_logf(stream: TextIO, prefix: str, lock: threading.Lock) -> LogFunc:
    def logf(format: str, *args: Any) -> None:
        message = format % args if args else format
        stamp = time.strftime("%Y/%m/%d %H:%M:%S", time.localtime())
        line = f"{prefix}{stamp} {message}"
        if not line.endswith("\n"):
            line += "\n"
        with lock:
            stream.write(line)
            stream.flush()

    return logf


def new_logger(
    level: int, prepend: str, stream: Optional[TextIO] = None
) -> Logger:
    """Build a Logger writing to stream (stdout by default) at level and above.

    Lines carry the level name, the prepend text, the date and the time.
    """
    out = sys.stdout if stream is None else stream
    lock = threading.Lock()
    logger = Logger()
    if level >= LogLevel.VERBOSE:
        logger.verbosef = _make_logf(out, f"DEBUG: {prepend}", lock)
    if level >= LogLevel.ERROR:
        logger.errorf = _make_logf(out, f"ERROR: {prepend}", lock)
    return logger