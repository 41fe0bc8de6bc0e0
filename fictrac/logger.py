"""Thread-safe logger writing to a console stream and a log file."""

from __future__ import annotations

import datetime
import sys
import threading
import time
from enum import IntEnum
from typing import Optional, TextIO

from fictrac.recorder import FileRecorder

_MAX_MESSAGE = 1023


class LogLevel(IntEnum):
    DBG = 0
    INF = 1
    WRN = 2
    ERR = 3
    PRT = 4


_VERBOSITY_NAMES = {
    LogLevel.DBG: ("debug", "DBG", "dbg"),
    LogLevel.INF: ("info", "INF", "inf"),
    LogLevel.WRN: ("warn", "WRN", "wrn"),
    LogLevel.ERR: ("error", "ERR", "err"),
}


def parse_verbosity(v: str) -> LogLevel:
    """Level named by ``v``; raises ValueError if the name is unknown."""
    for level, names in _VERBOSITY_NAMES.items():
        if v in names:
            return level
    raise ValueError(f"verbosity ({v}) not recognised")


class Logger:
    """Prints messages at or above the verbosity and logs all but PRT to file."""

    def __init__(self, log_fn: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
        if log_fn is None:
            stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
            log_fn = f"fictrac-{stamp}.log"
        self.log_fn = log_fn
        self._stream = stream
        self._lock = threading.Lock()
        self._start = time.monotonic()
        self.verbosity = LogLevel.INF
        self._file = FileRecorder()
        self._file.open(log_fn)

    def _out(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def set_verbosity(self, v: str | LogLevel) -> None:
        """Set the console threshold; unknown names fall back to INF."""
        if isinstance(v, LogLevel):
            self.verbosity = v
            return
        try:
            self.verbosity = parse_verbosity(v)
        except ValueError:
            self.verbosity = LogLevel.INF
            self.log(
                LogLevel.WRN,
                "set_verbosity",
                f"Warning, verbosity ({v}) not recognised! Defaulting to INFO.",
            )

    def log(self, lvl: LogLevel | int, func: str, message: str) -> None:
        lvl = LogLevel(lvl)
        text = message[:_MAX_MESSAGE]
        with self._lock:
            if lvl >= self.verbosity:
                out = self._out()
                out.write(text + "\n")
                out.flush()
            if lvl != LogLevel.PRT and self._file.is_open:
                elapsed = time.monotonic() - self._start
                self._file.write(f"{elapsed:f} {func} [{lvl.name}] {text}\n")

    def close(self) -> None:
        with self._lock:
            self._file.close()

    def __enter__(self) -> Logger:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()