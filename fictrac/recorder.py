"""Line-oriented output to a file, flushed after every write."""

from __future__ import annotations

from typing import IO, Optional


class FileRecorder:
    """Writes text records to a file, flushing each one immediately."""

    def __init__(self) -> None:
        self._file: Optional[IO[str]] = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self, fn: str) -> None:
        """Open ``fn`` for writing, truncating it; raises OSError on failure."""
        self.close()
        self._file = open(fn, "w", encoding="utf-8")

    def write(self, s: str) -> None:
        """Write ``s`` and flush it to disk."""
        if self._file is None:
            raise ValueError("recorder is not open")
        self._file.write(s)
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> FileRecorder:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()