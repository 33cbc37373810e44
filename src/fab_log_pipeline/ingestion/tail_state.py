"""
In-memory read progress for append-only log files.

Maps a normalized file identity to the byte offset up to which the file has
been ingested. One store is created per plugin instance (which lives for
the whole process) and shared with its tailer. Nothing is persisted: after a
restart every file is read again from offset 0 and the natural-key
conflict policies absorb the duplicates.
"""

import os
import threading
from pathlib import Path
from typing import Union


def file_identity(file_path: Union[str, Path]) -> str:
    """Absolute, case-normalized path (case-insensitive where the OS is)."""
    return os.path.normcase(os.path.abspath(os.fspath(file_path)))


class TailStateStore:
    """Lock-protected map of file identity → last ingested byte offset."""

    def __init__(self) -> None:
        self._offsets: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, file_path: Union[str, Path]) -> int:
        """Last committed offset, 0 for unknown files."""
        with self._lock:
            return self._offsets.get(file_identity(file_path), 0)

    def set(self, file_path: Union[str, Path], offset: int) -> None:
        """Record a committed offset."""
        if offset < 0:
            raise ValueError(f"Offset must be >= 0, got {offset}")
        with self._lock:
            self._offsets[file_identity(file_path)] = offset

    def forget(self, file_path: Union[str, Path]) -> bool:
        """Drop the entry of a vanished file. Returns True if one existed."""
        with self._lock:
            return self._offsets.pop(file_identity(file_path), None) is not None

    def snapshot(self) -> dict[str, int]:
        """Copy of all entries."""
        with self._lock:
            return dict(self._offsets)

    def __contains__(self, file_path: object) -> bool:
        if not isinstance(file_path, (str, Path)):
            return False
        with self._lock:
            return file_identity(file_path) in self._offsets

    def __len__(self) -> int:
        with self._lock:
            return len(self._offsets)
