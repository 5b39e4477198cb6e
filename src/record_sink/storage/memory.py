"""
In-memory storage backend.

Models a distributed filesystem's visibility rules: readers (`open`, `list`)
see only the bytes up to the last force_durable or close of a file, not
everything written to it.
"""

from __future__ import annotations

import io
import posixpath
import threading
from typing import BinaryIO, Optional

from ..errors import NamingCollisionError, StorageError
from .base import FileStatus, WriteHandle


class InMemoryStorage:
    """Thread-safe, process-local storage. Safe to share between engine instances."""

    def __init__(self) -> None:
        self._data: dict[str, bytearray] = {}
        self._visible: dict[str, int] = {}
        self._writing: set[str] = set()
        self._lock = threading.Lock()

    def create(self, path: str) -> WriteHandle:
        with self._lock:
            if path in self._data:
                raise NamingCollisionError(f"path already exists: {path}")
            self._data[path] = bytearray()
            self._visible[path] = 0
            self._writing.add(path)
        return WriteHandle(path=path)

    def write(self, handle: WriteHandle, data: bytes) -> None:
        with self._lock:
            self._check_open(handle)
            self._data[handle.path] += data
        handle.position += len(data)

    def force_durable(self, handle: WriteHandle) -> None:
        with self._lock:
            self._check_open(handle)
            self._visible[handle.path] = len(self._data[handle.path])

    def close(self, handle: WriteHandle) -> None:
        with self._lock:
            self._check_open(handle)
            self._visible[handle.path] = len(self._data[handle.path])
            self._writing.discard(handle.path)
        handle.closed = True

    def list(self, directory: str) -> list[FileStatus]:
        directory = directory.rstrip("/") or "/"
        with self._lock:
            return [
                FileStatus(path=p, length=self._visible[p])
                for p in sorted(self._data)
                if posixpath.dirname(p) == directory
            ]

    def open(self, path: str) -> BinaryIO:
        with self._lock:
            if path not in self._data:
                raise StorageError(f"FileNotFoundError on {path}")
            return io.BytesIO(bytes(self._data[path][: self._visible[path]]))

    def rename(self, src: str, dst: str) -> None:
        with self._lock:
            if src not in self._data:
                raise StorageError(f"FileNotFoundError on {src}")
            if src in self._writing:
                raise StorageError(f"cannot rename open file: {src}")
            if dst in self._data:
                raise NamingCollisionError(f"path already exists: {dst}")
            self._data[dst] = self._data.pop(src)
            self._visible[dst] = self._visible.pop(src)

    def written_length(self, path: str) -> Optional[int]:
        """All bytes written to `path`, including those not yet visible."""
        with self._lock:
            data = self._data.get(path)
            return None if data is None else len(data)

    def is_open(self, path: str) -> bool:
        with self._lock:
            return path in self._writing

    def _check_open(self, handle: WriteHandle) -> None:
        if handle.closed or handle.path not in self._writing:
            raise StorageError(f"stream already closed: {handle.path}")
