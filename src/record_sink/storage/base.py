"""
Storage capability surface used by the file lifecycle engine.

The engine only needs create/write/force_durable/close. `list`, `open`
and `rename` serve readers, operators, tests and rotation actions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, BinaryIO, Protocol, runtime_checkable


@dataclass(frozen=True)
class FileStatus:
    """A file on the backend and the number of bytes visible to readers."""

    path: str
    length: int


@dataclass
class WriteHandle:
    """Writable stream handle returned by `StorageClient.create`."""

    path: str
    stream: Any = None
    position: int = 0
    closed: bool = False


@runtime_checkable
class StorageClient(Protocol):
    def create(self, path: str) -> WriteHandle:
        """Create `path` for writing. Fails if it exists or its parent is inaccessible."""
        ...

    def write(self, handle: WriteHandle, data: bytes) -> None:
        """Append raw bytes."""
        ...

    def force_durable(self, handle: WriteHandle) -> None:
        """Make all bytes written so far visible to independent readers. Does not close."""
        ...

    def close(self, handle: WriteHandle) -> None:
        """Finalize the stream; no further writes are permitted."""
        ...

    def list(self, directory: str) -> list[FileStatus]: ...

    def open(self, path: str) -> BinaryIO:
        """Open `path` for reading (visible bytes only)."""
        ...

    def rename(self, src: str, dst: str) -> None:
        """Move a closed file. Fails if `dst` exists."""
        ...
