"""
Output file naming.

Paths are derived from (base directory, instance identifier, rotation index)
only, so that concurrently running sink instances writing into the same
directory never collide as long as their identifiers differ.
"""

from __future__ import annotations

import os
import posixpath
import re
import socket
from typing import Optional, Protocol, runtime_checkable


def default_instance_id() -> str:
    """Host name plus process id; distinct for concurrently running processes."""
    host = re.sub(r"[^A-Za-z0-9_.]", "_", socket.gethostname()) or "localhost"
    return f"{host}_{os.getpid()}"


@runtime_checkable
class FileNameFormat(Protocol):
    """Derives the output path of the Nth rotated file of one sink instance."""

    @property
    def directory(self) -> str: ...

    def next_path(self, rotation: int) -> str: ...

    def rotation_index(self, path: str) -> Optional[int]:
        """Rotation index encoded in `path`, or None if this instance did not produce it."""
        ...


class DefaultFileNameFormat:
    """`{directory}/{prefix}{instance_id}-{rotation}{extension}`

    Example:
        fmt = DefaultFileNameFormat("/data/out", instance_id="worker-3")
        fmt.next_path(0)  # "/data/out/worker-3-0.avro"
    """

    def __init__(
        self,
        directory: str,
        instance_id: Optional[str] = None,
        *,
        prefix: str = "",
        extension: str = ".avro",
    ):
        if not directory:
            raise ValueError("directory must not be empty")
        instance_id = instance_id or default_instance_id()
        if "/" in instance_id or "/" in prefix or "/" in extension:
            raise ValueError("instance_id, prefix and extension must not contain '/'")

        self._directory = directory.rstrip("/") or "/"
        self._instance_id = instance_id
        self._prefix = prefix
        self._extension = extension
        self._pattern = re.compile(
            re.escape(f"{prefix}{instance_id}-") + r"(\d+)" + re.escape(extension) + "$"
        )

    @property
    def directory(self) -> str:
        return self._directory

    @property
    def instance_id(self) -> str:
        return self._instance_id

    def next_path(self, rotation: int) -> str:
        if rotation < 0:
            raise ValueError("rotation must be >= 0")
        name = f"{self._prefix}{self._instance_id}-{rotation}{self._extension}"
        return posixpath.join(self._directory, name)

    def rotation_index(self, path: str) -> Optional[int]:
        m = self._pattern.match(posixpath.basename(path))
        return int(m.group(1)) if m else None

    def __repr__(self) -> str:
        return (
            f"DefaultFileNameFormat(directory={self._directory!r}, "
            f"instance_id={self._instance_id!r}, prefix={self._prefix!r}, "
            f"extension={self._extension!r})"
        )
