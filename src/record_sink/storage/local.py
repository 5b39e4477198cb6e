"""
Local filesystem storage backend.

force_durable flushes and fsyncs the open file, so other processes opening
the same path observe every byte written so far.
"""

from __future__ import annotations

import os
from typing import BinaryIO

from loguru import logger

from ..errors import StorageError, NamingCollisionError, map_os_error
from .base import FileStatus, WriteHandle


class LocalFileSystemStorage:
    def __init__(self, *, mkdirs: bool = True):
        self._mkdirs = mkdirs

    def create(self, path: str) -> WriteHandle:
        parent = os.path.dirname(path)
        try:
            if self._mkdirs and parent:
                os.makedirs(parent, exist_ok=True)
            fh = open(path, "xb")
        except OSError as e:
            raise map_os_error(e, path) from e
        logger.debug(f"Created {path}")
        return WriteHandle(path=path, stream=fh)

    def write(self, handle: WriteHandle, data: bytes) -> None:
        self._check_open(handle)
        try:
            handle.stream.write(data)
        except OSError as e:
            raise map_os_error(e, handle.path) from e
        handle.position += len(data)

    def force_durable(self, handle: WriteHandle) -> None:
        self._check_open(handle)
        try:
            handle.stream.flush()
            os.fsync(handle.stream.fileno())
        except OSError as e:
            raise map_os_error(e, handle.path) from e

    def close(self, handle: WriteHandle) -> None:
        self._check_open(handle)
        try:
            handle.stream.flush()
            os.fsync(handle.stream.fileno())
            handle.stream.close()
        except OSError as e:
            raise map_os_error(e, handle.path) from e
        handle.closed = True
        logger.debug(f"Closed {handle.path} ({handle.position} bytes)")

    def list(self, directory: str) -> list[FileStatus]:
        if not os.path.isdir(directory):
            return []
        try:
            with os.scandir(directory) as it:
                entries = [e for e in it if e.is_file()]
                return sorted(
                    (FileStatus(path=e.path, length=e.stat().st_size) for e in entries),
                    key=lambda s: s.path,
                )
        except OSError as e:
            raise map_os_error(e, directory) from e

    def open(self, path: str) -> BinaryIO:
        try:
            return open(path, "rb")
        except OSError as e:
            raise map_os_error(e, path) from e

    def rename(self, src: str, dst: str) -> None:
        if os.path.exists(dst):
            raise NamingCollisionError(f"path already exists: {dst}")
        try:
            parent = os.path.dirname(dst)
            if self._mkdirs and parent:
                os.makedirs(parent, exist_ok=True)
            os.rename(src, dst)
        except OSError as e:
            raise map_os_error(e, src) from e

    @staticmethod
    def _check_open(handle: WriteHandle) -> None:
        if handle.closed:
            raise StorageError(f"stream already closed: {handle.path}")
