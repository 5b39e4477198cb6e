"""
Actions run against a file after it has been finalized by rotation.
"""

from __future__ import annotations

import posixpath
from typing import Protocol, runtime_checkable

from loguru import logger

from .storage.base import StorageClient


@runtime_checkable
class RotationAction(Protocol):
    def execute(self, storage: StorageClient, path: str) -> str:
        """Act on the finalized file at `path`; return its path afterwards."""
        ...


class MoveFileAction:
    """Move each rotated file into `destination`, keeping its name."""

    def __init__(self, destination: str):
        if not destination:
            raise ValueError("destination must not be empty")
        self.destination = destination.rstrip("/") or "/"

    def execute(self, storage: StorageClient, path: str) -> str:
        target = posixpath.join(self.destination, posixpath.basename(path))
        storage.rename(path, target)
        logger.info(f"Moved {path} -> {target}")
        return target

    def __repr__(self) -> str:
        return f"MoveFileAction(destination={self.destination!r})"
