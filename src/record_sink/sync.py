"""Sync (force-durable) policies."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SyncPolicy(Protocol):
    def should_sync(self, records_since_sync: int) -> bool: ...

    def reset(self) -> None: ...


class CountSyncPolicy:
    """Force the open file durable after every `count` records (1 = every record)."""

    def __init__(self, count: int = 1):
        if count < 1:
            raise ValueError("sync count must be >= 1")
        self.count = count

    def should_sync(self, records_since_sync: int) -> bool:
        return records_since_sync >= self.count

    def reset(self) -> None:
        # the engine owns the record counter; nothing to clear here
        pass

    def __repr__(self) -> str:
        return f"CountSyncPolicy(count={self.count})"
