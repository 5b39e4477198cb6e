"""
File rotation policies.

The engine evaluates `should_rotate(bytes_written)` after every successful
append, where `bytes_written` is the current size of the open file (header
and block framing included). It calls `reset()` when a file is opened and
again once it has been rotated.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Protocol, runtime_checkable


class SizeUnit(str, Enum):
    """Size units for FileSizeRotationPolicy (binary multiples)."""

    KB = "KB"
    MB = "MB"
    GB = "GB"
    TB = "TB"

    @property
    def multiplier(self) -> int:
        return {"KB": 1024, "MB": 1024**2, "GB": 1024**3, "TB": 1024**4}[self.value]


@runtime_checkable
class RotationPolicy(Protocol):
    def should_rotate(self, bytes_written: int) -> bool: ...

    def reset(self) -> None: ...


class FileSizeRotationPolicy:
    """Rotate once the current file holds at least `count * unit` bytes."""

    def __init__(self, count: float, unit: SizeUnit | str = SizeUnit.MB):
        if count <= 0:
            raise ValueError("rotation size must be > 0")
        self.unit = unit if isinstance(unit, SizeUnit) else SizeUnit(unit.upper())
        # at least one byte, so fractional thresholds rotate after every record
        self.max_bytes = max(1, int(count * self.unit.multiplier))

    def should_rotate(self, bytes_written: int) -> bool:
        return bytes_written >= self.max_bytes

    def reset(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"FileSizeRotationPolicy(max_bytes={self.max_bytes})"


class NoRotationPolicy:
    """Never rotate; the file is closed only at shutdown."""

    def should_rotate(self, bytes_written: int) -> bool:
        return False

    def reset(self) -> None:
        pass


class RecordCountRotationPolicy:
    """Rotate after every `count` appended records."""

    def __init__(self, count: int):
        if count < 1:
            raise ValueError("count must be >= 1")
        self.count = count
        self._seen = 0

    def should_rotate(self, bytes_written: int) -> bool:
        self._seen += 1
        return self._seen >= self.count

    def reset(self) -> None:
        self._seen = 0


class TimedRotationPolicy:
    """Rotate on the first append after `interval_seconds` since the file was opened.

    Evaluated per append only: an idle sink keeps its file open until the next
    record or shutdown.
    """

    def __init__(self, interval_seconds: float, clock: Callable[[], float] = time.monotonic):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._started = clock()

    def should_rotate(self, bytes_written: int) -> bool:
        return self._clock() - self._started >= self.interval_seconds

    def reset(self) -> None:
        self._started = self._clock()
