"""
Rejected record log (file-based NDJSON dead letter file).

Hosts use it to keep records the sink rejected with an EncodingError, so
they can be inspected, fixed and replayed.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger


@dataclass(frozen=True)
class RejectedRecord:
    record: Any
    error: str
    ts: str
    metadata: dict = field(default_factory=dict)


class RejectedRecordLog:
    """Append-only NDJSON log of rejected records."""

    def __init__(self, path: str | Path, *, mkdirs: bool = True):
        self.path = Path(path)
        if mkdirs:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def save(self, record: Any, error: Exception, metadata: Optional[dict] = None) -> None:
        entry = {
            "record": record,
            "error": f"{type(error).__name__}: {error}",
            "ts": datetime.now(timezone.utc).isoformat(),
            "metadata": metadata or {},
        }
        line = json.dumps(entry, default=str)
        with self._lock, self.path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
        logger.debug(f"Rejected record saved to {self.path}")

    def replay(self, max_records: int = 1000) -> list[RejectedRecord]:
        """Read back up to `max_records` entries, oldest first."""
        if not self.path.exists():
            return []
        out: list[RejectedRecord] = []
        with self.path.open("r", encoding="utf-8") as fh:
            for line in fh:
                if len(out) >= max_records:
                    break
                if not line.strip():
                    continue
                d = json.loads(line)
                out.append(
                    RejectedRecord(
                        record=d.get("record"),
                        error=d.get("error", ""),
                        ts=d.get("ts", ""),
                        metadata=d.get("metadata", {}),
                    )
                )
        return out
