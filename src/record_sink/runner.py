"""
Standalone host loop for one engine instance.

Feeds records sequentially into a FileLifecycleEngine, diverts rejected
records into a RejectedRecordLog, and always shuts the engine down. Fatal
storage errors propagate to the caller, who owns restart policy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from .dlq import RejectedRecordLog
from .engine import FileLifecycleEngine
from .errors import EncodingError, SinkError


@dataclass
class RunSummary:
    accepted: int = 0
    rejected: int = 0
    synced: int = 0
    files: list[str] = field(default_factory=list)


class SinkRunner:
    def __init__(
        self,
        engine: FileLifecycleEngine,
        rejected_log: Optional[RejectedRecordLog] = None,
    ):
        self.engine = engine
        self.rejected_log = rejected_log

    def run(self, records: Iterable[Mapping[str, Any]]) -> RunSummary:
        summary = RunSummary()
        try:
            for position, record in enumerate(records):
                try:
                    result = self.engine.on_record(record)
                except EncodingError as e:
                    summary.rejected += 1
                    if self.rejected_log is not None:
                        self.rejected_log.save(record, e, {"position": position})
                    continue
                summary.accepted += 1
                if result.synced:
                    summary.synced += 1
        except BaseException:
            # the error that stopped the run wins over one raised while shutting down
            try:
                self.engine.shutdown()
            except SinkError as e:
                logger.error(f"Shutdown after failed run also failed: {type(e).__name__}: {e}")
            raise

        self.engine.shutdown()
        summary.files = self.engine.finished_files
        logger.info(
            f"Run finished: accepted={summary.accepted} rejected={summary.rejected} "
            f"files={len(summary.files)}"
        )
        return summary
