"""
File lifecycle engine.

Drives one sink instance: lazily opens an output file on the first record,
appends each record through a RecordEncoder, forces the file durable when
the SyncPolicy says so, and finalizes the file when the RotationPolicy says
so. The next file is opened on the next record, never eagerly.

`on_record` must be called sequentially by a single host; there is no
internal queue or parallelism. A blocking storage call blocks the caller.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from loguru import logger

from .actions import MoveFileAction, RotationAction
from .encoder import DEFAULT_SYNC_INTERVAL, RecordEncoder, check_codec
from .errors import EncodingError, SinkError, StorageError
from .metrics import (
    SINK_APPEND_SECONDS,
    SINK_BYTES_TOTAL,
    SINK_RECORDS_TOTAL,
    SINK_ROTATIONS_TOTAL,
    SINK_SYNCS_TOTAL,
)
from .naming import DefaultFileNameFormat, FileNameFormat
from .rotation import FileSizeRotationPolicy, RotationPolicy
from .schema import SchemaDescriptor, SchemaInput, load_schema
from .storage.base import StorageClient
from .sync import CountSyncPolicy, SyncPolicy


class EngineState(str, Enum):
    NO_ACTIVE_FILE = "no_active_file"
    ACTIVE = "active"
    ROTATING = "rotating"  # transient, inside on_record only
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class ActiveFile:
    """The currently open output target."""

    path: str
    rotation: int
    encoder: RecordEncoder
    bytes_written: int = 0  # current file size, header included
    records_written: int = 0
    records_since_sync: int = 0


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one accepted record.

    Attributes:
        path: File the record was appended to
        rotation: Rotation index of that file
        bytes_written: Encoded size of the record
        synced: Record is visible to readers (force-durable ran after it)
        rotated: File was finalized right after this record
    """

    path: str
    rotation: int
    bytes_written: int
    synced: bool
    rotated: bool

    @property
    def durable(self) -> bool:
        return self.synced or self.rotated


class FileLifecycleEngine:
    """Streaming sink writing schema-validated container files with rotation and sync.

    Example:
        engine = FileLifecycleEngine(
            storage=LocalFileSystemStorage(),
            schema=SchemaDescriptor.parse(schema_json),
            name_format=DefaultFileNameFormat("/data/out", instance_id="worker-1"),
            rotation_policy=FileSizeRotationPolicy(64, SizeUnit.MB),
            sync_policy=CountSyncPolicy(100),
        )
        with engine:
            for rec in records:
                engine.on_record(rec)
    """

    def __init__(
        self,
        storage: StorageClient,
        schema: SchemaDescriptor | SchemaInput,
        name_format: FileNameFormat,
        rotation_policy: Optional[RotationPolicy] = None,
        sync_policy: Optional[SyncPolicy] = None,
        *,
        codec: str = "null",
        sync_interval: int = DEFAULT_SYNC_INTERVAL,
        rotation_actions: Sequence[RotationAction] = (),
        instance_id: Optional[str] = None,
    ):
        if not isinstance(schema, SchemaDescriptor):
            schema = SchemaDescriptor.parse(schema)

        self._storage = storage
        self._schema = schema
        self._name_format = name_format
        self._rotation_policy = rotation_policy or FileSizeRotationPolicy(1, "MB")
        self._sync_policy = sync_policy or CountSyncPolicy(1)
        self._codec = check_codec(codec)
        self._sync_interval = sync_interval
        self._actions = list(rotation_actions)
        self._instance_id = instance_id or getattr(name_format, "instance_id", "default")

        self._state = EngineState.NO_ACTIVE_FILE
        self._active: Optional[ActiveFile] = None
        self._rotation = 0
        self._finished: list[str] = []

    @classmethod
    def from_settings(cls, settings: Any, storage: StorageClient) -> "FileLifecycleEngine":
        """Build an engine from SinkSettings. Raises SchemaError on a missing/malformed schema."""
        schema = load_schema(settings.schema_definition, settings.schema_file)
        name_format = DefaultFileNameFormat(
            settings.base_path,
            settings.instance_id,
            prefix=settings.prefix,
            extension=settings.extension,
        )
        actions = [MoveFileAction(settings.move_to)] if settings.move_to else []
        return cls(
            storage,
            schema,
            name_format,
            FileSizeRotationPolicy(settings.rotation_size, settings.rotation_unit),
            CountSyncPolicy(settings.sync_count),
            codec=settings.codec,
            sync_interval=settings.sync_interval,
            rotation_actions=actions,
            instance_id=settings.instance_id,
        )

    # ---------- introspection

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def schema(self) -> SchemaDescriptor:
        return self._schema

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def rotation(self) -> int:
        """Rotation index the next opened file will get (or the current file has)."""
        return self._rotation

    @property
    def active_file(self) -> Optional[ActiveFile]:
        return self._active

    @property
    def finished_files(self) -> list[str]:
        """Paths of files finalized so far, in rotation order (after rotation actions)."""
        return list(self._finished)

    # ---------- host contract

    def on_record(self, record: Mapping[str, Any]) -> WriteResult:
        """Append one record, then apply the sync and rotation policies.

        Raises:
            EncodingError: record rejected; nothing written, counters unchanged,
                engine stays usable.
            StorageError: backend failure; the engine is halted for good.
        """
        self._check_running()
        t0 = time.perf_counter()

        try:
            if self._active is None:
                # a rejected record must not leave a header-only file behind
                self._schema.validate(record)
                self._open_next()
            active = self._active
            delta = active.encoder.append(record)
        except EncodingError as e:
            SINK_RECORDS_TOTAL.labels(self._instance_id, "rejected").inc()
            logger.warning(f"Rejected record (rotation {self._rotation}): {e}")
            raise
        except SinkError as e:
            self._fail(e)
            raise

        active.bytes_written = active.encoder.size
        active.records_written += 1
        active.records_since_sync += 1
        SINK_RECORDS_TOTAL.labels(self._instance_id, "written").inc()
        SINK_BYTES_TOTAL.labels(self._instance_id).inc(delta)

        synced = False
        if self._sync_policy.should_sync(active.records_since_sync):
            self._guarded(active.encoder.force_durable)
            self._sync_policy.reset()
            active.records_since_sync = 0
            synced = True
            SINK_SYNCS_TOTAL.labels(self._instance_id).inc()
            # the flushed block adds its framing and sync marker
            active.bytes_written = active.encoder.size

        rotated = False
        if self._rotation_policy.should_rotate(active.bytes_written):
            self._rotate()
            rotated = True

        SINK_APPEND_SECONDS.labels(self._instance_id).observe(time.perf_counter() - t0)
        return WriteResult(
            path=active.path,
            rotation=active.rotation,
            bytes_written=delta,
            synced=synced,
            rotated=rotated,
        )

    def shutdown(self) -> None:
        """Finalize the open file, if any, and stop accepting records. Idempotent."""
        if self._state == EngineState.CLOSED:
            return
        if self._state == EngineState.FAILED:
            logger.warning(f"Shutting down failed sink {self._instance_id}; open file left as is")
            self._active = None
            self._state = EngineState.CLOSED
            return

        if self._active is not None:
            active = self._active
            self._guarded(active.encoder.finalize)
            self._finished.append(active.path)
            logger.info(
                f"Closed {active.path} on shutdown "
                f"({active.records_written} records, {active.bytes_written} bytes)"
            )
            self._active = None
        self._state = EngineState.CLOSED
        logger.info(f"Sink {self._instance_id} closed after {len(self._finished)} file(s)")

    def __enter__(self) -> "FileLifecycleEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    # ---------- internals

    def _open_next(self) -> None:
        path = self._name_format.next_path(self._rotation)
        encoder = self._guarded(
            RecordEncoder.open,
            self._storage,
            path,
            self._schema,
            codec=self._codec,
            sync_interval=self._sync_interval,
        )
        self._active = ActiveFile(
            path=path, rotation=self._rotation, encoder=encoder, bytes_written=encoder.size
        )
        # interval-based policies count from the open, not from construction
        self._rotation_policy.reset()
        self._state = EngineState.ACTIVE
        logger.info(f"Opened {path} (rotation {self._rotation})")

    def _rotate(self) -> None:
        self._state = EngineState.ROTATING
        active = self._active
        self._guarded(active.encoder.finalize)

        path = active.path
        for action in self._actions:
            path = self._guarded(action.execute, self._storage, path)
        self._finished.append(path)

        logger.info(
            f"Rotated {active.path} "
            f"({active.records_written} records, {active.bytes_written} bytes)"
        )
        SINK_ROTATIONS_TOTAL.labels(self._instance_id).inc()
        self._rotation_policy.reset()
        self._sync_policy.reset()
        self._rotation += 1
        self._active = None
        self._state = EngineState.NO_ACTIVE_FILE

    def _guarded(self, fn, *args, **kwargs):
        """Run a storage-touching call; any sink error halts the engine."""
        try:
            return fn(*args, **kwargs)
        except SinkError as e:
            self._fail(e)
            raise

    def _fail(self, exc: Exception) -> None:
        if self._state == EngineState.FAILED:
            return
        self._state = EngineState.FAILED
        logger.error(f"Sink {self._instance_id} halted: {type(exc).__name__}: {exc}")

    def _check_running(self) -> None:
        if self._state == EngineState.FAILED:
            raise StorageError(f"engine halted after a storage failure ({self._instance_id})")
        if self._state == EngineState.CLOSED:
            raise SinkError(f"engine is closed ({self._instance_id})")
