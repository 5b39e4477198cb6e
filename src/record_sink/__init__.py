"""
Record Sink

Streams structured records into self-describing Avro container files on a
pluggable storage backend, with size-based rotation and count-based sync.

Usage:
    from record_sink import (
        FileLifecycleEngine, SchemaDescriptor, DefaultFileNameFormat,
        FileSizeRotationPolicy, CountSyncPolicy, LocalFileSystemStorage,
    )

    engine = FileLifecycleEngine(
        LocalFileSystemStorage(),
        SchemaDescriptor.parse(schema_json),
        DefaultFileNameFormat("/data/out", instance_id="worker-1"),
        FileSizeRotationPolicy(64, "MB"),
        CountSyncPolicy(100),
    )
    with engine:
        for rec in records:
            engine.on_record(rec)
"""

from .actions import MoveFileAction, RotationAction
from .encoder import RecordEncoder
from .engine import ActiveFile, EngineState, FileLifecycleEngine, WriteResult
from .errors import (
    ConfigError,
    EncodingError,
    NamingCollisionError,
    SchemaError,
    SinkError,
    StorageError,
)
from .naming import DefaultFileNameFormat, FileNameFormat, default_instance_id
from .rotation import (
    FileSizeRotationPolicy,
    NoRotationPolicy,
    RecordCountRotationPolicy,
    RotationPolicy,
    SizeUnit,
    TimedRotationPolicy,
)
from .schema import SchemaDescriptor
from .settings import SinkSettings, get_settings
from .storage import FileStatus, InMemoryStorage, LocalFileSystemStorage, StorageClient
from .sync import CountSyncPolicy, SyncPolicy

__version__ = "0.1.0"
__all__ = [
    # engine
    "FileLifecycleEngine",
    "EngineState",
    "ActiveFile",
    "WriteResult",
    # components
    "SchemaDescriptor",
    "RecordEncoder",
    "FileNameFormat",
    "DefaultFileNameFormat",
    "default_instance_id",
    "RotationPolicy",
    "FileSizeRotationPolicy",
    "NoRotationPolicy",
    "RecordCountRotationPolicy",
    "TimedRotationPolicy",
    "SizeUnit",
    "SyncPolicy",
    "CountSyncPolicy",
    "RotationAction",
    "MoveFileAction",
    # storage
    "StorageClient",
    "FileStatus",
    "LocalFileSystemStorage",
    "InMemoryStorage",
    # config
    "SinkSettings",
    "get_settings",
    # errors
    "SinkError",
    "ConfigError",
    "SchemaError",
    "EncodingError",
    "StorageError",
    "NamingCollisionError",
]
