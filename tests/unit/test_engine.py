"""
Unit tests for FileLifecycleEngine.
"""

import pytest

from record_sink import (
    CountSyncPolicy,
    DefaultFileNameFormat,
    EncodingError,
    EngineState,
    FileLifecycleEngine,
    InMemoryStorage,
    MoveFileAction,
    NamingCollisionError,
    NoRotationPolicy,
    RecordCountRotationPolicy,
    SchemaError,
    SinkError,
    SizeUnit,
    StorageError,
    TimedRotationPolicy,
)
from record_sink.reader import output_files, read_output, read_records


class FailingSyncStorage(InMemoryStorage):
    """Storage whose force_durable fails after `ok_syncs` successful calls."""

    def __init__(self, ok_syncs=0):
        super().__init__()
        self.ok_syncs = ok_syncs

    def force_durable(self, handle):
        if self.ok_syncs <= 0:
            raise StorageError("datanode unreachable")
        self.ok_syncs -= 1
        super().force_durable(handle)


def test_no_records_no_files(memory_storage, make_engine):
    """Test shutdown without records creates no file."""
    engine = make_engine(memory_storage)
    assert engine.state == EngineState.NO_ACTIVE_FILE
    engine.shutdown()
    assert engine.state == EngineState.CLOSED
    assert memory_storage.list("/unittest") == []
    assert engine.finished_files == []


def test_first_record_opens_file_lazily(memory_storage, make_engine, record1):
    """Test the first record opens rotation 0 and activates the engine."""
    engine = make_engine(memory_storage)
    result = engine.on_record(record1)

    assert engine.state == EngineState.ACTIVE
    assert result.path == "/unittest/test-0-0.avro"
    assert result.rotation == 0
    assert result.synced and not result.rotated and result.durable
    assert engine.active_file.records_written == 1


def test_sync_every_n_records(memory_storage, make_engine, records):
    """Test force-durable runs every sync_count records and resets the counter."""
    engine = make_engine(memory_storage, sync_count=3)
    results = [engine.on_record(r) for r in records]

    assert [r.synced for r in results] == [False, False, True, False]
    assert engine.active_file.records_since_sync == 1
    # only the synced prefix is visible
    assert read_records(memory_storage, results[0].path) == records[:3]


def test_rotation_finalizes_and_next_file_opens_lazily(
    memory_storage, make_engine, records, header_size, synced_record_size
):
    """Test rotation closes the file, bumps the index and defers the next open."""
    threshold = header_size + 2 * synced_record_size
    engine = make_engine(memory_storage, rotation_size=threshold / 1024, rotation_unit=SizeUnit.KB)

    r1 = engine.on_record(records[0])
    r2 = engine.on_record(records[1])
    assert not r1.rotated and r2.rotated
    assert engine.state == EngineState.NO_ACTIVE_FILE
    assert engine.rotation == 1
    assert not memory_storage.is_open(r2.path)
    assert len(memory_storage.list("/unittest")) == 1

    r3 = engine.on_record(records[2])
    assert r3.path == "/unittest/test-0-1.avro"
    assert r3.rotation == 1
    assert engine.finished_files == [r1.path]


def test_rotation_resets_counters(memory_storage, make_engine, records, record_size, header_size):
    """Test bytes and sync counters restart with the new file."""
    # unsynced records are still buffered, so each adds only its datum size
    threshold = header_size + 2 * record_size
    engine = make_engine(
        memory_storage, rotation_size=threshold / 1024, rotation_unit=SizeUnit.KB, sync_count=5
    )
    for r in records[:3]:
        engine.on_record(r)
    active = engine.active_file
    assert active.rotation == 1
    assert active.bytes_written == header_size + record_size
    assert active.records_since_sync == 1


def test_rotation_counts_header_and_block_framing(memory_storage, make_engine, records, header_size):
    """Test a threshold below the header size rotates after every record."""
    assert header_size > 0.0001 * 1024 * 1024
    engine = make_engine(memory_storage, rotation_size=0.0001, rotation_unit=SizeUnit.MB)
    results = [engine.on_record(r) for r in records]
    assert all(r.rotated for r in results)
    assert len(engine.finished_files) == 4


def test_bytes_written_tracks_file_size(
    memory_storage, make_engine, records, record_size, header_size, synced_record_size
):
    """Test the rotation input is the current file size, header and sync markers included."""
    engine = make_engine(memory_storage)
    assert engine.on_record(records[0]).bytes_written == record_size
    assert engine.active_file.bytes_written == header_size + synced_record_size
    assert memory_storage.written_length(engine.active_file.path) == engine.active_file.bytes_written


def test_timed_rotation_starts_when_file_opens(memory_storage, schema, records):
    """Test idle time before the first record does not count against the interval."""
    now = [0.0]
    engine = FileLifecycleEngine(
        memory_storage,
        schema,
        DefaultFileNameFormat("/unittest", instance_id="i"),
        TimedRotationPolicy(60, clock=lambda: now[0]),
    )
    now[0] = 3600.0
    assert not engine.on_record(records[0]).rotated
    now[0] = 3630.0
    assert not engine.on_record(records[1]).rotated
    now[0] = 3660.0
    assert engine.on_record(records[2]).rotated

    now[0] = 9000.0
    assert not engine.on_record(records[3]).rotated


def test_encoding_error_is_recoverable(memory_storage, make_engine, record1, record2):
    """Test a bad record is rejected without changing counters; good records continue."""
    engine = make_engine(memory_storage)
    engine.on_record(record1)
    before = (engine.active_file.bytes_written, engine.active_file.records_since_sync)

    with pytest.raises(EncodingError) as ei:
        engine.on_record({"foo1": "bar1", "int1": 1, "unexpected": "x"})
    assert ei.value.record == {"foo1": "bar1", "int1": 1, "unexpected": "x"}
    assert engine.state == EngineState.ACTIVE
    assert (engine.active_file.bytes_written, engine.active_file.records_since_sync) == before

    engine.on_record(record2)
    engine.shutdown()
    assert read_output(memory_storage, "/unittest") == [record1, record2]


def test_rejected_first_record_creates_no_file(memory_storage, make_engine, record1):
    """Test an invalid record arriving with no active file does not open one."""
    engine = make_engine(memory_storage)
    with pytest.raises(EncodingError):
        engine.on_record({"foo1": 1})
    assert engine.state == EngineState.NO_ACTIVE_FILE
    assert memory_storage.list("/unittest") == []

    engine.on_record(record1)
    assert engine.active_file.path == "/unittest/test-0-0.avro"


def test_shutdown_finalizes_active_file(memory_storage, make_engine, records):
    """Test shutdown finalizes the open file even if unsynced, and is idempotent."""
    engine = make_engine(memory_storage, sync_count=100)
    for r in records:
        engine.on_record(r)
    path = engine.active_file.path
    assert memory_storage.list("/unittest")[0].length == 0

    engine.shutdown()
    engine.shutdown()
    assert engine.state == EngineState.CLOSED
    assert read_records(memory_storage, path) == records
    assert engine.finished_files == [path]


def test_closed_engine_rejects_records(memory_storage, make_engine, record1):
    """Test on_record after shutdown raises."""
    engine = make_engine(memory_storage)
    engine.shutdown()
    with pytest.raises(SinkError, match="closed"):
        engine.on_record(record1)


def test_context_manager_shuts_down(memory_storage, make_engine, record1):
    """Test leaving the with-block finalizes the file."""
    with make_engine(memory_storage) as engine:
        result = engine.on_record(record1)
    assert engine.state == EngineState.CLOSED
    assert not memory_storage.is_open(result.path)


def test_storage_failure_halts_engine(make_engine, record1, record2):
    """Test a force-durable failure is fatal: later records are refused."""
    storage = FailingSyncStorage(ok_syncs=1)
    engine = make_engine(storage)
    engine.on_record(record1)

    with pytest.raises(StorageError, match="datanode"):
        engine.on_record(record2)
    assert engine.state == EngineState.FAILED

    with pytest.raises(StorageError, match="halted"):
        engine.on_record(record1)

    engine.shutdown()
    assert engine.state == EngineState.CLOSED
    # the torn file is left open as is
    assert storage.is_open("/unittest/test-0-0.avro")


def test_naming_collision_is_fatal(memory_storage, make_engine, record1):
    """Test an existing target path halts the engine with NamingCollisionError."""
    memory_storage.close(memory_storage.create("/unittest/test-0-0.avro"))
    engine = make_engine(memory_storage)
    with pytest.raises(NamingCollisionError):
        engine.on_record(record1)
    assert engine.state == EngineState.FAILED


def test_malformed_schema_fails_construction(memory_storage):
    """Test constructing with a malformed schema raises SchemaError."""
    with pytest.raises(SchemaError):
        FileLifecycleEngine(
            memory_storage,
            '{"type": "record", "name": "x", "fields": [{"name": "a", "type": "bogus"}]}',
            DefaultFileNameFormat("/unittest", instance_id="i"),
        )


def test_record_count_rotation(memory_storage, schema, records):
    """Test a non-size rotation policy plugs in unchanged."""
    engine = FileLifecycleEngine(
        memory_storage,
        schema,
        DefaultFileNameFormat("/unittest", instance_id="i"),
        RecordCountRotationPolicy(2),
        CountSyncPolicy(1),
    )
    for r in records:
        engine.on_record(r)
    engine.shutdown()
    assert len(engine.finished_files) == 2
    assert engine.state == EngineState.CLOSED


def test_move_action_runs_after_rotation(memory_storage, schema, records):
    """Test rotated files are moved by rotation actions, not the file closed at shutdown."""
    name_format = DefaultFileNameFormat("/unittest", instance_id="i")
    engine = FileLifecycleEngine(
        memory_storage,
        schema,
        name_format,
        RecordCountRotationPolicy(3),
        rotation_actions=[MoveFileAction("/done")],
    )
    for r in records:
        engine.on_record(r)
    engine.shutdown()

    assert engine.finished_files == ["/done/i-0.avro", "/unittest/i-1.avro"]
    assert read_records(memory_storage, "/done/i-0.avro") == records[:3]
    assert output_files(memory_storage, "/unittest", name_format) == ["/unittest/i-1.avro"]


def test_no_rotation_single_file(memory_storage, schema, records):
    """Test NoRotationPolicy keeps one file until shutdown."""
    engine = FileLifecycleEngine(
        memory_storage,
        schema,
        DefaultFileNameFormat("/unittest", instance_id="i"),
        NoRotationPolicy(),
    )
    for r in records * 10:
        engine.on_record(r)
    engine.shutdown()
    assert engine.finished_files == ["/unittest/i-0.avro"]
    assert len(read_records(memory_storage, "/unittest/i-0.avro")) == 40


def test_codec_passed_through(memory_storage, make_engine, record1):
    """Test the configured codec reaches the container header."""
    from record_sink.reader import read_header

    engine = make_engine(memory_storage, codec="deflate")
    path = engine.on_record(record1).path
    engine.shutdown()
    assert read_header(memory_storage, path).codec == "deflate"
