"""
Pytest configuration and fixtures for record-file-sink.

Provides the reference schema/records and factories for engines backed by
in-memory or local storage.
"""

import sys

import pytest
from loguru import logger

from record_sink import (
    CountSyncPolicy,
    DefaultFileNameFormat,
    FileLifecycleEngine,
    FileSizeRotationPolicy,
    InMemoryStorage,
    LocalFileSystemStorage,
    RecordEncoder,
    SchemaDescriptor,
    SizeUnit,
)

USER_SCHEMA = (
    '{"type":"record",'
    '"name":"myrecord",'
    '"fields":[{"name":"foo1","type":"string"},'
    '{ "name":"int1", "type":"int" }]}'
)

RECORD_1 = {"foo1": "bar1", "int1": 1}
RECORD_2 = {"foo1": "bar2", "int1": 2}

# zigzag length byte + "barN" + zigzag int byte
RECORD_SIZE = 6

TEST_ROOT = "/unittest"


@pytest.fixture
def user_schema():
    """Reference two-field schema as JSON text."""
    return USER_SCHEMA


@pytest.fixture
def schema():
    """Parsed reference schema."""
    return SchemaDescriptor.parse(USER_SCHEMA)


@pytest.fixture
def record1():
    return dict(RECORD_1)


@pytest.fixture
def record2():
    return dict(RECORD_2)


@pytest.fixture
def record_size():
    """Encoded size of either reference record."""
    return RECORD_SIZE


@pytest.fixture
def header_size(schema):
    """Size of an empty container for the reference schema (null codec)."""
    return RecordEncoder.open(InMemoryStorage(), "/h.avro", schema).size


@pytest.fixture
def synced_record_size(schema, header_size):
    """File growth for one reference record written as its own synced block."""
    enc = RecordEncoder.open(InMemoryStorage(), "/h.avro", schema)
    enc.append(dict(RECORD_1))
    enc.force_durable()
    return enc.size - header_size


@pytest.fixture
def records():
    """The four-record input sequence used by the scenario tests."""
    return [dict(RECORD_1), dict(RECORD_2), dict(RECORD_1), dict(RECORD_2)]


@pytest.fixture
def memory_storage():
    """Fresh in-memory storage backend."""
    return InMemoryStorage()


@pytest.fixture
def local_storage():
    """Local filesystem storage backend."""
    return LocalFileSystemStorage()


@pytest.fixture
def make_engine(schema):
    """Factory for engines with size rotation and count sync."""

    def _make(
        storage,
        directory=TEST_ROOT,
        *,
        rotation_size=1.0,
        rotation_unit=SizeUnit.MB,
        sync_count=1,
        instance_id="test-0",
        **kwargs,
    ):
        return FileLifecycleEngine(
            storage,
            schema,
            DefaultFileNameFormat(directory, instance_id=instance_id),
            FileSizeRotationPolicy(rotation_size, rotation_unit),
            CountSyncPolicy(sync_count),
            **kwargs,
        )

    return _make


@pytest.fixture
def restore_logger():
    """Reset loguru sinks after tests that reconfigure logging (CLI)."""
    yield
    logger.remove()
    logger.add(sys.stderr)
