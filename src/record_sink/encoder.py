"""
Avro object container encoding on top of a storage stream.

Layout of every produced file: header (magic, schema, codec, sync marker),
then blocks of encoded records each followed by the sync marker. A block is
emitted when the encoder buffer reaches `sync_interval` bytes, on
force_durable, and on finalize.
"""

from __future__ import annotations

import io
from typing import Any, Mapping, Optional

from fastavro import schemaless_writer
from fastavro.write import Writer
from loguru import logger

from .errors import ConfigError, EncodingError, StorageError
from .schema import SchemaDescriptor, SchemaInput
from .storage.base import StorageClient, WriteHandle

SUPPORTED_CODECS = ("null", "deflate", "bzip2", "xz")
DEFAULT_SYNC_INTERVAL = 16000


class _StorageStream(io.RawIOBase):
    """Write-only, non-seekable file object routing bytes through a StorageClient."""

    def __init__(self, storage: StorageClient, handle: WriteHandle):
        super().__init__()
        self._storage = storage
        self._handle = handle

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        self._storage.write(self._handle, data)
        return len(data)

    def tell(self) -> int:
        return self._handle.position


class RecordEncoder:
    """Binds one open output stream to a schema and appends records to it.

    Usage:
        enc = RecordEncoder.open(storage, "/out/a-0.avro", schema)
        enc.append({"foo1": "bar1", "int1": 1})
        enc.force_durable()
        enc.finalize()
    """

    def __init__(
        self,
        storage: StorageClient,
        handle: WriteHandle,
        schema: SchemaDescriptor | SchemaInput,
        *,
        codec: str = "null",
        sync_interval: int = DEFAULT_SYNC_INTERVAL,
    ):
        codec = check_codec(codec)
        if not isinstance(schema, SchemaDescriptor):
            schema = SchemaDescriptor.parse(schema)

        self._storage = storage
        self._handle = handle
        self._schema = schema
        self._codec = codec
        self._stream = _StorageStream(storage, handle)
        # header is written here
        self._writer = Writer(self._stream, schema.parsed, codec=codec, sync_interval=sync_interval)
        self._records = 0
        self._bytes_encoded = 0
        # datum bytes buffered in the current block, not yet handed to storage
        self._pending = 0
        self._finalized = False

    @classmethod
    def open(
        cls,
        storage: StorageClient,
        path: str,
        schema: SchemaDescriptor | SchemaInput,
        **kwargs: Any,
    ) -> "RecordEncoder":
        """Create `path` on the backend and write the container header."""
        if not isinstance(schema, SchemaDescriptor):
            schema = SchemaDescriptor.parse(schema)
        handle = storage.create(path)
        return cls(storage, handle, schema, **kwargs)

    # ---------- properties

    @property
    def path(self) -> str:
        return self._handle.path

    @property
    def schema(self) -> SchemaDescriptor:
        return self._schema

    @property
    def codec(self) -> str:
        return self._codec

    @property
    def records(self) -> int:
        return self._records

    @property
    def bytes_encoded(self) -> int:
        """Encoded datum bytes appended so far (header and block framing excluded)."""
        return self._bytes_encoded

    @property
    def stream_position(self) -> int:
        """Bytes handed to the storage backend so far."""
        return self._handle.position

    @property
    def size(self) -> int:
        """Current file size: bytes handed to storage plus the datum bytes of the open block.

        Includes the header and the block framing and sync markers already emitted.
        """
        return self._handle.position + self._pending

    @property
    def finalized(self) -> bool:
        return self._finalized

    # ---------- operations

    def append(self, record: Mapping[str, Any]) -> int:
        """Validate and append one record. Returns its encoded size in bytes.

        Raises:
            EncodingError: record is missing fields, has extra fields or
                mistyped values. Nothing is written in that case.
        """
        self._check_writable()
        self._schema.validate(record)

        buf = io.BytesIO()
        try:
            schemaless_writer(buf, self._schema.parsed, record)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise EncodingError(f"cannot encode record: {e}", record) from e

        position = self._handle.position
        self._writer.write(record)
        size = buf.tell()
        # a full buffer is dumped as a block inside write()
        self._pending = 0 if self._handle.position != position else self._pending + size
        self._records += 1
        self._bytes_encoded += size
        return size

    def force_durable(self) -> None:
        """Emit the buffered block and make everything written visible to readers."""
        self._check_writable()
        self._writer.flush()
        self._pending = 0
        self._storage.force_durable(self._handle)
        logger.debug(f"Synced {self.path} at {self.stream_position} bytes")

    def finalize(self) -> None:
        """Emit the last block and close the stream. No-op when already finalized."""
        if self._finalized:
            return
        self._writer.flush()
        self._pending = 0
        self._storage.close(self._handle)
        self._finalized = True

    def _check_writable(self) -> None:
        if self._finalized:
            raise StorageError(f"container already finalized: {self.path}")


def encoded_size(record: Mapping[str, Any], schema: SchemaDescriptor) -> int:
    """Encoded datum size of `record` under `schema`, without writing it anywhere."""
    buf = io.BytesIO()
    schemaless_writer(buf, schema.parsed, record)
    return buf.tell()


def check_codec(codec: Optional[str]) -> str:
    codec = codec or "null"
    if codec not in SUPPORTED_CODECS:
        raise ConfigError(f"unsupported codec {codec!r}; expected one of {SUPPORTED_CODECS}")
    return codec
