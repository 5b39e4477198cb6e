"""
Reading produced container files back.

Readers only see what the backend exposes: bytes up to the last
force-durable for an open file, everything for a finalized one. Every block
emitted by the encoder ends with a sync marker, so a synced but unfinalized
file decodes cleanly up to its last sync.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Optional

import fastavro

from .errors import StorageError
from .naming import FileNameFormat
from .schema import SchemaDescriptor
from .storage.base import StorageClient


@dataclass(frozen=True)
class ContainerHeader:
    schema: SchemaDescriptor
    codec: str
    metadata: dict


def read_header(storage: StorageClient, path: str) -> ContainerHeader:
    with storage.open(path) as fo:
        try:
            reader = fastavro.reader(fo)
        except (ValueError, EOFError, StopIteration) as e:
            raise StorageError(f"{path} is not a readable container: {e}") from e
        metadata = dict(reader.metadata)
        return ContainerHeader(
            schema=SchemaDescriptor.parse(metadata["avro.schema"]),
            codec=metadata.get("avro.codec", "null"),
            metadata=metadata,
        )


def iter_records(storage: StorageClient, path: str) -> Iterator[dict[str, Any]]:
    """Decode every visible record of one file, in write order."""
    with storage.open(path) as fo:
        try:
            reader = fastavro.reader(fo)
        except (ValueError, EOFError, StopIteration) as e:
            raise StorageError(f"{path} is not a readable container: {e}") from e
        yield from reader


def read_records(storage: StorageClient, path: str) -> list[dict[str, Any]]:
    return list(iter_records(storage, path))


def output_files(
    storage: StorageClient, directory: str, name_format: Optional[FileNameFormat] = None
) -> list[str]:
    """Non-empty files in `directory`.

    With a name format: only that instance's files, in rotation order.
    Without: every non-empty file, in name order.
    """
    statuses = [s for s in storage.list(directory) if s.length > 0]
    if name_format is None:
        return [s.path for s in statuses]

    owned = []
    for s in statuses:
        idx = name_format.rotation_index(s.path)
        if idx is not None:
            owned.append((idx, s.path))
    return [p for _, p in sorted(owned)]


def read_output(
    storage: StorageClient, directory: str, name_format: Optional[FileNameFormat] = None
) -> list[dict[str, Any]]:
    """All records of all output files in `directory`, concatenated in file order."""
    records: list[dict[str, Any]] = []
    for path in output_files(storage, directory, name_format):
        records.extend(iter_records(storage, path))
    return records


def count_nonempty_files(storage: StorageClient, directory: str) -> int:
    return sum(1 for s in storage.list(directory) if s.length > 0)
