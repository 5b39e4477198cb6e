"""
Exceptions raised by the record sink.

Fatal errors (schema, storage, naming) stop an engine instance; encoding
errors only reject the offending record.
"""

from typing import Any


class SinkError(Exception):
    """Base error for the record sink."""

    pass


class ConfigError(SinkError):
    """Invalid sink configuration (codec, thresholds, paths)."""

    pass


class SchemaError(SinkError):
    """Malformed or absent record schema. Fails startup."""

    pass


class EncodingError(SinkError):
    """A record does not conform to the bound schema. Local and recoverable."""

    def __init__(self, message: str, record: Any = None):
        super().__init__(message)
        self.record = record


class StorageError(SinkError):
    """Storage backend failure on create/write/force-durable/close. Fatal."""

    pass


class NamingCollisionError(StorageError):
    """A generated output path already exists on the backend."""

    pass


def map_os_error(e: OSError, path: str) -> StorageError:
    if isinstance(e, FileExistsError):
        return NamingCollisionError(f"path already exists: {path}")
    return StorageError(f"{type(e).__name__} on {path}: {e}")
