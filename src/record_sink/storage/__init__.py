"""Storage backends the sink writes through."""

from .base import FileStatus, StorageClient, WriteHandle
from .local import LocalFileSystemStorage
from .memory import InMemoryStorage

__all__ = [
    "FileStatus",
    "StorageClient",
    "WriteHandle",
    "LocalFileSystemStorage",
    "InMemoryStorage",
]
