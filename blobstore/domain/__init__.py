"""
Domain layer: blob paths, write options, errors and the store contracts.
"""

from .errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStoreError,
    PartialDeleteError,
)
from .options import ByteRange, WriteMode
from .paths import BlobPath, InvalidBlobPathError
from .store import Blob, BlobStore

__all__ = [
    "Blob",
    "BlobAlreadyExistsError",
    "BlobNotFoundError",
    "BlobPath",
    "BlobStore",
    "BlobStoreError",
    "ByteRange",
    "InvalidBlobPathError",
    "PartialDeleteError",
    "WriteMode",
]
