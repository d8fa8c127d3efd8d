"""S3-compatible blob store implementation."""

from .factory import S3BlobStoreFactory
from .key_mapper import KeyMapper
from .listing import BlobIterator
from .multipart import MAX_PARTS, MultipartSession
from .output_stream import S3BlobOutputStream
from .store import S3Blob, S3BlobStore

__all__ = [
    "MAX_PARTS",
    "BlobIterator",
    "KeyMapper",
    "MultipartSession",
    "S3Blob",
    "S3BlobOutputStream",
    "S3BlobStore",
    "S3BlobStoreFactory",
]
