"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services.
"""

from .client import (
    IF_NONE_MATCH_ANY,
    CompletedPart,
    DeleteFailure,
    ListedObject,
    MultipartUpload,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    StorageClient,
    StorageError,
)

__all__ = [
    "IF_NONE_MATCH_ANY",
    "CompletedPart",
    "DeleteFailure",
    "ListedObject",
    "MultipartUpload",
    "ObjectHead",
    "ObjectListing",
    "ObjectNotFoundError",
    "StorageClient",
    "StorageError",
]
