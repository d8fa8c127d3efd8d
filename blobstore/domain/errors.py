"""Errors raised by blob stores.

All store failures derive from ``BlobStoreError`` so callers can catch a
single type; the subclasses let them tell missing sources, violated
``CREATE_NEW`` preconditions and partial bulk deletes apart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from blobstore.domain.paths import BlobPath

if TYPE_CHECKING:
    from blobstore.infra.storage.client import DeleteFailure


class BlobStoreError(RuntimeError):
    """Base class for blob store failures."""

    def __init__(self, message: str, *, path: BlobPath | None = None) -> None:
        super().__init__(message)
        self.path = path


class BlobNotFoundError(BlobStoreError):
    """Raised when a blob that must exist is missing."""

    def __init__(self, path: BlobPath) -> None:
        super().__init__(f"Blob not found: {path}", path=path)


class BlobAlreadyExistsError(BlobStoreError):
    """Raised when a CREATE_NEW write finds an existing blob."""

    def __init__(self, path: BlobPath) -> None:
        super().__init__(f"Blob already exists: {path}", path=path)


class PartialDeleteError(BlobStoreError):
    """Raised when a bulk delete left some keys behind."""

    def __init__(self, failures: Sequence["DeleteFailure"]) -> None:
        self.failures = list(failures)
        description = "; ".join(
            f"key='{failure.key}', code='{failure.code}', message='{failure.message}'"
            for failure in self.failures
        )
        super().__init__(f"Failed to delete some blobs: {description}")

    @property
    def failed_keys(self) -> list[str]:
        return [failure.key for failure in self.failures]
