"""Blob store contracts.

Any backend (S3, local file system) exposes the same two protocols so that
copies, moves and migrations can work across store kinds.
"""

from __future__ import annotations

from typing import BinaryIO, Iterator, Protocol

from blobstore.domain.options import ByteRange, WriteMode
from blobstore.domain.paths import BlobPath


class BlobWriter(Protocol):
    """Sequential sink returned by ``Blob.get_output_stream``."""

    @property
    def closed(self) -> bool: ...

    def write(self, data: bytes) -> int: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> "BlobWriter": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...


class Blob(Protocol):
    """Handle on a single blob of a store.

    Handles are cheap value objects; creating one never touches the backend.
    """

    @property
    def path(self) -> BlobPath: ...

    @property
    def store(self) -> "BlobStore": ...

    def exists(self) -> bool:
        """Check whether the blob currently exists.

        Raises:
            BlobStoreError: If the backend cannot answer.
        """
        ...

    def get_size(self) -> int:
        """Return the size in bytes, or -1 if the blob does not exist.

        Raises:
            BlobStoreError: If the backend cannot answer.
        """
        ...

    def get_stream(self, byte_range: ByteRange | None = None) -> BinaryIO:
        """Open the blob content for reading. The caller must close the stream.

        Args:
            byte_range: Optional range limiting the returned content.

        Raises:
            BlobNotFoundError: If the blob does not exist.
            BlobStoreError: If the backend fails.
        """
        ...

    def get_output_stream(self, write_mode: WriteMode = WriteMode.OVERWRITE) -> BlobWriter:
        """Open a writer replacing the blob content when closed.

        Args:
            write_mode: ``CREATE_NEW`` makes the write fail if the blob exists.

        Raises:
            BlobAlreadyExistsError: If ``CREATE_NEW`` is violated.
            BlobStoreError: If the backend fails.
        """
        ...

    def write_from_stream(
        self, reader: BinaryIO, write_mode: WriteMode = WriteMode.OVERWRITE
    ) -> None:
        """Copy the content of ``reader`` into the blob."""
        ...


class BlobStore(Protocol):
    """A named storage holding blobs addressed by ``BlobPath``."""

    @property
    def name(self) -> str: ...

    @property
    def hint(self) -> str:
        """Short backend identifier, e.g. ``s3`` or ``filesystem``."""
        ...

    def get_blob(self, path: BlobPath) -> Blob: ...

    def list_blobs(self, path: BlobPath) -> Iterator[Blob]:
        """Lazily list every blob below ``path``.

        Iterators that hold resources expose ``close()``; callers should close
        them when they stop early.
        """
        ...

    def copy_blob(
        self,
        source_path: BlobPath,
        target_path: BlobPath,
        source_store: "BlobStore | None" = None,
    ) -> Blob:
        """Copy a blob, optionally from another store, into this store.

        Raises:
            BlobNotFoundError: If the source does not exist.
            BlobAlreadyExistsError: If the target already exists.
            BlobStoreError: If the copy fails.
        """
        ...

    def move_blob(
        self,
        source_path: BlobPath,
        target_path: BlobPath,
        source_store: "BlobStore | None" = None,
    ) -> Blob:
        """Copy a blob into this store, then delete the source."""
        ...

    def is_empty_directory(self, path: BlobPath) -> bool: ...

    def delete_blob(self, path: BlobPath) -> None: ...

    def delete_blobs(self, path: BlobPath) -> None: ...
