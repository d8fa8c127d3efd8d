"""Blob store backed by one bucket of an S3-compatible object store.

Each store owns a key prefix inside the bucket; blob paths map to keys below
it (see ``KeyMapper``). Stores and blob handles are plain value objects: no
request is sent before an operation is invoked.
"""

from __future__ import annotations

from typing import BinaryIO

from blobstore.common.config import (
    DEFAULT_COPY_PART_SIZE_BYTES,
    DEFAULT_UPLOAD_PART_SIZE_BYTES,
)
from blobstore.domain.errors import BlobNotFoundError, BlobStoreError
from blobstore.domain.options import ByteRange, WriteMode
from blobstore.domain.paths import BlobPath
from blobstore.domain.store import Blob, BlobStore
from blobstore.infra.observability.metrics import track_operation
from blobstore.infra.storage.client import (
    ObjectNotFoundError,
    StorageClient,
    StorageError,
)
from blobstore.s3.copy import CopyOperations
from blobstore.s3.delete import DeleteOperations
from blobstore.s3.key_mapper import KeyMapper
from blobstore.s3.listing import DEFAULT_PAGE_SIZE, BlobIterator
from blobstore.s3.output_stream import S3BlobOutputStream

BACKEND = "s3"

_copy_operations = CopyOperations()
_delete_operations = DeleteOperations()


class S3BlobStore:
    """A named blob store living under a key prefix of one bucket.

    Two stores are equal when they address the same bucket and prefix; the
    name only labels the store.
    """

    def __init__(
        self,
        *,
        name: str,
        bucket: str,
        client: StorageClient,
        key_prefix: str | None = None,
        upload_part_size: int = DEFAULT_UPLOAD_PART_SIZE_BYTES,
        copy_part_size: int = DEFAULT_COPY_PART_SIZE_BYTES,
    ) -> None:
        if not bucket:
            raise ValueError("bucket must not be empty")
        if upload_part_size <= 0 or copy_part_size <= 0:
            raise ValueError("part sizes must be positive")
        self._name = name
        self._bucket = bucket
        self._client = client
        self._key_mapper = KeyMapper(key_prefix)
        self._upload_part_size = upload_part_size
        self._copy_part_size = copy_part_size

    @property
    def name(self) -> str:
        return self._name

    @property
    def hint(self) -> str:
        return BACKEND

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def client(self) -> StorageClient:
        return self._client

    @property
    def key_mapper(self) -> KeyMapper:
        return self._key_mapper

    @property
    def upload_part_size(self) -> int:
        return self._upload_part_size

    @property
    def copy_part_size(self) -> int:
        return self._copy_part_size

    def get_blob(self, path: BlobPath) -> "S3Blob":
        return S3Blob(self, path)

    def list_blobs(self, path: BlobPath, page_size: int = DEFAULT_PAGE_SIZE) -> BlobIterator:
        """Lazily iterate over every blob below ``path``."""
        return BlobIterator(self, self._listing_prefix(path), page_size)

    def _listing_prefix(self, path: BlobPath) -> str:
        prefix = self._key_mapper.key_prefix_for(path)
        # The root of an unprefixed store covers the whole bucket.
        return "" if prefix == "/" else prefix

    def copy_blob(
        self,
        source_path: BlobPath,
        target_path: BlobPath,
        source_store: BlobStore | None = None,
    ) -> Blob:
        with track_operation(BACKEND, "copy"):
            return _copy_operations.copy_blob(
                source_store if source_store is not None else self,
                source_path,
                self,
                target_path,
            )

    def move_blob(
        self,
        source_path: BlobPath,
        target_path: BlobPath,
        source_store: BlobStore | None = None,
    ) -> Blob:
        """Copy the blob into this store, then delete the source."""
        origin = source_store if source_store is not None else self
        target = self.copy_blob(source_path, target_path, origin)
        origin.delete_blob(source_path)
        return target

    def is_empty_directory(self, path: BlobPath) -> bool:
        """True when no blob lives below ``path``; a blob at ``path`` itself does not count."""
        with self.list_blobs(path, page_size=1) as blobs:
            return not blobs.has_next()

    def delete_blob(self, path: BlobPath) -> None:
        with track_operation(BACKEND, "delete"):
            _delete_operations.delete_blob(self, path)

    def delete_blobs(self, path: BlobPath) -> None:
        """Delete every blob below ``path``."""
        with track_operation(BACKEND, "delete_many"):
            _delete_operations.delete_blobs(self, self.list_blobs(path))

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, S3BlobStore):
            return NotImplemented
        return self._bucket == other._bucket and self._key_mapper == other._key_mapper

    def __hash__(self) -> int:
        return hash((self._bucket, self._key_mapper))

    def __repr__(self) -> str:
        return (
            f"S3BlobStore(name={self._name!r}, bucket={self._bucket!r}, "
            f"prefix={self._key_mapper.prefix!r})"
        )


class S3Blob:
    """Handle on the object stored under one key."""

    __slots__ = ("_store", "_path", "_key")

    def __init__(self, store: S3BlobStore, path: BlobPath) -> None:
        self._store = store
        self._path = path
        self._key = store.key_mapper.build_key(path)

    @property
    def store(self) -> S3BlobStore:
        return self._store

    @property
    def path(self) -> BlobPath:
        return self._path

    @property
    def key(self) -> str:
        return self._key

    def exists(self) -> bool:
        return self.get_size() >= 0

    def get_size(self) -> int:
        try:
            head = self._store.client.head_object(
                bucket=self._store.bucket, object_key=self._key
            )
        except ObjectNotFoundError:
            return -1
        except StorageError as exc:
            raise BlobStoreError(
                f"Failed to get size of blob: {self._path}", path=self._path
            ) from exc
        return head.size_bytes

    def get_stream(self, byte_range: ByteRange | None = None) -> BinaryIO:
        with track_operation(BACKEND, "read"):
            try:
                return self._store.client.get_object(
                    bucket=self._store.bucket,
                    object_key=self._key,
                    range_header=byte_range.to_header() if byte_range else None,
                )
            except ObjectNotFoundError as exc:
                raise BlobNotFoundError(self._path) from exc
            except StorageError as exc:
                raise BlobStoreError(
                    f"Failed to read blob: {self._path}", path=self._path
                ) from exc

    def get_output_stream(
        self, write_mode: WriteMode = WriteMode.OVERWRITE
    ) -> S3BlobOutputStream:
        return S3BlobOutputStream(
            client=self._store.client,
            bucket=self._store.bucket,
            key=self._key,
            path=self._path,
            part_size=self._store.upload_part_size,
            write_mode=write_mode,
        )

    def write_from_stream(
        self, reader: BinaryIO, write_mode: WriteMode = WriteMode.OVERWRITE
    ) -> None:
        with track_operation(BACKEND, "write"):
            with self.get_output_stream(write_mode) as output:
                output.write_from(reader)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, S3Blob):
            return NotImplemented
        return self._store.bucket == other._store.bucket and self._key == other._key

    def __hash__(self) -> int:
        return hash((self._store.bucket, self._key))

    def __repr__(self) -> str:
        return f"S3Blob(bucket={self._store.bucket!r}, key={self._key!r})"
