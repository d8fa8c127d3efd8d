"""Blob copies into an S3 store.

Copies between two S3 stores happen server side: one ``copy_object`` for
blobs up to the copy part size, a multipart upload of ranged part copies
above it. Copies from any other kind of store stream the content through
this process.
"""

from __future__ import annotations

import logging
from contextlib import closing
from typing import TYPE_CHECKING

from blobstore.domain.errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStoreError,
)
from blobstore.domain.options import WriteMode
from blobstore.domain.paths import BlobPath
from blobstore.domain.store import Blob, BlobStore
from blobstore.infra.observability.metrics import MULTIPART_PARTS
from blobstore.infra.storage.client import ObjectNotFoundError, StorageError
from blobstore.s3.multipart import MultipartSession

if TYPE_CHECKING:
    from blobstore.s3.store import S3BlobStore

logger = logging.getLogger("blobstore.s3")


class CopyOperations:
    """Copy strategies used by ``S3BlobStore.copy_blob``."""

    def copy_blob(
        self,
        source_store: BlobStore,
        source_path: BlobPath,
        target_store: "S3BlobStore",
        target_path: BlobPath,
    ) -> Blob:
        """Copy ``source_path`` of ``source_store`` to ``target_path``.

        The target must not exist; the copy never overwrites.

        Raises:
            BlobNotFoundError: If the source does not exist.
            BlobAlreadyExistsError: If the target already exists.
            BlobStoreError: If the copy fails or source and target are the same.
        """
        if source_store == target_store and source_path == target_path:
            raise BlobStoreError(
                f"Cannot copy blob onto itself: {source_path}", path=source_path
            )

        from blobstore.s3.store import S3BlobStore

        if isinstance(source_store, S3BlobStore) and isinstance(target_store, S3BlobStore):
            return self._copy_native(source_store, source_path, target_store, target_path)
        return self._copy_streaming(source_store, source_path, target_store, target_path)

    def _copy_streaming(
        self,
        source_store: BlobStore,
        source_path: BlobPath,
        target_store: BlobStore,
        target_path: BlobPath,
    ) -> Blob:
        target = target_store.get_blob(target_path)
        if target.exists():
            raise BlobAlreadyExistsError(target_path)

        logger.debug(
            "blob_copy_streaming source_store=%s source=%s target=%s",
            source_store.name,
            source_path,
            target_path,
            extra={
                "extra": {
                    "source_store": source_store.name,
                    "source": str(source_path),
                    "target": str(target_path),
                }
            },
        )
        try:
            source = source_store.get_blob(source_path)
            with closing(source.get_stream()) as reader:
                target.write_from_stream(reader, WriteMode.CREATE_NEW)
        except BlobStoreError:
            raise
        except Exception as exc:
            raise BlobStoreError(
                f"Failed to copy blob from external store: {source_path}",
                path=source_path,
            ) from exc
        return target

    def _copy_native(
        self,
        source_store: "S3BlobStore",
        source_path: BlobPath,
        target_store: "S3BlobStore",
        target_path: BlobPath,
    ) -> Blob:
        target = target_store.get_blob(target_path)
        if target.exists():
            raise BlobAlreadyExistsError(target_path)

        size = source_store.get_blob(source_path).get_size()
        if size < 0:
            raise BlobNotFoundError(source_path)

        if size <= target_store.copy_part_size:
            self._copy_object(source_store, source_path, target_store, target_path)
        else:
            self._copy_multipart(source_store, source_path, target_store, target_path, size)
        return target

    def _copy_object(
        self,
        source_store: "S3BlobStore",
        source_path: BlobPath,
        target_store: "S3BlobStore",
        target_path: BlobPath,
    ) -> None:
        try:
            target_store.client.copy_object(
                source_bucket=source_store.bucket,
                source_key=source_store.key_mapper.build_key(source_path),
                bucket=target_store.bucket,
                object_key=target_store.key_mapper.build_key(target_path),
            )
        except ObjectNotFoundError as exc:
            raise BlobNotFoundError(source_path) from exc
        except StorageError as exc:
            raise BlobStoreError(
                f"Failed to copy blob from {source_path} to {target_path}",
                path=target_path,
            ) from exc

    def _copy_multipart(
        self,
        source_store: "S3BlobStore",
        source_path: BlobPath,
        target_store: "S3BlobStore",
        target_path: BlobPath,
        size: int,
    ) -> None:
        client = target_store.client
        source_bucket = source_store.bucket
        source_key = source_store.key_mapper.build_key(source_path)
        target_key = target_store.key_mapper.build_key(target_path)

        try:
            head = client.head_object(bucket=source_bucket, object_key=source_key)
        except ObjectNotFoundError as exc:
            raise BlobNotFoundError(source_path) from exc
        except StorageError as exc:
            raise BlobStoreError(
                f"Failed to read metadata of blob: {source_path}", path=source_path
            ) from exc

        session = MultipartSession.open(
            client,
            target_store.bucket,
            target_key,
            target_path,
            WriteMode.CREATE_NEW,
            metadata=head.metadata,
            content_type=head.content_type,
        )
        part_size = target_store.copy_part_size
        try:
            start = 0
            while start < size:
                last = min(start + part_size - 1, size - 1)
                etag = client.upload_part_copy(
                    source_bucket=source_bucket,
                    source_key=source_key,
                    bucket=target_store.bucket,
                    object_key=target_key,
                    upload_id=session.upload_id,
                    part_number=session.next_part_number(),
                    first_byte=start,
                    last_byte=last,
                )
                session.add_completed_part(etag)
                MULTIPART_PARTS.labels("copy").inc()
                start = last + 1
            session.complete()
        except BlobAlreadyExistsError:
            session.abort()
            raise
        except Exception as exc:
            session.abort()
            raise BlobStoreError(
                f"Failed to perform multipart copy from {source_path} to {target_path}",
                path=target_path,
            ) from exc

        logger.info(
            "multipart_copy_completed source=%s target=%s size=%d parts=%d",
            source_key,
            target_key,
            size,
            len(session.parts),
            extra={
                "extra": {
                    "source_bucket": source_bucket,
                    "source_key": source_key,
                    "bucket": target_store.bucket,
                    "key": target_key,
                    "size": size,
                    "parts": len(session.parts),
                }
            },
        )
