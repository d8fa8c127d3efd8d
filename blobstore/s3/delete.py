"""Single and bulk deletion of S3 blobs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from blobstore.domain.errors import BlobStoreError, PartialDeleteError
from blobstore.domain.paths import BlobPath
from blobstore.infra.observability.metrics import DELETE_FAILURES
from blobstore.infra.storage.client import DeleteFailure, StorageError

if TYPE_CHECKING:
    from blobstore.s3.store import S3Blob, S3BlobStore

logger = logging.getLogger("blobstore.s3")

# Maximum number of keys S3 accepts in one DeleteObjects request.
BATCH_DELETE_SIZE = 1000


class DeleteOperations:
    def delete_blob(self, store: "S3BlobStore", path: BlobPath) -> None:
        """Delete one blob. Deleting a missing blob is not an error."""
        try:
            store.client.delete_object(
                bucket=store.bucket, object_key=store.key_mapper.build_key(path)
            )
        except StorageError as exc:
            raise BlobStoreError(f"Failed to delete blob: {path}", path=path) from exc

    def delete_blobs(self, store: "S3BlobStore", blobs: Iterable["S3Blob"]) -> None:
        """Delete ``blobs`` in batches, in input order.

        Per-key failures of every batch are collected and reported together
        once all batches were sent. ``blobs`` is closed on every exit path
        when it has a ``close`` method.

        Raises:
            PartialDeleteError: If some keys could not be deleted.
            BlobStoreError: If a batch request itself failed.
        """
        failures: list[DeleteFailure] = []
        deleted = 0
        try:
            batch: list[str] = []
            for blob in blobs:
                batch.append(store.key_mapper.build_key(blob.path))
                if len(batch) == BATCH_DELETE_SIZE:
                    failures.extend(self._delete_batch(store, batch))
                    deleted += len(batch)
                    batch = []
            if batch:
                failures.extend(self._delete_batch(store, batch))
                deleted += len(batch)
        finally:
            close = getattr(blobs, "close", None)
            if callable(close):
                close()

        logger.debug(
            "blobs_deleted bucket=%s requested=%d failed=%d",
            store.bucket,
            deleted,
            len(failures),
            extra={
                "extra": {
                    "bucket": store.bucket,
                    "requested": deleted,
                    "failed": len(failures),
                }
            },
        )
        if failures:
            DELETE_FAILURES.inc(len(failures))
            raise PartialDeleteError(failures)

    def _delete_batch(self, store: "S3BlobStore", keys: list[str]) -> list[DeleteFailure]:
        try:
            return store.client.delete_objects(bucket=store.bucket, object_keys=list(keys))
        except StorageError as exc:
            raise BlobStoreError("Failed to batch delete blobs") from exc
