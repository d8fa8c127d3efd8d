"""Moves the content of one blob store into another.

A marker blob written into the target with ``CREATE_NEW`` records that a
migration is running. If a migration is interrupted the marker stays
behind, and the next run resumes instead of starting over. The marker is
deleted only once every blob was moved.
"""

from __future__ import annotations

import io
import logging
from contextlib import closing
from datetime import datetime, timezone

from blobstore.domain.errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStoreError,
)
from blobstore.domain.options import WriteMode
from blobstore.domain.paths import BlobPath
from blobstore.domain.store import BlobStore

logger = logging.getLogger("blobstore.migration")

MIGRATION_MARKER_PATH = BlobPath.of(["_migration.txt"])


class BlobStoreMigrator:
    def migrate(self, target_store: BlobStore, source_store: BlobStore) -> int:
        """Move every blob of ``source_store`` into ``target_store``.

        Returns:
            The number of blobs moved by this run.

        Raises:
            BlobStoreError: If the migration fails. Running it again resumes it.
        """
        store_name = target_store.name
        marker = target_store.get_blob(MIGRATION_MARKER_PATH)
        try:
            marker.write_from_stream(
                io.BytesIO(self._marker_payload(store_name, source_store, target_store)),
                WriteMode.CREATE_NEW,
            )
            logger.info(
                "Starting blob store migration for [%s] (source: [%s], target: [%s])",
                store_name,
                source_store.hint,
                target_store.hint,
            )
        except BlobAlreadyExistsError:
            logger.info(
                "Found migration marker [%s]; resuming migration of blob store [%s]",
                MIGRATION_MARKER_PATH,
                store_name,
            )
        except BlobStoreError as exc:
            raise BlobStoreError(
                f"Failed to create migration marker for store [{store_name}] "
                f"at [{MIGRATION_MARKER_PATH}]"
            ) from exc

        moved = self._migrate_content(store_name, target_store, source_store)
        logger.info("Completed blob store migration for [%s] (%d blobs moved)", store_name, moved)

        try:
            target_store.delete_blob(MIGRATION_MARKER_PATH)
        except BlobStoreError as exc:
            raise BlobStoreError(
                f"Failed to delete migration marker [{MIGRATION_MARKER_PATH}] after "
                f"migrating store [{store_name}]. Remove the marker manually once the "
                "migration is verified."
            ) from exc
        return moved

    def is_migration_in_progress(self, target_store: BlobStore) -> bool:
        return target_store.get_blob(MIGRATION_MARKER_PATH).exists()

    @staticmethod
    def _marker_payload(
        store_name: str, source_store: BlobStore, target_store: BlobStore
    ) -> bytes:
        started_at = datetime.now(timezone.utc).isoformat()
        return (
            f"Store Name: {store_name}\n"
            f"Source Store: {source_store.hint}\n"
            f"Target Store: {target_store.hint}\n"
            f"Started At: {started_at}\n"
        ).encode("utf-8")

    def _migrate_content(
        self, store_name: str, target_store: BlobStore, source_store: BlobStore
    ) -> int:
        moved = 0
        blobs = source_store.list_blobs(BlobPath.ROOT)
        try:
            for blob in blobs:
                if self._move_blob(blob.path, source_store, target_store):
                    moved += 1
        except BlobStoreError:
            raise
        except Exception as exc:
            raise BlobStoreError(
                f"Failed to list blobs from migration store [{source_store.hint}] "
                f"during migration of [{store_name}]"
            ) from exc
        finally:
            close = getattr(blobs, "close", None)
            if callable(close):
                close()
        return moved

    def _move_blob(
        self, path: BlobPath, source_store: BlobStore, target_store: BlobStore
    ) -> bool:
        try:
            try:
                target_store.move_blob(path, path, source_store)
            except BlobAlreadyExistsError:
                # Left behind by an earlier run or unrelated: the source content wins.
                logger.info(
                    "Blob [%s] already present in [%s]; replacing it with the source content",
                    path,
                    target_store.name,
                )
                self._replace_blob(path, source_store, target_store)
        except BlobNotFoundError:
            logger.debug(
                "Skipping blob [%s] during migration of [%s]: it no longer exists in the source store",
                path,
                target_store.name,
            )
            return False
        except BlobStoreError as exc:
            raise BlobStoreError(
                f"Failed to move blob [{path}] while migrating [{target_store.name}] "
                f"from [{source_store.hint}] to [{target_store.hint}]. Fix the issue or "
                "delete the source blob to unblock the migration. The migration will be "
                "resumed on the next attempt.",
                path=path,
            ) from exc
        return True

    @staticmethod
    def _replace_blob(
        path: BlobPath, source_store: BlobStore, target_store: BlobStore
    ) -> None:
        with closing(source_store.get_blob(path).get_stream()) as reader:
            target_store.get_blob(path).write_from_stream(reader, WriteMode.OVERWRITE)
        source_store.delete_blob(path)
