from __future__ import annotations

import logging

from blobstore.common.config import Settings, get_settings
from blobstore.domain.errors import BlobStoreError
from blobstore.infra.storage.client import StorageClient, StorageError
from blobstore.infra.storage.s3_client import S3StorageClient
from blobstore.s3.key_mapper import normalize_prefix
from blobstore.s3.store import S3BlobStore

logger = logging.getLogger("blobstore.s3")


class S3BlobStoreFactory:
    """Creates named S3 blob stores sharing one bucket and client.

    Every store gets its own prefix: the configured ``S3_KEY_PREFIX``
    followed by the store name.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: StorageClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        if not self._settings.S3_BUCKET:
            raise ValueError("S3_BUCKET must be configured")
        self._client = client if client is not None else S3StorageClient(settings=self._settings)

    @property
    def client(self) -> StorageClient:
        return self._client

    def create(self, name: str) -> S3BlobStore:
        """Create the store named ``name`` after checking the bucket is reachable.

        Raises:
            BlobStoreError: If the bucket is missing or not accessible.
        """
        bucket = self._settings.S3_BUCKET
        base_prefix = normalize_prefix(self._settings.S3_KEY_PREFIX)
        key_prefix = f"{base_prefix}/{name}" if base_prefix else name

        self._check_bucket(bucket)
        store = S3BlobStore(
            name=name,
            bucket=bucket,
            client=self._client,
            key_prefix=key_prefix,
            upload_part_size=self._settings.S3_MULTIPART_UPLOAD_PART_SIZE,
            copy_part_size=self._settings.S3_MULTIPART_COPY_PART_SIZE,
        )
        logger.info(
            "s3_blob_store_created name=%s bucket=%s prefix=%s",
            name,
            bucket,
            store.key_mapper.prefix,
            extra={
                "extra": {
                    "store": name,
                    "bucket": bucket,
                    "prefix": store.key_mapper.prefix,
                }
            },
        )
        return store

    def _check_bucket(self, bucket: str) -> None:
        try:
            self._client.head_bucket(bucket=bucket)
        except StorageError as exc:
            if exc.status_code == 404 or exc.code in {"404", "NoSuchBucket", "NotFound"}:
                raise BlobStoreError(f"S3 bucket does not exist: {bucket}") from exc
            if exc.status_code == 403:
                raise BlobStoreError(
                    f"Access denied to S3 bucket: {bucket}. "
                    "Please check credentials and bucket permissions."
                ) from exc
            raise BlobStoreError(f"Failed to access S3 bucket: {bucket}") from exc
