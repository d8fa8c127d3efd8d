"""Lifecycle of one S3 multipart upload.

A session is opened by ``MultipartSession.open``, collects the ETags of the
parts uploaded (or copied) by its owner and ends either completed or
aborted. Part numbers are handed out sequentially starting at 1.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Mapping

from blobstore.domain.errors import BlobAlreadyExistsError, BlobStoreError
from blobstore.domain.options import WriteMode
from blobstore.domain.paths import BlobPath
from blobstore.infra.observability.metrics import MULTIPART_ABORTS
from blobstore.infra.storage.client import (
    IF_NONE_MATCH_ANY,
    CompletedPart,
    StorageClient,
    StorageError,
    describe_error,
)

logger = logging.getLogger("blobstore.s3")

# S3 rejects part numbers above this.
MAX_PARTS = 10000

CompleteCustomizer = Callable[[dict[str, Any]], None]


class SessionState(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"
    ABORTED = "aborted"


class MultipartSession:
    """An open multipart upload bound to one target key."""

    def __init__(
        self,
        *,
        client: StorageClient,
        bucket: str,
        key: str,
        path: BlobPath,
        upload_id: str,
        write_mode: WriteMode = WriteMode.OVERWRITE,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._key = key
        self._path = path
        self._upload_id = upload_id
        self._write_mode = write_mode
        self._parts: list[CompletedPart] = []
        self._part_number = 1
        self._state = SessionState.OPEN

    @classmethod
    def open(
        cls,
        client: StorageClient,
        bucket: str,
        key: str,
        path: BlobPath,
        write_mode: WriteMode = WriteMode.OVERWRITE,
        metadata: Mapping[str, str] | None = None,
        content_type: str | None = None,
    ) -> "MultipartSession":
        """Create the upload on the server and return its session.

        Raises:
            BlobStoreError: If the upload cannot be created. No session exists
                then, so there is nothing to abort.
        """
        try:
            upload = client.create_multipart_upload(
                bucket=bucket,
                object_key=key,
                content_type=content_type,
                metadata=metadata,
            )
        except StorageError as exc:
            raise BlobStoreError(
                f"Failed to initiate multipart upload for blob: {path}", path=path
            ) from exc

        logger.debug(
            "multipart_upload_started key=%s upload_id=%s",
            key,
            upload.upload_id,
            extra={"extra": {"bucket": bucket, "key": key, "upload_id": upload.upload_id}},
        )
        return cls(
            client=client,
            bucket=bucket,
            key=key,
            path=path,
            upload_id=upload.upload_id,
            write_mode=write_mode,
        )

    @property
    def upload_id(self) -> str:
        return self._upload_id

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def key(self) -> str:
        return self._key

    @property
    def path(self) -> BlobPath:
        return self._path

    @property
    def write_mode(self) -> WriteMode:
        return self._write_mode

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def parts(self) -> list[CompletedPart]:
        return list(self._parts)

    def _ensure_open(self) -> None:
        if self._state is SessionState.COMPLETED:
            raise BlobStoreError(
                f"Multipart upload already completed for blob: {self._path}",
                path=self._path,
            )
        if self._state is SessionState.ABORTED:
            raise BlobStoreError(
                f"Multipart upload aborted for blob: {self._path}", path=self._path
            )

    def next_part_number(self) -> int:
        """Return the number the next part must be uploaded with."""
        self._ensure_open()
        if self._part_number > MAX_PARTS:
            raise BlobStoreError(
                f"Exceeded the maximum number of parts ({MAX_PARTS}) for blob: "
                f"{self._path}. Increase the multipart part size.",
                path=self._path,
            )
        return self._part_number

    def add_completed_part(self, etag: str) -> None:
        self._ensure_open()
        self._parts.append(CompletedPart(part_number=self._part_number, etag=etag))
        self._part_number += 1

    def complete(self, customize: CompleteCustomizer | None = None) -> None:
        """Assemble the uploaded parts into the target object.

        Args:
            customize: Called with the mutable keyword arguments of the
                completion request right before it is sent.

        Raises:
            BlobAlreadyExistsError: If ``CREATE_NEW`` was requested and the
                target appeared meanwhile.
            BlobStoreError: If the completion fails. The session stays open
                and the caller is expected to abort it.
        """
        self._ensure_open()
        request: dict[str, Any] = {
            "bucket": self._bucket,
            "object_key": self._key,
            "upload_id": self._upload_id,
            "parts": list(self._parts),
        }
        if self._write_mode is WriteMode.CREATE_NEW:
            request["if_none_match"] = IF_NONE_MATCH_ANY
        if customize is not None:
            customize(request)

        try:
            self._client.complete_multipart_upload(**request)
        except StorageError as exc:
            if self._write_mode is WriteMode.CREATE_NEW and exc.is_precondition_failed:
                raise BlobAlreadyExistsError(self._path) from exc
            raise BlobStoreError(
                f"Failed to complete multipart upload for blob: {self._path}",
                path=self._path,
            ) from exc

        self._state = SessionState.COMPLETED
        logger.debug(
            "multipart_upload_completed key=%s upload_id=%s parts=%d",
            self._key,
            self._upload_id,
            len(self._parts),
            extra={
                "extra": {
                    "bucket": self._bucket,
                    "key": self._key,
                    "upload_id": self._upload_id,
                    "parts": len(self._parts),
                }
            },
        )

    def abort(self) -> None:
        """Abort the upload once. Failures are logged, never raised."""
        if self._state is not SessionState.OPEN:
            return
        self._state = SessionState.ABORTED
        try:
            self._client.abort_multipart_upload(
                bucket=self._bucket,
                object_key=self._key,
                upload_id=self._upload_id,
            )
        except Exception as exc:
            MULTIPART_ABORTS.labels("failed").inc()
            logger.warning(
                "multipart_upload_abort_failed key=%s upload_id=%s error=%s",
                self._key,
                self._upload_id,
                describe_error(exc),
                extra={
                    "extra": {
                        "bucket": self._bucket,
                        "key": self._key,
                        "upload_id": self._upload_id,
                    }
                },
            )
            return

        MULTIPART_ABORTS.labels("aborted").inc()
        logger.info(
            "multipart_upload_aborted key=%s upload_id=%s",
            self._key,
            self._upload_id,
            extra={
                "extra": {
                    "bucket": self._bucket,
                    "key": self._key,
                    "upload_id": self._upload_id,
                }
            },
        )

    def __repr__(self) -> str:
        return (
            f"MultipartSession(bucket={self._bucket!r}, key={self._key!r}, "
            f"upload_id={self._upload_id!r}, state={self._state.value})"
        )
