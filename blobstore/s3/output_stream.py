"""Buffered writer uploading a blob as a single object or in parts."""

from __future__ import annotations

import logging
from typing import BinaryIO

from blobstore.domain.errors import BlobAlreadyExistsError, BlobStoreError
from blobstore.domain.options import WriteMode
from blobstore.domain.paths import BlobPath
from blobstore.infra.observability.metrics import MULTIPART_PARTS, UPLOADED_BYTES
from blobstore.infra.storage.client import IF_NONE_MATCH_ANY, StorageClient, StorageError
from blobstore.s3.multipart import MultipartSession

logger = logging.getLogger("blobstore.s3")


class S3BlobOutputStream:
    """Sequential sink holding at most one part in memory.

    Content smaller than ``part_size`` is sent with one ``put_object`` on
    close. As soon as the buffer fills up a multipart upload is started and
    every full buffer becomes a part; closing uploads the remainder and
    completes the upload. Nothing becomes visible before ``close`` succeeds.

    Any failure after the multipart upload was started aborts it before the
    error is raised, and the stream rejects further writes.
    """

    def __init__(
        self,
        *,
        client: StorageClient,
        bucket: str,
        key: str,
        path: BlobPath,
        part_size: int,
        write_mode: WriteMode = WriteMode.OVERWRITE,
    ) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self._client = client
        self._bucket = bucket
        self._key = key
        self._path = path
        self._part_size = part_size
        self._write_mode = write_mode
        self._buffer = bytearray()
        self._session: MultipartSession | None = None
        self._closed = False
        self._failed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def path(self) -> BlobPath:
        return self._path

    @property
    def write_mode(self) -> WriteMode:
        return self._write_mode

    def write(self, data: bytes | bytearray | memoryview) -> int:
        self._check_writable()
        view = memoryview(data).cast("B")
        total = len(view)
        offset = 0
        while offset < total:
            room = self._part_size - len(self._buffer)
            chunk = view[offset : offset + room]
            self._buffer += chunk
            offset += len(chunk)
            if len(self._buffer) >= self._part_size:
                self._upload_part()
        return total

    def write_from(self, reader: BinaryIO) -> int:
        """Copy ``reader`` until EOF, one part-sized read at a time."""
        copied = 0
        while True:
            chunk = reader.read(self._part_size)
            if not chunk:
                return copied
            copied += self.write(chunk)

    def flush(self) -> None:
        """No-op: parts are only sent once a full part is buffered."""

    def close(self) -> None:
        """Commit the written content.

        Raises:
            BlobAlreadyExistsError: In ``CREATE_NEW`` mode when the blob exists.
            BlobStoreError: If the upload fails.
        """
        if self._closed:
            return
        self._closed = True
        if self._failed:
            return
        try:
            if self._session is None:
                self._put_whole_object()
            else:
                if self._buffer:
                    self._upload_part()
                self._session.complete()
        except BlobStoreError:
            self._fail()
            raise
        finally:
            self._buffer = bytearray()

    def abort(self) -> None:
        """Discard everything written so far without committing."""
        if self._closed:
            return
        self._closed = True
        self._fail()

    def __enter__(self) -> "S3BlobOutputStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()

    def _check_writable(self) -> None:
        if self._closed:
            raise BlobStoreError("Stream closed", path=self._path)
        if self._failed:
            raise BlobStoreError(
                f"Stream failed for blob: {self._path}", path=self._path
            )

    def _fail(self) -> None:
        self._failed = True
        self._buffer = bytearray()
        if self._session is not None:
            self._session.abort()

    def _put_whole_object(self) -> None:
        body = bytes(self._buffer)
        try:
            self._client.put_object(
                bucket=self._bucket,
                object_key=self._key,
                body=body,
                if_none_match=(
                    IF_NONE_MATCH_ANY if self._write_mode is WriteMode.CREATE_NEW else None
                ),
            )
        except StorageError as exc:
            if self._write_mode is WriteMode.CREATE_NEW and exc.is_precondition_failed:
                raise BlobAlreadyExistsError(self._path) from exc
            raise BlobStoreError(
                f"Failed to upload blob: {self._path}", path=self._path
            ) from exc
        UPLOADED_BYTES.labels("simple").inc(len(body))

    def _upload_part(self) -> None:
        try:
            if self._session is None:
                self._session = MultipartSession.open(
                    self._client,
                    self._bucket,
                    self._key,
                    self._path,
                    self._write_mode,
                )
            part_number = self._session.next_part_number()
            size = len(self._buffer)
            etag = self._client.upload_part(
                bucket=self._bucket,
                object_key=self._key,
                upload_id=self._session.upload_id,
                part_number=part_number,
                body=bytes(self._buffer),
                content_length=size,
            )
            self._session.add_completed_part(etag)
        except StorageError as exc:
            self._fail()
            raise BlobStoreError(
                f"Failed to upload part for blob: {self._path}", path=self._path
            ) from exc
        except BlobStoreError:
            self._fail()
            raise

        MULTIPART_PARTS.labels("upload").inc()
        UPLOADED_BYTES.labels("multipart").inc(size)
        logger.debug(
            "multipart_part_uploaded key=%s part_number=%d size=%d",
            self._key,
            part_number,
            size,
            extra={"extra": {"key": self._key, "part_number": part_number, "size": size}},
        )
        self._buffer = bytearray()
