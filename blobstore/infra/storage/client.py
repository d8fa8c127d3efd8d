"""Storage client protocol and data types.

This module defines the abstract interface of the object storage wire
client consumed by the blob stores: simple and multipart uploads,
server-side copies, ranged reads, single and bulk deletes and paginated
listings. The blob store core depends only on this protocol, never on a
vendor SDK.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Mapping, Protocol, Sequence

# Value of the If-None-Match header turning a write into "create if absent".
IF_NONE_MATCH_ANY = "*"


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_precondition_failed(self) -> bool:
        return self.status_code == 412


class ObjectNotFoundError(StorageError):
    """Raised when the requested object or bucket does not exist."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ListedObject:
    """One entry of a listing page."""

    key: str
    size_bytes: int | None = None


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """One page of a prefix listing."""

    objects: Sequence[ListedObject]
    is_truncated: bool
    next_continuation_token: str | None = None


@dataclass(frozen=True, slots=True)
class DeleteFailure:
    """A key a bulk delete could not remove."""

    key: str
    code: str | None = None
    message: str | None = None


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here. Every method may
    raise ``StorageError`` (carrying the HTTP status when known) and methods
    addressing a single object raise ``ObjectNotFoundError`` when it is
    missing.
    """

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        if_none_match: str | None = None,
    ) -> str:
        """Upload a whole object in a single request.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            body: Object content.
            if_none_match: ``"*"`` to fail with 412 if the key already exists.

        Returns:
            ETag of the stored object.
        """
        ...

    def create_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes | BinaryIO,
        content_length: int,
    ) -> str:
        """Upload one part of a multipart upload.

        Args:
            part_number: Part number (1-based, max 10000).
            body: Part content, as bytes or a readable stream of
                exactly ``content_length`` bytes.

        Returns:
            ETag of the uploaded part.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
        if_none_match: str | None = None,
    ) -> None:
        """Complete a multipart upload by combining all parts.

        Args:
            parts: List of completed parts with their ETags.
            if_none_match: ``"*"`` to fail with 412 if the key already exists.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        ...

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        bucket: str,
        object_key: str,
    ) -> None:
        """Server-side copy of a whole object, metadata included."""
        ...

    def upload_part_copy(
        self,
        *,
        source_bucket: str,
        source_key: str,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        first_byte: int,
        last_byte: int,
    ) -> str:
        """Copy the inclusive byte range of a source object as one part.

        Returns:
            ETag of the copied part.
        """
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
        """
        ...

    def get_object(
        self,
        *,
        bucket: str,
        object_key: str,
        range_header: str | None = None,
    ) -> BinaryIO:
        """Open the object content. The caller must close the returned stream.

        Args:
            range_header: Optional HTTP ``Range`` value, e.g. ``bytes=0-99``.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage. Missing objects are not an error."""
        ...

    def delete_objects(
        self, *, bucket: str, object_keys: Sequence[str]
    ) -> list[DeleteFailure]:
        """Delete up to 1000 objects in one request.

        Returns:
            The keys the store reported as not deleted.
        """
        ...

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str,
        max_keys: int,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """Fetch one page of the keys starting with ``prefix``."""
        ...

    def head_bucket(self, *, bucket: str) -> None:
        """Check that the bucket exists and is accessible.

        Raises:
            ObjectNotFoundError: If the bucket doesn't exist.
        """
        ...


def describe_error(exc: BaseException) -> str:
    """Short description of the innermost cause of ``exc`` for log lines."""
    root: BaseException = exc
    while root.__cause__ is not None:
        root = root.__cause__
    return f"{type(root).__name__}: {root}"
