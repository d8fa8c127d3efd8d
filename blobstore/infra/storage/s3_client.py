"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.
Retries and timeouts are configured on the botocore client; nothing above
this layer retries.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO, Mapping, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from blobstore.infra.storage.client import (
    CompletedPart,
    DeleteFailure,
    ListedObject,
    MultipartUpload,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    StorageError,
)

if TYPE_CHECKING:
    from blobstore.common.config import Settings

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _translate(exc: Exception, message: str) -> StorageError:
    """Map a boto3 failure onto the storage error hierarchy."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", "")) or None
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        error_cls = ObjectNotFoundError if code in _NOT_FOUND_CODES else StorageError
        return error_cls(f"{message}: {exc}", status_code=status, code=code)
    return StorageError(f"{message}: {exc}")


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations.
    """

    def __init__(self, *, settings: "Settings", client: Any | None = None) -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.
            client: Pre-built boto3 S3 client, mostly for tests.
        """
        self._settings = settings
        self._client = client if client is not None else self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        config = Config(
            s3={"addressing_style": settings.S3_ADDRESSING_STYLE},
            retries={"max_attempts": int(settings.S3_MAX_ATTEMPTS), "mode": "standard"},
            connect_timeout=settings.S3_CONNECT_TIMEOUT,
            read_timeout=settings.S3_READ_TIMEOUT,
        )

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        if_none_match: str | None = None,
    ) -> str:
        """Upload a whole object in a single request."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key, "Body": body}
        if if_none_match:
            params["IfNoneMatch"] = if_none_match

        try:
            response = self._client.put_object(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to put object") from exc

        return str(response.get("ETag", ""))

    def create_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = dict(metadata)

        try:
            response = self._client.create_multipart_upload(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to create multipart upload") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

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
        """Upload one part of a multipart upload."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
                ContentLength=int(content_length),
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to upload part") from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError("S3 response missing part ETag")
        return str(etag)

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
        if_none_match: str | None = None,
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": object_key,
            "UploadId": upload_id,
            "MultipartUpload": {
                "Parts": [
                    {"ETag": part.etag, "PartNumber": int(part.part_number)}
                    for part in sorted(parts, key=lambda p: p.part_number)
                ]
            },
        }
        if if_none_match:
            params["IfNoneMatch"] = if_none_match

        try:
            self._client.complete_multipart_upload(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to complete multipart upload") from exc

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to abort multipart upload") from exc

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        bucket: str,
        object_key: str,
    ) -> None:
        """Server-side copy of a whole object, metadata included."""
        try:
            self._client.copy_object(
                Bucket=bucket,
                Key=object_key,
                CopySource={"Bucket": source_bucket, "Key": source_key},
                MetadataDirective="COPY",
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to copy object") from exc

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
        """Copy the inclusive byte range of a source object as one part."""
        try:
            response = self._client.upload_part_copy(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                CopySource={"Bucket": source_bucket, "Key": source_key},
                CopySourceRange=f"bytes={first_byte}-{last_byte}",
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to copy part") from exc

        etag = response.get("CopyPartResult", {}).get("ETag")
        if not etag:
            raise StorageError("S3 response missing copied part ETag")
        return str(etag)

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to get object metadata") from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def get_object(
        self,
        *,
        bucket: str,
        object_key: str,
        range_header: str | None = None,
    ) -> BinaryIO:
        """Open the object content as a streaming body."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if range_header:
            params["Range"] = range_header

        try:
            response = self._client.get_object(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to get object") from exc

        return response["Body"]

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to delete object") from exc

    def delete_objects(
        self, *, bucket: str, object_keys: Sequence[str]
    ) -> list[DeleteFailure]:
        """Delete up to 1000 objects in one request."""
        try:
            response = self._client.delete_objects(
                Bucket=bucket,
                Delete={
                    "Objects": [{"Key": key} for key in object_keys],
                    "Quiet": True,
                },
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to delete objects") from exc

        return [
            DeleteFailure(
                key=str(error.get("Key")),
                code=error.get("Code"),
                message=error.get("Message"),
            )
            for error in response.get("Errors", [])
        ]

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str,
        max_keys: int,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """Fetch one page of the keys starting with ``prefix``."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": int(max_keys),
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self._client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to list objects") from exc

        return ObjectListing(
            objects=[
                ListedObject(key=str(item["Key"]), size_bytes=item.get("Size"))
                for item in response.get("Contents", [])
            ],
            is_truncated=bool(response.get("IsTruncated")),
            next_continuation_token=response.get("NextContinuationToken"),
        )

    def head_bucket(self, *, bucket: str) -> None:
        """Check that the bucket exists and is accessible."""
        try:
            self._client.head_bucket(Bucket=bucket)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, "Failed to access bucket") from exc
