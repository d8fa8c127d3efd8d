"""Tests for S3 storage client."""

import io
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from blobstore.infra.storage.client import (
    CompletedPart,
    DeleteFailure,
    MultipartUpload,
    ObjectNotFoundError,
    StorageError,
    describe_error,
)
from blobstore.infra.storage.s3_client import S3StorageClient


def _client_error(code: str, status: int, operation: str = "Operation") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} message"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class TestS3StorageClient:
    """Test S3StorageClient implementation."""

    @pytest.fixture
    def mock_s3(self):
        """Mock boto3 S3 client."""
        mock_client = MagicMock()
        with patch.object(S3StorageClient, "_build_client", return_value=mock_client):
            yield mock_client

    @pytest.fixture
    def mock_settings(self):
        """Create mock settings for S3."""
        settings = MagicMock()
        settings.S3_ENDPOINT_URL = "http://localhost:9000"
        settings.S3_REGION = "us-east-1"
        settings.S3_ACCESS_KEY_ID = "test-key"
        settings.S3_SECRET_ACCESS_KEY = "test-secret"
        settings.S3_USE_SSL = False
        settings.S3_ADDRESSING_STYLE = "path"
        settings.S3_MAX_ATTEMPTS = 3
        settings.S3_CONNECT_TIMEOUT = 10
        settings.S3_READ_TIMEOUT = 60
        return settings

    @pytest.fixture
    def client(self, mock_s3, mock_settings):
        """Create S3StorageClient with mocked boto3."""
        return S3StorageClient(settings=mock_settings)

    def test_build_client_uses_settings(self, mock_settings):
        """Test boto3 client construction from settings."""
        with patch("blobstore.infra.storage.s3_client.boto3.client") as boto_client:
            S3StorageClient(settings=mock_settings)

        kwargs = boto_client.call_args[1]
        assert boto_client.call_args[0] == ("s3",)
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["use_ssl"] is False
        config = kwargs["config"]
        assert config.s3 == {"addressing_style": "path"}
        assert config.retries == {"max_attempts": 3, "mode": "standard"}
        assert config.connect_timeout == 10
        assert config.read_timeout == 60

    def test_put_object(self, client, mock_s3):
        """Test simple upload."""
        mock_s3.put_object.return_value = {"ETag": '"etag"'}

        etag = client.put_object(bucket="test-bucket", object_key="test/key", body=b"data")

        assert etag == '"etag"'
        mock_s3.put_object.assert_called_once_with(
            Bucket="test-bucket", Key="test/key", Body=b"data"
        )

    def test_put_object_if_none_match(self, client, mock_s3):
        """Test conditional upload sends IfNoneMatch."""
        mock_s3.put_object.return_value = {"ETag": '"etag"'}

        client.put_object(
            bucket="test-bucket", object_key="test/key", body=b"data", if_none_match="*"
        )

        assert mock_s3.put_object.call_args[1]["IfNoneMatch"] == "*"

    def test_put_object_precondition_failed(self, client, mock_s3):
        """Test 412 is reported as a precondition failure."""
        mock_s3.put_object.side_effect = _client_error("PreconditionFailed", 412)

        with pytest.raises(StorageError, match="Failed to put object") as excinfo:
            client.put_object(
                bucket="test-bucket", object_key="test/key", body=b"d", if_none_match="*"
            )

        assert excinfo.value.is_precondition_failed
        assert excinfo.value.code == "PreconditionFailed"
        assert not isinstance(excinfo.value, ObjectNotFoundError)

    def test_create_multipart_upload(self, client, mock_s3):
        """Test initiating multipart upload."""
        mock_s3.create_multipart_upload.return_value = {
            "UploadId": "test-upload-id",
            "Bucket": "test-bucket",
            "Key": "test/key",
        }

        result = client.create_multipart_upload(
            bucket="test-bucket",
            object_key="test/key",
            content_type="application/pdf",
            metadata={"owner": "alice"},
        )

        assert isinstance(result, MultipartUpload)
        assert result.upload_id == "test-upload-id"
        assert result.bucket == "test-bucket"
        assert result.object_key == "test/key"

        mock_s3.create_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            ContentType="application/pdf",
            Metadata={"owner": "alice"},
        )

    def test_create_multipart_upload_missing_upload_id(self, client, mock_s3):
        """Test error when S3 response missing UploadId."""
        mock_s3.create_multipart_upload.return_value = {}

        with pytest.raises(StorageError, match="S3 response missing UploadId"):
            client.create_multipart_upload(bucket="test-bucket", object_key="test/key")

    def test_create_multipart_upload_exception(self, client, mock_s3):
        """Test error handling when create_multipart_upload fails."""
        mock_s3.create_multipart_upload.side_effect = _client_error("InternalError", 500)

        with pytest.raises(StorageError, match="Failed to create multipart upload") as excinfo:
            client.create_multipart_upload(bucket="test-bucket", object_key="test/key")

        assert excinfo.value.status_code == 500

    def test_upload_part(self, client, mock_s3):
        """Test uploading one part."""
        mock_s3.upload_part.return_value = {"ETag": '"part-etag"'}
        body = io.BytesIO(b"chunk")

        etag = client.upload_part(
            bucket="test-bucket",
            object_key="test/key",
            upload_id="test-upload-id",
            part_number=3,
            body=body,
            content_length=5,
        )

        assert etag == '"part-etag"'
        mock_s3.upload_part.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            UploadId="test-upload-id",
            PartNumber=3,
            Body=body,
            ContentLength=5,
        )

    def test_upload_part_missing_etag(self, client, mock_s3):
        """Test error when S3 response misses the part ETag."""
        mock_s3.upload_part.return_value = {}

        with pytest.raises(StorageError, match="missing part ETag"):
            client.upload_part(
                bucket="test-bucket",
                object_key="test/key",
                upload_id="test-upload-id",
                part_number=1,
                body=io.BytesIO(b"x"),
                content_length=1,
            )

    def test_complete_multipart_upload(self, client, mock_s3):
        """Test completing multipart upload."""
        parts = [
            CompletedPart(part_number=2, etag="etag2"),
            CompletedPart(part_number=1, etag="etag1"),
        ]

        client.complete_multipart_upload(
            bucket="test-bucket",
            object_key="test/key",
            upload_id="test-upload-id",
            parts=parts,
        )

        # Verify the parts are sorted by part_number
        call_args = mock_s3.complete_multipart_upload.call_args
        assert call_args[1]["Bucket"] == "test-bucket"
        assert call_args[1]["Key"] == "test/key"
        assert call_args[1]["UploadId"] == "test-upload-id"
        assert call_args[1]["MultipartUpload"]["Parts"] == [
            {"ETag": "etag1", "PartNumber": 1},
            {"ETag": "etag2", "PartNumber": 2},
        ]
        assert "IfNoneMatch" not in call_args[1]

    def test_complete_multipart_upload_if_none_match(self, client, mock_s3):
        """Test conditional completion."""
        client.complete_multipart_upload(
            bucket="test-bucket",
            object_key="test/key",
            upload_id="test-upload-id",
            parts=[CompletedPart(part_number=1, etag="etag1")],
            if_none_match="*",
        )

        assert mock_s3.complete_multipart_upload.call_args[1]["IfNoneMatch"] == "*"

    def test_complete_multipart_upload_exception(self, client, mock_s3):
        """Test error handling when complete_multipart_upload fails."""
        mock_s3.complete_multipart_upload.side_effect = _client_error("InternalError", 500)

        with pytest.raises(StorageError, match="Failed to complete multipart upload"):
            client.complete_multipart_upload(
                bucket="test-bucket",
                object_key="test/key",
                upload_id="test-upload-id",
                parts=[CompletedPart(part_number=1, etag="etag1")],
            )

    def test_abort_multipart_upload(self, client, mock_s3):
        """Test aborting multipart upload."""
        client.abort_multipart_upload(
            bucket="test-bucket",
            object_key="test/key",
            upload_id="test-upload-id",
        )

        mock_s3.abort_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            UploadId="test-upload-id",
        )

    def test_abort_multipart_upload_exception(self, client, mock_s3):
        """Test error handling when abort_multipart_upload fails."""
        mock_s3.abort_multipart_upload.side_effect = _client_error("NoSuchUpload", 404)

        with pytest.raises(StorageError, match="Failed to abort multipart upload"):
            client.abort_multipart_upload(
                bucket="test-bucket",
                object_key="test/key",
                upload_id="test-upload-id",
            )

    def test_copy_object(self, client, mock_s3):
        """Test server-side copy keeps metadata."""
        client.copy_object(
            source_bucket="src-bucket",
            source_key="src/key",
            bucket="test-bucket",
            object_key="test/key",
        )

        mock_s3.copy_object.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            CopySource={"Bucket": "src-bucket", "Key": "src/key"},
            MetadataDirective="COPY",
        )

    def test_upload_part_copy(self, client, mock_s3):
        """Test ranged part copy."""
        mock_s3.upload_part_copy.return_value = {"CopyPartResult": {"ETag": '"copy-etag"'}}

        etag = client.upload_part_copy(
            source_bucket="src-bucket",
            source_key="src/key",
            bucket="test-bucket",
            object_key="test/key",
            upload_id="test-upload-id",
            part_number=2,
            first_byte=100,
            last_byte=199,
        )

        assert etag == '"copy-etag"'
        assert mock_s3.upload_part_copy.call_args[1]["CopySourceRange"] == "bytes=100-199"
        assert mock_s3.upload_part_copy.call_args[1]["PartNumber"] == 2

    def test_upload_part_copy_missing_etag(self, client, mock_s3):
        """Test error when the copy result has no ETag."""
        mock_s3.upload_part_copy.return_value = {}

        with pytest.raises(StorageError, match="missing copied part ETag"):
            client.upload_part_copy(
                source_bucket="src-bucket",
                source_key="src/key",
                bucket="test-bucket",
                object_key="test/key",
                upload_id="test-upload-id",
                part_number=1,
                first_byte=0,
                last_byte=9,
            )

    def test_head_object(self, client, mock_s3):
        """Test getting object metadata."""
        mock_s3.head_object.return_value = {
            "ContentLength": 1024,
            "ETag": '"test-etag"',
            "ContentType": "application/pdf",
            "Metadata": {"owner": "alice"},
        }

        result = client.head_object(bucket="test-bucket", object_key="test/key")

        assert result.size_bytes == 1024
        assert result.etag == '"test-etag"'
        assert result.content_type == "application/pdf"
        assert result.metadata == {"owner": "alice"}
        mock_s3.head_object.assert_called_once_with(Bucket="test-bucket", Key="test/key")

    def test_head_object_missing_size(self, client, mock_s3):
        """Test getting object metadata when ContentLength is missing."""
        mock_s3.head_object.return_value = {"ETag": '"test-etag"'}

        result = client.head_object(bucket="test-bucket", object_key="test/key")

        assert result.size_bytes == 0
        assert result.metadata == {}

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    def test_head_object_not_found(self, client, mock_s3, code):
        """Test missing objects map to ObjectNotFoundError."""
        mock_s3.head_object.side_effect = _client_error(code, 404, "HeadObject")

        with pytest.raises(ObjectNotFoundError, match="Failed to get object metadata"):
            client.head_object(bucket="test-bucket", object_key="test/key")

    def test_head_object_transport_error(self, client, mock_s3):
        """Test botocore errors without HTTP status."""
        mock_s3.head_object.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:9000"
        )

        with pytest.raises(StorageError) as excinfo:
            client.head_object(bucket="test-bucket", object_key="test/key")

        assert excinfo.value.status_code is None
        assert isinstance(excinfo.value.__cause__, EndpointConnectionError)

    def test_missing_bucket_is_not_a_missing_object(self, client, mock_s3):
        """Test NoSuchBucket stays a plain StorageError."""
        mock_s3.get_object.side_effect = _client_error("NoSuchBucket", 404, "GetObject")

        with pytest.raises(StorageError) as excinfo:
            client.get_object(bucket="test-bucket", object_key="test/key")

        assert not isinstance(excinfo.value, ObjectNotFoundError)
        assert excinfo.value.code == "NoSuchBucket"

    def test_get_object_with_range(self, client, mock_s3):
        """Test ranged download returns the streaming body."""
        body = io.BytesIO(b"abc")
        mock_s3.get_object.return_value = {"Body": body}

        result = client.get_object(
            bucket="test-bucket", object_key="test/key", range_header="bytes=0-2"
        )

        assert result is body
        mock_s3.get_object.assert_called_once_with(
            Bucket="test-bucket", Key="test/key", Range="bytes=0-2"
        )

    def test_get_object_not_found(self, client, mock_s3):
        """Test missing object on download."""
        mock_s3.get_object.side_effect = _client_error("NoSuchKey", 404, "GetObject")

        with pytest.raises(ObjectNotFoundError, match="Failed to get object"):
            client.get_object(bucket="test-bucket", object_key="test/key")

    def test_delete_object(self, client, mock_s3):
        """Test deleting an object."""
        client.delete_object(bucket="test-bucket", object_key="test/key")

        mock_s3.delete_object.assert_called_once_with(Bucket="test-bucket", Key="test/key")

    def test_delete_object_exception(self, client, mock_s3):
        """Test error handling when delete_object fails."""
        mock_s3.delete_object.side_effect = _client_error("AccessDenied", 403)

        with pytest.raises(StorageError, match="Failed to delete object"):
            client.delete_object(bucket="test-bucket", object_key="test/key")

    def test_delete_objects_reports_errors(self, client, mock_s3):
        """Test bulk delete returns per-key failures."""
        mock_s3.delete_objects.return_value = {
            "Errors": [{"Key": "b", "Code": "AccessDenied", "Message": "Access Denied"}]
        }

        failures = client.delete_objects(bucket="test-bucket", object_keys=["a", "b"])

        assert failures == [DeleteFailure(key="b", code="AccessDenied", message="Access Denied")]
        mock_s3.delete_objects.assert_called_once_with(
            Bucket="test-bucket",
            Delete={"Objects": [{"Key": "a"}, {"Key": "b"}], "Quiet": True},
        )

    def test_list_objects(self, client, mock_s3):
        """Test listing one page."""
        mock_s3.list_objects_v2.return_value = {
            "Contents": [{"Key": "p/a", "Size": 3}, {"Key": "p/b", "Size": 4}],
            "IsTruncated": True,
            "NextContinuationToken": "token-2",
        }

        listing = client.list_objects(
            bucket="test-bucket", prefix="p/", max_keys=2, continuation_token="token-1"
        )

        assert [item.key for item in listing.objects] == ["p/a", "p/b"]
        assert listing.objects[0].size_bytes == 3
        assert listing.is_truncated
        assert listing.next_continuation_token == "token-2"
        mock_s3.list_objects_v2.assert_called_once_with(
            Bucket="test-bucket", Prefix="p/", MaxKeys=2, ContinuationToken="token-1"
        )

    def test_list_objects_empty(self, client, mock_s3):
        """Test listing without results."""
        mock_s3.list_objects_v2.return_value = {"IsTruncated": False}

        listing = client.list_objects(bucket="test-bucket", prefix="p/", max_keys=10)

        assert listing.objects == []
        assert not listing.is_truncated
        assert "ContinuationToken" not in mock_s3.list_objects_v2.call_args[1]

    def test_head_bucket_forbidden(self, client, mock_s3):
        """Test bucket access errors keep the HTTP status."""
        mock_s3.head_bucket.side_effect = _client_error("403", 403, "HeadBucket")

        with pytest.raises(StorageError, match="Failed to access bucket") as excinfo:
            client.head_bucket(bucket="test-bucket")

        assert excinfo.value.status_code == 403


def test_describe_error_uses_root_cause():
    root = ValueError("bad value")
    try:
        try:
            raise root
        except ValueError as exc:
            raise StorageError("wrapped") from exc
    except StorageError as exc:
        assert describe_error(exc) == "ValueError: bad value"
