from __future__ import annotations

import pytest

from blobstore.common.config import get_settings
from blobstore.s3.store import S3BlobStore
from tests.s3.mock_storage import MockStorageClient

BUCKET = "test-bucket"

# Small part sizes keep multipart tests cheap; the store only requires them
# to be positive.
UPLOAD_PART_SIZE = 16
COPY_PART_SIZE = 32


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def mock_storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def store(mock_storage: MockStorageClient) -> S3BlobStore:
    return S3BlobStore(
        name="attachments",
        bucket=BUCKET,
        client=mock_storage,
        key_prefix="wiki/attachments",
        upload_part_size=UPLOAD_PART_SIZE,
        copy_part_size=COPY_PART_SIZE,
    )
