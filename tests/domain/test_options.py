import pytest

from blobstore.domain.errors import PartialDeleteError
from blobstore.domain.options import ByteRange, WriteMode
from blobstore.infra.storage.client import DeleteFailure


def test_byte_range_header_with_length():
    assert ByteRange(start=10, length=5).to_header() == "bytes=10-14"


def test_byte_range_header_open_ended():
    assert ByteRange(start=7).to_header() == "bytes=7-"
    assert ByteRange(start=7).end is None


@pytest.mark.parametrize("start,length", [(-1, None), (0, 0), (3, -2)])
def test_byte_range_rejects_invalid_values(start, length):
    with pytest.raises(ValueError):
        ByteRange(start=start, length=length)


def test_write_mode_values():
    assert WriteMode("create_new") is WriteMode.CREATE_NEW
    assert WriteMode.OVERWRITE.value == "overwrite"


def test_partial_delete_error_message():
    error = PartialDeleteError(
        [
            DeleteFailure(key="p/a", code="AccessDenied", message="Access Denied"),
            DeleteFailure(key="p/b", code="InternalError", message="Oops"),
        ]
    )

    assert str(error) == (
        "Failed to delete some blobs: "
        "key='p/a', code='AccessDenied', message='Access Denied'; "
        "key='p/b', code='InternalError', message='Oops'"
    )
    assert error.failed_keys == ["p/a", "p/b"]
