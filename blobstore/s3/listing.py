"""Lazy, paginated listing of the blobs below an S3 key prefix."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Iterator

from blobstore.domain.errors import BlobStoreError
from blobstore.infra.storage.client import StorageError

if TYPE_CHECKING:
    from blobstore.s3.store import S3Blob, S3BlobStore

logger = logging.getLogger("blobstore.s3")

# Maximum allowed by S3.
DEFAULT_PAGE_SIZE = 1000


class _CursorState(Enum):
    NO_PAGE = "no_page"
    PAGE_BUFFERED = "page_buffered"
    EXHAUSTED = "exhausted"


class BlobIterator(Iterator["S3Blob"]):
    """Single-pass iterator fetching listing pages on demand.

    Directory markers (keys ending with a slash) and keys that do not map to
    a valid blob path are skipped. Fetch failures surface from whichever
    call triggered the fetch; nothing is retried here.
    """

    def __init__(
        self,
        store: "S3BlobStore",
        prefix: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._store = store
        self._prefix = prefix
        self._page_size = page_size
        self._state = _CursorState.NO_PAGE
        self._page: list["S3Blob"] = []
        self._index = 0
        self._continuation_token: str | None = None
        self._has_more_pages = True

    @property
    def prefix(self) -> str:
        return self._prefix

    def has_next(self) -> bool:
        """Return whether another blob is available, fetching pages as needed."""
        while True:
            if self._state is _CursorState.EXHAUSTED:
                return False
            if self._state is _CursorState.PAGE_BUFFERED:
                if self._index < len(self._page):
                    return True
                if not self._has_more_pages:
                    self._release()
                    return False
                self._state = _CursorState.NO_PAGE
            self._fetch_page()

    def __iter__(self) -> "BlobIterator":
        return self

    def __next__(self) -> "S3Blob":
        if not self.has_next():
            raise StopIteration
        blob = self._page[self._index]
        self._index += 1
        return blob

    def close(self) -> None:
        self._release()

    def __enter__(self) -> "BlobIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _release(self) -> None:
        self._state = _CursorState.EXHAUSTED
        self._page = []
        self._index = 0

    def _fetch_page(self) -> None:
        store = self._store
        try:
            listing = store.client.list_objects(
                bucket=store.bucket,
                prefix=self._prefix,
                max_keys=self._page_size,
                continuation_token=self._continuation_token,
            )
        except StorageError as exc:
            raise BlobStoreError(
                f"Failed to list blobs in bucket [{store.bucket}] under prefix [{self._prefix}]"
            ) from exc

        page: list["S3Blob"] = []
        for item in listing.objects:
            key = item.key
            if key.endswith("/"):
                continue
            path = store.key_mapper.key_to_path(key)
            if path is None:
                logger.warning(
                    "invalid_blob_key bucket=%s key=%s",
                    store.bucket,
                    key,
                    extra={"extra": {"bucket": store.bucket, "key": key}},
                )
                continue
            page.append(store.get_blob(path))

        self._page = page
        self._index = 0
        self._continuation_token = listing.next_continuation_token
        self._has_more_pages = bool(listing.is_truncated and listing.next_continuation_token)
        self._state = _CursorState.PAGE_BUFFERED
