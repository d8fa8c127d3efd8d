"""Mapping between blob paths and flat S3 keys under a store prefix."""

from __future__ import annotations

import re

from blobstore.domain.paths import SEPARATOR, BlobPath, InvalidBlobPathError

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def normalize_prefix(prefix: str | None) -> str:
    """Trim whitespace and slashes and collapse repeated slashes.

    A blank prefix normalizes to an empty string, meaning "no prefix".
    """
    if prefix is None:
        return ""
    cleaned = _REPEATED_SEPARATORS.sub(SEPARATOR, prefix.strip())
    return cleaned.strip(SEPARATOR)


class KeyMapper:
    """Builds S3 keys from blob paths and parses them back."""

    __slots__ = ("_prefix",)

    def __init__(self, prefix: str | None = None) -> None:
        self._prefix = normalize_prefix(prefix)

    @property
    def prefix(self) -> str:
        return self._prefix

    def build_key(self, path: BlobPath) -> str:
        if self._prefix:
            return f"{self._prefix}{SEPARATOR}{path}"
        return str(path)

    def key_prefix_for(self, path: BlobPath) -> str:
        """Key prefix shared by every descendant of ``path``, ending with a slash."""
        key = self.build_key(path)
        if not key.endswith(SEPARATOR):
            key += SEPARATOR
        return key

    def key_to_path(self, key: str) -> BlobPath | None:
        """Parse a raw key back into a path.

        Returns None when the key lies outside this prefix or does not form a
        valid path; callers are expected to skip such keys.
        """
        remainder = key
        if self._prefix:
            expected = self._prefix + SEPARATOR
            if not key.startswith(expected):
                return None
            remainder = key[len(expected):]
        try:
            return BlobPath.parse(remainder)
        except InvalidBlobPathError:
            return None

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, KeyMapper):
            return NotImplemented
        return self._prefix == other._prefix

    def __hash__(self) -> int:
        return hash(self._prefix)

    def __repr__(self) -> str:
        return f"KeyMapper(prefix={self._prefix!r})"
