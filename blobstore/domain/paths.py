"""Hierarchical blob paths.

A ``BlobPath`` is an immutable sequence of non-empty segments. Stores are
free to interpret the segments as they need (S3 keys, file system paths),
but every path is validated once at construction so that no store ever
sees a traversal component.
"""

from __future__ import annotations

from typing import ClassVar, Iterable

SEPARATOR = "/"

_TRAVERSAL_SEGMENTS = frozenset({".", ".."})


class InvalidBlobPathError(ValueError):
    """Raised when a path or one of its segments is malformed."""


def _validate_segment(segment: object, index: int) -> str:
    if segment is None:
        raise InvalidBlobPathError(f"Segment at index {index} is null")
    if not isinstance(segment, str):
        raise InvalidBlobPathError(
            f"Segment at index {index} must be a string, got {type(segment).__name__}"
        )
    if not segment:
        raise InvalidBlobPathError(f"Segment at index {index} is empty")
    if segment in _TRAVERSAL_SEGMENTS:
        raise InvalidBlobPathError(
            f"Segment at index {index} is a directory traversal component: {segment}"
        )
    if SEPARATOR in segment or "\\" in segment:
        raise InvalidBlobPathError(
            f"Segment at index {index} contains an illegal path separator: {segment}"
        )
    return segment


class BlobPath:
    """Immutable, normalized path identifying a blob within a store."""

    ROOT: ClassVar["BlobPath"]

    __slots__ = ("_segments", "_canonical")

    def __init__(self, segments: Iterable[str] = ()) -> None:
        validated = tuple(
            _validate_segment(segment, index) for index, segment in enumerate(segments)
        )
        self._segments = validated
        self._canonical = SEPARATOR.join(validated)

    @classmethod
    def of(cls, segments: Iterable[str]) -> "BlobPath":
        return cls(segments)

    @classmethod
    def parse(cls, text: str) -> "BlobPath":
        """Build a path from its slash-delimited form.

        Empty segments (leading, trailing or repeated slashes) are dropped;
        traversal components are rejected.

        Raises:
            InvalidBlobPathError: If the text is None or contains an invalid segment.
        """
        if text is None:
            raise InvalidBlobPathError("path must not be null")
        if not text:
            return cls.ROOT
        return cls(part for part in text.split(SEPARATOR) if part)

    @property
    def segments(self) -> tuple[str, ...]:
        return self._segments

    @property
    def name(self) -> str:
        """Final segment, or an empty string for the root."""
        return self._segments[-1] if self._segments else ""

    @property
    def parent(self) -> "BlobPath":
        if len(self._segments) <= 1:
            return BlobPath.ROOT
        return BlobPath(self._segments[:-1])

    @property
    def is_root(self) -> bool:
        return not self._segments

    def resolve(self, *more_segments: str) -> "BlobPath":
        if not more_segments:
            return self
        return BlobPath(self._segments + tuple(more_segments))

    def __str__(self) -> str:
        return self._canonical

    def __repr__(self) -> str:
        return f"BlobPath({self._canonical!r})"

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, BlobPath):
            return NotImplemented
        return self._segments == other._segments

    def __hash__(self) -> int:
        return hash(self._segments)


BlobPath.ROOT = BlobPath()
