from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class WriteMode(str, Enum):
    """How a write treats an existing blob at the target path."""

    OVERWRITE = "overwrite"
    # Enforced as a precondition on the finalizing request, never as a
    # separate existence check.
    CREATE_NEW = "create_new"


@dataclass(frozen=True, slots=True)
class ByteRange:
    """Inclusive start offset plus an optional length, in bytes."""

    start: int = 0
    length: int | None = None

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("start must not be negative")
        if self.length is not None and self.length <= 0:
            raise ValueError("length must be positive")

    @property
    def end(self) -> int | None:
        """Last byte offset covered by the range, inclusive."""
        if self.length is None:
            return None
        return self.start + self.length - 1

    def to_header(self) -> str:
        """Render as an HTTP ``Range`` header value."""
        end = self.end
        return f"bytes={self.start}-{'' if end is None else end}"
