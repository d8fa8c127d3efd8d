"""Local file system blob store."""

from .store import FileSystemBlob, FileSystemBlobStore

__all__ = ["FileSystemBlob", "FileSystemBlobStore"]
