"""Blob store keeping each blob as a file below a root directory.

Blob path segments map one to one onto directories, the last segment being
the file name. Directories are created on write and removed again once a
delete leaves them empty.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
from contextlib import closing
from pathlib import Path
from typing import BinaryIO, Iterator

from blobstore.domain.errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStoreError,
)
from blobstore.domain.options import ByteRange, WriteMode
from blobstore.domain.paths import BlobPath, InvalidBlobPathError
from blobstore.domain.store import Blob, BlobStore
from blobstore.infra.observability.metrics import track_operation

logger = logging.getLogger("blobstore.filesystem")

BACKEND = "filesystem"

_COPY_BUFFER_SIZE = 1024 * 1024


class _RangeReader(io.RawIOBase):
    """Reads at most ``remaining`` bytes from an already positioned file."""

    def __init__(self, raw: BinaryIO, remaining: int) -> None:
        self._raw = raw
        self._remaining = remaining

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._remaining <= 0:
            return 0
        view = memoryview(buffer)[: self._remaining]
        count = self._raw.readinto(view) or 0
        self._remaining -= count
        return count

    def close(self) -> None:
        try:
            self._raw.close()
        finally:
            super().close()


class FileSystemBlobStore:
    """Blob store rooted at a local directory."""

    def __init__(self, name: str, root: str | os.PathLike[str]) -> None:
        self._name = name
        self._root = Path(root).absolute()

    @property
    def name(self) -> str:
        return self._name

    @property
    def hint(self) -> str:
        return BACKEND

    @property
    def root(self) -> Path:
        return self._root

    def file_path(self, path: BlobPath) -> Path:
        return self._root.joinpath(*path.segments)

    def get_blob(self, path: BlobPath) -> "FileSystemBlob":
        return FileSystemBlob(self, path)

    def list_blobs(self, path: BlobPath) -> Iterator["FileSystemBlob"]:
        """Lazily yield every file below ``path``, in sorted order."""
        directory = self.file_path(path)
        if not directory.is_dir():
            return
        for current, dirnames, filenames in os.walk(directory):
            dirnames.sort()
            relative = Path(current).relative_to(directory).parts
            for filename in sorted(filenames):
                try:
                    blob_path = path.resolve(*relative, filename)
                except InvalidBlobPathError:
                    logger.warning(
                        "invalid_blob_file root=%s file=%s",
                        self._root,
                        os.path.join(current, filename),
                        extra={"extra": {"root": str(self._root), "file": filename}},
                    )
                    continue
                yield self.get_blob(blob_path)

    def copy_blob(
        self,
        source_path: BlobPath,
        target_path: BlobPath,
        source_store: BlobStore | None = None,
    ) -> Blob:
        origin = source_store if source_store is not None else self
        if origin == self and source_path == target_path:
            raise BlobStoreError(
                f"Cannot copy blob onto itself: {source_path}", path=source_path
            )

        target = self.get_blob(target_path)
        with track_operation(BACKEND, "copy"):
            try:
                with closing(origin.get_blob(source_path).get_stream()) as reader:
                    target.write_from_stream(reader, WriteMode.CREATE_NEW)
            except BlobStoreError:
                raise
            except Exception as exc:
                raise BlobStoreError(
                    f"Failed to copy blob {source_path} to {target_path}",
                    path=target_path,
                ) from exc
        return target

    def move_blob(
        self,
        source_path: BlobPath,
        target_path: BlobPath,
        source_store: BlobStore | None = None,
    ) -> Blob:
        origin = source_store if source_store is not None else self
        target = self.copy_blob(source_path, target_path, origin)
        origin.delete_blob(source_path)
        return target

    def is_empty_directory(self, path: BlobPath) -> bool:
        blobs = self.list_blobs(path)
        try:
            return next(blobs, None) is None
        finally:
            blobs.close()

    def delete_blob(self, path: BlobPath) -> None:
        file_path = self.file_path(path)
        with track_operation(BACKEND, "delete"):
            try:
                file_path.unlink(missing_ok=True)
            except OSError as exc:
                raise BlobStoreError(f"Failed to delete blob: {path}", path=path) from exc
        self.clean_up_parents(file_path)

    def delete_blobs(self, path: BlobPath) -> None:
        directory = self.file_path(path)
        if not directory.is_dir():
            return
        with track_operation(BACKEND, "delete_many"):
            try:
                if path.is_root:
                    for child in directory.iterdir():
                        if child.is_dir() and not child.is_symlink():
                            shutil.rmtree(child)
                        else:
                            child.unlink()
                else:
                    shutil.rmtree(directory)
            except OSError as exc:
                raise BlobStoreError(
                    f"Failed to delete blobs below: {path}", path=path
                ) from exc
        self.clean_up_parents(directory)

    def create_parents(self, file_path: Path) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)

    def clean_up_parents(self, file_path: Path) -> None:
        parent = file_path.parent
        while parent != self._root and self._root in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                # Not empty.
                return
            parent = parent.parent

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, FileSystemBlobStore):
            return NotImplemented
        return self._root == other._root

    def __hash__(self) -> int:
        return hash(self._root)

    def __repr__(self) -> str:
        return f"FileSystemBlobStore(name={self._name!r}, root={str(self._root)!r})"


class FileSystemBlob:
    __slots__ = ("_store", "_path", "_file_path")

    def __init__(self, store: FileSystemBlobStore, path: BlobPath) -> None:
        self._store = store
        self._path = path
        self._file_path = store.file_path(path)

    @property
    def store(self) -> FileSystemBlobStore:
        return self._store

    @property
    def path(self) -> BlobPath:
        return self._path

    @property
    def file_path(self) -> Path:
        return self._file_path

    def exists(self) -> bool:
        return self._file_path.is_file()

    def get_size(self) -> int:
        try:
            if not self._file_path.is_file():
                return -1
            return self._file_path.stat().st_size
        except FileNotFoundError:
            return -1
        except OSError as exc:
            raise BlobStoreError(
                f"Failed to get size of blob: {self._path}", path=self._path
            ) from exc

    def get_stream(self, byte_range: ByteRange | None = None) -> BinaryIO:
        try:
            handle = open(self._file_path, "rb")
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise BlobNotFoundError(self._path) from exc
        except OSError as exc:
            raise BlobStoreError(f"Failed to read blob: {self._path}", path=self._path) from exc

        if byte_range is None:
            return handle
        try:
            handle.seek(byte_range.start)
        except OSError as exc:
            handle.close()
            raise BlobStoreError(f"Failed to read blob: {self._path}", path=self._path) from exc
        if byte_range.length is None:
            return handle
        return io.BufferedReader(_RangeReader(handle, byte_range.length))

    def get_output_stream(self, write_mode: WriteMode = WriteMode.OVERWRITE) -> BinaryIO:
        """Open the blob file for writing.

        ``CREATE_NEW`` opens it with exclusive creation so an existing blob is
        detected here, before anything is written.
        """
        mode = "xb" if write_mode is WriteMode.CREATE_NEW else "wb"
        try:
            self._store.create_parents(self._file_path)
            return open(self._file_path, mode)
        except FileExistsError as exc:
            raise BlobAlreadyExistsError(self._path) from exc
        except OSError as exc:
            self._store.clean_up_parents(self._file_path)
            raise BlobStoreError(
                f"Failed to open blob for writing: {self._path}", path=self._path
            ) from exc

    def write_from_stream(
        self, reader: BinaryIO, write_mode: WriteMode = WriteMode.OVERWRITE
    ) -> None:
        """Copy ``reader`` into the blob; a failed copy leaves no partial file."""
        with track_operation(BACKEND, "write"):
            output = self.get_output_stream(write_mode)
            try:
                with output:
                    shutil.copyfileobj(reader, output, _COPY_BUFFER_SIZE)
            except Exception as exc:
                self._file_path.unlink(missing_ok=True)
                self._store.clean_up_parents(self._file_path)
                if isinstance(exc, BlobStoreError):
                    raise
                raise BlobStoreError(
                    f"Failed to write blob: {self._path}", path=self._path
                ) from exc

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, FileSystemBlob):
            return NotImplemented
        return self._file_path == other._file_path

    def __hash__(self) -> int:
        return hash(self._file_path)

    def __repr__(self) -> str:
        return f"FileSystemBlob(path={str(self._file_path)!r})"
