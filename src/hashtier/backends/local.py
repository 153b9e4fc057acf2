"""Filesystem-based content store.

This module provides the local tier: content files laid out under a base
directory by their sharded content hash. It requires no external
dependencies and doubles as the plain local-only file system that the
tiered file system decorates.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from hashtier.base import (
    ContentUnreadableError,
    FileSystem,
    HandleType,
    InvalidContentHashError,
    StoredFileRef,
    content_path_from_hash,
    copy_stream,
    wrap_handle,
)

logger = logging.getLogger(__name__)

DEFAULT_DIR_PERMISSIONS = 0o2777
DEFAULT_FILE_PERMISSIONS = 0o666
DEFAULT_CHUNK_SIZE = 64 * 1024


def atomic_write_stream(
    path: Path | str,
    source: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    file_permissions: int | None = None,
) -> int:
    """Write a stream to a file using the write-to-temp-then-rename pattern.

    The temp file is created in the target directory, so the final rename is
    atomic and readers never observe a partially written file. On failure the
    temp file is removed and the target is left untouched.

    Args:
        path: Target file path. Its directory must exist.
        source: Stream to copy from.
        chunk_size: Bytes per read.
        file_permissions: Mode applied before the rename.

    Returns:
        Number of bytes written.

    Raises:
        OSError: If writing or renaming fails.
    """
    target = Path(path)
    fd, temp_name = tempfile.mkstemp(
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as temp_file:
            written = copy_stream(source, temp_file, chunk_size)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        if file_permissions is not None:
            os.chmod(temp_path, file_permissions)
        temp_path.replace(target)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    return written


def file_digest(
    path: Path | str,
    algorithm: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Compute the hex digest of a file with a hashlib algorithm."""
    hasher = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


class LocalFileStore(FileSystem):
    """Local content store keyed by content hash.

    Files live at ``<filedir>/<h[0:2]>/<h[2:4]>/<h>``.

    Example:
        >>> store = LocalFileStore("/var/data/filedir")
        >>> store.path_for("da39a3ee5e6b4b0d3255bfef95601890afd80709")
        '/var/data/filedir/da/39/da39a3ee5e6b4b0d3255bfef95601890afd80709'
    """

    def __init__(
        self,
        filedir: str | Path,
        dir_permissions: int = DEFAULT_DIR_PERMISSIONS,
        file_permissions: int = DEFAULT_FILE_PERMISSIONS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        hash_algorithm: str = "sha1",
    ) -> None:
        """Initialize the local store.

        Args:
            filedir: Base directory for content files.
            dir_permissions: Mode for shard directories created by the store.
            file_permissions: Mode for content files written by the store.
            chunk_size: Bytes per read when streaming.
            hash_algorithm: hashlib algorithm that produced the content hashes.
        """
        self._filedir = Path(filedir)
        self.dir_permissions = dir_permissions
        self.file_permissions = file_permissions
        self.chunk_size = chunk_size
        self.hash_algorithm = hash_algorithm

    @property
    def filedir(self) -> Path:
        """Get the base directory."""
        return self._filedir

    # -------------------------------------------------------------------------
    # Path primitives
    # -------------------------------------------------------------------------

    def path_for(self, content_hash: str) -> str:
        """Get the local path for a content hash. Does not check existence."""
        return str(self._filedir / content_path_from_hash(content_hash))

    def is_path_readable(self, path: str) -> bool:
        """Whether a local path is a regular file the process can read."""
        return os.path.isfile(path) and os.access(path, os.R_OK)

    def prepare_parent(self, path: str) -> None:
        """Create the shard directories above a local path.

        Raises:
            OSError: If a directory cannot be created.
        """
        parent = Path(path).parent
        missing: list[Path] = []
        while not parent.exists():
            missing.append(parent)
            parent = parent.parent

        for directory in reversed(missing):
            try:
                directory.mkdir()
            except FileExistsError:
                continue
            os.chmod(directory, self.dir_permissions)

    def open_path(self, path: str) -> BinaryIO:
        """Open a local path for binary reading."""
        return open(path, "rb")

    def read_path_bytes(self, path: str) -> bytes:
        """Read a whole local file."""
        with open(path, "rb") as f:
            return f.read()

    def write_from(self, content_hash: str, source: BinaryIO) -> int:
        """Atomically write content for a hash from a stream.

        Raises:
            OSError: If writing fails.
        """
        path = self.path_for(content_hash)
        self.prepare_parent(path)
        return atomic_write_stream(
            path,
            source,
            chunk_size=self.chunk_size,
            file_permissions=self.file_permissions,
        )

    def delete(self, content_hash: str) -> bool:
        """Remove the local copy of a content hash.

        Returns:
            True if the file was removed, False otherwise.
        """
        path = self.path_for(content_hash)
        try:
            os.unlink(path)
        except OSError as e:
            logger.warning(f"Failed to delete local copy {path}: {e}")
            return False
        return True

    def digest(self, content_hash: str, algorithm: str | None = None) -> str:
        """Compute a digest of the local copy.

        Args:
            content_hash: The content hash.
            algorithm: hashlib algorithm, defaults to the store's algorithm.

        Raises:
            OSError: If the local copy cannot be read.
        """
        return file_digest(
            self.path_for(content_hash),
            algorithm or self.hash_algorithm,
            self.chunk_size,
        )

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def _readable_path(self, file_ref: StoredFileRef) -> str:
        file_ref.trigger_external_sync()
        path = self.path_for(file_ref.get_content_hash())
        if not self.is_path_readable(path):
            raise ContentUnreadableError(path, file_ref.get_content_hash())
        return path

    def is_readable(self, file_ref: StoredFileRef) -> bool:
        file_ref.trigger_external_sync()
        return self.is_readable_by_hash(file_ref.get_content_hash())

    def is_readable_by_hash(self, content_hash: str) -> bool:
        try:
            path = self.path_for(content_hash)
        except InvalidContentHashError:
            return False
        return self.is_path_readable(path)

    def send_file(self, file_ref: StoredFileRef, output: BinaryIO) -> int:
        path = self._readable_path(file_ref)
        with self.open_path(path) as handle:
            return copy_stream(
                handle, output, self.chunk_size, limit=file_ref.get_filesize()
            )

    def read_all_bytes(self, file_ref: StoredFileRef) -> bytes:
        return self.read_path_bytes(self._readable_path(file_ref))

    def open_handle(
        self,
        file_ref: StoredFileRef,
        handle_type: HandleType = HandleType.BINARY,
    ) -> BinaryIO:
        return wrap_handle(self.open_path(self._readable_path(file_ref)), handle_type)
