"""Base classes and interfaces for tiered content storage.

This module defines the exceptions, enums, protocols and abstract base classes
shared by the ledger, the storage backends and the tiered file system. The
layout follows the Repository pattern: concrete backends implement the ABCs,
the tiered file system composes them.
"""

from __future__ import annotations

import gzip
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    BinaryIO,
    Callable,
    Protocol,
    runtime_checkable,
)


# =============================================================================
# Exceptions
# =============================================================================


class StoreError(Exception):
    """Base exception for all store-related errors."""

    pass


class StoreNotFoundError(StoreError):
    """Raised when a requested object is not found in a store."""

    def __init__(self, item_type: str, identifier: str) -> None:
        self.item_type = item_type
        self.identifier = identifier
        super().__init__(f"{item_type} not found: {identifier}")


class StoreConnectionError(StoreError):
    """Raised when connection to a store backend fails."""

    def __init__(self, backend: str, message: str) -> None:
        self.backend = backend
        super().__init__(f"Failed to connect to {backend}: {message}")


class StoreReadError(StoreError):
    """Raised when reading from a store fails."""

    pass


class ContentUnreadableError(StoreError):
    """Raised by the read-guard when a local copy cannot be read.

    Carries the logical path, i.e. the path the local-only file system uses
    for the content hash, so the failure can be diagnosed on disk.
    """

    def __init__(self, path: str, content_hash: str) -> None:
        self.path = path
        self.content_hash = content_hash
        super().__init__(f"Cannot read stored file: {path}")


class LedgerError(StoreError):
    """Raised when the location ledger backend fails."""

    pass


class InvalidContentHashError(ValueError):
    """Raised when a value cannot be used as a content hash."""

    def __init__(self, content_hash: Any) -> None:
        self.content_hash = content_hash
        super().__init__(f"Invalid content hash: {content_hash!r}")


# =============================================================================
# Enums
# =============================================================================


class Tier(Enum):
    """Which backend(s) currently hold a content hash's bytes."""

    LOCAL = "local"  # Only in the local store
    DUPLICATED = "duplicated"  # In both stores
    EXTERNAL = "external"  # Only in the remote store


# No ledger entry means the content was never migrated.
DEFAULT_TIER = Tier.LOCAL


class RecoveryOutcome(Enum):
    """Outcome of a local content recovery attempt."""

    NOT_ATTEMPTED = "not_attempted"
    RECOVERED = "recovered"
    FAILED = "failed"


class HandleType(Enum):
    """Kind of handle returned by ``open_handle``."""

    BINARY = "binary"
    GZIP = "gzip"


# =============================================================================
# Content hashes
# =============================================================================

_HASH_PATTERN = re.compile(r"^[0-9a-f]{4,128}$")


def validate_content_hash(content_hash: str) -> str:
    """Check that a content hash is a lowercase hex digest.

    Args:
        content_hash: The value to check.

    Returns:
        The content hash, unchanged.

    Raises:
        InvalidContentHashError: If the value is not a usable hex digest.
    """
    if not isinstance(content_hash, str) or not _HASH_PATTERN.match(content_hash):
        raise InvalidContentHashError(content_hash)
    return content_hash


def content_path_from_hash(content_hash: str) -> str:
    """Get the sharded relative path for a content hash.

    The first two byte pairs of the digest become two directory levels, so
    ``"ab12..."`` maps to ``"ab/12/ab12..."``.
    """
    validate_content_hash(content_hash)
    return f"{content_hash[0:2]}/{content_hash[2:4]}/{content_hash}"


# =============================================================================
# File references
# =============================================================================


@runtime_checkable
class StoredFileRef(Protocol):
    """Handle for one logical file owned by the file-storage API."""

    def get_content_hash(self) -> str: ...

    def get_filesize(self) -> int | None: ...

    def trigger_external_sync(self) -> None: ...


@dataclass
class StoredFile:
    """Plain stored file reference.

    Attributes:
        content_hash: Hash of the file content.
        filesize: Size in bytes, or None when unknown.
        on_sync: Called when the file is asked to sync with its external
            source before a readability check.
    """

    content_hash: str
    filesize: int | None = None
    on_sync: Callable[["StoredFile"], None] | None = None

    def get_content_hash(self) -> str:
        return self.content_hash

    def get_filesize(self) -> int | None:
        return self.filesize

    def trigger_external_sync(self) -> None:
        if self.on_sync is not None:
            self.on_sync(self)


@dataclass
class LocalReadability:
    """Result of a local readability check.

    Attributes:
        content_hash: The checked content hash.
        path: Local path that was checked.
        readable: Whether the local copy is readable after any recovery.
        recovery: Whether recovery was needed and how it went.
    """

    content_hash: str
    path: str
    readable: bool
    recovery: RecoveryOutcome = RecoveryOutcome.NOT_ATTEMPTED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "content_hash": self.content_hash,
            "path": self.path,
            "readable": self.readable,
            "recovery": self.recovery.value,
        }


# =============================================================================
# Stream helpers
# =============================================================================


def copy_stream(
    source: BinaryIO,
    output: BinaryIO,
    chunk_size: int,
    limit: int | None = None,
) -> int:
    """Copy a binary stream to a writable in chunks.

    Args:
        source: Stream to read from.
        output: Binary writable to copy into.
        chunk_size: Bytes per read.
        limit: Maximum number of bytes to copy, or None to read until EOF.

    Returns:
        Number of bytes written.
    """
    written = 0
    while limit is None or written < limit:
        size = chunk_size if limit is None else min(chunk_size, limit - written)
        chunk = source.read(size)
        if not chunk:
            break
        output.write(chunk)
        written += len(chunk)
    return written


def wrap_handle(raw: BinaryIO, handle_type: HandleType) -> BinaryIO:
    """Wrap a raw binary handle according to the requested handle type."""
    if handle_type is HandleType.GZIP:
        return gzip.GzipFile(fileobj=raw, mode="rb")  # type: ignore[return-value]
    return raw


# =============================================================================
# Abstract Base Classes
# =============================================================================


class LocationLedger(ABC):
    """Abstract base class for the content-hash to tier ledger.

    The ledger is written by the migration process. The tiered file system
    only reads it.
    """

    @abstractmethod
    def get_tier(self, content_hash: str) -> Tier | str | None:
        """Get the recorded tier for a content hash.

        Args:
            content_hash: The content hash.

        Returns:
            The stored tier value (possibly unrecognised), or None if the
            hash has no entry.

        Raises:
            LedgerError: If the ledger backend fails.
        """
        pass

    @abstractmethod
    def set_tier(self, content_hash: str, tier: Tier) -> None:
        """Record the tier for a content hash.

        Args:
            content_hash: The content hash.
            tier: The tier holding the content.
        """
        pass

    @abstractmethod
    def delete(self, content_hash: str) -> bool:
        """Remove the entry for a content hash.

        Returns:
            True if an entry was removed, False if none existed.
        """
        pass

    def close(self) -> None:
        """Release backend resources."""
        pass


class RemoteStore(ABC):
    """Abstract base class for the remote object store capability.

    Remote objects are addressed by path strings in the remote namespace
    (for S3, ``s3://bucket/key``). The store also tells local and remote
    path strings apart.
    """

    @abstractmethod
    def path_for(self, content_hash: str) -> str:
        """Get the remote path for a content hash. Does not check existence."""
        pass

    @abstractmethod
    def path_is_local(self, path: str) -> bool:
        """Whether a path string belongs to the local namespace."""
        pass

    @abstractmethod
    def is_readable(self, path: str) -> bool:
        """Whether a remote path exists and can be read. Never raises."""
        pass

    @abstractmethod
    def upload(self, local_path: str, remote_path: str) -> bool:
        """Copy a local file to a remote path.

        Returns:
            True on success, False if the copy failed.
        """
        pass

    @abstractmethod
    def download(self, remote_path: str, local_path: str) -> bool:
        """Copy a remote object to a local path.

        Returns:
            True on success, False if the copy failed.
        """
        pass

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Open a remote object for streaming reads.

        Raises:
            StoreNotFoundError: If the object does not exist.
            StoreReadError: If reading fails.
            StoreConnectionError: If the store cannot be reached.
        """
        pass

    def read_bytes(self, path: str) -> bytes:
        """Read a whole remote object into memory."""
        handle = self.open(path)
        try:
            return handle.read()
        finally:
            handle.close()

    def close(self) -> None:
        """Release client resources."""
        pass


class FileSystem(ABC):
    """Read-path interface of a content-addressed file system.

    Implemented by the local-only store and by the tiered file system that
    decorates it.
    """

    @abstractmethod
    def is_readable(self, file_ref: StoredFileRef) -> bool:
        """Whether the file's content can be read."""
        pass

    @abstractmethod
    def is_readable_by_hash(self, content_hash: str) -> bool:
        """Whether content can be read, knowing only its hash."""
        pass

    @abstractmethod
    def send_file(self, file_ref: StoredFileRef, output: BinaryIO) -> int:
        """Stream the file's content to a binary writable.

        Returns:
            Number of bytes sent.
        """
        pass

    @abstractmethod
    def read_all_bytes(self, file_ref: StoredFileRef) -> bytes:
        """Read the file's whole content into memory."""
        pass

    @abstractmethod
    def open_handle(
        self,
        file_ref: StoredFileRef,
        handle_type: HandleType = HandleType.BINARY,
    ) -> BinaryIO:
        """Open a readable handle on the file's content."""
        pass
