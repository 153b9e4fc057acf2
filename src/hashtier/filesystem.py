"""Tiered file system implementation.

This module provides the TieredFileSystem class, which decorates a local
content store with a remote tier. It resolves which copy of a content hash
to serve, verifies local copies before reading them, recovers missing local
copies, and copies content between tiers for the migration process.
"""

from __future__ import annotations

import logging
from typing import BinaryIO

from hashtier.backends.local import LocalFileStore
from hashtier.base import (
    ContentUnreadableError,
    FileSystem,
    HandleType,
    InvalidContentHashError,
    LocalReadability,
    LocationLedger,
    RecoveryOutcome,
    RemoteStore,
    StoredFileRef,
    copy_stream,
    wrap_handle,
)
from hashtier.config import TieredFileSystemConfig
from hashtier.recovery import ContentRecovery, NoRecovery
from hashtier.resolver import TierResolver

logger = logging.getLogger(__name__)


class TieredFileSystem(FileSystem):
    """A content file system spanning a local and a remote tier.

    Reads go to the copy chosen by the tier resolver. Local copies are
    checked (and recovered if missing) before they are read; remote reads
    fail, if at all, from the remote client itself.

    Example:
        >>> fs = TieredFileSystem(
        ...     local=LocalFileStore("/var/data/filedir"),
        ...     remote=S3RemoteStore(S3Config(bucket="content")),
        ...     ledger=SQLLocationLedger("sqlite:///hashtier.db"),
        ...     config=TieredFileSystemConfig(prefer_remote=False),
        ... )
        >>>
        >>> # Serve a file from whichever tier holds it
        >>> data = fs.read_all_bytes(StoredFile(content_hash))
        >>>
        >>> # Migration tooling
        >>> fs.copy_local_to_remote(content_hash)
        True
    """

    def __init__(
        self,
        local: LocalFileStore,
        remote: RemoteStore,
        ledger: LocationLedger,
        config: TieredFileSystemConfig | None = None,
        recovery: ContentRecovery | None = None,
    ) -> None:
        """Initialize the tiered file system.

        Args:
            local: The local store being decorated.
            remote: The remote store.
            ledger: Ledger holding each hash's tier.
            config: Policy configuration.
            recovery: Procedure used to restore missing local copies.
        """
        self._config = config or TieredFileSystemConfig()
        self._local = local
        self._remote = remote
        self._ledger = ledger
        self._recovery = recovery or NoRecovery()
        self._resolver = TierResolver(
            ledger,
            local,
            remote,
            prefer_remote=self._config.prefer_remote,
            unknown_tier_fallback=self._config.unknown_tier_fallback,
        )

    @property
    def config(self) -> TieredFileSystemConfig:
        return self._config

    @property
    def local(self) -> LocalFileStore:
        return self._local

    @property
    def remote(self) -> RemoteStore:
        return self._remote

    @property
    def ledger(self) -> LocationLedger:
        return self._ledger

    @property
    def resolver(self) -> TierResolver:
        return self._resolver

    def resolve_path(self, content_hash: str) -> str:
        """Get the path to read for a content hash. Never checks access."""
        return self._resolver.resolve_path(content_hash)

    # -------------------------------------------------------------------------
    # Readability
    # -------------------------------------------------------------------------

    def _try_recovery(self, content_hash: str, path: str) -> bool:
        try:
            return self._recovery.recover(content_hash, path)
        except Exception as e:
            logger.warning(f"{self._recovery.name} raised for {content_hash}: {e}")
            return False

    def _check_local(self, content_hash: str) -> LocalReadability:
        """Check the local copy, attempting recovery once if it is missing."""
        path = self._local.path_for(content_hash)
        if self._local.is_path_readable(path):
            return LocalReadability(content_hash, path, readable=True)

        if isinstance(self._recovery, NoRecovery):
            logger.debug(f"Local copy of {content_hash} is unreadable at {path}")
            return LocalReadability(content_hash, path, readable=False)

        if self._try_recovery(content_hash, path) and self._local.is_path_readable(path):
            logger.info(f"Recovered local copy of {content_hash} at {path}")
            return LocalReadability(
                content_hash, path, readable=True, recovery=RecoveryOutcome.RECOVERED
            )

        logger.warning(f"Recovery of {content_hash} failed, {path} is unreadable")
        return LocalReadability(
            content_hash, path, readable=False, recovery=RecoveryOutcome.FAILED
        )

    def check_local_readability(self, file_ref: StoredFileRef) -> LocalReadability:
        """Sync a file and check its local copy, with recovery.

        Args:
            file_ref: The stored file.

        Returns:
            Local readability and the recovery outcome.
        """
        file_ref.trigger_external_sync()
        return self._check_local(file_ref.get_content_hash())

    def _is_remote_readable(self, content_hash: str) -> bool:
        return self._remote.is_readable(self._remote.path_for(content_hash))

    def is_readable(self, file_ref: StoredFileRef) -> bool:
        """Whether a file is readable from either tier.

        The local copy is checked first, with recovery; the remote tier is
        only consulted when the local copy stays unreadable. Invalid content
        hashes are unreadable.
        """
        try:
            if self.check_local_readability(file_ref).readable:
                return True
            return self._is_remote_readable(file_ref.get_content_hash())
        except InvalidContentHashError as e:
            logger.warning(f"Unreadable file reference: {e}")
            return False

    def is_readable_by_hash(self, content_hash: str) -> bool:
        """Whether content is readable from either tier. No sync, no recovery."""
        try:
            if self._local.is_readable_by_hash(content_hash):
                return True
            return self._is_remote_readable(content_hash)
        except InvalidContentHashError as e:
            logger.warning(f"Unreadable content hash: {e}")
            return False

    def ensure_readable_or_fail(self, file_ref: StoredFileRef, resolved_path: str) -> None:
        """Guard a read of a resolved path.

        Only local paths are checked; remote paths are left to fail from the
        remote client during the read itself.

        Args:
            file_ref: The stored file being read.
            resolved_path: Path produced by the tier resolver.

        Raises:
            ContentUnreadableError: If the path is local and the local copy
                cannot be read or recovered.
        """
        if not self._remote.path_is_local(resolved_path):
            return

        if not self.check_local_readability(file_ref).readable:
            content_hash = file_ref.get_content_hash()
            raise ContentUnreadableError(self._local.path_for(content_hash), content_hash)

    # -------------------------------------------------------------------------
    # Tier copies
    # -------------------------------------------------------------------------

    def copy_local_to_remote(self, content_hash: str) -> bool:
        """Copy the local copy of a content hash to the remote store.

        Returns:
            True on success. False if the local copy is unreadable (nothing
            is sent) or the upload failed.
        """
        local = self._check_local(content_hash)
        if not local.readable:
            logger.warning(f"Not copying {content_hash} to remote, local copy unreadable")
            return False

        remote_path = self._remote.path_for(content_hash)
        copied = self._remote.upload(local.path, remote_path)
        if copied:
            logger.info(f"Copied {content_hash} from local to remote")
        return copied

    def copy_remote_to_local(self, content_hash: str) -> bool:
        """Copy the remote copy of a content hash into the local store.

        Returns:
            True on success, False if the download failed.
        """
        local_path = self._local.path_for(content_hash)
        try:
            self._local.prepare_parent(local_path)
        except OSError as e:
            logger.warning(f"Cannot create local directory for {content_hash}: {e}")
            return False

        copied = self._remote.download(self._remote.path_for(content_hash), local_path)
        if copied:
            logger.info(f"Copied {content_hash} from remote to local")
        return copied

    def delete_local(self, content_hash: str) -> bool:
        """Delete the local copy of a content hash.

        Must only be called for content that also exists remotely; that
        decision belongs to the migration process.

        Returns:
            True if the local copy was removed.
        """
        if not self._check_local(content_hash).readable:
            logger.warning(f"Not deleting {content_hash}, local copy unreadable")
            return False

        deleted = self._local.delete(content_hash)
        if deleted:
            logger.info(f"Deleted local copy of {content_hash}")
        return deleted

    def local_md5(self, content_hash: str) -> str | None:
        """Get the md5 of the local copy, for comparison with remote ETags.

        Returns:
            The hex digest, or None if the local copy is unreadable.
        """
        if not self._local.is_readable_by_hash(content_hash):
            return None
        return self._local.digest(content_hash, "md5")

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def _resolve_for_read(self, file_ref: StoredFileRef) -> str:
        file_ref.trigger_external_sync()
        path = self.resolve_path(file_ref.get_content_hash())
        self.ensure_readable_or_fail(file_ref, path)
        return path

    def _open_path(self, path: str) -> BinaryIO:
        if self._remote.path_is_local(path):
            return self._local.open_path(path)
        return self._remote.open(path)

    def send_file(self, file_ref: StoredFileRef, output: BinaryIO) -> int:
        path = self._resolve_for_read(file_ref)
        handle = self._open_path(path)
        try:
            return copy_stream(
                handle,
                output,
                self._config.chunk_size,
                limit=file_ref.get_filesize(),
            )
        finally:
            handle.close()

    def read_all_bytes(self, file_ref: StoredFileRef) -> bytes:
        path = self._resolve_for_read(file_ref)
        if self._remote.path_is_local(path):
            return self._local.read_path_bytes(path)
        return self._remote.read_bytes(path)

    def open_handle(
        self,
        file_ref: StoredFileRef,
        handle_type: HandleType = HandleType.BINARY,
    ) -> BinaryIO:
        path = self._resolve_for_read(file_ref)
        return wrap_handle(self._open_path(path), handle_type)

    def close(self) -> None:
        """Close the remote client and the ledger."""
        self._remote.close()
        self._ledger.close()
