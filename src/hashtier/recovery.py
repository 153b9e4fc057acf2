"""Content recovery procedures.

A recovery procedure tries to repopulate a missing local copy before the
file system declares content unreadable. Procedures report success as a
boolean; the caller re-checks the local copy afterwards.

Example:
    >>> recovery = ChainedRecovery([
    ...     TrashRecovery("/var/data/trashdir", local),
    ...     RemoteRecovery(remote, local),
    ... ])
    >>> fs = TieredFileSystem(local, remote, ledger, recovery=recovery)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from hashtier.backends.local import (
    LocalFileStore,
    atomic_write_stream,
    file_digest,
)
from hashtier.base import RemoteStore, content_path_from_hash

logger = logging.getLogger(__name__)


class ContentRecovery(ABC):
    """Abstract base class for content recovery procedures."""

    @abstractmethod
    def recover(self, content_hash: str, local_path: str) -> bool:
        """Try to restore the local copy of a content hash.

        Args:
            content_hash: The content hash.
            local_path: Where the local copy belongs.

        Returns:
            True if the procedure believes it restored the copy.
        """
        pass

    @property
    def name(self) -> str:
        """Short name used in logs."""
        return self.__class__.__name__


class NoRecovery(ContentRecovery):
    """Recovery that never restores anything."""

    def recover(self, content_hash: str, local_path: str) -> bool:
        return False


class TrashRecovery(ContentRecovery):
    """Restore content from a trash directory.

    Deleted content files are kept under ``<trashdir>`` with the same sharded
    layout as the local store. A trashed file is restored only if its digest
    matches the content hash.
    """

    def __init__(self, trashdir: str | Path, local: LocalFileStore) -> None:
        """Initialize the procedure.

        Args:
            trashdir: Base directory of trashed content.
            local: Local store to restore into.
        """
        self._trashdir = Path(trashdir)
        self._local = local

    def trash_path_for(self, content_hash: str) -> Path:
        return self._trashdir / content_path_from_hash(content_hash)

    def recover(self, content_hash: str, local_path: str) -> bool:
        trash_path = self.trash_path_for(content_hash)
        if not trash_path.is_file():
            return False

        digest = file_digest(
            trash_path, self._local.hash_algorithm, self._local.chunk_size
        )
        if digest != content_hash:
            logger.warning(f"Trashed copy {trash_path} does not match {content_hash}")
            return False

        self._local.prepare_parent(local_path)
        with open(trash_path, "rb") as source:
            atomic_write_stream(
                local_path,
                source,
                chunk_size=self._local.chunk_size,
                file_permissions=self._local.file_permissions,
            )
        return True


class RemoteRecovery(ContentRecovery):
    """Restore content by copying it down from the remote store."""

    def __init__(self, remote: RemoteStore, local: LocalFileStore) -> None:
        self._remote = remote
        self._local = local

    def recover(self, content_hash: str, local_path: str) -> bool:
        self._local.prepare_parent(local_path)
        return self._remote.download(self._remote.path_for(content_hash), local_path)


class ChainedRecovery(ContentRecovery):
    """Try several procedures in order; the first success wins."""

    def __init__(self, procedures: Sequence[ContentRecovery]) -> None:
        self._procedures = list(procedures)

    @property
    def procedures(self) -> list[ContentRecovery]:
        return list(self._procedures)

    def recover(self, content_hash: str, local_path: str) -> bool:
        for procedure in self._procedures:
            try:
                recovered = procedure.recover(content_hash, local_path)
            except Exception as e:
                logger.warning(f"{procedure.name} raised for {content_hash}: {e}")
                continue
            if recovered:
                logger.debug(f"{procedure.name} restored {content_hash}")
                return True
        return False
