"""hashtier - tiered content-addressable file storage.

Resolves which copy of hash-addressed content to serve when it may live in a
local directory tree, an S3 bucket, or both, and moves content between them.

Example:
    >>> from hashtier import StoredFile, create_filesystem, load_config
    >>>
    >>> fs = create_filesystem(load_config("hashtier.yaml"))
    >>> file_ref = StoredFile("da39a3ee5e6b4b0d3255bfef95601890afd80709")
    >>>
    >>> fs.resolve_path(file_ref.get_content_hash())
    '/var/data/filedir/da/39/da39a3ee5e6b4b0d3255bfef95601890afd80709'
    >>> data = fs.read_all_bytes(file_ref)
"""

from hashtier.base import (
    DEFAULT_TIER,
    ContentUnreadableError,
    FileSystem,
    HandleType,
    InvalidContentHashError,
    LedgerError,
    LocalReadability,
    LocationLedger,
    RecoveryOutcome,
    RemoteStore,
    StoredFile,
    StoredFileRef,
    StoreConnectionError,
    StoreError,
    StoreNotFoundError,
    StoreReadError,
    Tier,
)
from hashtier.backends import LocalFileStore, S3Config, S3RemoteStore
from hashtier.config import ConfigError, TieredFileSystemConfig, load_config
from hashtier.factory import create_filesystem, register_recovery
from hashtier.filesystem import TieredFileSystem
from hashtier.ledger import InMemoryLocationLedger, SQLLocationLedger
from hashtier.recovery import (
    ChainedRecovery,
    ContentRecovery,
    NoRecovery,
    RemoteRecovery,
    TrashRecovery,
)
from hashtier.resolver import TierResolver

__version__ = "0.1.0"

__all__ = [
    # Types
    "Tier",
    "DEFAULT_TIER",
    "HandleType",
    "RecoveryOutcome",
    "LocalReadability",
    "StoredFile",
    "StoredFileRef",
    # Errors
    "StoreError",
    "StoreNotFoundError",
    "StoreReadError",
    "StoreConnectionError",
    "ContentUnreadableError",
    "LedgerError",
    "InvalidContentHashError",
    "ConfigError",
    # Interfaces
    "FileSystem",
    "LocationLedger",
    "RemoteStore",
    "ContentRecovery",
    # Implementations
    "LocalFileStore",
    "S3Config",
    "S3RemoteStore",
    "InMemoryLocationLedger",
    "SQLLocationLedger",
    "NoRecovery",
    "TrashRecovery",
    "RemoteRecovery",
    "ChainedRecovery",
    "TierResolver",
    "TieredFileSystem",
    # Configuration and factory
    "TieredFileSystemConfig",
    "load_config",
    "create_filesystem",
    "register_recovery",
]
