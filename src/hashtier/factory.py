"""Factory functions for building a tiered file system from configuration.

Recovery procedures are looked up by name in a registry; new procedures can
be registered at runtime.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable

from hashtier.backends.local import LocalFileStore
from hashtier.backends.s3 import S3RemoteStore
from hashtier.base import LocationLedger, RemoteStore
from hashtier.config import ConfigError, TieredFileSystemConfig
from hashtier.filesystem import TieredFileSystem
from hashtier.ledger import InMemoryLocationLedger, SQLLocationLedger
from hashtier.recovery import (
    ChainedRecovery,
    ContentRecovery,
    NoRecovery,
    RemoteRecovery,
    TrashRecovery,
)

if TYPE_CHECKING:
    from hashtier.backends._protocols import S3ClientProtocol

logger = logging.getLogger(__name__)

# Builds a recovery procedure, or returns None when it does not apply
RecoveryConstructor = Callable[
    [TieredFileSystemConfig, LocalFileStore, RemoteStore],
    "ContentRecovery | None",
]

_recovery_registry: dict[str, RecoveryConstructor] = {}


def register_recovery(name: str) -> Callable[[RecoveryConstructor], RecoveryConstructor]:
    """Decorator to register a recovery procedure constructor.

    Example:
        >>> @register_recovery("mirror")
        ... def _mirror(config, local, remote):
        ...     return MirrorRecovery(config.filedir, local)
    """

    def decorator(constructor: RecoveryConstructor) -> RecoveryConstructor:
        _recovery_registry[name] = constructor
        return constructor

    return decorator


@register_recovery("none")
def _no_recovery(
    config: TieredFileSystemConfig, local: LocalFileStore, remote: RemoteStore
) -> ContentRecovery | None:
    return None


@register_recovery("trash")
def _trash_recovery(
    config: TieredFileSystemConfig, local: LocalFileStore, remote: RemoteStore
) -> ContentRecovery | None:
    if not config.trashdir:
        logger.debug("No trashdir configured, trash recovery disabled")
        return None
    return TrashRecovery(config.trashdir, local)


@register_recovery("remote")
def _remote_recovery(
    config: TieredFileSystemConfig, local: LocalFileStore, remote: RemoteStore
) -> ContentRecovery | None:
    return RemoteRecovery(remote, local)


def get_recovery(
    names: list[str],
    config: TieredFileSystemConfig,
    local: LocalFileStore,
    remote: RemoteStore,
) -> ContentRecovery:
    """Build the recovery procedure for a list of names.

    Raises:
        ConfigError: If a name is not registered.
    """
    procedures: list[ContentRecovery] = []
    for name in names:
        key = name.lower().strip()
        if key not in _recovery_registry:
            available = ", ".join(sorted(_recovery_registry))
            raise ConfigError(f"Unknown recovery '{name}'. Available: {available}")
        procedure = _recovery_registry[key](config, local, remote)
        if procedure is not None:
            procedures.append(procedure)

    if not procedures:
        return NoRecovery()
    if len(procedures) == 1:
        return procedures[0]
    return ChainedRecovery(procedures)


def create_ledger(config: TieredFileSystemConfig) -> LocationLedger:
    """Create the location ledger selected by configuration."""
    if config.ledger.url:
        return SQLLocationLedger(config.ledger.url, echo=config.ledger.echo)
    return InMemoryLocationLedger()


def create_filesystem(
    config: TieredFileSystemConfig | None = None,
    *,
    ledger: LocationLedger | None = None,
    remote: RemoteStore | None = None,
    recovery: ContentRecovery | None = None,
    s3_client: "S3ClientProtocol | None" = None,
    **overrides: Any,
) -> TieredFileSystem:
    """Create a wired tiered file system.

    Args:
        config: Configuration; defaults are used when omitted.
        ledger: Ledger to use instead of the configured one.
        remote: Remote store to use instead of the configured S3 store.
        recovery: Recovery procedure to use instead of the configured ones.
        s3_client: Pre-built S3 client for the configured S3 store.
        **overrides: Top-level configuration values to override.

    Returns:
        The tiered file system.

    Raises:
        ConfigError: If the configuration is invalid.

    Example:
        >>> fs = create_filesystem(load_config("hashtier.yaml"))
        >>> fs.resolve_path(content_hash)
        's3://content/hashtier/da39a3ee5e6b4b0d3255bfef95601890afd80709'
    """
    config = config or TieredFileSystemConfig()
    if overrides:
        try:
            config = replace(config, **overrides)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration override: {e}")

    local = LocalFileStore(
        config.filedir,
        dir_permissions=config.dir_permissions,
        file_permissions=config.file_permissions,
        chunk_size=config.chunk_size,
        hash_algorithm=config.hash_algorithm,
    )
    if remote is None:
        remote = S3RemoteStore(
            config.s3,
            client=s3_client,
            chunk_size=config.chunk_size,
            file_permissions=config.file_permissions,
        )
    if recovery is None:
        recovery = get_recovery(config.recovery, config, local, remote)
    if ledger is None:
        ledger = create_ledger(config)

    return TieredFileSystem(
        local,
        remote,
        ledger,
        config=config,
        recovery=recovery,
    )
