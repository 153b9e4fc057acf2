"""Unit tests for the file system factory."""

from __future__ import annotations

import pytest

from hashtier.backends.s3 import S3RemoteStore
from hashtier.base import Tier
from hashtier.config import ConfigError, LedgerConfig, TieredFileSystemConfig
from hashtier.factory import create_filesystem, get_recovery, register_recovery
from hashtier.ledger import InMemoryLocationLedger, SQLLocationLedger
from hashtier.recovery import (
    ChainedRecovery,
    NoRecovery,
    RemoteRecovery,
    TrashRecovery,
)


class TestGetRecovery:
    """Tests for recovery lookup."""

    def test_trash_without_trashdir(self, local_store, remote_store) -> None:
        """Test that trash recovery is skipped without a trash directory."""
        config = TieredFileSystemConfig()

        assert isinstance(get_recovery(["trash"], config, local_store, remote_store), NoRecovery)

    def test_single_procedure(self, local_store, remote_store, trashdir) -> None:
        """Test that a single procedure is used directly."""
        config = TieredFileSystemConfig(trashdir=str(trashdir))

        recovery = get_recovery(["trash"], config, local_store, remote_store)

        assert isinstance(recovery, TrashRecovery)

    def test_chain(self, local_store, remote_store, trashdir) -> None:
        """Test that several procedures are chained in order."""
        config = TieredFileSystemConfig(trashdir=str(trashdir))

        recovery = get_recovery([" Trash", "remote"], config, local_store, remote_store)

        assert isinstance(recovery, ChainedRecovery)
        assert [type(p) for p in recovery.procedures] == [TrashRecovery, RemoteRecovery]

    def test_none(self, local_store, remote_store) -> None:
        """Test disabling recovery."""
        config = TieredFileSystemConfig()

        assert isinstance(get_recovery(["none"], config, local_store, remote_store), NoRecovery)
        assert isinstance(get_recovery([], config, local_store, remote_store), NoRecovery)

    def test_unknown_name(self, local_store, remote_store) -> None:
        """Test that unknown names raise ConfigError."""
        with pytest.raises(ConfigError, match="Unknown recovery 'tape'"):
            get_recovery(["tape"], TieredFileSystemConfig(), local_store, remote_store)

    def test_register_custom(self, local_store, remote_store) -> None:
        """Test registering a new procedure."""
        marker = NoRecovery()

        @register_recovery("test-marker")
        def _marker(config, local, remote):
            return marker

        assert get_recovery(["test-marker"], TieredFileSystemConfig(), local_store, remote_store) is marker


class TestCreateFilesystem:
    """Tests for create_filesystem."""

    def test_defaults(self, filedir, s3_client) -> None:
        """Test wiring with default configuration."""
        fs = create_filesystem(filedir=str(filedir), s3_client=s3_client)

        assert str(fs.local.filedir) == str(filedir)
        assert isinstance(fs.remote, S3RemoteStore)
        assert fs.remote.client is s3_client
        assert isinstance(fs.ledger, InMemoryLocationLedger)
        assert fs.resolver.prefer_remote is False

    def test_sql_ledger(self, filedir, s3_client) -> None:
        """Test that a ledger URL selects the SQL ledger."""
        config = TieredFileSystemConfig(
            filedir=str(filedir), ledger=LedgerConfig(url="sqlite://")
        )

        fs = create_filesystem(config, s3_client=s3_client)
        try:
            assert isinstance(fs.ledger, SQLLocationLedger)
        finally:
            fs.close()

    def test_empty_ledger_is_kept(self, filedir, s3_client, content_hash) -> None:
        """Test that a supplied ledger is used even when empty."""
        ledger = InMemoryLocationLedger()

        fs = create_filesystem(filedir=str(filedir), ledger=ledger, s3_client=s3_client)
        ledger.set_tier(content_hash, Tier.EXTERNAL)

        assert fs.ledger is ledger
        assert fs.resolve_path(content_hash).startswith("s3://")

    def test_overrides_do_not_mutate_config(self, filedir, s3_client) -> None:
        """Test that overrides apply to a copy of the configuration."""
        config = TieredFileSystemConfig(filedir=str(filedir))

        fs = create_filesystem(config, s3_client=s3_client, prefer_remote=True)

        assert fs.config.prefer_remote is True
        assert config.prefer_remote is False

    def test_invalid_override(self) -> None:
        """Test that unknown overrides raise ConfigError."""
        with pytest.raises(ConfigError):
            create_filesystem(colour="blue")
