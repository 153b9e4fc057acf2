"""Unit tests for location ledgers."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from hashtier.base import InvalidContentHashError, LedgerError, Tier
from hashtier.ledger import InMemoryLocationLedger, SQLLocationLedger


class TestInMemoryLocationLedger:
    """Tests for InMemoryLocationLedger."""

    def test_absent_entry(self, content_hash) -> None:
        """Test that unknown hashes have no entry."""
        ledger = InMemoryLocationLedger()

        assert ledger.get_tier(content_hash) is None
        assert len(ledger) == 0

    def test_set_and_get(self, content_hash) -> None:
        """Test recording a tier."""
        ledger = InMemoryLocationLedger()

        ledger.set_tier(content_hash, Tier.DUPLICATED)
        assert ledger.get_tier(content_hash) is Tier.DUPLICATED

        ledger.set_tier(content_hash, Tier.EXTERNAL)
        assert ledger.get_tier(content_hash) is Tier.EXTERNAL
        assert len(ledger) == 1

    def test_delete(self, content_hash) -> None:
        """Test removing an entry."""
        ledger = InMemoryLocationLedger({content_hash: Tier.EXTERNAL})

        assert ledger.delete(content_hash) is True
        assert ledger.delete(content_hash) is False
        assert ledger.get_tier(content_hash) is None

    def test_rejects_invalid_hash(self) -> None:
        """Test that invalid hashes cannot be recorded."""
        ledger = InMemoryLocationLedger()

        with pytest.raises(InvalidContentHashError):
            ledger.set_tier("../etc/passwd", Tier.LOCAL)


class TestSQLLocationLedger:
    """Tests for SQLLocationLedger on in-memory SQLite."""

    @pytest.fixture
    def sql_ledger(self):
        ledger = SQLLocationLedger("sqlite://")
        yield ledger
        ledger.close()

    def test_absent_entry(self, sql_ledger, content_hash) -> None:
        """Test that unknown hashes have no entry."""
        assert sql_ledger.get_tier(content_hash) is None

    def test_set_returns_raw_value(self, sql_ledger, content_hash) -> None:
        """Test that tiers are stored and returned as strings."""
        sql_ledger.set_tier(content_hash, Tier.DUPLICATED)

        assert sql_ledger.get_tier(content_hash) == "duplicated"

    def test_update(self, sql_ledger, content_hash) -> None:
        """Test overwriting an entry."""
        sql_ledger.set_tier(content_hash, Tier.DUPLICATED)
        sql_ledger.set_tier(content_hash, Tier.EXTERNAL)

        assert sql_ledger.get_tier(content_hash) == "external"

    def test_delete(self, sql_ledger, content_hash) -> None:
        """Test removing an entry."""
        sql_ledger.set_tier(content_hash, Tier.EXTERNAL)

        assert sql_ledger.delete(content_hash) is True
        assert sql_ledger.delete(content_hash) is False
        assert sql_ledger.get_tier(content_hash) is None

    def test_file_database(self, tmp_path, content_hash) -> None:
        """Test that entries persist across ledger instances."""
        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        writer = SQLLocationLedger(url)
        writer.set_tier(content_hash, Tier.EXTERNAL)
        writer.close()

        reader = SQLLocationLedger(url)
        try:
            assert reader.get_tier(content_hash) == "external"
        finally:
            reader.close()

    def test_backend_failure_raises_ledger_error(self, sql_ledger, content_hash) -> None:
        """Test that database errors surface as LedgerError."""
        sql_ledger.initialize()
        error = OperationalError("SELECT", {}, Exception("database is locked"))

        with patch("sqlalchemy.orm.Session.get", side_effect=error):
            with pytest.raises(LedgerError):
                sql_ledger.get_tier(content_hash)

    def test_close_is_idempotent(self, content_hash) -> None:
        """Test closing before and after use."""
        ledger = SQLLocationLedger("sqlite://")
        ledger.close()
        ledger.set_tier(content_hash, Tier.LOCAL)
        ledger.close()
        ledger.close()
