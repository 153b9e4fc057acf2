"""Location ledger implementations.

The ledger records which tier holds each content hash. It is maintained by
the migration process; an absent entry means the content is local.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from hashtier.base import LedgerError, LocationLedger, Tier, validate_content_hash

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentLocationModel(Base):  # type: ignore[valid-type, misc]
    """SQLAlchemy model for ledger entries."""

    __tablename__ = "content_locations"

    content_hash = Column(String(128), primary_key=True)
    tier = Column(String(32), nullable=False, index=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class InMemoryLocationLedger(LocationLedger):
    """In-memory location ledger.

    Suitable for testing and single-process usage.
    """

    def __init__(self, entries: dict[str, Tier | str] | None = None) -> None:
        """Initialize the ledger.

        Args:
            entries: Initial hash to tier mapping.
        """
        self._entries: dict[str, Tier | str] = dict(entries or {})

    def get_tier(self, content_hash: str) -> Tier | str | None:
        return self._entries.get(content_hash)

    def set_tier(self, content_hash: str, tier: Tier) -> None:
        self._entries[validate_content_hash(content_hash)] = tier

    def delete(self, content_hash: str) -> bool:
        if content_hash in self._entries:
            del self._entries[content_hash]
            return True
        return False

    def __len__(self) -> int:
        return len(self._entries)


class SQLLocationLedger(LocationLedger):
    """SQL database location ledger.

    Supports any SQLAlchemy-compatible database. Tier values are stored as
    strings and returned unparsed, so values written by a newer migration
    process surface as unrecognised tiers rather than errors.

    Example:
        >>> ledger = SQLLocationLedger("sqlite:///hashtier.db")
        >>> ledger.set_tier(content_hash, Tier.DUPLICATED)
        >>> ledger.get_tier(content_hash)
        'duplicated'
    """

    def __init__(
        self,
        connection_url: str = "sqlite:///hashtier.db",
        echo: bool = False,
        create_tables: bool = True,
        **engine_kwargs: Any,
    ) -> None:
        """Initialize the ledger.

        Args:
            connection_url: SQLAlchemy connection URL.
            echo: Whether to echo SQL statements.
            create_tables: Whether to create the table on first use.
            **engine_kwargs: Extra arguments for ``create_engine``.
        """
        self._connection_url = connection_url
        self._echo = echo
        self._create_tables = create_tables
        self._engine_kwargs = engine_kwargs
        self._engine: Any = None
        self._session_factory: Any = None

    def initialize(self) -> None:
        """Create the engine and table.

        Called automatically on first use.

        Raises:
            LedgerError: If the database cannot be reached.
        """
        if self._engine is not None:
            return
        try:
            engine = create_engine(
                self._connection_url, echo=self._echo, **self._engine_kwargs
            )
            if self._create_tables:
                Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            raise LedgerError(f"Failed to open location ledger: {e}")

        self._engine = engine
        self._session_factory = sessionmaker(bind=engine)

    def get_tier(self, content_hash: str) -> Tier | str | None:
        self.initialize()
        try:
            with self._session_factory() as session:
                row = session.get(ContentLocationModel, content_hash)
                return row.tier if row is not None else None
        except SQLAlchemyError as e:
            raise LedgerError(f"Failed to read tier for {content_hash}: {e}")

    def set_tier(self, content_hash: str, tier: Tier) -> None:
        validate_content_hash(content_hash)
        self.initialize()
        try:
            with self._session_factory() as session, session.begin():
                row = session.get(ContentLocationModel, content_hash)
                if row is None:
                    session.add(
                        ContentLocationModel(content_hash=content_hash, tier=tier.value)
                    )
                else:
                    row.tier = tier.value
        except SQLAlchemyError as e:
            raise LedgerError(f"Failed to write tier for {content_hash}: {e}")

    def delete(self, content_hash: str) -> bool:
        self.initialize()
        try:
            with self._session_factory() as session, session.begin():
                row = session.get(ContentLocationModel, content_hash)
                if row is None:
                    return False
                session.delete(row)
                return True
        except SQLAlchemyError as e:
            raise LedgerError(f"Failed to delete tier for {content_hash}: {e}")

    def close(self) -> None:
        """Dispose of the engine."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
