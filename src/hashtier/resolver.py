"""Tier resolution.

Maps a content hash to the path that should be read for it, based on the
location ledger and the configured policy for duplicated content. Resolution
is pure and total: it always yields a candidate path and never checks that
the path is accessible.
"""

from __future__ import annotations

import logging

from hashtier.backends.local import LocalFileStore
from hashtier.base import (
    DEFAULT_TIER,
    LedgerError,
    LocationLedger,
    RemoteStore,
    Tier,
)

logger = logging.getLogger(__name__)


class TierResolver:
    """Resolve content hashes to local or remote paths.

    Example:
        >>> resolver = TierResolver(ledger, local, remote, prefer_remote=False)
        >>> ledger.set_tier(content_hash, Tier.DUPLICATED)
        >>> resolver.resolve_path(content_hash) == local.path_for(content_hash)
        True
    """

    def __init__(
        self,
        ledger: LocationLedger,
        local: LocalFileStore,
        remote: RemoteStore,
        prefer_remote: bool = False,
        unknown_tier_fallback: Tier = Tier.LOCAL,
    ) -> None:
        """Initialize the resolver.

        Args:
            ledger: Ledger holding each hash's tier.
            local: Local store, for local paths.
            remote: Remote store, for remote paths.
            prefer_remote: Serve duplicated content from the remote store.
            unknown_tier_fallback: Tier assumed when the ledger holds an
                unrecognised value or cannot be read.
        """
        self._ledger = ledger
        self._local = local
        self._remote = remote
        self._prefer_remote = prefer_remote
        self._unknown_tier_fallback = unknown_tier_fallback

    @property
    def prefer_remote(self) -> bool:
        return self._prefer_remote

    def lookup_tier(self, content_hash: str) -> Tier:
        """Get the tier for a content hash, applying defaults.

        Args:
            content_hash: The content hash.

        Returns:
            The recorded tier, DEFAULT_TIER when there is no entry, or the
            unknown-tier fallback when the entry is unusable.
        """
        try:
            value = self._ledger.get_tier(content_hash)
        except LedgerError as e:
            logger.warning(
                f"Ledger lookup failed for {content_hash}, "
                f"assuming {self._unknown_tier_fallback.value}: {e}"
            )
            return self._unknown_tier_fallback

        if value is None:
            return DEFAULT_TIER

        try:
            return Tier(value)
        except ValueError:
            logger.warning(
                f"Unknown tier {value!r} for {content_hash}, "
                f"assuming {self._unknown_tier_fallback.value}"
            )
            return self._unknown_tier_fallback

    def resolve_path(self, content_hash: str) -> str:
        """Get the path to read for a content hash.

        Does not check that the path exists.

        Args:
            content_hash: The content hash.

        Returns:
            The local or remote path.
        """
        tier = self.lookup_tier(content_hash)

        if tier is Tier.EXTERNAL:
            use_remote = True
        elif tier is Tier.DUPLICATED:
            use_remote = self._prefer_remote
        else:
            use_remote = False

        if use_remote:
            path = self._remote.path_for(content_hash)
        else:
            path = self._local.path_for(content_hash)

        logger.debug(f"Resolved {content_hash} ({tier.value}) to {path}")
        return path
