"""Caching wrapper for slow metadata providers."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from xstream_cdc.changes.models import ChangeKey
from xstream_cdc.metadata.base import TableMetadata, TableMetadataProvider

logger = structlog.get_logger()


class CachingTableMetadataProvider:
    """Caches successful lookups for ``ttl_seconds``.

    Misses are never cached so that a table registered later is picked up
    on the next record. A TTL of zero disables caching.
    """

    def __init__(
        self,
        provider: TableMetadataProvider,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[ChangeKey, tuple[float, TableMetadata]] = {}

    def table_metadata(self, change_key: ChangeKey) -> TableMetadata | None:
        now = self._clock()
        cached = self._entries.get(change_key)
        if cached is not None and now < cached[0]:
            return cached[1]

        metadata = self._provider.table_metadata(change_key)
        if metadata is None:
            self._entries.pop(change_key, None)
            return None
        if self._ttl > 0:
            self._entries[change_key] = (now + self._ttl, metadata)
            logger.debug(
                "metadata_cache.stored", change_key=str(change_key), ttl=self._ttl
            )
        return metadata

    def invalidate(self, change_key: ChangeKey | None = None) -> None:
        """Drop one cached entry, or all of them."""
        if change_key is None:
            self._entries.clear()
        else:
            self._entries.pop(change_key, None)
