"""Time-boxed cache of page content.

Entries are keyed by record id, not by path: paths are rebuilt on every
refresh (collision suffixes can shift) while ids are stable.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from notionsh.notion.models import compact_id

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached Markdown of one page.

    Attributes:
        content: Converted Markdown
        fetched_at: Clock reading when the content was stored
        observed_version: Remote last-edited time the content corresponds to
    """
    content: str
    fetched_at: float
    observed_version: Optional[str]

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.fetched_at < ttl


class ContentCache:
    """Per-record content cache with a fixed TTL."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            ttl_seconds: How long an entry stays valid
            clock: Monotonic clock (injectable for tests)
        """
        self.ttl = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, record_id: str) -> Optional[CacheEntry]:
        """Return the entry for ``record_id`` if it is still within the TTL."""
        entry = self._entries.get(compact_id(record_id))
        if entry is None or not entry.is_fresh(self.clock(), self.ttl):
            return None
        return entry

    def peek(self, record_id: str) -> Optional[CacheEntry]:
        """Return the entry regardless of age."""
        return self._entries.get(compact_id(record_id))

    def put(self, record_id: str, content: str, observed_version: Optional[str]) -> CacheEntry:
        entry = CacheEntry(content=content, fetched_at=self.clock(), observed_version=observed_version)
        self._entries[compact_id(record_id)] = entry
        return entry

    def invalidate(self, record_id: str) -> None:
        self._entries.pop(compact_id(record_id), None)

    def prune_versions(self, current_versions: Mapping[str, Optional[str]]) -> int:
        """Drop entries whose version no longer matches the latest listing.

        Args:
            current_versions: Compact record id -> last-edited time from the new listing

        Returns:
            Number of entries dropped
        """
        stale = [
            key for key, entry in self._entries.items()
            if key in current_versions and entry.observed_version != current_versions[key]
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Dropped {len(stale)} cache entries changed remotely")
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, record_id: str) -> bool:
        return compact_id(record_id) in self._entries
