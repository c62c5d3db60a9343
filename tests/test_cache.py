"""Tests for the per-record content cache."""

from notionsh.vfs.cache import CacheEntry, ContentCache

from conftest import FakeClock


class TestContentCache:

    def test_fresh_entry_returned(self):
        clock = FakeClock()
        cache = ContentCache(60, clock)
        cache.put("abc", "text", "v1")

        clock.advance(59)
        assert cache.get("abc").content == "text"

    def test_expired_entry_hidden_but_peekable(self):
        """Given an entry older than the TTL, get misses while peek still sees it."""
        clock = FakeClock()
        cache = ContentCache(60, clock)
        cache.put("abc", "text", "v1")

        clock.advance(60)
        assert cache.get("abc") is None
        assert cache.peek("abc").observed_version == "v1"

    def test_keys_ignore_dashes(self):
        cache = ContentCache(60, FakeClock())
        cache.put("ab-cd", "text", None)
        assert "abcd" in cache
        assert cache.get("AB-CD") is not None

    def test_invalidate(self):
        cache = ContentCache(60, FakeClock())
        cache.put("abc", "text", None)
        cache.invalidate("abc")
        cache.invalidate("missing")
        assert len(cache) == 0

    def test_prune_versions_drops_only_changed_records(self):
        """Given a new listing, entries whose version moved are dropped, others survive."""
        cache = ContentCache(60, FakeClock())
        cache.put("same", "a", "v1")
        cache.put("moved", "b", "v1")
        cache.put("unlisted", "c", "v1")

        dropped = cache.prune_versions({"same": "v1", "moved": "v2"})

        assert dropped == 1
        assert "same" in cache
        assert "moved" not in cache
        assert "unlisted" in cache

    def test_entry_freshness_boundary(self):
        entry = CacheEntry(content="", fetched_at=100.0, observed_version=None)
        assert entry.is_fresh(159.9, 60)
        assert not entry.is_fresh(160.0, 60)
