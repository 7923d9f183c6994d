"""Tests for portraitforge.core.cache - TTL + LRU compilation cache.

Tests cover:
- Hits, misses, expiry and the cache_hit flag.
- Template cache settings and explicit TTLs.
- LRU eviction at the entry ceiling.
- Pattern invalidation (substring, regex, all).
- Statistics, sweeping, the sweeper thread lifecycle.
- Preload and export/import.
"""

import re

import pytest

from portraitforge.core.cache import TemplateCache, estimate_size
from portraitforge.core.config import EngineConfig
from portraitforge.core.models import CacheSettings, CompilationMetadata, CompiledResult


def result(prompt: str = "A portrait", template_id: str = "t1") -> CompiledResult:
    return CompiledResult(
        prompt=prompt,
        metadata=CompilationMetadata(template_id=template_id, version=1),
    )


@pytest.fixture
def cache(test_config: EngineConfig, fake_clock) -> TemplateCache:
    return TemplateCache(test_config, clock=fake_clock)


class TestGetSet:
    """Basic storage semantics."""

    def test_miss(self, cache):
        assert cache.get("prompt:t1:x") is None

    def test_hit_returns_flagged_copy(self, cache):
        stored = result()
        cache.set("prompt:t1:x", stored)
        hit = cache.get("prompt:t1:x")
        assert hit.prompt == "A portrait"
        assert hit.metadata.cache_hit is True
        assert stored.metadata.cache_hit is False
        hit.prompt = "mutated"
        assert cache.get("prompt:t1:x").prompt == "A portrait"

    def test_has_and_delete(self, cache):
        cache.set("k", result())
        assert cache.has("k")
        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert not cache.has("k")

    def test_disabled_cache_is_noop(self, temp_dir, fake_clock):
        config = EngineConfig(_env_file=None, data_dir=temp_dir, enable_caching=False)
        cache = TemplateCache(config, clock=fake_clock)
        cache.set("k", result())
        assert cache.get("k") is None
        assert len(cache) == 0


class TestExpiry:
    """TTL handling with an injected clock."""

    def test_default_ttl(self, cache, fake_clock):
        cache.set("k", result())
        fake_clock.advance(3600)
        assert cache.get("k") is not None
        fake_clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_template_settings_ttl(self, cache, fake_clock):
        cache.set("k", result(), CacheSettings(ttl=60))
        fake_clock.advance(61)
        assert not cache.has("k")

    def test_explicit_ttl_wins(self, cache, fake_clock):
        cache.set("k", result(), CacheSettings(ttl=60), ttl=10)
        fake_clock.advance(11)
        assert cache.get("k") is None

    def test_sweep_removes_expired(self, cache, fake_clock):
        cache.set("short", result(), ttl=5)
        cache.set("long", result(), ttl=500)
        fake_clock.advance(10)
        assert cache.sweep() == 1
        assert len(cache) == 1
        assert cache.has("long")


class TestEviction:
    """LRU eviction at the entry ceiling."""

    def test_least_recently_accessed_evicted(self, temp_dir, fake_clock):
        config = EngineConfig(_env_file=None, data_dir=temp_dir, cache_max_entries=2)
        cache = TemplateCache(config, clock=fake_clock)
        cache.set("a", result())
        fake_clock.advance(1)
        cache.set("b", result())
        fake_clock.advance(1)
        cache.get("a")
        fake_clock.advance(1)
        cache.set("c", result())
        assert cache.has("a")
        assert not cache.has("b")
        assert cache.has("c")

    def test_ties_broken_by_access_order(self, temp_dir, fake_clock):
        config = EngineConfig(_env_file=None, data_dir=temp_dir, cache_max_entries=2)
        cache = TemplateCache(config, clock=fake_clock)
        cache.set("a", result())
        cache.set("b", result())
        cache.set("c", result())
        assert not cache.has("a")
        assert len(cache) == 2


class TestInvalidation:
    """Pattern invalidation."""

    def populate(self, cache):
        cache.set("prompt:t1:aaa", result())
        cache.set("prompt:t1:bbb", result())
        cache.set("prompt:t2:ccc", result(template_id="t2"))

    def test_substring(self, cache):
        self.populate(cache)
        assert cache.invalidate("prompt:t1:") == 2
        assert len(cache) == 1

    def test_regex(self, cache):
        self.populate(cache)
        assert cache.invalidate(r"t\d:c+$", regex=True) == 1
        assert cache.invalidate(re.compile(r"aaa")) == 1

    def test_regex_metacharacters_literal_by_default(self, cache):
        self.populate(cache)
        assert cache.invalidate("t.:") == 0

    def test_invalid_regex_raises(self, cache):
        with pytest.raises(re.error):
            cache.invalidate("([", regex=True)

    def test_none_clears_all(self, cache):
        self.populate(cache)
        assert cache.invalidate() == 3
        assert len(cache) == 0


class TestStatistics:
    """Hit rate and memory accounting."""

    def test_hit_rate(self, cache):
        cache.set("k", result())
        cache.get("k")
        cache.get("k")
        cache.get("missing")
        cache.get("missing")
        stats = cache.get_stats()
        assert stats.total_requests == 4
        assert stats.total_hits == 2
        assert stats.hit_rate == 50.0
        assert stats.size == 1

    def test_empty_stats(self, cache):
        stats = cache.get_stats().to_dict()
        assert stats["hit_rate"] == 0.0
        assert stats["memory_usage"] == 0

    def test_clear_resets_stats(self, cache):
        cache.set("k", result())
        cache.get("k")
        cache.clear()
        assert cache.get_stats().total_requests == 0
        assert len(cache) == 0

    def test_memory_usage_grows(self, cache):
        cache.set("small", result("x"))
        small = cache.memory_usage()
        cache.set("large", result("x" * 1000))
        assert cache.memory_usage() > small + 2000
        assert estimate_size(result("abc")) > 6

    def test_debug_entries_sorted_by_hits(self, cache):
        cache.set("a", result())
        cache.set("b", result())
        cache.get("b")
        entries = cache.debug_entries()
        assert [e["key"] for e in entries] == ["b", "a"]
        assert entries[0]["hits"] == 1


class TestLifecycle:
    """Background sweeper thread."""

    def test_start_stop(self, temp_dir):
        config = EngineConfig(_env_file=None, data_dir=temp_dir, cache_sweep_interval=0.05)
        cache = TemplateCache(config)
        cache.start()
        assert cache.running
        cache.start()
        cache.stop()
        assert not cache.running

    def test_context_manager_disposes(self, temp_dir):
        config = EngineConfig(_env_file=None, data_dir=temp_dir, cache_sweep_interval=0.05)
        with TemplateCache(config) as cache:
            cache.set("k", result())
            assert cache.running
        assert not cache.running
        assert len(cache) == 0


class TestWarmStart:
    """Preload and export/import."""

    def test_preload_uses_preload_ttl(self, cache, fake_clock):
        cache.preload([{"key": "k", "data": result().model_dump(mode="json")}])
        fake_clock.advance(7000)
        assert cache.has("k")
        fake_clock.advance(201)
        assert not cache.has("k")

    def test_export_import(self, cache, test_config, fake_clock):
        cache.set("prompt:t1:aaa", result("first"))
        cache.get("prompt:t1:aaa")
        payload = cache.export_entries()

        restored = TemplateCache(test_config, clock=fake_clock)
        assert restored.import_entries(payload) == 1
        hit = restored.get("prompt:t1:aaa")
        assert hit.prompt == "first"
        assert restored.debug_entries()[0]["hits"] == 2

    def test_import_rejects_garbage(self, cache):
        with pytest.raises(ValueError, match="Failed to import cache data"):
            cache.import_entries("not json")
        with pytest.raises(ValueError):
            cache.import_entries('{"entries": [{"key": "k"}]}')
