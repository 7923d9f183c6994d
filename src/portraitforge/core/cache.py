"""TTL + LRU cache for compiled prompts.

Entries expire ``ttl`` seconds after insertion.  Expiry is lazy (a ``get`` or
``has`` on an expired entry removes it) and proactive (a background sweep
thread removes expired entries every ``cache_sweep_interval`` seconds).  When
the entry count exceeds ``cache_max_entries`` the least recently accessed
entries are evicted first.

Lifecycle
---------
The sweep thread is an owned resource: ``start()`` launches it, ``stop()``
joins it and ``dispose()`` stops it and drops all entries.  The cache is also
a context manager.  All state is guarded by a re-entrant lock so a sweep may
safely race lookups.

Usage Example
-------------
    >>> with TemplateCache(EngineConfig()) as cache:
    ...     cache.set("prompt:t1:abc", result)
    ...     cache.get("prompt:t1:abc").metadata.cache_hit
    True

Time Source
-----------
``clock`` defaults to ``time.time``; tests inject a fake clock to step time
forward without sleeping.
"""

import itertools
import json
import logging
import re
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .config import EngineConfig
from .models import CacheSettings, CompiledResult

logger = logging.getLogger(__name__)

ENTRY_OVERHEAD = 100


@dataclass
class CacheEntry:
    """A cached compilation with its bookkeeping."""

    data: CompiledResult
    inserted_at: float
    ttl: float
    hits: int = 0
    last_accessed: float = 0.0
    access_tick: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.inserted_at + self.ttl


@dataclass
class CacheStats:
    """Aggregate cache statistics. ``hit_rate`` is a percentage."""

    size: int
    hit_rate: float
    total_requests: int
    total_hits: int
    memory_usage: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def estimate_size(result: CompiledResult) -> int:
    """Rough memory estimate of a compiled result in bytes."""
    size = len(result.prompt) * 2
    size += len(result.metadata.model_dump_json()) * 2
    size += len("".join(result.warnings)) * 2
    size += len("".join(result.errors)) * 2
    return size


class TemplateCache:
    """Memoize compiled prompts with TTL expiry and LRU bounding.

    Attributes
    ----------
    config : EngineConfig
        Supplies ``enable_caching``, default and preload TTLs, the entry
        ceiling and the sweep interval
    clock : Callable[[], float]
        Returns the current time in seconds

    Notes
    -----
    - With ``enable_caching`` off, ``get``/``has`` always miss and ``set`` is
      a no-op; requests are still counted
    - Returned results are copies flagged ``cache_hit=True``
    """

    def __init__(self, config: EngineConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._ticks = itertools.count(1)
        self._total_requests = 0
        self._total_hits = 0
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        """Whether the background sweep thread is alive."""
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        """Start the background sweep thread (idempotent)."""
        if self.running:
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="template-cache-sweeper", daemon=True
        )
        self._sweeper.start()
        logger.info(f"Started cache sweeper (every {self.config.cache_sweep_interval}s)")

    def stop(self) -> None:
        """Stop the sweep thread and wait for it to exit."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
            logger.info("Stopped cache sweeper")

    def dispose(self) -> None:
        """Stop the sweeper and drop all entries and statistics."""
        self.stop()
        self.clear()

    def __enter__(self) -> "TemplateCache":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.config.cache_sweep_interval):
            self.sweep()

    # ------------------------------------------------------------------
    # Entry access
    # ------------------------------------------------------------------

    def get(self, key: str) -> CompiledResult | None:
        """Return a copy of the cached result, or None on miss or expiry."""
        with self._lock:
            self._total_requests += 1
            if not self.config.enable_caching:
                return None

            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache miss: {key}")
                return None

            now = self.clock()
            if entry.is_expired(now):
                del self._entries[key]
                logger.debug(f"Cache entry expired: {key}")
                return None

            entry.hits += 1
            entry.last_accessed = now
            entry.access_tick = next(self._ticks)
            self._total_hits += 1
            logger.debug(f"Cache hit: {key}")

            result = entry.data.model_copy(deep=True)
        result.metadata.cache_hit = True
        return result

    def set(
        self,
        key: str,
        value: CompiledResult,
        settings: CacheSettings | None = None,
        *,
        ttl: float | None = None,
    ) -> None:
        """Store a result.

        Args:
            key: Cache key
            value: Compiled result (stored as a copy with ``cache_hit=False``)
            settings: Template cache settings; their ``ttl`` overrides the default
            ttl: Explicit TTL in seconds, overriding both
        """
        if not self.config.enable_caching:
            return

        if ttl is None:
            ttl = settings.ttl if settings is not None and settings.ttl else self.config.cache_default_ttl

        data = value.model_copy(deep=True)
        data.metadata.cache_hit = False

        with self._lock:
            now = self.clock()
            self._entries[key] = CacheEntry(
                data=data,
                inserted_at=now,
                ttl=ttl,
                last_accessed=now,
                access_tick=next(self._ticks),
            )
            self._enforce_size_limit()

    def has(self, key: str) -> bool:
        """Return True if a live entry exists for ``key``."""
        if not self.config.enable_caching:
            return False
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self.clock()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        """Remove an entry; returns whether it existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all entries and reset statistics."""
        with self._lock:
            self._entries.clear()
            self._total_requests = 0
            self._total_hits = 0

    def invalidate(self, pattern: str | re.Pattern | None = None, *, regex: bool = False) -> int:
        """Remove entries whose keys match ``pattern``.

        Args:
            pattern: Substring (default), regex string (with ``regex=True``) or
                compiled pattern. None clears everything.
            regex: Treat a string pattern as a regular expression

        Returns:
            Number of entries removed

        Raises:
            re.error: If a regex pattern does not compile
        """
        with self._lock:
            if not pattern:
                count = len(self._entries)
                self.clear()
                logger.info(f"Invalidated all {count} cache entries")
                return count

            if isinstance(pattern, re.Pattern):
                matches = pattern.search
            elif regex:
                matches = re.compile(pattern).search
            else:
                matches = lambda key: pattern in key  # noqa: E731

            doomed = [key for key in self._entries if matches(key)]
            for key in doomed:
                del self._entries[key]

        logger.info(f"Invalidated {len(doomed)} cache entries matching {pattern!r}")
        return len(doomed)

    def sweep(self) -> int:
        """Remove expired entries now; returns the number removed."""
        with self._lock:
            now = self.clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def _enforce_size_limit(self) -> None:
        overflow = len(self._entries) - self.config.cache_max_entries
        if overflow <= 0:
            return
        oldest = sorted(
            self._entries.items(),
            key=lambda item: (item[1].last_accessed, item[1].access_tick),
        )
        for key, _ in oldest[:overflow]:
            del self._entries[key]
        logger.info(f"Evicted {overflow} cache entries due to size limit")

    # ------------------------------------------------------------------
    # Statistics and debugging
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def memory_usage(self) -> int:
        """Approximate memory held by cached results, in bytes."""
        with self._lock:
            return sum(estimate_size(e.data) + ENTRY_OVERHEAD for e in self._entries.values())

    def get_stats(self) -> CacheStats:
        """Return aggregate statistics."""
        with self._lock:
            requests = self._total_requests
            hits = self._total_hits
            size = len(self._entries)
        hit_rate = (hits / requests) * 100 if requests else 0.0
        return CacheStats(
            size=size,
            hit_rate=round(hit_rate, 2),
            total_requests=requests,
            total_hits=hits,
            memory_usage=self.memory_usage(),
        )

    def debug_entries(self) -> list[dict[str, Any]]:
        """Describe every entry, most hit first."""
        now = self.clock()
        with self._lock:
            rows = [
                {
                    "key": key,
                    "size": estimate_size(entry.data),
                    "age": now - entry.inserted_at,
                    "hits": entry.hits,
                    "last_accessed": entry.last_accessed,
                    "ttl": entry.ttl,
                }
                for key, entry in self._entries.items()
            ]
        return sorted(rows, key=lambda row: -row["hits"])

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def preload(self, items: list[dict[str, Any]]) -> None:
        """Warm the cache from ``{"key", "data", "ttl"?}`` items.

        Items without a TTL use ``cache_preload_ttl``.
        """
        for item in items:
            data = item["data"]
            if not isinstance(data, CompiledResult):
                data = CompiledResult.model_validate(data)
            self.set(item["key"], data, ttl=item.get("ttl") or self.config.cache_preload_ttl)

    def export_entries(self) -> str:
        """Serialise statistics and entries as a JSON document."""
        with self._lock:
            payload = {
                "timestamp": self.clock(),
                "stats": {
                    "total_requests": self._total_requests,
                    "total_hits": self._total_hits,
                },
                "entries": [
                    {
                        "key": key,
                        "data": entry.data.model_dump(mode="json"),
                        "timestamp": entry.inserted_at,
                        "ttl": entry.ttl,
                        "hits": entry.hits,
                    }
                    for key, entry in self._entries.items()
                ],
            }
        return json.dumps(payload, indent=2)

    def import_entries(self, payload: str) -> int:
        """Replace the cache contents with an ``export_entries`` document.

        Original insertion times are kept, so entries that expired since the
        export are dropped on next access.

        Returns:
            Number of entries imported

        Raises:
            ValueError: If the document is malformed
        """
        try:
            document = json.loads(payload)
            entries = [
                (
                    item["key"],
                    CompiledResult.model_validate(item["data"]),
                    float(item["timestamp"]),
                    float(item["ttl"]),
                    int(item.get("hits", 0)),
                )
                for item in document["entries"]
            ]
        except (json.JSONDecodeError, KeyError, TypeError, PydanticValidationError) as e:
            raise ValueError(f"Failed to import cache data: {e}") from e

        with self._lock:
            self.clear()
            now = self.clock()
            for key, data, inserted_at, ttl, hits in entries:
                self._entries[key] = CacheEntry(
                    data=data,
                    inserted_at=inserted_at,
                    ttl=ttl,
                    hits=hits,
                    last_accessed=now,
                    access_tick=next(self._ticks),
                )
            self._enforce_size_limit()

        logger.info(f"Imported {len(entries)} cache entries")
        return len(entries)
