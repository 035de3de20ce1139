#!/usr/bin/env python3
"""
AI Prompt Manager - Prompt Cache

In-memory LRU cache of generated prompts with per-entry TTL. Expired entries
are dropped lazily on read or during maintenance. Cache faults are logged and
never reach the caller.
"""

import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import PerformanceConfig
from .logger import PromptLogger
from .types import GeneratedPrompt, to_jsonable


@dataclass
class CacheEntry:
    """A cached prompt with its timing and access statistics."""
    key: str
    prompt: GeneratedPrompt
    ttl_ms: int
    created_at: datetime = field(default_factory=datetime.now)
    last_accessed: datetime = field(default_factory=datetime.now)
    access_count: int = 0
    expires_at_monotonic: float = 0.0

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.monotonic()) >= self.expires_at_monotonic


def _empty_stats() -> Dict[str, Any]:
    now = datetime.now()
    return {
        "total_entries": 0,
        "hits": 0,
        "misses": 0,
        "hit_rate": 0.0,
        "memory_usage": 0,
        "oldest_entry": now,
        "newest_entry": now,
        "average_generation_time_ms": 0.0,
    }


class PromptCache:
    """Thread-safe LRU prompt cache keyed by request identity."""

    def __init__(
        self,
        config: Optional[PerformanceConfig] = None,
        logger: Optional[PromptLogger] = None
    ):
        self.config = config or PerformanceConfig()
        self.logger = logger or PromptLogger()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._created_at = datetime.now()

    def set(self, key: str, prompt: GeneratedPrompt, ttl_ms: Optional[int] = None) -> None:
        """Store a prompt, evicting the least recently used entry when full."""
        if not self.config.cache_enabled:
            return
        try:
            ttl = self.config.cache_ttl_ms if ttl_ms is None else ttl_ms
            entry = CacheEntry(
                key=key,
                prompt=prompt,
                ttl_ms=ttl,
                expires_at_monotonic=time.monotonic() + ttl / 1000.0,
            )
            with self._lock:
                if key in self._entries:
                    del self._entries[key]
                elif self.config.max_cache_size and len(self._entries) >= self.config.max_cache_size:
                    self._evict_least_recently_used()
                self._entries[key] = entry
        except Exception as e:
            self.logger.log_warning(f"Cache set failed: {e}")

    def get(self, key: str) -> Optional[GeneratedPrompt]:
        """Return the cached prompt, or None when disabled, absent or expired."""
        if not self.config.cache_enabled:
            return None
        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None or entry.is_expired():
                    if entry is not None:
                        del self._entries[key]
                    self._count(hit=False)
                    self.logger.log_cache_miss(key)
                    return None

                entry.last_accessed = datetime.now()
                entry.access_count += 1
                self._entries.move_to_end(key)
                self._count(hit=True)
            self.logger.log_cache_hit(key)
            return entry.prompt
        except Exception as e:
            self.logger.log_warning(f"Cache get failed: {e}")
            return None

    def delete(self, key: str) -> bool:
        try:
            with self._lock:
                return self._entries.pop(key, None) is not None
        except Exception as e:
            self.logger.log_warning(f"Cache delete failed: {e}")
            return False

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        try:
            with self._lock:
                self._entries.clear()
                self._hits = 0
                self._misses = 0
            self.logger.log_event("CACHE", "Cleared")
        except Exception as e:
            self.logger.log_warning(f"Cache clear failed: {e}")

    def get_cache_entry(self, key: str) -> Optional[CacheEntry]:
        try:
            with self._lock:
                return self._entries.get(key)
        except Exception as e:
            self.logger.log_warning(f"Cache entry lookup failed: {e}")
            return None

    def get_cache_keys(self) -> List[str]:
        try:
            with self._lock:
                return list(self._entries.keys())
        except Exception as e:
            self.logger.log_warning(f"Cache key listing failed: {e}")
            return []

    def get_stats(self) -> Dict[str, Any]:
        try:
            with self._lock:
                entries = list(self._entries.values())
                hits, misses = self._hits, self._misses

            if not entries:
                stats = _empty_stats()
                stats.update(hits=hits, misses=misses)
                stats["hit_rate"] = hits / (hits + misses) if hits + misses else 0.0
                return stats

            sizes = [len(json.dumps(e.prompt.to_dict())) for e in entries]
            created = [e.created_at for e in entries]
            generation_times = [
                e.prompt.metadata["generation_time_ms"]
                for e in entries
                if "generation_time_ms" in (e.prompt.metadata or {})
            ]
            return {
                "total_entries": len(entries),
                "hits": hits,
                "misses": misses,
                "hit_rate": hits / (hits + misses) if hits + misses else 0.0,
                "memory_usage": sum(sizes),
                "oldest_entry": min(created),
                "newest_entry": max(created),
                "average_generation_time_ms": (
                    sum(generation_times) / len(generation_times) if generation_times else 0.0
                ),
            }
        except Exception as e:
            self.logger.log_warning(f"Cache stats failed: {e}")
            return _empty_stats()

    def validate_cache_integrity(self) -> bool:
        """True when every entry is stored under its own key and holds a prompt with an id."""
        try:
            now = datetime.now()
            with self._lock:
                for key, entry in self._entries.items():
                    if entry.key != key:
                        return False
                    if entry.prompt is None or not entry.prompt.prompt_id:
                        return False
                    if entry.created_at > now:
                        return False
            return True
        except Exception:
            return False

    def perform_maintenance(self) -> int:
        """Remove expired entries and trim to the size limit. Returns entries removed."""
        try:
            now = time.monotonic()
            with self._lock:
                before = len(self._entries)
                for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
                    del self._entries[key]
                limit = self.config.max_cache_size
                while limit and len(self._entries) > limit:
                    self._evict_least_recently_used()
                removed = before - len(self._entries)
            if removed:
                self.logger.log_event("CACHE", f"Maintenance removed {removed} entries")
            return removed
        except Exception as e:
            self.logger.log_warning(f"Cache maintenance failed: {e}")
            return 0

    def export_cache_data(self) -> Dict[str, Any]:
        """Snapshot of config, entries and stats as JSON-safe values. Empty on failure."""
        try:
            with self._lock:
                entries = list(self._entries.values())
            return to_jsonable({
                "config": self.config,
                "created_at": self._created_at,
                "exported_at": datetime.now(),
                "entries": [
                    {
                        "key": e.key,
                        "prompt_id": e.prompt.prompt_id,
                        "prompt_type": e.prompt.prompt_type,
                        "created_at": e.created_at,
                        "last_accessed": e.last_accessed,
                        "access_count": e.access_count,
                        "ttl_ms": e.ttl_ms,
                    }
                    for e in entries
                ],
                "stats": self.get_stats(),
            })
        except Exception as e:
            self.logger.log_warning(f"Cache export failed: {e}")
            return {}

    def update_config(self, config: PerformanceConfig) -> None:
        self.config = config
        if not config.cache_enabled:
            self.clear()
        else:
            self.perform_maintenance()

    def _count(self, hit: bool) -> None:
        # Caller holds the lock
        if not self.config.metrics_enabled:
            return
        if hit:
            self._hits += 1
        else:
            self._misses += 1

    def _evict_least_recently_used(self) -> None:
        # Caller holds the lock
        if self._entries:
            key, _ = self._entries.popitem(last=False)
            self.logger.log_event("CACHE", f"Evicted {key}")
