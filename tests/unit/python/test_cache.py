#!/usr/bin/env python3
"""
Unit tests for prompt_manager/cache.py - PromptCache class
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

import sys
sys.path.insert(0, '.')
from prompt_manager.cache import PromptCache
from prompt_manager.config import PerformanceConfig
from prompt_manager.logger import PromptLogger
from prompt_manager.types import GeneratedPrompt, PromptContent, PromptType


def make_prompt(prompt_id="p1", generation_time_ms=None):
    metadata = {}
    if generation_time_ms is not None:
        metadata["generation_time_ms"] = generation_time_ms
    return GeneratedPrompt(
        prompt_id=prompt_id,
        session_id="s1",
        step_index=0,
        prompt_type=PromptType.INITIAL_ACTION,
        content=PromptContent(
            system_message="system",
            context_section={},
            instruction_section={},
            schema_section={},
        ),
        schema={"type": "object"},
        generated_at=datetime.now(),
        metadata=metadata,
    )


def make_cache(**overrides):
    config = PerformanceConfig(**overrides)
    return PromptCache(config, PromptLogger(file_output=False))


class TestSetGet:
    """Tests for basic set/get behavior."""

    def test_get_returns_stored_prompt(self):
        cache = make_cache()
        prompt = make_prompt()
        cache.set("k", prompt)
        assert cache.get("k") is prompt

    def test_get_missing_returns_none(self):
        cache = make_cache()
        assert cache.get("missing") is None

    def test_hit_and_miss_counted(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        cache.get("k")
        cache.get("nope")
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    def test_access_count_incremented(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        cache.get("k")
        cache.get("k")
        assert cache.get_cache_entry("k").access_count == 2

    def test_replace_existing_key(self):
        cache = make_cache(max_cache_size=2)
        cache.set("a", make_prompt("p1"))
        cache.set("b", make_prompt("p2"))
        cache.set("a", make_prompt("p3"))
        assert cache.get_cache_keys() == ["b", "a"]
        assert cache.get("a").prompt_id == "p3"


class TestDisabledCache:
    """Tests for a cache with caching turned off."""

    def test_set_is_noop(self):
        cache = make_cache(cache_enabled=False)
        cache.set("k", make_prompt())
        assert cache.get_cache_keys() == []

    def test_get_returns_none(self):
        cache = make_cache(cache_enabled=False)
        assert cache.get("k") is None
        assert cache.get_stats()["misses"] == 0


class TestExpiry:
    """Tests for TTL expiry."""

    def test_short_ttl_expires(self):
        cache = make_cache()
        cache.set("short", make_prompt("p1"), ttl_ms=100)
        cache.set("long", make_prompt("p2"), ttl_ms=1000)

        time.sleep(0.15)

        assert cache.get("short") is None
        assert cache.get("long") is not None

    def test_expired_entry_removed_on_read(self):
        cache = make_cache()
        cache.set("k", make_prompt(), ttl_ms=0)
        assert cache.get("k") is None
        assert "k" not in cache.get_cache_keys()

    def test_default_ttl_from_config(self):
        cache = make_cache(cache_ttl_ms=1234)
        cache.set("k", make_prompt())
        assert cache.get_cache_entry("k").ttl_ms == 1234

    def test_maintenance_removes_expired(self):
        cache = make_cache()
        cache.set("old", make_prompt(), ttl_ms=0)
        cache.set("fresh", make_prompt(), ttl_ms=60000)
        assert cache.perform_maintenance() == 1
        assert cache.get_cache_keys() == ["fresh"]


class TestEviction:
    """Tests for LRU eviction."""

    def test_least_recently_used_evicted(self):
        # given
        cache = make_cache(max_cache_size=3)
        cache.set("k1", make_prompt("p1"))
        cache.set("k2", make_prompt("p2"))
        cache.set("k3", make_prompt("p3"))

        # when
        cache.get("k1")
        cache.set("k4", make_prompt("p4"))

        # then
        assert cache.get("k2") is None
        assert cache.get("k1") is not None
        assert cache.get("k3") is not None
        assert cache.get("k4") is not None

    def test_size_never_exceeds_limit(self):
        cache = make_cache(max_cache_size=2)
        for i in range(5):
            cache.set(f"k{i}", make_prompt(f"p{i}"))
        assert len(cache.get_cache_keys()) == 2

    def test_maintenance_trims_after_limit_shrinks(self):
        cache = make_cache(max_cache_size=5)
        for i in range(4):
            cache.set(f"k{i}", make_prompt(f"p{i}"))
        cache.update_config(PerformanceConfig(max_cache_size=2))
        assert cache.get_cache_keys() == ["k2", "k3"]


class TestDeleteClear:
    """Tests for delete and clear."""

    def test_delete_existing(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        assert cache.delete("k") is True
        assert cache.get("k") is None

    def test_delete_missing(self):
        assert make_cache().delete("k") is False

    def test_clear_resets_counters(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        cache.get("k")
        cache.get("x")
        cache.clear()
        stats = cache.get_stats()
        assert stats["total_entries"] == 0
        assert stats["hits"] == 0
        assert stats["misses"] == 0

    def test_disabling_clears(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        cache.update_config(PerformanceConfig(cache_enabled=False))
        assert cache.get_cache_keys() == []


class TestStats:
    """Tests for get_stats, integrity and export."""

    def test_empty_stats(self):
        stats = make_cache().get_stats()
        assert stats["total_entries"] == 0
        assert stats["hit_rate"] == 0.0
        assert stats["memory_usage"] == 0

    def test_average_generation_time(self):
        cache = make_cache()
        cache.set("a", make_prompt("p1", generation_time_ms=10.0))
        cache.set("b", make_prompt("p2", generation_time_ms=30.0))
        stats = cache.get_stats()
        assert stats["total_entries"] == 2
        assert stats["average_generation_time_ms"] == 20.0
        assert stats["memory_usage"] > 0
        assert stats["oldest_entry"] <= stats["newest_entry"]

    def test_integrity_valid(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        assert cache.validate_cache_integrity() is True

    def test_integrity_detects_key_mismatch(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        cache.get_cache_entry("k").key = "other"
        assert cache.validate_cache_integrity() is False

    def test_export_is_json_safe(self):
        import json

        cache = make_cache()
        cache.set("k", make_prompt())
        data = cache.export_cache_data()
        json.dumps(data)
        assert data["entries"][0]["key"] == "k"
        assert data["entries"][0]["prompt_type"] == "INITIAL_ACTION"
        assert data["config"]["cache_enabled"] is True

    def test_integrity_detects_future_creation_time(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        cache.get_cache_entry("k").created_at = datetime.now() + timedelta(hours=1)
        assert cache.validate_cache_integrity() is False

    def test_integrity_detects_empty_prompt_id(self):
        cache = make_cache()
        cache.set("k", make_prompt())
        entry = cache.get_cache_entry("k")
        entry.prompt = replace(entry.prompt, prompt_id="")
        assert cache.validate_cache_integrity() is False

    def test_metrics_disabled_skips_counters(self):
        cache = make_cache(metrics_enabled=False)
        cache.set("k", make_prompt())
        assert cache.get("k") is not None
        assert cache.get("x") is None
        stats = cache.get_stats()
        assert stats["hits"] == 0
        assert stats["misses"] == 0
        assert stats["total_entries"] == 1


class TestConcurrency:
    """Tests for concurrent access from several threads."""

    def test_mixed_operations_keep_cache_consistent(self):
        cache = make_cache(max_cache_size=20)

        def work(worker):
            for i in range(200):
                key = f"k{(worker * 7 + i) % 40}"
                cache.set(key, make_prompt(f"p{worker}-{i}"))
                cache.get(key)
                if i % 5 == 0:
                    cache.delete(f"k{i % 40}")
                if i % 50 == 0:
                    cache.perform_maintenance()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(8)))

        assert len(cache.get_cache_keys()) <= 20
        assert cache.validate_cache_integrity() is True
        stats = cache.get_stats()
        assert stats["hits"] + stats["misses"] == 8 * 200


class TestFaultTolerance:
    """Cache faults are logged and answered with safe defaults."""

    def _broken_cache(self):
        cache = make_cache()
        entries = MagicMock()
        for name in ("get", "keys", "values", "items", "clear", "pop", "__contains__", "__len__"):
            getattr(entries, name).side_effect = RuntimeError("storage broken")
        cache._entries = entries
        return cache

    def test_lookups_return_defaults(self):
        cache = self._broken_cache()
        assert cache.get_cache_entry("k") is None
        assert cache.get_cache_keys() == []
        assert cache.get("k") is None
        assert cache.delete("k") is False

    def test_clear_does_not_raise(self):
        cache = self._broken_cache()
        cache.clear()
        assert "Cache clear failed: storage broken" in cache.logger.get_log_content()

    def test_export_returns_empty(self):
        cache = self._broken_cache()
        assert cache.export_cache_data() == {}
        assert "Cache export failed" in cache.logger.get_log_content()
