#!/usr/bin/env python3
"""
Unit tests for prompt_manager/logger.py - PromptLogger class
"""

import tempfile
from pathlib import Path

import pytest

import sys
sys.path.insert(0, '.')
from prompt_manager.logger import PromptLogger


@pytest.fixture(autouse=True)
def clear_log_dir_env(monkeypatch):
    monkeypatch.delenv("PROMPT_MANAGER_LOG_DIR", raising=False)


class TestPromptLoggerInit:
    """Tests for PromptLogger initialization."""

    def test_init_creates_log_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir) / "logs"
            PromptLogger(log_dir)
            assert log_dir.exists()

    def test_log_file_path(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = PromptLogger(Path(tmpdir))
            assert logger.get_log_path().endswith("prompt-manager.log")

    def test_memory_only_without_dir(self):
        logger = PromptLogger()
        assert logger.get_log_path() == ""

    def test_env_var_sets_dir(self, monkeypatch):
        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.setenv("PROMPT_MANAGER_LOG_DIR", tmpdir)
            logger = PromptLogger()
            assert logger.get_log_path().startswith(tmpdir)

    def test_file_output_disabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = PromptLogger(Path(tmpdir), file_output=False)
            logger.log_event("TEST", "Message")
            assert logger.get_log_path() == ""
            assert list(Path(tmpdir).iterdir()) == []


class TestLogEvent:
    """Tests for log_event method."""

    def test_log_event_creates_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = PromptLogger(Path(tmpdir))
            logger.log_event("TEST", "Test message")
            assert Path(logger.get_log_path()).exists()

    def test_log_event_writes_formatted_entry(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = PromptLogger(Path(tmpdir))
            logger.log_event("CATEGORY", "Test message")

            content = logger.get_log_content()
            assert "[CATEGORY]" in content
            assert "Test message" in content

    def test_log_event_includes_timestamp(self):
        logger = PromptLogger()
        logger.log_event("TEST", "Message")
        # Timestamp format like [2026-01-11 10:30:00]
        assert logger.get_log_content().startswith("[20")

    def test_newlines_escaped(self):
        logger = PromptLogger()
        logger.log_event("TEST", "line1\nline2")
        assert "line1\\nline2" in logger.get_log_content()
        assert len(logger.get_recent_lines()) == 1

    def test_daily_log_labelled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = PromptLogger(Path(tmpdir), label="worker")
            logger.log_event("TEST", "Message")
            daily = Path(tmpdir) / f"{logger._get_log_date()}.log"
            assert daily.read_text().startswith("[prompt-manager-worker] ")

    def test_buffer_bounded(self):
        logger = PromptLogger()
        for i in range(PromptLogger.BUFFER_SIZE + 10):
            logger.log_event("TEST", f"m{i}")
        lines = logger.get_recent_lines(limit=PromptLogger.BUFFER_SIZE + 10)
        assert len(lines) == PromptLogger.BUFFER_SIZE
        assert "m10" in lines[0]


class TestTypedEvents:
    """Tests for the typed logging helpers."""

    def test_prompt_generated(self):
        logger = PromptLogger()
        logger.log_prompt_generated("INITIAL_ACTION", "s1", 0, 12.345)
        assert "[PROMPT] INITIAL_ACTION generated | session: s1 | step: 0 | 12.3ms" in logger.get_log_content()

    def test_validation_failed(self):
        logger = PromptLogger()
        logger.log_validation_failed("action", ["a", "b"])
        assert "[VALIDATION] action rejected: a, b" in logger.get_log_content()

    def test_cache_hit_miss(self):
        logger = PromptLogger()
        logger.log_cache_hit("k1")
        logger.log_cache_miss("k2")
        content = logger.get_log_content()
        assert "[CACHE] Hit: k1" in content
        assert "[CACHE] Miss: k2" in content

    def test_config_updated_none(self):
        logger = PromptLogger()
        logger.log_config_updated([])
        assert "Configuration updated: none" in logger.get_log_content()

    def test_warning(self):
        logger = PromptLogger()
        logger.log_warning("recovered")
        assert "[WARN] recovered" in logger.get_log_content()

    def test_error_with_exception(self):
        logger = PromptLogger()
        logger.log_error("Generation failed", ValueError("bad"))
        assert "[ERROR] Generation failed: ValueError: bad" in logger.get_log_content()

    def test_error_without_exception(self):
        logger = PromptLogger()
        logger.log_error("Generation failed")
        assert "[ERROR] Generation failed" in logger.get_log_content()
