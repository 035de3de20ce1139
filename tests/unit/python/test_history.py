#!/usr/bin/env python3
"""
Unit tests for prompt_manager/history.py - HistoryFormatter and truncation helpers
"""

import pytest

import sys
sys.path.insert(0, '.')
from prompt_manager.history import (
    HistoryFormatter,
    MINIMAL_HISTORY,
    NO_HISTORY,
    confidence_label,
    env_int,
    truncate_with_message,
)


@pytest.fixture(autouse=True)
def clear_history_env(monkeypatch):
    monkeypatch.delenv("CONTEXT_TRUNCATE_RESULT", raising=False)
    monkeypatch.delenv("CONTEXT_HISTORY_LIMIT", raising=False)


def log_entry(command="CLICK_ELEMENT", success=True, result="ok", flow_control="continue",
              reasoning="Because", confidence=90, error=None, parameters=None):
    return {
        "ai_response": {
            "action": {"command": command, "parameters": parameters or {"selector": "#btn"}},
            "reasoning": reasoning,
            "confidence": confidence,
            "flow_control": flow_control,
        },
        "execution_result": {"success": success, "result": result, "error": error},
    }


class TestTruncateWithMessage:
    """Tests for truncate_with_message."""

    def test_exact_message(self):
        assert truncate_with_message("x" * 1500, 1000) == (
            "x" * 1000 + "\n\n[Value is truncated, shown 1000 out of 1500 characters]"
        )

    def test_short_text_unchanged(self):
        assert truncate_with_message("short", 10) == "short"

    def test_text_at_limit_unchanged(self):
        assert truncate_with_message("abcde", 5) == "abcde"

    def test_empty(self):
        assert truncate_with_message("", 5) == ""


class TestHelpers:
    """Tests for env_int and confidence_label."""

    def test_env_int_default(self):
        assert env_int("CONTEXT_HISTORY_LIMIT", 42) == 42

    def test_env_int_value(self, monkeypatch):
        monkeypatch.setenv("CONTEXT_HISTORY_LIMIT", "123")
        assert env_int("CONTEXT_HISTORY_LIMIT", 42) == 123

    def test_env_int_malformed(self, monkeypatch):
        monkeypatch.setenv("CONTEXT_HISTORY_LIMIT", "lots")
        assert env_int("CONTEXT_HISTORY_LIMIT", 42) == 42

    @pytest.mark.parametrize("value,label", [(95, "HIGH"), (80, "HIGH"), (50, "MEDIUM"), (10, "LOW")])
    def test_confidence_label(self, value, label):
        assert confidence_label(value) == label

    def test_confidence_label_passthrough(self):
        assert confidence_label("MEDIUM") == "MEDIUM"
        assert confidence_label(None) == "LOW"


class TestFormatterInit:
    """Tests for environment-driven limits."""

    def test_defaults(self):
        formatter = HistoryFormatter()
        assert formatter.truncate_limit == 1000
        assert formatter.history_limit == 2000

    def test_env_limits(self, monkeypatch):
        monkeypatch.setenv("CONTEXT_TRUNCATE_RESULT", "10")
        monkeypatch.setenv("CONTEXT_HISTORY_LIMIT", "300")
        formatter = HistoryFormatter()
        assert formatter.truncate_limit == 10
        assert formatter.history_limit == 300


class TestFormatResult:
    """Tests for per-command result formatting."""

    def test_failure(self):
        result = HistoryFormatter().format_result("CLICK_ELEMENT", {"success": False, "error": "not found"})
        assert result == "    Result: ✗ not found"

    def test_get_subdom(self):
        result = HistoryFormatter().format_result("GET_SUBDOM", {"success": True, "result": "<div/>"})
        assert result == "    Result: ✓ DOM retrieved successfully\n\nDOM CONTENT:\n<div/>"

    def test_open_page(self):
        result = HistoryFormatter().format_result("OPEN_PAGE", {"success": True, "result": "whatever"})
        assert result == "    Result: ✓ Page opened successfully"

    def test_get_text_truncated(self):
        formatter = HistoryFormatter(truncate_limit=5)
        result = formatter.format_result("GET_TEXT", {"success": True, "result": "abcdefgh"})
        assert result == "    Result: ✓ abcde\n\n[Value is truncated, shown 5 out of 8 characters]"

    def test_other_command_short_limit(self):
        result = HistoryFormatter().format_result("CLICK_ELEMENT", {"success": True, "result": "y" * 150})
        assert result == "    Result: ✓ " + "y" * 100 + "..."

    def test_non_string_result(self):
        result = HistoryFormatter().format_result("SAVE_VARIABLE", {"success": True, "result": {"a": 1}})
        assert result == "    Result: ✓ Success"


class TestFormatLogEntry:
    """Tests for format_log_entry."""

    def test_structured_entry(self):
        text = HistoryFormatter().format_log_entry(log_entry(), 1)
        assert text.startswith("  Attempt 1: CLICK_ELEMENT (Confidence: HIGH)")
        assert "    Reasoning: Because" in text
        assert '"selector": "#btn"' in text
        assert text.endswith("    Result: ✓ ok")

    def test_legacy_top_level_entry(self):
        log = {"command": "OPEN_PAGE", "parameters": {"url": "https://x"}, "confidence": 40}
        text = HistoryFormatter().format_log_entry(log, 2)
        assert text.startswith("  Attempt 2: OPEN_PAGE (Confidence: LOW)")
        assert "No reasoning provided" in text

    def test_empty_entry(self):
        assert HistoryFormatter().format_log_entry(None, 3) == "  Attempt 3: No data available"

    def test_no_parameters(self):
        log = {"ai_response": {"action": {"command": "GET_DOM"}, "confidence": 60}}
        text = HistoryFormatter().format_log_entry(log, 1)
        assert "    Parameters: No parameters" in text
        assert "(Confidence: MEDIUM)" in text


class TestStepSummary:
    """Tests for step_outcome and summarize_step."""

    def test_outcomes(self):
        assert HistoryFormatter.step_outcome([]) == "not started"
        assert HistoryFormatter.step_outcome([log_entry(flow_control="stop_success")]) == "success"
        assert HistoryFormatter.step_outcome([log_entry(flow_control="stop_failure")]) == "failure"
        assert HistoryFormatter.step_outcome([log_entry()]) == "in progress"

    def test_summary_success(self):
        summary = HistoryFormatter.summarize_step([log_entry(), log_entry(reasoning="Done")])
        assert summary == "2 action(s) taken (succeeded). Last reasoning: Done"

    def test_summary_long_error_cut(self):
        summary = HistoryFormatter.summarize_step([log_entry(success=False, error="e" * 60, reasoning=None)])
        assert summary == "1 action(s) taken (failed: " + "e" * 50 + "...)"

    def test_summary_no_logs(self):
        assert HistoryFormatter.summarize_step([]) == "No actions taken"


class TestFormatExecutionHistory:
    """Tests for format_execution_history."""

    def test_no_history(self):
        context = {"steps": ["a"], "step_logs": {}}
        assert HistoryFormatter().format_execution_history(context, 0) == NO_HISTORY

    def test_previous_steps_and_attempts(self):
        context = {
            "steps": ["Open page", "Click login"],
            "step_logs": {
                0: [log_entry(command="OPEN_PAGE", flow_control="stop_success")],
                1: [log_entry()],
            },
        }
        history = HistoryFormatter().format_execution_history(context, 1)
        assert history.startswith("PREVIOUS STEPS:\n")
        assert '- Step 1: "Open page" - success\n' in history
        assert "  Summary: 1 action(s) taken (succeeded)" in history
        assert "CURRENT STEP ATTEMPTS:\n  Attempt 1: CLICK_ELEMENT" in history

    def test_only_last_ten_attempts(self):
        context = {"steps": ["a"], "step_logs": {0: [log_entry() for _ in range(12)]}}
        history = HistoryFormatter(history_limit=100000).format_execution_history(context, 0)
        assert "Attempt 2:" not in history
        assert "Attempt 3:" in history
        assert "Attempt 12:" in history

    def test_long_history_truncated(self):
        context = {
            "steps": [f"step {i}" for i in range(30)],
            "step_logs": {i: [log_entry(reasoning="r" * 80, flow_control="stop_success")] for i in range(30)},
        }
        history = HistoryFormatter(history_limit=1000).format_execution_history(context, 29)
        assert history.startswith(MINIMAL_HISTORY + " Showing ")
        assert "(most recent content preserved)." in history


class TestSmartTruncate:
    """Tests for smart_truncate_history."""

    def test_keeps_current_attempts(self):
        history = "PREVIOUS STEPS:\n" + "- Step 1: x\n" * 100 + "\nCURRENT STEP ATTEMPTS:\n  Attempt 1: CLICK"
        result = HistoryFormatter().smart_truncate_history(history, 500)
        assert "CURRENT STEP ATTEMPTS:\n  Attempt 1: CLICK" in result
        assert "PREVIOUS STEPS:" in result

    def test_header_counts(self):
        history = "PREVIOUS STEPS:\n" + "- Step 1: x\n" * 100
        result = HistoryFormatter().smart_truncate_history(history, 500)
        header, kept = result.split("\n\n", 1)
        assert header == (
            f"{MINIMAL_HISTORY} Showing {len(kept)} of {len(history)} characters "
            "(most recent content preserved)."
        )


class TestFitHistory:
    """Tests for fit_history."""

    def _context(self, steps=20):
        return {
            "steps": [f"step {i}" for i in range(steps)],
            "step_logs": {i: [log_entry(reasoning="r" * 60, flow_control="stop_success")] for i in range(steps)},
        }

    def test_fits_unchanged(self):
        formatter = HistoryFormatter()
        context = self._context(2)
        rendered = formatter.fit_history(context, 1, lambda h: f"H:{h}", 100000)
        assert rendered == "H:" + formatter.format_execution_history(context, 1)

    def test_reduced_history(self):
        formatter = HistoryFormatter()
        context = self._context()
        full = formatter.format_execution_history(context, 19)
        rendered = formatter.fit_history(context, 19, lambda h: h, len(full) - 300)
        assert len(rendered) <= len(full) - 300
        assert rendered != MINIMAL_HISTORY

    def test_minimal_history_fallback(self):
        formatter = HistoryFormatter()
        rendered = formatter.fit_history(self._context(), 19, lambda h: "P" * 100 + h, 150)
        assert rendered == "P" * 100 + MINIMAL_HISTORY
