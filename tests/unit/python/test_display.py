#!/usr/bin/env python3
"""
Unit tests for prompt_manager/display.py - PromptDisplay class
"""

from unittest.mock import MagicMock

import sys
sys.path.insert(0, '.')
from prompt_manager.display import PromptDisplay, _score_style
from prompt_manager.types import (
    PromptType,
    PromptValidationError,
    QualityAssessment,
    ValidationResult,
)


def make_prompt():
    prompt = MagicMock()
    prompt.prompt_type = PromptType.INITIAL_ACTION
    prompt.session_id = "s1"
    prompt.step_index = 2
    prompt.prompt_id = "prompt_1_abcdefghi"
    prompt.content.system_message = "System message text"
    return prompt


class TestScoreStyle:
    """Tests for score colouring."""

    def test_thresholds(self):
        assert _score_style(0.9) == "green"
        assert _score_style(0.8) == "green"
        assert _score_style(0.7) == "yellow"
        assert _score_style(0.2) == "red"


class TestPlainOutput:
    """Tests for plain-text output."""

    def test_no_color_disables_rich(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        display = PromptDisplay()
        assert display._use_rich is False

    def test_show_prompt(self, capsys):
        PromptDisplay(use_rich=False).show_prompt(make_prompt())
        out = capsys.readouterr().out
        assert "INITIAL_ACTION | session s1 | step 2" in out
        assert "prompt_1_abcdefghi" in out
        assert "System message text" in out

    def test_show_validation(self, capsys):
        result = ValidationResult(
            is_valid=False,
            errors=[PromptValidationError(
                field="session_id",
                message="Required field 'session_id' is missing",
                code="MISSING_REQUIRED_FIELD",
            )],
            warnings=["System message is quite short"],
            quality_score=0.5,
            suggestions=["Fix it"],
        )
        PromptDisplay(use_rich=False).show_validation(result)
        out = capsys.readouterr().out
        assert "Validation: INVALID (quality 0.50)" in out
        assert "error: session_id: Required field 'session_id' is missing (MISSING_REQUIRED_FIELD)" in out
        assert "warning: System message is quite short" in out
        assert "suggestion: Fix it" in out

    def test_show_valid(self, capsys):
        result = ValidationResult(is_valid=True, errors=[], warnings=[], quality_score=1.0, suggestions=[])
        PromptDisplay(use_rich=False).show_validation(result)
        assert "Validation: VALID" in capsys.readouterr().out

    def test_show_quality(self, capsys):
        assessment = QualityAssessment(
            clarity_score=1.0,
            completeness_score=0.75,
            context_relevance_score=1.0,
            schema_alignment_score=1.0,
            overall_score=0.9375,
            improvements=["Add missing content sections"],
        )
        PromptDisplay(use_rich=False).show_quality(assessment)
        out = capsys.readouterr().out
        assert "Prompt Quality:" in out
        assert "Completeness: 0.75" in out
        assert "Overall: 0.94" in out
        assert "improve: Add missing content sections" in out

    def test_show_cache_stats(self, capsys):
        PromptDisplay(use_rich=False).show_cache_stats({
            "total_entries": 2,
            "hits": 3,
            "misses": 1,
            "hit_rate": 0.75,
            "memory_usage": 12345,
            "average_generation_time_ms": 4.25,
        })
        out = capsys.readouterr().out
        assert "Cache:" in out
        assert "Hit rate: 75.0%" in out
        assert "Memory (chars): 12,345" in out

    def test_show_config_summary(self, capsys):
        PromptDisplay(use_rich=False).show_config_summary({
            "module_enabled": True,
            "enabled_investigation_tools": ["screenshot_analysis", "text_extraction"],
        })
        out = capsys.readouterr().out
        assert "Configuration:" in out
        assert "module enabled: True" in out
        assert "enabled investigation tools: screenshot_analysis, text_extraction" in out

    def test_message_and_error(self, capsys):
        display = PromptDisplay(use_rich=False)
        display.message("working")
        display.error("broken")
        captured = capsys.readouterr()
        assert "[prompt-manager] working" in captured.out
        assert "[prompt-manager] Error: broken" in captured.err


class TestRichOutput:
    """Tests for rich output."""

    def test_rich_prints_through_console(self):
        display = PromptDisplay(use_rich=True)
        display._console = MagicMock()
        display.show_prompt(make_prompt())
        display.show_cache_stats({})
        display.error("broken")
        assert display._console.print.called
        printed = [c.args[0] for c in display._console.print.call_args_list if c.args]
        assert "[red]✗ broken[/red]" in printed
