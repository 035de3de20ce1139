#!/usr/bin/env python3
"""
Unit tests for prompt_manager/legacy.py - LegacyPromptManager class
"""

import asyncio

import pytest

import sys
sys.path.insert(0, '.')
from prompt_manager.errors import ContextUnavailable
from prompt_manager.factory import create_test_prompt_manager
from prompt_manager.history import HistoryFormatter, MINIMAL_HISTORY
from prompt_manager.legacy import LegacyPromptManager, NO_PAGE_STATE
from prompt_manager.stores import InMemoryContextStore
from prompt_manager.templates import LEGACY_PROMPT_SEPARATOR

STEPS = ["Open https://example.com", "Click login", "Submit form"]


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for name in ("MAX_PROMPT_LENGTH", "CONTEXT_TRUNCATE_RESULT", "CONTEXT_HISTORY_LIMIT"):
        monkeypatch.delenv(name, raising=False)


def make_legacy(max_prompt_length=1000000, config=None):
    store = InMemoryContextStore()
    manager = create_test_prompt_manager(config, context_store=store)
    return LegacyPromptManager(manager, store, max_prompt_length=max_prompt_length), store


def log_entry(command, reasoning, flow_control="stop_success"):
    return {
        "ai_response": {
            "action": {"command": command, "parameters": {"selector": "#x"}},
            "reasoning": reasoning,
            "confidence": 90,
            "flow_control": flow_control,
        },
        "execution_result": {"success": True, "result": "done", "error": None},
    }


class TestInit:
    """Tests for LegacyPromptManager.init."""

    def test_creates_session(self):
        legacy, store = make_legacy()
        legacy.init("s1", STEPS)
        assert run_async(store.get_execution_context("s1"))["steps"] == STEPS

    def test_duplicate_session(self):
        legacy, _ = make_legacy()
        legacy.init("s1", STEPS)
        with pytest.raises(ContextUnavailable) as exc:
            legacy.init("s1", STEPS)
        assert str(exc.value) == 'Session "s1" is already initialized'

    def test_default_length_from_env(self, monkeypatch):
        monkeypatch.setenv("MAX_PROMPT_LENGTH", "1234")
        store = InMemoryContextStore()
        legacy = LegacyPromptManager(create_test_prompt_manager(context_store=store), store)
        assert legacy.max_prompt_length == 1234

    def test_default_length(self):
        store = InMemoryContextStore()
        legacy = LegacyPromptManager(create_test_prompt_manager(context_store=store), store)
        assert legacy.max_prompt_length == 8000


class TestGetStepMessages:
    """Tests for get_step_messages."""

    def test_unknown_session(self):
        legacy, _ = make_legacy()
        with pytest.raises(ContextUnavailable) as exc:
            run_async(legacy.get_step_messages("missing", 0))
        assert str(exc.value) == 'Session "missing" does not exist'

    @pytest.mark.parametrize("step_id", [-1, 3])
    def test_out_of_bounds(self, step_id):
        legacy, _ = make_legacy()
        legacy.init("s1", STEPS)
        with pytest.raises(ContextUnavailable) as exc:
            run_async(legacy.get_step_messages("s1", step_id))
        assert str(exc.value) == f'Step ID {step_id} is out of bounds for session "s1"'

    def test_first_step(self):
        legacy, _ = make_legacy()
        legacy.init("s1", STEPS)
        messages = run_async(legacy.get_step_messages("s1", 0))
        assert "You are an intelligent web automation agent" in messages["system"]
        assert '- Step 1 of 3: "Open https://example.com"' in messages["user"]
        assert NO_PAGE_STATE in messages["user"]
        assert "No execution history available." in messages["user"]
        assert "CURRENT STEP OBJECTIVE: Open https://example.com" in messages["user"]

    def test_later_step_with_history(self):
        legacy, store = make_legacy()
        legacy.init("s1", STEPS)
        store.log_task("s1", 0, log_entry("OPEN_PAGE", "Open the site"))
        store.set_page_state("s1", 0, "<html>home</html>")
        messages = run_async(legacy.get_step_messages("s1", 1))
        user = messages["user"]
        assert '- Step 2 of 3: "Click login"' in user
        assert "<html>home</html>" in user
        assert 'PREVIOUS STEPS:\n- Step 1: "Open https://example.com" - success' in user

    def test_page_state_truncated(self):
        legacy, store = make_legacy(config={"context": {"max_dom_size": 10}})
        legacy.init("s1", STEPS)
        store.set_page_state("s1", 0, "x" * 25)
        messages = run_async(legacy.get_step_messages("s1", 0))
        assert "[Value is truncated, shown 10 out of 25 characters]" in messages["user"]

    def test_history_reduced_to_fit(self):
        legacy, store = make_legacy()
        legacy.init("s1", [f"step {i}" for i in range(30)])
        for i in range(29):
            store.log_task("s1", i, log_entry("CLICK_ELEMENT", "r" * 80))
        full = run_async(legacy.get_step_messages("s1", 29))
        budget = len(full["system"]) + len(full["user"]) - 100

        legacy.max_prompt_length = budget
        reduced = run_async(legacy.get_step_messages("s1", 29))
        assert len(reduced["system"]) + len(reduced["user"]) <= budget

    def test_minimal_history_when_nothing_fits(self):
        legacy, store = make_legacy()
        legacy.init("s1", STEPS)
        store.log_task("s1", 0, log_entry("OPEN_PAGE", "Open the site"))
        legacy.max_prompt_length = 0
        messages = run_async(legacy.get_step_messages("s1", 1))
        assert f"EXECUTION HISTORY:\n{MINIMAL_HISTORY}" in messages["user"]

    def test_custom_history_formatter(self):
        store = InMemoryContextStore()
        formatter = HistoryFormatter(truncate_limit=5, history_limit=100)
        legacy = LegacyPromptManager(
            create_test_prompt_manager(context_store=store), store,
            max_prompt_length=1000000, history_formatter=formatter
        )
        assert legacy.history is formatter


class TestGetStepPrompt:
    """Tests for get_step_prompt."""

    def test_joined_with_separator(self):
        legacy, _ = make_legacy()
        legacy.init("s1", STEPS)
        messages = run_async(legacy.get_step_messages("s1", 0))
        prompt = run_async(legacy.get_step_prompt("s1", 0))
        assert prompt == messages["system"] + LEGACY_PROMPT_SEPARATOR + messages["user"]
