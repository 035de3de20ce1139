#!/usr/bin/env python3
"""
Unit tests for prompt_manager/__main__.py - command line entry point
"""

import json
import subprocess

import pytest

import sys
sys.path.insert(0, '.')
from prompt_manager.__main__ import DEMO_DOM, DEMO_SESSION, DEMO_STEPS, build_demo_session, main
from prompt_manager.factory import create_test_prompt_manager
from prompt_manager.legacy import LegacyPromptManager
from prompt_manager.stores import InMemoryContextStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PROMPT_MANAGER_LOG_DIR", "NO_COLOR", "MAX_PROMPT_LENGTH",
                 "CONTEXT_TRUNCATE_RESULT", "CONTEXT_HISTORY_LIMIT"):
        monkeypatch.delenv(name, raising=False)


def run_main(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["prompt-manager", *args])
    main()


class TestBuildDemoSession:
    """Tests for build_demo_session."""

    def test_records_previous_steps(self):
        store = InMemoryContextStore()
        legacy = LegacyPromptManager(create_test_prompt_manager(context_store=store), store)
        build_demo_session(legacy, store, list(DEMO_STEPS), 2)

        session = store._sessions[DEMO_SESSION]
        assert session["steps"] == DEMO_STEPS
        assert sorted(session["step_logs"]) == [0, 1]
        assert len(session["history"]) == 2
        assert session["current_page"] == DEMO_DOM

    def test_first_step_has_no_history(self):
        store = InMemoryContextStore()
        legacy = LegacyPromptManager(create_test_prompt_manager(context_store=store), store)
        build_demo_session(legacy, store, list(DEMO_STEPS), 0)

        session = store._sessions[DEMO_SESSION]
        assert session["step_logs"] == {}
        assert session["current_page"] is None


class TestMain:
    """Tests for main()."""

    def test_default_action_prompt(self, monkeypatch, capsys):
        run_main(monkeypatch)
        out = capsys.readouterr().out
        assert f"INITIAL_ACTION | session {DEMO_SESSION} | step 0" in out
        assert "Validation: VALID" in out
        assert "Prompt Quality:" in out
        assert "Cache:" in out

    def test_validation_prompt_for_later_step(self, monkeypatch, capsys):
        run_main(monkeypatch, "-i", "1")
        assert "ACTION_WITH_VALIDATION | session" in capsys.readouterr().out

    def test_reflection(self, monkeypatch, capsys):
        run_main(monkeypatch, "-i", "1", "--reflect", "--expected", "Link is visible")
        assert "REFLECTION_AND_ACTION | session" in capsys.readouterr().out

    def test_investigation_phase(self, monkeypatch, capsys):
        run_main(monkeypatch, "--phase", "FOCUSED_EXPLORATION")
        assert "INVESTIGATION_FOCUSED_EXPLORATION | session" in capsys.readouterr().out

    def test_legacy_prompt(self, monkeypatch, capsys):
        run_main(monkeypatch, "-i", "2", "--legacy")
        out = capsys.readouterr().out
        assert "\n\n---\n\n" in out
        assert f'- Step 3 of 3: "{DEMO_STEPS[2]}"' in out

    def test_custom_steps(self, monkeypatch, capsys):
        run_main(monkeypatch, "-s", "Open https://a.test", "-s", "Click Login", "-i", "1", "--legacy")
        assert '- Step 2 of 2: "Click Login"' in capsys.readouterr().out

    def test_export_config(self, monkeypatch, capsys):
        run_main(monkeypatch, "--export-config", "--preset", "comprehensive")
        exported = json.loads(capsys.readouterr().out)
        assert exported["default_prompt_options"]["reasoning_depth"] == "comprehensive"

    def test_config_file(self, monkeypatch, capsys, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"context": {"max_dom_size": 1234}}))
        run_main(monkeypatch, "--config", str(path), "--export-config")
        exported = json.loads(capsys.readouterr().out)
        assert exported["context"]["max_dom_size"] == 1234

    def test_index_out_of_range(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc:
            run_main(monkeypatch, "-i", "5")
        assert exc.value.code == 2
        assert "Step index 5 is out of range for 3 steps" in capsys.readouterr().err

    def test_invalid_config_file(self, monkeypatch, capsys, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(SystemExit) as exc:
            run_main(monkeypatch, "--config", str(path))
        assert exc.value.code == 1
        assert "Failed to import configuration" in capsys.readouterr().err

    def test_missing_config_file(self, monkeypatch, tmp_path):
        with pytest.raises(SystemExit) as exc:
            run_main(monkeypatch, "--config", str(tmp_path / "missing.json"))
        assert exc.value.code == 1


class TestModuleEntryPoint:
    """Tests for python -m prompt_manager."""

    def test_runs_as_module(self):
        result = subprocess.run(
            [sys.executable, "-m", "prompt_manager", "--legacy"],
            capture_output=True,
            text=True
        )
        assert result.returncode == 0
        assert "CURRENT STEP OBJECTIVE" in result.stdout
