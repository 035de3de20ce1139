#!/usr/bin/env python3
"""
AI Prompt Manager - Entry Point

Generate a prompt for a demo session with: python -m prompt_manager

Usage:
    python -m prompt_manager [OPTIONS]

Options:
    -s, --step TEXT       Workflow step (repeatable)
    -i, --index N         Step to generate the prompt for (default: 0)
    --phase PHASE         Generate an investigation prompt for this phase
    --reflect             Generate a reflection prompt for the previous step
    --expected TEXT       Expected outcome of the previous step (with --reflect)
    --legacy              Print the legacy system/user step prompt
    --config PATH         Load configuration from a JSON file
    --export-config       Print the effective configuration as JSON and exit
    --preset NAME         Apply a prompt options preset
    -h, --help            Show this help message
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from .config import PROMPT_PRESETS, ConfigManager
from .display import PromptDisplay
from .errors import PromptManagerError
from .factory import create_prompt_manager
from .legacy import LegacyPromptManager
from .manager import PromptManager
from .stores import InMemoryContextStore
from .types import (
    ActionPromptRequest,
    GeneratedPrompt,
    InvestigationPhase,
    InvestigationPromptRequest,
    ReflectionPromptRequest,
)

DEMO_SESSION = "demo-session"
DEMO_STEPS = [
    "Open https://example.com",
    "Click the 'More information' link",
    "Verify the page heading mentions IANA",
]
DEMO_DOM = (
    "<html><body><div><h1>Example Domain</h1>"
    "<p>This domain is for use in illustrative examples.</p>"
    '<p><a href="https://www.iana.org/domains/example">More information...</a></p>'
    "</div></body></html>"
)


def build_demo_session(legacy: LegacyPromptManager, store: InMemoryContextStore, steps: List[str], index: int) -> None:
    """Create the session and record successful execution of every step before `index`."""
    legacy.init(DEMO_SESSION, steps)
    for step_index in range(index):
        store.log_task(DEMO_SESSION, step_index, {
            "ai_response": {
                "action": {"command": "OPEN_PAGE" if step_index == 0 else "CLICK_ELEMENT",
                           "parameters": {"selector": "a"} if step_index else {"url": "https://example.com"}},
                "reasoning": f"Executing: {steps[step_index]}",
                "confidence": 90,
                "flow_control": "stop_success",
            },
            "execution_result": {"success": True, "result": "done", "error": None},
        })
        store.record_step(
            DEMO_SESSION, step_index, steps[step_index],
            reasoning=f"Completed: {steps[step_index]}",
            executor_method="demo"
        )
        store.set_page_state(DEMO_SESSION, step_index, DEMO_DOM)


async def generate(
    manager: PromptManager,
    args: argparse.Namespace,
    steps: List[str]
) -> GeneratedPrompt:
    index = args.index
    if args.phase:
        return await manager.generate_investigation_prompt(InvestigationPromptRequest(
            session_id=DEMO_SESSION,
            step_index=index,
            step_content=steps[index],
            investigation_phase=InvestigationPhase(args.phase),
        ))
    if args.reflect and index > 0:
        return await manager.generate_reflection_prompt(ReflectionPromptRequest(
            session_id=DEMO_SESSION,
            completed_step_index=index - 1,
            next_step_index=index,
            next_step_content=steps[index],
            expected_outcome=args.expected,
        ))
    return await manager.generate_action_prompt(ActionPromptRequest(
        session_id=DEMO_SESSION,
        current_step_index=index,
        current_step_content=steps[index],
        include_validation=index > 0,
    ))


def load_config(path: Optional[str]) -> Optional[dict]:
    """Read and validate a JSON configuration file."""
    if not path:
        return None
    config_manager = ConfigManager()
    config_manager.import_config(Path(path).read_text())
    return json.loads(config_manager.export_config())


def main():
    parser = argparse.ArgumentParser(
        description="AI Prompt Manager - Generate browser-automation agent prompts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Action prompt for the first demo step
    python -m prompt_manager

    # Custom workflow, prompt for the second step
    python -m prompt_manager -s "Open https://example.com" -s "Click Login" -i 1

    # Reflection on step 1 before acting on step 2
    python -m prompt_manager -i 1 --reflect --expected "Login form is visible"

    # Investigation prompt
    python -m prompt_manager --phase FOCUSED_EXPLORATION

    # Legacy system/user prompt
    python -m prompt_manager -i 2 --legacy

Environment Variables:
    PROMPT_MANAGER_LOG_DIR    - Directory for engine log files
    CONTEXT_TRUNCATE_RESULT   - Max characters of GET_TEXT results in history (default 1000)
    CONTEXT_HISTORY_LIMIT     - Max characters of execution history (default 2000)
    MAX_PROMPT_LENGTH         - Legacy prompt length budget (default 8000)
""",
    )

    parser.add_argument(
        "-s", "--step",
        action="append",
        default=None,
        help="Workflow step (repeatable, default: built-in demo steps)",
    )
    parser.add_argument(
        "-i", "--index",
        type=int,
        default=0,
        help="Step index to generate the prompt for (default: 0)",
    )
    parser.add_argument(
        "--phase",
        choices=[p.value for p in InvestigationPhase],
        default=None,
        help="Generate an investigation prompt for this phase",
    )
    parser.add_argument(
        "--reflect",
        action="store_true",
        help="Generate a reflection prompt for the previous step",
    )
    parser.add_argument(
        "--expected",
        type=str,
        default=None,
        help="Expected outcome of the previous step (with --reflect)",
    )
    parser.add_argument(
        "--legacy",
        action="store_true",
        help="Print the legacy system/user step prompt",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON configuration file",
    )
    parser.add_argument(
        "--export-config",
        action="store_true",
        help="Print the effective configuration as JSON and exit",
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PROMPT_PRESETS),
        type=str.upper,
        default=None,
        help="Prompt options preset",
    )

    args = parser.parse_args()
    display = PromptDisplay()
    steps = args.step or list(DEMO_STEPS)

    if not 0 <= args.index < len(steps):
        display.error(f"Step index {args.index} is out of range for {len(steps)} steps")
        sys.exit(2)

    try:
        store = InMemoryContextStore()
        manager = create_prompt_manager(load_config(args.config), context_store=store)
        if args.preset:
            manager.config_manager.apply_preset(args.preset)

        if args.export_config:
            print(manager.config_manager.export_config())
            return

        legacy = LegacyPromptManager(manager, store)
        build_demo_session(legacy, store, steps, args.index)

        if args.legacy:
            print(asyncio.run(legacy.get_step_prompt(DEMO_SESSION, args.index)))
            return

        prompt = asyncio.run(generate(manager, args, steps))
        display.show_prompt(prompt)
        display.show_validation(manager.validate_prompt_structure(prompt))
        display.show_quality(manager.assess_prompt_quality(prompt))
        display.show_cache_stats(manager.get_cache_stats())
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        sys.exit(130)
    except (PromptManagerError, OSError) as e:
        display.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
