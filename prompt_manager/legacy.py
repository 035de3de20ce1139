#!/usr/bin/env python3
"""
AI Prompt Manager - Legacy Step Prompt Interface

Session-and-step interface kept for older callers: init a session with its
steps, then ask for the system/user messages of a step. Prompt generation is
delegated to the PromptManager; only the user message layout lives here.
"""

from typing import Dict, List, Optional

from . import templates as text
from .errors import ContextUnavailable
from .history import HistoryFormatter, env_int, truncate_with_message
from .manager import PromptManager
from .stores import InMemoryContextStore
from .template_engine import render
from .types import ActionPromptRequest

DEFAULT_MAX_PROMPT_LENGTH = 8000
NO_PAGE_STATE = "No page state available"


class LegacyPromptManager:
    """init / get_step_messages / get_step_prompt over a PromptManager."""

    def __init__(
        self,
        manager: PromptManager,
        context_store: InMemoryContextStore,
        max_prompt_length: Optional[int] = None,
        history_formatter: Optional[HistoryFormatter] = None
    ):
        self.manager = manager
        self.context_store = context_store
        self.max_prompt_length = (
            max_prompt_length if max_prompt_length is not None
            else env_int("MAX_PROMPT_LENGTH", DEFAULT_MAX_PROMPT_LENGTH)
        )
        self.history = history_formatter or HistoryFormatter()

    def init(self, session_id: str, steps: List[str]) -> None:
        """
        Create a session with its workflow steps.

        Raises:
            ContextUnavailable: The session already exists
        """
        if not self.context_store.create_context(session_id):
            raise ContextUnavailable(
                f'Session "{session_id}" is already initialized',
                session_id=session_id
            )
        self.context_store.set_steps(session_id, steps)

    async def get_step_messages(self, session_id: str, step_id: int) -> Dict[str, str]:
        """
        Build the system and user messages for one step.

        Returns:
            {"system": ..., "user": ...}

        Raises:
            ContextUnavailable: Unknown session or step out of bounds
        """
        context = await self.context_store.get_execution_context(session_id)
        if context is None:
            raise ContextUnavailable(f'Session "{session_id}" does not exist', session_id=session_id)

        steps = context["steps"]
        if step_id < 0 or step_id >= len(steps):
            raise ContextUnavailable(
                f'Step ID {step_id} is out of bounds for session "{session_id}"',
                session_id=session_id,
                step_index=step_id
            )

        prompt = await self.manager.generate_action_prompt(ActionPromptRequest(
            session_id=session_id,
            current_step_index=step_id,
            current_step_content=steps[step_id],
            include_validation=step_id > 0,
        ))
        system = prompt.content.system_message

        page_state = await self.context_store.get_current_page_state(session_id)
        max_dom_size = self.manager.config_manager.get_context_config().max_dom_size
        page_state = truncate_with_message(page_state, max_dom_size) if page_state else NO_PAGE_STATE

        def render_user(history: str) -> str:
            return render(text.LEGACY_USER_TEMPLATE, {
                "stepNumber": step_id + 1,
                "totalSteps": len(steps),
                "stepName": steps[step_id],
                "currentPageState": page_state,
                "contextualHistory": history,
            })

        user = self.history.fit_history(
            context, step_id, render_user, self.max_prompt_length - len(system)
        )
        return {"system": system, "user": user}

    async def get_step_prompt(self, session_id: str, step_id: int) -> str:
        messages = await self.get_step_messages(session_id, step_id)
        return messages["system"] + text.LEGACY_PROMPT_SEPARATOR + messages["user"]
