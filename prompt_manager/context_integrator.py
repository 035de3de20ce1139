#!/usr/bin/env python3
"""
AI Prompt Manager - Context Integrator

Builds the context section of a prompt from the session's context store:
current step, execution history, page states, filtered context and
investigation history. Also builds the working memory section.

Execution history, page state and the execution context are mandatory and
raise ContextUnavailable when the store fails. Working memory, investigation
history and DOM comparison are optional: failures are logged and the part is
left out.
"""

import re
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import ContextConfig, PromptOptions
from .errors import (
    ContextFilteringFailed,
    ContextUnavailable,
    InvestigationContextUnavailable,
    PromptManagerError,
)
from .logger import PromptLogger
from .stores import ContextStore
from .types import InvestigationContext, InvestigationPhase, to_jsonable

PAGE_INSIGHT_SECTIONS = ["header", "main", "footer"]
RELEVANT_ELEMENTS_SHOWN = 10

_INTER_TAG_WHITESPACE = re.compile(r">\s+<")
_WHITESPACE_RUN = re.compile(r"\s{2,}")


def _empty_execution_history() -> Dict[str, Any]:
    return {
        "previous_steps": [],
        "chronological_events": [],
        "success_count": 0,
        "failure_count": 0,
    }


def _map_investigation(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "investigation_type": entry.get("investigation_type"),
        "objective": entry.get("objective") or "Page investigation",
        "outcome": entry.get("outcome", "success"),
        "key_findings": list(entry.get("key_findings", [])),
        "confidence": 0.8,
        "timestamp": entry.get("timestamp"),
    }


def compress_dom(dom: str) -> str:
    """Drop whitespace between tags and collapse the remaining whitespace runs."""
    return _WHITESPACE_RUN.sub(" ", _INTER_TAG_WHITESPACE.sub("><", dom)).strip()


def _entry_step_index(entry: Dict[str, Any]) -> Optional[int]:
    return (entry.get("metadata") or {}).get("step_index")


def compare_doms(previous_dom: str, current_dom: str) -> Dict[str, Any]:
    """Coarse change report between two DOM snapshots."""
    has_changes = previous_dom != current_dom
    return {
        "has_changes": has_changes,
        "added_elements": ["new_elements_detected"] if has_changes else [],
        "removed_elements": ["removed_elements_detected"] if has_changes else [],
        "modified_elements": ["modified_elements_detected"] if has_changes else [],
        "summary": "Page content has changed" if has_changes else "Page content unchanged",
    }


class ContextIntegrator:
    """Assembles context sections from a ContextStore."""

    def __init__(
        self,
        config: Optional[ContextConfig] = None,
        context_store: Optional[ContextStore] = None,
        logger: Optional[PromptLogger] = None
    ):
        self.config = config or ContextConfig()
        self.context_store = context_store
        self.logger = logger or PromptLogger()

    def set_context_store(self, context_store: ContextStore) -> None:
        self.context_store = context_store

    def update_config(self, config: ContextConfig) -> None:
        self.config = config

    # --- Context section ---

    async def build_context_section(
        self,
        session_id: str,
        step_index: int,
        options: PromptOptions,
        overrides: Optional[Dict[str, Any]] = None,
        step_content: str = ""
    ) -> Dict[str, Any]:
        """
        Build the context section for one step.

        Args:
            session_id: Session to read from
            step_index: Step being prompted for
            options: Effective prompt options for the request
            overrides: Per-call switches; include_execution_history=False skips history
            step_content: Natural language text of the step

        Raises:
            ContextUnavailable: A mandatory part could not be read from the store
            ContextFilteringFailed: Filtered context was requested and failed
        """
        overrides = overrides or {}
        try:
            current_step = await self._build_step_context(
                session_id, step_index, options, step_content
            )

            if overrides.get("include_execution_history", options.include_execution_history):
                execution_history = await self._build_execution_history(
                    session_id, options
                )
            else:
                execution_history = _empty_execution_history()

            page_states = await self._build_page_states(session_id, step_index, options)

            section: Dict[str, Any] = {
                "current_step": current_step,
                "execution_history": execution_history,
                "page_states": page_states,
            }

            if options.use_filtered_context and self.context_store is not None:
                section["filtered_context"] = await self._build_filtered_context(
                    session_id, step_index, options
                )

            if options.include_investigation_history and self.context_store is not None:
                investigation_history = await self._build_investigation_history(
                    session_id, step_index
                )
                if investigation_history is not None:
                    section["investigation_history"] = investigation_history

            metadata: Dict[str, Any] = {"session_id": session_id, "step_index": step_index}
            if self.config.include_timestamps:
                metadata["context_generated_at"] = datetime.now().isoformat()
            metadata["use_filtered_context"] = options.use_filtered_context
            section["session_metadata"] = metadata
            return section
        except PromptManagerError:
            raise
        except Exception as e:
            self.logger.log_error("Failed to build context section", e)
            raise ContextUnavailable(
                f"Failed to build context section: {e}",
                session_id=session_id,
                step_index=step_index
            ) from e

    async def build_investigation_context_section(
        self,
        session_id: str,
        step_index: int,
        phase: InvestigationPhase,
        options: Optional[PromptOptions] = None,
        step_content: str = ""
    ) -> Dict[str, Any]:
        """Context section for an investigation phase prompt."""
        base = replace(
            options or PromptOptions(),
            use_filtered_context=True,
            include_working_memory=self.config.include_working_memory_by_default,
            include_investigation_history=True,
            include_element_knowledge=self.config.element_knowledge_threshold > 0,
            context_management_approach="standard",
        )
        try:
            section = await self.build_context_section(
                session_id, step_index, base, step_content=step_content
            )
        except PromptManagerError as e:
            raise InvestigationContextUnavailable(
                f"Failed to build investigation context section: {e.message}",
                session_id=session_id,
                step_index=step_index
            ) from e

        section["current_step"]["investigation_phase"] = phase.value
        section["current_step"]["step_type"] = "investigation"
        return section

    async def build_context_section_with_investigation(
        self,
        session_id: str,
        step_index: int,
        investigation_context: InvestigationContext,
        options: Optional[PromptOptions] = None,
        step_content: str = ""
    ) -> Dict[str, Any]:
        """Context section for an action informed by completed investigation."""
        base = replace(
            options or PromptOptions(),
            use_filtered_context=True,
            include_working_memory=True,
            include_element_knowledge=True,
            context_management_approach="comprehensive",
        )
        try:
            section = await self.build_context_section(
                session_id, step_index, base, step_content=step_content
            )
        except PromptManagerError as e:
            raise InvestigationContextUnavailable(
                f"Failed to build context with investigation: {e.message}",
                session_id=session_id,
                step_index=step_index
            ) from e

        section["current_step"]["step_type"] = "action_with_investigation"
        section["session_metadata"]["investigation_context"] = to_jsonable(investigation_context)
        return section

    # --- Working memory ---

    def build_working_memory_section(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Snapshot the session's working memory, or None when unavailable."""
        if self.context_store is None:
            return None
        try:
            memory = self.context_store.get_working_memory(session_id)
            if not memory:
                return None

            insight = memory.get("current_page_insight")
            preferences = memory.get("investigation_preferences") or {}

            return {
                "current_page_insight": {
                    "page_type": "web_page",
                    "main_sections": list(PAGE_INSIGHT_SECTIONS),
                    "key_elements": [],
                    "complexity": insight.get("complexity") or "medium",
                    "navigation_structure": "standard",
                } if insight else None,
                "known_elements": [
                    {
                        "selector": e["selector"],
                        "element_type": e.get("element_type"),
                        "purpose": e.get("purpose"),
                        "reliability": e.get("reliability", 0.0),
                        "last_validated": e.get("last_seen"),
                        "alternative_selectors": list(e.get("alternative_selectors", [])),
                    }
                    for e in memory.get("known_elements", [])
                ],
                "extracted_variables": [
                    {
                        "name": v["name"],
                        "value": v.get("value"),
                        "source": v.get("extraction_method"),
                        "reliability": v.get("reliability", 0.0),
                    }
                    for v in memory.get("extracted_variables", [])
                ],
                "successful_patterns": [
                    {
                        "pattern": p["pattern"],
                        "context": p.get("context"),
                        "reliability": p.get("success_rate", 0.0),
                        "frequency": p.get("usage_count", 0),
                    }
                    for p in memory.get("successful_patterns", [])
                ],
                "failure_patterns": [
                    {
                        "pattern": p["pattern"],
                        "context": p.get("context"),
                        "reliability": 1 - len(p.get("failure_reasons", [])) / 10,
                        "frequency": 1,
                    }
                    for p in memory.get("failure_patterns", [])
                ],
                "investigation_preferences": {
                    "preferred_tool_order": list(preferences.get("preferred_order", [])),
                    "quality_thresholds": dict(preferences.get("quality_thresholds", {})),
                },
                "memory_last_updated": memory.get("last_updated"),
                "confidence_level": self._overall_confidence(memory),
            }
        except Exception as e:
            self.logger.log_warning(f"Failed to build working memory section: {e}")
            return None

    @staticmethod
    def _overall_confidence(memory: Dict[str, Any]) -> float:
        factors = [
            0.3 if memory.get("known_elements") else 0.0,
            0.2 if memory.get("successful_patterns") else 0.0,
            0.3 if memory.get("current_page_insight") else 0.0,
            0.2 if memory.get("extracted_variables") else 0.0,
        ]
        return round(sum(factors), 2)

    # --- Parts ---

    async def _build_step_context(
        self,
        session_id: str,
        step_index: int,
        options: PromptOptions,
        step_content: str
    ) -> Dict[str, Any]:
        total_steps = 0
        if self.context_store is not None:
            execution_context = await self.context_store.get_execution_context(session_id)
            if execution_context:
                total_steps = len(execution_context.get("steps", []))

        return {
            "step_index": step_index,
            "step_content": step_content,
            "step_type": "initial" if step_index == 0 else "continuation",
            "total_steps": total_steps,
            "investigation_phase": None,
            "current_investigation_round": None,
            "max_investigation_rounds": (
                options.max_investigation_rounds or self.config.investigation_history_depth
            ),
        }

    async def _build_execution_history(
        self,
        session_id: str,
        options: PromptOptions
    ) -> Dict[str, Any]:
        if self.context_store is None:
            return _empty_execution_history()

        max_steps = options.max_history_steps or self.config.max_history_items
        history = await self.context_store.get_step_history(session_id, max_steps)

        return {
            "previous_steps": [self._map_step(h) for h in history],
            "chronological_events": [],
            "success_count": sum(1 for h in history if h.get("status") == "COMPLETED"),
            "failure_count": sum(1 for h in history if h.get("status") == "FAILED"),
        }

    def _map_step(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        step = {
            "step_index": entry.get("step_index"),
            "step_name": entry.get("step_name"),
            "reasoning": entry.get("reasoning"),
            "executor_method": entry.get("executor_method"),
            "status": entry.get("status"),
        }
        if self.config.include_timestamps:
            step["timestamp"] = entry.get("timestamp")
        return step

    def _within_dom_budget(self, dom: Optional[str], label: str) -> Optional[str]:
        if dom is None:
            return None
        if len(dom) > self.config.max_dom_size and self.config.compress_large_dom:
            compressed = compress_dom(dom)
            if len(compressed) <= self.config.max_dom_size:
                self.logger.log_event(
                    "CONTEXT",
                    f"{label} DOM compressed: {len(dom)} -> {len(compressed)} chars"
                )
                return compressed
        if len(dom) > self.config.max_dom_size:
            self.logger.log_event(
                "CONTEXT",
                f"{label} DOM omitted: {len(dom)} chars exceeds limit {self.config.max_dom_size}"
            )
            return None
        return dom

    async def _build_page_states(
        self,
        session_id: str,
        step_index: int,
        options: PromptOptions
    ) -> Dict[str, Any]:
        if self.context_store is None:
            return {}

        current = await self.context_store.get_current_page_state(session_id)
        previous = None
        if step_index > 0:
            previous = await self.context_store.get_previous_page_state(session_id, step_index - 1)

        page_states: Dict[str, Any] = {}
        current_dom = self._within_dom_budget(current, "Current")
        previous_dom = self._within_dom_budget(previous, "Previous")
        if current_dom is not None:
            page_states["current_dom"] = current_dom
        if previous_dom is not None:
            page_states["previous_dom"] = previous_dom

        if options.include_dom_comparison and current_dom and previous_dom:
            try:
                page_states["dom_comparison"] = compare_doms(previous_dom, current_dom)
            except Exception as e:
                self.logger.log_warning(f"DOM comparison failed: {e}")

        if options.include_element_context and self.config.highlight_relevant_elements:
            elements = await self._relevant_elements(session_id)
            if elements:
                page_states["relevant_elements"] = elements

        return page_states

    async def _relevant_elements(self, session_id: str) -> List[Dict[str, Any]]:
        """Most recently discovered elements; an empty list when the store fails."""
        try:
            elements = await self.context_store.get_page_elements_discovered(session_id)
        except Exception as e:
            self.logger.log_warning(f"Failed to read discovered elements: {e}")
            return []
        return list(elements or [])[-RELEVANT_ELEMENTS_SHOWN:]

    async def _build_filtered_context(
        self,
        session_id: str,
        step_index: int,
        options: PromptOptions
    ) -> Dict[str, Any]:
        filter_options = {
            "exclude_full_dom": True,
            "exclude_page_content": False,
            "max_history_steps": options.max_history_steps or self.config.max_history_items,
            "include_working_memory": options.include_working_memory,
            "include_element_knowledge": options.include_element_knowledge,
            "include_investigation_history": options.include_investigation_history,
            "summarization_level": self.config.default_filtering_level,
            "confidence_threshold": self.config.element_knowledge_threshold,
        }
        try:
            filtered = await self.context_store.generate_filtered_context(
                session_id, step_index, filter_options
            )
        except Exception as e:
            self.logger.log_error("Filtered context failed", e)
            raise ContextFilteringFailed(
                f"Failed to build filtered context: {e}",
                session_id=session_id,
                step_index=step_index
            ) from e

        return {
            "execution_summary": filtered.get("execution_summary", []),
            "page_insights": filtered.get("page_insights", []),
            "element_knowledge": filtered.get("element_knowledge", []),
            "context_source": "filtered",
            "filtering_level": self.config.default_filtering_level,
            "confidence_threshold": self.config.element_knowledge_threshold,
        }

    async def _build_investigation_history(
        self,
        session_id: str,
        step_index: int
    ) -> Optional[Dict[str, Any]]:
        try:
            entries: List[Dict[str, Any]] = await self.context_store.get_investigation_history(
                session_id, step_index
            )
            current = [e for e in entries if _entry_step_index(e) == step_index]
            previous = [e for e in entries if _entry_step_index(e) == step_index - 1]
            return {
                "current_step_investigations": [_map_investigation(e) for e in current],
                "previous_step_investigations": [_map_investigation(e) for e in previous],
                "total_investigations_performed": len(entries),
                "investigation_strategy": {
                    "current_approach": "adaptive",
                    "adaptations": ["tool_priority_adjustment", "confidence_threshold_tuning"],
                    "learnings_applied": ["element_selector_patterns", "page_structure_recognition"],
                },
            }
        except Exception as e:
            self.logger.log_warning(f"Failed to build investigation history: {e}")
            return None
