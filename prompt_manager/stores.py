#!/usr/bin/env python3
"""
AI Prompt Manager - Collaborator Interfaces

The engine reads session context and response schemas through these
protocols. InMemoryContextStore is a complete reference implementation used
by the CLI demo, the legacy wrapper and the tests.

Step log entries follow the executor's shape:

    {
        "ai_response": {
            "action": {"command": "CLICK_ELEMENT", "parameters": {...}},
            "reasoning": "...",
            "confidence": 90,
            "flow_control": "continue" | "stop_success" | "stop_failure",
        },
        "execution_result": {"success": True, "result": "...", "error": None},
    }
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol


class ContextStore(Protocol):
    """Read access to a session's execution context."""

    async def get_execution_context(self, session_id: str) -> Optional[Dict[str, Any]]: ...

    async def get_step_history(self, session_id: str, max_steps: int) -> List[Dict[str, Any]]: ...

    async def get_current_page_state(self, session_id: str) -> Optional[str]: ...

    async def get_previous_page_state(self, session_id: str, step_index: int) -> Optional[str]: ...

    async def generate_filtered_context(
        self,
        session_id: str,
        step_index: int,
        options: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    async def generate_investigation_context(self, session_id: str) -> Dict[str, Any]: ...

    async def get_investigation_history(
        self,
        session_id: str,
        step_index: int
    ) -> List[Dict[str, Any]]: ...

    async def get_page_elements_discovered(self, session_id: str) -> List[Dict[str, Any]]: ...

    def get_working_memory(self, session_id: str) -> Optional[Dict[str, Any]]: ...

    def create_context(self, session_id: str) -> bool: ...

    def set_steps(self, session_id: str, steps: List[str]) -> None: ...


class SchemaStore(Protocol):
    """Source of the response schema the model must answer with."""

    async def get_response_schema(self) -> Dict[str, Any]: ...

    async def validate_schema_compatibility(self, schema: Dict[str, Any]) -> bool: ...

    def get_schema_version(self) -> str: ...


class InMemoryContextStore:
    """Dict-backed ContextStore with helpers for recording execution."""

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def _session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self._sessions.get(session_id)

    def _require(self, session_id: str) -> Dict[str, Any]:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f'Session "{session_id}" does not exist')
        return session

    # --- Lifecycle ---

    def create_context(self, session_id: str) -> bool:
        """Create an empty session. Returns False when it already exists."""
        if session_id in self._sessions:
            return False
        self._sessions[session_id] = {
            "steps": [],
            "step_logs": {},
            "history": [],
            "page_states": {},
            "current_page": None,
            "working_memory": None,
            "investigations": [],
            "elements": [],
            "created_at": datetime.now(),
        }
        return True

    def has_context(self, session_id: str) -> bool:
        return session_id in self._sessions

    def set_steps(self, session_id: str, steps: List[str]) -> None:
        self._require(session_id)["steps"] = list(steps)

    # --- Recording ---

    def log_task(self, session_id: str, step_index: int, entry: Dict[str, Any]) -> None:
        """Append an executor log entry to a step."""
        self._require(session_id)["step_logs"].setdefault(step_index, []).append(entry)

    def record_step(
        self,
        session_id: str,
        step_index: int,
        step_name: str,
        status: str = "COMPLETED",
        reasoning: str = "",
        executor_method: str = ""
    ) -> None:
        self._require(session_id)["history"].append({
            "step_index": step_index,
            "step_name": step_name,
            "reasoning": reasoning,
            "executor_method": executor_method,
            "status": status,
            "timestamp": datetime.now().isoformat(),
        })

    def set_page_state(self, session_id: str, step_index: int, dom: str) -> None:
        """Record the DOM seen at a step; it also becomes the current page."""
        session = self._require(session_id)
        session["page_states"][step_index] = dom
        session["current_page"] = dom

    def set_working_memory(self, session_id: str, memory: Dict[str, Any]) -> None:
        self._require(session_id)["working_memory"] = memory

    def add_investigation(
        self,
        session_id: str,
        step_index: int,
        investigation_type: str,
        objective: str,
        outcome: str = "success",
        key_findings: Optional[List[str]] = None
    ) -> None:
        self._require(session_id)["investigations"].append({
            "investigation_type": investigation_type,
            "objective": objective,
            "outcome": outcome,
            "key_findings": list(key_findings or []),
            "timestamp": datetime.now().isoformat(),
            "metadata": {"step_index": step_index},
        })

    def add_discovered_element(self, session_id: str, element: Dict[str, Any]) -> None:
        self._require(session_id)["elements"].append(dict(element))

    # --- ContextStore ---

    async def get_execution_context(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._session(session_id)
        if session is None:
            return None
        return {
            "session_id": session_id,
            "steps": list(session["steps"]),
            "step_logs": {k: list(v) for k, v in session["step_logs"].items()},
            "created_at": session["created_at"],
        }

    async def get_step_history(self, session_id: str, max_steps: int) -> List[Dict[str, Any]]:
        session = self._session(session_id)
        if session is None or max_steps <= 0:
            return []
        return [dict(h) for h in session["history"][-max_steps:]]

    async def get_current_page_state(self, session_id: str) -> Optional[str]:
        session = self._session(session_id)
        return session["current_page"] if session else None

    async def get_previous_page_state(self, session_id: str, step_index: int) -> Optional[str]:
        session = self._session(session_id)
        return session["page_states"].get(step_index) if session else None

    async def generate_filtered_context(
        self,
        session_id: str,
        step_index: int,
        options: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Summarize execution so far without raw DOM content."""
        session = self._require(session_id)
        threshold = options.get("confidence_threshold", 0.0)
        max_items = options.get("max_history_steps", 10)

        history = [h for h in session["history"] if h["step_index"] < step_index]
        execution_summary = [
            {
                "step_index": h["step_index"],
                "step_name": h["step_name"],
                "outcome": h["status"].lower(),
                "key_result": h["reasoning"],
            }
            for h in history[-max_items:]
        ]

        page_insights = []
        if options.get("include_page_insights", True):
            for index, dom in sorted(session["page_states"].items()):
                if index <= step_index:
                    page_insights.append({"step_index": index, "content_length": len(dom)})

        element_knowledge = []
        if options.get("include_element_knowledge", True):
            memory = session["working_memory"] or {}
            element_knowledge = [
                e for e in memory.get("known_elements", [])
                if e.get("reliability", 0.0) >= threshold
            ]

        return {
            "execution_summary": execution_summary,
            "page_insights": page_insights,
            "element_knowledge": element_knowledge,
        }

    async def generate_investigation_context(self, session_id: str) -> Dict[str, Any]:
        session = self._require(session_id)
        memory = session["working_memory"] or {}
        return {
            "investigations_performed": len(session["investigations"]),
            "elements_discovered": len(session["elements"]),
            "known_elements": len(memory.get("known_elements", [])),
            "latest_investigation": (
                session["investigations"][-1] if session["investigations"] else None
            ),
        }

    async def get_investigation_history(
        self,
        session_id: str,
        step_index: int
    ) -> List[Dict[str, Any]]:
        session = self._session(session_id)
        if session is None:
            return []
        return [
            dict(i) for i in session["investigations"]
            if i["metadata"]["step_index"] <= step_index
        ]

    async def get_page_elements_discovered(self, session_id: str) -> List[Dict[str, Any]]:
        session = self._session(session_id)
        return [dict(e) for e in session["elements"]] if session else []

    def get_working_memory(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._session(session_id)
        return session["working_memory"] if session else None
