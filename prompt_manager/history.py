#!/usr/bin/env python3
"""
AI Prompt Manager - Execution History Formatting

Turns a session's step logs into the plain-text history used by the legacy
step prompt, with result truncation and length-aware history reduction.
"""

import json
import os
import re
from typing import Any, Callable, Dict, List, Optional

DEFAULT_TRUNCATE_LIMIT = 1000
DEFAULT_HISTORY_LIMIT = 2000
ATTEMPTS_SHOWN = 10
SHORT_RESULT_LIMIT = 100
SUMMARY_ERROR_LIMIT = 50

MINIMAL_HISTORY = "History truncated due to length limits."
NO_HISTORY = "No execution history available."
PREVIOUS_STEPS_HEADER = "PREVIOUS STEPS:"
CURRENT_ATTEMPTS_HEADER = "CURRENT STEP ATTEMPTS:"

_BOUNDARY_PATTERN = re.compile(r"^(PREVIOUS STEPS:|CURRENT STEP ATTEMPTS:|Step \d+:|Attempt \d+:|- )")


def env_int(name: str, default: int) -> int:
    """Integer from the environment, or default when unset or malformed."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def truncate_with_message(text: str, limit: int) -> str:
    if not text or len(text) <= limit:
        return text
    return (
        f"{text[:limit]}\n\n"
        f"[Value is truncated, shown {limit} out of {len(text)} characters]"
    )


def confidence_label(confidence: Any) -> str:
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        if confidence >= 80:
            return "HIGH"
        if confidence >= 50:
            return "MEDIUM"
        return "LOW"
    return confidence or "LOW"


class HistoryFormatter:
    """Formats step logs into prompt history text."""

    def __init__(
        self,
        truncate_limit: Optional[int] = None,
        history_limit: Optional[int] = None
    ):
        self.truncate_limit = (
            truncate_limit if truncate_limit is not None
            else env_int("CONTEXT_TRUNCATE_RESULT", DEFAULT_TRUNCATE_LIMIT)
        )
        self.history_limit = (
            history_limit if history_limit is not None
            else env_int("CONTEXT_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)
        )

    def format_execution_history(
        self,
        context: Dict[str, Any],
        step_index: int,
        history_limit: Optional[int] = None
    ) -> str:
        """
        Format previous-step summaries and the current step's recent attempts.

        Args:
            context: Execution context with "steps" and "step_logs"
            step_index: Current step
            history_limit: Overrides the configured limit for this call

        Returns:
            History text, smart-truncated when it exceeds the limit
        """
        limit = self.history_limit if history_limit is None else history_limit
        steps = context.get("steps") or []
        step_logs = context.get("step_logs") or {}
        parts: List[str] = []

        if step_index > 0:
            parts.append(PREVIOUS_STEPS_HEADER + "\n")
            for i in range(step_index):
                name = steps[i] if i < len(steps) else "Unknown Step"
                logs = step_logs.get(i) or []
                parts.append(f'- Step {i + 1}: "{name}" - {self.step_outcome(logs)}\n')
                summary = self.summarize_step(logs)
                if summary:
                    parts.append(f"  Summary: {summary}\n")
            parts.append("\n")

        current_logs = step_logs.get(step_index) or []
        if current_logs:
            parts.append(CURRENT_ATTEMPTS_HEADER + "\n")
            first_attempt = max(1, len(current_logs) - (ATTEMPTS_SHOWN - 1))
            for offset, log in enumerate(current_logs[-ATTEMPTS_SHOWN:]):
                parts.append(self.format_log_entry(log, first_attempt + offset) + "\n")

        history = "".join(parts)
        if len(history) > limit:
            return self.smart_truncate_history(history, limit)
        return history or NO_HISTORY

    @staticmethod
    def step_outcome(logs: List[Dict[str, Any]]) -> str:
        if not logs:
            return "not started"
        flow_control = (logs[-1].get("ai_response") or {}).get("flow_control")
        if flow_control == "stop_success":
            return "success"
        if flow_control == "stop_failure":
            return "failure"
        return "in progress"

    @staticmethod
    def summarize_step(logs: List[Dict[str, Any]]) -> str:
        if not logs:
            return "No actions taken"

        last = logs[-1]
        summary = f"{len(logs)} action(s) taken"
        result = last.get("execution_result")
        if result:
            if result.get("success"):
                summary += " (succeeded)"
            else:
                error = result.get("error")
                if error:
                    suffix = "..." if len(error) > SUMMARY_ERROR_LIMIT else ""
                    summary += f" (failed: {error[:SUMMARY_ERROR_LIMIT]}{suffix})"
                else:
                    summary += " (failed: failed)"

        reasoning = (last.get("ai_response") or {}).get("reasoning")
        if reasoning:
            summary += f". Last reasoning: {reasoning}"
        return summary

    def format_log_entry(self, log: Optional[Dict[str, Any]], attempt: int) -> str:
        if not log:
            return f"  Attempt {attempt}: No data available"

        try:
            # Older executors logged the action at the top level
            response = log.get("ai_response") or log
            action_data = response.get("action") or {}
            command = action_data.get("command") or response.get("command") or "Unknown"
            parameters = action_data.get("parameters") or response.get("parameters")

            lines = [
                f"  Attempt {attempt}: {command} "
                f"(Confidence: {confidence_label(response.get('confidence'))})",
                f"    Reasoning: {response.get('reasoning') or 'No reasoning provided'}",
                "    Parameters: " + (json.dumps(parameters, indent=2) if parameters else "No parameters"),
            ]
            text = "\n".join(lines)

            result = log.get("execution_result")
            if result:
                text += "\n" + self.format_result(command, result)
            return text
        except Exception as e:
            return f"  Attempt {attempt}: Error formatting log entry - {e}"

    def format_result(self, command: str, result: Dict[str, Any]) -> str:
        if not result.get("success"):
            return f"    Result: ✗ {result.get('error') or 'Unknown error'}"

        value = result.get("result")
        if command == "GET_SUBDOM" and isinstance(value, str):
            return f"    Result: ✓ DOM retrieved successfully\n\nDOM CONTENT:\n{value}"
        if command == "OPEN_PAGE":
            return "    Result: ✓ Page opened successfully"
        if not isinstance(value, str):
            return "    Result: ✓ Success"
        if command == "GET_TEXT":
            return f"    Result: ✓ {truncate_with_message(value, self.truncate_limit)}"
        shown = value[:SHORT_RESULT_LIMIT] + ("..." if len(value) > SHORT_RESULT_LIMIT else "")
        return f"    Result: ✓ {shown}"

    def smart_truncate_history(self, history: str, limit: Optional[int] = None) -> str:
        """
        Shrink history to the limit, keeping the most useful parts.

        Current-step attempts are kept first, then as much of the previous
        steps summary as fits (most recent lines first). When neither fits,
        the tail of the history is kept from the first recognizable line.
        """
        limit = self.history_limit if limit is None else limit
        sections = history.split("\n\n")
        kept = ""
        remaining = limit - 100

        current = next((s for s in sections if CURRENT_ATTEMPTS_HEADER in s), None)
        if current is not None and len(current) <= remaining:
            kept = current
            remaining -= len(current)
            sections.remove(current)

        previous = next((s for s in sections if PREVIOUS_STEPS_HEADER in s), None)
        if previous is not None and remaining > 200:
            if len(previous) <= remaining:
                kept = previous + "\n\n" + kept if kept else previous
                remaining -= len(previous)
            else:
                lines = previous.split("\n")
                partial = lines[0] + "\n"
                remaining -= len(partial)
                for line in reversed(lines[1:]):
                    if remaining <= 0 or len(line) >= remaining:
                        break
                    partial += line + "\n"
                    remaining -= len(line) + 1
                kept = partial + "\n" + kept if kept else partial

        if not kept:
            tail_length = max(0, min(limit - 200, len(history)))
            tail = history[len(history) - tail_length:]
            start = 0
            for line in tail.split("\n"):
                if _BOUNDARY_PATTERN.match(line.strip()):
                    start = tail.index(line)
                    break
            kept = tail[start:]

        return (
            f"{MINIMAL_HISTORY} Showing {len(kept)} of {len(history)} characters "
            f"(most recent content preserved).\n\n{kept}"
        )

    def fit_history(
        self,
        context: Dict[str, Any],
        step_index: int,
        render_fn: Callable[[str], str],
        max_length: int
    ) -> str:
        """
        Render with history, reducing it once if the result is over max_length.

        The reduced history limit is computed directly from the excess; if the
        reduced render still does not fit, a one-line history is used.
        """
        history = self.format_execution_history(context, step_index)
        rendered = render_fn(history)
        if len(rendered) <= max_length:
            return rendered

        excess = len(rendered) - max_length
        if len(history) > excess + 500:
            target = max(500, len(history) - excess - 200)
            reduced = self.format_execution_history(
                context, step_index, history_limit=min(self.history_limit, target)
            )
            rendered = render_fn(reduced)
            if len(rendered) <= max_length:
                return rendered

        return render_fn(MINIMAL_HISTORY)
