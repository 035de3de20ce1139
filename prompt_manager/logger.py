#!/usr/bin/env python3
"""
AI Prompt Manager - Engine Logger

Provides logging for prompt generation events.
Logs to:
- Engine log (log_dir/prompt-manager.log)
- Daily log (log_dir/YYYY-mm-dd.log)
- An in-memory buffer of recent lines, always kept

The log directory comes from the constructor or PROMPT_MANAGER_LOG_DIR.
Without either, only the in-memory buffer is written.
"""

import os
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Deque, List, Optional, Union


class PromptLogger:
    """Logger for prompt manager events."""

    LOG_FILE = "prompt-manager.log"
    BUFFER_SIZE = 500

    def __init__(
        self,
        log_dir: Optional[Union[str, Path]] = None,
        label: str = "engine",
        file_output: bool = True
    ):
        """
        Initialize the logger.

        Args:
            log_dir: Directory for log files (falls back to PROMPT_MANAGER_LOG_DIR)
            label: Identifier written to the daily log for this engine instance
            file_output: When False, only the in-memory buffer is written
        """
        self.label = label
        self._buffer: Deque[str] = deque(maxlen=self.BUFFER_SIZE)

        resolved = log_dir or os.environ.get("PROMPT_MANAGER_LOG_DIR")
        self.log_dir: Optional[Path] = Path(resolved) if resolved and file_output else None
        self.log_file: Optional[Path] = None

        if self.log_dir is not None:
            self.log_file = self.log_dir / self.LOG_FILE
            try:
                self.log_dir.mkdir(parents=True, exist_ok=True)
            except OSError:
                self.log_dir = None
                self.log_file = None

    def _get_timestamp(self) -> str:
        """Get timestamp for log entries."""
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def _sanitize_message(self, message: str) -> str:
        """Sanitize message by replacing newlines."""
        return message.replace("\n", "\\n")

    def _get_log_date(self) -> str:
        """Get date for log file naming."""
        return datetime.now().strftime("%Y-%m-%d")

    def log_event(self, category: str, message: str) -> None:
        """
        Log an event to the buffer and, when configured, the log files.

        Args:
            category: Event category (e.g., PROMPT, CACHE, CONTEXT)
            message: Event message
        """
        timestamp = self._get_timestamp()
        safe_message = self._sanitize_message(message)
        log_line = f"[{timestamp}] [{category}] {safe_message}\n"
        self._buffer.append(log_line)

        if self.log_file is None:
            return

        try:
            with open(self.log_file, "a") as f:
                f.write(log_line)
        except OSError:
            pass

        daily_log = self.log_dir / f"{self._get_log_date()}.log"
        try:
            with open(daily_log, "a") as f:
                f.write(f"[prompt-manager-{self.label}] {log_line}")
        except OSError:
            pass

    # --- Prompt Events ---

    def log_prompt_generated(
        self,
        prompt_type: str,
        session_id: str,
        step_index: int,
        generation_time_ms: float = 0.0
    ) -> None:
        """Log a successfully generated prompt."""
        self.log_event(
            "PROMPT",
            f"{prompt_type} generated | session: {session_id} | step: {step_index} "
            f"| {generation_time_ms:.1f}ms"
        )

    def log_validation_failed(self, prompt_type: str, errors: List[str]) -> None:
        """Log a prompt rejected by the validation gate."""
        self.log_event("VALIDATION", f"{prompt_type} rejected: {', '.join(errors)}")

    # --- Cache Events ---

    def log_cache_hit(self, key: str) -> None:
        self.log_event("CACHE", f"Hit: {key[:80]}")

    def log_cache_miss(self, key: str) -> None:
        self.log_event("CACHE", f"Miss: {key[:80]}")

    # --- Template / Config Events ---

    def log_template_updated(self, template_id: str) -> None:
        self.log_event("TEMPLATE", f"Template updated: {template_id}")

    def log_config_updated(self, sections: List[str]) -> None:
        self.log_event("CONFIG", f"Configuration updated: {', '.join(sections) or 'none'}")

    # --- Warning / Error Events ---

    def log_warning(self, message: str) -> None:
        """Log a recovered failure."""
        self.log_event("WARN", message)

    def log_error(self, message: str, error: Optional[Exception] = None) -> None:
        """Log an error."""
        if error:
            self.log_event("ERROR", f"{message}: {type(error).__name__}: {error}")
        else:
            self.log_event("ERROR", message)

    # --- Utility ---

    def get_log_path(self) -> str:
        """Get path to log file, or an empty string when logging to memory only."""
        return str(self.log_file) if self.log_file else ""

    def get_log_content(self) -> str:
        """Get log content from the file, or from the buffer without one."""
        if self.log_file is None:
            return "".join(self._buffer)
        try:
            with open(self.log_file, "r") as f:
                return f.read()
        except OSError:
            return "".join(self._buffer)

    def get_recent_lines(self, limit: int = 20) -> List[str]:
        """Get the most recent buffered log lines."""
        return list(self._buffer)[-limit:]
