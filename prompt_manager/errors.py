#!/usr/bin/env python3
"""
AI Prompt Manager - Error Taxonomy

Every error raised by the engine derives from PromptManagerError and carries
the session id and step index when they are known.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class PromptManagerError(Exception):
    """Base error for prompt generation failures."""

    code = "PROMPT_MANAGER_ERROR"

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        step_index: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.session_id = session_id
        self.step_index = step_index
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "session_id": self.session_id,
            "step_index": self.step_index,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationFailed(PromptManagerError):
    code = "VALIDATION_FAILED"


class ContextUnavailable(PromptManagerError):
    code = "CONTEXT_UNAVAILABLE"


class ContextFilteringFailed(PromptManagerError):
    code = "CONTEXT_FILTERING_FAILED"


class InvestigationContextUnavailable(PromptManagerError):
    code = "INVESTIGATION_CONTEXT_UNAVAILABLE"


class InvestigationPhaseInvalid(PromptManagerError):
    code = "INVESTIGATION_PHASE_INVALID"


class InvestigationDisabled(PromptManagerError):
    code = "INVESTIGATION_DISABLED"


class InvestigationStrategyGenerationFailed(PromptManagerError):
    code = "INVESTIGATION_STRATEGY_GENERATION_FAILED"


class TemplateNotFound(PromptManagerError):
    code = "TEMPLATE_NOT_FOUND"


class TemplateRenderingFailed(PromptManagerError):
    code = "TEMPLATE_RENDERING_FAILED"


class SchemaGenerationFailed(PromptManagerError):
    code = "SCHEMA_GENERATION_FAILED"


class TemplateInvalidError(PromptManagerError):
    """Raised when a template fails structural validation at registration."""
    code = "TEMPLATE_INVALID"


class ConfigInvalid(PromptManagerError):
    """Raised when a configuration value is out of range or of the wrong type."""
    code = "CONFIG_INVALID"
