#!/usr/bin/env python3
"""
AI Prompt Manager - Data Model

Enums, prompt structures, request objects and validation results shared by
every component. Content sections (context, instructions, schema, ...) are
plain dicts so they serialize directly into prompts and cache statistics.
"""

import json
import random
import string
import time
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class PromptType(Enum):
    """Kind of prompt produced by the engine."""
    INITIAL_ACTION = "INITIAL_ACTION"
    ACTION_WITH_VALIDATION = "ACTION_WITH_VALIDATION"
    REFLECTION_AND_ACTION = "REFLECTION_AND_ACTION"
    INVESTIGATION_INITIAL_ASSESSMENT = "INVESTIGATION_INITIAL_ASSESSMENT"
    INVESTIGATION_FOCUSED_EXPLORATION = "INVESTIGATION_FOCUSED_EXPLORATION"
    INVESTIGATION_SELECTOR_DETERMINATION = "INVESTIGATION_SELECTOR_DETERMINATION"
    ACTION_WITH_INVESTIGATION_CONTEXT = "ACTION_WITH_INVESTIGATION_CONTEXT"

    @property
    def is_investigation_phase(self) -> bool:
        return self in (
            PromptType.INVESTIGATION_INITIAL_ASSESSMENT,
            PromptType.INVESTIGATION_FOCUSED_EXPLORATION,
            PromptType.INVESTIGATION_SELECTOR_DETERMINATION,
        )


class InvestigationPhase(Enum):
    """Investigation stages, in the order a workflow normally visits them."""
    INITIAL_ASSESSMENT = "INITIAL_ASSESSMENT"
    FOCUSED_EXPLORATION = "FOCUSED_EXPLORATION"
    SELECTOR_DETERMINATION = "SELECTOR_DETERMINATION"


class InvestigationTool(Enum):
    """Page investigation tools the agent can call."""
    SCREENSHOT_ANALYSIS = "SCREENSHOT_ANALYSIS"
    TEXT_EXTRACTION = "TEXT_EXTRACTION"
    FULL_DOM_RETRIEVAL = "FULL_DOM_RETRIEVAL"
    SUB_DOM_EXTRACTION = "SUB_DOM_EXTRACTION"


VARIABLE_TYPES = ("string", "number", "boolean", "array", "object")
REASONING_DEPTHS = ("basic", "detailed", "comprehensive")
VALIDATION_MODES = ("strict", "lenient")


def new_prompt_id(prefix: str = "prompt") -> str:
    """Unique id from the current time in ms plus 9 random base36 characters."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums and datetimes into JSON-safe values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


# --- Templates ---


@dataclass
class TemplateVariable:
    """A placeholder declared by a template."""
    name: str
    type: str = "string"
    required: bool = True
    description: str = ""


@dataclass
class PromptTemplate:
    """A named template body with its declared variables."""
    template_id: str
    name: str
    body: str
    variables: List[TemplateVariable] = field(default_factory=list)
    version: str = "1.0.0"
    description: str = ""
    last_modified: datetime = field(default_factory=datetime.now)


# --- Prompt content ---


@dataclass
class PromptContent:
    """Rendered system message plus the structured sections it was built from."""
    system_message: str
    context_section: Dict[str, Any]
    instruction_section: Dict[str, Any]
    schema_section: Dict[str, Any]
    validation_section: Optional[Dict[str, Any]] = None
    investigation_section: Optional[Dict[str, Any]] = None
    working_memory_section: Optional[Dict[str, Any]] = None
    examples_section: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class GeneratedPrompt:
    """A finished prompt. Never modified after the orchestrator returns it."""
    prompt_id: str
    session_id: str
    step_index: int
    prompt_type: PromptType
    content: PromptContent
    schema: Dict[str, Any]
    generated_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# --- Requests ---


@dataclass
class ActionPromptRequest:
    session_id: str
    current_step_index: int
    current_step_content: str
    include_validation: bool = False
    prompt_options: Optional[Dict[str, Any]] = None


@dataclass
class ReflectionPromptRequest:
    session_id: str
    completed_step_index: int
    next_step_index: int
    next_step_content: str
    expected_outcome: Optional[str] = None
    prompt_options: Optional[Dict[str, Any]] = None


@dataclass
class InvestigationPromptRequest:
    session_id: str
    step_index: int
    step_content: str
    investigation_phase: InvestigationPhase
    available_tools: List[InvestigationTool] = field(default_factory=list)
    investigation_options: Optional[Dict[str, Any]] = None


@dataclass
class ActionRecommendation:
    """What the investigation concluded the agent should do next."""
    recommended_action: str
    reasoning: List[str] = field(default_factory=list)
    confidence: float = 0.0


@dataclass
class InvestigationContext:
    """Findings gathered by earlier investigation rounds."""
    investigations_performed: List[Dict[str, Any]] = field(default_factory=list)
    elements_discovered: List[Dict[str, Any]] = field(default_factory=list)
    working_memory_state: Dict[str, Any] = field(default_factory=dict)
    recommended_action: ActionRecommendation = field(
        default_factory=lambda: ActionRecommendation(recommended_action="PROCEED")
    )


@dataclass
class ActionWithInvestigationRequest:
    session_id: str
    step_index: int
    step_content: str
    investigation_context: InvestigationContext


# --- Validation ---


@dataclass
class PromptValidationError:
    field: str
    message: str
    code: str
    severity: str = "error"


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[PromptValidationError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    quality_score: float = 0.0
    suggestions: List[str] = field(default_factory=list)


@dataclass
class QualityAssessment:
    clarity_score: float
    completeness_score: float
    context_relevance_score: float
    schema_alignment_score: float
    overall_score: float
    improvements: List[str] = field(default_factory=list)
