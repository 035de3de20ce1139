#!/usr/bin/env python3
"""
AI Prompt Manager - Template Manager

Registry of prompt templates. Holds the built-in defaults, accepts validated
replacements, and keeps a short-lived read cache of resolved templates.
"""

import time
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from . import templates as text
from .config import TemplateConfig
from .errors import TemplateNotFound
from .logger import PromptLogger
from .template_engine import validate_template
from .types import PromptTemplate, TemplateVariable

TEMPLATE_CACHE_TTL_SECONDS = 15 * 60

# Placeholders shared by every prompt-producing template
_PROMPT_VARIABLES = {
    "systemMessage": TemplateVariable("systemMessage", "string", True, "System message defining the agent role"),
    "stepContent": TemplateVariable("stepContent", "string", True, "Natural language step to execute"),
    "contextSection": TemplateVariable("contextSection", "string", True, "Formatted execution context"),
    "instructionSection": TemplateVariable("instructionSection", "string", True, "Step-specific instructions"),
    "schemaSection": TemplateVariable("schemaSection", "string", True, "Response format instructions"),
    "validationSection": TemplateVariable("validationSection", "string", False, "Previous step validation guidance"),
    "investigationSection": TemplateVariable("investigationSection", "string", False, "Investigation phase guidance"),
    "workingMemorySection": TemplateVariable("workingMemorySection", "string", False, "Accumulated page knowledge"),
    "investigationToolsSection": TemplateVariable("investigationToolsSection", "string", False, "Available investigation tools"),
}


def _prompt_template(
    template_id: str,
    name: str,
    description: str,
    body: str,
    variable_names: List[str]
) -> PromptTemplate:
    return PromptTemplate(
        template_id=template_id,
        name=name,
        description=description,
        body=body,
        variables=[replace(_PROMPT_VARIABLES[n]) for n in variable_names],
    )


def create_default_templates() -> Dict[str, PromptTemplate]:
    """Build a fresh set of the built-in templates, keyed by id."""
    action_vars = ["systemMessage", "stepContent", "contextSection", "workingMemorySection",
                   "instructionSection", "schemaSection"]
    investigation_vars = ["systemMessage", "investigationSection", "stepContent", "contextSection",
                          "workingMemorySection", "investigationToolsSection",
                          "instructionSection", "schemaSection"]

    defaults = [
        PromptTemplate(
            template_id=text.SYSTEM_MESSAGE_ID,
            name="System Message",
            description="Defines the agent role and the ACT-REFLECT cycle",
            body=text.SYSTEM_MESSAGE,
        ),
        _prompt_template(
            text.INITIAL_ACTION_ID, "Initial Action",
            "First step of a workflow, no previous actions to validate",
            text.INITIAL_ACTION, action_vars,
        ),
        _prompt_template(
            text.ACTION_WITH_VALIDATION_ID, "Action With Validation",
            "Later steps, optionally validating the previous action",
            text.ACTION_WITH_VALIDATION, action_vars + ["validationSection"],
        ),
        _prompt_template(
            text.REFLECTION_ACTION_ID, "Reflection And Action",
            "Reflect on the completed step, then act on the next one",
            text.REFLECTION_ACTION, action_vars + ["validationSection"],
        ),
        _prompt_template(
            text.INVESTIGATION_INITIAL_ID, "Investigation: Initial Assessment",
            "High-level page understanding",
            text.INVESTIGATION_INITIAL,
            [n for n in investigation_vars if n != "workingMemorySection"],
        ),
        _prompt_template(
            text.INVESTIGATION_FOCUSED_ID, "Investigation: Focused Exploration",
            "Detailed exploration of relevant page sections",
            text.INVESTIGATION_FOCUSED, investigation_vars,
        ),
        _prompt_template(
            text.INVESTIGATION_SELECTOR_ID, "Investigation: Selector Determination",
            "Settle on reliable selectors for the step",
            text.INVESTIGATION_SELECTOR, investigation_vars,
        ),
        _prompt_template(
            text.ACTION_WITH_INVESTIGATION_ID, "Action With Investigation Context",
            "Act on a step using completed investigation findings",
            text.ACTION_WITH_INVESTIGATION, action_vars,
        ),
        PromptTemplate(
            template_id=text.SCHEMA_ID,
            name="Response Schema Instructions",
            description="Instructions for the JSON response structure",
            body=text.SCHEMA_INSTRUCTIONS,
            variables=[TemplateVariable(
                "additionalSchemaInstructions", "string", False,
                "Additional schema-specific instructions"
            )],
        ),
        PromptTemplate(
            template_id=text.CONTEXT_ID,
            name="Context Section",
            description="Template for formatting context information",
            body=text.CONTEXT_SUMMARY,
            variables=[
                TemplateVariable("stepIndex", "number", True, "Current step index"),
                TemplateVariable("totalSteps", "number", True, "Total number of steps"),
                TemplateVariable("stepType", "string", True, "Type of step being processed"),
                TemplateVariable("executionHistory", "string", False, "Formatted execution history"),
                TemplateVariable("pageState", "string", False, "Current page state information"),
                TemplateVariable("filteredContext", "string", False, "Filtered context content"),
                TemplateVariable("investigationHistory", "string", False, "Investigation history content"),
            ],
        ),
    ]
    return {t.template_id: t for t in defaults}


class TemplateManager:
    """Stores templates by id and resolves them for rendering."""

    def __init__(
        self,
        config: Optional[TemplateConfig] = None,
        logger: Optional[PromptLogger] = None
    ):
        self.config = config or TemplateConfig()
        self.logger = logger or PromptLogger()
        self._templates: Dict[str, PromptTemplate] = create_default_templates()
        self._cache: Dict[str, Tuple[PromptTemplate, float]] = {}
        self._cache_hits = 0
        self._cache_lookups = 0

    def get_template(self, template_id: str) -> PromptTemplate:
        """
        Resolve a template by id.

        Falls back to the built-in default when the id is not registered and
        fallback_to_default is set.

        Raises:
            TemplateNotFound: No registered or default template has this id
        """
        if self.config.template_cache_enabled:
            self._cache_lookups += 1
            cached = self._cache.get(template_id)
            if cached and time.monotonic() - cached[1] < TEMPLATE_CACHE_TTL_SECONDS:
                self._cache_hits += 1
                return cached[0]

        template = self._templates.get(template_id)
        if template is None:
            if self.config.fallback_to_default:
                return self._get_default_template(template_id)
            raise TemplateNotFound(
                f"Template not found: {template_id}",
                context={"template_id": template_id}
            )

        if self.config.template_cache_enabled:
            self._cache[template_id] = (template, time.monotonic())

        return template

    def _get_default_template(self, template_id: str) -> PromptTemplate:
        template = create_default_templates().get(template_id)
        if template is None:
            raise TemplateNotFound(
                f"No default template available for: {template_id}",
                context={"template_id": template_id}
            )
        return template

    def update_template(self, template_id: str, template: PromptTemplate) -> None:
        """
        Register or replace a template.

        Raises:
            TemplateInvalidError: Validation is enabled and the template is malformed
        """
        if self.config.template_validation_enabled:
            validate_template(template)

        self._templates[template_id] = replace(
            template,
            variables=[replace(v) for v in template.variables],
            last_modified=datetime.now()
        )
        self._cache.pop(template_id, None)
        self.logger.log_template_updated(template_id)

    def get_all_templates(self) -> Dict[str, PromptTemplate]:
        return dict(self._templates)

    def update_config(self, config: TemplateConfig) -> None:
        self.config = config
        if not config.template_cache_enabled:
            self._cache.clear()

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_template_stats(self) -> Dict[str, float]:
        hit_rate = self._cache_hits / self._cache_lookups if self._cache_lookups else 0.0
        return {
            "total_templates": len(self._templates),
            "cached_templates": len(self._cache),
            "cache_hit_rate": hit_rate,
        }
