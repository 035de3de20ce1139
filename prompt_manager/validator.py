#!/usr/bin/env python3
"""
AI Prompt Manager - Prompt Validator

Structural validation and quality scoring of generated prompts. Nothing in
here raises: unexpected failures are reported as a VALIDATION_EXCEPTION error.
"""

from typing import Any, Dict, List, Optional

from .config import ValidationConfig
from .logger import PromptLogger
from .types import (
    GeneratedPrompt,
    PromptTemplate,
    PromptValidationError,
    QualityAssessment,
    ValidationResult,
)

MIN_CLARITY_SCORE = 0.7
MIN_COMPLETENESS_SCORE = 0.8
MIN_CONTEXT_RELEVANCE_SCORE = 0.75
MIN_SCHEMA_ALIGNMENT_SCORE = 0.8

REQUIRED_FIELDS = [
    "prompt_id", "session_id", "step_index", "prompt_type",
    "content", "schema", "generated_at",
]
REQUIRED_SECTIONS = ["system_message", "context_section", "instruction_section", "schema_section"]
REQUIRED_CONTEXT_FIELDS = ["current_step", "execution_history", "page_states"]
REQUIRED_SCHEMA_PROPERTIES = ["decision", "reasoning", "commands"]

_VARIABLE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
}


def _missing(value: Any) -> bool:
    return value is None or value == ""


def _is_investigation(prompt: GeneratedPrompt) -> bool:
    return prompt.prompt_type is not None and prompt.prompt_type.is_investigation_phase


class PromptValidator:
    """Checks prompt structure and scores prompt quality."""

    def __init__(
        self,
        config: Optional[ValidationConfig] = None,
        logger: Optional[PromptLogger] = None
    ):
        self.config = config or ValidationConfig()
        self.logger = logger or PromptLogger()

    def update_config(self, config: ValidationConfig) -> None:
        self.config = config

    def validate_prompt_structure(self, prompt: GeneratedPrompt) -> ValidationResult:
        errors: List[PromptValidationError] = []
        warnings: List[str] = []

        try:
            self._check_required_fields(prompt, errors)
            self._check_content_structure(prompt, errors)
            self._check_schema_structure(prompt, errors, warnings)
            self._check_content_quality(prompt, warnings)

            quality_score = self.assess_prompt_quality(prompt).overall_score
            suggestions = self._suggestions(errors, warnings)

            return ValidationResult(
                is_valid=not errors,
                errors=errors,
                warnings=warnings,
                quality_score=quality_score,
                suggestions=suggestions,
            )
        except Exception as e:
            self.logger.log_event("VALIDATION", f"Validation raised: {e}")
            errors.append(PromptValidationError(
                field="general",
                message=f"Validation error: {e}",
                code="VALIDATION_EXCEPTION",
            ))
            return ValidationResult(
                is_valid=False,
                errors=errors,
                warnings=warnings,
                quality_score=0.0,
                suggestions=["Fix validation errors and try again"],
            )

    def validate_template_variables(self, template: PromptTemplate, variables: Dict[str, Any]) -> bool:
        """True when every required variable is present and every given value has its declared type."""
        try:
            for variable in template.variables:
                if variable.name not in variables:
                    if variable.required:
                        return False
                    continue
                check = _VARIABLE_CHECKS.get(variable.type)
                if check is None or not check(variables[variable.name]):
                    return False
            return True
        except Exception:
            return False

    def validate_schema_integration(self, prompt: GeneratedPrompt) -> bool:
        try:
            schema = prompt.schema
            if not schema or not schema.get("type") or not schema.get("properties"):
                return False
            if schema["type"] != "object":
                return False
            return all(schema["properties"].get(p) for p in REQUIRED_SCHEMA_PROPERTIES)
        except Exception:
            return False

    def assess_prompt_quality(self, prompt: GeneratedPrompt) -> QualityAssessment:
        clarity = self._assess_clarity(prompt)
        completeness = self._assess_completeness(prompt)
        relevance = self._assess_context_relevance(prompt)
        alignment = self._assess_schema_alignment(prompt)

        improvements = []
        if clarity < MIN_CLARITY_SCORE:
            improvements.append(
                "Improve prompt clarity with more specific instructions and clearer language"
            )
        if completeness < MIN_COMPLETENESS_SCORE:
            improvements.append("Add missing content sections to make prompt more complete")
        if relevance < MIN_CONTEXT_RELEVANCE_SCORE:
            improvements.append("Enhance context relevance with more targeted information")
        if alignment < MIN_SCHEMA_ALIGNMENT_SCORE:
            improvements.append(
                "Improve schema alignment with better examples and clearer structure"
            )

        return QualityAssessment(
            clarity_score=clarity,
            completeness_score=completeness,
            context_relevance_score=relevance,
            schema_alignment_score=alignment,
            overall_score=(clarity + completeness + relevance + alignment) / 4,
            improvements=improvements,
        )

    # --- Structure checks ---

    def _check_required_fields(self, prompt: GeneratedPrompt, errors: List[PromptValidationError]) -> None:
        for name in REQUIRED_FIELDS:
            if _missing(getattr(prompt, name, None)):
                errors.append(PromptValidationError(
                    field=name,
                    message=f"Required field '{name}' is missing",
                    code="MISSING_REQUIRED_FIELD",
                ))

        if prompt.prompt_id is not None and not isinstance(prompt.prompt_id, str):
            errors.append(PromptValidationError(
                field="prompt_id",
                message="prompt_id must be a string",
                code="INVALID_FIELD_TYPE",
            ))
        if prompt.step_index is not None and (
            not isinstance(prompt.step_index, int) or isinstance(prompt.step_index, bool)
        ):
            errors.append(PromptValidationError(
                field="step_index",
                message="step_index must be a number",
                code="INVALID_FIELD_TYPE",
            ))

    def _check_content_structure(self, prompt: GeneratedPrompt, errors: List[PromptValidationError]) -> None:
        content = prompt.content
        if content is None:
            return

        for name in REQUIRED_SECTIONS:
            if _missing(getattr(content, name, None)):
                errors.append(PromptValidationError(
                    field=f"content.{name}",
                    message=f"Required content section '{name}' is missing",
                    code="MISSING_CONTENT_SECTION",
                ))

        if content.system_message and not isinstance(content.system_message, str):
            errors.append(PromptValidationError(
                field="content.system_message",
                message="system_message must be a string",
                code="INVALID_CONTENT_TYPE",
            ))

        if content.context_section is not None:
            for name in REQUIRED_CONTEXT_FIELDS:
                if _missing(content.context_section.get(name)):
                    errors.append(PromptValidationError(
                        field=f"content.context_section.{name}",
                        message=f"Required context field '{name}' is missing",
                        code="MISSING_CONTEXT_FIELD",
                    ))

    def _check_schema_structure(
        self,
        prompt: GeneratedPrompt,
        errors: List[PromptValidationError],
        warnings: List[str]
    ) -> None:
        schema = prompt.schema
        if not schema:
            return

        if schema.get("type") != "object":
            errors.append(PromptValidationError(
                field="schema.type",
                message='Schema type must be "object"',
                code="INVALID_SCHEMA_TYPE",
            ))

        properties = schema.get("properties") or {}
        for name in REQUIRED_SCHEMA_PROPERTIES:
            if not properties.get(name):
                errors.append(PromptValidationError(
                    field=f"schema.properties.{name}",
                    message=f"Required schema property '{name}' is missing",
                    code="MISSING_SCHEMA_PROPERTY",
                ))

        if not schema.get("examples"):
            warnings.append("Schema should include examples for better AI understanding")

    def _check_content_quality(self, prompt: GeneratedPrompt, warnings: List[str]) -> None:
        content = prompt.content
        if content is None:
            return

        if content.system_message and len(content.system_message) < 100:
            warnings.append("System message is quite short and may lack sufficient guidance")

        if _is_investigation(prompt):
            if not content.investigation_section:
                warnings.append("Investigation prompt missing investigation section")
            if not content.working_memory_section:
                warnings.append("Investigation prompt would benefit from working memory section")

    @staticmethod
    def _suggestions(errors: List[PromptValidationError], warnings: List[str]) -> List[str]:
        suggestions = []
        codes = {e.code for e in errors}
        if "MISSING_REQUIRED_FIELD" in codes:
            suggestions.append("Ensure all required fields are populated before generating prompt")
        if "MISSING_CONTENT_SECTION" in codes:
            suggestions.append("Include all required content sections for complete prompt structure")
        if any("investigation" in w.lower() for w in warnings):
            suggestions.append(
                "Consider adding investigation-specific sections for better investigation support"
            )
        if not suggestions and warnings:
            suggestions.append("Address warnings to improve prompt quality")
        if not suggestions and not errors:
            suggestions.append(
                "Prompt structure is valid - consider adding examples for better AI guidance"
            )
        return suggestions

    # --- Quality scores ---

    @staticmethod
    def _assess_clarity(prompt: GeneratedPrompt) -> float:
        content = prompt.content
        score = 1.0
        if not content.system_message or len(content.system_message) < 50:
            score -= 0.2
        if not isinstance(content.instruction_section, dict):
            score -= 0.3
        if not isinstance(content.schema_section, dict):
            score -= 0.2
        return round(max(0.0, score), 4)

    @staticmethod
    def _assess_completeness(prompt: GeneratedPrompt) -> float:
        content = prompt.content
        missing = [n for n in REQUIRED_SECTIONS if _missing(getattr(content, n, None))]
        score = 1.0 - 0.25 * len(missing)
        if _is_investigation(prompt):
            if not content.investigation_section:
                score -= 0.2
            if not content.working_memory_section:
                score -= 0.1
        return round(max(0.0, score), 4)

    @staticmethod
    def _assess_context_relevance(prompt: GeneratedPrompt) -> float:
        context = prompt.content.context_section
        if context is None:
            return 0.3

        score = 1.0
        for name in REQUIRED_CONTEXT_FIELDS:
            if _missing(context.get(name)):
                score -= 0.2
        if _is_investigation(prompt):
            if context.get("investigation_history") is None:
                score -= 0.2
            if context.get("filtered_context") is None:
                score -= 0.1
        return round(max(0.0, score), 4)

    def _assess_schema_alignment(self, prompt: GeneratedPrompt) -> float:
        if not self.validate_schema_integration(prompt):
            return 0.2

        schema = prompt.schema
        score = 1.0
        if not schema.get("examples"):
            score -= 0.2
        if len(schema.get("required") or []) < 3:
            score -= 0.1
        return round(max(0.0, score), 4)
