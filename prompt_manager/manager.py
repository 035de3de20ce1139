#!/usr/bin/env python3
"""
AI Prompt Manager - Orchestrator

Composes the template, context, content, investigation, validation and cache
components into the four prompt generation operations.

Each operation runs one sequential pipeline:
    cache lookup -> template -> context -> optional sections -> schema ->
    content -> GeneratedPrompt -> validation gate -> cache write
"""

import asyncio
import hashlib
import json
import time
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from . import templates as text
from .cache import PromptCache
from .config import ConfigManager, PromptManagerConfig, PromptOptions, merge_prompt_options
from .content_builder import ContentBuilder, ContentBuildRequest
from .context_integrator import ContextIntegrator
from .errors import (
    InvestigationDisabled,
    PromptManagerError,
    SchemaGenerationFailed,
    TemplateInvalidError,
    ValidationFailed,
)
from .investigation import InvestigationGenerator
from .logger import PromptLogger
from .stores import SchemaStore
from .template_manager import TemplateManager
from .types import (
    ActionPromptRequest,
    ActionWithInvestigationRequest,
    GeneratedPrompt,
    InvestigationPhase,
    InvestigationPromptRequest,
    PromptTemplate,
    PromptType,
    QualityAssessment,
    ReflectionPromptRequest,
    ValidationResult,
    new_prompt_id,
    to_jsonable,
)
from .validator import PromptValidator

SCHEMA_SOURCE_STORE = "schema_store"
SCHEMA_SOURCE_DEFAULT = "default"
SCHEMA_SOURCE_FALLBACK = "fallback"


def options_fingerprint(options: Any) -> str:
    """Stable short hash of the options a prompt was built with."""
    payload = json.dumps(to_jsonable(options), sort_keys=True, default=str)
    return hashlib.md5(payload.encode()).hexdigest()[:16]


def cache_key(
    kind: str,
    session_id: str,
    step_index: int,
    step_content: str,
    include_validation: Optional[bool] = None,
    phase: Optional[str] = None,
    extra: Optional[List[Any]] = None,
    options: Any = None
) -> str:
    """
    Build the cache key for a request.

    Format: kind|session|step|content[|include_validation][|phase][|extra...][|options hash]
    """
    parts = [kind, session_id, str(step_index), step_content]
    if include_validation is not None:
        parts.append(str(include_validation).lower())
    if phase:
        parts.append(phase)
    for value in extra or []:
        parts.append("" if value is None else str(value))
    if options is not None:
        parts.append(options_fingerprint(options))
    return "|".join(parts)


class PromptManager:
    """Entry point for prompt generation."""

    def __init__(
        self,
        config_manager: ConfigManager,
        template_manager: TemplateManager,
        context_integrator: ContextIntegrator,
        content_builder: ContentBuilder,
        investigation_generator: InvestigationGenerator,
        validator: PromptValidator,
        cache: PromptCache,
        schema_store: Optional[SchemaStore] = None,
        logger: Optional[PromptLogger] = None
    ):
        self.config_manager = config_manager
        self.template_manager = template_manager
        self.context_integrator = context_integrator
        self.content_builder = content_builder
        self.investigation_generator = investigation_generator
        self.validator = validator
        self.cache = cache
        self.schema_store = schema_store
        self.logger = logger or PromptLogger()
        self._slots: Optional[asyncio.Semaphore] = None
        self._slots_owner: Optional[Tuple[Any, int]] = None

    # --- Generation ---

    async def generate_action_prompt(self, request: ActionPromptRequest) -> GeneratedPrompt:
        """
        Generate the prompt for executing a step.

        Step 0 uses the initial action template; later steps use the
        action-with-validation template and get a validation section for the
        previous step when include_validation is set or the validation config
        requires explicit validation.

        Raises:
            ValidationFailed: The generated prompt failed structural validation
            PromptManagerError: Any other failure, with its original subtype kept
        """
        options = self._resolve_options(request.prompt_options)
        include_validation = (
            request.include_validation
            or self.config_manager.get_validation_config().require_explicit_validation
        )
        key = cache_key(
            "action", request.session_id, request.current_step_index,
            request.current_step_content, include_validation=include_validation,
            options=options
        )

        async def build() -> Tuple[GeneratedPrompt, str]:
            step_index = request.current_step_index
            is_initial = step_index == 0
            template = self.template_manager.get_template(
                text.INITIAL_ACTION_ID if is_initial else text.ACTION_WITH_VALIDATION_ID
            )

            context_section = await self.context_integrator.build_context_section(
                request.session_id, step_index, options,
                step_content=request.current_step_content
            )

            validation_section = None
            if include_validation and not is_initial:
                validation_section = await self.content_builder.build_validation_section(
                    request.session_id, step_index - 1
                )

            working_memory_section = None
            if options.include_working_memory:
                working_memory_section = self.context_integrator.build_working_memory_section(
                    request.session_id
                )

            schema, schema_source = await self._resolve_schema()
            schema_section = self.content_builder.build_schema_section(schema)

            content = await self.content_builder.build_prompt_content(ContentBuildRequest(
                template=template,
                context_section=context_section,
                schema_section=schema_section,
                step_content=request.current_step_content,
                include_validation=validation_section is not None,
                prompt_options=options,
                validation_section=validation_section,
                working_memory_section=working_memory_section,
            ))

            prompt = GeneratedPrompt(
                prompt_id=new_prompt_id(),
                session_id=request.session_id,
                step_index=step_index,
                prompt_type=(
                    PromptType.INITIAL_ACTION if is_initial else PromptType.ACTION_WITH_VALIDATION
                ),
                content=content,
                schema=schema_section["response_schema"],
                generated_at=datetime.now(),
                metadata={"template_id": template.template_id},
            )
            return prompt, schema_source

        return await self._run_pipeline(
            "Action", "action prompt", key, build,
            gate=self.config_manager.get_validation_config().enable_action_validation,
            session_id=request.session_id,
            step_index=request.current_step_index,
        )

    async def generate_reflection_prompt(self, request: ReflectionPromptRequest) -> GeneratedPrompt:
        """
        Generate a prompt that validates the completed step and acts on the next.

        Execution history and the validation section are always included.
        """
        options = self._resolve_options(request.prompt_options)
        key = cache_key(
            "reflection", request.session_id, request.next_step_index, request.next_step_content,
            extra=[request.completed_step_index, request.expected_outcome],
            options=options
        )

        async def build() -> Tuple[GeneratedPrompt, str]:
            template = self.template_manager.get_template(text.REFLECTION_ACTION_ID)

            context_section = await self.context_integrator.build_context_section(
                request.session_id, request.next_step_index, options,
                overrides={"include_execution_history": True},
                step_content=request.next_step_content
            )
            validation_section = await self.content_builder.build_validation_section(
                request.session_id, request.completed_step_index, request.expected_outcome
            )

            working_memory_section = None
            if options.include_working_memory:
                working_memory_section = self.context_integrator.build_working_memory_section(
                    request.session_id
                )

            schema, schema_source = await self._resolve_schema()
            schema_section = self.content_builder.build_schema_section(schema)

            content = await self.content_builder.build_prompt_content(ContentBuildRequest(
                template=template,
                context_section=context_section,
                schema_section=schema_section,
                step_content=request.next_step_content,
                include_validation=True,
                prompt_options=options,
                validation_section=validation_section,
                working_memory_section=working_memory_section,
            ))

            prompt = GeneratedPrompt(
                prompt_id=new_prompt_id(),
                session_id=request.session_id,
                step_index=request.next_step_index,
                prompt_type=PromptType.REFLECTION_AND_ACTION,
                content=content,
                schema=schema_section["response_schema"],
                generated_at=datetime.now(),
                metadata={
                    "template_id": template.template_id,
                    "completed_step_index": request.completed_step_index,
                },
            )
            return prompt, schema_source

        return await self._run_pipeline(
            "Reflection", "reflection prompt", key, build,
            gate=self.config_manager.get_validation_config().enable_result_analysis,
            session_id=request.session_id,
            step_index=request.next_step_index,
        )

    async def generate_investigation_prompt(self, request: InvestigationPromptRequest) -> GeneratedPrompt:
        """
        Generate the prompt for one investigation phase.

        Raises:
            InvestigationDisabled: Investigation prompts are switched off
            InvestigationPhaseInvalid: The phase is not a known phase
        """
        if not self.config_manager.get_investigation_config().enable_investigation_prompts:
            raise InvestigationDisabled(
                "Investigation prompts are disabled",
                session_id=request.session_id,
                step_index=request.step_index
            )

        phase = request.investigation_phase
        options = self.config_manager.get_default_prompt_options()
        key = cache_key(
            "investigation", request.session_id, request.step_index, request.step_content,
            phase=phase.value if isinstance(phase, InvestigationPhase) else str(phase),
            options={
                "prompt_options": options,
                "available_tools": request.available_tools,
                "investigation_options": request.investigation_options,
            }
        )

        async def build() -> Tuple[GeneratedPrompt, str]:
            schema, schema_source = await self._resolve_schema()
            prompt = await self.investigation_generator.generate_investigation_prompt(
                request,
                prompt_options=options,
                response_schema=schema,
            )
            return prompt, schema_source

        return await self._run_pipeline(
            "Investigation", "investigation prompt", key, build,
            gate=True,
            session_id=request.session_id,
            step_index=request.step_index,
        )

    async def generate_action_with_investigation_prompt(
        self,
        request: ActionWithInvestigationRequest
    ) -> GeneratedPrompt:
        """Generate an action prompt informed by completed investigation rounds."""
        options = self.config_manager.get_default_prompt_options()
        key = cache_key(
            "action_with_investigation", request.session_id, request.step_index,
            request.step_content,
            options={
                "prompt_options": options,
                "investigation_context": request.investigation_context,
            }
        )

        async def build() -> Tuple[GeneratedPrompt, str]:
            schema, schema_source = await self._resolve_schema()
            prompt = await self.investigation_generator.generate_action_with_investigation_prompt(
                request,
                prompt_options=options,
                response_schema=schema,
            )
            return prompt, schema_source

        return await self._run_pipeline(
            "Action with investigation", "action with investigation prompt", key, build,
            gate=self.config_manager.get_validation_config().enable_action_validation,
            session_id=request.session_id,
            step_index=request.step_index,
        )

    async def _run_pipeline(
        self,
        kind: str,
        label: str,
        key: str,
        build: Callable[[], Awaitable[Tuple[GeneratedPrompt, str]]],
        gate: bool,
        session_id: str,
        step_index: int
    ) -> GeneratedPrompt:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        started = time.perf_counter()
        try:
            async with self._generation_slots():
                prompt, schema_source = await build()
            generation_time_ms = (time.perf_counter() - started) * 1000
            prompt = replace(prompt, metadata={
                **prompt.metadata,
                "generation_time_ms": generation_time_ms,
                "schema_source": schema_source,
            })

            if gate:
                self._check_structure(kind, prompt)

            self.cache.set(key, prompt)
            self.logger.log_prompt_generated(
                prompt.prompt_type.value, session_id, step_index, generation_time_ms
            )
            return prompt
        except PromptManagerError:
            raise
        except Exception as e:
            self.logger.log_error(f"Failed to generate {label}", e)
            raise PromptManagerError(
                f"Failed to generate {label}: {e}",
                session_id=session_id,
                step_index=step_index
            ) from e

    def _generation_slots(self) -> asyncio.Semaphore:
        """Semaphore bounding concurrent builds, recreated per event loop and limit."""
        limit = self.config_manager.get_performance_config().max_concurrent_operations
        owner = (asyncio.get_running_loop(), limit)
        if self._slots is None or self._slots_owner != owner:
            self._slots = asyncio.Semaphore(limit)
            self._slots_owner = owner
        return self._slots

    def _check_structure(self, kind: str, prompt: GeneratedPrompt) -> None:
        result = self.validator.validate_prompt_structure(prompt)
        if result.is_valid:
            return
        messages = [e.message for e in result.errors]
        self.logger.log_validation_failed(prompt.prompt_type.value, messages)
        raise ValidationFailed(
            f"{kind} prompt validation failed: {', '.join(messages)}",
            session_id=prompt.session_id,
            step_index=prompt.step_index,
            context={"errors": messages}
        )

    def _resolve_options(self, overrides: Optional[Dict[str, Any]]) -> PromptOptions:
        return merge_prompt_options(self.config_manager.get_default_prompt_options(), overrides)

    async def _resolve_schema(self) -> Tuple[Optional[Dict[str, Any]], str]:
        """Schema from the schema store, or None (canonical schema) when unavailable."""
        if self.schema_store is None:
            return None, SCHEMA_SOURCE_DEFAULT
        try:
            schema = await self.schema_store.get_response_schema()
            if not isinstance(schema, dict):
                raise SchemaGenerationFailed("Schema store returned a non-object schema")
            if not await self.schema_store.validate_schema_compatibility(schema):
                raise SchemaGenerationFailed("Schema store returned an incompatible schema")
            return schema, SCHEMA_SOURCE_STORE
        except Exception as e:
            self.logger.log_warning(f"Using fallback response schema: {e}")
            return None, SCHEMA_SOURCE_FALLBACK

    # --- Validation ---

    def validate_prompt_structure(self, prompt: GeneratedPrompt) -> ValidationResult:
        return self.validator.validate_prompt_structure(prompt)

    def assess_prompt_quality(self, prompt: GeneratedPrompt) -> QualityAssessment:
        return self.validator.assess_prompt_quality(prompt)

    def validate_schema_integration(self, prompt: GeneratedPrompt) -> bool:
        return self.validator.validate_schema_integration(prompt)

    def validate_template_variables(self, template: PromptTemplate, variables: Dict[str, Any]) -> bool:
        return self.validator.validate_template_variables(template, variables)

    # --- Templates ---

    def get_prompt_templates(self) -> Dict[str, PromptTemplate]:
        return self.template_manager.get_all_templates()

    def update_prompt_template(self, template_id: str, template: PromptTemplate) -> None:
        """
        Replace a template. Cached prompts are dropped.

        Raises:
            TemplateInvalidError: Custom templates are disabled or the template is malformed
        """
        if not self.config_manager.get_template_config().enable_custom_templates:
            raise TemplateInvalidError(
                "Custom templates are not allowed in current configuration",
                context={"template_id": template_id}
            )
        self.template_manager.update_template(template_id, template)
        self.cache.clear()

    # --- Configuration ---

    def get_config(self) -> PromptManagerConfig:
        return self.config_manager.get_config()

    def update_config(self, updates: Dict[str, Any]) -> PromptManagerConfig:
        """
        Apply a partial configuration update and push each section to its component.

        Raises:
            ConfigInvalid: The update is rejected; the previous config stays active
        """
        config = self.config_manager.update_config(updates)
        self.template_manager.update_config(self.config_manager.get_template_config())
        self.context_integrator.update_config(self.config_manager.get_context_config())
        self.content_builder.update_config(self.config_manager.get_context_config())
        self.investigation_generator.update_config(self.config_manager.get_investigation_config())
        self.validator.update_config(self.config_manager.get_validation_config())
        self.cache.update_config(self.config_manager.get_performance_config())
        self.logger.log_config_updated(sorted(updates))
        return config

    # --- Cache ---

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    def perform_cache_maintenance(self) -> int:
        return self.cache.perform_maintenance()

    def get_cache_keys(self) -> List[str]:
        return self.cache.get_cache_keys()
