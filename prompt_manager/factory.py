#!/usr/bin/env python3
"""
AI Prompt Manager - Factory

Assembles a PromptManager and its components from a configuration. Each call
builds an independent component graph with no shared state.
"""

from typing import Any, Dict, Optional

from .cache import PromptCache
from .config import ConfigManager
from .content_builder import ContentBuilder
from .context_integrator import ContextIntegrator
from .investigation import InvestigationGenerator
from .logger import PromptLogger
from .manager import PromptManager
from .stores import ContextStore, SchemaStore
from .template_manager import TemplateManager
from .validator import PromptValidator

TEST_CACHE_SIZE = 10


def create_prompt_manager(
    config: Optional[Dict[str, Any]] = None,
    context_store: Optional[ContextStore] = None,
    schema_store: Optional[SchemaStore] = None,
    logger: Optional[PromptLogger] = None
) -> PromptManager:
    """
    Build a PromptManager.

    Args:
        config: Partial configuration merged over the defaults
        context_store: Source of session context
        schema_store: Source of the response schema (canonical schema when absent)
        logger: Shared logger; built from the logging config when omitted

    Raises:
        ConfigInvalid: The configuration is rejected
    """
    config_manager = ConfigManager(config)
    settings = config_manager.get_config()

    if logger is None:
        logger = PromptLogger(
            log_dir=settings.logging.log_dir,
            file_output=settings.logging.enabled
        )

    template_manager = TemplateManager(settings.templates, logger=logger)
    context_integrator = ContextIntegrator(settings.context, context_store, logger=logger)
    content_builder = ContentBuilder(settings.context, template_manager, logger=logger)
    investigation_generator = InvestigationGenerator(
        settings.investigation,
        template_manager,
        content_builder,
        context_integrator,
        logger=logger
    )

    return PromptManager(
        config_manager=config_manager,
        template_manager=template_manager,
        context_integrator=context_integrator,
        content_builder=content_builder,
        investigation_generator=investigation_generator,
        validator=PromptValidator(settings.validation, logger=logger),
        cache=PromptCache(settings.performance, logger=logger),
        schema_store=schema_store,
        logger=logger,
    )


def create_default_prompt_manager() -> PromptManager:
    return create_prompt_manager()


def create_test_prompt_manager(
    overrides: Optional[Dict[str, Any]] = None,
    context_store: Optional[ContextStore] = None,
    schema_store: Optional[SchemaStore] = None
) -> PromptManager:
    """PromptManager with caching and validation on, a small cache, and a memory-only logger."""
    config: Dict[str, Any] = {
        "logging": {"enabled": False},
        "performance": {"cache_enabled": True, "max_cache_size": TEST_CACHE_SIZE},
        "validation": {"enable_action_validation": True, "enable_result_analysis": True},
    }
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section] = {**config[section], **values}
        else:
            config[section] = values
    return create_prompt_manager(
        config,
        context_store=context_store,
        schema_store=schema_store,
        logger=PromptLogger(file_output=False),
    )
