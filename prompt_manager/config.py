#!/usr/bin/env python3
"""
AI Prompt Manager - Configuration

Nested dataclass configuration with deep-merged dict overrides, validation,
JSON import/export and option presets.

Overrides use the same shape as export_config(): section names map to dicts
of field values. Unknown keys are rejected rather than ignored.
"""

import copy
import json
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

from .errors import ConfigInvalid
from .types import (
    InvestigationPhase,
    InvestigationTool,
    REASONING_DEPTHS,
    VALIDATION_MODES,
    to_jsonable,
)

MODULE_ID = "ai-prompt-manager"
DEFAULT_VERSION = "1.0.0"

DEFAULT_CACHE_TTL_MS = 15 * 60 * 1000
DEFAULT_MAX_CACHE_SIZE = 50
DEFAULT_MAX_DOM_SIZE = 100000
DEFAULT_MAX_HISTORY_STEPS = 10
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_MAX_INVESTIGATION_ROUNDS = 5
DEFAULT_CONTEXT_SIZE_LIMIT = 50000

FILTERING_LEVELS = ("minimal", "standard", "detailed")
WORKING_MEMORY_DETAIL_LEVELS = ("summary", "detailed", "comprehensive")
CONTEXT_MANAGEMENT_APPROACHES = ("minimal", "standard", "comprehensive")
INVESTIGATION_GUIDANCE_LEVELS = ("basic", "detailed", "expert")

TOOL_NAMES = [t.value for t in InvestigationTool]
PHASE_NAMES = [p.value for p in InvestigationPhase]


@dataclass
class LoggingConfig:
    enabled: bool = True
    log_dir: Optional[str] = None


@dataclass
class PerformanceConfig:
    cache_enabled: bool = True
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    metrics_enabled: bool = True
    max_concurrent_operations: int = 5


@dataclass
class TemplateConfig:
    enable_custom_templates: bool = True
    template_cache_enabled: bool = True
    template_validation_enabled: bool = True
    fallback_to_default: bool = True


@dataclass
class ContextConfig:
    max_dom_size: int = DEFAULT_MAX_DOM_SIZE
    max_history_items: int = DEFAULT_MAX_HISTORY_STEPS
    include_timestamps: bool = True
    compress_large_dom: bool = True
    highlight_relevant_elements: bool = True
    enable_filtered_context: bool = True
    default_filtering_level: str = "standard"
    max_filtered_context_size: int = DEFAULT_CONTEXT_SIZE_LIMIT
    include_working_memory_by_default: bool = True
    working_memory_detail_level: str = "detailed"
    element_knowledge_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    investigation_history_depth: int = 5


@dataclass
class ValidationConfig:
    enable_action_validation: bool = True
    enable_result_analysis: bool = True
    validation_timeout_ms: int = 5000
    require_explicit_validation: bool = False


@dataclass
class ToolSettings:
    enabled: bool = True
    timeout_ms: int = 10000
    max_retries: int = 2
    quality_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD


def _default_tool_settings() -> Dict[str, ToolSettings]:
    return {
        InvestigationTool.SCREENSHOT_ANALYSIS.value: ToolSettings(timeout_ms=10000, max_retries=2, quality_threshold=0.7),
        InvestigationTool.TEXT_EXTRACTION.value: ToolSettings(timeout_ms=5000, max_retries=2, quality_threshold=0.8),
        InvestigationTool.SUB_DOM_EXTRACTION.value: ToolSettings(timeout_ms=8000, max_retries=2, quality_threshold=0.8),
        InvestigationTool.FULL_DOM_RETRIEVAL.value: ToolSettings(timeout_ms=15000, max_retries=1, quality_threshold=0.6),
    }


@dataclass
class InvestigationConfig:
    enable_investigation_prompts: bool = True
    default_investigation_phase: InvestigationPhase = InvestigationPhase.INITIAL_ASSESSMENT
    max_investigation_rounds_per_step: int = DEFAULT_MAX_INVESTIGATION_ROUNDS
    investigation_timeout_ms: int = 30000
    enabled_investigation_tools: List[InvestigationTool] = field(
        default_factory=lambda: list(InvestigationTool)
    )
    tool_priority_order: List[InvestigationTool] = field(default_factory=lambda: [
        InvestigationTool.SCREENSHOT_ANALYSIS,
        InvestigationTool.TEXT_EXTRACTION,
        InvestigationTool.SUB_DOM_EXTRACTION,
        InvestigationTool.FULL_DOM_RETRIEVAL,
    ])
    working_memory_integration_enabled: bool = True
    element_knowledge_tracking_enabled: bool = True
    minimum_confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    tool_specific_settings: Dict[str, ToolSettings] = field(default_factory=_default_tool_settings)


@dataclass
class PromptOptions:
    # Traditional options
    include_execution_history: bool = True
    max_history_steps: int = DEFAULT_MAX_HISTORY_STEPS
    include_dom_comparison: bool = True
    include_element_context: bool = True
    validation_mode: str = "lenient"
    reasoning_depth: str = "detailed"
    include_examples: bool = False
    custom_instructions: Optional[str] = None

    # Investigation options
    use_filtered_context: bool = True
    include_working_memory: bool = True
    include_investigation_history: bool = True
    include_element_knowledge: bool = True
    context_management_approach: str = "standard"
    investigation_guidance_level: str = "detailed"
    enable_progressive_context: bool = True
    max_investigation_rounds: int = DEFAULT_MAX_INVESTIGATION_ROUNDS
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    preferred_investigation_tools: List[InvestigationTool] = field(default_factory=lambda: [
        InvestigationTool.SCREENSHOT_ANALYSIS,
        InvestigationTool.TEXT_EXTRACTION,
        InvestigationTool.SUB_DOM_EXTRACTION,
    ])


@dataclass
class PromptManagerConfig:
    module_id: str = MODULE_ID
    version: str = DEFAULT_VERSION
    enabled: bool = True
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    templates: TemplateConfig = field(default_factory=TemplateConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    investigation: InvestigationConfig = field(default_factory=InvestigationConfig)
    default_prompt_options: PromptOptions = field(default_factory=PromptOptions)


PROMPT_PRESETS: Dict[str, Dict[str, Any]] = {
    "SIMPLE": {
        "include_execution_history": True,
        "max_history_steps": 5,
        "include_dom_comparison": False,
        "validation_mode": "lenient",
        "reasoning_depth": "basic",
    },
    "COMPREHENSIVE": {
        "include_execution_history": True,
        "max_history_steps": 10,
        "include_dom_comparison": True,
        "include_element_context": True,
        "validation_mode": "strict",
        "reasoning_depth": "comprehensive",
        "include_examples": True,
    },
    "PERFORMANCE": {
        "include_execution_history": True,
        "max_history_steps": 3,
        "include_dom_comparison": False,
        "include_element_context": False,
        "validation_mode": "lenient",
        "reasoning_depth": "basic",
    },
}


# --- Merge / build / validate ---


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any], path: str = "") -> Dict[str, Any]:
    """Merge `updates` into a copy of `base`, rejecting keys `base` does not have."""
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        key_path = f"{path}.{key}" if path else key
        if key not in merged:
            if path == "investigation.tool_specific_settings":
                raise ConfigInvalid(f"{path} contains invalid tool: {key}")
            raise ConfigInvalid(f"Unknown configuration key: {key_path}")
        if isinstance(merged[key], dict):
            if not isinstance(value, dict):
                raise ConfigInvalid(f"{key_path} must be an object")
            merged[key] = _deep_merge(merged[key], value, key_path)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_non_negative(section: Dict[str, Any], name: str, path: str) -> None:
    value = section[name]
    if not _is_number(value) or value < 0:
        raise ConfigInvalid(f"{path}.{name} must be a non-negative number")


def _require_positive(section: Dict[str, Any], name: str, path: str) -> None:
    value = section[name]
    if not _is_number(value) or value < 1:
        raise ConfigInvalid(f"{path}.{name} must be a positive number")


def _require_ratio(section: Dict[str, Any], name: str, path: str) -> None:
    value = section[name]
    if not _is_number(value) or value < 0 or value > 1:
        raise ConfigInvalid(f"{path}.{name} must be a number between 0 and 1")


def _require_choice(section: Dict[str, Any], name: str, path: str, choices) -> None:
    if section[name] not in choices:
        raise ConfigInvalid(f"{path}.{name} must be one of: {', '.join(choices)}")


def _require_tools(section: Dict[str, Any], name: str, path: str) -> None:
    if not isinstance(section[name], (list, tuple)):
        raise ConfigInvalid(f"{path}.{name} must be a list of tool names")
    for tool in section[name]:
        if tool not in TOOL_NAMES:
            raise ConfigInvalid(f"{path}.{name} contains invalid tool: {tool}")


def _check_flags(data: Dict[str, Any], path: str = "") -> None:
    """Every enable_* / *_enabled flag anywhere in the tree must be a bool."""
    for key, value in data.items():
        key_path = f"{path}.{key}" if path else key
        if isinstance(value, dict):
            _check_flags(value, key_path)
        elif key == "enabled" or key.startswith("enable_") or key.endswith("_enabled"):
            if not isinstance(value, bool):
                raise ConfigInvalid(f"{key_path} must be a boolean")


def _validate(data: Dict[str, Any]) -> None:
    """Fail fast on the first invalid value of a plain-dict configuration."""
    _check_flags(data)

    performance = data["performance"]
    _require_non_negative(performance, "cache_ttl_ms", "performance")
    _require_non_negative(performance, "max_cache_size", "performance")
    _require_positive(performance, "max_concurrent_operations", "performance")

    context = data["context"]
    _require_non_negative(context, "max_dom_size", "context")
    _require_non_negative(context, "max_history_items", "context")
    _require_non_negative(context, "max_filtered_context_size", "context")
    _require_ratio(context, "element_knowledge_threshold", "context")
    _require_choice(context, "default_filtering_level", "context", FILTERING_LEVELS)
    _require_choice(context, "working_memory_detail_level", "context", WORKING_MEMORY_DETAIL_LEVELS)

    _require_non_negative(data["validation"], "validation_timeout_ms", "validation")

    investigation = data["investigation"]
    if investigation["default_investigation_phase"] not in PHASE_NAMES:
        raise ConfigInvalid(
            "investigation.default_investigation_phase must be a valid InvestigationPhase"
        )
    _require_positive(investigation, "max_investigation_rounds_per_step", "investigation")
    _require_non_negative(investigation, "investigation_timeout_ms", "investigation")
    _require_tools(investigation, "enabled_investigation_tools", "investigation")
    _require_tools(investigation, "tool_priority_order", "investigation")
    _require_ratio(investigation, "minimum_confidence_threshold", "investigation")
    for tool_name, settings in investigation["tool_specific_settings"].items():
        label = f"Tool settings for {tool_name}"
        if not isinstance(settings.get("enabled"), bool):
            raise ConfigInvalid(f"{label}: enabled must be a boolean")
        for name in ("timeout_ms", "max_retries"):
            value = settings.get(name)
            if not _is_number(value) or value < 0:
                raise ConfigInvalid(f"{label}: {name} must be a non-negative number")
        quality = settings.get("quality_threshold")
        if not _is_number(quality) or quality < 0 or quality > 1:
            raise ConfigInvalid(f"{label}: quality_threshold must be a number between 0 and 1")

    _validate_prompt_options(data["default_prompt_options"], "default_prompt_options")


def _validate_prompt_options(options: Dict[str, Any], path: str) -> None:
    _require_non_negative(options, "max_history_steps", path)
    _require_choice(options, "validation_mode", path, VALIDATION_MODES)
    _require_choice(options, "reasoning_depth", path, REASONING_DEPTHS)
    _require_choice(options, "context_management_approach", path, CONTEXT_MANAGEMENT_APPROACHES)
    _require_choice(options, "investigation_guidance_level", path, INVESTIGATION_GUIDANCE_LEVELS)
    _require_positive(options, "max_investigation_rounds", path)
    _require_ratio(options, "confidence_threshold", path)
    _require_tools(options, "preferred_investigation_tools", path)


def _build_prompt_options(data: Dict[str, Any]) -> PromptOptions:
    values = dict(data)
    values["preferred_investigation_tools"] = [
        InvestigationTool(t) for t in values["preferred_investigation_tools"]
    ]
    return PromptOptions(**values)


def _build(data: Dict[str, Any]) -> PromptManagerConfig:
    """Turn a validated plain-dict configuration into dataclasses."""
    investigation = dict(data["investigation"])
    investigation["default_investigation_phase"] = InvestigationPhase(
        investigation["default_investigation_phase"]
    )
    investigation["enabled_investigation_tools"] = [
        InvestigationTool(t) for t in investigation["enabled_investigation_tools"]
    ]
    investigation["tool_priority_order"] = [
        InvestigationTool(t) for t in investigation["tool_priority_order"]
    ]
    investigation["tool_specific_settings"] = {
        name: ToolSettings(**settings)
        for name, settings in investigation["tool_specific_settings"].items()
    }

    return PromptManagerConfig(
        module_id=data["module_id"],
        version=data["version"],
        enabled=data["enabled"],
        logging=LoggingConfig(**data["logging"]),
        performance=PerformanceConfig(**data["performance"]),
        templates=TemplateConfig(**data["templates"]),
        context=ContextConfig(**data["context"]),
        validation=ValidationConfig(**data["validation"]),
        investigation=InvestigationConfig(**investigation),
        default_prompt_options=_build_prompt_options(data["default_prompt_options"]),
    )


def _load(overrides: Optional[Dict[str, Any]]) -> PromptManagerConfig:
    data = _deep_merge(to_jsonable(PromptManagerConfig()), to_jsonable(overrides or {}))
    _validate(data)
    return _build(data)


def merge_prompt_options(
    defaults: PromptOptions,
    overrides: Optional[Dict[str, Any]] = None
) -> PromptOptions:
    """Apply request-level option overrides on top of the configured defaults."""
    if not overrides:
        return replace(defaults)
    data = to_jsonable(defaults)
    known = {f.name for f in fields(PromptOptions)}
    for key, value in to_jsonable(overrides).items():
        if key not in known:
            raise ConfigInvalid(f"Unknown prompt option: {key}")
        data[key] = value
    _check_flags(data, "prompt_options")
    _validate_prompt_options(data, "prompt_options")
    return _build_prompt_options(data)


class ConfigManager:
    """Holds the active configuration and applies validated updates to it."""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        self._config = _load(overrides)

    def get_config(self) -> PromptManagerConfig:
        return copy.deepcopy(self._config)

    def update_config(self, updates: Dict[str, Any]) -> PromptManagerConfig:
        """Deep-merge `updates` into the current config. Keeps the old config on failure."""
        data = _deep_merge(to_jsonable(self._config), to_jsonable(updates))
        _validate(data)
        self._config = _build(data)
        return self.get_config()

    # --- Section getters ---

    def get_logging_config(self) -> LoggingConfig:
        return self._config.logging

    def get_performance_config(self) -> PerformanceConfig:
        return self._config.performance

    def get_template_config(self) -> TemplateConfig:
        return self._config.templates

    def get_context_config(self) -> ContextConfig:
        return self._config.context

    def get_validation_config(self) -> ValidationConfig:
        return self._config.validation

    def get_investigation_config(self) -> InvestigationConfig:
        return self._config.investigation

    # --- Prompt options ---

    def get_default_prompt_options(self) -> PromptOptions:
        return replace(self._config.default_prompt_options)

    def update_default_prompt_options(self, options: Dict[str, Any]) -> PromptOptions:
        self.update_config({"default_prompt_options": options})
        return self.get_default_prompt_options()

    def apply_preset(self, name: str) -> PromptOptions:
        """Apply one of PROMPT_PRESETS (SIMPLE, COMPREHENSIVE, PERFORMANCE) to the default options."""
        preset = PROMPT_PRESETS.get(name.upper())
        if preset is None:
            raise ConfigInvalid(
                f"Unknown preset: {name}. Must be one of: {', '.join(PROMPT_PRESETS)}"
            )
        return self.update_default_prompt_options(preset)

    # --- Investigation ---

    def set_investigation_enabled(self, enabled: bool) -> None:
        self.update_config({"investigation": {"enable_investigation_prompts": enabled}})

    def update_investigation_tool_settings(
        self,
        tool: InvestigationTool,
        settings: Dict[str, Any]
    ) -> ToolSettings:
        self.update_config({
            "investigation": {"tool_specific_settings": {tool.value: settings}}
        })
        return self._config.investigation.tool_specific_settings[tool.value]

    # --- Persistence ---

    def reset_to_defaults(self) -> None:
        self._config = PromptManagerConfig()

    def export_config(self) -> str:
        return json.dumps(to_jsonable(self._config), indent=2)

    def import_config(self, config_json: str) -> None:
        """Replace the configuration with a JSON document merged over the defaults."""
        try:
            imported = json.loads(config_json)
            if not isinstance(imported, dict):
                raise ConfigInvalid("configuration must be a JSON object")
            self._config = _load(imported)
        except (ValueError, TypeError, ConfigInvalid) as e:
            message = e.message if isinstance(e, ConfigInvalid) else str(e)
            raise ConfigInvalid(f"Failed to import configuration: {message}") from e

    def get_config_summary(self) -> Dict[str, Any]:
        config = self._config
        return {
            "module_enabled": config.enabled,
            "investigation_enabled": config.investigation.enable_investigation_prompts,
            "filtered_context_enabled": config.context.enable_filtered_context,
            "working_memory_enabled": config.investigation.working_memory_integration_enabled,
            "template_cache_enabled": config.templates.template_cache_enabled,
            "validation_enabled": config.validation.enable_action_validation,
            "enabled_investigation_tools": [
                t.value for t in config.investigation.enabled_investigation_tools
            ],
            "max_dom_size": config.context.max_dom_size,
            "max_history_items": config.context.max_history_items,
        }


def create_default_config() -> PromptManagerConfig:
    return ConfigManager().get_config()


def create_config_with_overrides(overrides: Dict[str, Any]) -> PromptManagerConfig:
    return ConfigManager(overrides).get_config()
