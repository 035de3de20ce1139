#!/usr/bin/env python3
"""
AI Prompt Manager - Investigation Generator

Generates prompts for the three investigation phases (initial assessment,
focused exploration, selector determination) and for the action prompt that
follows a completed investigation.

Phase handling is a pure mapping from phase to guidance; the caller decides
which phase comes next.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from . import templates as text
from .config import InvestigationConfig, PromptOptions
from .content_builder import ContentBuilder, ContentBuildRequest
from .context_integrator import ContextIntegrator
from .errors import (
    InvestigationContextUnavailable,
    InvestigationDisabled,
    InvestigationPhaseInvalid,
    InvestigationStrategyGenerationFailed,
    PromptManagerError,
)
from .logger import PromptLogger
from .template_manager import TemplateManager
from .types import (
    ActionWithInvestigationRequest,
    GeneratedPrompt,
    InvestigationContext,
    InvestigationPhase,
    InvestigationPromptRequest,
    InvestigationTool,
    PromptType,
    new_prompt_id,
    to_jsonable,
)

Screenshot = InvestigationTool.SCREENSHOT_ANALYSIS
Text = InvestigationTool.TEXT_EXTRACTION
SubDom = InvestigationTool.SUB_DOM_EXTRACTION
FullDom = InvestigationTool.FULL_DOM_RETRIEVAL

PHASE_DESCRIPTIONS: Dict[InvestigationPhase, Dict[str, Any]] = {
    InvestigationPhase.INITIAL_ASSESSMENT: {
        "name": "Initial Assessment",
        "description": "High-level understanding of page layout and key sections",
        "objectives": [
            "Understand overall page structure",
            "Identify main sections and interactive areas",
            "Locate regions relevant to the current step",
        ],
        "preferred_tools": [Screenshot, Text],
    },
    InvestigationPhase.FOCUSED_EXPLORATION: {
        "name": "Focused Exploration",
        "description": "Detailed examination of the page sections relevant to the step",
        "objectives": [
            "Verify presence and state of target elements",
            "Extract detailed structure of relevant sections",
            "Build element knowledge while staying within context limits",
        ],
        "preferred_tools": [SubDom, Text],
    },
    InvestigationPhase.SELECTOR_DETERMINATION: {
        "name": "Selector Determination",
        "description": "Selection of reliable selectors and the interaction approach",
        "objectives": [
            "Choose specific and stable selectors",
            "Confirm selector uniqueness",
            "Prepare fallback selectors and a final action plan",
        ],
        "preferred_tools": [SubDom, FullDom],
    },
}

TOOL_DESCRIPTIONS: Dict[InvestigationTool, Dict[str, Any]] = {
    Screenshot: {
        "description": "Captures and analyzes visual screenshot of current page",
        "use_case": "Initial page understanding, layout analysis, visual element identification",
        "expected_output": "Detailed text description of page visual content and structure",
        "limitations": [
            "May not capture dynamic content",
            "Text in images may not be readable",
            "Relies on visual appearance only",
        ],
        "parameters": [
            {"name": "includeTextDescription", "type": "boolean", "required": False,
             "description": "Include detailed text description of visual elements"},
        ],
    },
    Text: {
        "description": "Extracts text content from specific elements using selectors",
        "use_case": "Targeted content retrieval, element validation, specific text analysis",
        "expected_output": "Text content from specified elements",
        "limitations": [
            "Requires knowing approximate selectors",
            "May not capture all relevant content",
            "Limited to visible text content",
        ],
        "parameters": [
            {"name": "selector", "type": "string", "required": True,
             "description": "CSS selector for target elements"},
            {"name": "multiple", "type": "boolean", "required": False,
             "description": "Extract from all matching elements"},
        ],
    },
    FullDom: {
        "description": "Retrieves complete DOM structure of the page",
        "use_case": "Comprehensive page analysis, complex element relationships, fallback option",
        "expected_output": "Complete HTML DOM structure",
        "limitations": [
            "May exceed context limits on large pages",
            "Can be overwhelming with too much information",
            "May include irrelevant content",
        ],
        "parameters": [
            {"name": "maxDomSize", "type": "number", "required": False,
             "description": "Maximum DOM size in characters"},
        ],
    },
    SubDom: {
        "description": "Extracts DOM subtree from specific page sections",
        "use_case": "Focused DOM analysis, specific section understanding, balanced detail",
        "expected_output": "HTML structure of specified page sections",
        "limitations": [
            "Requires identifying relevant sections",
            "May miss content outside selected areas",
            "Selector accuracy is crucial",
        ],
        "parameters": [
            {"name": "selector", "type": "string", "required": True,
             "description": "CSS selector for container element"},
            {"name": "maxDomSize", "type": "number", "required": False,
             "description": "Maximum DOM size in characters"},
        ],
    },
}

PHASE_GUIDANCE: Dict[InvestigationPhase, Dict[str, List[str]]] = {
    InvestigationPhase.INITIAL_ASSESSMENT: {
        "suggested_approach": [
            "Start with screenshot analysis for visual understanding",
            "Identify main page sections and layout structure",
            "Note interactive elements and their general locations",
            "Plan focused exploration based on step requirements",
        ],
        "success_criteria": [
            "Clear understanding of page layout and structure",
            "Identification of relevant interactive elements",
            "Initial strategy for completing the step",
            "Confidence in proceeding to focused exploration",
        ],
        "next_phase_conditions": [
            "Page structure is understood at high level",
            "Target areas for detailed investigation identified",
            "Investigation strategy is clear",
        ],
        "investigation_questions": [
            "What is the overall page layout and structure?",
            "Where are the main interactive elements located?",
            "What sections are most relevant to the current step?",
            "Are there any dynamic or complex elements to consider?",
        ],
        "output_expectations": [
            "High-level page description and layout analysis",
            "Identification of key sections and elements",
            "Initial element discovery with basic selectors",
            "Investigation strategy for next phase",
        ],
        "common_pitfalls": [
            "Spending too much time on detailed analysis",
            "Missing dynamic content that loads after page load",
            "Focusing on irrelevant page sections",
            "Not considering mobile/responsive layouts",
        ],
    },
    InvestigationPhase.FOCUSED_EXPLORATION: {
        "suggested_approach": [
            "Use text extraction to verify specific element content",
            "Extract DOM subsections for detailed analysis",
            "Build understanding of element relationships",
            "Validate element accessibility and interaction patterns",
        ],
        "success_criteria": [
            "Detailed knowledge of target elements and their properties",
            "Understanding of element interaction patterns",
            "Validation of element accessibility",
            "Sufficient information for selector determination",
        ],
        "next_phase_conditions": [
            "Target elements are well understood",
            "Element properties and accessibility confirmed",
            "Ready for selector determination",
        ],
        "investigation_questions": [
            "What are the exact properties of target elements?",
            "How can these elements be reliably identified?",
            "Are there any accessibility or interaction constraints?",
            "What are the relationships between relevant elements?",
        ],
        "output_expectations": [
            "Detailed element analysis and properties",
            "Refined selectors with validation",
            "Element accessibility and interaction notes",
            "Updated working memory with discoveries",
        ],
        "common_pitfalls": [
            "Using overly specific selectors that may break",
            "Not validating element accessibility",
            "Missing alternative elements or approaches",
            "Exceeding context limits with too much detail",
        ],
    },
    InvestigationPhase.SELECTOR_DETERMINATION: {
        "suggested_approach": [
            "Synthesize all investigation findings",
            "Identify most reliable element selectors",
            "Validate selector uniqueness and stability",
            "Choose optimal interaction approach for the step",
        ],
        "success_criteria": [
            "Reliable selectors identified for target elements",
            "Clear action plan for step completion",
            "High confidence in selector stability",
            "Fallback options identified if needed",
        ],
        "next_phase_conditions": [
            "Reliable selectors are identified",
            "Action approach is determined",
            "Ready to proceed with action execution",
        ],
        "investigation_questions": [
            "Which selectors are most reliable and specific?",
            "Are there alternative approaches if primary selectors fail?",
            "What is the optimal sequence of interactions?",
            "How can success be validated after action?",
        ],
        "output_expectations": [
            "Final selector recommendations with confidence levels",
            "Complete action plan for step execution",
            "Fallback strategies and error handling",
            "Working memory updates with reliable patterns",
        ],
        "common_pitfalls": [
            "Choosing unreliable or fragile selectors",
            "Not testing selector uniqueness",
            "Overlooking timing and dynamic content issues",
            "Not providing adequate fallback options",
        ],
    },
}

CONTEXT_MANAGEMENT_GUIDANCE: Dict[str, Any] = {
    "context_overflow_prevention": [
        "Focus investigation on most relevant page areas",
        "Use filtered context to manage information flow",
        "Summarize findings concisely",
        "Prioritize actionable insights over comprehensive coverage",
    ],
    "content_filtering_strategy": "Progressive context building with filtered summaries",
    "summary_guidelines": [
        "Highlight key findings and actionable insights",
        "Include confidence levels for discoveries",
        "Note any uncertainty or areas needing further investigation",
        "Organize findings by relevance to the current step",
    ],
    "element_knowledge_tracking": [
        "Record reliable selectors for discovered elements",
        "Note element interaction patterns",
        "Track element reliability and alternative selectors",
        "Update working memory with validated discoveries",
    ],
    "working_memory_updates": [
        "Add newly discovered elements to working memory",
        "Update page insights based on investigation",
        "Record successful investigation patterns",
        "Note any failed approaches for future reference",
    ],
}

PHASE_TEMPLATES = {
    InvestigationPhase.INITIAL_ASSESSMENT: text.INVESTIGATION_INITIAL_ID,
    InvestigationPhase.FOCUSED_EXPLORATION: text.INVESTIGATION_FOCUSED_ID,
    InvestigationPhase.SELECTOR_DETERMINATION: text.INVESTIGATION_SELECTOR_ID,
}

PHASE_PROMPT_TYPES = {
    InvestigationPhase.INITIAL_ASSESSMENT: PromptType.INVESTIGATION_INITIAL_ASSESSMENT,
    InvestigationPhase.FOCUSED_EXPLORATION: PromptType.INVESTIGATION_FOCUSED_EXPLORATION,
    InvestigationPhase.SELECTOR_DETERMINATION: PromptType.INVESTIGATION_SELECTOR_DETERMINATION,
}

INVESTIGATION_RESULTS_SCHEMA = {
    "type": "object",
    "description": "Results of investigation phase",
    "properties": {
        "toolUsed": {"type": "string", "description": "Investigation tool used"},
        "findings": {"type": "array", "description": "Key findings from investigation"},
        "confidence": {"type": "number", "description": "Confidence in findings"},
        "nextRecommendation": {"type": "string", "description": "Recommendation for next step"},
    },
}

KEY_FINDINGS_SHOWN = 3


def resolve_phase(phase: Union[InvestigationPhase, str]) -> InvestigationPhase:
    """Accept a phase enum or its name."""
    if isinstance(phase, InvestigationPhase):
        return phase
    try:
        return InvestigationPhase(phase)
    except ValueError:
        raise InvestigationPhaseInvalid(f"Invalid investigation phase: {phase}") from None


def format_investigation_summary(context: InvestigationContext) -> str:
    confidence = context.working_memory_state.get("overall_confidence", 0.0)
    lines = [
        "Based on page investigation:",
        "",
        f"- Performed {len(context.investigations_performed)} investigations",
        f"- Discovered {len(context.elements_discovered)} elements",
        f"- Overall confidence: {confidence * 100:.0f}%",
        f"- Recommended action: {context.recommended_action.recommended_action}",
        "",
        "Key findings:",
    ]
    lines.extend(f"- {f}" for f in context.recommended_action.reasoning[:KEY_FINDINGS_SHOWN])
    return "\n".join(lines) + "\n"


class InvestigationGenerator:
    """Builds investigation phase prompts and investigation-informed action prompts."""

    def __init__(
        self,
        config: InvestigationConfig,
        template_manager: TemplateManager,
        content_builder: ContentBuilder,
        context_integrator: ContextIntegrator,
        logger: Optional[PromptLogger] = None
    ):
        self.config = config
        self.template_manager = template_manager
        self.content_builder = content_builder
        self.context_integrator = context_integrator
        self.logger = logger or PromptLogger()

    def update_config(self, config: InvestigationConfig) -> None:
        self.config = config

    # --- Phase guidance ---

    def get_tool_priority(
        self,
        phase: InvestigationPhase,
        preferred: Optional[List[InvestigationTool]] = None
    ) -> List[InvestigationTool]:
        """Phase-preferred tools, then `preferred`, then the configured order, without repeats."""
        ordered: List[InvestigationTool] = []
        candidates = (
            PHASE_DESCRIPTIONS[phase]["preferred_tools"]
            + list(preferred or [])
            + list(self.config.tool_priority_order)
        )
        for tool in candidates:
            if tool not in ordered:
                ordered.append(tool)
        return ordered

    def get_available_tools(
        self,
        requested: Optional[List[InvestigationTool]] = None
    ) -> List[InvestigationTool]:
        """Requested tools that are enabled in config; all enabled tools when none requested."""
        enabled = []
        for tool in self.config.enabled_investigation_tools:
            settings = self.config.tool_specific_settings.get(tool.value)
            if settings is None or settings.enabled:
                enabled.append(tool)
        if not requested:
            return enabled
        return [t for t in requested if t in enabled]

    def build_investigation_strategy(
        self,
        phase: InvestigationPhase,
        preferred: Optional[List[InvestigationTool]] = None
    ) -> Dict[str, Any]:
        description = PHASE_DESCRIPTIONS[phase]
        priority = self.get_tool_priority(phase, preferred)
        primary = priority[0].value
        guidance = PHASE_GUIDANCE[phase]
        return {
            "current_phase_objective": description["description"],
            "investigation_priority": {
                "primary": primary,
                "fallbacks": [t.value for t in priority[1:]],
                "reasoning": (
                    f"{description['name']} phase prioritizes {primary.lower()} "
                    f"for {description['description'].lower()}"
                ),
            },
            "suggested_approach": list(guidance["suggested_approach"]),
            "success_criteria": list(guidance["success_criteria"]),
            "next_phase_conditions": list(guidance["next_phase_conditions"]),
        }

    @staticmethod
    def build_phase_guidance(phase: InvestigationPhase) -> Dict[str, Any]:
        description = PHASE_DESCRIPTIONS[phase]
        guidance = PHASE_GUIDANCE[phase]
        return {
            "phase_description": description["description"],
            "key_objectives": list(description["objectives"]),
            "recommended_tools": [t.value for t in description["preferred_tools"]],
            "investigation_questions": list(guidance["investigation_questions"]),
            "output_expectations": list(guidance["output_expectations"]),
            "common_pitfalls": list(guidance["common_pitfalls"]),
        }

    @staticmethod
    def build_tool_descriptions(tools: List[InvestigationTool]) -> List[Dict[str, Any]]:
        return [
            {
                "tool": tool.value,
                "description": TOOL_DESCRIPTIONS[tool]["description"],
                "use_case": TOOL_DESCRIPTIONS[tool]["use_case"],
                "expected_output": TOOL_DESCRIPTIONS[tool]["expected_output"],
                "limitations": list(TOOL_DESCRIPTIONS[tool]["limitations"]),
                "parameters": [dict(p) for p in TOOL_DESCRIPTIONS[tool]["parameters"]],
            }
            for tool in tools
        ]

    def build_investigation_section(
        self,
        phase: InvestigationPhase,
        available_tools: List[InvestigationTool],
        preferred: Optional[List[InvestigationTool]] = None
    ) -> Dict[str, Any]:
        return {
            "investigation_phase": phase.value,
            "available_tools": self.build_tool_descriptions(available_tools),
            "investigation_strategy": self.build_investigation_strategy(phase, preferred),
            "phase_specific_guidance": self.build_phase_guidance(phase),
            "context_management_guidance": {
                k: list(v) if isinstance(v, list) else v
                for k, v in CONTEXT_MANAGEMENT_GUIDANCE.items()
            },
        }

    @staticmethod
    def enhance_schema_for_investigation(schema_section: Dict[str, Any]) -> None:
        schema = schema_section["response_schema"]
        schema.setdefault("properties", {})["investigationResults"] = dict(INVESTIGATION_RESULTS_SCHEMA)
        required = schema.setdefault("required", [])
        if "investigationResults" not in required:
            required.append("investigationResults")

    # --- Generation ---

    async def generate_investigation_prompt(
        self,
        request: InvestigationPromptRequest,
        prompt_options: Optional[PromptOptions] = None,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> GeneratedPrompt:
        """
        Generate the prompt for one investigation phase.

        Raises:
            InvestigationDisabled: Investigation prompts are switched off
            InvestigationPhaseInvalid: The phase is not a known phase
            InvestigationStrategyGenerationFailed: Any other failure
        """
        if not self.config.enable_investigation_prompts:
            raise InvestigationDisabled(
                "Investigation prompts are disabled",
                session_id=request.session_id,
                step_index=request.step_index
            )

        try:
            phase = resolve_phase(request.investigation_phase)
            template = self.template_manager.get_template(PHASE_TEMPLATES[phase])
            base_options = prompt_options or PromptOptions()

            context_section = await self.context_integrator.build_investigation_context_section(
                request.session_id,
                request.step_index,
                phase,
                options=base_options,
                step_content=request.step_content
            )

            available_tools = self.get_available_tools(request.available_tools)
            investigation_section = self.build_investigation_section(
                phase, available_tools, base_options.preferred_investigation_tools
            )

            working_memory_section = None
            if self.config.working_memory_integration_enabled:
                working_memory_section = self.context_integrator.build_working_memory_section(
                    request.session_id
                )

            schema_section = self.content_builder.build_schema_section(response_schema)
            self.enhance_schema_for_investigation(schema_section)

            investigation_options = request.investigation_options or {}
            options = replace(
                base_options,
                use_filtered_context=True,
                include_working_memory=self.config.working_memory_integration_enabled,
                include_investigation_history=True,
                include_element_knowledge=self.config.element_knowledge_tracking_enabled,
                context_management_approach=investigation_options.get(
                    "context_management_approach", "standard"
                ),
            )

            content = await self.content_builder.build_prompt_content(ContentBuildRequest(
                template=template,
                context_section=context_section,
                schema_section=schema_section,
                step_content=request.step_content,
                prompt_options=options,
                investigation_section=investigation_section,
                working_memory_section=working_memory_section,
            ))

            self.logger.log_event(
                "INVESTIGATION",
                f"{phase.value} prompt built | session: {request.session_id} "
                f"| step: {request.step_index} | tools: {len(available_tools)}"
            )

            return GeneratedPrompt(
                prompt_id=new_prompt_id("investigation_prompt"),
                session_id=request.session_id,
                step_index=request.step_index,
                prompt_type=PHASE_PROMPT_TYPES[phase],
                content=content,
                schema=schema_section["response_schema"],
                generated_at=datetime.now(),
                metadata={
                    "investigation_phase": phase.value,
                    "available_tools": [t.value for t in available_tools],
                    "investigation_options": to_jsonable(investigation_options),
                    "template_id": template.template_id,
                },
            )
        except PromptManagerError:
            raise
        except Exception as e:
            self.logger.log_error("Failed to generate investigation prompt", e)
            raise InvestigationStrategyGenerationFailed(
                f"Failed to generate investigation prompt: {e}",
                session_id=request.session_id,
                step_index=request.step_index
            ) from e

    async def generate_action_with_investigation_prompt(
        self,
        request: ActionWithInvestigationRequest,
        prompt_options: Optional[PromptOptions] = None,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> GeneratedPrompt:
        """
        Generate an action prompt informed by completed investigation rounds.

        Raises:
            InvestigationContextUnavailable: The prompt could not be assembled
        """
        try:
            template = self.template_manager.get_template(text.ACTION_WITH_INVESTIGATION_ID)
            base_options = prompt_options or PromptOptions()
            investigation_context = request.investigation_context

            context_section = await self.context_integrator.build_context_section_with_investigation(
                request.session_id,
                request.step_index,
                investigation_context,
                options=base_options,
                step_content=request.step_content
            )

            working_memory_section = {
                **investigation_context.working_memory_state,
                "last_investigation_update": datetime.now().isoformat(),
                "investigation_enhanced": True,
            }

            schema_section = self.content_builder.build_schema_section(response_schema)
            options = replace(
                base_options,
                use_filtered_context=True,
                include_working_memory=True,
                include_element_knowledge=True,
                context_management_approach="comprehensive",
            )

            content = await self.content_builder.build_prompt_content(ContentBuildRequest(
                template=template,
                context_section=context_section,
                schema_section=schema_section,
                step_content=request.step_content,
                prompt_options=options,
                working_memory_section=working_memory_section,
            ))
            content.system_message += (
                "\n\n## Investigation Results Summary\n"
                + format_investigation_summary(investigation_context)
            )

            return GeneratedPrompt(
                prompt_id=new_prompt_id("investigation_prompt"),
                session_id=request.session_id,
                step_index=request.step_index,
                prompt_type=PromptType.ACTION_WITH_INVESTIGATION_CONTEXT,
                content=content,
                schema=schema_section["response_schema"],
                generated_at=datetime.now(),
                metadata={
                    "investigation_context": to_jsonable(investigation_context),
                    "recommended_action": to_jsonable(investigation_context.recommended_action),
                    "template_id": template.template_id,
                },
            )
        except PromptManagerError:
            raise
        except Exception as e:
            self.logger.log_error("Failed to generate action with investigation prompt", e)
            raise InvestigationContextUnavailable(
                f"Failed to generate action with investigation prompt: {e}",
                session_id=request.session_id,
                step_index=request.step_index
            ) from e
