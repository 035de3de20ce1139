#!/usr/bin/env python3
"""
AI Prompt Manager - Content Builder

Builds the instruction, validation, schema and examples sections of a prompt,
formats every section as text, and renders the final system message through
the prompt template.
"""

import copy
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from . import templates as text
from .config import ContextConfig, PromptOptions
from .errors import PromptManagerError, TemplateRenderingFailed
from .logger import PromptLogger
from .template_engine import render
from .template_manager import TemplateManager
from .types import PromptContent, PromptTemplate

DECISION_ACTIONS = ["PROCEED", "RETRY", "ABORT", "INVESTIGATE"]
COMMAND_ACTIONS = [
    "CLICK_ELEMENT", "INPUT_TEXT", "OPEN_PAGE", "SAVE_VARIABLE",
    "GET_DOM", "GET_CONTENT", "GET_SUBDOM",
]

RESPONSE_SCHEMA: Dict[str, Any] = {
    "version": "1.0",
    "type": "object",
    "properties": {
        "decision": {
            "type": "object",
            "description": "Decision about next action",
            "properties": {
                "action": {
                    "type": "string",
                    "description": "Action to take",
                    "enum": DECISION_ACTIONS,
                },
                "message": {"type": "string", "description": "Brief explanation of decision"},
                "resultValidation": {
                    "type": "object",
                    "description": "Validation of previous action results",
                    "properties": {
                        "success": {"type": "boolean", "description": "Whether previous action was successful"},
                        "expectedElements": {"type": "array", "description": "List of expected elements"},
                        "actualState": {"type": "string", "description": "Description of actual page state"},
                        "issues": {"type": "array", "description": "Any issues found"},
                    },
                },
            },
            "required": ["action", "message"],
        },
        "reasoning": {
            "type": "object",
            "description": "Detailed reasoning for the decision",
            "properties": {
                "analysis": {"type": "string", "description": "Analysis of current situation"},
                "rationale": {"type": "string", "description": "Reasoning for chosen approach"},
                "expectedOutcome": {"type": "string", "description": "What you expect to achieve"},
                "confidence": {"type": "number", "description": "Confidence level (0-1)"},
                "alternatives": {"type": "string", "description": "Alternative approaches considered"},
            },
            "required": ["analysis", "rationale", "expectedOutcome", "confidence"],
        },
        "commands": {
            "type": "array",
            "description": "Commands to execute",
            "items": {
                "type": "object",
                "properties": {
                    "action": {"type": "string", "enum": COMMAND_ACTIONS},
                    "parameters": {"type": "object", "description": "Command parameters"},
                    "reasoning": {"type": "string", "description": "Why this command is needed"},
                },
                "required": ["action", "parameters"],
            },
        },
    },
    "required": ["decision", "reasoning", "commands"],
    "additionalProperties": False,
    "examples": [
        {
            "decision": {"action": "PROCEED", "message": "Ready to click login button"},
            "reasoning": {
                "analysis": "Login form is visible and fields are filled",
                "rationale": "All prerequisites met for login action",
                "expectedOutcome": "User will be logged in and redirected to dashboard",
                "confidence": 0.95,
            },
            "commands": [
                {
                    "action": "CLICK_ELEMENT",
                    "parameters": {"selector": 'button[type="submit"]'},
                    "reasoning": "Submit the login form",
                }
            ],
        }
    ],
}

VALIDATION_RULES = [
    {"field": "decision.action", "rule": "Must be one of: PROCEED, RETRY, ABORT, INVESTIGATE",
     "description": "Valid action values"},
    {"field": "reasoning.confidence", "rule": "Must be number between 0 and 1",
     "description": "Confidence range validation"},
    {"field": "commands", "rule": "Must be non-empty array when action is PROCEED",
     "description": "Commands required for PROCEED action"},
]

MAIN_INSTRUCTION_BY_DEPTH = {
    "comprehensive": """Provide comprehensive analysis including:
- Detailed examination of current page state
- Multiple approach options with trade-offs
- Risk assessment and mitigation strategies
- Confidence levels for different aspects""",
    "detailed": """Provide detailed analysis including:
- Current page state assessment
- Chosen approach and reasoning
- Expected outcomes and validation criteria""",
    "basic": """Provide basic analysis including:
- Current situation assessment
- Chosen approach and key reasoning""",
}

RECENT_STEPS_SHOWN = 3


@dataclass
class ContentBuildRequest:
    """Everything needed to render one prompt."""
    template: PromptTemplate
    context_section: Dict[str, Any]
    schema_section: Dict[str, Any]
    step_content: str
    include_validation: bool = False
    prompt_options: Optional[PromptOptions] = None
    validation_section: Optional[Dict[str, Any]] = None
    investigation_section: Optional[Dict[str, Any]] = None
    working_memory_section: Optional[Dict[str, Any]] = None
    system_message: Optional[str] = None


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


class ContentBuilder:
    """Builds prompt sections and renders the prompt text."""

    def __init__(
        self,
        config: Optional[ContextConfig] = None,
        template_manager: Optional[TemplateManager] = None,
        logger: Optional[PromptLogger] = None
    ):
        self.config = config or ContextConfig()
        self.template_manager = template_manager
        self.logger = logger or PromptLogger()

    def update_config(self, config: ContextConfig) -> None:
        self.config = config

    # --- Assembly ---

    async def build_prompt_content(self, request: ContentBuildRequest) -> PromptContent:
        """
        Build all sections and render the template into the system message.

        Raises:
            TemplateRenderingFailed: Any section could not be built or formatted
        """
        try:
            options = request.prompt_options or PromptOptions()
            instruction_section = self.build_instruction_section(request.step_content, options)
            examples_section = (
                self.build_examples_section(options) if options.include_examples else None
            )

            variables = {
                "systemMessage": request.system_message or self._system_message(),
                "stepContent": request.step_content,
                "contextSection": self.format_context_section(request.context_section),
                "instructionSection": self.format_instruction_section(
                    instruction_section, examples_section
                ),
                "schemaSection": self.format_schema_section(request.schema_section),
                "validationSection": (
                    self.format_validation_section(request.validation_section)
                    if request.validation_section else ""
                ),
                "investigationSection": (
                    self.format_investigation_section(request.investigation_section)
                    if request.investigation_section else ""
                ),
                "workingMemorySection": (
                    self.format_working_memory_section(request.working_memory_section)
                    if request.working_memory_section else ""
                ),
                "investigationToolsSection": (
                    self.format_investigation_tools_section(request.investigation_section)
                    if request.investigation_section else ""
                ),
            }

            return PromptContent(
                system_message=render(request.template.body, variables),
                context_section=request.context_section,
                instruction_section=instruction_section,
                schema_section=request.schema_section,
                validation_section=request.validation_section,
                investigation_section=request.investigation_section,
                working_memory_section=request.working_memory_section,
                examples_section=examples_section,
            )
        except PromptManagerError:
            raise
        except Exception as e:
            self.logger.log_error("Failed to build prompt content", e)
            raise TemplateRenderingFailed(
                f"Failed to build prompt content: {e}",
                context={"template_id": request.template.template_id}
            ) from e

    def _system_message(self) -> str:
        if self.template_manager is None:
            return text.SYSTEM_MESSAGE
        return self.template_manager.get_template(text.SYSTEM_MESSAGE_ID).body

    # --- Sections ---

    def build_instruction_section(
        self,
        step_content: str,
        options: Optional[PromptOptions] = None
    ) -> Dict[str, Any]:
        options = options or PromptOptions()
        depth = options.reasoning_depth or "detailed"
        main_instruction = (
            f'Complete this step: "{step_content}"\n\n'
            + MAIN_INSTRUCTION_BY_DEPTH.get(depth, MAIN_INSTRUCTION_BY_DEPTH["basic"])
        )

        guidance = [
            "Analyze the current page state carefully",
            "Identify the most reliable way to complete this step",
            "Consider element accessibility and interaction patterns",
        ]
        if options.use_filtered_context:
            guidance.append("Leverage filtered context to understand page structure efficiently")
        if options.include_element_knowledge:
            guidance.append("Use previously discovered element knowledge when available")

        action_guidelines = [
            "Use specific, reliable selectors for element targeting",
            "Include clear reasoning for each command",
            "Validate element accessibility before interaction",
            "Consider timing and dynamic content loading",
        ]
        if options.validation_mode == "strict":
            action_guidelines.append("Apply strict validation criteria for all actions")
            action_guidelines.append("Require explicit confirmation of success before proceeding")

        context_usage = [
            "Review execution history to understand what has been accomplished",
            "Use page state information to understand current context",
            "Consider previously extracted variables and their values",
        ]
        if options.use_filtered_context:
            context_usage.append("Focus on filtered context for relevant information")
            context_usage.append("Use page insights to understand page structure")
        if options.include_working_memory:
            context_usage.append("Leverage working memory for element knowledge and patterns")

        section: Dict[str, Any] = {
            "main_instruction": main_instruction,
            "step_specific_guidance": guidance,
            "decision_framework": [
                "Evaluate if current action is appropriate for the step",
                "Consider alternative approaches if primary approach seems problematic",
                "Assess confidence level and decide whether investigation is needed",
                "Determine if action can proceed or requires retry/abort",
            ],
            "action_guidelines": action_guidelines,
            "context_usage_instructions": context_usage,
        }

        if options.validation_mode:
            section["validation_requirements"] = self._validation_requirements(
                options.validation_mode
            )

        if options.use_filtered_context or options.include_investigation_history:
            investigation_guidance = [
                "Use investigation tools when page understanding is incomplete",
                "Progress through investigation phases systematically",
                "Build element knowledge for future reference",
            ]
            if options.include_investigation_history:
                investigation_guidance.append("Review previous investigation results for insights")
            section["investigation_guidance"] = investigation_guidance

        if options.custom_instructions:
            section["custom_instructions"] = options.custom_instructions

        return section

    @staticmethod
    def _validation_requirements(validation_mode: str) -> List[str]:
        if validation_mode == "strict":
            return [
                "Validate every action result before proceeding",
                "Require explicit confirmation of expected outcomes",
                "Check for error conditions and handle appropriately",
                "Verify element states match expectations",
            ]
        return [
            "Perform basic validation of action results",
            "Check for obvious error conditions",
            "Verify critical elements are accessible",
        ]

    async def build_validation_section(
        self,
        session_id: str,
        completed_step_index: int,
        expected_outcome: Optional[str] = None
    ) -> Dict[str, Any]:
        """Rubric for judging the previous action's result."""
        return {
            "completed_step_index": completed_step_index,
            "last_action_validation": {
                "expected_outcome": expected_outcome or "Action completion as specified",
                "actual_state": "To be determined from current page state",
                "validation_criteria": [
                    {
                        "criterion": "Action Success",
                        "evaluation_method": "Compare expected vs actual page state",
                        "weight": 0.5,
                        "description": "Verify the action achieved its intended result",
                    },
                    {
                        "criterion": "Element Interaction",
                        "evaluation_method": "Check element state changes",
                        "weight": 0.3,
                        "description": "Confirm elements were properly interacted with",
                    },
                    {
                        "criterion": "Page Navigation",
                        "evaluation_method": "Verify URL and page content",
                        "weight": 0.2,
                        "description": "Ensure navigation occurred as expected",
                    },
                ],
                "success_indicators": [
                    "Expected elements are present and accessible",
                    "Page state matches expected outcome",
                    "No error messages or unexpected behaviors",
                ],
                "failure_indicators": [
                    "Elements not found or not interactable",
                    "Error messages displayed",
                    "Unexpected page state or navigation",
                ],
            },
            "result_analysis": {
                "analysis_instructions": (
                    "Compare the current page state with the expected outcome of the previous action"
                ),
                "comparison_points": [
                    "Element presence and state",
                    "Page content changes",
                    "URL changes",
                    "Form field values",
                    "Error messages or notifications",
                ],
                "dom_analysis_guidance": "Focus on elements relevant to the completed action",
                "error_detection_guidance": (
                    "Look for error messages, failed validations, or unexpected behaviors"
                ),
            },
            "decision_framework": {
                "decision_options": [
                    {
                        "action": "PROCEED",
                        "description": "Continue to next step",
                        "conditions": ["Action was successful", "Page state is as expected"],
                        "consequences": ["Move to next automation step", "Build on successful action"],
                    },
                    {
                        "action": "RETRY",
                        "description": "Retry the same action",
                        "conditions": ["Action failed but is retryable", "Temporary issue detected"],
                        "consequences": ["Attempt same action again", "May need different approach"],
                    },
                    {
                        "action": "INVESTIGATE",
                        "description": "Investigate page to understand current state",
                        "conditions": ["Uncertain about page state", "Need more information"],
                        "consequences": ["Enter investigation phase", "Gather more context before deciding"],
                    },
                    {
                        "action": "ABORT",
                        "description": "Stop automation",
                        "conditions": ["Unrecoverable error", "Unexpected page state"],
                        "consequences": ["End automation session", "Report failure reason"],
                    },
                ],
                "decision_criteria": [
                    "Success of previous action",
                    "Current page state",
                    "Availability of next steps",
                    "Error conditions",
                ],
                "proceed_conditions": [
                    "Previous action completed successfully",
                    "Page state matches expectations",
                    "Next step is clearly actionable",
                ],
                "retry_conditions": [
                    "Action failed due to temporary issue",
                    "Element interaction was incomplete",
                    "Network or timing issue suspected",
                ],
                "abort_conditions": [
                    "Unrecoverable error occurred",
                    "Page structure is incompatible",
                    "Security or access restrictions",
                ],
            },
        }

    def build_schema_section(
        self,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Schema section around `response_schema`, or a fresh copy of the canonical schema."""
        schema = copy.deepcopy(response_schema if response_schema is not None else RESPONSE_SCHEMA)
        examples = schema.get("examples") or RESPONSE_SCHEMA["examples"]
        return {
            "response_format": "JSON object with decision, reasoning, and commands",
            "required_fields": [
                {"name": "decision", "type": "object", "description": "Decision about next action", "required": True},
                {"name": "reasoning", "type": "object", "description": "Detailed reasoning", "required": True},
                {"name": "commands", "type": "array", "description": "Commands to execute", "required": True},
            ],
            "optional_fields": [
                {"name": "metadata", "type": "object", "description": "Additional metadata", "required": False},
            ],
            "examples": [
                {
                    "scenario": "Successful form submission",
                    "example_response": copy.deepcopy(examples[0]),
                    "explanation": "Example of proceeding with form submission after validation",
                }
            ],
            "validation_rules": copy.deepcopy(VALIDATION_RULES),
            "response_schema": schema,
        }

    def build_examples_section(self, options: Optional[PromptOptions] = None) -> Dict[str, Any]:
        return {
            "scenario_examples": [
                {
                    "scenario": "Login form interaction",
                    "context": "User needs to log into a website",
                    "expected_approach": "Fill username and password fields, then click login button",
                    "reasoning": "Standard login flow with form validation",
                },
                {
                    "scenario": "Navigation menu interaction",
                    "context": "User needs to navigate to a specific page section",
                    "expected_approach": "Locate navigation element and click appropriate menu item",
                    "reasoning": "Direct navigation is most efficient when menu is visible",
                },
            ],
            "response_examples": [
                {
                    "situation": "Ready to submit form",
                    "example_response": {
                        "decision": {"action": "PROCEED", "message": "Form is complete and ready for submission"},
                        "reasoning": {
                            "analysis": "All required fields are filled with valid data",
                            "rationale": "Form validation passed and submit button is clickable",
                            "expectedOutcome": "Form will be submitted successfully",
                            "confidence": 0.9,
                        },
                        "commands": [
                            {"action": "CLICK_ELEMENT", "parameters": {"selector": 'button[type="submit"]'}}
                        ],
                    },
                    "explanation": "Example of proceeding with confident form submission",
                }
            ],
            "best_practices": [
                "Always verify elements exist before interacting",
                "Use specific selectors for reliable element targeting",
                "Include reasoning for each command",
                "Validate results before proceeding to next step",
            ],
            "common_mistakes": [
                "Using overly generic selectors that might match multiple elements",
                "Not waiting for dynamic content to load",
                "Proceeding without validating previous action results",
                "Using hardcoded values instead of extracted variables",
            ],
        }

    # --- Formatting ---

    def _context_template(self) -> str:
        if self.template_manager is None:
            return text.CONTEXT_SUMMARY
        return self.template_manager.get_template(text.CONTEXT_ID).body

    def format_context_section(self, context_section: Dict[str, Any]) -> str:
        current = context_section["current_step"]
        history = context_section.get("execution_history") or {}
        page_states = context_section.get("page_states") or {}

        step_type = f"Step Type: {current['step_type']}"
        if current.get("investigation_phase"):
            step_type += f" ({current['investigation_phase']})"

        previous = history.get("previous_steps") or []
        if previous:
            history_lines = [
                f"- Step {s['step_index']}: {s['step_name']} ({s['status']})"
                for s in previous[-RECENT_STEPS_SHOWN:]
            ]
            history_lines.append(
                f"Successful: {history.get('success_count', 0)}, "
                f"Failed: {history.get('failure_count', 0)}"
            )
            execution_history = "\n".join(history_lines)
        else:
            execution_history = "No previous steps recorded."

        page_lines = []
        if page_states.get("current_dom"):
            page_lines.append(f"Current page DOM:\n```html\n{page_states['current_dom']}\n```")
        else:
            page_lines.append("Current page DOM not available.")
        comparison = page_states.get("dom_comparison")
        if comparison:
            page_lines.append(f"Change since previous step: {comparison['summary']}")
        elements = page_states.get("relevant_elements")
        if elements:
            element_lines = [
                f"- {e.get('selector', '?')}" + (f" ({e['description']})" if e.get("description") else "")
                for e in elements
            ]
            page_lines.append("Known elements:\n" + "\n".join(element_lines))

        total = current.get("total_steps") or "?"
        rendered = render(self._context_template(), {
            "stepIndex": current["step_index"] + 1,
            "totalSteps": total,
            "stepType": step_type,
            "executionHistory": execution_history,
            "pageState": "\n".join(page_lines),
            "filteredContext": self._format_filtered_context(context_section.get("filtered_context")),
            "investigationHistory": self._format_investigation_history(
                context_section.get("investigation_history")
            ),
        })
        return rendered.rstrip()

    @staticmethod
    def _format_filtered_context(filtered: Optional[Dict[str, Any]]) -> str:
        if not filtered:
            return ""
        lines = [f"### Filtered Context ({filtered.get('filtering_level', 'standard')})"]
        for entry in filtered.get("execution_summary", []):
            lines.append(
                f"- Step {entry.get('step_index')}: {entry.get('step_name')} -> {entry.get('outcome')}"
            )
        for element in filtered.get("element_knowledge", []):
            lines.append(
                f"- Known element `{element.get('selector')}` "
                f"(reliability {element.get('reliability', 0):.2f})"
            )
        if len(lines) == 1:
            lines.append("No filtered context available.")
        return "\n".join(lines)

    @staticmethod
    def _format_investigation_history(history: Optional[Dict[str, Any]]) -> str:
        if not history:
            return ""
        lines = [
            "### Investigation History",
            f"Total investigations performed: {history.get('total_investigations_performed', 0)}",
        ]
        for label, key in (("Current step", "current_step_investigations"),
                           ("Previous step", "previous_step_investigations")):
            for entry in history.get(key, []):
                findings = "; ".join(entry.get("key_findings", [])) or "no findings"
                lines.append(
                    f"- {label}: {entry.get('investigation_type')} "
                    f"({entry.get('outcome')}): {findings}"
                )
        return "\n".join(lines)

    def format_instruction_section(
        self,
        instruction_section: Dict[str, Any],
        examples_section: Optional[Dict[str, Any]] = None
    ) -> str:
        parts = [instruction_section["main_instruction"]]

        titled = [
            ("Guidelines", "step_specific_guidance"),
            ("Decision framework", "decision_framework"),
            ("Action guidelines", "action_guidelines"),
            ("Using context", "context_usage_instructions"),
            ("Validation requirements", "validation_requirements"),
            ("Investigation guidance", "investigation_guidance"),
        ]
        for title, key in titled:
            items = instruction_section.get(key)
            if items:
                parts.append(f"{title}:\n{_bullets(items)}")

        if instruction_section.get("custom_instructions"):
            parts.append(f"Additional instructions:\n{instruction_section['custom_instructions']}")

        if examples_section:
            parts.append(f"Best practices:\n{_bullets(examples_section['best_practices'])}")
            parts.append(f"Common mistakes:\n{_bullets(examples_section['common_mistakes'])}")

        return "\n\n".join(parts)

    @staticmethod
    def format_schema_section(schema_section: Dict[str, Any]) -> str:
        schema_json = json.dumps(schema_section["response_schema"], indent=2)
        rules = [
            f"{r['field']}: {r['rule']}" for r in schema_section.get("validation_rules", [])
        ]
        formatted = (
            "Respond with a JSON object following this structure:\n\n"
            f"```json\n{schema_json}\n```"
        )
        if rules:
            formatted += f"\n\nRules:\n{_bullets(rules)}"
        return formatted

    @staticmethod
    def format_validation_section(validation_section: Dict[str, Any]) -> str:
        last = validation_section["last_action_validation"]
        analysis = validation_section["result_analysis"]
        framework = validation_section["decision_framework"]

        lines = [
            f"Expected outcome: {last['expected_outcome']}",
            "",
            analysis["analysis_instructions"],
            "",
            "Validation criteria:",
        ]
        lines.extend(
            f"- {c['criterion']} (weight {c['weight']}): {c['description']}"
            for c in last["validation_criteria"]
        )
        lines.append("")
        lines.append("Decision options:")
        lines.extend(
            f"- {o['action']}: {o['description']} (when: {', '.join(o['conditions']).lower()})"
            for o in framework["decision_options"]
        )
        return "\n".join(lines)

    @staticmethod
    def format_investigation_section(investigation_section: Dict[str, Any]) -> str:
        strategy = investigation_section.get("investigation_strategy", {})
        guidance = investigation_section.get("phase_specific_guidance", {})
        priority = strategy.get("investigation_priority", {})

        lines = [f"Investigation Phase: {investigation_section['investigation_phase']}"]
        if strategy.get("current_phase_objective"):
            lines.append(f"Objective: {strategy['current_phase_objective']}")
        if priority:
            lines.append(f"Primary tool: {priority.get('primary')}")
            if priority.get("fallbacks"):
                lines.append(f"Fallback tools: {', '.join(priority['fallbacks'])}")
            if priority.get("reasoning"):
                lines.append(f"Reasoning: {priority['reasoning']}")
        if strategy.get("suggested_approach"):
            lines.append(f"\nSuggested approach:\n{_bullets(strategy['suggested_approach'])}")
        if strategy.get("success_criteria"):
            lines.append(f"\nSuccess criteria:\n{_bullets(strategy['success_criteria'])}")
        if guidance.get("investigation_questions"):
            lines.append(f"\nQuestions to answer:\n{_bullets(guidance['investigation_questions'])}")
        if guidance.get("common_pitfalls"):
            lines.append(f"\nAvoid:\n{_bullets(guidance['common_pitfalls'])}")
        return "\n".join(lines)

    @staticmethod
    def format_working_memory_section(memory: Dict[str, Any]) -> str:
        confidence = memory.get("confidence_level", memory.get("overall_confidence")) or 0
        lines = [f"Memory confidence: {confidence:.0%}"]

        elements = memory.get("known_elements") or []
        lines.append(f"Known elements: {len(elements)}")
        for element in elements:
            lines.append(
                f"- `{element.get('selector')}` {element.get('element_type') or 'element'}"
                f" for {element.get('purpose') or 'unknown purpose'}"
                f" (reliability {element.get('reliability', 0):.2f})"
            )

        variables = memory.get("extracted_variables") or []
        if variables:
            lines.append("Extracted variables:")
            lines.extend(f"- {v.get('name')} = {v.get('value')}" for v in variables)

        successes = memory.get("successful_patterns") or []
        if successes:
            lines.append("Patterns that worked:")
            lines.extend(f"- {p.get('pattern')}" for p in successes)

        failures = memory.get("failure_patterns") or []
        if failures:
            lines.append("Patterns that failed:")
            lines.extend(f"- {p.get('pattern')}" for p in failures)

        return "\n".join(lines)

    @staticmethod
    def format_investigation_tools_section(investigation_section: Dict[str, Any]) -> str:
        lines = []
        for info in investigation_section.get("available_tools", []):
            lines.append(f"- {info['tool']}: {info['description']}")
            lines.append(f"  Use for: {info['use_case']}")
            lines.append(f"  Returns: {info['expected_output']}")
            params = ", ".join(
                f"{p['name']}{'' if p['required'] else '?'}: {p['type']}"
                for p in info.get("parameters", [])
            )
            if params:
                lines.append(f"  Parameters: {params}")
        return "\n".join(lines) or "No investigation tools available."
