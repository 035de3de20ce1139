#!/usr/bin/env python3
"""
AI Prompt Manager - Template Text

Default template bodies used by the template manager, plus the user-message
template of the legacy step-prompt interface. Placeholders use the syntax
understood by template_engine.render().
"""

# Template identifiers
SYSTEM_MESSAGE_ID = "system_message"
INITIAL_ACTION_ID = "initial_action"
ACTION_WITH_VALIDATION_ID = "action_with_validation"
REFLECTION_ACTION_ID = "reflection_action"
INVESTIGATION_INITIAL_ID = "investigation_initial"
INVESTIGATION_FOCUSED_ID = "investigation_focused"
INVESTIGATION_SELECTOR_ID = "investigation_selector"
ACTION_WITH_INVESTIGATION_ID = "action_with_investigation"
SCHEMA_ID = "schema"
CONTEXT_ID = "context"


SYSTEM_MESSAGE = """You are an intelligent web automation agent capable of understanding web pages and performing actions to complete user-specified tasks.

Your capabilities include:
- Analyzing page content and structure
- Clicking elements, entering text, navigating pages
- Extracting and saving information
- Making intelligent decisions based on page state
- Conducting investigations to understand complex pages

You operate in an ACT-REFLECT cycle where you:
1. Analyze the current situation and context
2. Plan and execute appropriate actions
3. Reflect on results and decide next steps

Always be thorough, accurate, and explain your reasoning clearly."""


INITIAL_ACTION = """{{systemMessage}}

## Current Task
{{stepContent}}

## Context
{{contextSection}}
{{#if workingMemorySection}}
## Working Memory
{{workingMemorySection}}
{{/if}}
## Instructions
Analyze the current page and plan your approach to complete this step. Consider:
- What elements need to be interacted with
- What information needs to be extracted
- How to verify successful completion

{{instructionSection}}

## Response Format
{{schemaSection}}

Provide your reasoning and the specific commands to execute."""


ACTION_WITH_VALIDATION = """{{systemMessage}}
{{#if validationSection}}
## Previous Action Validation
{{validationSection}}
{{/if}}
## Current Task
{{stepContent}}

## Context
{{contextSection}}
{{#if workingMemorySection}}
## Working Memory
{{workingMemorySection}}
{{/if}}
## Instructions
Continue the workflow from the current page state. Consider:
- What the previous steps accomplished
- Whether the page is ready for this step
- How to verify successful completion

{{instructionSection}}

## Response Format
{{schemaSection}}

Provide your reasoning and the specific commands to execute."""


REFLECTION_ACTION = """{{systemMessage}}

## Previous Step Analysis
{{validationSection}}

## Current Task
{{stepContent}}

## Context
{{contextSection}}
{{#if workingMemorySection}}
## Working Memory
{{workingMemorySection}}
{{/if}}
## Instructions
Based on the previous step results and current context:
1. Analyze what was accomplished and what still needs to be done
2. Determine if the previous action was successful
3. Plan the next appropriate action

{{instructionSection}}

## Response Format
{{schemaSection}}

Provide your analysis, decision, and the specific commands to execute."""


INVESTIGATION_INITIAL = """{{systemMessage}}

## Investigation Phase: Initial Assessment
{{investigationSection}}

## Current Task
{{stepContent}}

## Context
{{contextSection}}

## Available Investigation Tools
{{investigationToolsSection}}

## Instructions
Conduct an initial assessment of the current page to understand its structure and identify relevant elements for completing the task.

Your objectives:
- Get high-level understanding of page layout
- Identify main sections and key elements
- Determine investigation strategy for detailed exploration

{{instructionSection}}

## Response Format
{{schemaSection}}

Begin with screenshot analysis to get visual understanding of the page."""


INVESTIGATION_FOCUSED = """{{systemMessage}}

## Investigation Phase: Focused Exploration
{{investigationSection}}

## Current Task
{{stepContent}}

## Context
{{contextSection}}

## Working Memory
{{workingMemorySection}}

## Available Investigation Tools
{{investigationToolsSection}}

## Instructions
Based on your initial assessment, conduct focused exploration of relevant page sections to build detailed understanding.

Your objectives:
- Verify element presence and accessibility
- Extract detailed information about target areas
- Build comprehensive understanding while managing context limits

{{instructionSection}}

## Response Format
{{schemaSection}}

Focus on the most relevant sections identified in your initial assessment."""


INVESTIGATION_SELECTOR = """{{systemMessage}}

## Investigation Phase: Selector Determination
{{investigationSection}}

## Current Task
{{stepContent}}

## Context
{{contextSection}}

## Working Memory
{{workingMemorySection}}

## Available Investigation Tools
{{investigationToolsSection}}

## Instructions
Use everything discovered so far to settle on the selectors and interaction approach for this step.

Your objectives:
- Choose the most reliable and specific selectors
- Confirm selector uniqueness and stability
- Prepare fallback options in case the primary selector fails

{{instructionSection}}

## Response Format
{{schemaSection}}

Finish with a concrete action plan that can be executed immediately."""


ACTION_WITH_INVESTIGATION = """{{systemMessage}}

## Current Task
{{stepContent}}

## Context
{{contextSection}}

## Working Memory
{{workingMemorySection}}

## Instructions
Page investigation for this step is complete. Use the findings and the working memory to act with confidence:
- Prefer selectors validated during investigation
- Follow the recommended action unless the page state contradicts it
- Explain any deviation from the investigation results

{{instructionSection}}

## Response Format
{{schemaSection}}

Provide your reasoning and the specific commands to execute."""


SCHEMA_INSTRUCTIONS = """Respond with a JSON object following this exact structure:

```json
{
  "decision": {
    "action": "PROCEED|RETRY|ABORT|INVESTIGATE",
    "message": "Brief explanation of decision",
    "resultValidation": {
      "success": boolean,
      "expectedElements": ["list of expected elements"],
      "actualState": "description of actual page state",
      "issues": ["any issues found"]
    }
  },
  "reasoning": {
    "analysis": "Detailed analysis of current situation",
    "rationale": "Reasoning for chosen approach",
    "expectedOutcome": "What you expect to achieve",
    "confidence": 0.95,
    "alternatives": "Alternative approaches considered"
  },
  "commands": [
    {
      "action": "CLICK_ELEMENT|INPUT_TEXT|OPEN_PAGE|SAVE_VARIABLE|GET_DOM|GET_CONTENT|GET_SUBDOM",
      "parameters": {
        "selector": "CSS selector (when applicable)",
        "text": "Text to input (for INPUT_TEXT)",
        "url": "URL to navigate (for OPEN_PAGE)",
        "variableName": "Variable name (for SAVE_VARIABLE)",
        "attribute": "Attribute to extract (for GET_CONTENT)",
        "maxDomSize": 50000
      },
      "reasoning": "Why this command is needed"
    }
  ]
}
```

{{additionalSchemaInstructions}}"""


CONTEXT_SUMMARY = """### Current Step: {{stepIndex}} of {{totalSteps}}
{{stepType}}

### Execution History
{{executionHistory}}

### Page State
{{pageState}}

{{filteredContext}}

{{investigationHistory}}"""


# Legacy step-prompt interface: user message paired with the engine's system message
LEGACY_USER_TEMPLATE = """CURRENT CONTEXT:
- Step {{stepNumber}} of {{totalSteps}}: "{{stepName}}"
CURRENT_PAGE_STATE:
{{currentPageState}}

EXECUTION HISTORY:
{{contextualHistory}}

CURRENT STEP OBJECTIVE: {{stepName}}

Execute this step following the INVESTIGATE -> ACT -> REFLECT process defined in your instructions."""

LEGACY_PROMPT_SEPARATOR = "\n\n---\n\n"
