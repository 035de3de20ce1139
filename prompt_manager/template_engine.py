#!/usr/bin/env python3
"""
AI Prompt Manager - Template Engine

Renders prompt templates with a small mustache-like syntax:

    {{name}}                     value of `name`, left verbatim when absent
    {{#if name}}...{{/if}}       block kept only when `name` is truthy
    {{#each name}}...{{/each}}   block repeated per element of `name`

Inside an each-block `{{this}}` is the current element and, for dict
elements, bare names resolve to the element's keys first. Blocks do not nest.
Unresolved placeholders stay in the output so missing data is visible in the
rendered prompt.
"""

import json
import re
from typing import Any, Dict, List, Optional

from .errors import TemplateInvalidError
from .types import PromptTemplate, VARIABLE_TYPES

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")
CONDITIONAL_PATTERN = re.compile(r"\{\{#if\s+(\w+)\}\}(.*?)\{\{/if\}\}", re.DOTALL)
LOOP_PATTERN = re.compile(r"\{\{#each\s+(\w+)\}\}(.*?)\{\{/each\}\}", re.DOTALL)
_CONDITIONAL_OPEN = re.compile(r"\{\{#if\s+(\w+)\}\}")

LOOP_ITEM = "this"


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def _substitute(text: str, scope: Dict[str, Any]) -> str:
    def replace(match: "re.Match") -> str:
        name = match.group(1)
        if name not in scope:
            return match.group(0)
        return _stringify(scope[name])

    return VARIABLE_PATTERN.sub(replace, text)


def _apply_conditionals(text: str, scope: Dict[str, Any]) -> str:
    return CONDITIONAL_PATTERN.sub(
        lambda m: m.group(2) if scope.get(m.group(1)) else "",
        text
    )


def _render_loop(match: "re.Match", variables: Dict[str, Any]) -> str:
    name, block = match.group(1), match.group(2)
    if name not in variables:
        return match.group(0)

    items = variables[name]
    if not isinstance(items, (list, tuple)):
        return ""

    parts = []
    for item in items:
        scope = dict(variables)
        if isinstance(item, dict):
            scope.update(item)
        scope[LOOP_ITEM] = item
        parts.append(_substitute(_apply_conditionals(block, scope), scope))
    return "".join(parts)


def render(body: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """Render a template body. Never raises; returns the body as-is on failure."""
    try:
        scope = variables or {}
        text = LOOP_PATTERN.sub(lambda m: _render_loop(m, scope), body)
        text = _apply_conditionals(text, scope)
        return _substitute(text, scope)
    except Exception:
        return body


def extract_placeholders(body: str) -> List[str]:
    """
    List the names a template body depends on, in first-use order.

    Loop and conditional names count; names used only inside an each-block
    bind to loop elements and are excluded, as is `this`.
    """
    names: List[str] = []

    def add(name: str) -> None:
        if name != LOOP_ITEM and name not in names:
            names.append(name)

    for match in LOOP_PATTERN.finditer(body):
        add(match.group(1))

    outer = LOOP_PATTERN.sub("", body)
    for match in _CONDITIONAL_OPEN.finditer(outer):
        add(match.group(1))
    for match in VARIABLE_PATTERN.finditer(outer):
        add(match.group(1))

    return names


def validate_template(template: PromptTemplate) -> None:
    """Raise TemplateInvalidError unless the template is well-formed."""
    if not template.template_id or not template.name or not template.body:
        raise TemplateInvalidError(
            "Template missing required fields: template_id, name, or body"
        )

    for variable in template.variables:
        if not variable.name or not variable.type:
            raise TemplateInvalidError(
                "Template variable missing required fields: name or type"
            )
        if variable.type not in VARIABLE_TYPES:
            raise TemplateInvalidError(
                f"Invalid template variable type: {variable.type}. "
                f"Must be one of: {', '.join(VARIABLE_TYPES)}"
            )

    declared = {v.name for v in template.variables}
    for name in extract_placeholders(template.body):
        if name not in declared:
            raise TemplateInvalidError(
                f"Template variable '{name}' used in template but not defined in variables"
            )
