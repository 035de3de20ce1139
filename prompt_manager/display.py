#!/usr/bin/env python3
"""
AI Prompt Manager - Terminal Display

Rich terminal output for generated prompts, validation results, quality
scores and cache statistics.

Falls back to plain text when NO_COLOR is set or stdout is not a terminal.
"""

import os
import sys
from typing import Any, Dict, Optional

from rich.box import HEAVY, ROUNDED
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .types import GeneratedPrompt, QualityAssessment, ValidationResult


def _score_style(score: float) -> str:
    if score >= 0.8:
        return "green"
    if score >= 0.6:
        return "yellow"
    return "red"


class PromptDisplay:
    """Terminal display for the prompt manager CLI."""

    def __init__(self, use_rich: Optional[bool] = None) -> None:
        if use_rich is None:
            use_rich = not os.environ.get("NO_COLOR") and sys.stdout.isatty()
        self._use_rich = use_rich
        self._console = Console() if self._use_rich else None

    def show_prompt(self, prompt: GeneratedPrompt) -> None:
        title = f"{prompt.prompt_type.value} | session {prompt.session_id} | step {prompt.step_index}"
        if self._use_rich:
            self._console.print()
            self._console.print(Panel(
                Text(prompt.content.system_message),
                title=f"[bold]{title}[/bold]",
                subtitle=f"[dim]{prompt.prompt_id}[/dim]",
                box=HEAVY,
                style="cyan",
            ))
        else:
            print("=" * 60)
            print(title)
            print(prompt.prompt_id)
            print("=" * 60)
            print(prompt.content.system_message)

    def show_validation(self, result: ValidationResult) -> None:
        status = "VALID" if result.is_valid else "INVALID"
        if self._use_rich:
            table = Table(title=f"Validation: {status}", box=ROUNDED, show_lines=True)
            table.add_column("Kind", style="bold")
            table.add_column("Field")
            table.add_column("Message")
            for error in result.errors:
                table.add_row("[red]error[/red]", escape(error.field), escape(f"{error.message} ({error.code})"))
            for warning in result.warnings:
                table.add_row("[yellow]warning[/yellow]", "", escape(warning))
            for suggestion in result.suggestions:
                table.add_row("[dim]suggestion[/dim]", "", escape(suggestion))
            self._console.print()
            self._console.print(table)
        else:
            print(f"\nValidation: {status} (quality {result.quality_score:.2f})")
            for error in result.errors:
                print(f"  error: {error.field}: {error.message} ({error.code})")
            for warning in result.warnings:
                print(f"  warning: {warning}")
            for suggestion in result.suggestions:
                print(f"  suggestion: {suggestion}")

    def show_quality(self, assessment: QualityAssessment) -> None:
        scores = [
            ("Clarity", assessment.clarity_score),
            ("Completeness", assessment.completeness_score),
            ("Context relevance", assessment.context_relevance_score),
            ("Schema alignment", assessment.schema_alignment_score),
            ("Overall", assessment.overall_score),
        ]
        if self._use_rich:
            table = Table(title="Prompt Quality", box=ROUNDED)
            table.add_column("Metric", style="bold")
            table.add_column("Score", justify="right")
            for name, score in scores:
                style = _score_style(score)
                table.add_row(name, f"[{style}]{score:.2f}[/{style}]")
            self._console.print()
            self._console.print(table)
            for improvement in assessment.improvements:
                self._console.print(f"[yellow]⚠ {escape(improvement)}[/yellow]")
        else:
            print("\nPrompt Quality:")
            for name, score in scores:
                print(f"  {name}: {score:.2f}")
            for improvement in assessment.improvements:
                print(f"  improve: {improvement}")

    def show_cache_stats(self, stats: Dict[str, Any]) -> None:
        rows = [
            ("Entries", str(stats.get("total_entries", 0))),
            ("Hits", str(stats.get("hits", 0))),
            ("Misses", str(stats.get("misses", 0))),
            ("Hit rate", f"{stats.get('hit_rate', 0.0) * 100:.1f}%"),
            ("Memory (chars)", f"{stats.get('memory_usage', 0):,}"),
            ("Avg generation", f"{stats.get('average_generation_time_ms', 0.0):.1f}ms"),
        ]
        self._key_value_table("Cache", rows)

    def show_config_summary(self, summary: Dict[str, Any]) -> None:
        rows = []
        for key, value in summary.items():
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            rows.append((key.replace("_", " "), str(value)))
        self._key_value_table("Configuration", rows)

    def message(self, text: str) -> None:
        if self._use_rich:
            self._console.print(f"[dim]⚙ {escape(text)}[/dim]")
        else:
            print(f"[prompt-manager] {text}")

    def error(self, text: str) -> None:
        if self._use_rich:
            self._console.print(f"[red]✗ {escape(text)}[/red]")
        else:
            print(f"[prompt-manager] Error: {text}", file=sys.stderr)

    def _key_value_table(self, title: str, rows) -> None:
        if self._use_rich:
            table = Table(title=title, box=ROUNDED)
            table.add_column("Setting", style="bold")
            table.add_column("Value", justify="right")
            for name, value in rows:
                table.add_row(escape(name), escape(value))
            self._console.print()
            self._console.print(table)
        else:
            print(f"\n{title}:")
            for name, value in rows:
                print(f"  {name}: {value}")
