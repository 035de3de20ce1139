"""
AI Prompt Manager - Prompt orchestration for browser-automation agents.

This package builds, caches and validates the prompts sent to an LLM agent
that works through natural-language steps in an INVESTIGATE -> ACT -> REFLECT
loop.
"""

__version__ = "0.1.0"
