"""
typelift — synthesis plane

File: src/typelift/synthesis_plane/__init__.py
Last updated: 2026-10-16

Purpose
- Everything that talks to the transformation oracle: instruction composition, diagnostic
  context formatting and the oracle adapters.
"""

from typelift.synthesis_plane.error_context import format_errors_with_context
from typelift.synthesis_plane.prompt_templates import InstructionBuilder, PromptTemplateEngine

__all__ = ["InstructionBuilder", "PromptTemplateEngine", "format_errors_with_context"]
