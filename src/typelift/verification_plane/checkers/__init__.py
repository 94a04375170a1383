"""
typelift — checker package

File: src/typelift/verification_plane/checkers/__init__.py
Last updated: 2026-10-16

Purpose
- Diagnostic sources: each checker turns a tool's machine-readable report into Diagnostics.
"""

from typelift.verification_plane.checkers.base import (
    CheckerExecutionError,
    CommandChecker,
    CommandExecutor,
    CommandResult,
    CommandSpec,
    DiagnosticChecker,
    LocalSubprocessExecutor,
)
from typelift.verification_plane.checkers.lint_checker import LintChecker
from typelift.verification_plane.checkers.typecheck_checker import TypecheckChecker

__all__ = [
    "CheckerExecutionError",
    "CommandChecker",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "DiagnosticChecker",
    "LintChecker",
    "LocalSubprocessExecutor",
    "TypecheckChecker",
]
