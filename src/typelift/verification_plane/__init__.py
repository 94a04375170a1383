"""
typelift — verification plane

File: src/typelift/verification_plane/__init__.py
Last updated: 2026-10-16

Purpose
- Decide whether a scope is done (checker diagnostics) and whether an edit is acceptable
  (behavior gate over canonical lowered forms).
"""

from typelift.verification_plane.behavior_gate import (
    BehaviorGate,
    BehaviorGateError,
    EditTarget,
    SnapshotMissingError,
    SnapshotTable,
    UnsupportedToolInputError,
    decode_edit_target,
)
from typelift.verification_plane.checkers import (
    CheckerExecutionError,
    DiagnosticChecker,
    LintChecker,
    TypecheckChecker,
)
from typelift.verification_plane.diagnostics import (
    DiagnosticAggregator,
    format_errors_per_file,
    group_errors_by_file,
)
from typelift.verification_plane.lowering import LoweringError, lower_file, lower_source

__all__ = [
    "BehaviorGate",
    "BehaviorGateError",
    "CheckerExecutionError",
    "DiagnosticAggregator",
    "DiagnosticChecker",
    "EditTarget",
    "LintChecker",
    "LoweringError",
    "SnapshotMissingError",
    "SnapshotTable",
    "TypecheckChecker",
    "UnsupportedToolInputError",
    "decode_edit_target",
    "format_errors_per_file",
    "group_errors_by_file",
    "lower_file",
    "lower_source",
]
