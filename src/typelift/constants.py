"""Stable constants shared across typelift planes."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
PROJECT_STATE_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the invocation directory unless overridden by config).
WORKDIR: Final[PurePosixPath] = PurePosixPath("workdir")
LOG_DIR: Final[PurePosixPath] = PurePosixPath("logs")

# Repair loop tuning.
ITERATIONS_PER_100_ERRORS: Final[int] = 5
SESSION_RESET_INTERVAL: Final[int] = 5
MAX_ERRORS_PER_BATCH: Final[int] = 100

# Worker bounds per phase.
BASELINE_WORKERS: Final[int] = 10
FULL_COVERAGE_WORKERS: Final[int] = 1

# Suppression contract.
SUPPRESSION_BUG_TAG: Final[str] = "BUG:"
FILE_SUPPRESSION_DIRECTIVE: Final[str] = "# mypy: ignore-errors"
FILE_LINT_SUPPRESSION_DIRECTIVE: Final[str] = "# ruff: noqa"

# Oracle tool names that modify files.
EDIT_TOOL_NAMES: Final[frozenset[str]] = frozenset({"Edit", "MultiEdit"})
CONTINUE_INSTRUCTION: Final[str] = "Continue"

__all__ = [
    "BASELINE_WORKERS",
    "CONFIG_SCHEMA_VERSION",
    "CONTINUE_INSTRUCTION",
    "EDIT_TOOL_NAMES",
    "FILE_LINT_SUPPRESSION_DIRECTIVE",
    "FILE_SUPPRESSION_DIRECTIVE",
    "FULL_COVERAGE_WORKERS",
    "ITERATIONS_PER_100_ERRORS",
    "LOG_DIR",
    "MAX_ERRORS_PER_BATCH",
    "PROJECT_STATE_SCHEMA_VERSION",
    "SESSION_RESET_INTERVAL",
    "SUPPRESSION_BUG_TAG",
    "WORKDIR",
]
