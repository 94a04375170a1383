"""
typelift — diagnostic aggregator

File: src/typelift/verification_plane/diagnostics.py
Last updated: 2026-10-16

Purpose
- Single entry point for "what is wrong with this project (or file) right now".

What should be included in this file
- DiagnosticAggregator combining the type checker and, when active, the linter.
- Per-file grouping and the human-readable errors-per-file table.

Functional requirements
- Type checker always runs; the linter runs only for projects with linting enabled that are in
  the full-coverage phase.
- Results are type-checker first, then linter, never deduplicated.
- An empty result is the success condition for a scope.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

import structlog

from typelift.domain.models import DiagnosticSource

if TYPE_CHECKING:
    from typelift.domain.models import Diagnostic, Project
    from typelift.verification_plane.checkers.base import DiagnosticChecker

logger = structlog.get_logger(__name__)


class DiagnosticAggregator:
    """Combines checker outputs into one ordered diagnostic list."""

    def __init__(
        self,
        *,
        type_checker: DiagnosticChecker,
        linter: DiagnosticChecker | None = None,
    ) -> None:
        self._type_checker = type_checker
        self._linter = linter

    async def get_errors(
        self, project: Project, file_scope: str | None = None
    ) -> tuple[Diagnostic, ...]:
        diagnostics = await self._type_checker.query(project, file_scope)
        if self._linter is not None and project.lint_active:
            diagnostics = diagnostics + await self._linter.query(project, file_scope)
        logger.debug(
            "diagnostics_collected",
            scope=file_scope or "project",
            count=len(diagnostics),
        )
        return diagnostics

    async def get_errors_per_file(self, project: Project) -> dict[str, tuple[Diagnostic, ...]]:
        return group_errors_by_file(await self.get_errors(project))


def group_errors_by_file(
    diagnostics: tuple[Diagnostic, ...] | list[Diagnostic],
) -> dict[str, tuple[Diagnostic, ...]]:
    """Group diagnostics by path, preserving first-seen file order."""

    grouped: dict[str, list[Diagnostic]] = {}
    for diagnostic in diagnostics:
        grouped.setdefault(diagnostic.path, []).append(diagnostic)
    return {path: tuple(items) for path, items in grouped.items()}


def format_errors_per_file(
    errors_per_file: Mapping[str, tuple[Diagnostic, ...]],
    *,
    project: Project | None = None,
) -> str:
    """Render the ``Found N errors in M files`` header and the per-file count table."""

    type_errors = 0
    lint_errors = 0
    for diagnostics in errors_per_file.values():
        for diagnostic in diagnostics:
            if diagnostic.source is DiagnosticSource.RUFF:
                lint_errors += 1
            else:
                type_errors += 1

    header = f"Found {type_errors + lint_errors} errors in {len(errors_per_file)} files"
    if lint_errors > 0:
        header += f" ({type_errors} mypy, {lint_errors} ruff)"
    lines = [f"{header}.\n\nErrors  Files\n"]
    for path, diagnostics in errors_per_file.items():
        label = project.relative(path) if project is not None else path
        lines.append(f"{len(diagnostics):>6}  {label}\n")
    return "".join(lines)


__all__ = ["DiagnosticAggregator", "format_errors_per_file", "group_errors_by_file"]
