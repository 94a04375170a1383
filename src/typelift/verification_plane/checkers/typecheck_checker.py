"""
Typecheck Checker — diagnostic source.

Functional requirements:
- Runs mypy with JSON output over the project targets from the project root.
- Adds the untyped-definition flags in the full-coverage phase.
- Keeps error severity only and drops redundant-suppression findings.
- Filters to a single file when a file scope is given.

Non-functional requirements:
- Exit codes 0 and 1 are normal; anything else raises CheckerExecutionError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from typelift.domain.models import Diagnostic, DiagnosticSource, Phase
from typelift.verification_plane.checkers.base import (
    CommandChecker,
    coerce_position,
    iter_json_lines,
)

if TYPE_CHECKING:
    from typelift.domain.models import Project

FULL_COVERAGE_FLAGS: Final[tuple[str, ...]] = (
    "--disallow-untyped-defs",
    "--disallow-incomplete-defs",
    "--disallow-any-generics",
)
IGNORED_CODES: Final[frozenset[str]] = frozenset({"unused-ignore", "redundant-cast"})


class TypecheckChecker(CommandChecker):
    """mypy-backed static type checker."""

    checker_id = "mypy"
    default_command = ("mypy",)

    def build_command(self, project: Project) -> tuple[str, ...]:
        argv: list[str] = [*self.command, "-O", "json"]
        if project.phase is Phase.FULL_COVERAGE:
            argv.extend(FULL_COVERAGE_FLAGS)
        argv.extend(project.targets)
        return tuple(argv)

    async def query(
        self, project: Project, file_scope: str | None = None
    ) -> tuple[Diagnostic, ...]:
        result = await self.execute(self.build_command(project), cwd=str(project.root))
        diagnostics = self.parse_output(result.stdout, project)
        if file_scope is None:
            return diagnostics
        scope_path = project.resolve(file_scope)
        return tuple(item for item in diagnostics if item.path == scope_path)

    def parse_output(self, stdout: str, project: Project) -> tuple[Diagnostic, ...]:
        diagnostics: list[Diagnostic] = []
        for report in iter_json_lines(stdout):
            if report.get("severity") != "error":
                continue
            code = report.get("code")
            if isinstance(code, str) and code in IGNORED_CODES:
                continue
            file_name = report.get("file")
            if not isinstance(file_name, str) or not file_name:
                continue
            diagnostics.append(
                Diagnostic(
                    source=DiagnosticSource.MYPY,
                    path=project.resolve(file_name),
                    line=coerce_position(report.get("line")),
                    column=coerce_position(report.get("column"), zero_based=True),
                    message=str(report.get("message", "")),
                    code=code if isinstance(code, str) else None,
                )
            )
        return tuple(diagnostics)


__all__ = ["FULL_COVERAGE_FLAGS", "IGNORED_CODES", "TypecheckChecker"]
