"""
Lint Checker — diagnostic source.

Functional requirements:
- Runs ruff restricted to the explicit-``Any`` rule, ignoring local ruff configuration.
- Targets the scoped file when given, else the project targets.
- Drops unused-suppression findings.

Non-functional requirements:
- Exit codes 0 and 1 are normal; anything else raises CheckerExecutionError.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Final

from typelift.domain.models import Diagnostic, DiagnosticSource
from typelift.verification_plane.checkers.base import (
    CheckerExecutionError,
    CommandChecker,
    coerce_position,
)

if TYPE_CHECKING:
    from typelift.domain.models import Project

SELECTED_RULES: Final[tuple[str, ...]] = ("ANN401",)
IGNORED_CODES: Final[frozenset[str]] = frozenset({"RUF100"})


class LintChecker(CommandChecker):
    """ruff-backed linter for explicit ``Any`` annotations."""

    checker_id = "ruff"
    default_command = ("ruff",)

    def build_command(self, project: Project, file_scope: str | None = None) -> tuple[str, ...]:
        targets = (project.resolve(file_scope),) if file_scope is not None else project.targets
        return (
            *self.command,
            "check",
            "--isolated",
            "--output-format",
            "json",
            "--select",
            ",".join(SELECTED_RULES),
            *targets,
        )

    async def query(
        self, project: Project, file_scope: str | None = None
    ) -> tuple[Diagnostic, ...]:
        argv = self.build_command(project, file_scope)
        result = await self.execute(argv, cwd=str(project.root))
        return self.parse_output(result.stdout, project)

    def parse_output(self, stdout: str, project: Project) -> tuple[Diagnostic, ...]:
        text = stdout.strip()
        if not text:
            return ()
        try:
            reports = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CheckerExecutionError(self.checker_id, f"invalid JSON output: {exc}") from exc
        if not isinstance(reports, list):
            raise CheckerExecutionError(self.checker_id, "expected a JSON array of findings")

        diagnostics: list[Diagnostic] = []
        for report in reports:
            if not isinstance(report, dict):
                continue
            code = report.get("code")
            if isinstance(code, str) and code in IGNORED_CODES:
                continue
            file_name = report.get("filename")
            if not isinstance(file_name, str) or not file_name:
                continue
            location = report.get("location")
            if not isinstance(location, dict):
                location = {}
            diagnostics.append(
                Diagnostic(
                    source=DiagnosticSource.RUFF,
                    path=project.resolve(file_name),
                    line=coerce_position(location.get("row")),
                    column=coerce_position(location.get("column")),
                    message=str(report.get("message", "")),
                    code=code if isinstance(code, str) else None,
                )
            )
        return tuple(diagnostics)


__all__ = ["IGNORED_CODES", "LintChecker", "SELECTED_RULES"]
