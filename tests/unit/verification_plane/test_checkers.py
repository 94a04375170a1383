"""
typelift — unit tests for checker adapters

File: tests/unit/verification_plane/test_checkers.py
Last updated: 2026-10-16

Purpose
- Validate command construction and report parsing for the mypy and ruff checkers.

What this test file should cover
- Phase-dependent mypy flags and lint file scoping.
- Severity filtering and redundant-suppression filtering.
- Execution failures surface as CheckerExecutionError.

Non-functional requirements
- No real tool execution; a fake CommandExecutor returns canned output.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from typelift.domain.models import DiagnosticSource, Phase, Project
from typelift.verification_plane.checkers import (
    CheckerExecutionError,
    CommandResult,
    CommandSpec,
    LintChecker,
    TypecheckChecker,
)
from typelift.verification_plane.checkers.typecheck_checker import FULL_COVERAGE_FLAGS


@dataclass(slots=True)
class FakeExecutor:
    stdout: str = ""
    exit_code: int | None = 1
    error: str | None = None
    specs: list[CommandSpec] = field(default_factory=list)

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.specs.append(spec)
        return CommandResult(
            argv=spec.argv,
            exit_code=self.exit_code,
            stdout=self.stdout,
            stderr="",
            duration_ms=1,
            error=self.error,
        )


def _mypy_line(file: str, line: int, column: int, *, severity: str = "error", code: str) -> str:
    return json.dumps(
        {
            "file": file,
            "line": line,
            "column": column,
            "message": f"{code} happened",
            "hint": None,
            "code": code,
            "severity": severity,
        }
    )


@pytest.fixture
def project(tmp_path: Path) -> Project:
    return Project(root=tmp_path, phase=Phase.BASELINE, targets=("src",))


def test_mypy_command_adds_full_coverage_flags(project: Project) -> None:
    checker = TypecheckChecker(executor=FakeExecutor())

    baseline = checker.build_command(project)
    full = checker.build_command(project.with_phase(Phase.FULL_COVERAGE))

    assert baseline == ("mypy", "-O", "json", "src")
    assert full == ("mypy", "-O", "json", *FULL_COVERAGE_FLAGS, "src")


async def test_mypy_keeps_errors_and_drops_notes_and_unused_ignores(project: Project) -> None:
    stdout = "\n".join(
        [
            _mypy_line("src/a.py", 3, 4, code="arg-type"),
            _mypy_line("src/a.py", 3, 4, severity="note", code="arg-type"),
            _mypy_line("src/b.py", 1, 0, code="unused-ignore"),
            "Found 2 errors in 2 files (checked 2 source files)",
            _mypy_line("src/b.py", 7, 0, code="no-untyped-def"),
        ]
    )
    executor = FakeExecutor(stdout=stdout)

    diagnostics = await TypecheckChecker(executor=executor).query(project)

    assert [(item.path, item.line, item.column, item.code) for item in diagnostics] == [
        (str(project.root / "src" / "a.py"), 3, 5, "arg-type"),
        (str(project.root / "src" / "b.py"), 7, 1, "no-untyped-def"),
    ]
    assert all(item.source is DiagnosticSource.MYPY for item in diagnostics)
    assert executor.specs[0].cwd == str(project.root)
    assert executor.specs[0].allowed_exit_codes == (0, 1)


async def test_mypy_file_scope_filters_diagnostics(project: Project) -> None:
    stdout = "\n".join(
        [_mypy_line("src/a.py", 1, 0, code="misc"), _mypy_line("src/b.py", 2, 0, code="misc")]
    )

    diagnostics = await TypecheckChecker(executor=FakeExecutor(stdout=stdout)).query(
        project, "src/b.py"
    )

    assert [item.path for item in diagnostics] == [str(project.root / "src" / "b.py")]


async def test_mypy_crash_raises_checker_execution_error(project: Project) -> None:
    executor = FakeExecutor(stdout="", exit_code=2)

    with pytest.raises(CheckerExecutionError, match="mypy failed: exit code 2"):
        await TypecheckChecker(executor=executor).query(project)


async def test_missing_tool_raises_checker_execution_error(project: Project) -> None:
    executor = FakeExecutor(exit_code=None, error="No such file or directory: 'mypy'")

    with pytest.raises(CheckerExecutionError) as excinfo:
        await TypecheckChecker(executor=executor).query(project)

    assert excinfo.value.checker == "mypy"
    assert excinfo.value.argv[0] == "mypy"


def test_lint_command_targets_the_scoped_file(project: Project) -> None:
    checker = LintChecker(executor=FakeExecutor(), command=("python", "-m", "ruff"))

    assert checker.build_command(project) == (
        "python",
        "-m",
        "ruff",
        "check",
        "--isolated",
        "--output-format",
        "json",
        "--select",
        "ANN401",
        "src",
    )
    assert checker.build_command(project, "src/a.py")[-1] == str(project.root / "src" / "a.py")


async def test_lint_parses_findings_and_drops_unused_noqa(project: Project) -> None:
    findings = [
        {
            "code": "ANN401",
            "filename": str(project.root / "src" / "a.py"),
            "location": {"row": 4, "column": 12},
            "message": "Dynamically typed expressions (typing.Any) are disallowed in `x`",
        },
        {
            "code": "RUF100",
            "filename": str(project.root / "src" / "a.py"),
            "location": {"row": 9, "column": 1},
            "message": "Unused `noqa` directive",
        },
    ]
    executor = FakeExecutor(stdout=json.dumps(findings))

    diagnostics = await LintChecker(executor=executor).query(project)

    assert len(diagnostics) == 1
    assert diagnostics[0].source is DiagnosticSource.RUFF
    assert (diagnostics[0].line, diagnostics[0].column, diagnostics[0].code) == (4, 12, "ANN401")


async def test_lint_empty_output_means_no_findings(project: Project) -> None:
    diagnostics = await LintChecker(executor=FakeExecutor(stdout="", exit_code=0)).query(project)

    assert diagnostics == ()


async def test_lint_invalid_json_raises(project: Project) -> None:
    with pytest.raises(CheckerExecutionError, match="invalid JSON output"):
        await LintChecker(executor=FakeExecutor(stdout="not json")).query(project)
