"""
typelift — CLI router unit tests

File: tests/unit/ui/test_cli.py
Last updated: 2026-10-16

Purpose
- Validate argument routing, exit codes and JSON payloads of the read-only commands with the
  checker collaborators replaced by in-memory fakes.

Functional requirements
- Offline only; no checker or oracle subprocess is ever started.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

import typelift.ui.cli as cli
from typelift.domain.models import (
    Diagnostic,
    DiagnosticSource,
    Phase,
    Project,
    ProjectRepairResult,
    RepairStats,
    ScopeOutcome,
)
from typelift.persistence import ProjectState, RunStatistics
from typelift.synthesis_plane.providers.base import ProviderQuotaExhaustedError
from typelift.verification_plane import DiagnosticAggregator


@dataclass(slots=True)
class StaticChecker:
    checker_id: str
    diagnostics: tuple[Diagnostic, ...]

    async def query(
        self, project: Project, file_scope: str | None = None
    ) -> tuple[Diagnostic, ...]:
        if file_scope is None:
            return self.diagnostics
        return tuple(item for item in self.diagnostics if item.path == project.resolve(file_scope))


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in list(os.environ):
        if name.startswith("TYPELIFT_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    root = tmp_path / "demo"
    (root / "pkg").mkdir(parents=True)
    (root / "pkg" / "a.py").write_text("x: int = 'a'  # type: ignore\n", encoding="utf-8")
    (root / "pkg" / "b.py").write_text("y = 1\n", encoding="utf-8")
    return root


def _install_checker(monkeypatch: pytest.MonkeyPatch, root: Path) -> None:
    resolved = root.resolve()
    diagnostics = (
        Diagnostic(
            DiagnosticSource.MYPY, str(resolved / "pkg" / "a.py"), 1, 10, "bad", "assignment"
        ),
        Diagnostic(DiagnosticSource.MYPY, str(resolved / "pkg" / "b.py"), 1, 1, "worse", "misc"),
        Diagnostic(DiagnosticSource.MYPY, str(resolved / "pkg" / "a.py"), 1, 1, "again", "misc"),
    )
    aggregator = DiagnosticAggregator(type_checker=StaticChecker("mypy", diagnostics))
    monkeypatch.setattr(cli, "build_aggregator", lambda settings: aggregator)


def test_parser_requires_a_command(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.build_parser().parse_args([])

    assert excinfo.value.code == 2
    assert "usage: typelift" in capsys.readouterr().err


def test_check_reports_errors_per_file(
    project_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _install_checker(monkeypatch, project_dir)

    exit_code = cli.run_cli(["check", str(project_dir), "--workdir", "state"])

    assert exit_code == 1
    assert capsys.readouterr().out == (
        "Found 3 errors in 2 files.\n\nErrors  Files\n     2  pkg/a.py\n     1  pkg/b.py\n"
    )
    assert not (project_dir.parent / "state" / "demo.json").exists()


def test_check_json_for_a_single_file(
    project_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _install_checker(monkeypatch, project_dir)

    exit_code = cli.run_cli(
        ["check", str(project_dir), "--file", "pkg/b.py", "--phase", "2", "--json"]
    )

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert payload["command"] == "check"
    assert payload["phase"] == 2
    assert payload["error_count"] == 1
    assert payload["diagnostics"][0]["message"] == "worse"


def test_check_uses_the_recorded_phase(
    project_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    ProjectState.load(project_dir, workdir=project_dir.parent / "state").advance_phase()
    seen: list[Phase] = []

    class RecordingAggregator:
        async def get_errors(
            self, project: Project, file_scope: str | None = None
        ) -> tuple[Diagnostic, ...]:
            seen.append(project.phase)
            return ()

    monkeypatch.setattr(cli, "build_aggregator", lambda settings: RecordingAggregator())

    exit_code = cli.run_cli(["check", "demo", "--workdir", "state"])

    assert exit_code == 0
    assert seen == [Phase.FULL_COVERAGE]
    assert capsys.readouterr().out.startswith("Found 0 errors in 0 files.")


def test_check_unknown_project_is_a_config_error(
    project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli.run_cli(["check", "missing-project"])

    assert exit_code == 2
    assert "project path does not exist" in capsys.readouterr().err


def test_suppressions_exit_one_when_unlabeled(
    project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli.run_cli(["suppressions", str(project_dir)])

    output = capsys.readouterr().out
    assert exit_code == 1
    assert "pkg/a.py:1:15: unlabeled type-ignore" in output
    assert output.endswith("Summary: bug=0 accepted=0 file=0 unlabeled=1 scanned_files=2\n")


def test_status_requires_recorded_state(
    project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli.run_cli(["status", "demo", "--workdir", "state"])

    assert exit_code == 2
    assert "no state recorded for project 'demo'" in capsys.readouterr().err


def test_status_json(project_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ProjectState.load(project_dir, workdir=project_dir.parent / "state")

    exit_code = cli.run_cli(["status", "demo", "--workdir", "state", "--json"])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {
        "command": "status",
        "completed": False,
        "path": project_dir.resolve().as_posix(),
        "phase": 1,
        "project": "demo",
        "statistics": {},
    }


def test_status_text_suggests_the_next_run(
    project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    ProjectState.load(project_dir, workdir=project_dir.parent / "state")

    exit_code = cli.run_cli(["status", "demo", "--workdir", "state", "--no-color"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Project: demo\n" in output
    assert "Phase: 1\n" in output
    assert "  $ typelift run demo\n" in output


def test_invalid_config_file_is_a_config_error(
    project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (project_dir.parent / "typelift.toml").write_text(
        "[repair]\nsession_reset_interval = 0\n", encoding="utf-8"
    )

    exit_code = cli.run_cli(["status", "demo"])

    assert exit_code == 2
    assert "session_reset_interval" in capsys.readouterr().err


class QuotaAfterOneScope:
    """Orchestrator stand-in that finishes one file and then runs out of quota."""

    def __init__(
        self,
        project: Project,
        *,
        on_scope_finished: Callable[[ProjectRepairResult], None] | None = None,
        **_: object,
    ) -> None:
        self._project = project
        self._on_scope_finished = on_scope_finished

    async def run(self) -> ProjectRepairResult:
        outcome = ScopeOutcome(
            file_scope="pkg/b.py",
            succeeded=True,
            stats=RepairStats(cost_usd=0.5, initial_error_count=1, iterations=1, turns=3),
        )
        if self._on_scope_finished is not None:
            self._on_scope_finished(
                ProjectRepairResult(
                    phase=self._project.phase,
                    file_outcomes=(outcome,),
                    cleanup_outcome=None,
                    remaining_error_count=0,
                )
            )
        raise ProviderQuotaExhaustedError("Usage limit reached")


def test_run_keeps_finished_scope_statistics_when_quota_runs_out(
    project_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _install_checker(monkeypatch, project_dir)
    monkeypatch.setattr(cli, "build_oracle", lambda settings: object())
    monkeypatch.setattr(cli, "ProjectRepairOrchestrator", QuotaAfterOneScope)

    with pytest.raises(ProviderQuotaExhaustedError):
        cli.run_cli(["run", str(project_dir), "--workdir", "state"])

    recorded = RunStatistics.load("demo", workdir="state").phase(Phase.BASELINE)
    assert recorded is not None
    assert list(recorded.files) == ["pkg/b.py"]
    assert recorded.totals.turns == 3
    assert recorded.totals.cost_usd == pytest.approx(0.5)
    assert ProjectState.load("demo", workdir="state").phase == Phase.BASELINE
