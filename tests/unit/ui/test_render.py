"""Plain-text rendering tests for the CLI renderer."""

from __future__ import annotations

import pytest

from typelift.domain.models import Phase, ProjectRepairResult, RepairStats, ScopeOutcome
from typelift.ui.render import create_renderer


def _result() -> ProjectRepairResult:
    return ProjectRepairResult(
        phase=Phase.FULL_COVERAGE,
        file_outcomes=(
            ScopeOutcome("pkg/a.py", True, RepairStats(cost_usd=1.25, turns=7)),
            ScopeOutcome(
                "pkg/huge.py", True, RepairStats(behavior_modifications_detected=1), suppressed=True
            ),
        ),
        cleanup_outcome=ScopeOutcome(None, False, RepairStats(remaining_error_count=2)),
        remaining_error_count=2,
        time_seconds=61.04,
        processing_order=("/p/pkg/a.py", "/p/pkg/huge.py"),
    )


def test_phase_result_plain_text(capsys: pytest.CaptureFixture[str]) -> None:
    create_renderer(no_color=True).phase_result(_result())

    assert capsys.readouterr().out == (
        "\nPhase 2 (full-coverage) summary:\n"
        "Files repaired: 2\n"
        "Remaining errors: 2\n"
        "Time (s): 61.0\n"
        "Cost (USD): 1.25\n"
        "Turns: 7\n"
        "Behavior modifications detected: 1\n"
        "\nFiles suppressed (input too large):\n"
        "  - pkg/huge.py\n"
        "\nScopes with remaining errors:\n"
        "  - the project\n"
    )


def test_verbose_phase_result_lists_processing_order(capsys: pytest.CaptureFixture[str]) -> None:
    create_renderer(no_color=True, verbose=True).phase_result(_result())

    assert capsys.readouterr().out.endswith(
        "\nProcessing order:\n  /p/pkg/a.py\n  /p/pkg/huge.py\n"
    )


def test_plain_table_is_aligned(capsys: pytest.CaptureFixture[str]) -> None:
    renderer = create_renderer(no_color=True)

    renderer.table(["File", "Remaining"], [["pkg/a.py", "0"], ["b.py", "12"]])
    renderer.table(["File"], [])

    assert capsys.readouterr().out == (
        "  File      Remaining\n"
        "  --------  ---------\n"
        "  pkg/a.py  0\n"
        "  b.py      12\n"
    )


def test_no_color_environment_disables_rich(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")

    assert create_renderer().color is False
