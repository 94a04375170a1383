"""Unit tests for diagnostic context formatting."""

from __future__ import annotations

from pathlib import Path

import pytest

from typelift.domain.models import Diagnostic, DiagnosticSource, Phase, Project
from typelift.synthesis_plane.error_context import context_size_for, format_errors_with_context

SOURCE = "\n".join(f"line_{number} = {number}" for number in range(1, 21))


@pytest.fixture
def project(tmp_path: Path) -> Project:
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "mod.py").write_text(SOURCE, encoding="utf-8")
    return Project(root=tmp_path, phase=Phase.BASELINE)


def _diag(project: Project, line: int, message: str, code: str | None = "misc") -> Diagnostic:
    return Diagnostic(
        source=DiagnosticSource.MYPY,
        path=project.resolve("pkg/mod.py"),
        line=line,
        column=5,
        message=message,
        code=code,
    )


@pytest.mark.parametrize(("count", "size"), [(0, 3), (9, 3), (10, 2), (49, 2), (50, 1), (500, 1)])
def test_context_shrinks_as_error_count_grows(count: int, size: int) -> None:
    assert context_size_for(count) == size


def test_single_error_gets_three_lines_of_context(project: Project) -> None:
    text = format_errors_with_context((_diag(project, 5, "Bad thing"),), project)

    assert text == "\n".join(
        [
            "pkg/mod.py:5:5 - Bad thing (misc)",
            "     2 | line_2 = 2",
            "     3 | line_3 = 3",
            "     4 | line_4 = 4",
            ">    5 | line_5 = 5",
            "     6 | line_6 = 6",
            "     7 | line_7 = 7",
            "     8 | line_8 = 8",
        ]
    )


def test_errors_on_the_same_line_share_a_block(project: Project) -> None:
    diagnostics = (
        _diag(project, 1, "First", code=None),
        _diag(project, 1, "Second"),
        _diag(project, 20, "Last"),
    )

    text = format_errors_with_context(diagnostics, project)
    blocks = text.split("\n\n")

    assert len(blocks) == 2
    assert blocks[0].startswith("pkg/mod.py:1:5 - First\npkg/mod.py:1:5 - Second (misc)\n>    1 |")
    assert blocks[1].splitlines()[-1] == ">   20 | line_20 = 20"


def test_batch_is_truncated_with_a_preface(project: Project) -> None:
    diagnostics = tuple(_diag(project, line, f"e{line}") for line in range(1, 13))

    text = format_errors_with_context(diagnostics, project, max_errors=2)

    assert text.startswith("There are 12 errors in total, here are the first 2:\n\n")
    assert "e1" in text
    assert "e2" in text
    assert "e3" not in text


def test_unreadable_file_renders_without_context(project: Project) -> None:
    missing = Diagnostic(
        source=DiagnosticSource.MYPY,
        path=project.resolve("gone.py"),
        line=3,
        column=1,
        message="Gone",
    )

    assert format_errors_with_context((missing,), project) == "gone.py:3:1 - Gone\n"
