"""Unit tests for persisted project phase state."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from typelift.domain.models import Phase
from typelift.persistence import COMPLETED_PHASE, ProjectState, ProjectStateError, state_file_for


def test_loading_a_path_creates_state_at_the_first_phase(tmp_path: Path) -> None:
    project = tmp_path / "demo"
    project.mkdir()
    workdir = tmp_path / "workdir"

    state = ProjectState.load(project, workdir=workdir)

    assert state.state_file == workdir / "demo.json"
    assert state.current_phase is Phase.BASELINE
    assert json.loads(state.state_file.read_text(encoding="utf-8")) == {
        "path": project.resolve().as_posix(),
        "phase": 1,
        "schema_version": 1,
    }


def test_loading_by_name_reads_existing_state(tmp_path: Path) -> None:
    project = tmp_path / "demo"
    project.mkdir()
    workdir = tmp_path / "workdir"
    ProjectState.load(project, workdir=workdir).advance_phase()

    state = ProjectState.load("demo", workdir=workdir)

    assert state.path == project.resolve()
    assert state.current_phase is Phase.FULL_COVERAGE


def test_advancing_past_the_last_phase_completes_the_project(tmp_path: Path) -> None:
    project = tmp_path / "demo"
    project.mkdir()
    state = ProjectState.load(project, workdir=tmp_path / "workdir")

    assert state.advance_phase() == 2
    assert state.advance_phase() == COMPLETED_PHASE
    assert state.completed is True
    with pytest.raises(ProjectStateError, match="completed every phase"):
        _ = state.current_phase
    with pytest.raises(ProjectStateError, match="completed every phase"):
        state.advance_phase()


def test_unknown_project_path_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ProjectStateError, match="does not exist"):
        ProjectState.load(tmp_path / "missing", workdir=tmp_path / "workdir")


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("{not json", "unable to read project state"),
        ("[]", "expected a JSON object"),
        ('{"phase": 1}', "missing 'path'"),
        ('{"path": "/p", "phase": 9}', "unknown phase 9"),
        ('{"path": "/p", "phase": "1"}', "phase must be an integer"),
        ('{"path": "/p", "phase": 1, "schema_version": 2}', "unsupported schema_version"),
    ],
)
def test_malformed_state_files_are_rejected(tmp_path: Path, content: str, message: str) -> None:
    workdir = tmp_path / "workdir"
    workdir.mkdir()
    (workdir / "demo.json").write_text(content, encoding="utf-8")

    with pytest.raises(ProjectStateError, match=message):
        ProjectState.load("demo", workdir=workdir)


def test_state_file_is_named_after_the_project_directory(tmp_path: Path) -> None:
    assert state_file_for(tmp_path / "a" / "demo", workdir=tmp_path) == tmp_path / "demo.json"
