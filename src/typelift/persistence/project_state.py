"""
typelift — persisted project state

File: src/typelift/persistence/project_state.py
Last updated: 2026-10-16

Purpose
- Remember, per target project, where it lives and which migration phase runs next.

What should be included in this file
- ``workdir/<project-name>.json`` documents ``{"path", "phase", "schema_version"}``.
- Creation on first use, phase advancement, atomic writes.

Functional requirements
- Loading by name finds an existing state file; loading by path creates one at phase 1.
- A phase beyond the last one marks the project as completed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Final, cast

import structlog

from typelift.constants import PROJECT_STATE_SCHEMA_VERSION, WORKDIR
from typelift.domain.models import Phase
from typelift.utils.fs import atomic_write

logger = structlog.get_logger(__name__)

COMPLETED_PHASE: Final[int] = max(Phase) + 1


class ProjectStateError(RuntimeError):
    """Raised when a project state file is missing, unreadable or malformed."""


@dataclass(slots=True)
class ProjectState:
    """Mutable project state bound to its state file."""

    path: Path
    phase: int
    state_file: Path

    def __post_init__(self) -> None:
        if isinstance(self.phase, bool) or not isinstance(self.phase, int):
            raise ProjectStateError(f"{self.state_file}: phase must be an integer")
        if not Phase.BASELINE <= self.phase <= COMPLETED_PHASE:
            raise ProjectStateError(f"{self.state_file}: unknown phase {self.phase}")

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def completed(self) -> bool:
        return self.phase >= COMPLETED_PHASE

    @property
    def current_phase(self) -> Phase:
        if self.completed:
            raise ProjectStateError(f"project {self.name!r} has completed every phase")
        return Phase(self.phase)

    @classmethod
    def load(cls, name_or_path: str | Path, *, workdir: Path | str = WORKDIR) -> ProjectState:
        """Load the state for a project name or path, creating it at phase 1 when absent."""

        state_file = state_file_for(name_or_path, workdir=workdir)
        if state_file.exists():
            state = cls._read(state_file)
            logger.info("project_state_loaded", state_file=str(state_file), phase=state.phase)
            return state

        project_path = Path(name_or_path).expanduser().resolve()
        if not project_path.is_dir():
            raise ProjectStateError(f"project path does not exist: {project_path}")
        state = cls(path=project_path, phase=int(Phase.BASELINE), state_file=state_file)
        state.persist()
        logger.info("project_state_created", state_file=str(state_file))
        return state

    def advance_phase(self) -> int:
        if self.completed:
            raise ProjectStateError(f"project {self.name!r} has completed every phase")
        self.phase += 1
        self.persist()
        return self.phase

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path.as_posix(),
            "phase": self.phase,
            "schema_version": PROJECT_STATE_SCHEMA_VERSION,
        }

    def persist(self) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(self.state_file, json.dumps(self.to_dict(), indent=2) + "\n")

    @classmethod
    def _read(cls, state_file: Path) -> ProjectState:
        try:
            payload = json.loads(state_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ProjectStateError(f"unable to read project state {state_file}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ProjectStateError(f"{state_file}: expected a JSON object")
        path = payload.get("path")
        if not isinstance(path, str) or not path:
            raise ProjectStateError(f"{state_file}: missing 'path'")
        version = payload.get("schema_version", PROJECT_STATE_SCHEMA_VERSION)
        if version != PROJECT_STATE_SCHEMA_VERSION:
            raise ProjectStateError(f"{state_file}: unsupported schema_version {version!r}")
        return cls(path=Path(path), phase=cast("int", payload.get("phase")), state_file=state_file)


def state_file_for(name_or_path: str | Path, *, workdir: Path | str = WORKDIR) -> Path:
    return Path(workdir) / f"{Path(name_or_path).expanduser().resolve().name}.json"


__all__ = [
    "COMPLETED_PHASE",
    "ProjectState",
    "ProjectStateError",
    "state_file_for",
]
