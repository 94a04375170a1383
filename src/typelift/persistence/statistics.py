"""
typelift — run statistics

File: src/typelift/persistence/statistics.py
Last updated: 2026-10-16

Purpose
- Persist per-phase repair statistics in ``workdir/<project-name>-stats.json``.

What should be included in this file
- FileStatistics: aggregated counters plus per-file stats and the final cleanup stats.
- RunStatistics: load, record a phase result, save atomically.

Functional requirements
- Recording a phase replaces that phase's entry and keeps the others.
- Unknown top-level keys in an existing file are preserved.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from typelift.constants import WORKDIR
from typelift.domain.models import RepairStats
from typelift.utils.fs import atomic_write

if TYPE_CHECKING:
    from typelift.domain.models import Phase, ProjectRepairResult

logger = structlog.get_logger(__name__)


class StatisticsError(RuntimeError):
    """Raised when a statistics file cannot be read or has an invalid shape."""


@dataclass(frozen=True, slots=True)
class FileStatistics:
    """Totals over every scope of a phase, with per-file detail."""

    totals: RepairStats
    files: Mapping[str, RepairStats] = field(default_factory=dict)
    final_cleanup: RepairStats | None = None

    @classmethod
    def from_result(cls, result: ProjectRepairResult) -> FileStatistics:
        files = {outcome.scope_label: outcome.stats for outcome in result.file_outcomes}
        cleanup = result.cleanup_outcome.stats if result.cleanup_outcome is not None else None
        return cls(totals=result.totals, files=files, final_cleanup=cleanup)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.totals.to_dict())
        payload["files"] = {path: stats.to_dict() for path, stats in sorted(self.files.items())}
        if self.final_cleanup is not None:
            payload["final_cleanup"] = self.final_cleanup.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> FileStatistics:
        raw_files = payload.get("files", {})
        if not isinstance(raw_files, Mapping):
            raise StatisticsError("files must be an object")
        files = {
            str(path): RepairStats.from_dict(_as_mapping(item)) for path, item in raw_files.items()
        }
        raw_cleanup = payload.get("final_cleanup")
        return cls(
            totals=RepairStats.from_dict(payload),
            files=files,
            final_cleanup=(
                RepairStats.from_dict(_as_mapping(raw_cleanup)) if raw_cleanup is not None else None
            ),
        )


class RunStatistics:
    """Statistics document for one project, keyed by phase."""

    def __init__(self, path: Path, payload: dict[str, Any] | None = None) -> None:
        self._path = path
        self._payload: dict[str, Any] = payload if payload is not None else {}

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def load(cls, project_name: str, *, workdir: Path | str = WORKDIR) -> RunStatistics:
        path = statistics_file_for(project_name, workdir=workdir)
        if not path.exists():
            return cls(path)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StatisticsError(f"unable to read statistics file {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StatisticsError(f"invalid statistics file format: {path}")
        return cls(path, payload)

    def phase(self, phase: Phase) -> FileStatistics | None:
        entry = self._payload.get(_phase_key(phase))
        if not isinstance(entry, Mapping):
            return None
        steps = entry.get("steps")
        if not isinstance(steps, Mapping) or "error_fixing" not in steps:
            return None
        return FileStatistics.from_dict(_as_mapping(steps["error_fixing"]))

    def phase_time_seconds(self, phase: Phase) -> float | None:
        entry = self._payload.get(_phase_key(phase))
        if not isinstance(entry, Mapping):
            return None
        value = entry.get("time_seconds")
        return float(value) if isinstance(value, (int, float)) else None

    def record(self, result: ProjectRepairResult) -> None:
        self._payload[_phase_key(result.phase)] = {
            "time_seconds": result.time_seconds,
            "steps": {"error_fixing": FileStatistics.from_result(result).to_dict()},
        }

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(self._path, json.dumps(self._payload, indent=2, sort_keys=True) + "\n")
        logger.debug("statistics_saved", path=str(self._path))

    def to_dict(self) -> dict[str, Any]:
        return json.loads(json.dumps(self._payload))


def statistics_file_for(project_name: str, *, workdir: Path | str = WORKDIR) -> Path:
    return Path(workdir) / f"{project_name}-stats.json"


def _phase_key(phase: Phase) -> str:
    return f"phase{int(phase)}"


def _as_mapping(value: object) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise StatisticsError(f"expected an object, got {type(value).__name__}")
    return value


__all__ = [
    "FileStatistics",
    "RunStatistics",
    "StatisticsError",
    "statistics_file_for",
]
