"""Dataclass domain models shared by the verification, control and synthesis planes."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

if TYPE_CHECKING:
    from typelift.synthesis_plane.providers.base import OracleResult

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class DiagnosticSource(StrEnum):
    """Checker identity attached to every diagnostic."""

    MYPY = "mypy"
    RUFF = "ruff"


class Phase(IntEnum):
    """Migration phase of a project; persisted as its integer value."""

    BASELINE = 1
    FULL_COVERAGE = 2

    @property
    def label(self) -> str:
        return "baseline" if self is Phase.BASELINE else "full-coverage"

    @classmethod
    def coerce(cls, value: Phase | int | str, *, path: str = "phase") -> Phase:
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            _fail(path, "must be an integer phase, got bool")
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped.isdigit():
                _fail(path, f"invalid phase {value!r}")
            value = int(stripped)
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(str(item.value) for item in cls)
            _fail(path, f"unknown phase {value!r}; expected one of: {valid}")


@dataclass(frozen=True, slots=True)
class Project:
    """A target project being migrated, plus the checker settings that apply to it."""

    root: Path
    phase: Phase
    name: str = ""
    targets: tuple[str, ...] = (".",)
    lint_enabled: bool = True
    extra_source_roots: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        root = Path(self.root).expanduser().resolve()
        object.__setattr__(self, "root", root)
        object.__setattr__(self, "phase", Phase.coerce(self.phase))
        if not self.name:
            object.__setattr__(self, "name", root.name)
        if not self.targets:
            _fail("Project.targets", "must contain at least one target")

    @property
    def lint_active(self) -> bool:
        """Linting only applies once the checker baseline is clean."""

        return self.lint_enabled and self.phase is Phase.FULL_COVERAGE

    def resolve(self, path: str | Path) -> str:
        """Return ``path`` as an absolute string, resolving relative paths against the root."""

        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return str(Path(_normalize(candidate)))

    def relative(self, path: str | Path) -> str:
        """Return ``path`` relative to the project root when it lives inside it."""

        resolved = Path(self.resolve(path))
        try:
            return resolved.relative_to(self.root).as_posix()
        except ValueError:
            return resolved.as_posix()

    def with_phase(self, phase: Phase | int) -> Project:
        return Project(
            root=self.root,
            phase=Phase.coerce(phase),
            name=self.name,
            targets=self.targets,
            lint_enabled=self.lint_enabled,
            extra_source_roots=self.extra_source_roots,
        )


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """One error-severity finding reported by a checker."""

    source: DiagnosticSource
    path: str
    line: int
    column: int
    message: str
    code: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", DiagnosticSource(self.source))
        if not self.path or not Path(self.path).is_absolute():
            _fail("Diagnostic.path", f"must be an absolute path, got {self.path!r}")
        if isinstance(self.line, bool) or self.line < 1:
            _fail("Diagnostic.line", "must be >= 1")
        if isinstance(self.column, bool) or self.column < 1:
            _fail("Diagnostic.column", "must be >= 1")
        if self.code is not None and not self.code.strip():
            object.__setattr__(self, "code", None)

    @property
    def location(self) -> str:
        return f"{self.path}:{self.line}"

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "source": self.source.value,
            "path": self.path,
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "code": self.code,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> Diagnostic:
        code = payload.get("code")
        return cls(
            source=DiagnosticSource(str(payload["source"])),
            path=str(payload["path"]),
            line=_as_int(payload["line"], "Diagnostic.line"),
            column=_as_int(payload["column"], "Diagnostic.column"),
            message=str(payload["message"]),
            code=None if code is None else str(code),
        )


@dataclass(frozen=True, slots=True)
class RepairStats:
    """Counters recorded for one repair scope or aggregated over many."""

    behavior_modifications_detected: int = 0
    cost_usd: float = 0.0
    initial_error_count: int = 0
    iterations: int = 0
    remaining_error_count: int = 0
    time_seconds: float = 0.0
    turns: int = 0

    def __post_init__(self) -> None:
        for name in (
            "behavior_modifications_detected",
            "initial_error_count",
            "iterations",
            "remaining_error_count",
            "turns",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if not math.isfinite(self.cost_usd) or self.cost_usd < 0:
            raise ValueError("cost_usd must be a finite value >= 0")
        if not math.isfinite(self.time_seconds) or self.time_seconds < 0:
            raise ValueError("time_seconds must be a finite value >= 0")

    def __add__(self, other: RepairStats) -> RepairStats:
        return RepairStats(
            behavior_modifications_detected=(
                self.behavior_modifications_detected + other.behavior_modifications_detected
            ),
            cost_usd=self.cost_usd + other.cost_usd,
            initial_error_count=self.initial_error_count + other.initial_error_count,
            iterations=self.iterations + other.iterations,
            remaining_error_count=self.remaining_error_count + other.remaining_error_count,
            time_seconds=self.time_seconds + other.time_seconds,
            turns=self.turns + other.turns,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "behavior_modifications_detected": self.behavior_modifications_detected,
            "cost_usd": self.cost_usd,
            "initial_error_count": self.initial_error_count,
            "iterations": self.iterations,
            "remaining_error_count": self.remaining_error_count,
            "time_seconds": self.time_seconds,
            "turns": self.turns,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> RepairStats:
        return cls(
            behavior_modifications_detected=_as_int(
                payload.get("behavior_modifications_detected", 0),
                "RepairStats.behavior_modifications_detected",
            ),
            cost_usd=_as_float(payload.get("cost_usd", 0.0), "RepairStats.cost_usd"),
            initial_error_count=_as_int(
                payload.get("initial_error_count", 0), "RepairStats.initial_error_count"
            ),
            iterations=_as_int(payload.get("iterations", 0), "RepairStats.iterations"),
            remaining_error_count=_as_int(
                payload.get("remaining_error_count", 0), "RepairStats.remaining_error_count"
            ),
            time_seconds=_as_float(payload.get("time_seconds", 0.0), "RepairStats.time_seconds"),
            turns=_as_int(payload.get("turns", 0), "RepairStats.turns"),
        )


@dataclass(slots=True)
class RepairSession:
    """Mutable per-scope loop state threaded through every oracle invocation.

    ``session_handle`` is ``None`` when the next invocation must start a fresh conversation.
    """

    file_scope: str | None
    session_handle: str | None = None
    iteration: int = 0
    cost_usd: float = 0.0
    turns: int = 0
    behavior_violations: int = 0
    diagnostics: tuple[Diagnostic, ...] = ()
    initial_error_count: int = 0
    remaining_error_count: int = 0

    @property
    def scope_label(self) -> str:
        return self.file_scope if self.file_scope is not None else "the project"

    @property
    def is_project_scope(self) -> bool:
        return self.file_scope is None

    def record_invocation(self, result: OracleResult) -> None:
        self.session_handle = result.session_handle
        self.cost_usd += result.cost_usd
        self.turns += result.turns

    def record_check(self, diagnostics: tuple[Diagnostic, ...]) -> None:
        self.diagnostics = diagnostics
        self.remaining_error_count = len(diagnostics)

    def reset_session(self) -> None:
        self.session_handle = None

    def to_stats(self, *, time_seconds: float) -> RepairStats:
        return RepairStats(
            behavior_modifications_detected=self.behavior_violations,
            cost_usd=self.cost_usd,
            initial_error_count=self.initial_error_count,
            iterations=self.iteration,
            remaining_error_count=self.remaining_error_count,
            time_seconds=max(0.0, time_seconds),
            turns=self.turns,
        )


@dataclass(frozen=True, slots=True)
class ScopeOutcome:
    """Result of one repair scope. ``succeeded=False`` is a reported, non-fatal failure."""

    file_scope: str | None
    succeeded: bool
    stats: RepairStats
    suppressed: bool = False

    @property
    def scope_label(self) -> str:
        return self.file_scope if self.file_scope is not None else "the project"


@dataclass(frozen=True, slots=True)
class ProjectRepairResult:
    """Aggregate result of one orchestrated phase run."""

    phase: Phase
    file_outcomes: tuple[ScopeOutcome, ...]
    cleanup_outcome: ScopeOutcome | None
    remaining_error_count: int
    time_seconds: float = 0.0
    processing_order: tuple[str, ...] = field(default=())

    @property
    def succeeded(self) -> bool:
        return self.remaining_error_count == 0

    @property
    def failed_scopes(self) -> tuple[str, ...]:
        outcomes = list(self.file_outcomes)
        if self.cleanup_outcome is not None:
            outcomes.append(self.cleanup_outcome)
        return tuple(item.scope_label for item in outcomes if not item.succeeded)

    @property
    def totals(self) -> RepairStats:
        total = RepairStats()
        for outcome in self.file_outcomes:
            total = total + outcome.stats
        if self.cleanup_outcome is not None:
            total = total + self.cleanup_outcome.stats
        return total


def _normalize(path: Path) -> str:
    # Normalize without following symlinks so reported paths match what checkers print.
    parts: list[str] = []
    for part in path.parts:
        if part == "..":
            if len(parts) > 1:
                parts.pop()
            continue
        if part == ".":
            continue
        parts.append(part)
    return str(Path(*parts)) if parts else str(path)


def _as_int(value: object, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    return value


def _as_float(value: object, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    return float(value)


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "Diagnostic",
    "DiagnosticSource",
    "JSONScalar",
    "JSONValue",
    "Phase",
    "Project",
    "ProjectRepairResult",
    "RepairSession",
    "RepairStats",
    "ScopeOutcome",
]
