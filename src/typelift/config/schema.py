"""
typelift — configuration schema and validation.

File: src/typelift/config/schema.py
Last updated: 2026-10-16

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for types, enums and numeric constraints.
- Deterministic deep-merge helper.
- Typed settings view handed to the control plane.

Functional requirements
- Validate config payloads and return structured errors (field path + message).

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, TypedDict

from typelift.constants import (
    BASELINE_WORKERS,
    CONFIG_SCHEMA_VERSION,
    FULL_COVERAGE_WORKERS,
    ITERATIONS_PER_100_ERRORS,
    LOG_DIR,
    MAX_ERRORS_PER_BATCH,
    SESSION_RESET_INTERVAL,
    WORKDIR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
LOG_LEVELS: Final[tuple[str, ...]] = ("CRITICAL", "DEBUG", "ERROR", "INFO", "WARNING")
PERMISSION_MODES: Final[tuple[str, ...]] = ("acceptEdits", "bypassPermissions", "default")

# Config paths that are normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "workdir"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class RepairConfig(TypedDict):
    iterations_per_100_errors: int
    session_reset_interval: int
    max_errors_per_batch: int


class ConcurrencyConfig(TypedDict):
    baseline_workers: int
    full_coverage_workers: int


class CheckersConfig(TypedDict):
    mypy_command: str
    ruff_command: str
    lint_enabled: bool
    targets: list[str]
    extra_source_roots: list[str]
    timeout_seconds: float


class OracleConfig(TypedDict):
    permission_mode: str
    max_continuations: int
    model: str


class PathsConfig(TypedDict):
    workdir: str


class ObservabilityConfig(TypedDict):
    log_level: str
    log_dir: str
    log_to_stdout: bool


class TypeliftConfig(TypedDict):
    meta: MetaConfig
    repair: RepairConfig
    concurrency: ConcurrencyConfig
    checkers: CheckersConfig
    oracle: OracleConfig
    paths: PathsConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[TypeliftConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "repair": {
        "iterations_per_100_errors": ITERATIONS_PER_100_ERRORS,
        "session_reset_interval": SESSION_RESET_INTERVAL,
        "max_errors_per_batch": MAX_ERRORS_PER_BATCH,
    },
    "concurrency": {
        "baseline_workers": BASELINE_WORKERS,
        "full_coverage_workers": FULL_COVERAGE_WORKERS,
    },
    "checkers": {
        "mypy_command": "mypy",
        "ruff_command": "ruff",
        "lint_enabled": True,
        "targets": ["."],
        "extra_source_roots": [],
        "timeout_seconds": 900.0,
    },
    "oracle": {
        "permission_mode": "acceptEdits",
        "max_continuations": 3,
        "model": "",
    },
    "paths": {"workdir": WORKDIR.as_posix()},
    "observability": {
        "log_level": "INFO",
        "log_dir": LOG_DIR.as_posix(),
        "log_to_stdout": False,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


@dataclass(frozen=True, slots=True)
class RepairSettings:
    iterations_per_100_errors: int = ITERATIONS_PER_100_ERRORS
    session_reset_interval: int = SESSION_RESET_INTERVAL
    max_errors_per_batch: int = MAX_ERRORS_PER_BATCH

    def __post_init__(self) -> None:
        if self.iterations_per_100_errors <= 0:
            raise ValueError("iterations_per_100_errors must be > 0")
        if self.session_reset_interval <= 0:
            raise ValueError("session_reset_interval must be > 0")
        if self.max_errors_per_batch <= 0:
            raise ValueError("max_errors_per_batch must be > 0")


@dataclass(frozen=True, slots=True)
class TypeliftSettings:
    """Typed, validated view over an effective config mapping."""

    repair: RepairSettings
    baseline_workers: int
    full_coverage_workers: int
    mypy_command: tuple[str, ...]
    ruff_command: tuple[str, ...]
    lint_enabled: bool
    targets: tuple[str, ...]
    extra_source_roots: tuple[str, ...]
    checker_timeout_seconds: float
    permission_mode: str
    max_continuations: int
    model: str | None
    workdir: Path
    log_level: str
    log_dir: Path
    log_to_stdout: bool

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> TypeliftSettings:
        validated = assert_valid_config(config)
        repair = validated["repair"]
        concurrency = validated["concurrency"]
        checkers = validated["checkers"]
        oracle = validated["oracle"]
        observability = validated["observability"]
        return cls(
            repair=RepairSettings(
                iterations_per_100_errors=repair["iterations_per_100_errors"],
                session_reset_interval=repair["session_reset_interval"],
                max_errors_per_batch=repair["max_errors_per_batch"],
            ),
            baseline_workers=concurrency["baseline_workers"],
            full_coverage_workers=concurrency["full_coverage_workers"],
            mypy_command=tuple(checkers["mypy_command"].split()),
            ruff_command=tuple(checkers["ruff_command"].split()),
            lint_enabled=checkers["lint_enabled"],
            targets=tuple(checkers["targets"]),
            extra_source_roots=tuple(checkers["extra_source_roots"]),
            checker_timeout_seconds=checkers["timeout_seconds"],
            permission_mode=oracle["permission_mode"],
            max_continuations=oracle["max_continuations"],
            model=oracle["model"] or None,
            workdir=Path(validated["paths"]["workdir"]),
            log_level=observability["log_level"],
            log_dir=Path(observability["log_dir"]),
            log_to_stdout=observability["log_to_stdout"],
        )

    def workers_for(self, phase: int) -> int:
        return self.baseline_workers if phase == 1 else self.full_coverage_workers


def default_config() -> TypeliftConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade typelift.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade typelift"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate a complete config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, set(DEFAULT_CONFIG), "", issues)
    out: dict[str, Any] = {}
    validators: dict[str, Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]]] = {
        "meta": _validate_meta,
        "repair": _validate_repair,
        "concurrency": _validate_concurrency,
        "checkers": _validate_checkers,
        "oracle": _validate_oracle,
        "paths": _validate_paths,
        "observability": _validate_observability,
    }
    for key, validator in validators.items():
        raw = root.get(key)
        if raw is None:
            issues.add(key, "missing required section")
            continue
        section = _as_object(raw, key, issues)
        if section is not None:
            out[key] = validator(section, key, issues)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=out, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_meta(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    parsed = _as_int(
        payload.get("schema_version"), _join(path, "schema_version"), issues, minimum=1
    )
    if parsed is not None:
        out["schema_version"] = parsed
        if parsed != ConfigSchemaVersion:
            issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_repair(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    keys = ("iterations_per_100_errors", "session_reset_interval", "max_errors_per_batch")
    _reject_unknown_keys(payload, set(keys), path, issues)
    return {key: _as_int(payload.get(key), _join(path, key), issues, minimum=1) for key in keys}


def _validate_concurrency(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    keys = ("baseline_workers", "full_coverage_workers")
    _reject_unknown_keys(payload, set(keys), path, issues)
    return {key: _as_int(payload.get(key), _join(path, key), issues, minimum=1) for key in keys}


def _validate_checkers(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(DEFAULT_CONFIG["checkers"]), path, issues)
    targets = _as_str_list(payload.get("targets"), _join(path, "targets"), issues)
    if targets is not None and not targets:
        issues.add(_join(path, "targets"), "must contain at least one target")
    return {
        "mypy_command": _as_str(payload.get("mypy_command"), _join(path, "mypy_command"), issues),
        "ruff_command": _as_str(payload.get("ruff_command"), _join(path, "ruff_command"), issues),
        "lint_enabled": _as_bool(payload.get("lint_enabled"), _join(path, "lint_enabled"), issues),
        "targets": targets,
        "extra_source_roots": _as_str_list(
            payload.get("extra_source_roots"), _join(path, "extra_source_roots"), issues
        ),
        "timeout_seconds": _as_float(
            payload.get("timeout_seconds"), _join(path, "timeout_seconds"), issues, minimum=1.0
        ),
    }


def _validate_oracle(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(DEFAULT_CONFIG["oracle"]), path, issues)
    model = payload.get("model")
    if not isinstance(model, str):
        issues.add(_join(path, "model"), f"expected string, got {type(model).__name__}")
        model = ""
    return {
        "permission_mode": _as_enum(
            payload.get("permission_mode"),
            _join(path, "permission_mode"),
            issues,
            allowed_values=PERMISSION_MODES,
        ),
        "max_continuations": _as_int(
            payload.get("max_continuations"), _join(path, "max_continuations"), issues, minimum=0
        ),
        "model": model.strip(),
    }


def _validate_paths(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"workdir"}, path, issues)
    return {"workdir": _as_path_text(payload.get("workdir"), _join(path, "workdir"), issues)}


def _validate_observability(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(DEFAULT_CONFIG["observability"]), path, issues)
    level = payload.get("log_level")
    if isinstance(level, str):
        level = level.strip().upper()
    return {
        "log_level": _as_enum(
            level, _join(path, "log_level"), issues, allowed_values=LOG_LEVELS
        ),
        "log_dir": _as_path_text(payload.get("log_dir"), _join(path, "log_dir"), issues),
        "log_to_stdout": _as_bool(
            payload.get("log_to_stdout"), _join(path, "log_to_stdout"), issues
        ),
    }


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, Sequence):
        issues.add(path, f"expected array of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: copy.deepcopy(value[key]) for key in sorted(value)}


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "RepairSettings",
    "TypeliftConfig",
    "TypeliftSettings",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
