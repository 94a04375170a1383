"""Unit tests for config schema validation and the typed settings view."""

from __future__ import annotations

from typing import Any

import pytest

from typelift.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    RepairSettings,
    TypeliftSettings,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _config_with(section: str, **values: object) -> dict[str, Any]:
    return merge_config(default_config(), {section: values})


def test_defaults_are_valid() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config == merge_config({}, DEFAULT_CONFIG)


def test_default_config_returns_independent_copies() -> None:
    first = default_config()
    first["checkers"]["targets"].append("src")

    assert default_config()["checkers"]["targets"] == ["."]


def test_missing_section_is_reported() -> None:
    config = default_config()
    del config["oracle"]  # type: ignore[misc]

    result = validate_config(config)

    assert not result.is_valid
    assert {issue.path: issue.message for issue in result.issues} == {
        "oracle": "missing required section"
    }


def test_unknown_fields_are_rejected_with_exact_paths() -> None:
    result = validate_config(merge_config(default_config(), {"repair": {"speed": 3}, "extra": {}}))

    paths = sorted(issue.path for issue in result.issues)
    assert paths == ["extra", "repair.speed"]


def test_type_and_range_violations_report_exact_path() -> None:
    result = validate_config(
        _config_with("repair", iterations_per_100_errors="five", session_reset_interval=0)
    )

    issues = {issue.path: issue.message for issue in result.issues}
    assert issues["repair.iterations_per_100_errors"] == "expected integer, got str"
    assert issues["repair.session_reset_interval"] == "must be >= 1"


def test_empty_targets_are_rejected() -> None:
    result = validate_config(_config_with("checkers", targets=[]))

    issues = {issue.path: issue.message for issue in result.issues}
    assert issues == {"checkers.targets": "must contain at least one target"}


def test_permission_mode_is_an_enum() -> None:
    result = validate_config(_config_with("oracle", permission_mode="yolo"))

    issues = {issue.path: issue.message for issue in result.issues}
    assert issues["oracle.permission_mode"].startswith("invalid value 'yolo'")


def test_schema_version_mismatch_carries_migration_guidance() -> None:
    result = validate_config(_config_with("meta", schema_version=2))

    issues = {issue.path: issue.message for issue in result.issues}
    assert issues["meta.schema_version"] == migration_guidance(2)
    assert "upgrade typelift" in migration_guidance(2)
    assert "older" in migration_guidance(0)


def test_validation_error_lists_every_issue() -> None:
    config = _config_with("concurrency", baseline_workers=0, full_coverage_workers="one")

    with pytest.raises(ConfigValidationError) as excinfo:
        TypeliftSettings.from_config(config)

    message = str(excinfo.value)
    assert message.startswith("invalid config:\n")
    assert "- concurrency.baseline_workers: must be >= 1" in message
    assert "- concurrency.full_coverage_workers: expected integer, got str" in message


def test_log_level_is_normalized_to_upper_case() -> None:
    settings = TypeliftSettings.from_config(_config_with("observability", log_level="warning"))

    assert settings.log_level == "WARNING"


def test_repair_settings_reject_non_positive_values() -> None:
    with pytest.raises(ValueError, match="session_reset_interval"):
        RepairSettings(session_reset_interval=0)
