"""
typelift — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-16

Purpose
- Validate structured JSON logging with redaction, structlog routing and queue-backed reliability.

What this test file should cover
- JSON line validity and redaction guarantees.
- structlog keyword fields arriving as record fields.
- Multi-threaded logging stability and shutdown flushing.

Functional requirements
- Offline operation.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from typelift.observability.logging import (
    LoggingConfig,
    configure_logging,
    default_log_redactor,
    get_active_logging_handle,
    new_run_id,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"typelift.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_lines_are_written_per_run_and_redacted(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = configure_logging(
        LoggingConfig(run_id="run-redaction", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    logger.info(
        "payload token=tok-FAKE and key sk-ant-FAKE1234567890abcd",
        extra={"nested": {"password": "hunter2", "safe": "ok"}, "turns": 4},
    )
    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "run-redaction" / "typelift.jsonl"
    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    event = parsed[0]
    assert event["run_id"] == "run-redaction"
    assert event["level"] == "INFO"
    assert event["fields"] == {"nested": {"password": "***REDACTED***", "safe": "ok"}, "turns": 4}
    line = handle.log_path.read_text(encoding="utf-8")
    assert "tok-FAKE" not in line
    assert "sk-ant-FAKE" not in line
    assert "hunter2" not in line


def test_structlog_events_are_routed_into_the_run_log(tmp_path: Path) -> None:
    handle = configure_logging(LoggingConfig(run_id="run-structlog", base_log_dir=tmp_path))

    structlog.get_logger(f"typelift.{uuid4().hex}").info(
        "scope_completed", scope="pkg/a.py", remaining=0
    )
    shutdown_logging(handle)

    events = _read_json_lines(handle.log_path)
    assert [event["message"] for event in events] == ["scope_completed"]
    assert events[0]["fields"] == {"remaining": 0, "scope": "pkg/a.py"}


def test_level_filtering_applies_to_every_sink(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = configure_logging(
        LoggingConfig(
            run_id="run-level", base_log_dir=tmp_path, logger_name=logger_name, level="warning"
        )
    )
    logger = logging.getLogger(logger_name)

    logger.info("hidden")
    logger.warning("shown")
    shutdown_logging(handle)

    assert [event["message"] for event in _read_json_lines(handle.log_path)] == ["shown"]


def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = configure_logging(
        LoggingConfig(run_id="run-threaded", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        for i in range(per_thread):
            logger.info(
                f"thread={thread_idx} index={i}",
                extra={"api_key": f"sk-FAKE-{thread_idx}-{i}"},
            )

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    shutdown_logging(handle)

    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert handle.dropped_records == 0
    assert len(lines) == total_threads * per_thread
    assert all("sk-FAKE" not in line for line in lines)


def test_configuring_again_shuts_down_the_previous_handle(tmp_path: Path) -> None:
    first = configure_logging(LoggingConfig(run_id="run-1", base_log_dir=tmp_path))
    second = configure_logging(LoggingConfig(run_id="run-2", base_log_dir=tmp_path))

    assert first.is_shutdown is True
    assert get_active_logging_handle() is second
    shutdown_logging()
    assert get_active_logging_handle() is None


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"run_id": "  "}, "run_id must not be empty"),
        ({"queue_size": 0}, "queue_size"),
        ({"level": "LOUD"}, "unsupported logging level"),
    ],
)
def test_invalid_logging_config_is_rejected(
    tmp_path: Path, overrides: dict[str, object], message: str
) -> None:
    values: dict[str, object] = {"run_id": "run-invalid", "base_log_dir": tmp_path}
    values.update(overrides)

    with pytest.raises(ValueError, match=message):
        configure_logging(LoggingConfig(**values))  # type: ignore[arg-type]


def test_run_id_is_a_utc_timestamp() -> None:
    moment = datetime(2026, 10, 16, 8, 30, 5, tzinfo=UTC)

    assert new_run_id(moment) == "20261016T083005Z"


def test_default_redactor_handles_strings_and_keys() -> None:
    redacted = default_log_redactor(
        {
            "authorization": "Bearer abc.def",
            "detail": "password=hunter2, Bearer abc.def",
            "items": ["api_key: sk-1"],
            "tokens": 12,
        }
    )

    assert redacted == {
        "authorization": "***REDACTED***",
        "detail": "password=***REDACTED***, Bearer ***REDACTED***",
        "items": ["api_key=***REDACTED***"],
        "tokens": 12,
    }


@pytest.mark.parametrize(
    ("key", "secret"),
    [
        ("session_token", True),
        ("ANTHROPIC_API_KEY", True),
        ("cookie", True),
        ("tokens", False),
        ("turns", False),
        ("keyword", False),
    ],
)
def test_secret_keys_are_matched_by_name_parts(key: str, secret: bool) -> None:
    redacted = default_log_redactor({key: "value"})

    assert (redacted[key] == "***REDACTED***") is secret
