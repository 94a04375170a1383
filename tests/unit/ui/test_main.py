"""Unit tests for the process exit-code contract of the CLI entrypoint."""

from __future__ import annotations

from collections.abc import Callable

import pytest

import typelift.ui.cli as cli
from typelift.config import ConfigLoadError
from typelift.main import ExitCode, cli_entrypoint
from typelift.persistence import ProjectStateError
from typelift.synthesis_plane.providers import (
    ProviderQuotaExhaustedError,
    ProviderUnavailableError,
)


def _raising(exc: BaseException) -> Callable[[object], int]:
    def run_cli(argv: object) -> int:
        raise exc

    return run_cli


def _chained_quota_error() -> RuntimeError:
    try:
        raise ProviderQuotaExhaustedError("Weekly limit reached", provider="claude_agent")
    except ProviderQuotaExhaustedError as quota:
        wrapped = RuntimeError("worker pool stopped")
        wrapped.__cause__ = quota
        return wrapped


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ConfigLoadError("config file not found"), ExitCode.CONFIG_ERROR),
        (ProjectStateError("bad state"), ExitCode.CONFIG_ERROR),
        (ProviderUnavailableError("claude-agent-sdk is not installed"), ExitCode.PROVIDER_ERROR),
        (_chained_quota_error(), ExitCode.QUOTA_EXHAUSTED),
        (KeyError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exceptions_are_routed_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch, exc: BaseException, expected: ExitCode
) -> None:
    monkeypatch.setattr(cli, "run_cli", _raising(exc))

    assert cli_entrypoint(["status", "demo"]) == int(expected)


def test_quota_exhaustion_explains_how_to_resume(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    quota = ProviderQuotaExhaustedError("Usage limit reached")
    monkeypatch.setattr(cli, "run_cli", _raising(quota))

    exit_code = cli_entrypoint([])

    err = capsys.readouterr().err
    assert exit_code == ExitCode.QUOTA_EXHAUSTED
    assert "Usage quota exhausted. Progress so far is saved" in err
    assert "Traceback" not in err


def test_internal_errors_print_a_traceback(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "run_cli", _raising(KeyError("boom")))

    cli_entrypoint([])

    assert "Traceback" in capsys.readouterr().err


@pytest.mark.parametrize(("raw", "expected"), [(0, 0), (1, 1), (5, 5), (None, 0), (42, 4)])
def test_return_and_system_exit_codes_are_normalized(
    monkeypatch: pytest.MonkeyPatch, raw: int | None, expected: int
) -> None:
    monkeypatch.setattr(cli, "run_cli", _raising(SystemExit(raw)))

    assert cli_entrypoint([]) == expected


def test_argparse_errors_exit_two(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["frobnicate"]) == ExitCode.CONFIG_ERROR
    assert "invalid choice" in capsys.readouterr().err
