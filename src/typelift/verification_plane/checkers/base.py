"""
typelift — checker command seam

File: src/typelift/verification_plane/checkers/base.py
Last updated: 2026-10-16

Purpose
- Defines the diagnostic-source interface (project + optional file scope in, error-severity
  diagnostics out) and the portable command execution contract checkers run through.

What should be included in this file
- CommandSpec / CommandResult / CommandExecutor and the local asyncio subprocess executor.
- DiagnosticChecker protocol and the CheckerExecutionError raised when a checker cannot run.
- Shared JSON-lines parsing for tools that print one report per line.

Functional requirements
- Executors never raise for a non-zero exit; checkers decide which exit codes are normal.
- Checkers must exclude non-error severities and checker-flagged redundant findings.

Non-functional requirements
- No real tool execution in unit tests; tests inject a fake CommandExecutor.
"""

from __future__ import annotations

import asyncio
import json
import os
import time
from collections.abc import Iterator, Mapping
from contextlib import suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typelift.domain.models import Diagnostic, Project

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class CheckerExecutionError(RuntimeError):
    """Raised when a checker cannot produce a trustworthy diagnostic list."""

    def __init__(self, checker: str, detail: str, *, argv: tuple[str, ...] = ()) -> None:
        self.checker = checker
        self.detail = " ".join(detail.split()) or "unknown error"
        self.argv = argv
        super().__init__(f"{checker} failed: {self.detail}")


@dataclass(slots=True)
class CommandSpec:
    """Portable command invocation contract used by checkers."""

    argv: tuple[str, ...]
    cwd: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    timeout_seconds: float | None = None
    allowed_exit_codes: tuple[int, ...] = (0,)

    def __post_init__(self) -> None:
        self.argv = tuple(self.argv)
        if not self.argv or any(not isinstance(item, str) or not item for item in self.argv):
            raise ValueError("CommandSpec.argv must be a non-empty tuple of non-empty strings")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("CommandSpec.timeout_seconds must be > 0")
        self.allowed_exit_codes = tuple(sorted(set(self.allowed_exit_codes)))
        if not self.allowed_exit_codes:
            raise ValueError("CommandSpec.allowed_exit_codes must not be empty")

    def build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        return env


@dataclass(slots=True)
class CommandResult:
    """Deterministic command execution outcome."""

    argv: tuple[str, ...]
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError("CommandResult.duration_ms must be >= 0")
        if self.timed_out and self.exit_code is not None:
            raise ValueError("CommandResult.exit_code must be None when timed_out is true")

    def is_success(self, spec: CommandSpec | None = None) -> bool:
        if self.timed_out or self.error is not None or self.exit_code is None:
            return False
        if spec is None:
            return self.exit_code == 0
        return self.exit_code in spec.allowed_exit_codes

    def failure_detail(self) -> str:
        if self.error is not None:
            return self.error
        if self.timed_out:
            return "command timed out"
        stderr = self.stderr.strip()
        tail = stderr.splitlines()[-1] if stderr else ""
        return f"exit code {self.exit_code}" + (f": {tail}" if tail else "")


@runtime_checkable
class CommandExecutor(Protocol):
    """Pluggable async command execution interface for checkers."""

    async def run(self, spec: CommandSpec) -> CommandResult: ...


class LocalSubprocessExecutor(CommandExecutor):
    """Async local subprocess executor with capture and timeout handling."""

    def __init__(self, *, default_timeout_seconds: float | None = None) -> None:
        if default_timeout_seconds is not None and default_timeout_seconds <= 0:
            raise ValueError("default_timeout_seconds must be > 0")
        self._default_timeout_seconds = default_timeout_seconds

    async def run(self, spec: CommandSpec) -> CommandResult:
        started_ns = time.monotonic_ns()
        timeout = (
            spec.timeout_seconds
            if spec.timeout_seconds is not None
            else self._default_timeout_seconds
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=spec.cwd,
                env=spec.build_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                stdout="",
                stderr="",
                duration_ms=_elapsed_ms(started_ns),
                error=str(exc),
            )

        try:
            if timeout is None:
                stdout_bytes, stderr_bytes = await process.communicate()
            else:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(
                    process.communicate(), timeout=timeout
                )
        except TimeoutError:
            with suppress(ProcessLookupError):
                process.kill()
            stdout_bytes, stderr_bytes = await process.communicate()
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                stdout=_normalize_output_text(stdout_bytes),
                stderr=_normalize_output_text(stderr_bytes),
                duration_ms=_elapsed_ms(started_ns),
                timed_out=True,
                error=f"command timed out after {timeout:.3f}s",
            )
        except asyncio.CancelledError:
            with suppress(ProcessLookupError):
                process.kill()
            await process.communicate()
            raise

        return CommandResult(
            argv=spec.argv,
            exit_code=process.returncode,
            stdout=_normalize_output_text(stdout_bytes),
            stderr=_normalize_output_text(stderr_bytes),
            duration_ms=_elapsed_ms(started_ns),
        )


@runtime_checkable
class DiagnosticChecker(Protocol):
    """Diagnostic source: project plus optional single-file scope in, diagnostics out."""

    checker_id: str

    async def query(
        self, project: Project, file_scope: str | None = None
    ) -> tuple[Diagnostic, ...]: ...


class CommandChecker:
    """Shared plumbing for checkers that shell out to a JSON-reporting tool."""

    checker_id = "command"
    default_command: tuple[str, ...] = ()
    allowed_exit_codes: tuple[int, ...] = (0, 1)

    def __init__(
        self,
        *,
        executor: CommandExecutor | None = None,
        command: tuple[str, ...] | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._executor = executor if executor is not None else LocalSubprocessExecutor()
        self._command = tuple(command) if command else self.default_command
        if not self._command:
            raise ValueError(f"{type(self).__name__} requires a command")
        self._timeout_seconds = timeout_seconds

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    async def execute(self, argv: tuple[str, ...], *, cwd: str) -> CommandResult:
        spec = CommandSpec(
            argv=argv,
            cwd=cwd,
            env={"NO_COLOR": "1"},
            timeout_seconds=self._timeout_seconds,
            allowed_exit_codes=self.allowed_exit_codes,
        )
        result = await self._executor.run(spec)
        if not result.is_success(spec):
            raise CheckerExecutionError(self.checker_id, result.failure_detail(), argv=argv)
        return result


def iter_json_lines(text: str) -> Iterator[dict[str, JSONValue]]:
    """Yield JSON objects from ``text``, skipping lines that are not JSON objects."""

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line.startswith("{"):
            continue
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            yield parsed


def coerce_position(value: object, *, zero_based: bool = False) -> int:
    """Convert a reported line/column to a 1-based position clamped to >= 1."""

    if isinstance(value, bool) or not isinstance(value, int):
        return 1
    position = value + 1 if zero_based else value
    return max(position, 1)


def _elapsed_ms(started_ns: int) -> int:
    delta_ns = time.monotonic_ns() - started_ns
    if delta_ns < 0:
        return 0
    return delta_ns // 1_000_000


def _normalize_output_text(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    return text.replace("\r\n", "\n").replace("\r", "\n")


__all__ = [
    "CheckerExecutionError",
    "CommandChecker",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "DiagnosticChecker",
    "LocalSubprocessExecutor",
    "coerce_position",
    "iter_json_lines",
]
