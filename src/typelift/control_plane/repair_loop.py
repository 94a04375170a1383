"""
typelift — repair iteration controller

File: src/typelift/control_plane/repair_loop.py
Last updated: 2026-10-16

Purpose
- Drive the oracle on one scope (a file or the whole project) until the checkers report zero
  errors or the iteration cap is reached.

What should be included in this file
- Iteration cap computation.
- The check, instruct, invoke, re-check loop with periodic session resets.
- Suppression fallback for files whose diagnostics do not fit into one oracle request.

Functional requirements
- Zero initial errors means success without any oracle invocation.
- Cap reached with errors remaining is a reported failure, never an exception.
- Quota exhaustion propagates; oversized input on the project scope propagates.
- Rate limiting is logged and the loop continues with the next re-check.
"""

from __future__ import annotations

import math
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Final

import structlog

from typelift.config.schema import RepairSettings
from typelift.constants import FILE_LINT_SUPPRESSION_DIRECTIVE, FILE_SUPPRESSION_DIRECTIVE
from typelift.domain.models import Phase, RepairSession, ScopeOutcome
from typelift.synthesis_plane.error_context import format_errors_with_context
from typelift.synthesis_plane.providers.base import (
    OracleOptions,
    ProviderContextLengthError,
    ProviderRateLimitError,
)
from typelift.utils.fs import atomic_write

if TYPE_CHECKING:
    from collections.abc import Callable

    from typelift.domain.models import Project
    from typelift.synthesis_plane.prompt_templates import InstructionBuilder
    from typelift.synthesis_plane.providers.base import TransformationOracle
    from typelift.verification_plane.behavior_gate import BehaviorGate
    from typelift.verification_plane.diagnostics import DiagnosticAggregator

logger = structlog.get_logger(__name__)

_CODING_COOKIE_RE: Final[re.Pattern[str]] = re.compile(r"^[ \t\f]*#.*?coding[:=][ \t]*[-\w.]+")


def iteration_cap(error_count: int, iterations_per_100_errors: int) -> int:
    """Number of oracle invocations allowed for a scope with ``error_count`` initial errors."""

    if error_count <= 0:
        return 0
    if error_count < 100:
        return iterations_per_100_errors
    return math.ceil(error_count * iterations_per_100_errors / 100)


class RepairIterationController:
    """Runs the bounded repair loop for one scope at a time."""

    def __init__(
        self,
        project: Project,
        *,
        aggregator: DiagnosticAggregator,
        oracle: TransformationOracle,
        gate: BehaviorGate,
        instructions: InstructionBuilder,
        settings: RepairSettings | None = None,
        edit_permission: str = "acceptEdits",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._project = project
        self._aggregator = aggregator
        self._oracle = oracle
        self._gate = gate
        self._instructions = instructions
        self._settings = settings if settings is not None else RepairSettings()
        self._edit_permission = edit_permission
        self._clock = clock

    async def run(self, file_scope: str | None = None) -> ScopeOutcome:
        started = self._clock()
        session = RepairSession(file_scope=file_scope)
        diagnostics = await self._aggregator.get_errors(self._project, file_scope)
        session.initial_error_count = len(diagnostics)
        session.record_check(diagnostics)

        if not diagnostics:
            return self._outcome(session, started, succeeded=True)

        cap = iteration_cap(len(diagnostics), self._settings.iterations_per_100_errors)
        logger.info(
            "scope_repair_started",
            scope=session.scope_label,
            errors=len(diagnostics),
            max_iterations=cap,
        )

        for iteration in range(1, cap + 1):
            session.iteration = iteration
            formatted = format_errors_with_context(
                session.diagnostics,
                self._project,
                max_errors=self._settings.max_errors_per_batch,
            )
            instruction = self._instructions.build(self._project, session, formatted)
            options = OracleOptions(
                working_directory=str(self._project.root),
                edit_permission=self._edit_permission,
                resume_session=session.session_handle,
                on_pre_edit=self._gate.on_pre_edit,
                on_post_edit=self._gate.on_post_edit,
                verbose=self._project.phase is Phase.FULL_COVERAGE,
            )
            logger.info(
                "repair_iteration_started",
                scope=session.scope_label,
                iteration=iteration,
                max_iterations=cap,
                errors=session.remaining_error_count,
                resumed=session.session_handle is not None,
            )

            try:
                result = await self._oracle.invoke(instruction, options)
            except ProviderContextLengthError:
                if file_scope is None:
                    raise
                self._suppress(file_scope)
                session.remaining_error_count = 0
                return self._outcome(session, started, succeeded=True, suppressed=True)
            except ProviderRateLimitError as exc:
                logger.warning(
                    "oracle_rate_limited",
                    scope=session.scope_label,
                    iteration=iteration,
                    detail=exc.detail,
                )
            else:
                session.record_invocation(result)

            diagnostics = await self._aggregator.get_errors(self._project, file_scope)
            session.record_check(diagnostics)
            if not diagnostics:
                logger.info(
                    "scope_repair_succeeded", scope=session.scope_label, iterations=iteration
                )
                return self._outcome(session, started, succeeded=True)

            if iteration % self._settings.session_reset_interval == 0:
                logger.info("session_reset", scope=session.scope_label, iteration=iteration)
                session.reset_session()

        logger.warning(
            "scope_repair_failed",
            scope=session.scope_label,
            remaining=session.remaining_error_count,
            iterations=session.iteration,
        )
        return self._outcome(session, started, succeeded=False)

    def _suppress(self, file_scope: str) -> None:
        path = Path(self._project.resolve(file_scope))
        directives = [FILE_SUPPRESSION_DIRECTIVE]
        if self._project.lint_active:
            directives.append(FILE_LINT_SUPPRESSION_DIRECTIVE)
        inserted = insert_file_directives(path, directives)
        logger.warning(
            "scope_suppressed",
            scope=file_scope,
            reason="context_length",
            inserted=list(inserted),
        )

    def _outcome(
        self,
        session: RepairSession,
        started: float,
        *,
        succeeded: bool,
        suppressed: bool = False,
    ) -> ScopeOutcome:
        session.behavior_violations = self._gate.violations
        return ScopeOutcome(
            file_scope=session.file_scope,
            succeeded=succeeded,
            stats=session.to_stats(time_seconds=self._clock() - started),
            suppressed=suppressed,
        )


def insert_file_directives(path: Path, directives: list[str]) -> tuple[str, ...]:
    """Insert file-level directives after any shebang and encoding lines.

    Directives already present in the file are not inserted again. Returns the inserted ones.
    """

    text = path.read_text(encoding="utf-8")
    lines = text.splitlines(keepends=True)
    present = {line.strip() for line in lines}
    missing = tuple(item for item in directives if item not in present)
    if not missing:
        return ()

    insert_at = 0
    if lines and lines[0].startswith("#!"):
        insert_at = 1
    # An encoding cookie is only honored on the first two lines.
    while insert_at < min(len(lines), 2) and _CODING_COOKIE_RE.match(lines[insert_at]):
        insert_at += 1

    if insert_at > 0 and not lines[insert_at - 1].endswith("\n"):
        lines[insert_at - 1] += "\n"
    lines[insert_at:insert_at] = [f"{item}\n" for item in missing]
    atomic_write(path, "".join(lines))
    return missing


__all__ = ["RepairIterationController", "insert_file_directives", "iteration_cap"]
