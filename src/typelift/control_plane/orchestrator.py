"""
typelift — concurrency orchestrator

File: src/typelift/control_plane/orchestrator.py
Last updated: 2026-10-16

Purpose
- Run one phase over a project: repair every file with errors through a bounded worker pool in
  dependency order, then run one project-scope cleanup.

What should be included in this file
- RepairRun: per-run state (snapshot table, scope outcomes) and the partial result view.
- Worker pool pulling from the FileSchedule with cooperative cancellation.
- Final project check.

Functional requirements
- Worker count is ``min(phase limit, files with errors)``.
- A worker pulls a new file only after finishing its current one.
- A fatal error stops other workers from pulling new files; in-flight files finish, then the
  first fatal error is re-raised.
- Every finished file scope is reported through ``on_scope_finished`` so progress survives a
  fatal error.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from typelift.config.schema import TypeliftSettings
from typelift.control_plane.file_schedule import FileSchedule
from typelift.control_plane.repair_loop import RepairIterationController
from typelift.domain.models import ProjectRepairResult, RepairStats
from typelift.planning.dependency_graph import DependencyGraph
from typelift.synthesis_plane.prompt_templates import InstructionBuilder
from typelift.utils.concurrency import CancellationToken
from typelift.verification_plane.behavior_gate import BehaviorGate, SnapshotTable
from typelift.verification_plane.lowering import lower_file

if TYPE_CHECKING:
    from collections.abc import Callable

    from typelift.domain.models import Phase, Project, ScopeOutcome
    from typelift.synthesis_plane.providers.base import TransformationOracle
    from typelift.verification_plane.behavior_gate import Lowerer
    from typelift.verification_plane.diagnostics import DiagnosticAggregator

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class RepairRun:
    """State owned by one orchestrated run and discarded when it ends."""

    started: float = 0.0
    snapshots: SnapshotTable = field(default_factory=SnapshotTable)
    file_outcomes: list[ScopeOutcome] = field(default_factory=list)
    processing_order: list[str] = field(default_factory=list)

    def record(self, outcome: ScopeOutcome) -> None:
        self.file_outcomes.append(outcome)

    @property
    def totals(self) -> RepairStats:
        total = RepairStats()
        for outcome in self.file_outcomes:
            total = total + outcome.stats
        return total

    def partial_result(self, phase: Phase, now: float) -> ProjectRepairResult:
        """Result over the file scopes finished so far, before cleanup and the final check."""

        return ProjectRepairResult(
            phase=phase,
            file_outcomes=tuple(self.file_outcomes),
            cleanup_outcome=None,
            remaining_error_count=sum(
                outcome.stats.remaining_error_count for outcome in self.file_outcomes
            ),
            time_seconds=max(0.0, now - self.started),
            processing_order=tuple(self.processing_order),
        )


class ProjectRepairOrchestrator:
    """Coordinates repair workers for a single phase of a project."""

    def __init__(
        self,
        project: Project,
        *,
        aggregator: DiagnosticAggregator,
        oracle: TransformationOracle,
        settings: TypeliftSettings,
        instructions: InstructionBuilder | None = None,
        graph_builder: Callable[[Project], DependencyGraph] = DependencyGraph.build,
        lowerer: Lowerer = lower_file,
        clock: Callable[[], float] = time.monotonic,
        on_scope_finished: Callable[[ProjectRepairResult], None] | None = None,
    ) -> None:
        self._project = project
        self._aggregator = aggregator
        self._oracle = oracle
        self._settings = settings
        self._instructions = (
            instructions
            if instructions is not None
            else InstructionBuilder(session_reset_interval=settings.repair.session_reset_interval)
        )
        self._graph_builder = graph_builder
        self._lowerer = lowerer
        self._clock = clock
        self._on_scope_finished = on_scope_finished

    async def run(self) -> ProjectRepairResult:
        started = self._clock()
        run = RepairRun(started=started)

        errors_per_file = await self._aggregator.get_errors_per_file(self._project)
        files = list(errors_per_file)
        graph = await asyncio.to_thread(self._graph_builder, self._project)
        schedule = FileSchedule(graph, files)

        limit = self._settings.workers_for(self._project.phase)
        worker_count = min(limit, len(files))
        logger.info(
            "phase_started",
            project=self._project.name,
            phase=self._project.phase.label,
            files=len(files),
            errors=sum(len(items) for items in errors_per_file.values()),
            workers=worker_count,
        )

        token = CancellationToken()
        await asyncio.gather(
            *(self._worker(index, schedule, run, token) for index in range(worker_count))
        )
        if token.reason is not None:
            raise token.reason

        cleanup = await self._controller(run).run(None)
        remaining = await self._aggregator.get_errors(self._project)

        result = ProjectRepairResult(
            phase=self._project.phase,
            file_outcomes=tuple(run.file_outcomes),
            cleanup_outcome=cleanup,
            remaining_error_count=len(remaining),
            time_seconds=max(0.0, self._clock() - started),
            processing_order=tuple(run.processing_order),
        )
        logger.info(
            "phase_finished",
            project=self._project.name,
            phase=self._project.phase.label,
            remaining=result.remaining_error_count,
            failed_scopes=len(result.failed_scopes),
            cost_usd=round(result.totals.cost_usd, 4),
        )
        return result

    async def _worker(
        self,
        worker_id: int,
        schedule: FileSchedule,
        run: RepairRun,
        token: CancellationToken,
    ) -> None:
        while not token.is_cancelled and schedule.has_unprocessed_files():
            path = schedule.shift()
            run.processing_order.append(path)
            scope = self._project.relative(path)
            try:
                outcome = await self._controller(run).run(scope)
            except Exception as exc:
                logger.error(
                    "worker_failed",
                    worker=worker_id,
                    scope=scope,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                token.cancel(exc)
                return
            finally:
                schedule.mark_as_processed(path)
            run.record(outcome)
            if self._on_scope_finished is not None:
                self._on_scope_finished(run.partial_result(self._project.phase, self._clock()))

    def _controller(self, run: RepairRun) -> RepairIterationController:
        gate = BehaviorGate(self._project, run.snapshots, lowerer=self._lowerer)
        return RepairIterationController(
            self._project,
            aggregator=self._aggregator,
            oracle=self._oracle,
            gate=gate,
            instructions=self._instructions,
            settings=self._settings.repair,
            edit_permission=self._settings.permission_mode,
            clock=self._clock,
        )


__all__ = ["ProjectRepairOrchestrator", "RepairRun"]
