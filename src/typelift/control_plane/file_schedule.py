"""Dependency-aware file schedule shared by repair workers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from typelift.planning.dependency_graph import DependencyGraph

logger = structlog.get_logger(__name__)


class ScheduleExhaustedError(LookupError):
    """Raised by ``shift`` when no unprocessed file remains."""


class FileSchedule:
    """Hands out files fewest-pending-dependencies first.

    A file is in exactly one state: unprocessed, in progress, or done (in neither set).
    Transitions are synchronous, so they are atomic between await points. Files the
    dependency graph never visited (stubs, files outside the source roots) are recorded in
    ``unknown_to_graph`` and count as having no pending dependencies.
    """

    __slots__ = ("_graph", "_unprocessed", "_in_progress", "_unknown")

    def __init__(self, graph: DependencyGraph, files: Iterable[str]) -> None:
        self._graph = graph
        self._unprocessed: set[str] = set(files)
        self._in_progress: set[str] = set()
        self._unknown = frozenset(path for path in self._unprocessed if path not in graph)
        if self._unknown:
            logger.debug(
                "schedule_files_unknown_to_graph",
                count=len(self._unknown),
                paths=sorted(self._unknown),
            )

    @property
    def unprocessed(self) -> frozenset[str]:
        return frozenset(self._unprocessed)

    @property
    def in_progress(self) -> frozenset[str]:
        return frozenset(self._in_progress)

    @property
    def unknown_to_graph(self) -> frozenset[str]:
        return self._unknown

    def has_unprocessed_files(self) -> bool:
        return bool(self._unprocessed)

    def shift(self) -> str:
        if not self._unprocessed:
            raise ScheduleExhaustedError("no more files to process")
        selected = min(self._unprocessed, key=lambda path: (self._pending_dependencies(path), path))
        self._unprocessed.remove(selected)
        self._in_progress.add(selected)
        return selected

    def mark_as_processed(self, path: str) -> None:
        self._in_progress.discard(path)

    def _pending_dependencies(self, path: str) -> int:
        if path in self._unknown:
            return 0
        return sum(
            1
            for dep in self._graph.get(path)
            if dep in self._unprocessed or dep in self._in_progress
        )


__all__ = ["FileSchedule", "ScheduleExhaustedError"]
