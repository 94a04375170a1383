"""
typelift — behavior verification gate

File: src/typelift/verification_plane/behavior_gate.py
Last updated: 2026-10-16

Purpose
- Compare each edited file's canonical lowered form against the form it had before the run first
  touched it, and produce a correction directive when runtime code changed.

What should be included in this file
- EditTarget decoding from raw oracle tool inputs.
- SnapshotTable owned by one repair run.
- BehaviorGate with pre-edit and post-edit observation handlers.

Functional requirements
- Pre-edit observation snapshots a file once per run; later observations never overwrite it.
- Post-edit observation without a snapshot is an invariant violation and aborts the run.
- Lowering failures are logged and skipped; a file whose original could not be lowered is
  recorded as unverifiable and its post-edit checks are skipped.

Non-functional requirements
- Lowering runs on worker threads; snapshot insertion is lock-guarded.
"""

from __future__ import annotations

import asyncio
import difflib
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from typelift.constants import EDIT_TOOL_NAMES
from typelift.verification_plane.lowering import LoweringError, lower_file

if TYPE_CHECKING:
    from typelift.domain.models import Project

logger = structlog.get_logger(__name__)

Lowerer = Callable[[str], str]


class BehaviorGateError(RuntimeError):
    """Base class for gate invariant violations; these abort the run."""


class SnapshotMissingError(BehaviorGateError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"post-edit observation for {path} without a pre-edit snapshot")


class UnsupportedToolInputError(BehaviorGateError):
    def __init__(self, tool_name: str, detail: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"unsupported {tool_name} tool input: {detail}")


@dataclass(frozen=True, slots=True)
class EditTarget:
    """Absolute path of the file an edit tool use is about to change (or changed)."""

    path: str


def decode_edit_target(
    tool_name: str,
    tool_input: object,
    *,
    root: str | Path | None = None,
) -> EditTarget | None:
    """Decode the file an edit tool use targets.

    Returns ``None`` for tools that do not edit files. Relative paths resolve against ``root``
    (the current directory when omitted).
    """

    if tool_name not in EDIT_TOOL_NAMES:
        return None
    if not isinstance(tool_input, Mapping):
        raise UnsupportedToolInputError(
            tool_name, f"expected a mapping, got {type(tool_input).__name__}"
        )
    file_path = tool_input.get("file_path")
    if not isinstance(file_path, str) or not file_path.strip():
        raise UnsupportedToolInputError(tool_name, "missing string 'file_path'")
    candidate = Path(file_path)
    if not candidate.is_absolute():
        base = Path(root) if root is not None else Path.cwd()
        candidate = base / candidate
    return EditTarget(path=str(candidate.resolve()))


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Pre-edit canonical form of one file; ``lowered is None`` marks it unverifiable."""

    path: str
    lowered: str | None
    error: str | None = None

    @property
    def verifiable(self) -> bool:
        return self.lowered is not None


class SnapshotTable:
    """Path to pre-edit canonical form, scoped to a single repair run."""

    def __init__(self) -> None:
        self._entries: dict[str, Snapshot] = {}
        self._lock = threading.Lock()

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, path: str) -> Snapshot | None:
        with self._lock:
            return self._entries.get(path)

    def record_if_absent(self, snapshot: Snapshot) -> Snapshot:
        """Insert ``snapshot`` unless the path is already recorded; return the stored entry."""

        with self._lock:
            existing = self._entries.get(snapshot.path)
            if existing is not None:
                return existing
            self._entries[snapshot.path] = snapshot
            return snapshot


class BehaviorGate:
    """Detects runtime-behavior changes made by oracle edits within one scope."""

    def __init__(
        self,
        project: Project,
        snapshots: SnapshotTable,
        *,
        lowerer: Lowerer = lower_file,
    ) -> None:
        self._project = project
        self._snapshots = snapshots
        self._lowerer = lowerer
        self.violations = 0

    async def on_pre_edit(self, tool_name: str, tool_input: Mapping[str, object]) -> None:
        target = decode_edit_target(tool_name, tool_input, root=self._project.root)
        if target is None or target.path in self._snapshots:
            return
        try:
            lowered = await asyncio.to_thread(self._lowerer, target.path)
        except LoweringError as exc:
            logger.warning("original_not_lowerable", path=target.path, detail=exc.detail)
            self._snapshots.record_if_absent(
                Snapshot(path=target.path, lowered=None, error=exc.detail)
            )
            return
        self._snapshots.record_if_absent(Snapshot(path=target.path, lowered=lowered))

    async def on_post_edit(
        self, tool_name: str, tool_input: Mapping[str, object]
    ) -> str | None:
        target = decode_edit_target(tool_name, tool_input, root=self._project.root)
        if target is None:
            return None
        snapshot = self._snapshots.get(target.path)
        if snapshot is None:
            raise SnapshotMissingError(target.path)
        if snapshot.lowered is None:
            logger.debug("post_edit_check_skipped", path=target.path, reason="unverifiable")
            return None
        try:
            current = await asyncio.to_thread(self._lowerer, target.path)
        except LoweringError as exc:
            logger.warning("post_edit_lowering_failed", path=target.path, detail=exc.detail)
            return None
        if current == snapshot.lowered:
            return None

        self.violations += 1
        diff = runtime_diff(snapshot.lowered, current)
        logger.warning(
            "behavior_violation_detected",
            path=target.path,
            violations=self.violations,
        )
        return correction_directive(target.path, diff)


def runtime_diff(original: str, modified: str) -> str:
    return "".join(
        difflib.unified_diff(
            original.splitlines(keepends=True),
            modified.splitlines(keepends=True),
            fromfile="original",
            tofile="modified",
        )
    )


def correction_directive(path: str, diff: str) -> str:
    return (
        f"CRITICAL: You modified the runtime behavior in '{path}'.\n\n"
        "You MUST NOT change any code logic.\n\n"
        f"Here is the diff showing the runtime changes you made:\n\n<diff>\n{diff}</diff>\n\n"
        "Revert ALL runtime changes immediately."
    )


__all__ = [
    "BehaviorGate",
    "BehaviorGateError",
    "EditTarget",
    "Lowerer",
    "Snapshot",
    "SnapshotMissingError",
    "SnapshotTable",
    "UnsupportedToolInputError",
    "correction_directive",
    "decode_edit_target",
    "runtime_diff",
]
