"""
typelift — filesystem utilities

File: src/typelift/utils/fs.py
Last updated: 2026-10-16

Purpose
- Provide safe, minimal filesystem helpers for atomic writes, containment checks and
  deterministic discovery of project source files.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Source discovery skips virtual environments, caches, build output and hidden directories.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterator

PathLike = str | os.PathLike[str]

SKIPPED_DIRECTORY_NAMES: Final[frozenset[str]] = frozenset(
    {
        "__pycache__",
        "build",
        "dist",
        "node_modules",
        "site-packages",
        "venv",
    }
)

__all__ = [
    "SKIPPED_DIRECTORY_NAMES",
    "atomic_write",
    "is_within",
    "iter_python_files",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)
    payload = data if isinstance(data, bytes) else data.encode(encoding)

    try:
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        if target.exists():
            # Keep the permission bits of the file being replaced.
            with contextlib.suppress(OSError):
                os.chmod(temp_path, target.stat().st_mode & 0o7777)
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if resolved ``child`` is within resolved ``parent``."""

    resolved_parent = Path(parent).resolve()
    resolved_child = Path(child).resolve()
    try:
        resolved_child.relative_to(resolved_parent)
    except ValueError:
        return False
    return True


def iter_python_files(root: PathLike, *, include_stubs: bool = False) -> Iterator[Path]:
    """Yield ``.py`` files under ``root`` in deterministic (sorted) order.

    ``.pyi`` stubs are only yielded when ``include_stubs`` is set.
    """

    base = Path(root)
    suffixes = {".py", ".pyi"} if include_stubs else {".py"}
    for directory, dirnames, filenames in os.walk(base):
        dirnames[:] = sorted(name for name in dirnames if not _is_skipped_directory(name))
        for filename in sorted(filenames):
            candidate = Path(directory) / filename
            if candidate.suffix in suffixes:
                yield candidate


def _is_skipped_directory(name: str) -> bool:
    if name.startswith("."):
        return True
    if name.endswith(".egg-info"):
        return True
    return name in SKIPPED_DIRECTORY_NAMES
