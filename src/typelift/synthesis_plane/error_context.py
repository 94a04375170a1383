"""
typelift — diagnostic context formatting

File: src/typelift/synthesis_plane/error_context.py
Last updated: 2026-10-16

Purpose
- Render a batch of diagnostics together with surrounding source lines so the oracle sees
  each error in place.

Functional requirements
- Only the first ``max_errors`` diagnostics are rendered; a preface names the total when the
  batch is truncated.
- Context shrinks as the error count grows: +/-3 lines under 10 errors, +/-2 under 50,
  +/-1 otherwise.
- Diagnostics on the same path and line share one context block.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from typelift.constants import MAX_ERRORS_PER_BATCH

if TYPE_CHECKING:
    from typelift.domain.models import Diagnostic, Project


def context_size_for(error_count: int) -> int:
    if error_count >= 50:
        return 1
    if error_count >= 10:
        return 2
    return 3


def format_errors_with_context(
    diagnostics: tuple[Diagnostic, ...],
    project: Project,
    *,
    max_errors: int = MAX_ERRORS_PER_BATCH,
) -> str:
    error_count = len(diagnostics)
    context_size = context_size_for(error_count)
    source_cache: dict[str, list[str]] = {}

    groups: dict[tuple[str, int], list[Diagnostic]] = {}
    for diagnostic in diagnostics[:max_errors]:
        groups.setdefault((diagnostic.path, diagnostic.line), []).append(diagnostic)

    blocks: list[str] = []
    for (path, line), members in groups.items():
        lines = source_cache.get(path)
        if lines is None:
            lines = _read_lines(path)
            source_cache[path] = lines
        header = "\n".join(_format_error(item, project) for item in members)
        context = _format_code_context(lines, line, context_size)
        blocks.append(f"{header}\n{context}")

    formatted = "\n\n".join(blocks)
    if error_count > max_errors:
        formatted = (
            f"There are {error_count} errors in total, here are the first {max_errors}:\n\n"
            f"{formatted}"
        )
    return formatted


def _format_error(diagnostic: Diagnostic, project: Project) -> str:
    code_info = f" ({diagnostic.code})" if diagnostic.code is not None else ""
    location = f"{project.relative(diagnostic.path)}:{diagnostic.line}:{diagnostic.column}"
    return f"{location} - {diagnostic.message}{code_info}"


def _format_code_context(lines: list[str], error_line: int, context_size: int) -> str:
    rendered: list[str] = []
    first = max(error_line - context_size, 1)
    for line_number in range(first, error_line + context_size + 1):
        if line_number > len(lines):
            break
        marker = ">" if line_number == error_line else " "
        rendered.append(f"{marker} {line_number:>4} | {lines[line_number - 1]}")
    return "\n".join(rendered)


def _read_lines(path: str) -> list[str]:
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    return text.split("\n")


__all__ = ["context_size_for", "format_errors_with_context"]
