"""Output rendering abstraction for the typelift CLI.

File: src/typelift/ui/render.py
Last updated: 2026-10-16

Purpose
- Provide a thin rendering layer for CLI output with rich formatting on terminals.
- Respect NO_COLOR environment variable and --no-color CLI flag.

What should be included in this file
- CLIRenderer class with methods for common output patterns.
- Phase result and statistics summaries.

Functional requirements
- Plain-text rendering is byte-stable for tests and pipes.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from typelift.domain.models import ProjectRepairResult, RepairStats


def _color_allowed(no_color_flag: bool) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces deterministic plain text when color is disabled; uses ``rich`` tables and styles
    otherwise.
    """

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)
        self._console = Console(highlight=False) if self._color else None

    @property
    def color(self) -> bool:
        return self._color

    def text(self, line: str) -> None:
        print(line)

    def kv(self, key: str, value: object) -> None:
        if self._console is not None:
            self._console.print(f"[bold]{key}:[/bold] {value}")
            return
        print(f"{key}: {value}")

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        if self._console is not None:
            self._console.print(f"\n[bold cyan]{title}[/bold cyan]")
            return
        print(f"\n{title}")

    def warning(self, text: str) -> None:
        if self._console is not None:
            self._console.print(f"  [yellow]Warning:[/yellow] {text}")
            return
        print(f"  Warning: {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted table."""

        if not rows:
            return

        if self._console is not None:
            table = Table(title=title, title_justify="left")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*(str(cell) for cell in row))
            self._console.print(table)
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(list(headers))}")
        print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            print(f"  {_pad(list(row))}")

    def next_steps(self, steps: Sequence[str]) -> None:
        """Print actionable next-step hints."""

        if not steps:
            return
        self.section("Next steps:")
        for step in steps:
            print(f"  $ {step}")

    def stats(self, stats: RepairStats) -> None:
        self.kv("Initial errors", stats.initial_error_count)
        self.kv("Remaining errors", stats.remaining_error_count)
        self.kv("Iterations", stats.iterations)
        self.kv("Turns", stats.turns)
        self.kv("Cost (USD)", f"{stats.cost_usd:.2f}")
        self.kv("Behavior modifications detected", stats.behavior_modifications_detected)

    def phase_result(self, result: ProjectRepairResult) -> None:
        """Summarize one orchestrated phase run."""

        self.section(f"Phase {int(result.phase)} ({result.phase.label}) summary:")
        self.kv("Files repaired", len(result.file_outcomes))
        self.kv("Remaining errors", result.remaining_error_count)
        self.kv("Time (s)", f"{result.time_seconds:.1f}")
        totals = result.totals
        self.kv("Cost (USD)", f"{totals.cost_usd:.2f}")
        self.kv("Turns", totals.turns)
        self.kv("Behavior modifications detected", totals.behavior_modifications_detected)

        suppressed = [item.scope_label for item in result.file_outcomes if item.suppressed]
        if suppressed:
            self.section("Files suppressed (input too large):")
            self.items(suppressed)
        if result.failed_scopes:
            self.section("Scopes with remaining errors:")
            self.items(list(result.failed_scopes))
        if self.verbose and result.processing_order:
            self.section("Processing order:")
            self.items(list(result.processing_order), prefix="")


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
