"""
typelift — instruction templates

File: src/typelift/synthesis_plane/prompt_templates.py
Last updated: 2026-10-16

Purpose
- Loads and renders the phase guidance templates from ``synthesis_plane/templates/`` with strict
  placeholders, and composes the per-iteration oracle instruction.

What should be included in this file
- Template rendering rules and allowed variables.
- Template versioning and hashing (for reproducible logs).
- Instruction selection by phase, scope, session state and iteration.

Functional requirements
- Must render instructions deterministically for the same inputs.
- Every instruction states the suppression-comment contract through the phase template.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from jinja2 import Environment, StrictUndefined, meta

from typelift.constants import FILE_SUPPRESSION_DIRECTIVE, SUPPRESSION_BUG_TAG
from typelift.domain.models import Phase
from typelift.utils.hashing import sha256_text

if TYPE_CHECKING:
    from collections.abc import Mapping

    from typelift.domain.models import Project, RepairSession

TEMPLATE_NAMES: Final[dict[Phase, str]] = {
    Phase.BASELINE: "baseline.md.j2",
    Phase.FULL_COVERAGE: "full_coverage.md.j2",
}
ALLOWED_VARIABLES: Final[frozenset[str]] = frozenset({"bug_tag", "file_directive", "lint_active"})

_LAST_UPDATED_RE = re.compile(r"(?im)^\s*\{#\s*Last updated:\s*(.+?)\s*#\}\s*$")


class PromptTemplateError(RuntimeError):
    """Base error for prompt template loading and rendering."""


class PromptTemplateNotFoundError(PromptTemplateError, FileNotFoundError):
    """Raised when a template file does not exist."""


class PromptTemplateVariableError(PromptTemplateError, ValueError):
    """Raised for missing variables or whitelist violations."""


@dataclass(frozen=True, slots=True)
class RenderedTemplate:
    """Rendered guidance text plus hashes for log correlation."""

    text: str
    template_name: str
    template_version: str
    template_hash: str
    text_hash: str


class PromptTemplateEngine:
    """Deterministic template loader + renderer."""

    def __init__(self, *, template_root: Path | str | None = None) -> None:
        root = Path(template_root) if template_root is not None else _default_template_root()
        resolved_root = root.resolve()
        if not resolved_root.is_dir():
            raise PromptTemplateNotFoundError(f"template root does not exist: {resolved_root}")
        self._template_root = resolved_root
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            newline_sequence="\n",
            keep_trailing_newline=True,
        )
        self._cache: dict[str, RenderedTemplate] = {}

    @property
    def template_root(self) -> Path:
        return self._template_root

    def render(self, template_name: str, *, variables: Mapping[str, object]) -> RenderedTemplate:
        """Render one template with strict variable/whitelist checks."""

        template_path = self._template_root / template_name
        if not template_path.is_file():
            raise PromptTemplateNotFoundError(
                f"template not found: {template_name!r} under {self._template_root}"
            )
        source = _normalize_newlines(template_path.read_text(encoding="utf-8"))

        declared = meta.find_undeclared_variables(self._environment.parse(source))
        unexpected = sorted(declared - ALLOWED_VARIABLES)
        if unexpected:
            raise PromptTemplateVariableError(
                "template uses variables not allowed by whitelist: " + ", ".join(unexpected)
            )
        missing = sorted(declared - set(variables))
        if missing:
            raise PromptTemplateVariableError(
                "missing required template variables: " + ", ".join(missing)
            )

        text = self._environment.from_string(source).render(**variables).strip()
        match = _LAST_UPDATED_RE.search(source)
        return RenderedTemplate(
            text=text,
            template_name=template_name,
            template_version=match.group(1) if match is not None else "unversioned",
            template_hash=sha256_text(source),
            text_hash=sha256_text(text),
        )

    def guidance(self, project: Project) -> RenderedTemplate:
        return self.guidance_for(project.phase, project)

    def guidance_for(self, phase: Phase, project: Project) -> RenderedTemplate:
        key = f"{phase.value}:{project.lint_active}"
        cached = self._cache.get(key)
        if cached is None:
            cached = self.render(
                TEMPLATE_NAMES[phase],
                variables={
                    "bug_tag": SUPPRESSION_BUG_TAG,
                    "file_directive": FILE_SUPPRESSION_DIRECTIVE,
                    "lint_active": project.lint_active,
                },
            )
            self._cache[key] = cached
        return cached


class InstructionBuilder:
    """Chooses and composes the instruction for the next oracle invocation."""

    def __init__(
        self,
        engine: PromptTemplateEngine | None = None,
        *,
        session_reset_interval: int = 5,
    ) -> None:
        if session_reset_interval <= 0:
            raise ValueError("session_reset_interval must be > 0")
        self._engine = engine if engine is not None else PromptTemplateEngine()
        self._session_reset_interval = session_reset_interval

    def build(self, project: Project, session: RepairSession, formatted_errors: str) -> str:
        scope = session.scope_label
        fresh = session.session_handle is None

        if project.phase is Phase.BASELINE:
            if fresh:
                guidance = self._engine.guidance_for(Phase.BASELINE, project).text
                return (
                    f"You are establishing a zero errors baseline for {scope}.\n"
                    f"{guidance}\n\n{formatted_errors}"
                )
            return _remaining_errors(scope, formatted_errors)

        if not session.is_project_scope:
            if fresh:
                guidance = self._engine.guidance_for(Phase.FULL_COVERAGE, project).text
                return (
                    f"You are improving type annotation coverage for {scope}.\n"
                    f"{guidance}\n\n{formatted_errors}"
                )
            if session.iteration % self._session_reset_interval == 2:
                return (
                    f"Not all errors are fixed in {scope}. Fix remaining errors by refining the "
                    "type definitions you just created or addressing newly discovered issues. "
                    f"Here are the remaining errors:\n\n{formatted_errors}"
                )
            return _remaining_errors(scope, formatted_errors)

        if fresh:
            guidance = self._engine.guidance_for(Phase.BASELINE, project).text
            return (
                "You are resolving type errors which were caused by adding type annotations to "
                "the project. Review and fix the existing type annotations.\n"
                f"{guidance}\n\n{formatted_errors}"
            )
        return _remaining_errors(scope, formatted_errors)


def _remaining_errors(scope: str, formatted_errors: str) -> str:
    return (
        f"Not all errors are fixed in {scope}. Here are the remaining errors:\n\n"
        f"{formatted_errors}"
    )


def _default_template_root() -> Path:
    return Path(__file__).resolve().parent / "templates"


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


__all__ = [
    "ALLOWED_VARIABLES",
    "InstructionBuilder",
    "PromptTemplateEngine",
    "PromptTemplateError",
    "PromptTemplateNotFoundError",
    "PromptTemplateVariableError",
    "RenderedTemplate",
    "TEMPLATE_NAMES",
]
