"""
typelift — suppression comment audit

File: src/typelift/quality/suppression_audit.py
Last updated: 2026-10-16

Purpose
- List every checker suppression left in a migrated project and classify it, so reviewers can
  find the real bugs the oracle tagged and the suppressions nobody explained.

What should be included in this file
- Token-based scan (string literals never produce findings).
- Classification: ``bug`` (carries the ``BUG:`` tag), ``accepted`` (carries a trailing
  explanation), ``file`` (file-level fallback directive), ``unlabeled``.
- Deterministic ordering plus text/JSON formatters.

Functional requirements
- Files that cannot be tokenized are reported as skipped, not as failures.
"""

from __future__ import annotations

import io
import json
import re
import tokenize
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Final

import structlog

from typelift.constants import SUPPRESSION_BUG_TAG
from typelift.utils.fs import iter_python_files

logger = structlog.get_logger(__name__)

_TYPE_IGNORE_RE: Final[re.Pattern[str]] = re.compile(r"^type:\s*ignore(?:\[(?P<codes>[^\]]*)\])?$")
_NOQA_RE: Final[re.Pattern[str]] = re.compile(r"^noqa(?::\s*(?P<codes>[A-Za-z0-9, ]+))?$")
_FILE_LEVEL_RE: Final[re.Pattern[str]] = re.compile(r"^(?:mypy:\s*ignore-errors|ruff:\s*noqa)$")


class SuppressionKind(StrEnum):
    BUG = "bug"
    ACCEPTED = "accepted"
    FILE = "file"
    UNLABELED = "unlabeled"


@dataclass(frozen=True, slots=True)
class SuppressionFinding:
    """One suppression comment and its classification."""

    path: str
    line: int
    column: int
    kind: SuppressionKind
    directive: str
    codes: tuple[str, ...]
    explanation: str

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "line": self.line,
            "column": self.column,
            "kind": self.kind.value,
            "directive": self.directive,
            "codes": list(self.codes),
            "explanation": self.explanation,
        }


@dataclass(frozen=True, slots=True)
class SuppressionAudit:
    findings: tuple[SuppressionFinding, ...]
    scanned_files: int
    skipped_files: tuple[str, ...] = ()

    def count(self, kind: SuppressionKind) -> int:
        return sum(1 for item in self.findings if item.kind is kind)

    @property
    def has_unlabeled(self) -> bool:
        return self.count(SuppressionKind.UNLABELED) > 0

    def summary(self) -> dict[str, int]:
        payload = {kind.value: self.count(kind) for kind in SuppressionKind}
        payload["total"] = len(self.findings)
        payload["scanned_files"] = self.scanned_files
        return payload

    def to_dict(self) -> dict[str, object]:
        return {
            "summary": self.summary(),
            "findings": [item.to_dict() for item in self.findings],
            "skipped_files": list(self.skipped_files),
        }


def audit_suppressions(root: str | Path) -> SuppressionAudit:
    """Scan every project source file under ``root`` for suppression comments."""

    base = Path(root).resolve()
    findings: list[SuppressionFinding] = []
    skipped: list[str] = []
    scanned = 0
    for file_path in iter_python_files(base):
        rel_path = file_path.relative_to(base).as_posix()
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("suppression_audit_skipped", path=rel_path, detail=str(exc))
            skipped.append(rel_path)
            continue
        scanned += 1
        file_findings = scan_source(text, path=rel_path)
        if file_findings is None:
            skipped.append(rel_path)
            continue
        findings.extend(file_findings)

    findings.sort(key=lambda item: (item.path, item.line, item.column))
    return SuppressionAudit(
        findings=tuple(findings), scanned_files=scanned, skipped_files=tuple(skipped)
    )


def scan_source(text: str, *, path: str) -> list[SuppressionFinding] | None:
    """Return the suppression findings in ``text``, or ``None`` when it cannot be tokenized."""

    findings: list[SuppressionFinding] = []
    try:
        for token in tokenize.generate_tokens(io.StringIO(text).readline):
            if token.type != tokenize.COMMENT:
                continue
            line, offset = token.start
            finding = classify_comment(token.string, path=path, line=line, column=offset + 1)
            if finding is not None:
                findings.append(finding)
    except (SyntaxError, tokenize.TokenError) as exc:
        logger.warning("suppression_audit_skipped", path=path, detail=str(exc))
        return None
    return findings


def classify_comment(
    comment: str, *, path: str, line: int, column: int
) -> SuppressionFinding | None:
    segments = [segment.strip() for segment in comment.split("#")]
    segments = [segment for segment in segments if segment]

    directives: list[str] = []
    codes: list[str] = []
    explanation_parts: list[str] = []
    file_level = False
    for segment in segments:
        if _FILE_LEVEL_RE.match(segment):
            file_level = True
            directives.append(segment)
            continue
        type_ignore = _TYPE_IGNORE_RE.match(segment)
        match = type_ignore or _NOQA_RE.match(segment)
        if match is not None and not explanation_parts:
            directives.append("type" if type_ignore is not None else "noqa")
            raw_codes = match.group("codes") or ""
            codes.extend(code.strip() for code in raw_codes.split(",") if code.strip())
            continue
        explanation_parts.append(segment)

    if not directives:
        return None

    explanation = " # ".join(explanation_parts)
    if file_level:
        kind = SuppressionKind.FILE
    elif SUPPRESSION_BUG_TAG in explanation:
        kind = SuppressionKind.BUG
    elif explanation:
        kind = SuppressionKind.ACCEPTED
    else:
        kind = SuppressionKind.UNLABELED
    return SuppressionFinding(
        path=path,
        line=line,
        column=column,
        kind=kind,
        directive=_directive_label(directives, file_level),
        codes=tuple(codes),
        explanation=explanation,
    )


def format_text(audit: SuppressionAudit) -> str:
    lines: list[str] = []
    for item in audit.findings:
        codes = f"[{', '.join(item.codes)}]" if item.codes else ""
        detail = f" {item.explanation}" if item.explanation else ""
        lines.append(
            f"{item.path}:{item.line}:{item.column}: {item.kind.value} {item.directive}{codes}"
            f"{detail}"
        )
    summary = audit.summary()
    lines.append(
        "Summary: "
        f"bug={summary['bug']} "
        f"accepted={summary['accepted']} "
        f"file={summary['file']} "
        f"unlabeled={summary['unlabeled']} "
        f"scanned_files={summary['scanned_files']}"
    )
    return "\n".join(lines) + "\n"


def format_json(audit: SuppressionAudit) -> str:
    return json.dumps(audit.to_dict(), sort_keys=True, indent=2, ensure_ascii=False) + "\n"


def _directive_label(directives: list[str], file_level: bool) -> str:
    if file_level:
        return "file"
    if "type" in directives:
        return "type-ignore"
    return "noqa"


__all__ = [
    "SuppressionAudit",
    "SuppressionFinding",
    "SuppressionKind",
    "audit_suppressions",
    "classify_comment",
    "format_json",
    "format_text",
    "scan_source",
]
