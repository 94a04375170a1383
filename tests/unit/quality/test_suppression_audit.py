"""Unit tests for the suppression comment audit."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from typelift.quality.suppression_audit import (
    SuppressionKind,
    audit_suppressions,
    classify_comment,
    format_json,
    format_text,
    scan_source,
)

SOURCE = '''\
# mypy: ignore-errors
import os

value = os.environ["HOME"]  # type: ignore[index]  # BUG: HOME may be unset
other = compute()  # type: ignore[name-defined]  # generated at import time
plain = 1  # type: ignore
text = "# type: ignore[misc]"


def f(x):  # noqa: ANN401  # untyped callback registry
    return x
'''


@pytest.mark.parametrize(
    ("comment", "kind", "codes"),
    [
        ("# type: ignore[arg-type]  # BUG: wrong unit", SuppressionKind.BUG, ("arg-type",)),
        (
            "# type: ignore[misc, override]  # stub gap",
            SuppressionKind.ACCEPTED,
            ("misc", "override"),
        ),
        ("# noqa: ANN401", SuppressionKind.UNLABELED, ("ANN401",)),
        ("# ruff: noqa", SuppressionKind.FILE, ()),
    ],
)
def test_comments_are_classified(
    comment: str, kind: SuppressionKind, codes: tuple[str, ...]
) -> None:
    finding = classify_comment(comment, path="a.py", line=1, column=1)

    assert finding is not None
    assert finding.kind is kind
    assert finding.codes == codes


def test_ordinary_comments_are_not_findings() -> None:
    assert classify_comment("# just a note", path="a.py", line=1, column=1) is None


def test_string_literals_never_produce_findings() -> None:
    findings = scan_source(SOURCE, path="mod.py")

    assert findings is not None
    assert [(item.line, item.kind) for item in findings] == [
        (1, SuppressionKind.FILE),
        (4, SuppressionKind.BUG),
        (5, SuppressionKind.ACCEPTED),
        (6, SuppressionKind.UNLABELED),
        (10, SuppressionKind.ACCEPTED),
    ]
    assert findings[1].explanation == "BUG: HOME may be unset"
    assert findings[4].directive == "noqa"


def test_untokenizable_source_is_skipped() -> None:
    assert scan_source('x = """never closed\n', path="bad.py") is None


def test_audit_walks_the_project_in_order(tmp_path: Path) -> None:
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "b.py").write_text("x = 1  # type: ignore\n", encoding="utf-8")
    (tmp_path / "pkg" / "a.py").write_text(
        "y = 2  # type: ignore[assignment]  # BUG: off by one\n", encoding="utf-8"
    )
    (tmp_path / "bad.py").write_text('s = """\n', encoding="utf-8")
    (tmp_path / ".venv").mkdir()
    (tmp_path / ".venv" / "c.py").write_text("z = 3  # type: ignore\n", encoding="utf-8")

    audit = audit_suppressions(tmp_path)

    assert [item.path for item in audit.findings] == ["pkg/a.py", "pkg/b.py"]
    assert audit.skipped_files == ("bad.py",)
    assert audit.has_unlabeled is True
    assert format_text(audit).splitlines() == [
        "pkg/a.py:1:8: bug type-ignore[assignment] BUG: off by one",
        "pkg/b.py:1:8: unlabeled type-ignore",
        "Summary: bug=1 accepted=0 file=0 unlabeled=1 scanned_files=3",
    ]
    payload = json.loads(format_json(audit))
    assert payload["summary"]["total"] == 2
    assert payload["skipped_files"] == ["bad.py"]
