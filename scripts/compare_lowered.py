"""
typelift — compare canonical lowered forms against a git revision.

Purpose
- Audit a finished migration: lower every project source file at ``HEAD``'s working tree and at
  an earlier commit, and print a unified diff for each file whose runtime form changed.
- Files that exist only in the working tree are ignored; files deleted since the revision are
  reported as missing.
"""

from __future__ import annotations

import argparse
import difflib
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"


def _ensure_src_path() -> None:
    if str(SRC_PATH) not in sys.path:
        sys.path.insert(0, str(SRC_PATH))


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Diff the lowered (annotation-free) form of a project against a git revision.",
    )
    parser.add_argument("project", help="Path to the project (a git work tree)")
    parser.add_argument("ref", help="Commit, tag or branch to compare against")
    return parser.parse_args(list(argv) if argv is not None else None)


def _git(args: Sequence[str], *, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def _tracked_python_files(project: Path, ref: str) -> list[str]:
    listing = _git(["ls-tree", "-r", "--name-only", ref], cwd=project)
    return sorted(line for line in listing.splitlines() if line.endswith(".py"))


def compare(project: Path, ref: str) -> int:
    """Print diffs for changed files and return the number of changed files."""

    _ensure_src_path()
    from typelift.verification_plane.lowering import LoweringError, lower_file, lower_source

    changed = 0
    print("Comparing...\n")
    for rel_path in _tracked_python_files(project, ref):
        current_path = project / rel_path
        if not current_path.is_file():
            print(f"File missing in current state: {rel_path}\n")
            changed += 1
            continue
        previous_source = _git(["show", f"{ref}:{rel_path}"], cwd=project)
        try:
            previous = lower_source(previous_source, filename=rel_path)
            current = lower_file(current_path)
        except LoweringError as exc:
            print(f"Could not lower {rel_path}: {exc}\n")
            changed += 1
            continue
        if previous == current:
            continue
        changed += 1
        diff = difflib.unified_diff(
            previous.splitlines(keepends=True),
            current.splitlines(keepends=True),
            fromfile=f"{ref}:{rel_path}",
            tofile=rel_path,
        )
        sys.stdout.writelines(diff)
        print()

    print(f"Summary: {changed} changed file(s)")
    return changed


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    project = Path(args.project).expanduser().resolve()
    status = _git(["status", "--porcelain"], cwd=project)
    if status.strip():
        print(
            "error: working directory has uncommitted changes; commit or stash them first",
            file=sys.stderr,
        )
        return 2
    return 1 if compare(project, args.ref) else 0


if __name__ == "__main__":
    raise SystemExit(main())
