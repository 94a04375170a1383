"""
typelift — local import dependency graph

File: src/typelift/planning/dependency_graph.py
Last updated: 2026-10-16

Purpose
- Map every project source file to the set of project source files it imports, so files can be
  repaired dependencies first.

What should be included in this file
- ``ast`` import scan: ``import x``, ``from x import y``, relative imports, and literal dynamic
  imports through ``importlib.import_module`` / ``__import__``.
- Resolution against the project's source roots; anything unresolvable is third-party.

Functional requirements
- Stub files (``.pyi``) are neither nodes nor dependencies.
- Self-imports are dropped.
- Unknown paths raise DependencyNotFoundError.

Non-functional requirements
- Built once per run; deterministic for identical trees.
"""

from __future__ import annotations

import ast
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from typelift.utils.fs import iter_python_files

if TYPE_CHECKING:
    from typelift.domain.models import Project

logger = structlog.get_logger(__name__)


class DependencyNotFoundError(KeyError):
    """Raised when a path is not a node of the dependency graph."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"no dependencies recorded for file: {path}")

    def __str__(self) -> str:
        return str(self.args[0])


class DependencyGraph:
    """Immutable file -> local dependencies mapping."""

    __slots__ = ("_edges",)

    def __init__(self, edges: Mapping[str, frozenset[str]]) -> None:
        self._edges: dict[str, frozenset[str]] = {
            path: frozenset(dependencies) for path, dependencies in edges.items()
        }

    @classmethod
    def build(cls, project: Project) -> DependencyGraph:
        resolver = _ModuleResolver(_source_roots(project))
        edges: dict[str, frozenset[str]] = {}
        for file_path in iter_python_files(project.root):
            edges[str(file_path)] = resolver.dependencies_of(file_path)
        logger.debug(
            "dependency_graph_built",
            files=len(edges),
            edges=sum(len(item) for item in edges.values()),
        )
        return cls(edges)

    def get(self, path: str) -> tuple[str, ...]:
        try:
            return tuple(sorted(self._edges[path]))
        except KeyError:
            raise DependencyNotFoundError(path) from None

    def __contains__(self, path: object) -> bool:
        return path in self._edges

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._edges))

    def __len__(self) -> int:
        return len(self._edges)


def _source_roots(project: Project) -> tuple[Path, ...]:
    roots: list[Path] = [project.root]
    src = project.root / "src"
    if src.is_dir():
        roots.append(src)
    for extra in project.extra_source_roots:
        candidate = Path(project.resolve(extra))
        if candidate.is_dir() and candidate not in roots:
            roots.append(candidate)
    return tuple(roots)


class _ModuleResolver:
    def __init__(self, roots: tuple[Path, ...]) -> None:
        self._roots = roots

    def dependencies_of(self, file_path: Path) -> frozenset[str]:
        try:
            tree = ast.parse(file_path.read_text(encoding="utf-8"), filename=str(file_path))
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
            logger.warning("dependency_scan_failed", path=str(file_path), detail=str(exc))
            return frozenset()

        resolved: set[str] = set()
        for node in ast.walk(tree):
            for candidate in self._imports_of(node, file_path):
                if candidate is not None and candidate != file_path:
                    resolved.add(str(candidate))
        return frozenset(resolved)

    def _imports_of(self, node: ast.AST, file_path: Path) -> Iterator[Path | None]:
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield self._resolve_absolute(alias.name)
        elif isinstance(node, ast.ImportFrom):
            yield from self._resolve_from(node, file_path)
        elif isinstance(node, ast.Call):
            module_name = _dynamic_import_target(node)
            if module_name is None:
                return
            level = len(module_name) - len(module_name.lstrip("."))
            if level:
                yield self._resolve_relative(file_path, level, module_name[level:] or None)
            else:
                yield self._resolve_absolute(module_name)

    def _resolve_from(self, node: ast.ImportFrom, file_path: Path) -> Iterator[Path | None]:
        if node.level:
            base = _package_dir(file_path, node.level)
            if node.module is None:
                for alias in node.names:
                    submodule = _module_file(base, alias.name.split("."))
                    yield submodule if submodule is not None else _module_file(base, [])
                return
            parts = node.module.split(".")
            for alias in node.names:
                submodule = _module_file(base, [*parts, alias.name])
                yield submodule if submodule is not None else _module_file(base, parts)
            return

        if node.module is None:
            return
        for alias in node.names:
            submodule = self._resolve_absolute(f"{node.module}.{alias.name}")
            yield submodule if submodule is not None else self._resolve_absolute(node.module)

    def _resolve_relative(self, file_path: Path, level: int, module: str | None) -> Path | None:
        base = _package_dir(file_path, level)
        return _module_file(base, module.split(".") if module else [])

    def _resolve_absolute(self, module: str) -> Path | None:
        parts = module.split(".")
        for root in self._roots:
            resolved = _module_file(root, parts)
            if resolved is not None:
                return resolved
        return None


def _package_dir(file_path: Path, level: int) -> Path:
    base = file_path.parent
    for _ in range(level - 1):
        base = base.parent
    return base


def _module_file(base: Path, parts: list[str]) -> Path | None:
    if not parts:
        init = base / "__init__.py"
        return init if init.is_file() else None
    module_path = base.joinpath(*parts)
    candidate = module_path.with_name(f"{module_path.name}.py")
    if candidate.is_file():
        return candidate
    package_init = module_path / "__init__.py"
    if package_init.is_file():
        return package_init
    return None


def _dynamic_import_target(node: ast.Call) -> str | None:
    func = node.func
    is_dynamic = (
        (isinstance(func, ast.Name) and func.id in {"__import__", "import_module"})
        or (
            isinstance(func, ast.Attribute)
            and func.attr == "import_module"
            and isinstance(func.value, ast.Name)
            and func.value.id == "importlib"
        )
    )
    if not is_dynamic or not node.args:
        return None
    first = node.args[0]
    if isinstance(first, ast.Constant) and isinstance(first.value, str) and first.value:
        return first.value
    return None


__all__ = ["DependencyGraph", "DependencyNotFoundError"]
