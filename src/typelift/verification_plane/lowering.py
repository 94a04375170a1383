"""
typelift — canonical lowering

File: src/typelift/verification_plane/lowering.py
Last updated: 2026-10-16

Purpose
- Map a source file to a canonical, comment-free form with every typing-only construct erased,
  so two versions of a file compare equal exactly when their runtime code is the same.

What should be included in this file
- A type-erasure ``ast.NodeTransformer`` and the ``lower_source`` / ``lower_file`` entry points.
- LoweringError for sources that cannot be read, parsed or transformed.

Functional requirements
- Erased: argument and return annotations, bare annotated declarations outside class bodies,
  imports from ``typing`` / ``typing_extensions`` / ``__future__``, ``if TYPE_CHECKING:`` blocks
  (an ``else`` branch survives), ``typing.cast(T, x)`` calls, type variable / NewType / alias
  declarations, PEP 695 type parameters, and TypedDict classes.
- Typing names only match when they are bound by a typing import that the module never rebinds.
- Class-body annotated declarations keep their target with a ``...`` annotation marker, or the
  ``ClassVar`` / ``InitVar`` head, since dataclass-style field collection reads them at runtime.
- Protocol classes are kept; only their annotations are erased.
- Annotated assignments with a value outside class bodies become plain assignments.
- Docstrings and every other statement are kept.

Non-functional requirements
- Deterministic output for identical input.
- Parser and transformer faults (deep nesting, memory) surface as LoweringError.
"""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Final

TYPING_MODULES: Final[frozenset[str]] = frozenset({"typing", "typing_extensions", "__future__"})
TYPE_DECLARATION_FACTORIES: Final[frozenset[str]] = frozenset(
    {"TypeVar", "ParamSpec", "TypeVarTuple", "NewType"}
)
TYPE_ONLY_BASES: Final[frozenset[str]] = frozenset({"TypedDict"})
FIELD_HEADS: Final[frozenset[str]] = frozenset({"ClassVar", "InitVar"})


class LoweringError(RuntimeError):
    """Raised when a source cannot be read, parsed or lowered."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"cannot lower {path}: {detail}")


def lower_source(source: str, *, filename: str = "<source>") -> str:
    """Return the canonical lowered form of ``source``."""

    try:
        tree = ast.parse(source, filename=filename)
    except (SyntaxError, ValueError) as exc:
        raise LoweringError(filename, str(exc)) from exc
    except (RecursionError, MemoryError) as exc:
        raise LoweringError(filename, f"{type(exc).__name__} while parsing") from exc
    try:
        lowered = _TypeEraser(tree).visit(tree)
        _fill_empty_bodies(lowered)
        ast.fix_missing_locations(lowered)
        return ast.unparse(lowered) + "\n"
    except (RecursionError, MemoryError) as exc:
        raise LoweringError(filename, f"{type(exc).__name__} while lowering") from exc


def lower_file(path: str | Path) -> str:
    """Read ``path`` and return its canonical lowered form."""

    file_path = Path(path)
    try:
        source = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LoweringError(str(file_path), str(exc)) from exc
    return lower_source(source, filename=str(file_path))


class _TypingNames:
    """Local bindings that refer to typing constructs in one module."""

    def __init__(self, tree: ast.AST) -> None:
        self.names: dict[str, str] = {}
        self.modules: set[str] = set()
        rebound: set[str] = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    local = alias.asname or alias.name.split(".")[0]
                    if alias.name in TYPING_MODULES:
                        self.modules.add(local)
                    else:
                        rebound.add(local)
            elif isinstance(node, ast.ImportFrom):
                typing_source = (
                    node.level == 0
                    and node.module is not None
                    and node.module.split(".")[0] in TYPING_MODULES
                )
                for alias in node.names:
                    local = alias.asname or alias.name
                    if typing_source:
                        self.names[local] = alias.name
                    else:
                        rebound.add(local)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                rebound.add(node.name)
            elif isinstance(node, ast.arg):
                rebound.add(node.arg)
            elif isinstance(node, ast.Name) and isinstance(node.ctx, (ast.Store, ast.Del)):
                rebound.add(node.id)
        for name in rebound:
            self.names.pop(name, None)
        self.modules -= rebound

    def refers_to(self, node: ast.expr, name: str) -> bool:
        if isinstance(node, ast.Name):
            return self.names.get(node.id) == name
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
            return node.attr == name and node.value.id in self.modules
        return False


class _TypeEraser(ast.NodeTransformer):
    def __init__(self, tree: ast.AST) -> None:
        self._typing = _TypingNames(tree)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.AST:
        return self._erase_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> ast.AST:
        return self._erase_function(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.AST | None:
        if any(self._is_type_only_base(base) for base in node.bases):
            return None
        _clear_type_params(node)
        node.decorator_list = [self.visit(item) for item in node.decorator_list]
        node.bases = [self.visit(base) for base in node.bases]
        node.keywords = [self.visit(keyword) for keyword in node.keywords]
        body: list[ast.stmt] = []
        for statement in node.body:
            if isinstance(statement, ast.AnnAssign):
                field = self._class_field(statement)
                if field is not None:
                    body.append(field)
                continue
            body.extend(self._visit_statement(statement))
        node.body = body
        return node

    def visit_AnnAssign(self, node: ast.AnnAssign) -> ast.AST | None:
        if self._typing.refers_to(node.annotation, "TypeAlias"):
            return None
        if node.value is None:
            return None
        value = self.visit(node.value)
        return ast.copy_location(ast.Assign(targets=[node.target], value=value), node)

    def visit_Assign(self, node: ast.Assign) -> ast.AST | None:
        value = node.value
        if isinstance(value, ast.Call) and any(
            self._typing.refers_to(value.func, name) for name in TYPE_DECLARATION_FACTORIES
        ):
            return None
        self.generic_visit(node)
        return node

    def visit_TypeAlias(self, node: ast.AST) -> None:
        return None

    def visit_Import(self, node: ast.Import) -> ast.AST | None:
        kept = [alias for alias in node.names if alias.name.split(".")[0] not in TYPING_MODULES]
        if not kept:
            return None
        node.names = kept
        return node

    def visit_ImportFrom(self, node: ast.ImportFrom) -> ast.AST | None:
        if node.level == 0 and node.module is not None:
            if node.module.split(".")[0] in TYPING_MODULES:
                return None
        return node

    def visit_If(self, node: ast.If) -> ast.AST | list[ast.stmt] | None:
        if self._typing.refers_to(node.test, "TYPE_CHECKING"):
            kept: list[ast.stmt] = []
            for statement in node.orelse:
                kept.extend(self._visit_statement(statement))
            return kept or None
        self.generic_visit(node)
        return node

    def visit_Call(self, node: ast.Call) -> ast.AST:
        if (
            self._typing.refers_to(node.func, "cast")
            and len(node.args) == 2
            and not node.keywords
        ):
            return self.visit(node.args[1])
        self.generic_visit(node)
        return node

    def _class_field(self, node: ast.AnnAssign) -> ast.stmt | None:
        if self._typing.refers_to(node.annotation, "TypeAlias"):
            return None
        head = _field_head(node.annotation)
        marker: ast.expr = ast.Name(id=head, ctx=ast.Load()) if head else ast.Constant(value=...)
        value = self.visit(node.value) if node.value is not None else None
        return ast.copy_location(
            ast.AnnAssign(target=node.target, annotation=marker, value=value, simple=node.simple),
            node,
        )

    def _visit_statement(self, statement: ast.stmt) -> list[ast.stmt]:
        visited = self.visit(statement)
        if visited is None:
            return []
        if isinstance(visited, list):
            return visited
        return [visited]

    def _is_type_only_base(self, base: ast.expr) -> bool:
        if isinstance(base, ast.Subscript):
            base = base.value
        return any(self._typing.refers_to(base, name) for name in TYPE_ONLY_BASES)

    def _erase_function(
        self, node: ast.FunctionDef | ast.AsyncFunctionDef
    ) -> ast.FunctionDef | ast.AsyncFunctionDef:
        node.returns = None
        arguments = node.args
        for argument in (*arguments.posonlyargs, *arguments.args, *arguments.kwonlyargs):
            argument.annotation = None
        if arguments.vararg is not None:
            arguments.vararg.annotation = None
        if arguments.kwarg is not None:
            arguments.kwarg.annotation = None
        _clear_type_params(node)
        self.generic_visit(node)
        return node


def _field_head(annotation: ast.expr) -> str | None:
    """Return ``ClassVar`` / ``InitVar`` when the annotation is spelled with one."""

    if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
        text = annotation.value.strip()
        head = text.split("[", 1)[0].strip().rsplit(".", 1)[-1]
        return head if head in FIELD_HEADS else None
    if isinstance(annotation, ast.Subscript):
        annotation = annotation.value
    if isinstance(annotation, ast.Name) and annotation.id in FIELD_HEADS:
        return annotation.id
    if isinstance(annotation, ast.Attribute) and annotation.attr in FIELD_HEADS:
        return annotation.attr
    return None


def _clear_type_params(node: ast.AST) -> None:
    if getattr(node, "type_params", None):
        node.type_params = []  # type: ignore[attr-defined]


def _fill_empty_bodies(tree: ast.AST) -> None:
    # Erasure may leave a block with no statements; a body must keep one.
    for node in ast.walk(tree):
        if isinstance(node, ast.Module):
            continue
        body = getattr(node, "body", None)
        if isinstance(body, list) and not body and "body" in node._fields:
            node.body = [ast.Pass()]  # type: ignore[attr-defined]


__all__ = ["LoweringError", "lower_file", "lower_source"]
