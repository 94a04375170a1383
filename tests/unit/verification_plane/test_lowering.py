"""Unit tests for canonical lowering (type erasure)."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from typelift.verification_plane.lowering import LoweringError, lower_file, lower_source

UNTYPED = '''\
"""Module doc."""
import os


def load(path, default=None):
    # read it
    if not os.path.exists(path):
        return default
    with open(path) as handle:
        return handle.read()


class Box:
    def __init__(self, value):
        self.value = value
'''

TYPED = '''\
"""Module doc."""
from __future__ import annotations

import os
from typing import TYPE_CHECKING, TypeAlias, TypeVar, cast

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")
Alias: TypeAlias = "dict[str, int]"


def load(path: str, default: str | None = None) -> str | None:
    if not os.path.exists(path):
        return default
    with open(path) as handle:
        return cast(str, handle.read())


class Box:
    def __init__(self, value: int) -> None:
        self.value: int = value
'''


def test_adding_annotations_does_not_change_the_lowered_form() -> None:
    assert lower_source(TYPED) == lower_source(UNTYPED)


def test_removing_a_statement_changes_the_lowered_form() -> None:
    modified = UNTYPED.replace("    if not os.path.exists(path):\n        return default\n", "")

    assert lower_source(modified) != lower_source(UNTYPED)


def test_comments_and_formatting_are_ignored() -> None:
    assert lower_source("x = (1 +\n     2)  # sum\n") == lower_source("x = 1 + 2\n")


def test_type_checking_else_branch_survives() -> None:
    source = (
        "from typing import TYPE_CHECKING\n"
        "if TYPE_CHECKING:\n    import a\nelse:\n    import b\n"
    )

    assert lower_source(source) == "import b\n"


def test_erasure_keeps_blocks_non_empty() -> None:
    source = "def empty():\n    value: int\n"

    assert lower_source(source) == "def empty():\n    pass\n"


@pytest.mark.skipif(sys.version_info < (3, 12), reason="PEP 695 syntax needs Python 3.12")
def test_pep695_type_parameters_and_aliases_are_erased() -> None:
    typed = (
        "type Pair[T] = tuple[T, T]\n\n"
        "def first[T](items: list[T]) -> T:\n    return items[0]\n"
    )
    untyped = "def first(items):\n    return items[0]\n"

    assert lower_source(typed) == lower_source(untyped)


def test_lowering_is_deterministic() -> None:
    assert lower_source(TYPED) == lower_source(TYPED)


def test_syntax_error_raises_lowering_error() -> None:
    with pytest.raises(LoweringError) as excinfo:
        lower_source("def broken(:\n", filename="broken.py")

    assert excinfo.value.path == "broken.py"


def test_lower_file_reads_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "module.py"
    path.write_text(TYPED, encoding="utf-8")

    assert lower_file(path) == lower_source(UNTYPED)


def test_lower_file_missing_file_raises_lowering_error(tmp_path: Path) -> None:
    with pytest.raises(LoweringError):
        lower_file(tmp_path / "missing.py")


DATACLASS = (
    "from dataclasses import dataclass\n\n\n"
    "@dataclass\nclass Point:\n    x: int\n    y: int\n"
)


def test_removing_a_dataclass_field_changes_the_lowered_form() -> None:
    fewer_fields = DATACLASS.replace("    y: int\n", "")

    assert lower_source(fewer_fields) != lower_source(DATACLASS)


def test_class_body_declarations_keep_their_names() -> None:
    assert lower_source(DATACLASS).endswith("class Point:\n    x: ...\n    y: ...\n")


def test_retyping_a_class_field_is_not_a_change() -> None:
    retyped = DATACLASS.replace("x: int", "x: 'float | int'")

    assert lower_source(retyped) == lower_source(DATACLASS)


def test_wrapping_a_field_in_classvar_changes_the_lowered_form() -> None:
    field = "from typing import ClassVar\n\n\nclass Config:\n    retries: int = 0\n"
    class_var = field.replace("retries: int = 0", "retries: ClassVar[int] = 0")

    assert lower_source(class_var) != lower_source(field)
    assert lower_source(class_var) == "class Config:\n    retries: ClassVar = 0\n"


@pytest.mark.parametrize(
    "annotation",
    ["InitVar[int]", "dataclasses.InitVar[int]", "'InitVar[int]'"],
)
def test_initvar_head_is_kept_for_every_spelling(annotation: str) -> None:
    source = f"class Config:\n    seed: {annotation}\n"

    assert lower_source(source) == "class Config:\n    seed: InitVar\n"


PROTOCOL = '''\
from typing import Protocol


class Greeter(Protocol):
    name: str

    def greet(self) -> int:
        return 1


class Impl(Greeter):
    pass
'''


def test_protocol_classes_keep_their_bodies() -> None:
    lowered = lower_source(PROTOCOL)

    assert "class Greeter(Protocol):\n    name: ...\n\n    def greet(self):\n" in lowered
    assert lower_source(PROTOCOL.replace("return 1", "return 2")) != lowered


def test_typed_dict_classes_are_erased() -> None:
    source = "from typing import TypedDict\n\n\nclass Movie(TypedDict):\n    title: str\n"

    assert lower_source(source) == "\n"


def test_shadowed_cast_is_not_erased() -> None:
    source = "def cast(a, b):\n    return a\n\n\nx = cast(f(), g())\n"
    edited = source.replace("cast(f(), g())", "cast(h(), g())")

    assert "x = cast(f(), g())" in lower_source(source)
    assert lower_source(edited) != lower_source(source)


def test_cast_is_erased_through_module_and_aliased_imports() -> None:
    module_alias = "import typing as t\n\nx = t.cast(int, g())\n"
    name_alias = "from typing import cast as as_type\n\nx = as_type(int, g())\n"

    assert lower_source(module_alias) == "x = g()\n"
    assert lower_source(name_alias) == "x = g()\n"


def test_cast_bound_by_a_parameter_is_not_erased() -> None:
    source = "from typing import cast\n\n\ndef apply(cast):\n    return cast(f(), g())\n"

    assert "return cast(f(), g())" in lower_source(source)


def test_unimported_typing_names_are_left_alone() -> None:
    source = "def TypeVar(name):\n    return name\n\n\nT = TypeVar('T')\n"

    assert "T = TypeVar('T')" in lower_source(source)


def test_deeply_nested_expression_raises_lowering_error() -> None:
    source = "x = " + " + ".join(["1"] * 5000) + "\n"

    with pytest.raises(LoweringError) as excinfo:
        lower_source(source, filename="deep.py")

    assert excinfo.value.path == "deep.py"
    assert "RecursionError" in excinfo.value.detail
