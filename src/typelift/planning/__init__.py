"""Planning: local import dependency graph used to order file repairs."""

from typelift.planning.dependency_graph import DependencyGraph, DependencyNotFoundError

__all__ = ["DependencyGraph", "DependencyNotFoundError"]
