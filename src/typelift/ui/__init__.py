"""Command-line surface: argument routing and terminal rendering."""

from typelift.ui.cli import CLIError, build_parser, run_cli
from typelift.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "run_cli"]
