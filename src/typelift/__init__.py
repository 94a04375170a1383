"""
typelift — package root

File: src/typelift/__init__.py
Last updated: 2026-10-16

Purpose
- Package root for the agent-driven typing migration orchestrator.

What should be included in this file
- Version export and a deliberately small public surface.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init, no SDK import).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
