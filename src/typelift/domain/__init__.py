"""
typelift — domain types

File: src/typelift/domain/__init__.py
Last updated: 2026-10-16

Purpose
- Domain types shared across planes: Project, Diagnostic, RepairSession, RepairStats, outcomes.

Functional requirements
- Domain layer stays free of IO side effects.
"""
