"""Quality tooling: audit of suppression comments left in a migrated project."""

from typelift.quality.suppression_audit import (
    SuppressionAudit,
    SuppressionFinding,
    SuppressionKind,
    audit_suppressions,
    classify_comment,
    format_json,
    format_text,
    scan_source,
)

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
