"""Observability: queue-backed JSON-lines logging with structlog routing and redaction."""

from typelift.observability.logging import (
    LoggingConfig,
    RunLogHandle,
    configure_logging,
    configure_structlog,
    default_log_redactor,
    get_active_logging_handle,
    new_run_id,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "RunLogHandle",
    "configure_logging",
    "configure_structlog",
    "default_log_redactor",
    "get_active_logging_handle",
    "new_run_id",
    "shutdown_logging",
]
