"""Transformation oracle interface, error taxonomy and the Claude agent adapter."""

from typelift.synthesis_plane.providers.base import (
    BackoffConfig,
    OracleOptions,
    OracleResult,
    ProviderContextLengthError,
    ProviderError,
    ProviderQuotaExhaustedError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderUnavailableError,
    TransformationOracle,
)
from typelift.synthesis_plane.providers.claude_agent import ClaudeAgentOracle

__all__ = [
    "BackoffConfig",
    "ClaudeAgentOracle",
    "OracleOptions",
    "OracleResult",
    "ProviderContextLengthError",
    "ProviderError",
    "ProviderQuotaExhaustedError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderUnavailableError",
    "TransformationOracle",
]
