"""
typelift — transformation oracle interface and shared provider utilities

File: src/typelift/synthesis_plane/providers/base.py
Last updated: 2026-10-16

Purpose
- Abstract oracle interface used by the repair loop: an instruction plus invocation options in,
  an accounting record (result text, session handle, cost, turns, duration) out.

What should be included in this file
- OracleOptions / OracleResult value types and the TransformationOracle protocol.
- Error taxonomy with retryability flags.
- Bounded exponential backoff helpers shared by adapters.

Functional requirements
- Errors carry deterministic machine-readable fields (provider, code, retryable).
- Quota exhaustion is distinguishable from retryable rate limiting.

Non-functional requirements
- Must make it easy to add new oracles without touching the control plane.
"""

from __future__ import annotations

import math
import random as random_module
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Protocol, TypeAlias, runtime_checkable

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]
RandomFn: TypeAlias = Callable[[], float]

# Called with the tool name and raw tool input of an edit tool use.
PreEditHook: TypeAlias = Callable[[str, Mapping[str, object]], Awaitable[None]]
PostEditHook: TypeAlias = Callable[[str, Mapping[str, object]], Awaitable[str | None]]


def _validate_non_empty_str(value: str, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{field_name} cannot be empty")
    return normalized


@dataclass(frozen=True, slots=True)
class OracleOptions:
    """Per-invocation options handed to a transformation oracle."""

    working_directory: str
    edit_permission: str = "acceptEdits"
    resume_session: str | None = None
    on_pre_edit: PreEditHook | None = None
    on_post_edit: PostEditHook | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "working_directory",
            _validate_non_empty_str(self.working_directory, "working_directory"),
        )
        object.__setattr__(
            self,
            "edit_permission",
            _validate_non_empty_str(self.edit_permission, "edit_permission"),
        )
        if self.resume_session is not None and not self.resume_session.strip():
            object.__setattr__(self, "resume_session", None)


@dataclass(frozen=True, slots=True)
class OracleResult:
    """Accounting record of one completed oracle invocation."""

    result_text: str
    session_handle: str | None
    cost_usd: float = 0.0
    turns: int = 0
    duration_seconds: float = 0.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.cost_usd) or self.cost_usd < 0:
            raise ValueError("cost_usd must be a finite value >= 0")
        if isinstance(self.turns, bool) or self.turns < 0:
            raise ValueError("turns must be >= 0")
        if not math.isfinite(self.duration_seconds) or self.duration_seconds < 0:
            raise ValueError("duration_seconds must be a finite value >= 0")

    def merged_with(self, other: OracleResult) -> OracleResult:
        """Return ``other`` with this result's cost, turns and duration added in."""

        return OracleResult(
            result_text=other.result_text,
            session_handle=other.session_handle or self.session_handle,
            cost_usd=self.cost_usd + other.cost_usd,
            turns=self.turns + other.turns,
            duration_seconds=self.duration_seconds + other.duration_seconds,
        )


@runtime_checkable
class TransformationOracle(Protocol):
    """Oracle contract: edits files in the working directory to satisfy an instruction."""

    async def invoke(self, instruction: str, options: OracleOptions) -> OracleResult: ...


class ProviderError(RuntimeError):
    """Base normalized provider error with deterministic machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        code: str,
        detail: str,
        retryable: bool,
        http_status: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        self.provider = _validate_non_empty_str(provider, "provider")
        self.code = _validate_non_empty_str(code, "code")
        self.detail = _normalize_detail(detail)
        self.retryable = bool(retryable)
        self.http_status = http_status
        self.provider_code = provider_code

        parts = [
            f"provider={self.provider}",
            f"code={self.code}",
            f"retryable={str(self.retryable).lower()}",
        ]
        if self.http_status is not None:
            parts.append(f"http_status={self.http_status}")
        if self.provider_code is not None:
            parts.append(f"provider_code={self.provider_code}")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))


class ProviderUnavailableError(ProviderError):
    """Raised when provider runtime/SDK is unavailable."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="unavailable", detail=detail, retryable=False)


class ProviderContextLengthError(ProviderError):
    """Instruction plus conversation exceeds the oracle's input limit."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(
            provider=provider,
            code="context_length",
            detail=detail,
            retryable=False,
        )


class ProviderRateLimitError(ProviderError):
    """Transient rate-limit or API interruption (retryable)."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = 429,
    ) -> None:
        super().__init__(
            provider=provider,
            code="rate_limit",
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class ProviderQuotaExhaustedError(ProviderError):
    """Session, weekly or usage quota is exhausted; fatal for the whole run."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="quota_exhausted", detail=detail, retryable=False)


class ProviderResponseError(ProviderError):
    """Raised when the oracle finishes without a usable result."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="response_invalid", detail=detail, retryable=False)


@dataclass(frozen=True, slots=True)
class BackoffConfig:
    """Bounded exponential backoff policy."""

    initial_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.0

    def __post_init__(self) -> None:
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must be <= max_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")


def compute_backoff_delay(
    *,
    retry_number: int,
    config: BackoffConfig,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return bounded exponential backoff delay for retry attempt N (1-based)."""

    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")

    base_delay = config.initial_delay_seconds * (config.multiplier ** (retry_number - 1))
    bounded_delay = min(base_delay, config.max_delay_seconds)

    if config.jitter_ratio == 0.0:
        return bounded_delay

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")

    max_jitter = bounded_delay * config.jitter_ratio
    jitter = ((random_value * 2.0) - 1.0) * max_jitter
    return max(0.0, min(config.max_delay_seconds, bounded_delay + jitter))


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


__all__ = [
    "BackoffConfig",
    "OracleOptions",
    "OracleResult",
    "PostEditHook",
    "PreEditHook",
    "ProviderContextLengthError",
    "ProviderError",
    "ProviderQuotaExhaustedError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderUnavailableError",
    "RandomFn",
    "SleepFn",
    "TransformationOracle",
    "compute_backoff_delay",
]
