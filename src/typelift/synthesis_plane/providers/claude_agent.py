"""
typelift — Claude agent oracle adapter

File: src/typelift/synthesis_plane/providers/claude_agent.py
Last updated: 2026-10-16

Purpose
- Transformation oracle backed by the Claude agent runtime (``claude-agent-sdk``).

What should be included in this file
- Session driver that streams agent messages and extracts the final accounting record.
- Classification of assistant error texts (transient API error, quota exhaustion, oversized
  prompt) into the provider error taxonomy.
- Continuation of sessions interrupted by transient API errors with bounded backoff.
- Edit hook wiring: pre/post tool-use callbacks delegating to the behavior gate.

Functional requirements
- The SDK is optional and imported lazily; a missing SDK raises ProviderUnavailableError.
- An exception raised by an edit hook stops the session and is re-raised by ``invoke``.

Non-functional requirements
- A client factory can be injected so tests never reach the real runtime.
"""

from __future__ import annotations

import asyncio
import importlib
import json
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Final, Protocol, cast

import structlog

from typelift.constants import CONTINUE_INSTRUCTION
from typelift.synthesis_plane.providers.base import (
    BackoffConfig,
    OracleOptions,
    OracleResult,
    ProviderContextLengthError,
    ProviderQuotaExhaustedError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderUnavailableError,
    SleepFn,
    compute_backoff_delay,
)

if TYPE_CHECKING:
    from types import TracebackType

logger = structlog.get_logger(__name__)

TRANSIENT_ERROR_PREFIX: Final[str] = "API Error"
QUOTA_PREFIXES: Final[tuple[str, ...]] = (
    "Session limit reached",
    "Weekly limit reached",
    "Usage limit reached",
)
CONTEXT_LENGTH_PREFIX: Final[str] = "Prompt is too long"
PREVIEW_LIMIT: Final[int] = 100


class _AgentClient(Protocol):
    async def __aenter__(self) -> _AgentClient: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> object: ...

    async def query(self, prompt: str) -> None: ...

    def receive_response(self) -> AsyncIterator[object]: ...


@dataclass(frozen=True, slots=True)
class AgentSessionRequest:
    """SDK-independent description of one agent session."""

    cwd: str
    permission_mode: str
    resume: str | None = None
    model: str | None = None
    hooks: Mapping[str, Callable[..., object]] = field(default_factory=dict)


ClientFactory = Callable[[AgentSessionRequest], _AgentClient]


class ClaudeAgentOracle:
    """Drives Claude agent sessions on behalf of the repair loop."""

    provider_name = "claude_agent"

    def __init__(
        self,
        *,
        model: str | None = None,
        max_continuations: int = 3,
        backoff: BackoffConfig | None = None,
        client_factory: ClientFactory | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_continuations < 0:
            raise ValueError("max_continuations must be >= 0")
        self._model = model.strip() if model and model.strip() else None
        self._max_continuations = max_continuations
        self._backoff = backoff if backoff is not None else BackoffConfig()
        self._client_factory = client_factory if client_factory is not None else _sdk_client
        self._sleep = sleep

    async def invoke(self, instruction: str, options: OracleOptions) -> OracleResult:
        result, interrupted = await self._run_session(instruction, options)
        continuations = 0
        while interrupted:
            if continuations >= self._max_continuations:
                raise ProviderRateLimitError(
                    f"session still interrupted by API errors after {continuations} continuations",
                    provider=self.provider_name,
                    http_status=None,
                )
            continuations += 1
            delay = compute_backoff_delay(retry_number=continuations, config=self._backoff)
            logger.warning(
                "oracle_session_interrupted",
                session=result.session_handle,
                continuation=continuations,
                delay_seconds=delay,
            )
            await self._sleep(delay)
            resumed = replace(options, resume_session=result.session_handle)
            follow_up, interrupted = await self._run_session(CONTINUE_INSTRUCTION, resumed)
            result = result.merged_with(follow_up)
        return result

    async def _run_session(
        self, instruction: str, options: OracleOptions
    ) -> tuple[OracleResult, bool]:
        hook_failures: list[Exception] = []
        request = AgentSessionRequest(
            cwd=options.working_directory,
            permission_mode=options.edit_permission,
            resume=options.resume_session,
            model=self._model,
            hooks=self._hooks(options, hook_failures),
        )
        client = self._client_factory(request)

        interrupted = False
        result: OracleResult | None = None
        async with client:
            await client.query(instruction)
            async for message in client.receive_response():
                if options.verbose:
                    _log_message(message)
                kind = type(message).__name__
                if kind == "AssistantMessage":
                    interrupted = self._classify_assistant(message) or interrupted
                elif kind == "ResultMessage" and result is None:
                    result = _success_result(message)

        if hook_failures:
            raise hook_failures[0]
        if result is None:
            raise ProviderResponseError("query failed", provider=self.provider_name)
        return result, interrupted

    def _classify_assistant(self, message: object) -> bool:
        """Return True for a transient API error; raise for fatal or oversized-input errors."""

        text = _first_text(message)
        if text is None:
            return False
        if text.startswith(TRANSIENT_ERROR_PREFIX):
            return True
        for prefix in QUOTA_PREFIXES:
            if text.startswith(prefix):
                raise ProviderQuotaExhaustedError(prefix, provider=self.provider_name)
        if text.startswith(CONTEXT_LENGTH_PREFIX):
            raise ProviderContextLengthError(CONTEXT_LENGTH_PREFIX, provider=self.provider_name)
        return False

    def _hooks(
        self, options: OracleOptions, failures: list[Exception]
    ) -> dict[str, Callable[..., object]]:
        if options.on_pre_edit is None and options.on_post_edit is None:
            return {}

        async def edit_hook(
            input_data: dict[str, object], tool_use_id: str | None, context: object
        ) -> dict[str, object]:
            event = input_data.get("hook_event_name")
            tool_name = str(input_data.get("tool_name", ""))
            raw_input = input_data.get("tool_input")
            tool_input = cast("Mapping[str, object]", raw_input if raw_input is not None else {})
            try:
                if event == "PreToolUse" and options.on_pre_edit is not None:
                    await options.on_pre_edit(tool_name, tool_input)
                elif event == "PostToolUse" and options.on_post_edit is not None:
                    directive = await options.on_post_edit(tool_name, tool_input)
                    if directive is not None:
                        return {
                            "hookSpecificOutput": {
                                "hookEventName": "PostToolUse",
                                "additionalContext": directive,
                            }
                        }
            except Exception as exc:  # noqa: BLE001
                # Re-raised by _run_session once the session has stopped.
                failures.append(exc)
                logger.error("edit_hook_failed", tool=tool_name, error=str(exc))
                return {"continue_": False, "stopReason": str(exc)}
            return {}

        return {"PreToolUse": edit_hook, "PostToolUse": edit_hook}


def _sdk_client(request: AgentSessionRequest) -> _AgentClient:
    try:
        sdk = importlib.import_module("claude_agent_sdk")
    except ImportError as exc:
        raise ProviderUnavailableError(
            "claude-agent-sdk is not installed; install typelift[claude]",
            provider=ClaudeAgentOracle.provider_name,
        ) from exc

    hooks = {
        event: [sdk.HookMatcher(matcher=None, hooks=[callback])]
        for event, callback in request.hooks.items()
    }
    option_kwargs: dict[str, object] = {
        "cwd": request.cwd,
        "permission_mode": request.permission_mode,
    }
    if hooks:
        option_kwargs["hooks"] = hooks
    if request.resume is not None:
        option_kwargs["resume"] = request.resume
    if request.model is not None:
        option_kwargs["model"] = request.model
    options = sdk.ClaudeAgentOptions(**option_kwargs)
    return cast("_AgentClient", sdk.ClaudeSDKClient(options=options))


def _success_result(message: object) -> OracleResult | None:
    if _read_value(message, "subtype") != "success":
        return None
    cost = _read_value(message, "total_cost_usd")
    duration_ms = _read_value(message, "duration_ms")
    turns = _read_value(message, "num_turns")
    session_id = _read_value(message, "session_id")
    return OracleResult(
        result_text=str(_read_value(message, "result") or ""),
        session_handle=session_id if isinstance(session_id, str) and session_id else None,
        cost_usd=float(cost) if isinstance(cost, (int, float)) else 0.0,
        turns=turns if isinstance(turns, int) else 0,
        duration_seconds=duration_ms / 1000 if isinstance(duration_ms, (int, float)) else 0.0,
    )


def _first_text(message: object) -> str | None:
    blocks = _content_blocks(message)
    if not blocks:
        return None
    text = _read_value(blocks[0], "text")
    return text if isinstance(text, str) else None


def _content_blocks(message: object) -> tuple[object, ...]:
    content = _read_value(message, "content")
    if isinstance(content, str):
        return ()
    if isinstance(content, Sequence):
        return tuple(content)
    return ()


def _log_message(message: object) -> None:
    kind = type(message).__name__
    if kind == "UserMessage":
        logger.info("oracle_user_message", content=_format_user_message(message))
    elif kind == "AssistantMessage":
        for block in _content_blocks(message):
            logger.info("oracle_assistant_message", content=_format_assistant_block(block))
    elif kind == "ResultMessage":
        cost = _read_value(message, "total_cost_usd")
        duration_ms = _read_value(message, "duration_ms")
        logger.info(
            "oracle_result",
            subtype=_read_value(message, "subtype"),
            duration_seconds=(
                round(duration_ms / 1000, 2) if isinstance(duration_ms, (int, float)) else None
            ),
            cost_usd=round(cost, 2) if isinstance(cost, (int, float)) else None,
            turns=_read_value(message, "num_turns"),
            result=_read_value(message, "result"),
        )
    elif kind == "SystemMessage":
        logger.info("oracle_system_message", subtype=_read_value(message, "subtype"))


def _format_user_message(message: object) -> str:
    content = _read_value(message, "content")
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in _content_blocks(message):
        text = _read_value(block, "text")
        if isinstance(text, str):
            parts.append(text)
            continue
        result = _read_value(block, "content")
        rendered = result if isinstance(result, str) else json.dumps(result, default=str)
        parts.append(f"tool_result: {_preview(rendered)}")
    return "\n".join(parts)


def _format_assistant_block(block: object) -> str:
    thinking = _read_value(block, "thinking")
    if isinstance(thinking, str):
        return f"thinking: {thinking}"
    name = _read_value(block, "name")
    if isinstance(name, str):
        tool_input = _read_value(block, "input")
        if name == "TodoWrite" and isinstance(tool_input, Mapping):
            todos = tool_input.get("todos")
            if isinstance(todos, Sequence):
                return "TodoWrite:\n" + "\n".join(_format_todo(todo) for todo in todos)
        return f"tool_use: {name}({json.dumps(tool_input, default=str, sort_keys=True)})"
    text = _read_value(block, "text")
    if isinstance(text, str):
        return text
    return type(block).__name__


def _format_todo(todo: object) -> str:
    status = _read_value(todo, "status")
    if status == "completed":
        return f"[x] {_read_value(todo, 'content')}"
    if status == "in_progress":
        return f"[~] {_read_value(todo, 'activeForm')}"
    return f"[ ] {_read_value(todo, 'content')}"


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_LIMIT:
        return text
    return f"{text[:PREVIEW_LIMIT]}... ({len(text)} characters)"


def _read_value(value: object, key: str) -> object | None:
    if isinstance(value, Mapping):
        return cast("object | None", value.get(key))
    return cast("object | None", getattr(value, key, None))


__all__ = [
    "AgentSessionRequest",
    "ClaudeAgentOracle",
    "ClientFactory",
    "QUOTA_PREFIXES",
]
