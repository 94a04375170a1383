"""Run-scoped JSON-lines logging for typelift.

Control-plane code logs decision events through ``structlog``. ``configure_logging`` routes
them, together with plain stdlib records under the ``typelift`` logger, through a bounded
queue into ``<log_dir>/<run_id>/typelift.jsonl``: one JSON object per line, with secrets
(API keys, bearer tokens, password-like assignments) masked before anything reaches disk.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import math
import queue
import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

import structlog

REDACTED: Final[str] = "***REDACTED***"
LOG_FILENAME: Final[str] = "typelift.jsonl"

_SECRET_KEY_PARTS: Final[frozenset[str]] = frozenset(
    {
        "apikey",
        "authorization",
        "cookie",
        "credential",
        "credentials",
        "password",
        "secret",
        "token",
    }
)
_SECRET_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret)\s*[:=]\s*[^\s,;]+"
)
_BEARER: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_ANTHROPIC_KEY: Final[re.Pattern[str]] = re.compile(r"\bsk-ant-[A-Za-z0-9_-]{12,}\b")

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_active_lock = threading.Lock()
_active: RunLogHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how verbosely one run logs."""

    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = "typelift"
    level: int | str = "INFO"
    queue_size: int = 4096
    log_to_stdout: bool = False


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    """Never blocks a worker on logging; a full queue drops the record and counts it."""

    def __init__(self, log_queue: queue.Queue[Any]) -> None:
        super().__init__(log_queue)
        self._lock = threading.Lock()
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._lock:
                self.dropped += 1


class _JsonLineFormatter(logging.Formatter):
    def __init__(self, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "run_id": self._run_id,
            "message": _redact_text(record.getMessage()),
        }
        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if fields:
            event["fields"] = default_log_redactor(_jsonable(fields))
        if record.exc_info is not None:
            event["exception"] = _redact_text(self.formatException(record.exc_info))
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class RunLogHandle:
    """The live logging setup of one run; ``shutdown`` drains the queue and closes sinks."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        log_path: Path,
        queue_handler: _DroppingQueueHandler,
        listener: logging.handlers.QueueListener,
        sinks: tuple[logging.Handler, ...],
    ) -> None:
        self.log_path = log_path
        self._logger = logger
        self._queue_handler = queue_handler
        self._listener = listener
        self._sinks = sinks
        self._lock = threading.Lock()
        self._shutdown = False

    @property
    def dropped_records(self) -> int:
        return self._queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def shutdown(self) -> None:
        with self._lock:
            if self._shutdown:
                return
            # stop() processes every queued record before returning.
            self._listener.stop()
            self._logger.removeHandler(self._queue_handler)
            self._queue_handler.close()
            for sink in self._sinks:
                sink.close()
            self._shutdown = True


def configure_logging(config: LoggingConfig) -> RunLogHandle:
    """Start JSON-lines logging for one run, replacing any run log still active."""

    global _active

    run_id = config.run_id.strip()
    if not run_id:
        raise ValueError("run_id must not be empty")
    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    level = _parse_level(config.level)

    shutdown_logging()

    log_path = Path(config.base_log_dir) / run_id / LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = _JsonLineFormatter(run_id)
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(config.logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()

    log_queue: queue.Queue[Any] = queue.Queue(maxsize=config.queue_size)
    queue_handler = _DroppingQueueHandler(log_queue)
    listener = logging.handlers.QueueListener(log_queue, *sinks, respect_handler_level=True)
    listener.start()
    logger.addHandler(queue_handler)
    configure_structlog()

    handle = RunLogHandle(
        logger=logger,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    with _active_lock:
        _active = handle
    return handle


def configure_structlog() -> None:
    """Send structlog events through stdlib logging; keyword fields become record extras."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def shutdown_logging(handle: RunLogHandle | None = None) -> None:
    """Shut down ``handle``, or the active run log when none is given."""

    global _active

    with _active_lock:
        target = handle if handle is not None else _active
        if target is None:
            return
        if _active is target:
            _active = None
    target.shutdown()


def get_active_logging_handle() -> RunLogHandle | None:
    with _active_lock:
        return _active


def new_run_id(now: datetime | None = None) -> str:
    moment = now if now is not None else datetime.now(tz=UTC)
    return moment.strftime("%Y%m%dT%H%M%SZ")


def default_log_redactor(value: Any) -> Any:
    """Mask secrets in JSON-shaped data: values under secret-looking keys and inline tokens."""

    if isinstance(value, str):
        return _redact_text(value)
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_secret_key(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    return value


def _is_secret_key(key: str) -> bool:
    parts = set(re.split(r"[_\-.]", key.lower()))
    return bool(parts & _SECRET_KEY_PARTS) or {"api", "key"} <= parts


def _redact_text(text: str) -> str:
    text = _SECRET_ASSIGNMENT.sub(lambda match: f"{match.group(1)}={REDACTED}", text)
    text = _BEARER.sub(f"Bearer {REDACTED}", text)
    return _ANTHROPIC_KEY.sub(REDACTED, text)


def _jsonable(value: object) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_jsonable(item) for item in value), key=repr)
    return str(value)


def _parse_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


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
