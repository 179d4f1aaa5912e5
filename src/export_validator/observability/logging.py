"""
export-validator — run logging

File: src/export_validator/observability/logging.py
Last updated: 2026-10-18

Purpose
- Every CLI run writes one JSON object per line to
  ``<log_dir>/<run_id>/validator.jsonl``.
- Component code logs through ``structlog.get_logger(__name__)``; structlog is
  configured to hand events to stdlib logging so both paths share one sink.

Functional requirements
- Producers never block on disk: records go through a bounded queue drained by a
  ``QueueListener``; when the queue is full the record is dropped and counted.
- ``run_id``, ``export_type`` and ``version`` are top-level keys on every line
  logged inside the matching ``correlation_scope``; other key/value pairs are
  nested under ``fields``.
- Only one run sink is active per process; configuring a new one closes the old.
"""

from __future__ import annotations

import atexit
import json
import logging
import logging.handlers
import math
import queue
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from pathlib import Path
from typing import Final

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

LOG_FILENAME: Final[str] = "validator.jsonl"
ROOT_LOGGER: Final[str] = "export_validator"
CORRELATION_KEYS: Final[tuple[str, ...]] = ("run_id", "export_type", "version")

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "correlation"}

_state_lock = threading.Lock()
_active: StructuredLoggingHandle | None = None
_atexit_hooked = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = ROOT_LOGGER
    level: int | str = "INFO"
    log_format: str = "json"
    queue_size: int = 4096
    log_filename: str = LOG_FILENAME
    log_to_stderr: bool = False

    def validated(self) -> tuple[str, int]:
        """Return the cleaned run id and numeric level, or raise ``ValueError``."""

        run_id = self.run_id.strip() if isinstance(self.run_id, str) else ""
        if not run_id or Path(run_id).name != run_id:
            raise ValueError(f"run_id must be a non-empty bare name, got {self.run_id!r}")
        if self.queue_size <= 0:
            raise ValueError("queue_size must be > 0")
        if not self.log_filename or Path(self.log_filename).name != self.log_filename:
            raise ValueError("log_filename must be a bare file name")
        return run_id, _level_number(self.level)


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    log_to_stderr: bool = False,
) -> StructuredLoggingHandle:
    """Start the run sink described by an ``[observability]`` config section."""

    section = observability_config or {}
    level = section.get("log_level", "INFO")
    log_format = section.get("log_format", "json")
    base = log_dir if log_dir is not None else section.get("log_dir", "logs")
    return setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=base if isinstance(base, (str, Path)) else "logs",
            level=level if isinstance(level, (int, str)) else "INFO",
            log_format=log_format if isinstance(log_format, str) else "json",
            log_to_stderr=log_to_stderr,
        )
    )


def configure_structlog() -> None:
    """Route structlog through stdlib logging; event kwargs become record extras."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_correlation_context() -> dict[str, str]:
    return {key: str(value) for key, value in structlog.contextvars.get_contextvars().items()}


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for the enclosed block; a ``None`` value unbinds the key.

    Bindings live in structlog's context variables, so they follow the current
    thread or task and are restored on exit.
    """

    previous = structlog.contextvars.get_contextvars()
    bind: dict[str, str] = {}
    unbind: list[str] = []
    for key, value in fields.items():
        if not key.strip():
            raise ValueError("correlation key must not be empty")
        text = "" if value is None else str(value).strip()
        if text:
            bind[key.strip()] = text
        else:
            unbind.append(key.strip())
    structlog.contextvars.unbind_contextvars(*unbind)
    structlog.contextvars.bind_contextvars(**bind)
    try:
        yield
    finally:
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**previous)


class _CorrelationFilter(logging.Filter):
    """Stamp the producer's correlation context on the record before it is queued."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_correlation_context()
        if context:
            record.correlation = context
        return True


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    def __init__(self, log_queue: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(log_queue)
        self.dropped = 0
        self._dropped_lock = threading.Lock()

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._dropped_lock:
                self.dropped += 1


class _JsonLineFormatter(logging.Formatter):
    def __init__(self, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        line: dict[str, JSONValue] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": self._run_id,
        }
        line.update(_correlation_of(record))
        extras = _extras_of(record)
        if extras:
            line["fields"] = extras
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            line["stack"] = record.stack_info
        return json.dumps(line, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class _TextFormatter(logging.Formatter):
    """``LEVEL logger: message key=value ...`` for ``--verbose`` on stderr."""

    def format(self, record: logging.LogRecord) -> str:
        pairs = {**_correlation_of(record), **_extras_of(record)}
        text = " ".join(
            [f"{record.levelname:<7} {record.name}: {record.getMessage()}"]
            + [
                f"{key}={value if isinstance(value, str) else json.dumps(value)}"
                for key, value in sorted(pairs.items())
            ]
        )
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


@dataclass(eq=False)
class StructuredLoggingHandle:
    """The active run sink: queue, listener and the handlers it feeds."""

    logger: logging.Logger
    run_id: str
    log_path: Path
    _queue_handler: _DroppingQueueHandler
    _listener: logging.handlers.QueueListener
    _sinks: tuple[logging.Handler, ...]
    _closed: bool = field(default=False, init=False)
    _close_lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    @property
    def dropped_records(self) -> int:
        return self._queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """Drain queued records into the sinks and close them. Safe to call twice."""

        with self._close_lock:
            if self._closed:
                return
            self.logger.removeHandler(self._queue_handler)
            # QueueListener.stop() enqueues a sentinel and joins after the backlog.
            self._listener.stop()
            self._queue_handler.close()
            for sink in self._sinks:
                sink.flush()
                sink.close()
            self._closed = True


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    run_id, level = config.validated()
    shutdown_logging()

    log_path = Path(config.base_log_dir) / run_id / config.log_filename
    log_path.parent.mkdir(parents=True, exist_ok=True)

    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    sinks[0].setFormatter(_JsonLineFormatter(run_id))
    if config.log_to_stderr:
        stderr = logging.StreamHandler()
        stderr.setFormatter(
            _TextFormatter() if config.log_format == "text" else _JsonLineFormatter(run_id)
        )
        sinks.append(stderr)

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=config.queue_size)
    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.addFilter(_CorrelationFilter())
    listener = logging.handlers.QueueListener(log_queue, *sinks)

    logger = logging.getLogger(config.logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(queue_handler)
    listener.start()
    configure_structlog()

    handle = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        _queue_handler=queue_handler,
        _listener=listener,
        _sinks=tuple(sinks),
    )
    global _active, _atexit_hooked
    with _state_lock:
        _active = handle
        if not _atexit_hooked:
            atexit.register(shutdown_logging)
            _atexit_hooked = True
    return handle


def shutdown_logging(handle: StructuredLoggingHandle | None = None) -> None:
    """Close ``handle`` (default: the active sink) and forget it if it was active."""

    global _active
    with _state_lock:
        target = handle if handle is not None else _active
        if target is _active:
            _active = None
    if target is not None:
        target.shutdown()


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _state_lock:
        return _active


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.strip().upper())
    if not isinstance(number, int):
        raise ValueError(f"unknown log level {level!r}")
    return number


def _correlation_of(record: logging.LogRecord) -> dict[str, str]:
    found: dict[str, str] = {}
    stamped = getattr(record, "correlation", None)
    if isinstance(stamped, Mapping):
        found.update((key, value) for key, value in stamped.items() if isinstance(value, str))
    for key in CORRELATION_KEYS:
        value = getattr(record, key, None)
        if isinstance(value, str) and value.strip():
            found[key] = value.strip()
    return found


def _extras_of(record: logging.LogRecord) -> dict[str, JSONValue]:
    return {
        key: _jsonable(value)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and key not in CORRELATION_KEYS and not key.startswith("_")
    }


def _jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, Enum):
        return _jsonable(value.value)
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_jsonable(item) for item in value), key=repr)
    return repr(value)


__all__ = [
    "CORRELATION_KEYS",
    "JSONScalar",
    "JSONValue",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
