"""
export-validator — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-18

Purpose
- Validate structured JSON logging with correlation metadata and queue-backed reliability.

What this test file should cover
- JSON line validity and the ``fields`` envelope for extras.
- Correlation field propagation (run_id, export_type, version).
- structlog events routed through the same sink.
- Multi-threaded logging stability and queue drain/shutdown behavior.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from export_validator.observability import (
    LoggingConfig,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"export_validator.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_json_lines_carry_run_id_correlation_and_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-json", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(export_type="telegram", version="1.2.0"):
        logger.info("version_created", extra={"changes": 3, "path": tmp_path / "x"})
    logger.warning("outside_scope")

    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "run-json" / "validator.jsonl"
    first, second = _read_json_lines(handle.log_path)
    assert first["message"] == "version_created"
    assert first["level"] == "INFO"
    assert first["run_id"] == "run-json"
    assert first["export_type"] == "telegram"
    assert first["version"] == "1.2.0"
    assert first["fields"] == {"changes": 3, "path": str(tmp_path / "x")}
    assert str(first["timestamp"]).endswith("Z")
    assert "export_type" not in second
    assert "fields" not in second


def test_structlog_events_are_routed_to_the_json_sink(tmp_path: Path) -> None:
    handle = setup_logging({"log_level": "INFO", "log_dir": str(tmp_path)}, run_id="run-structlog")
    logger = structlog.get_logger("export_validator.tests.structlog")

    with correlation_scope(run_id="run-structlog", export_type="generic"):
        logger.info("snapshot_built", schemas=2, files=5)
        logger.debug("filtered_out")

    shutdown_logging()

    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    assert parsed[0]["message"] == "snapshot_built"
    assert parsed[0]["logger"] == "export_validator.tests.structlog"
    assert parsed[0]["export_type"] == "generic"
    assert parsed[0]["fields"] == {"files": 5, "schemas": 2}


def test_debug_level_from_observability_config(tmp_path: Path) -> None:
    handle = setup_logging(
        {"log_level": "DEBUG", "log_format": "text"}, run_id="run-debug", log_dir=tmp_path
    )
    structlog.get_logger("export_validator.tests.debug").debug("file_skipped", path="a.jpg")
    shutdown_logging()

    parsed = _read_json_lines(handle.log_path)
    assert [item["message"] for item in parsed] == ["file_skipped"]
    assert parsed[0]["level"] == "DEBUG"


def test_correlation_scope_nests_and_restores() -> None:
    with correlation_scope(run_id="r1", export_type="telegram"):
        with correlation_scope(version="2.0.0", export_type=None):
            assert get_correlation_context() == {"run_id": "r1", "version": "2.0.0"}
        assert get_correlation_context() == {"run_id": "r1", "export_type": "telegram"}
    assert get_correlation_context() == {}


def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-threaded", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        with correlation_scope(export_type=f"export-{thread_idx}"):
            for index in range(per_thread):
                logger.info("decoded", extra={"worker": thread_idx, "index": index})

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    shutdown_logging(handle)

    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == total_threads * per_thread
    assert handle.dropped_records == 0
    for item in parsed:
        fields = item["fields"]
        assert isinstance(fields, dict)
        assert item["export_type"] == f"export-{fields['worker']}"


def test_shutdown_is_idempotent_and_clears_active_handle(tmp_path: Path) -> None:
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-shutdown", base_log_dir=tmp_path, logger_name=_logger_name())
    )
    assert get_active_logging_handle() is handle

    shutdown_logging()
    shutdown_logging(handle)

    assert handle.is_shutdown
    assert get_active_logging_handle() is None


def test_new_setup_replaces_previous_handle(tmp_path: Path) -> None:
    first = setup_structured_logging(
        LoggingConfig(run_id="run-a", base_log_dir=tmp_path, logger_name=_logger_name())
    )
    second = setup_structured_logging(
        LoggingConfig(run_id="run-b", base_log_dir=tmp_path, logger_name=_logger_name())
    )

    assert first.is_shutdown
    assert get_active_logging_handle() is second


@pytest.mark.parametrize(
    "overrides",
    [
        {"run_id": " "},
        {"run_id": "a/b"},
        {"queue_size": 0},
        {"log_filename": "nested/validator.jsonl"},
        {"level": "LOUD"},
    ],
)
def test_invalid_logging_config_is_rejected(tmp_path: Path, overrides: dict[str, object]) -> None:
    values: dict[str, object] = {"run_id": "run-invalid", "base_log_dir": tmp_path}
    values.update(overrides)
    with pytest.raises(ValueError):
        setup_structured_logging(LoggingConfig(**values))  # type: ignore[arg-type]
