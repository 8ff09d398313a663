"""
Tests for structured logging.
"""

import asyncio
import json
import logging
import logging.handlers
from uuid import uuid4

import pytest

from shared.logging import (
    JSONFormatter,
    get_job_id,
    get_logger,
    get_step,
    job_context,
    set_job_id,
    set_step
)


def _last_json(caplog) -> dict:
    assert len(caplog.records) > 0
    return json.loads(JSONFormatter().format(caplog.records[-1]))


def test_get_logger_creates_logger():
    """Test that get_logger creates a logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test_module"


def test_get_logger_does_not_duplicate_handlers():
    first = get_logger("test_module_handlers")
    count = len(first.handlers)
    assert get_logger("test_module_handlers") is first
    assert len(first.handlers) == count


def test_logger_outputs_json_format(caplog):
    """Test that logger outputs JSON with extra fields."""
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)

    logger.info("Outline batch accepted", extra={"batch_index": 2, "scene_range": "7-9"})

    log_data = _last_json(caplog)
    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "test_module"
    assert log_data["message"] == "Outline batch accepted"
    assert log_data["batch_index"] == 2
    assert log_data["scene_range"] == "7-9"
    assert log_data["timestamp"].endswith("Z")


def test_logger_includes_job_id_and_step(caplog):
    """Test that context fields are injected."""
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)
    job_id = uuid4()

    set_job_id(job_id)
    set_step(3)
    try:
        logger.info("Writing script")
        log_data = _last_json(caplog)
        assert log_data["job_id"] == str(job_id)
        assert log_data["step"] == 3
    finally:
        set_job_id(None)
        set_step(None)


def test_logger_excludes_context_when_not_set(caplog):
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)

    set_job_id(None)
    set_step(None)
    logger.info("Test message")

    log_data = _last_json(caplog)
    assert "job_id" not in log_data
    assert "step" not in log_data


def test_set_get_job_id():
    """Test that job_id can be set and retrieved."""
    job_id = uuid4()
    set_job_id(job_id)
    assert get_job_id() == job_id

    set_job_id(None)
    assert get_job_id() is None


def test_job_context_restores_previous_values():
    outer = uuid4()
    set_job_id(outer)
    set_step(2)
    try:
        with job_context(uuid4(), step=5):
            assert get_job_id() != outer
            assert get_step() == 5
        assert get_job_id() == outer
        assert get_step() == 2
    finally:
        set_job_id(None)
        set_step(None)


@pytest.mark.asyncio
async def test_context_is_isolated_between_tasks():
    """Test that gathered tasks do not see each other's job id."""
    seen = {}

    async def run(job_id):
        set_job_id(job_id)
        await asyncio.sleep(0)
        seen[job_id] = get_job_id()

    ids = [uuid4() for _ in range(3)]
    await asyncio.gather(*(run(i) for i in ids))

    assert all(seen[i] == i for i in ids)


def test_logger_includes_exception(caplog):
    """Test that logger includes exception information."""
    logger = get_logger("test_module")
    logger.setLevel(logging.ERROR)

    try:
        raise ValueError("Test error")
    except ValueError:
        logger.exception("Exception occurred")

    log_data = _last_json(caplog)
    assert "ValueError" in log_data["exception"]
    assert "Test error" in log_data["exception"]


def test_logger_respects_log_level(caplog):
    """Test that logger respects log level configuration."""
    logger = get_logger("test_module")
    logger.setLevel(logging.WARNING)

    logger.debug("Debug message")
    logger.info("Info message")
    logger.warning("Warning message")
    logger.error("Error message")

    log_levels = [record.levelname for record in caplog.records]
    assert "DEBUG" not in log_levels
    assert "INFO" not in log_levels
    assert "WARNING" in log_levels
    assert "ERROR" in log_levels


def test_logger_handles_complex_types(caplog):
    """Test that lists and dicts stay JSON, other objects become strings."""
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)
    job_id = uuid4()

    logger.info("Test message", extra={"missing": [4, 5], "counts": {"active": 2}, "job_ref": job_id})

    log_data = _last_json(caplog)
    assert log_data["missing"] == [4, 5]
    assert log_data["counts"] == {"active": 2}
    assert log_data["job_ref"] == str(job_id)


def test_logger_keeps_non_ascii(caplog):
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)
    logger.info("Cảnh 1: Lời dẫn")
    output = JSONFormatter().format(caplog.records[-1])
    assert "Cảnh 1: Lời dẫn" in output


def test_logger_creates_file_handler(tmp_path, monkeypatch):
    """Test that logger creates file handler with rotation."""
    from shared.config import settings

    monkeypatch.setattr(settings, "log_to_file", True)
    monkeypatch.setattr(settings, "log_dir", str(tmp_path / "logs"))

    logger = get_logger(f"test_module_{id(tmp_path)}")

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == 100 * 1024 * 1024
    assert file_handlers[0].backupCount == 5
    assert (tmp_path / "logs").is_dir()
