"""
Structured logging setup for all modules.

Provides JSON-structured logging with automatic job_id and step injection.
Both are held in context variables, so each job running inside
asyncio.gather logs its own identifiers.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional
from uuid import UUID

from shared.config import settings

# Context variables for job-scoped log fields
job_id_context: ContextVar[Optional[UUID]] = ContextVar("job_id", default=None)
step_context: ContextVar[Optional[int]] = ContextVar("step", default=None)

# Standard LogRecord attributes; anything else on a record came from extra=
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "getMessage", "taskName"
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": record.getMessage(),
        }

        job_id = job_id_context.get()
        if job_id:
            log_data["job_id"] = str(job_id)

        step = step_context.get()
        if step is not None:
            log_data["step"] = step

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if isinstance(value, (str, int, float, bool, type(None))):
                log_data[key] = value
            elif isinstance(value, (list, dict)):
                log_data[key] = value
            else:
                log_data[key] = str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (e.g., "batch_orchestrator")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Don't add handlers if already configured
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    logger.addHandler(console_handler)

    if settings.log_to_file:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_dir / "app.log",
            maxBytes=100 * 1024 * 1024,  # 100MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    return logger


def set_job_id(job_id: Optional[UUID]) -> None:
    """
    Set job_id in context for automatic injection into logs.

    Args:
        job_id: Job ID to set in context
    """
    job_id_context.set(job_id)


def get_job_id() -> Optional[UUID]:
    """Get current job_id from context."""
    return job_id_context.get()


def set_step(step: Optional[int]) -> None:
    """Set the pipeline step (1-6) in context."""
    step_context.set(step)


def get_step() -> Optional[int]:
    """Get current pipeline step from context."""
    return step_context.get()


@contextmanager
def job_context(job_id: Optional[UUID], step: Optional[int] = None) -> Iterator[None]:
    """
    Scope job_id/step log fields to a block, restoring previous values on exit.

    Example:
        with job_context(job.id, step=2):
            logger.info("Outline batch accepted")
    """
    job_token = job_id_context.set(job_id)
    step_token = step_context.set(step)
    try:
        yield
    finally:
        step_context.reset(step_token)
        job_id_context.reset(job_token)
