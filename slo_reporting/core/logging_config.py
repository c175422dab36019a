"""
Centralized logging configuration with run_id context support using loguru.

This module configures loguru to intercept all standard logging calls and
tags every record emitted during a sync run with the run's id, using
contextvars so the id follows the run across awaits.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from types import FrameType
from typing import Optional

from loguru import logger

from slo_reporting.core.config import settings

run_id_var: ContextVar[str] = ContextVar("run_id", default="-")


class InterceptHandler(logging.Handler):
    """
    Handler that intercepts standard logging calls and redirects them to loguru.

    Modules keep using logging.getLogger(__name__); records end up in the
    loguru sinks configured below.
    """

    def emit(self, record: logging.LogRecord):
        """Intercept standard logging record and pass to loguru."""
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logging call originated
        frame: Optional[FrameType] = sys._getframe(settings.LOGGING_FRAME_DEPTH)
        depth: int = settings.LOGGING_FRAME_DEPTH

        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def context_filter(record):
    """Add run_id from contextvars to log records."""
    run_id = run_id_var.get()
    if run_id and run_id != "-":
        record["extra"]["run_id"] = run_id
    return record


def build_json_record(record) -> dict:
    """
    Build a JSON log record from a loguru record.

    Includes timestamp, level, logger name, message, run_id (if present)
    and exception details (if present).
    """
    log_record = {
        "timestamp": record["time"].strftime("%Y-%m-%d %H:%M:%S"),
        "level": record["level"].name,
        "logger": record["name"],
        "message": record["message"],
    }

    if "run_id" in record["extra"]:
        log_record["run_id"] = record["extra"]["run_id"]

    if record["exception"]:
        exc = record["exception"]
        traceback_text = None
        if exc.traceback:
            traceback_text = "".join(
                traceback.format_exception(exc.type, exc.value, exc.traceback)
            ).strip()
        log_record["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
            "traceback": traceback_text,
        }
    else:
        log_record["exception"] = None

    return log_record


def json_sink(message):
    """Sink that writes one JSON document per record to stderr."""
    sys.stderr.write(json.dumps(build_json_record(message.record)) + "\n")


def configure_logging():
    """
    Configure logging for the application using loguru.

    1. Removes default loguru handler
    2. Adds the JSON sink on stderr
    3. Injects run_id from contextvars into every record
    4. Intercepts standard logging calls
    5. Quiets chatty HTTP/AWS libraries
    """
    logger.remove()

    logger.add(
        json_sink,
        level=settings.LOG_LEVEL,
        backtrace=True,
        diagnose=False,
        filter=context_filter,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger.info("Logging configured successfully with loguru")


def set_run_id(run_id: str):
    """
    Set the run_id for the current context.

    Called at the beginning of each sync run. All subsequent logs in this
    context automatically include this run_id.
    """
    run_id_var.set(run_id)


def clear_run_id():
    """Clear the run_id from the current context."""
    run_id_var.set("-")


def get_run_id() -> str:
    """Get the current run_id from context."""
    return run_id_var.get()
