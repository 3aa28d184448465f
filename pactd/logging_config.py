"""Structured logging configuration for the pact daemon and test sessions."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

import structlog

_configured = False

# Rotation for the daemon's --log-file
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_structured_logging(
    log_file_path: Path | None = None,
    log_level: str = "INFO",
    console_output: bool = True,
) -> None:
    """
    Route structlog through the stdlib root logger.

    Console output uses the dev renderer; when a log file is given, records are
    written as JSON lines to a rotating file instead.
    """
    global _configured

    level = getattr(logging, log_level.upper())
    handlers: list[logging.Handler] = []

    if console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        handlers.append(console_handler)

    if log_file_path:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file_path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        handlers.append(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            _get_processor(log_file_path is not None),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    _configured = True


def configure_once(log_level: str = "INFO") -> None:
    """Configure console logging unless something already did."""
    if _configured:
        return

    setup_structured_logging(log_level=log_level)


def _get_processor(use_json: bool) -> Any:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def flush_logs() -> None:
    """Force flush all log handlers to ensure logs are written to files."""
    for handler in logging.getLogger().handlers:
        handler.flush()
