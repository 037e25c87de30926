# api/logging_setup.py
"""Structured logging configuration using structlog."""

import logging
import logging.handlers
import os
import sys
from typing import Any

import structlog
from structlog.types import Processor

SENSITIVE_KEYS = ("password", "token", "secret", "authorization")
REDACTED = "***REDACTED***"


def redact_sensitive(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Mask credentials and tokens before anything is rendered."""

    def redact_value(key: str, value: Any) -> Any:
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            return REDACTED
        if isinstance(value, dict):
            return {k: redact_value(str(k), v) for k, v in value.items()}
        return value

    return {k: redact_value(k, v) for k, v in event_dict.items()}


LOG_FILE_BACKUPS = 14


def _file_handler(log_dir, name, formatter, level=logging.NOTSET):
    handler = logging.handlers.TimedRotatingFileHandler(
        os.path.join(log_dir, f"{name}.log"),
        when="midnight",
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(settings) -> None:
    """
    Route structlog through the stdlib root logger. Call once at startup.

    Events go to stdout, rendered per ``settings.log_format``. When
    ``settings.log_dir`` is set they are also written as JSON lines to
    ``combined.log``, with ERROR and above copied to ``error.log``. Both
    files roll over at midnight and keep two weeks of history.
    """
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=pre_chain,
    )
    if settings.log_format == "json":
        stdout_formatter = json_formatter
    else:
        stdout_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
            foreign_pre_chain=pre_chain,
        )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(stdout_formatter)
    handlers = [stdout_handler]

    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)
        handlers.append(_file_handler(settings.log_dir, "combined", json_formatter))
        handlers.append(
            _file_handler(settings.log_dir, "error", json_formatter, level=logging.ERROR)
        )

    root_logger = logging.getLogger()
    for old in list(root_logger.handlers):
        root_logger.removeHandler(old)
        old.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    # SQL echo stays off unless asked for explicitly
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
