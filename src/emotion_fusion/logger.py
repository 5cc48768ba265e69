"""Structured logging configuration using *structlog*."""

from __future__ import annotations

import logging
import sys

import structlog

SERVICE_NAME = "emotion-fusion"


def _add_service(_logger, _method: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(level: str = "INFO", *, json_logs: bool | None = None) -> None:
    """Configure *structlog* for the engine, the API and the CLI.

    Events go to stderr so that ``emotion-fusion replay`` can keep stdout
    for estimates.  ``json_logs=None`` renders for humans on a TTY and as
    JSON lines otherwise.  Stdlib loggers (uvicorn) share the same level.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if json_logs is None:
        json_logs = not sys.stderr.isatty()

    logging.basicConfig(level=numeric_level, stream=sys.stderr, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
