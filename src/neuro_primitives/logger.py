"""Structured logging configuration using *structlog*."""

from __future__ import annotations

import logging
import sys
from typing import Literal, TextIO

import structlog

LogFormat = Literal["auto", "console", "json"]


def _renderer(log_format: LogFormat, stream: TextIO) -> structlog.typing.Processor:
    if log_format == "json" or (log_format == "auto" and not stream.isatty()):
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def setup_logging(
    level: str = "INFO",
    *,
    log_format: LogFormat = "auto",
    stream: TextIO | None = None,
) -> None:
    """Configure *structlog* for an application embedding the engine.

    Engine modules only call ``structlog.get_logger(__name__)``; this is
    called once by the host (``PrimitiveEstimator.from_settings`` does it
    from :class:`~neuro_primitives.config.Settings`).  ``auto`` renders
    for humans on a terminal and as one JSON object per line otherwise.
    """
    stream = stream or sys.stderr
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _renderer(log_format, stream),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )
