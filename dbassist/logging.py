from __future__ import annotations

import logging
import sys
from typing import Literal, TextIO

import structlog
from structlog.typing import FilteringBoundLogger


LogLevel = Literal["verbose", "info", "warn", "error", "silent"]
LogFormat = Literal["console", "json"]

LEVELS: dict[str, int] = {
    "verbose": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    # Above every level structlog emits.
    "silent": logging.CRITICAL + 1,
}


def configure_logging(
    log_level: str = "info",
    *,
    log_format: str = "console",
    stream: TextIO | None = None,
) -> FilteringBoundLogger:
    """
    Build the logger for one invocation.

    Nothing is configured globally: callers hold the returned logger and pass it down, so tests
    can hand any component a capturing logger instead.
    """
    try:
        min_level = LEVELS[log_level.lower()]
    except KeyError:
        raise ValueError(f"unknown log level {log_level!r}; expected one of {', '.join(LEVELS)}") from None

    processors: list = [structlog.processors.TimeStamper(fmt="iso"), structlog.processors.add_log_level]
    if log_format == "json":
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return structlog.wrap_logger(
        structlog.PrintLogger(stream or sys.stdout),
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
    ).bind(logger="dbassist")
