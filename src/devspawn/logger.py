"""Structured logging singleton.

Log lines go to stderr so the CLI's stdout (progress, listings) stays clean.
The initial level comes from the LOG_LEVEL environment variable, read
directly: the logger exists before Settings is loaded, so config errors can
still be logged.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _configure(level: int) -> None:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    root.setLevel(level)
    # asyncio debug chatter is never useful to devspawn users
    logging.getLogger("asyncio").setLevel(max(level, logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_configure(_level(os.environ.get("LOG_LEVEL", "INFO")))

logger: structlog.stdlib.BoundLogger = structlog.get_logger("devspawn")


def set_level(level_name: str) -> None:
    """Apply ``[logging] level`` from settings. An explicit LOG_LEVEL env var wins."""
    if "LOG_LEVEL" in os.environ:
        return
    level = _level(level_name)
    logging.getLogger().setLevel(level)
    logging.getLogger("asyncio").setLevel(max(level, logging.INFO))


def _uncaught_exception_handler(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: object,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
    sys.exit(1)


sys.excepthook = _uncaught_exception_handler
