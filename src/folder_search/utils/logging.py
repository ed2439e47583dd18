"""Structured logging for Folder Search.

structlog renders colored console lines in development and JSON lines
elsewhere. Build and query tasks bind their configuration name and build
start through ``LogContext`` so every stage's log lines can be correlated
with the build that produced them.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from folder_search.config import Settings, get_settings

# Third-party loggers that are too chatty at DEBUG
_QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "pypdf": logging.ERROR,
}


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        settings: Settings to read the environment and level from,
            defaults to ``get_settings()``.
    """
    settings = settings or get_settings()
    is_dev = settings.app.env == "development"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.app.log_level),
    )
    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Build started", known=10)
    """
    return structlog.get_logger(name)


class LogContext:
    """Bind context variables for the duration of a block.

    Values that were already bound are restored on exit, so contexts nest.

    Example:
        >>> with LogContext(config="default", build_start=1700000000000):
        ...     logger.info("Build started")
    """

    def __init__(self, **context: Any) -> None:
        self.context = context
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
