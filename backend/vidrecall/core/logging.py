"""
Structured logging configuration using structlog.

Infrastructure modules (the db layer) log structured events through
``get_logger``:

    logger = get_logger(__name__)
    logger.info("database_connection_successful")
    logger.error("database_health_check_failed", error=str(e), error_type=type(e).__name__)

Service modules log through the standard library with
``logger = logging.getLogger(__name__)``. Both end up in the same handler,
rendered as JSON lines (LOG_FORMAT=json) or readable console output
(LOG_FORMAT=text).
"""

import logging
import sys
from typing import Optional

import structlog

from vidrecall.core.config import settings


def _shared_processors() -> list:
    """Processors applied to structlog and standard-library records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Log level name (default from settings.LOG_LEVEL)
        log_format: "json" or "text" (default from settings.LOG_FORMAT)
    """
    level = level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT

    shared_processors = _shared_processors()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    if log_format == "json":
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=False)]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # Silence chatty third-party loggers
    for noisy in ("sentence_transformers", "httpx", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return structlog.stdlib.get_logger(name)
