# WORKFLOW: Logging setup for library consumers and scripts.
# Used by: Embedding applications, scripts, test sessions
# Functions:
# 1. configure_logging() - Configure stdlib logging and structlog once
#
# Module code logs through logging.getLogger(__name__); audit and observability
# events go through structlog.get_logger() so they carry key/value context.

import logging

import structlog

from core.config import settings

_configured = False


def configure_logging(level: str = None) -> None:
    """Configure stdlib logging and structlog (idempotent)."""
    global _configured
    if _configured:
        return

    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    logging.basicConfig(level=log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if settings.environment == "production"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True
    logging.getLogger(__name__).info(f"Logging configured at level {logging.getLevelName(log_level)}")
