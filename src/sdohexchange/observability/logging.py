"""
Structured Logging

structlog setup shared by the FHIR client and repositories.
"""

import logging
import sys

import structlog

from sdohexchange.config import get_settings


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, defaults to SDOH_LOG_LEVEL
        json_logs: Render JSON instead of console output, defaults to SDOH_LOG_JSON
    """
    app = get_settings().app
    level = (level or app.log_level).upper()
    if json_logs is None:
        json_logs = app.log_json

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None):
    """Get a structlog logger."""
    return structlog.get_logger(name)
