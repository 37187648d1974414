"""Structured logging setup shared by the API and the workers."""
import logging
import sys

import structlog

from core.settings import SETTINGS


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Route structlog through stdlib logging with a single stdout handler."""
    level = (level or SETTINGS.APP.LOG_LEVEL).upper()
    json_logs = SETTINGS.APP.JSON_LOGS if json_logs is None else json_logs

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

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
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
