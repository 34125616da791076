"""Structured logging for the assessment engine.

All modules obtain their logger through get_logger(__name__) and log with
key-value context:

    logger.info("Assessment run complete", requirement_id="CCC.C01.TR01")

configure_logging(settings) is the single entry point that applies the
log_level and log_json settings; the hosting application calls it once at
startup.
"""

import logging
import sys

import structlog

from control_assessment_engine.settings import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog and the stdlib root logger from settings.

    Args:
        settings: Settings providing log_level and log_json.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    renderer: structlog.typing.Processor
    if settings.log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Return a structured logger bound to the given module name.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog bound logger.
    """
    return structlog.get_logger(name)
