"""
Structured logging setup.

Every module logs through `structlog.get_logger(__name__)` with event-name
messages and bound context; this configures the processor chain once per
process. JSON in production, a readable console renderer in development.
"""

import logging
import sys

import structlog

from healthbridge.config import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    config = config or LoggingConfig()
    level = getattr(logging, config.level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    renderer: structlog.types.Processor
    if config.format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
