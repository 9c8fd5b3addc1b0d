"""
structlog setup for the monitor process and the CLI.

Engine modules log through structlog with key/value events
(``logger.info("Profile changed", identity="alpha")``); repositories and
clients use stdlib ``logging``, which is routed to the same stdout stream.
Production renders JSON lines, development a coloured console.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from profile_monitor.config.settings import get_settings

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def _processors(json_output: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def setup_logging(level: str | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Overrides ``settings.log_level`` when given.
    """
    settings = get_settings()
    level_name = level or settings.log_level

    structlog.configure(
        processors=_processors(json_output=settings.is_production),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name),
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Attach key/values (e.g. ``loop="profile"``) to every later event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)
