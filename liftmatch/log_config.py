"""Logging setup for batch runs.

structlog renders key/value events on top of stdlib logging, so modules
using either ``structlog.get_logger()`` or ``logging.getLogger(__name__)``
share one level and one output stream.
"""

import logging

import structlog

from liftmatch.config import settings


def configure_logging(level: str | None = None, json_output: bool = False) -> None:
    """Configure stdlib logging and structlog.

    Args:
        level: Log level name; defaults to settings.log_level
        json_output: Render JSON lines instead of console key/value output
    """
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
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
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def log_event(event) -> None:
    """EventBus handler that writes every reconciliation event to the log."""
    structlog.get_logger("liftmatch.events").info("reconciliation event", **event.to_log_dict())
