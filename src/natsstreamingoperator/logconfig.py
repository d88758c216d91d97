"""Logging configuration for the operator process."""

__all__ = ("configure_logging",)

import logging
import sys

import structlog


def configure_logging(debug: bool = False) -> None:
    """Configure structlog to render through the standard library logger.

    Parameters
    ----------
    debug : `bool`
        If `True`, log at the DEBUG level instead of INFO.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=level, force=True
    )
    # The Kubernetes client logs every request at DEBUG.
    logging.getLogger("kubernetes").setLevel(logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
