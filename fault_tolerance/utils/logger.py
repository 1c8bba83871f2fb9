"""
Structured logging configuration using structlog.

This module provides centralized logging configuration for the fault tolerance
layer. It supports both development (human-readable) and production (JSON) formats.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor

# Logger channels of the decorated endpoints, one per endpoint kind
CONSUMER_CHANNEL = "FaultToleranceEnqueueConsumer"
PRODUCER_CHANNEL = "FaultToleranceEnqueueProducer"
ROUTER_CHANNEL = "FaultToleranceEnqueueRouter"


def configure_logging(app_env: Optional[str] = None, level: Optional[str] = None) -> None:
    """
    Configure structured logging for the whole process.

    This function sets up:
    - Development: Human-readable logs with colors
    - Production: JSON structured logs for machine processing

    Args:
        app_env: Environment name; defaults to ``settings.APP_ENV``
        level: Log level name; defaults to ``settings.LOG_LEVEL``
    """
    from fault_tolerance.core.config import settings

    app_env = app_env or settings.APP_ENV
    level = level or settings.LOG_LEVEL
    is_development = app_env.lower() in ("development", "dev", "local")

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
    ]

    if is_development:
        processors.extend(
            [
                structlog.dev.set_exc_info,
                structlog.dev.ConsoleRenderer(colors=True),
            ]
        )
    else:
        processors.extend(
            [
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ]
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def add_endpoint_context(client: str, endpoint: str, channel: str) -> Dict[str, Any]:
    """Context bound to every record a decorated endpoint emits."""
    return {"client": client, "endpoint": endpoint, "channel": channel}
