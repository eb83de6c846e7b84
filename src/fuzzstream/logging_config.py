"""
fuzzstream Structured Logging Module
JSON-based structured logging for test harness runs, plus a console variant
for interactive use.
"""

import logging
import os
import sys
import structlog
from pythonjsonlogger import jsonlogger

# ============================================================================
# STRUCTURED LOGGING CONFIGURATION
# ============================================================================

def setup_json_logging(
    log_level: str = "INFO",
    service_name: str = "fuzzstream",
    environment: str = os.getenv("FUZZSTREAM_ENVIRONMENT", "development")
):
    """
    Setup JSON structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Name of the service
        environment: Environment name (development, ci, ...)
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.ExceptionRenderer(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Stdlib loggers go through the same JSON stream
    json_handler = logging.StreamHandler(sys.stderr)
    json_formatter = jsonlogger.JsonFormatter(
        fmt='%(timestamp)s %(levelname)s %(name)s %(message)s',
        timestamp=True
    )
    json_handler.setFormatter(json_formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level))
    root_logger.handlers.clear()
    root_logger.addHandler(json_handler)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=environment,
    )


def configure_console_logging(log_level: str = "WARNING"):
    """
    Setup human-readable logging on stderr.

    Keeps stdout free for program output (the CLI prints chunks there).

    Args:
        log_level: Logging level name
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=getattr(logging, log_level), stream=sys.stderr)


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger instance
    """
    return structlog.get_logger(name)


# ============================================================================
# CONTEXT UTILITIES
# ============================================================================

def clear_context():
    """Clear all context variables"""
    structlog.contextvars.clear_contextvars()


def bind_context(**context):
    """Add context to all future log entries"""
    structlog.contextvars.bind_contextvars(**context)
