"""
Structured JSON Logging with Correlation ID
Configures stdlib logging and structlog to emit JSON lines carrying the current correlation ID
"""

import logging
import sys
import os

import structlog
from pythonjsonlogger import jsonlogger
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "newsletter"


class CorrelationJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with automatic correlation ID injection.

    Extends python-json-logger to add correlation_id field to every log record.
    The correlation ID is retrieved from async context (set by CorrelationIdMiddleware
    for HTTP requests, and by the delivery worker for each queue iteration).
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['correlation_id'] = correlation_id.get() or 'none'
        log_record['service'] = SERVICE_NAME
        log_record['environment'] = os.getenv('ENVIRONMENT', 'development')


def add_correlation_id(logger, method_name, event_dict):
    """structlog processor adding the correlation ID of the current context."""
    event_dict.setdefault("correlation_id", correlation_id.get() or "none")
    return event_dict


def setup_logging(level: str = "INFO", stream=None) -> logging.Handler:
    """
    Configure structured JSON logging.

    Sets up:
    - root logger with CorrelationJsonFormatter on a StreamHandler (stdout by default),
      used by uvicorn, SQLAlchemy and anything else logging through stdlib
    - structlog rendering JSON with contextvars, correlation ID, ISO timestamp,
      level and formatted exception info

    Args:
        level: Root log level name
        stream: Output stream (defaults to sys.stdout)

    Returns:
        logging.Handler: The configured handler (for testing)
    """
    handler = logging.StreamHandler(stream or sys.stdout)

    formatter = CorrelationJsonFormatter(
        '%(timestamp)s %(level)s %(name)s %(message)s',
        rename_fields={
            'timestamp': 'asctime',
            'level': 'levelname'
        }
    )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        logger_factory=structlog.PrintLoggerFactory(stream or sys.stdout),
        cache_logger_on_first_use=True,
    )

    return handler
