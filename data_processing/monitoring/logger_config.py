"""
Structured logging for the data processing service.

Leaf modules log through the standard library; orchestrators use a
CorrelationLogger so each line of a batch or API request carries its id.
Everything is rendered by structlog as JSON (or console output locally).
"""

import os
import logging
import logging.handlers
import time
from typing import Any, Dict, List

import structlog

from data_processing import __version__

SERVICE_NAME = "data-processing-service"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 5

# Held at WARNING unless logging at DEBUG
NOISY_LIBRARIES = ("botocore", "boto3", "urllib3", "s3transfer")


def add_service_context(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp every event with the service name and version."""
    event_dict.setdefault('service', SERVICE_NAME)
    event_dict.setdefault('service_version', __version__)
    return event_dict


def build_processors(log_format: str) -> List[Any]:
    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == 'json'
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_service_context,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def build_handlers(level: int, log_file: str = None) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT
        ))

    for handler in handlers:
        handler.setLevel(level)
    return handlers


class IngestionLogger:
    """Process-wide logging setup, done once per process by the entry points."""

    _configured = False

    @staticmethod
    def setup_logging(log_level: str = None, log_format: str = None, log_file: str = None) -> None:
        log_level = (log_level or 'INFO').upper()
        log_format = (log_format or 'json').lower()
        level = getattr(logging, log_level, logging.INFO)

        structlog.configure(
            processors=build_processors(log_format),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()
        root_logger.handlers.extend(build_handlers(level, log_file))

        if level > logging.DEBUG:
            for name in NOISY_LIBRARIES:
                logging.getLogger(name).setLevel(logging.WARNING)

        IngestionLogger._configured = True

        structlog.get_logger("data_processing").info(
            "Logging initialized",
            log_level=log_level,
            log_format=log_format,
            log_file=log_file or "console"
        )

    @staticmethod
    def is_configured() -> bool:
        return IngestionLogger._configured


class CorrelationLogger:
    """Bound structlog logger for one batch or request."""

    def __init__(self, correlation_id: str = None, **context):
        self.correlation_id = correlation_id
        bound = dict(context)
        if correlation_id:
            bound['correlation_id'] = correlation_id
        self.logger = structlog.get_logger("data_processing").bind(**bound)

    def bind(self, **context) -> "CorrelationLogger":
        child = CorrelationLogger.__new__(CorrelationLogger)
        child.correlation_id = self.correlation_id
        child.logger = self.logger.bind(**context)
        return child

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def exception(self, message: str, **kwargs):
        self.logger.exception(message, **kwargs)


class OperationLogger:
    """Logs the start, end and duration of an operation; never suppresses its errors."""

    def __init__(self, operation_name: str, correlation_id: str = None, **context):
        self.operation_name = operation_name
        self.logger = CorrelationLogger(correlation_id).bind(operation=operation_name, **context)
        self._started = 0.0

    def __enter__(self) -> CorrelationLogger:
        self._started = time.monotonic()
        self.logger.info(f"Operation started: {self.operation_name}")
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = int((time.monotonic() - self._started) * 1000)

        if exc_type is None:
            self.logger.info(f"Operation completed: {self.operation_name}", duration_ms=duration_ms)
        else:
            self.logger.error(
                f"Operation failed: {self.operation_name}",
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
                error_message=str(exc_val)
            )
        return False


def get_logger(correlation_id: str = None, **context) -> CorrelationLogger:
    """Logger bound to a correlation id and any extra context."""
    return CorrelationLogger(correlation_id, **context)
