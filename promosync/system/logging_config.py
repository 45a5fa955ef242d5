"""
Centralized Logging Configuration for promosync.

Console output for operators plus rotating files for sync history and errors.
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Optional

from promosync.config.settings import AppSettings, settings


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging."""

    def format(self, record):
        # Add custom fields to log record
        record.service_name = getattr(record, 'service_name', 'promosync')
        record.entity_type = getattr(record, 'entity_type', '-')
        record.operation_id = getattr(record, 'operation_id', '-')

        # Format timestamp
        record.timestamp = datetime.fromtimestamp(record.created).isoformat()

        return super().format(record)


def setup_logging(app_settings: Optional[AppSettings] = None) -> None:
    """Setup console and rotating file logging."""
    app_settings = app_settings or settings.app

    log_dir = app_settings.log_dir
    os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, app_settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if app_settings.debug else logging.INFO)

    console_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    if app_settings.debug:
        console_format = (
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(filename)s:%(lineno)d] - %(message)s"
        )
    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    # Sync history
    sync_file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, "sync.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    sync_file_handler.setLevel(logging.INFO)
    sync_file_handler.setFormatter(StructuredFormatter(
        "%(timestamp)s - %(name)s - %(levelname)s - %(service_name)s - "
        "%(entity_type)s - %(operation_id)s - %(message)s"
    ))
    root_logger.addHandler(sync_file_handler)

    # Errors and above
    error_file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, "errors.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10
    )
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(StructuredFormatter(
        "%(timestamp)s - %(name)s - %(levelname)s - "
        "%(entity_type)s - %(operation_id)s - %(message)s"
    ))
    root_logger.addHandler(error_file_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.info("Logging configuration initialized")


class LoggerAdapter(logging.LoggerAdapter):
    """Custom logger adapter for adding context to log messages."""

    def __init__(self, logger, extra=None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        if 'extra' not in kwargs:
            kwargs['extra'] = {}

        kwargs['extra'].update(self.extra)
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """Get a logger with optional context."""
    logger = logging.getLogger(name)
    return LoggerAdapter(logger, context)
