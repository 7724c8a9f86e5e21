"""
Structured Logging Framework

This module provides the core logging infrastructure using structlog on top of
the standard library logging handlers: a console handler and an optional
rotating file handler, rendered either human-readable or as JSON.
"""

import logging
import logging.handlers
import sys
import traceback
from pathlib import Path
from typing import Optional

import structlog

from ..config.schema import LoggingConfig


class StructuredLogger:
    """Structured logger using structlog with console or JSON rendering."""

    def __init__(self, config: LoggingConfig):
        """Initialize structured logger.

        Args:
            config: Logging configuration
        """
        self.config = config
        self._configured = False

    def _get_processors(self) -> list:
        """Processor chain shared by every handler."""
        if self.config.format == "json":
            renderer = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

        return [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ]

    def configure(self) -> None:
        """Configure the root logger handlers and structlog."""
        if self._configured:
            return

        root_logger = logging.getLogger()
        root_logger.handlers.clear()

        log_level = getattr(logging, self.config.level.upper())
        root_logger.setLevel(log_level)

        # structlog renders the full line, handlers only print the message
        formatter = logging.Formatter(fmt="%(message)s")

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if self.config.file:
            root_logger.addHandler(self._create_file_handler(log_level, formatter))

        structlog.configure(
            processors=self._get_processors(),
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._configured = True

    def _create_file_handler(
        self, log_level: int, formatter: logging.Formatter
    ) -> logging.Handler:
        """Rotating file handler for the configured log file."""
        log_path = Path(self.config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=self.config.file,
            maxBytes=self.config.max_size_mb * 1024 * 1024,
            backupCount=self.config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        return file_handler

    def get_logger(self, name: str = "acme_dns_server") -> structlog.BoundLogger:
        """Get a structured logger instance."""
        if not self._configured:
            self.configure()

        return structlog.get_logger(name)


# Global logger instance
_logger_instance: Optional[StructuredLogger] = None


def setup_logging(config: LoggingConfig) -> None:
    """Setup global logging configuration.

    Args:
        config: Logging configuration
    """
    global _logger_instance
    structlog.reset_defaults()
    _logger_instance = StructuredLogger(config)
    _logger_instance.configure()


def get_logger(name: str = "acme_dns_server") -> structlog.BoundLogger:
    """Get a logger instance.

    Before ``setup_logging()`` has run this returns a lazily bound structlog
    logger using structlog's defaults, so library code can log at import time.
    """
    if _logger_instance is None:
        return structlog.get_logger(name)

    return _logger_instance.get_logger(name)


def log_exception(
    logger: structlog.BoundLogger, message: str, exc: Optional[BaseException] = None
) -> None:
    """Log an exception with detailed traceback information.

    Args:
        logger: Logger instance
        message: Log message
        exc: Exception instance (optional, will use current exception if None)
    """
    if exc is None:
        exc = sys.exc_info()[1]

    if exc is None:
        logger.error(message)
        return

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        message,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=tb_str,
    )
