"""
Logging Module

This module provides structured logging for the ACME DNS server.
"""

from .logger import StructuredLogger, get_logger, log_exception, setup_logging

__all__ = [
    "StructuredLogger",
    "get_logger",
    "log_exception",
    "setup_logging",
]
