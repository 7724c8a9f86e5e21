"""
Configuration Module
"""

from .loader import ConfigLoader
from .schema import (
    ACMEDNSConfig,
    DNSConfig,
    LoggingConfig,
    ServerConfig,
    create_default_config,
)

__all__ = [
    "ACMEDNSConfig",
    "ConfigLoader",
    "DNSConfig",
    "LoggingConfig",
    "ServerConfig",
    "create_default_config",
]
