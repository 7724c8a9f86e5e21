"""
ACME DNS Server Configuration Schema

Configuration schema for listener addresses, DNS answer settings and logging.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from .validators import (
    parse_address_list,
    validate_address_list,
    validate_file_path,
    validate_log_level,
    validate_positive_float,
    validate_positive_int,
)

DEFAULT_DNS_ADDRESS = "0.0.0.0:53"
DEFAULT_CONTROL_ADDRESS = "127.0.0.1:9000"

# Largest UDP payload without EDNS0 (RFC 1035 section 4.2.1)
MIN_UDP_PAYLOAD = 512


@dataclass
class ServerConfig:
    """Server configuration section."""

    dns_addresses: List[str] = field(default_factory=lambda: [DEFAULT_DNS_ADDRESS])
    control_addresses: List[str] = field(
        default_factory=lambda: [DEFAULT_CONTROL_ADDRESS]
    )
    io_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate server configuration."""
        if isinstance(self.dns_addresses, str):
            self.dns_addresses = [self.dns_addresses]
        if isinstance(self.control_addresses, str):
            self.control_addresses = [self.control_addresses]

        if not validate_address_list(self.dns_addresses):
            raise ValueError(f"Invalid DNS addresses: {self.dns_addresses}")

        if not validate_address_list(self.control_addresses):
            raise ValueError(f"Invalid control addresses: {self.control_addresses}")

        if not validate_positive_float(self.io_timeout):
            raise ValueError(f"I/O timeout must be positive: {self.io_timeout}")

    def dns_endpoints(self) -> List[Tuple[str, int]]:
        """Parsed (host, port) pairs for DNS listeners."""
        return parse_address_list(self.dns_addresses)

    def control_endpoints(self) -> List[Tuple[str, int]]:
        """Parsed (host, port) pairs for control-plane listeners."""
        return parse_address_list(self.control_addresses)


@dataclass
class DNSConfig:
    """DNS answer configuration section."""

    ttl: int = 300
    max_udp_size: int = 4096

    def __post_init__(self) -> None:
        """Validate DNS configuration."""
        if not validate_positive_int(self.ttl):
            raise ValueError(f"TTL must be positive: {self.ttl}")

        if not validate_positive_int(self.max_udp_size) or not (
            MIN_UDP_PAYLOAD <= self.max_udp_size <= 65535
        ):
            raise ValueError(
                f"Max UDP size must be between {MIN_UDP_PAYLOAD} and 65535: "
                f"{self.max_udp_size}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration section."""

    level: str = "INFO"
    format: str = "console"
    file: str = ""
    max_size_mb: int = 100
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        if not validate_log_level(self.level):
            raise ValueError(f"Invalid log level: {self.level}")

        if self.format not in ["console", "json"]:
            raise ValueError(f"Invalid log format: {self.format}")

        if not validate_file_path(self.file):
            raise ValueError(f"Invalid log file path: {self.file}")

        if not validate_positive_int(self.max_size_mb):
            raise ValueError(f"Max size MB must be positive: {self.max_size_mb}")

        if not validate_positive_int(self.backup_count):
            raise ValueError(f"Backup count must be positive: {self.backup_count}")


@dataclass
class ACMEDNSConfig:
    """Main server configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    dns: DNSConfig = field(default_factory=DNSConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        """Cross-section validation."""
        dns_endpoints = set(self.server.dns_endpoints())
        for endpoint in self.server.control_endpoints():
            # Port 0 never collides, the OS picks a fresh port for each bind
            if endpoint[1] and endpoint in dns_endpoints:
                raise ValueError(
                    f"Control address {endpoint[0]}:{endpoint[1]} "
                    "conflicts with a DNS address"
                )


def create_default_config() -> ACMEDNSConfig:
    """Create a default configuration instance."""
    return ACMEDNSConfig()
