"""
Configuration Validators

This module provides validation functions for server configuration parameters,
including parsing of ``host:port`` listener address specifications.
"""

import ipaddress
import re
from pathlib import Path
from typing import List, Tuple, Union

_HOSTNAME_RE = re.compile(r"^[a-zA-Z0-9.-]+$")


def validate_file_path(path: str) -> bool:
    """Validate file path format (empty means "not configured")."""
    if path == "":
        return True

    try:
        Path(path)
        return True
    except (TypeError, ValueError):
        return False


def validate_log_level(level: str) -> bool:
    """Validate log level."""
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    return isinstance(level, str) and level.upper() in valid_levels


def validate_positive_float(value: float) -> bool:
    """Validate positive float."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > 0
    )


def validate_positive_int(value: int) -> bool:
    """Validate positive integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_port(port: int) -> bool:
    """Validate port number. Port 0 asks the OS for an ephemeral port."""
    return isinstance(port, int) and not isinstance(port, bool) and 0 <= port <= 65535


def validate_host(host: str) -> bool:
    """Validate a bind host: an IP literal or a plain hostname."""
    if not host:
        return False

    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return bool(_HOSTNAME_RE.match(host))


def parse_address(address: str) -> Tuple[str, int]:
    """Parse a single ``host:port`` specification.

    IPv6 literals must be bracketed: ``[::1]:53``.

    Raises:
        ValueError: If the specification is malformed
    """
    address = address.strip()
    if not address:
        raise ValueError("Empty address")

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise ValueError(f"Invalid IPv6 address specification: {address}")
        port_str = rest[1:]
    else:
        if ":" not in address:
            raise ValueError(f"Address must be host:port: {address}")
        host, port_str = address.rsplit(":", 1)
        if ":" in host:
            raise ValueError(f"IPv6 addresses must be bracketed: {address}")

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in address: {address}") from None

    if not validate_port(port):
        raise ValueError(f"Port out of range in address: {address}")

    if not validate_host(host):
        raise ValueError(f"Invalid host in address: {address}")

    return host, port


def parse_address_list(addresses: Union[str, List[str]]) -> List[Tuple[str, int]]:
    """Parse a comma-separated string (or list) of ``host:port`` pairs.

    Raises:
        ValueError: If the list is empty or any entry is malformed
    """
    if isinstance(addresses, str):
        items = [item for item in addresses.split(",") if item.strip()]
    elif isinstance(addresses, list):
        items = []
        for entry in addresses:
            if not isinstance(entry, str):
                raise ValueError(f"Address must be a string: {entry!r}")
            items.extend(item for item in entry.split(",") if item.strip())
    else:
        raise ValueError(f"Addresses must be a string or list: {addresses!r}")

    if not items:
        raise ValueError("At least one address is required")

    return [parse_address(item) for item in items]


def validate_address_list(addresses: Union[str, List[str]]) -> bool:
    """Validate a list of ``host:port`` listener specifications."""
    try:
        parse_address_list(addresses)
        return True
    except ValueError:
        return False
