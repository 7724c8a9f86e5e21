"""
Exception hierarchy for the ACME DNS server.
"""

from typing import Optional, Tuple


class ACMEDNSError(Exception):
    """Base class for all server errors."""


class ConfigError(ACMEDNSError):
    """Configuration could not be loaded or is invalid."""


class ListenerStartupError(ACMEDNSError):
    """A listener failed to bind; every started listener has been stopped."""

    def __init__(
        self, kind: str, address: Tuple[str, int], cause: Optional[BaseException] = None
    ):
        self.kind = kind
        self.address = address
        self.cause = cause
        host, port = address
        message = f"Failed to start {kind} listener on {host}:{port}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class HookValidationError(ACMEDNSError):
    """A control-plane request was rejected before any mutation."""

    def __init__(self, message: str, status: int = 400):
        self.message = message
        self.status = status
        super().__init__(message)
