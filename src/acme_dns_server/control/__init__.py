"""
Control Plane Module

Challenge hook contract between the certificate-issuing reverse proxy and the
record store.
"""

from .hooks import (
    CHALLENGE_LABEL,
    MAX_KEYAUTH_LENGTH,
    ControlPlane,
    HookRequest,
    HookResult,
    challenge_name,
)

__all__ = [
    "CHALLENGE_LABEL",
    "MAX_KEYAUTH_LENGTH",
    "ControlPlane",
    "HookRequest",
    "HookResult",
    "challenge_name",
]
