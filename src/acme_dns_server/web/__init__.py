"""
Control Plane Web Module

HTTP gateway for ACME challenge hooks.
"""

from .server import ControlServer

__all__ = ["ControlServer"]
