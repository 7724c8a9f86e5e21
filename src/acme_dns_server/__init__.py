"""
ACME DNS Server

Authoritative TXT-only DNS server with an HTTP control plane for ACME dns-01
challenge records.
"""

__version__ = "1.0.0"
