"""
DNS Core Module

This module exports the record store, the TXT query responder and the DNS
wire format components.
"""

from .message import (
    DNSClass,
    DNSHeader,
    DNSMessage,
    DNSOpcode,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    DNSResponseCode,
    create_txt_record,
)
from .responder import QueryResponder
from .server import DNSListener
from .store import RecordStore, normalize_domain

__all__ = [
    # Store
    "RecordStore",
    "normalize_domain",
    # Answering
    "QueryResponder",
    "DNSListener",
    # Message components
    "DNSMessage",
    "DNSQuestion",
    "DNSResourceRecord",
    "DNSHeader",
    # Enums
    "DNSRecordType",
    "DNSClass",
    "DNSResponseCode",
    "DNSOpcode",
    # Helper functions
    "create_txt_record",
]
