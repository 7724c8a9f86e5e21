"""
DNS Query Responder

Implements the authoritative answer contract shared by the UDP and TCP
listeners:
- TXT questions are answered from the record store
- every other question type is ignored
- responses are always authoritative, never recursion-available, and NOERROR
  whether or not anything was found
"""

import struct
import time
from typing import Any, Dict, Optional

from ..config.schema import MIN_UDP_PAYLOAD
from ..dns_logging import get_logger
from .message import (
    MAX_MESSAGE_SIZE,
    DNSHeader,
    DNSMessage,
    DNSOpcode,
    DNSRecordType,
    DNSResponseCode,
    create_txt_record,
    record_type_name,
    response_code_name,
)
from .store import RecordStore, normalize_domain

logger = get_logger("query_responder")

DEFAULT_TTL = 300


class QueryResponder:
    """Builds DNS responses for raw query packets."""

    def __init__(
        self, store: RecordStore, ttl: int = DEFAULT_TTL, max_udp_size: int = 4096
    ):
        self.store = store
        self.ttl = ttl
        self.max_udp_size = max_udp_size

        self._stats = {
            "total_queries": 0,
            "udp_queries": 0,
            "tcp_queries": 0,
            "answers": 0,
            "truncated": 0,
            "errors": 0,
            "start_time": time.time(),
        }

    def answer(self, query: DNSMessage) -> DNSMessage:
        """Build the response for an already parsed, well-formed query."""
        response = query.create_response(DNSResponseCode.NOERROR, authoritative=True)

        for question in query.questions:
            if question.qtype != DNSRecordType.TXT:
                logger.debug(
                    "Ignoring non-TXT question",
                    qname=question.name,
                    qtype=record_type_name(question.qtype),
                )
                continue

            value, found = self.store.get(question.name)
            if not found:
                logger.debug(
                    "No TXT record",
                    qname=question.name,
                    normalized=normalize_domain(question.name),
                )
                continue

            # Answer under the name exactly as it was asked
            response.answers.append(create_txt_record(question.name, value, self.ttl))
            logger.info("Returning TXT record", qname=question.name, value=value)

        return response

    def handle_dns_request(
        self, data: bytes, client_ip: str, protocol: str
    ) -> Optional[bytes]:
        """Main DNS request handler for both UDP and TCP.

        Returns the serialized response, or None when the packet must be
        dropped without a reply.
        """
        start_time = time.time()
        self._stats["total_queries"] += 1
        if protocol == "UDP":
            self._stats["udp_queries"] += 1
        else:
            self._stats["tcp_queries"] += 1

        try:
            query = DNSMessage.from_bytes(data)
        except (ValueError, struct.error) as e:
            logger.warning("Malformed DNS packet", client_ip=client_ip, error=str(e))
            self._stats["errors"] += 1
            return self._create_error_response(data, DNSResponseCode.FORMERR)

        if not query.is_query():
            logger.debug("Dropping DNS response packet", client_ip=client_ip)
            return None

        if query.header.opcode != DNSOpcode.QUERY:
            logger.warning(
                "Unsupported DNS opcode",
                client_ip=client_ip,
                opcode=query.header.opcode,
            )
            return self._reply_without_answers(query, DNSResponseCode.NOTIMP)

        if not query.questions:
            logger.warning("DNS query without questions", client_ip=client_ip)
            self._stats["errors"] += 1
            return self._reply_without_answers(query, DNSResponseCode.FORMERR)

        try:
            response = self.answer(query)
            wire = response.to_bytes()
        except ValueError as e:
            # Names that decode but cannot be re-encoded
            logger.warning("Unencodable DNS query", client_ip=client_ip, error=str(e))
            self._stats["errors"] += 1
            return self._create_error_response(data, DNSResponseCode.FORMERR)
        except struct.error as e:
            # Stored value too large for a record's 16-bit rdata length
            logger.error("Unencodable TXT answer", client_ip=client_ip, error=str(e))
            self._stats["errors"] += 1
            return self._reply_without_answers(query, DNSResponseCode.SERVFAIL)

        if len(wire) > MAX_MESSAGE_SIZE:
            logger.error(
                "DNS response exceeds maximum message size",
                client_ip=client_ip,
                size=len(wire),
            )
            self._stats["errors"] += 1
            return self._reply_without_answers(query, DNSResponseCode.SERVFAIL)

        if protocol == "UDP":
            limit = self._udp_limit(query)
            if len(wire) > limit:
                # Client is expected to retry over TCP
                logger.info(
                    "Truncating UDP response",
                    client_ip=client_ip,
                    size=len(wire),
                    limit=limit,
                )
                self._stats["truncated"] += 1
                response.answers = []
                response.header.tc = True
                wire = response.to_bytes()

        self._stats["answers"] += len(response.answers)
        logger.debug(
            "DNS query processed",
            client_ip=client_ip,
            protocol=protocol,
            questions=[
                f"{q.name} {record_type_name(q.qtype)}" for q in query.questions
            ],
            response_code=response_code_name(response.header.rcode),
            answer_count=len(response.answers),
            response_time_ms=round((time.time() - start_time) * 1000, 2),
        )
        return wire

    def _udp_limit(self, query: DNSMessage) -> int:
        """Largest UDP response this client can receive"""
        advertised = query.edns_payload_size() or MIN_UDP_PAYLOAD
        return min(max(advertised, MIN_UDP_PAYLOAD), self.max_udp_size)

    def _reply_without_answers(self, query: DNSMessage, rcode: int) -> bytes:
        response = query.create_response(rcode, authoritative=True)
        return response.to_bytes()

    def _create_error_response(self, original_data: bytes, rcode: int) -> Optional[bytes]:
        """Create a header-only error response, or None without a usable ID"""
        if len(original_data) < 2:
            return None

        transaction_id = struct.unpack("!H", original_data[:2])[0]
        opcode = 0
        if len(original_data) >= 4:
            flags = struct.unpack("!H", original_data[2:4])[0]
            opcode = DNSHeader.parse_flags(flags)["opcode"]
            if flags & 0x8000:
                # Never answer something that claims to be a response
                return None

        header = DNSHeader(
            transaction_id=transaction_id, qr=True, opcode=opcode, rcode=rcode
        )
        return DNSMessage(header=header).to_bytes()

    def get_stats(self) -> Dict[str, Any]:
        """Get query statistics"""
        uptime = time.time() - self._stats["start_time"]
        return {
            "uptime_seconds": round(uptime, 2),
            "total_queries": self._stats["total_queries"],
            "udp_queries": self._stats["udp_queries"],
            "tcp_queries": self._stats["tcp_queries"],
            "answers": self._stats["answers"],
            "truncated": self._stats["truncated"],
            "errors": self._stats["errors"],
        }
