"""Tests for the TXT query responder."""

import struct

import dns.flags
import dns.message
import dns.opcode
import dns.rcode
import dns.rdatatype
import pytest

from acme_dns_server.core.message import (
    DNSClass,
    DNSHeader,
    DNSMessage,
    DNSQuestion,
    DNSRecordType,
)
from acme_dns_server.core.responder import QueryResponder
from acme_dns_server.core.store import RecordStore


def ask(responder, qname, rdtype="TXT", protocol="UDP", **kwargs):
    """Send a dnspython query through the responder and parse the reply"""
    query = dns.message.make_query(qname, rdtype, **kwargs)
    wire = responder.handle_dns_request(query.to_wire(), "192.0.2.1", protocol)
    assert wire is not None
    return query, dns.message.from_wire(wire)


@pytest.fixture
def store():
    store = RecordStore()
    store.set("_acme-challenge.example.com.", "abc123")
    return store


@pytest.fixture
def responder(store):
    return QueryResponder(store, ttl=300)


class TestTXTAnswers:
    """Test the answer contract"""

    def test_provisioned_name_answered(self, responder):
        query, response = ask(responder, "_acme-challenge.example.com.")

        assert response.id == query.id
        assert response.rcode() == dns.rcode.NOERROR
        assert len(response.answer) == 1
        rrset = response.answer[0]
        assert rrset.rdtype == dns.rdatatype.TXT
        assert rrset.ttl == 300
        assert [rdata.strings for rdata in rrset] == [(b"abc123",)]

    def test_answer_keeps_query_casing(self, responder):
        _, response = ask(responder, "_ACME-Challenge.Example.COM.")

        assert len(response.answer) == 1
        # dnspython compares names case-insensitively, check the text form
        assert response.answer[0].name.to_text() == "_ACME-Challenge.Example.COM."
        assert response.answer[0][0].strings == (b"abc123",)

    def test_header_flags(self, responder):
        _, response = ask(responder, "_acme-challenge.example.com.")

        assert response.flags & dns.flags.QR
        assert response.flags & dns.flags.AA
        assert response.flags & dns.flags.RD
        assert not response.flags & dns.flags.RA
        assert not response.flags & dns.flags.TC

    def test_unprovisioned_name_empty_success(self, responder):
        _, response = ask(responder, "_acme-challenge.unknown.example.")

        assert response.rcode() == dns.rcode.NOERROR
        assert response.answer == []
        assert response.flags & dns.flags.AA
        assert len(response.question) == 1

    @pytest.mark.parametrize("rdtype", ["A", "AAAA", "NS", "SOA", "MX", "ANY"])
    def test_non_txt_question_empty_success(self, responder, rdtype):
        _, response = ask(responder, "_acme-challenge.example.com.", rdtype)

        assert response.rcode() == dns.rcode.NOERROR
        assert response.answer == []

    def test_multiple_questions(self, store, responder):
        store.set("_acme-challenge.other.example.", "second")
        query = DNSMessage(
            header=DNSHeader(transaction_id=99, rd=False),
            questions=[
                DNSQuestion("_acme-challenge.example.com.", DNSRecordType.TXT),
                DNSQuestion("_acme-challenge.example.com.", DNSRecordType.A),
                DNSQuestion("_acme-challenge.other.example.", DNSRecordType.TXT),
                DNSQuestion("missing.example.", DNSRecordType.TXT),
            ],
        )

        response = responder.answer(query)

        assert response.header.rcode == 0
        assert len(response.questions) == 4
        assert [a.txt_strings() for a in response.answers] == [["abc123"], ["second"]]
        assert all(a.rclass == DNSClass.IN for a in response.answers)

    def test_answer_follows_store_updates(self, store, responder):
        store.set("_acme-challenge.example.com", "rotated")
        _, response = ask(responder, "_acme-challenge.example.com.")
        assert response.answer[0][0].strings == (b"rotated",)

        store.clear("_acme-challenge.example.com")
        _, response = ask(responder, "_acme-challenge.example.com.")
        assert response.answer == []


class TestMalformedRequests:
    """Test handling of packets that are not plain queries"""

    def test_garbage_gets_formerr(self, responder):
        data = b"\x12\x34" + b"\x01\x00" + b"\x00\x05garbage"
        wire = responder.handle_dns_request(data, "192.0.2.1", "UDP")

        response = DNSMessage.from_bytes(wire)
        assert response.header.transaction_id == 0x1234
        assert response.header.qr is True
        assert response.header.rcode == dns.rcode.FORMERR
        assert responder.get_stats()["errors"] == 1

    def test_tiny_packet_dropped(self, responder):
        assert responder.handle_dns_request(b"\x01", "192.0.2.1", "UDP") is None

    def test_response_packets_dropped(self, responder):
        query = dns.message.make_query("_acme-challenge.example.com.", "TXT")
        query.flags |= dns.flags.QR

        assert responder.handle_dns_request(query.to_wire(), "192.0.2.1", "UDP") is None

    def test_non_query_opcode_notimp(self, responder):
        query = dns.message.make_query("_acme-challenge.example.com.", "TXT")
        query.set_opcode(dns.opcode.NOTIFY)

        wire = responder.handle_dns_request(query.to_wire(), "192.0.2.1", "UDP")
        response = dns.message.from_wire(wire)

        assert response.rcode() == dns.rcode.NOTIMP
        assert response.answer == []

    def test_label_with_dot_formerr(self, store, responder):
        store.set("foo.bar.example.", "wrong-record")
        qname = b"\x07foo.bar\x07example\x00"
        data = struct.pack("!HHHHHH", 78, 0x0100, 1, 0, 0, 0) + qname
        data += struct.pack("!HH", DNSRecordType.TXT, DNSClass.IN)

        wire = responder.handle_dns_request(data, "192.0.2.1", "UDP")

        response = DNSMessage.from_bytes(wire)
        assert response.header.transaction_id == 78
        assert response.header.rcode == dns.rcode.FORMERR
        assert response.answers == []

    def test_no_questions_formerr(self, responder):
        data = struct.pack("!HHHHHH", 77, 0x0100, 0, 0, 0, 0)
        wire = responder.handle_dns_request(data, "192.0.2.1", "TCP")

        response = DNSMessage.from_bytes(wire)
        assert response.header.transaction_id == 77
        assert response.header.rcode == dns.rcode.FORMERR


class TestTruncation:
    """Test UDP size limits and the TCP fallback"""

    @pytest.fixture
    def large_responder(self, store):
        store.set("_acme-challenge.big.example.", "k" * 600)
        return QueryResponder(store, ttl=300, max_udp_size=4096)

    def test_udp_truncated_without_edns(self, large_responder):
        _, response = ask(large_responder, "_acme-challenge.big.example.")

        assert response.flags & dns.flags.TC
        assert response.answer == []
        assert response.rcode() == dns.rcode.NOERROR
        assert large_responder.get_stats()["truncated"] == 1

    def test_udp_fits_with_edns(self, large_responder):
        _, response = ask(
            large_responder, "_acme-challenge.big.example.", use_edns=0, payload=1232
        )

        assert not response.flags & dns.flags.TC
        assert b"".join(response.answer[0][0].strings) == b"k" * 600

    def test_tcp_never_truncated(self, large_responder):
        _, response = ask(large_responder, "_acme-challenge.big.example.", protocol="TCP")

        assert not response.flags & dns.flags.TC
        strings = response.answer[0][0].strings
        assert [len(s) for s in strings] == [255, 255, 90]

    @pytest.mark.parametrize("protocol", ["UDP", "TCP"])
    def test_oversized_record_servfail(self, store, protocol):
        # Written to the store directly, past the control plane's limit
        store.set("_acme-challenge.huge.example.", "k" * 70000)
        responder = QueryResponder(store)

        _, response = ask(responder, "_acme-challenge.huge.example.", protocol=protocol)

        assert response.rcode() == dns.rcode.SERVFAIL
        assert response.answer == []
        assert responder.get_stats()["errors"] == 1

    def test_response_over_message_limit_servfail(self, store):
        # Fits one record's rdata, but not a TCP-framed message
        store.set("_acme-challenge.huge.example.", "k" * 65200)
        responder = QueryResponder(store)

        _, response = ask(responder, "_acme-challenge.huge.example.", protocol="TCP")

        assert response.rcode() == dns.rcode.SERVFAIL
        assert response.answer == []

    def test_small_answer_not_truncated(self, large_responder):
        _, response = ask(large_responder, "_acme-challenge.example.com.")

        assert not response.flags & dns.flags.TC
        assert len(response.answer) == 1


def test_stats_counters(responder):
    """Test query statistics"""
    ask(responder, "_acme-challenge.example.com.")
    ask(responder, "_acme-challenge.example.com.", protocol="TCP")
    ask(responder, "nothing.example.", "A")

    stats = responder.get_stats()
    assert stats["total_queries"] == 3
    assert stats["udp_queries"] == 2
    assert stats["tcp_queries"] == 1
    assert stats["answers"] == 2
    assert stats["errors"] == 0
