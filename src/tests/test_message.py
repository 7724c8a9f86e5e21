"""Tests for the DNS wire format module."""

import struct

import dns.flags
import dns.message
import pytest

from acme_dns_server.core.message import (
    DNSClass,
    DNSHeader,
    DNSMessage,
    DNSOpcode,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    DNSResponseCode,
    create_txt_record,
    decode_name,
    encode_name,
    record_type_name,
    response_code_name,
)


class TestDNSHeader:
    """Test DNS header creation and flag handling"""

    def test_flags_composed_from_components(self):
        header = DNSHeader(transaction_id=1, qr=True, aa=True, rd=True, rcode=3)

        assert header.flags == 0x8000 | 0x0400 | 0x0100 | 3

    def test_flags_follow_late_changes(self):
        """Components changed after construction reach the wire"""
        header = DNSHeader(transaction_id=7, qr=True)
        header.tc = True

        data = header.to_bytes()
        flags = struct.unpack("!H", data[2:4])[0]
        assert flags & 0x0200

    def test_header_from_bytes(self):
        data = struct.pack("!HHHHHH", 0xBEEF, 0x0100, 1, 0, 0, 0)
        header = DNSHeader.from_bytes(data)

        assert header.transaction_id == 0xBEEF
        assert header.rd is True
        assert header.qr is False
        assert header.opcode == DNSOpcode.QUERY
        assert header.question_count == 1

    def test_short_header_rejected(self):
        with pytest.raises(ValueError):
            DNSHeader.from_bytes(b"\x00\x01")


class TestNames:
    """Test domain name encoding"""

    def test_encode_root(self):
        assert encode_name(".") == b"\x00"

    def test_encode_decode(self):
        data = encode_name("_acme-challenge.Example.com.")
        name, offset = decode_name(data, 0)

        assert name == "_acme-challenge.Example.com."
        assert offset == len(data)

    def test_label_too_long(self):
        with pytest.raises(ValueError):
            encode_name("a" * 64 + ".com.")

    def test_compression_pointer(self):
        data = encode_name("example.com.") + b"\x03www\xc0\x00"
        name, offset = decode_name(data, 13)

        assert name == "www.example.com."
        assert offset == len(data)

    def test_compression_loop_rejected(self):
        data = b"\xc0\x00"
        with pytest.raises(ValueError):
            decode_name(data, 0)

    def test_label_with_dot_rejected(self):
        """A dot inside a wire label would re-encode as different labels"""
        data = b"\x07foo.bar\x07example\x00"
        with pytest.raises(ValueError):
            decode_name(data, 0)


class TestTXTRecords:
    """Test TXT record data"""

    def test_short_value_single_string(self):
        record = create_txt_record("example.com.", "abc123", 300)

        assert record.rtype == DNSRecordType.TXT
        assert record.rclass == DNSClass.IN
        assert record.ttl == 300
        assert record.rdata == b"\x06abc123"
        assert record.txt_strings() == ["abc123"]

    def test_long_value_split_into_strings(self):
        value = "x" * 600
        record = create_txt_record("example.com.", value)

        strings = record.txt_strings()
        assert [len(s) for s in strings] == [255, 255, 90]
        assert "".join(strings) == value

    def test_empty_value_encodes_empty_string(self):
        record = create_txt_record("example.com.", "")

        assert record.rdata == b"\x00"
        assert record.txt_strings() == [""]


class TestDNSMessage:
    """Test complete message handling"""

    def test_parse_dnspython_query(self):
        query = dns.message.make_query("_acme-challenge.example.com.", "TXT")
        message = DNSMessage.from_bytes(query.to_wire())

        assert message.is_query()
        assert message.header.transaction_id == query.id
        assert message.questions == [
            DNSQuestion("_acme-challenge.example.com.", DNSRecordType.TXT, DNSClass.IN)
        ]
        assert message.edns_payload_size() is None

    def test_edns_payload_size(self):
        query = dns.message.make_query("example.com.", "TXT", use_edns=0, payload=1232)
        message = DNSMessage.from_bytes(query.to_wire())

        assert message.edns_payload_size() == 1232

    def test_response_readable_by_dnspython(self):
        query = DNSMessage(
            header=DNSHeader(transaction_id=4242, rd=True),
            questions=[DNSQuestion("Example.com.", DNSRecordType.TXT)],
        )
        response = query.create_response(DNSResponseCode.NOERROR)
        response.answers.append(create_txt_record("Example.com.", "hello", 60))

        parsed = dns.message.from_wire(response.to_bytes())

        assert parsed.id == 4242
        assert parsed.flags & dns.flags.QR
        assert parsed.flags & dns.flags.AA
        assert parsed.flags & dns.flags.RD
        assert not parsed.flags & dns.flags.RA
        assert parsed.answer[0].ttl == 60
        assert parsed.answer[0][0].strings == (b"hello",)

    def test_truncated_message_rejected(self):
        query = dns.message.make_query("example.com.", "TXT").to_wire()

        with pytest.raises(ValueError):
            DNSMessage.from_bytes(query[:-3])

    def test_record_parse_bounds(self):
        record = DNSResourceRecord("a.", DNSRecordType.TXT, DNSClass.IN, 1, b"\x01a")
        data = record.to_bytes()

        parsed, offset = DNSResourceRecord.parse(data, 0)
        assert parsed == record
        assert offset == len(data)

        with pytest.raises(ValueError):
            DNSResourceRecord.parse(data[:-1], 0)


def test_type_and_code_names():
    """Test human-readable names"""
    assert record_type_name(DNSRecordType.TXT) == "TXT"
    assert record_type_name(999) == "TYPE999"
    assert response_code_name(DNSResponseCode.NOERROR) == "NOERROR"
    assert response_code_name(15) == "RCODE15"
