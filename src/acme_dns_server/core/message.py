"""
DNS Message Parser Module

This module implements RFC 1035 DNS message handling for an authoritative
TXT-only server:
- DNS header parsing/construction
- Question section handling
- Answer/Authority/Additional sections
- TXT record data and the EDNS0 OPT pseudo-record (RFC 6891) payload size
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple, Union

# Upper bound on compression pointer hops while decoding a single name
MAX_POINTER_JUMPS = 64

MAX_LABEL_LENGTH = 63
MAX_TXT_STRING_LENGTH = 255

# Largest DNS message, bounded by the 16-bit TCP length prefix
MAX_MESSAGE_SIZE = 65535


class DNSOpcode(IntEnum):
    """DNS Operation Codes"""

    QUERY = 0
    IQUERY = 1
    STATUS = 2
    NOTIFY = 4
    UPDATE = 5


class DNSResponseCode(IntEnum):
    """DNS Response Codes"""

    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5


class DNSRecordType(IntEnum):
    """DNS Record Types"""

    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33
    OPT = 41
    ANY = 255


class DNSClass(IntEnum):
    """DNS Classes"""

    IN = 1
    CS = 2
    CH = 3
    HS = 4
    ANY = 255


def record_type_name(rtype: int) -> str:
    """Human-readable name for a record type, ``TYPE<n>`` when unknown."""
    try:
        return DNSRecordType(rtype).name
    except ValueError:
        return f"TYPE{rtype}"


def response_code_name(rcode: int) -> str:
    """Human-readable name for a response code, ``RCODE<n>`` when unknown."""
    try:
        return DNSResponseCode(rcode).name
    except ValueError:
        return f"RCODE{rcode}"


def encode_name(name: str) -> bytes:
    """Encode domain name using DNS label encoding (no compression)."""
    if name in ("", "."):
        return b"\x00"

    result = b""
    for label in name.rstrip(".").split("."):
        label_bytes = label.encode("ascii")
        if not label_bytes:
            raise ValueError(f"Empty label in name: {name!r}")
        if len(label_bytes) > MAX_LABEL_LENGTH:
            raise ValueError(f"Label too long: {label}")
        result += struct.pack("!B", len(label_bytes)) + label_bytes
    return result + b"\x00"


def decode_name(data: bytes, offset: int) -> Tuple[str, int]:
    """Decode DNS name with compression support.

    Returns the absolute name (with trailing dot) and the offset just past the
    name in the original position.
    """
    labels = []
    end_offset = None
    jumps = 0

    while True:
        if offset >= len(data):
            raise ValueError("Invalid name: offset out of bounds")

        length = data[offset]

        if length == 0:
            offset += 1
            break
        elif (length & 0xC0) == 0xC0:
            if offset + 1 >= len(data):
                raise ValueError("Invalid compression pointer")
            jumps += 1
            if jumps > MAX_POINTER_JUMPS:
                raise ValueError("Invalid name: compression loop")
            pointer = ((length & 0x3F) << 8) | data[offset + 1]
            if end_offset is None:
                end_offset = offset + 2
            offset = pointer
        elif length & 0xC0:
            raise ValueError(f"Unsupported label type: {length:#x}")
        else:
            if offset + length + 1 > len(data):
                raise ValueError("Invalid label: length exceeds data")
            raw_label = data[offset + 1 : offset + 1 + length]
            if b"." in raw_label:
                raise ValueError("Invalid label: contains a dot")
            label = raw_label.decode("ascii")
            labels.append(label)
            offset += length + 1

    name = ".".join(labels) + "." if labels else "."
    return name, end_offset if end_offset is not None else offset


@dataclass
class DNSHeader:
    """DNS Message Header"""

    transaction_id: int
    flags: int = 0
    question_count: int = 0
    answer_count: int = 0
    authority_count: int = 0
    additional_count: int = 0

    # Flag field components
    qr: bool = False  # Query/Response bit
    opcode: int = 0  # Operation code
    aa: bool = False  # Authoritative Answer
    tc: bool = False  # Truncation
    rd: bool = False  # Recursion Desired
    ra: bool = False  # Recursion Available
    z: int = 0  # Reserved
    rcode: int = 0  # Response code

    def __post_init__(self):
        self.flags = self.compose_flags()

    def compose_flags(self) -> int:
        """Build the flags field from the individual components"""
        return (
            (int(self.qr) << 15)
            | ((self.opcode & 0x0F) << 11)
            | (int(self.aa) << 10)
            | (int(self.tc) << 9)
            | (int(self.rd) << 8)
            | (int(self.ra) << 7)
            | ((self.z & 0x07) << 4)
            | (self.rcode & 0x0F)
        )

    @classmethod
    def parse_flags(cls, flags: int) -> Dict[str, Union[bool, int]]:
        """Parse flags field into individual components"""
        return {
            "qr": bool(flags & 0x8000),
            "opcode": (flags >> 11) & 0x0F,
            "aa": bool(flags & 0x0400),
            "tc": bool(flags & 0x0200),
            "rd": bool(flags & 0x0100),
            "ra": bool(flags & 0x0080),
            "z": (flags >> 4) & 0x07,
            "rcode": flags & 0x0F,
        }

    def to_bytes(self) -> bytes:
        """Convert header to bytes"""
        # Components may have been changed after construction
        self.flags = self.compose_flags()
        return struct.pack(
            "!HHHHHH",
            self.transaction_id,
            self.flags,
            self.question_count,
            self.answer_count,
            self.authority_count,
            self.additional_count,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSHeader":
        """Parse header from bytes"""
        if len(data) < 12:
            raise ValueError("Invalid DNS header: too short")

        tid, flags, qcount, acount, authcount, addcount = struct.unpack(
            "!HHHHHH", data[:12]
        )

        return cls(
            transaction_id=tid,
            flags=flags,
            question_count=qcount,
            answer_count=acount,
            authority_count=authcount,
            additional_count=addcount,
            **cls.parse_flags(flags),
        )


@dataclass
class DNSQuestion:
    """DNS Question Section"""

    name: str
    qtype: int
    qclass: int = DNSClass.IN

    def to_bytes(self) -> bytes:
        """Convert question to bytes"""
        return encode_name(self.name) + struct.pack("!HH", self.qtype, self.qclass)

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSQuestion", int]:
        """Parse question from bytes at given offset"""
        name, new_offset = decode_name(data, offset)
        if new_offset + 4 > len(data):
            raise ValueError("Invalid question: not enough data for type and class")

        qtype, qclass = struct.unpack("!HH", data[new_offset : new_offset + 4])
        return cls(name=name, qtype=qtype, qclass=qclass), new_offset + 4


@dataclass
class DNSResourceRecord:
    """DNS Resource Record"""

    name: str
    rtype: int
    rclass: int
    ttl: int
    rdata: bytes

    def to_bytes(self) -> bytes:
        """Convert resource record to bytes"""
        header = struct.pack(
            "!HHIH", self.rtype, self.rclass, self.ttl, len(self.rdata)
        )
        return encode_name(self.name) + header + self.rdata

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSResourceRecord", int]:
        """Parse resource record from bytes at given offset"""
        name, new_offset = decode_name(data, offset)

        if new_offset + 10 > len(data):
            raise ValueError("Invalid resource record: not enough data for header")

        rtype, rclass, ttl, rdlength = struct.unpack(
            "!HHIH", data[new_offset : new_offset + 10]
        )
        new_offset += 10

        if new_offset + rdlength > len(data):
            raise ValueError("Invalid resource record: not enough data for rdata")

        rdata = data[new_offset : new_offset + rdlength]

        return (
            cls(name=name, rtype=rtype, rclass=rclass, ttl=ttl, rdata=rdata),
            new_offset + rdlength,
        )

    def txt_strings(self) -> List[str]:
        """Decode TXT rdata into its character strings"""
        strings = []
        offset = 0
        while offset < len(self.rdata):
            length = self.rdata[offset]
            if offset + length + 1 > len(self.rdata):
                raise ValueError("Invalid TXT rdata: string exceeds data")
            strings.append(
                self.rdata[offset + 1 : offset + 1 + length].decode(
                    "utf-8", errors="replace"
                )
            )
            offset += length + 1
        return strings


@dataclass
class DNSMessage:
    """Complete DNS Message"""

    header: DNSHeader
    questions: List[DNSQuestion] = field(default_factory=list)
    answers: List[DNSResourceRecord] = field(default_factory=list)
    authority: List[DNSResourceRecord] = field(default_factory=list)
    additional: List[DNSResourceRecord] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        """Convert entire message to bytes"""
        self.header.question_count = len(self.questions)
        self.header.answer_count = len(self.answers)
        self.header.authority_count = len(self.authority)
        self.header.additional_count = len(self.additional)

        parts = [self.header.to_bytes()]
        parts.extend(question.to_bytes() for question in self.questions)
        for section in (self.answers, self.authority, self.additional):
            parts.extend(record.to_bytes() for record in section)

        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSMessage":
        """Parse complete DNS message from bytes"""
        if len(data) < 12:
            raise ValueError("Invalid DNS message: too short")

        header = DNSHeader.from_bytes(data)
        offset = 12

        questions = []
        for _ in range(header.question_count):
            question, offset = DNSQuestion.parse(data, offset)
            questions.append(question)

        sections: List[List[DNSResourceRecord]] = []
        for count in (
            header.answer_count,
            header.authority_count,
            header.additional_count,
        ):
            records = []
            for _ in range(count):
                record, offset = DNSResourceRecord.parse(data, offset)
                records.append(record)
            sections.append(records)

        return cls(
            header=header,
            questions=questions,
            answers=sections[0],
            authority=sections[1],
            additional=sections[2],
        )

    def is_query(self) -> bool:
        """Check if this is a query message"""
        return not self.header.qr

    def edns_payload_size(self) -> Optional[int]:
        """UDP payload size advertised in an EDNS0 OPT record, if present"""
        for record in self.additional:
            if record.rtype == DNSRecordType.OPT:
                # The OPT record carries the payload size in its class field
                return record.rclass
        return None

    def create_response(
        self, rcode: int = DNSResponseCode.NOERROR, authoritative: bool = True
    ) -> "DNSMessage":
        """Create a response message based on this query"""
        response_header = DNSHeader(
            transaction_id=self.header.transaction_id,
            qr=True,
            opcode=self.header.opcode,
            aa=authoritative,
            tc=False,
            rd=self.header.rd,
            ra=False,
            rcode=rcode,
        )

        return DNSMessage(header=response_header, questions=self.questions.copy())


def encode_txt_rdata(text: str) -> bytes:
    """Encode text as TXT rdata, split into 255-byte character strings"""
    text_bytes = text.encode("utf-8")
    if not text_bytes:
        return b"\x00"

    rdata = b""
    offset = 0
    while offset < len(text_bytes):
        chunk = text_bytes[offset : offset + MAX_TXT_STRING_LENGTH]
        rdata += struct.pack("!B", len(chunk)) + chunk
        offset += MAX_TXT_STRING_LENGTH
    return rdata


def create_txt_record(name: str, text: str, ttl: int = 300) -> DNSResourceRecord:
    """Create a TXT record"""
    return DNSResourceRecord(
        name=name,
        rtype=DNSRecordType.TXT,
        rclass=DNSClass.IN,
        ttl=ttl,
        rdata=encode_txt_rdata(text),
    )
