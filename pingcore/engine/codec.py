# pingcore/engine/codec.py
"""
Echo payload and ICMP header encoding.

Payload layout (big-endian):
    [0:8)   send timestamp, nanoseconds, monotonic clock
    [8:16)  tracker token of the sending engine
    [16:)   zero filler up to the configured size
"""
import struct
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from pingcore.config import MIN_SIZE
from pingcore.errors import ConfigurationError, MalformedPacket

ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129

ICMP_HEADER = struct.Struct("!BBHHH")
PAYLOAD_HEAD = struct.Struct("!QQ")


@dataclass(frozen=True)
class EchoMessage:
    type: int
    code: int
    identifier: int
    sequence: int
    payload: bytes


def now_ns() -> int:
    return time.monotonic_ns()


def encode_payload(tracker: int, size: int, timestamp_ns: Optional[int] = None) -> bytes:
    if size < MIN_SIZE:
        raise ConfigurationError(f"payload size {size} is below the {MIN_SIZE}-byte minimum")
    if timestamp_ns is None:
        timestamp_ns = now_ns()
    head = PAYLOAD_HEAD.pack(timestamp_ns & 0xFFFFFFFFFFFFFFFF, tracker & 0xFFFFFFFFFFFFFFFF)
    return head + bytes(size - MIN_SIZE)


def decode_payload(data: bytes) -> Tuple[int, int]:
    """Return (timestamp_ns, tracker). Ownership is not checked here."""
    if len(data) < MIN_SIZE:
        raise MalformedPacket(f"payload has {len(data)} bytes, need {MIN_SIZE}")
    return PAYLOAD_HEAD.unpack_from(data)


def checksum(data: bytes) -> int:
    """RFC 1071 internet checksum."""
    if len(data) % 2:
        data += b"\x00"
    total = 0
    for i in range(0, len(data), 2):
        total += (data[i] << 8) + data[i + 1]
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return (~total) & 0xFFFF


def build_echo_request(ipv4: bool, identifier: int, sequence: int, payload: bytes) -> bytes:
    icmp_type = ICMP_ECHO_REQUEST if ipv4 else ICMPV6_ECHO_REQUEST
    identifier &= 0xFFFF
    sequence &= 0xFFFF
    header = ICMP_HEADER.pack(icmp_type, 0, 0, identifier, sequence)
    # the kernel fills the ICMPv6 checksum itself (it covers a pseudo-header we don't see)
    csum = checksum(header + payload) if ipv4 else 0
    return ICMP_HEADER.pack(icmp_type, 0, csum, identifier, sequence) + payload


def build_echo_reply(request: bytes, ipv4: bool) -> bytes:
    """Turn an echo request into the matching reply, as a remote host would."""
    msg = parse_echo(request)
    icmp_type = ICMP_ECHO_REPLY if ipv4 else ICMPV6_ECHO_REPLY
    header = ICMP_HEADER.pack(icmp_type, 0, 0, msg.identifier, msg.sequence)
    csum = checksum(header + msg.payload) if ipv4 else 0
    return ICMP_HEADER.pack(icmp_type, 0, csum, msg.identifier, msg.sequence) + msg.payload


def parse_echo(data: bytes) -> EchoMessage:
    if len(data) < ICMP_HEADER.size:
        raise MalformedPacket(f"ICMP message has {len(data)} bytes, header needs {ICMP_HEADER.size}")
    icmp_type, code, _csum, identifier, sequence = ICMP_HEADER.unpack_from(data)
    return EchoMessage(icmp_type, code, identifier, sequence, bytes(data[ICMP_HEADER.size:]))


def rtt_from(timestamp_ns: int, received_ns: Optional[int] = None) -> float:
    """Seconds between the embedded send timestamp and now."""
    if received_ns is None:
        received_ns = now_ns()
    return max(0, received_ns - timestamp_ns) / 1e9

