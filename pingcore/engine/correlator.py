# pingcore/engine/correlator.py
from typing import Optional, Set

from pingcore.engine.codec import ICMP_ECHO_REPLY, ICMPV6_ECHO_REPLY, EchoMessage


def is_echo_reply(message: EchoMessage, ipv4: bool) -> bool:
    expected = ICMP_ECHO_REPLY if ipv4 else ICMPV6_ECHO_REPLY
    return message.type == expected and message.code == 0


def match(payload_tracker: int, tracker: int,
          identifier: Optional[int] = None, expected_identifier: Optional[int] = None) -> bool:
    """
    True if the reply was sent by this engine.

    The tracker token is the deciding field: identifiers collide across
    processes, and unprivileged datagram sockets have theirs rewritten by the
    kernel. Pass expected_identifier only on raw sockets, where the identifier
    we sent comes back untouched.
    """
    if payload_tracker != tracker:
        return False
    if expected_identifier is not None and identifier != (expected_identifier & 0xFFFF):
        return False
    return True


class SequenceLedger:
    """
    Outstanding sequence numbers. A sequence is accepted once, and only if it
    was sent: duplicates and stray sequences are refused. Not thread-safe on
    its own; the pinger holds its run lock around every call.
    """

    def __init__(self):
        self._outstanding: Set[int] = set()
        self._received: Set[int] = set()

    def mark_sent(self, seq: int) -> None:
        self._outstanding.add(seq)

    def forget(self, seq: int) -> None:
        self._outstanding.discard(seq)

    def mark_received(self, seq: int) -> bool:
        if seq not in self._outstanding:
            return False
        self._outstanding.remove(seq)
        self._received.add(seq)
        return True

    def seen(self, seq: int) -> bool:
        return seq in self._received

    @property
    def outstanding(self) -> Set[int]:
        return set(self._outstanding)
