# pingcore/transport/fake.py
import queue
import threading
import time
from typing import Iterable, List, Optional, Tuple

from pingcore.engine.codec import build_echo_reply, parse_echo
from pingcore.errors import TransportClosed, TransportUnavailable
from pingcore.transport.base import Datagram, Transport

_CLOSED = object()


class FakeTransport(Transport):
    """
    In-memory stand-in for an ICMP socket. Every request is echoed back as a
    reply with the given TTL unless its sequence number is in `drop`.
    `inject()` puts arbitrary datagrams on the wire (other engines' replies,
    garbage, duplicates).
    """

    def __init__(self, ttl: int = 64, drop: Iterable[int] = (), delay: float = 0.0,
                 unavailable: bool = False, ipv4: bool = True, reply_from: Optional[str] = None):
        self.ttl = ttl
        self.drop = set(drop)
        self.delay = delay
        self.unavailable = unavailable
        self.ipv4 = ipv4
        self.reply_from = reply_from
        self.sent: List[Tuple[bytes, str]] = []
        self.closed = False
        self.open_calls = 0
        self._inbox: "queue.Queue" = queue.Queue()
        self._lock = threading.Lock()

    def open(self, ipv4: bool, source: str = "", privileged: bool = False) -> "FakeTransport":
        """Factory hook with the same signature as IcmpTransport.open."""
        self.open_calls += 1
        if self.unavailable:
            raise TransportUnavailable("fake transport configured as unavailable")
        self.ipv4 = ipv4
        return self

    def send(self, data: bytes, dest: str) -> None:
        with self._lock:
            if self.closed:
                raise TransportClosed("send on closed fake transport")
            self.sent.append((bytes(data), dest))
        seq = parse_echo(data).sequence
        if seq in self.drop:
            return
        reply = build_echo_reply(data, self.ipv4)
        self.inject(reply, src=self.reply_from or dest)

    def inject(self, data: bytes, src: str = "127.0.0.1", ttl: Optional[int] = None) -> None:
        datagram: Datagram = {
            "data": bytes(data),
            "src": src,
            "nbytes": len(data),
            "ttl": self.ttl if ttl is None else ttl,
        }
        if self.delay:
            timer = threading.Timer(self.delay, self._inbox.put, args=(datagram,))
            timer.daemon = True
            timer.start()
        else:
            self._inbox.put(datagram)

    def read(self, timeout: float) -> Optional[Datagram]:
        if self.closed:
            raise TransportClosed("read on closed fake transport")
        try:
            item = self._inbox.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            raise TransportClosed("fake transport closed")
        return item

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
        self._inbox.put(_CLOSED)

    @property
    def sent_sequences(self) -> List[int]:
        return [parse_echo(data).sequence for data, _ in self.sent]

    def wait_for_sends(self, n: int, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if len(self.sent) >= n:
                return True
            time.sleep(0.005)
        return len(self.sent) >= n
