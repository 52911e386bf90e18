# pingcore/transport/icmp.py
import logging
import select
import socket
import struct
import threading
from typing import Optional

from pingcore.errors import TransportClosed, TransportUnavailable
from pingcore.transport.base import Datagram, Transport

logger = logging.getLogger(__name__)

RECV_BUFSIZE = 65535

# not every Python build exports these names
IP_RECVTTL = getattr(socket, "IP_RECVTTL", 12)
IPV6_RECVHOPLIMIT = getattr(socket, "IPV6_RECVHOPLIMIT", 51)
IPV6_HOPLIMIT = getattr(socket, "IPV6_HOPLIMIT", 52)


class IcmpTransport(Transport):
    """
    ICMP over a real socket.

    privileged=False uses an unprivileged datagram ICMP socket (Linux
    net.ipv4.ping_group_range, macOS); the kernel owns the identifier field.
    privileged=True uses a raw socket and needs root or CAP_NET_RAW; on IPv4
    every read then carries the IP header, which is stripped here.
    """

    def __init__(self, sock: socket.socket, ipv4: bool, privileged: bool):
        self.sock = sock
        self.ipv4 = ipv4
        self.privileged = privileged
        self._closed = threading.Event()

    @classmethod
    def open(cls, ipv4: bool, source: str = "", privileged: bool = False) -> "IcmpTransport":
        family = socket.AF_INET if ipv4 else socket.AF_INET6
        proto = socket.IPPROTO_ICMP if ipv4 else socket.IPPROTO_ICMPV6
        kind = socket.SOCK_RAW if privileged else socket.SOCK_DGRAM
        try:
            sock = socket.socket(family, kind, proto)
        except OSError as e:
            raise TransportUnavailable(f"cannot open ICMP socket ({'raw' if privileged else 'datagram'}): {e}") from e
        try:
            if source:
                sock.bind((source, 0))
            if ipv4:
                sock.setsockopt(socket.IPPROTO_IP, IP_RECVTTL, 1)
            else:
                sock.setsockopt(socket.IPPROTO_IPV6, IPV6_RECVHOPLIMIT, 1)
        except OSError as e:
            sock.close()
            raise TransportUnavailable(f"cannot configure ICMP socket: {e}") from e
        logger.debug("opened %s ICMP%s socket source=%r",
                     "raw" if privileged else "datagram", "" if ipv4 else "v6", source)
        return cls(sock, ipv4, privileged)

    def send(self, data: bytes, dest: str) -> None:
        if self._closed.is_set():
            raise TransportClosed("send on closed socket")
        try:
            self.sock.sendto(data, (dest, 0))
        except (OSError, ValueError) as e:
            if self._closed.is_set():
                raise TransportClosed("socket closed during send") from e
            raise

    def read(self, timeout: float) -> Optional[Datagram]:
        if self._closed.is_set():
            raise TransportClosed("read on closed socket")
        try:
            ready, _, _ = select.select([self.sock], [], [], timeout)
            if not ready:
                return None
            data, ancdata, _flags, addr = self.sock.recvmsg(RECV_BUFSIZE, socket.CMSG_SPACE(4))
        except (OSError, ValueError) as e:
            # a close() from another thread lands here as EBADF / fileno -1
            if self._closed.is_set():
                raise TransportClosed("socket closed during read") from e
            raise

        nbytes = len(data)
        ttl = self._ttl_from(ancdata)
        if self.ipv4 and self.privileged and data:
            ihl = (data[0] & 0x0F) * 4
            if ttl < 0 and len(data) > 8:
                ttl = data[8]
            data = data[ihl:]
        return {"data": data, "src": addr[0], "nbytes": nbytes, "ttl": ttl}

    def _ttl_from(self, ancdata) -> int:
        for level, kind, value in ancdata:
            if self.ipv4 and level == socket.IPPROTO_IP and kind in (socket.IP_TTL, IP_RECVTTL):
                return _int_from(value)
            if not self.ipv4 and level == socket.IPPROTO_IPV6 and kind == IPV6_HOPLIMIT:
                return _int_from(value)
        return -1

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self.sock.close()


def _int_from(value: bytes) -> int:
    if len(value) >= 4:
        return struct.unpack("=i", value[:4])[0]
    if value:
        return value[0]
    return -1
