# pingcore/transport/base.py
from abc import ABC, abstractmethod
from typing import Optional, TypedDict


class Datagram(TypedDict):
    data: bytes     # ICMP message, IP header already stripped
    src: str        # sender address
    nbytes: int     # bytes read off the wire
    ttl: int        # TTL / hop limit from the control message, -1 if unknown


class Transport(ABC):
    @abstractmethod
    def send(self, data: bytes, dest: str) -> None:
        """Write one complete ICMP message to dest."""
        raise NotImplementedError

    @abstractmethod
    def read(self, timeout: float) -> Optional[Datagram]:
        """
        Wait up to `timeout` seconds for one datagram. Returns None if nothing
        arrived and raises TransportClosed once close() has been called.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release the connection and unblock a pending read. Safe to call twice."""
        raise NotImplementedError
