# pingcore/resolver.py
import ipaddress
import socket
from typing import Tuple

from pingcore.errors import ResolutionError


def resolve(addr: str) -> Tuple[str, bool]:
    """Resolve a host name or IP literal. Returns (ip, is_ipv4); IPv4 wins when both exist."""
    if not addr:
        raise ResolutionError("empty address")
    try:
        infos = socket.getaddrinfo(addr, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolutionError(f"cannot resolve {addr!r}: {e}") from e

    ips = [info[4][0] for info in infos]
    if not ips:
        raise ResolutionError(f"no addresses for {addr!r}")
    for ip in ips:
        if ipaddress.ip_address(ip.split("%")[0]).version == 4:
            return ip, True
    return ips[0], False
