from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Packet:
    """One matched echo reply, handed to the on_receive callback."""
    rtt: float          # seconds
    ip_addr: str        # source of the reply
    addr: str           # target as the caller wrote it
    nbytes: int
    seq: int
    ttl: int


@dataclass
class Stats:
    packets_sent: int
    packets_recv: int
    packet_loss: float          # percent; 0.0 when nothing was sent
    ip_addr: str
    addr: str
    rtts: List[float] = field(default_factory=list)
    min_rtt: float = 0.0
    max_rtt: float = 0.0
    avg_rtt: float = 0.0
    stddev_rtt: float = 0.0
