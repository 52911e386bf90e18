# pingcore/engine/stats.py
import math
from typing import List

from pingcore.schemas import Stats


def loss_percent(sent: int, received: int) -> float:
    """(sent - received) / sent * 100, or 0.0 when nothing has been sent."""
    if sent == 0:
        return 0.0
    return (sent - received) / sent * 100


class RttAggregator:
    """Ordered RTT samples (seconds). Summary values are recomputed on every snapshot."""

    def __init__(self):
        self._rtts: List[float] = []

    def record(self, rtt: float) -> None:
        self._rtts.append(rtt)

    def __len__(self):
        return len(self._rtts)

    def snapshot(self, sent: int, received: int, addr: str = "", ip_addr: str = "") -> Stats:
        rtts = list(self._rtts)
        stats = Stats(
            packets_sent=sent,
            packets_recv=received,
            packet_loss=loss_percent(sent, received),
            ip_addr=ip_addr,
            addr=addr,
            rtts=rtts,
        )
        if not rtts:
            return stats

        lo = hi = rtts[0]
        total = 0.0
        for rtt in rtts:
            if rtt < lo:
                lo = rtt
            if rtt > hi:
                hi = rtt
            total += rtt
        avg = total / len(rtts)
        # population standard deviation
        variance = sum((rtt - avg) ** 2 for rtt in rtts) / len(rtts)

        stats.min_rtt = lo
        stats.max_rtt = hi
        stats.avg_rtt = avg
        stats.stddev_rtt = math.sqrt(variance)
        return stats
