# pingcore/engine/state.py
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pingcore.engine.correlator import SequenceLedger
from pingcore.engine.stats import RttAggregator


class Phase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass
class RunState:
    """
    Everything the sender and receiver threads share. Mutate only while
    holding `lock` (re-entrant: stop() may run from a signal handler on the
    thread that already holds it).
    """
    phase: Phase = Phase.IDLE
    sequence: int = 0           # next sequence number to send
    sent: int = 0
    received: int = 0
    ledger: SequenceLedger = field(default_factory=SequenceLedger)
    rtts: RttAggregator = field(default_factory=RttAggregator)
    error: Optional[BaseException] = None
    stop_reason: Optional[str] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def next_sequence(self) -> int:
        seq = self.sequence
        self.sequence += 1
        return seq
