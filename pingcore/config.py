from dataclasses import dataclass

from pingcore.errors import ConfigurationError

UNBOUNDED = -1
TIMESTAMP_LEN = 8
TRACKER_LEN = 8
MIN_SIZE = TIMESTAMP_LEN + TRACKER_LEN


@dataclass
class Settings:
    count: int = UNBOUNDED       # packets to send; UNBOUNDED runs until stop()
    interval: float = 1.0        # seconds between sends
    timeout: float = 100.0       # seconds, measured from run start
    size: int = 24               # payload bytes, timestamp + tracker + filler
    source: str = ""             # optional bind address
    privileged: bool = False     # raw socket instead of unprivileged datagram ICMP

    # receiver read slice; bounds how long a stop can go unnoticed
    poll_interval: float = 0.1

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.size < MIN_SIZE:
            raise ConfigurationError(f"size must be at least {MIN_SIZE} bytes, got {self.size}")
        if self.interval <= 0:
            raise ConfigurationError(f"interval must be positive, got {self.interval}")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if self.count == 0 or self.count < UNBOUNDED:
            raise ConfigurationError(f"count must be positive or {UNBOUNDED}, got {self.count}")
        if self.poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be positive, got {self.poll_interval}")

    @property
    def bounded(self) -> bool:
        return self.count != UNBOUNDED
