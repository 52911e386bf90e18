# pingcore/errors.py


class PingError(Exception):
    """Base class for everything the ping engine raises."""


class ResolutionError(PingError):
    pass


class TransportUnavailable(PingError):
    """The ICMP socket could not be opened. No packet was sent."""


class TransportClosed(PingError):
    """Raised by a transport read after close(); receivers treat it as a stop."""


class MalformedPacket(PingError):
    pass


class ConfigurationError(PingError):
    pass


class EngineStateError(PingError):
    """run() called on a pinger that is already running or finished."""
