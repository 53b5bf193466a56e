"""Exceptions raised by lbstats."""


class LbstatsError(Exception):
    """Base class for all lbstats errors."""


class ArgumentError(LbstatsError):
    """Missing or invalid command line arguments."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class ResolutionError(LbstatsError):
    """Host or service lookup failed."""


class ConnectError(LbstatsError):
    """Socket creation or connect failed."""


class ProbeError(LbstatsError):
    """A fault that stops the writer or reader loop it happened in."""


class ProtocolViolation(ProbeError):
    """A send or receive transferred a byte count other than the packet size."""

    def __init__(self, message: str, transferred: int, expected: int):
        super().__init__(message)
        self.transferred = transferred
        self.expected = expected


class PeerClosed(ProbeError):
    """The peer closed the connection before sending any byte of a packet."""


class TransportError(ProbeError):
    """The operating system reported an I/O error on the connection."""
