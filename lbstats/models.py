"""Data models for lbstats probes."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Tuple


@dataclass(frozen=True)
class Endpoint:
    """A resolved, connectable IPv4 stream endpoint."""
    host: str
    port: str
    family: int
    sockaddr: Tuple[Any, ...]


@dataclass(frozen=True)
class Config:
    """Probe parameters, fixed for the lifetime of the process."""
    address: str  # [host:]port as given on the command line
    packet_size: int
    stats_period: int


@dataclass
class WindowReport:
    """Represents statistics for a single closed packet window."""
    window_number: int
    timestamp: datetime  # Wall-clock time the window was reported
    packets: int
    total_elapsed_ns: int
    average_us: int
