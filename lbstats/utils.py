"""Utility functions and constants for lbstats probes."""

import struct
import time
from typing import Dict, List, Optional, Tuple

# Send timestamp header: signed 64-bit, native byte order, standard size
TIMESTAMP_FORMAT = '=q'
TIMESTAMP_SIZE = struct.calcsize(TIMESTAMP_FORMAT)

# Smallest packet that still carries a full timestamp header
MIN_PACKET_SIZE = TIMESTAMP_SIZE

DEFAULT_HOST = 'localhost'

# Pause between two writes, in seconds
WRITE_INTERVAL = 0.0001

NS_PER_US = 1000


def time_ns() -> int:
    """Return monotonic time in nanoseconds."""
    return time.monotonic_ns()


def split_address(address: str) -> Tuple[str, str]:
    """Split a ``[host:]port`` string on its first colon.

    A string without a colon is taken as a port on ``localhost``.
    """
    host, sep, port = address.partition(':')
    if not sep:
        return DEFAULT_HOST, address
    return host, port


def stamp(buffer: bytearray, timestamp_ns: int) -> None:
    """Write a send timestamp into the header of a packet buffer."""
    struct.pack_into(TIMESTAMP_FORMAT, buffer, 0, timestamp_ns)


def read_stamp(buffer) -> int:
    """Read the send timestamp from the header of a packet buffer."""
    return struct.unpack_from(TIMESTAMP_FORMAT, buffer, 0)[0]


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero, as C does for signed values."""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def prepare_headers(remote_write_headers: Optional[List[str]]) -> Dict[str, str]:
    """Prepare headers dictionary from command-line arguments."""
    headers = {}
    if remote_write_headers:
        for header in remote_write_headers:
            if '=' in header:
                key, value = header.split('=', 1)
                headers[key] = value
    return headers
