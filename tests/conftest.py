import logging
import threading
from typing import Iterable, List, Optional

import pytest

from lbstats.utils import stamp


def make_packet(timestamp_ns: int, packet_size: int = 16) -> bytes:
    buffer = bytearray(packet_size)
    stamp(buffer, timestamp_ns)
    return bytes(buffer)


class ChunkedSocket:
    """Serves preloaded chunks to recv_into, then reports end of stream."""

    def __init__(self, chunks: Iterable[bytes] = (), error: Optional[OSError] = None,
                 ready: Optional[threading.Event] = None):
        self.chunks: List[bytes] = list(chunks)
        self.error = error
        self.ready = ready

    def recv_into(self, view, nbytes):
        if self.ready is not None:
            self.ready.wait()
        if not self.chunks:
            if self.error is not None:
                raise self.error
            return 0
        chunk = self.chunks.pop(0)
        if len(chunk) > nbytes:
            chunk, rest = chunk[:nbytes], chunk[nbytes:]
            self.chunks.insert(0, rest)
        view[:len(chunk)] = chunk
        return len(chunk)


class RecordingSocket:
    """Records every send and fails the one after `fail_after` sends."""

    def __init__(self, fail_after: int, short_by: int = 1, error: Optional[OSError] = None):
        self.sent: List[bytes] = []
        self.fail_after = fail_after
        self.short_by = short_by
        self.error = error

    def send(self, data):
        if len(self.sent) == self.fail_after:
            if self.error is not None:
                raise self.error
            return len(data) - self.short_by
        self.sent.append(bytes(data))
        return len(data)


def sequence_clock(values: Iterable[int]):
    it = iter(values)
    return lambda: next(it)


@pytest.fixture
def log(caplog):
    caplog.set_level(logging.DEBUG, logger='lbstats.test')
    return logging.getLogger('lbstats.test')
