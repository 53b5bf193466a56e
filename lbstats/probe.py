"""Writer and reader loops sharing one TCP connection, and the runner that
starts them.

The writer stamps each packet with the monotonic send time and the reader
measures how long the packet took to come back over the same connection.
Both loops run until their own direction of the connection faults; there
is no other way to stop them.
"""

import logging
import socket
import threading
import time
from typing import Callable, Dict, Iterable, Optional, Tuple

from .connection import open_connection, resolve_address
from .errors import PeerClosed, ProbeError, ProtocolViolation, TransportError
from .exporter import PrometheusMetricsExporter
from .models import Config, WindowReport
from .stats import StatsWindow
from .utils import WRITE_INTERVAL, read_stamp, stamp, time_ns

ReportSink = Callable[[WindowReport], None]


def recv_exact(sock: socket.socket, buffer: bytearray) -> None:
    """Fill the whole buffer from the socket.

    Short reads are retried for as long as the stream keeps producing bytes.

    Raises:
        PeerClosed: if the stream ends before the first byte
        ProtocolViolation: if the stream ends part way through the buffer
        TransportError: if the receive itself fails
    """
    view = memoryview(buffer)
    size = len(buffer)
    received = 0
    while received < size:
        try:
            n = sock.recv_into(view[received:], size - received)
        except OSError as e:
            raise TransportError(f"recv(): {e}") from e
        if n == 0:
            if received == 0:
                raise PeerClosed("no data. Connection closed?")
            raise ProtocolViolation(f"recv() read {received} bytes", received, size)
        received += n


def run_writer(sock: socket.socket, packet_size: int, log: logging.Logger,
               clock: Callable[[], int] = time_ns,
               interval: float = WRITE_INTERVAL) -> ProbeError:
    """Send time-stamped packets until a send fails.

    Returns:
        The error that stopped the writer
    """
    buffer = bytearray(packet_size)

    while True:
        time.sleep(interval)
        stamp(buffer, clock())
        try:
            written = sock.send(buffer)
        except OSError as e:
            error: ProbeError = TransportError(f"send(): {e}")
            log.error("send(): %s", e)
            break
        if written != packet_size:
            error = ProtocolViolation(f"send() written {written} bytes", written, packet_size)
            log.error("send() written %d bytes", written)
            break

    log.info("writer has stopped")
    return error


def run_reader(sock: socket.socket, packet_size: int, stats_period: int, log: logging.Logger,
               clock: Callable[[], int] = time_ns,
               sinks: Iterable[ReportSink] = ()) -> ProbeError:
    """Receive echoed packets and report their average round-trip time.

    A window is reported when the packet after the last one of the window
    arrives; that packet then opens the next window.

    Returns:
        The error that stopped the reader
    """
    sinks = list(sinks)
    buffer = bytearray(packet_size)
    window = StatsWindow(stats_period)

    while True:
        try:
            recv_exact(sock, buffer)
        except PeerClosed as e:
            log.warning("%s", e)
            error: ProbeError = e
            break
        except ProbeError as e:
            log.error("%s", e)
            error = e
            break

        report = window.take_report()
        if report is not None:
            log.info("packet average lifespan: %10d us", report.average_us)
            for sink in sinks:
                try:
                    sink(report)
                except Exception as e:
                    log.warning("Failed to publish window %d: %s", report.window_number, e)

        window.add(clock() - read_stamp(buffer))

    log.info("reader has stopped")
    return error


def run_probe(config: Config, log: logging.Logger, sinks: Iterable[ReportSink] = (),
              exporter: Optional[PrometheusMetricsExporter] = None
              ) -> Tuple[Optional[ProbeError], Optional[ProbeError]]:
    """Connect to the configured address and run a writer and a reader on it.

    Blocks until both loops have stopped. If only one direction faults the
    other keeps running, and so does this call.

    Raises:
        ResolutionError: if the address cannot be resolved
        ConnectError: if the connection cannot be established

    Returns:
        The errors that stopped the writer and the reader, in that order
    """
    endpoint = resolve_address(config.address)
    sock = open_connection(endpoint, log)
    log.info("connected to %s", config.address)

    results: Dict[str, Optional[ProbeError]] = {'writer': None, 'reader': None}

    def run_role(role: str, loop: Callable[[], ProbeError]) -> None:
        if exporter is not None:
            exporter.worker_started(role)
        try:
            results[role] = loop()
        finally:
            if exporter is not None:
                exporter.worker_stopped(role)

    writer = threading.Thread(
        target=run_role, name='lbstats-writer',
        args=('writer', lambda: run_writer(sock, config.packet_size, log)),
    )
    reader = threading.Thread(
        target=run_role, name='lbstats-reader',
        args=('reader', lambda: run_reader(sock, config.packet_size, config.stats_period, log,
                                           sinks=sinks)),
    )

    try:
        log.info("starting writer")
        writer.start()
        log.info("starting reader")
        reader.start()

        writer.join()
        reader.join()
    finally:
        sock.close()

    log.info("finished")
    return results['writer'], results['reader']
