#!/usr/bin/env python3
"""
Measure round-trip latency of a TCP connection under continuous load and
report the average over fixed packet windows.
"""

import argparse
import logging
import re
import sys
from typing import List, Optional

from .errors import ArgumentError, ConnectError, ResolutionError
from .exporter import PrometheusMetricsExporter
from .models import Config
from .probe import run_probe
from .remote_write import RemoteWriteClient
from .utils import MIN_PACKET_SIZE, prepare_headers, split_address

EXIT_USAGE = 1
EXIT_PACKET_SIZE = 2
EXIT_CONNECTION = 3
EXIT_METRICS = 4


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting, so main() owns exit codes."""

    def error(self, message):
        raise ArgumentError(message, exit_code=EXIT_USAGE)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog='lbstats',
        description='Measure TCP round-trip latency through an echoing peer'
    )
    parser.add_argument(
        'address',
        metavar='[HOST:]PORT',
        help='Address of the echoing peer (host defaults to localhost)'
    )
    parser.add_argument(
        'packet_size',
        metavar='PACKETSIZE',
        help=f'Size of each packet in bytes (at least {MIN_PACKET_SIZE})'
    )
    parser.add_argument(
        'stats_period',
        metavar='STATSPERIOD',
        help='Number of packets averaged in each report'
    )
    parser.add_argument(
        '--metrics-port',
        type=int,
        help='Serve Prometheus metrics on this port'
    )
    parser.add_argument(
        '--remote-write-url',
        help='Prometheus remote write endpoint URL to push window reports to'
    )
    parser.add_argument(
        '--remote-write-header',
        action='append',
        help='Additional header for remote write (format: Key=Value)'
    )
    parser.add_argument(
        '--instance-label',
        default='lbstats',
        help='Value for the instance label added to all remote write metrics (default: lbstats)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log debug output, including every metric sample sent via remote write'
    )
    return parser


_LEADING_INT_RE = re.compile(r'\s*([+-]?\d+)')


def _atoi(value: str) -> int:
    """Parse the leading integer of a string, 0 if there is none."""
    match = _LEADING_INT_RE.match(value)
    return int(match.group(1)) if match else 0


def build_config(args: argparse.Namespace) -> Config:
    """Validate positional arguments and build the probe configuration.

    Raises:
        ArgumentError: with the exit code matching the invalid argument
    """
    packet_size = _atoi(args.packet_size)
    if packet_size < MIN_PACKET_SIZE:
        raise ArgumentError(f"packetSize must be at least {MIN_PACKET_SIZE}",
                            exit_code=EXIT_PACKET_SIZE)

    stats_period = _atoi(args.stats_period)
    if stats_period < 1:
        raise ArgumentError(f"STATSPERIOD must be a positive integer, got '{args.stats_period}'",
                            exit_code=EXIT_USAGE)

    return Config(address=args.address, packet_size=packet_size, stats_period=stats_period)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
        config = build_config(args)
    except ArgumentError as e:
        print(f"error: {e}", file=sys.stderr)
        if e.exit_code == EXIT_USAGE:
            print(parser.format_usage(), file=sys.stderr, end='')
        return e.exit_code

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    log = logging.getLogger('lbstats')

    host, port = split_address(config.address)
    log.info("arguments: host = %s, port = %s, packetSize = %d, statsPeriod = %d",
             host, port, config.packet_size, config.stats_period)

    sinks = []
    exporter = None
    if args.metrics_port is not None:
        exporter = PrometheusMetricsExporter(config)
        try:
            exporter.serve(args.metrics_port)
        except OSError as e:
            print(f"error: cannot serve metrics on port {args.metrics_port}: {e}", file=sys.stderr)
            return EXIT_METRICS
        sinks.append(exporter.export_window)
        log.info("serving metrics on port %d", args.metrics_port)

    if args.remote_write_url:
        client = RemoteWriteClient(
            args.remote_write_url, log,
            headers=prepare_headers(args.remote_write_header),
            instance_label=args.instance_label,
            config=config,
            verbose=args.verbose,
        )
        client.start()
        sinks.append(client.submit)
        log.info("sending window reports to %s", args.remote_write_url)

    try:
        run_probe(config, log, sinks=sinks, exporter=exporter)
    except (ResolutionError, ConnectError) as e:
        log.error("%s", e)
        log.error("failed to open connection")
        return EXIT_CONNECTION

    return 0


if __name__ == '__main__':
    sys.exit(main())
