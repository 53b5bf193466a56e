"""Export lbstats window reports as Prometheus metrics."""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

from .models import Config, WindowReport


class PrometheusMetricsExporter:
    """Export lbstats window reports as Prometheus metrics."""

    def __init__(self, config: Config, registry: Optional[CollectorRegistry] = None):
        self.config = config
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up Prometheus metric definitions."""
        # Probe parameters
        self.info = Gauge(
            'lbstats_info',
            'Probe parameters',
            ['address', 'packet_size', 'stats_period'],
            registry=self.registry
        )
        self.info.labels(
            address=self.config.address,
            packet_size=str(self.config.packet_size),
            stats_period=str(self.config.stats_period),
        ).set(1)

        # Latency metrics
        self.avg_latency = Gauge(
            'lbstats_latency_avg_microseconds',
            'Average round-trip time of the last reported window in microseconds',
            [],
            registry=self.registry
        )

        # Window and packet counters
        self.windows = Counter(
            'lbstats_windows',
            'Number of packet windows reported',
            [],
            registry=self.registry
        )
        self.packets = Counter(
            'lbstats_packets_received',
            'Number of packets counted in reported windows',
            [],
            registry=self.registry
        )

        # Worker state
        self.worker_running = Gauge(
            'lbstats_worker_running',
            'Whether the writer or reader loop is running',
            ['role'],
            registry=self.registry
        )

    def export_window(self, report: WindowReport):
        """Export metrics for a single window."""
        self.avg_latency.set(report.average_us)
        self.windows.inc()
        self.packets.inc(report.packets)

    def worker_started(self, role: str):
        self.worker_running.labels(role=role).set(1)

    def worker_stopped(self, role: str):
        self.worker_running.labels(role=role).set(0)

    def serve(self, port: int, addr: str = '0.0.0.0'):
        """Expose the registry over HTTP for Prometheus to scrape."""
        start_http_server(port, addr=addr, registry=self.registry)
