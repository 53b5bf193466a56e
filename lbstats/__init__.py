"""TCP round-trip latency probe with windowed statistics."""

from .models import Config, Endpoint, WindowReport
from .stats import StatsWindow
from .probe import run_probe, run_reader, run_writer
from .exporter import PrometheusMetricsExporter
from .remote_write import RemoteWriteClient

__all__ = [
    'Config',
    'Endpoint',
    'WindowReport',
    'StatsWindow',
    'run_probe',
    'run_reader',
    'run_writer',
    'PrometheusMetricsExporter',
    'RemoteWriteClient',
]
