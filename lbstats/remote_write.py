"""Client for sending lbstats window reports via Prometheus remote write."""

import logging
import queue
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
import snappy

from prometheus_remote_writer.proto import remote_pb2 as prompb_pb2
from prometheus_remote_writer.proto import types_pb2

from .models import Config, WindowReport


class RemoteWriteClient:
    """Client for sending window reports via Prometheus remote write.

    Reports are queued by the reader and sent from a background thread, so
    a slow endpoint never delays packet measurement.
    """

    def __init__(self, remote_write_url: str, log: logging.Logger, headers: Optional[Dict[str, str]] = None,
                 instance_label: str = 'lbstats', config: Optional[Config] = None, verbose: bool = False):
        self.remote_write_url = remote_write_url
        self.log = log
        self.headers = dict(headers or {})
        self.headers.setdefault('Content-Type', 'application/x-protobuf')
        self.headers.setdefault('Content-Encoding', 'snappy')
        self.headers.setdefault('X-Prometheus-Remote-Write-Version', '0.1.0')
        self.instance_label = instance_label  # Value for the instance label
        self.config = config
        self.verbose = verbose

        # Cumulative totals, only touched by the sending thread
        self.windows_total = 0
        self.packets_total = 0
        self._info_sent = False

        self._queue: 'queue.Queue[WindowReport]' = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the background sender thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._pump, name='lbstats-remote-write', daemon=True)
        self._thread.start()

    def submit(self, report: WindowReport) -> None:
        """Queue a window report for sending."""
        self._queue.put(report)

    def _pump(self) -> None:
        while True:
            reports = [self._queue.get()]
            # Batch whatever piled up while the previous request was in flight
            while True:
                try:
                    reports.append(self._queue.get_nowait())
                except queue.Empty:
                    break
            self.send_reports(reports)

    def send_reports(self, reports: List[WindowReport]) -> bool:
        """Send window reports to the remote write endpoint.

        Args:
            reports: Window reports to send, oldest first

        Returns:
            True if successful, False otherwise
        """
        if not reports:
            return True

        write_request = self._convert_reports_to_remote_write(reports)
        data = write_request.SerializeToString()
        compressed_data = snappy.compress(data)
        self.log.debug("Sending %d bytes (uncompressed: %d bytes) for %d window(s)",
                       len(compressed_data), len(data), len(reports))

        try:
            response = requests.post(
                self.remote_write_url,
                data=compressed_data,
                headers=self.headers,
                timeout=30
            )
        except requests.exceptions.ConnectionError:
            self.log.warning("Connection error: Could not connect to %s", self.remote_write_url)
            return False
        except requests.exceptions.RequestException as e:
            self.log.warning("Error in remote write: %s", e)
            return False

        if response.status_code == 200 or response.status_code == 204:
            self.log.debug("Successfully sent metrics (status %d)", response.status_code)
            return True

        self.log.warning("Error sending metrics: %d - %s", response.status_code, response.text)
        return False

    def _convert_reports_to_remote_write(self, reports: List[WindowReport]):
        """Convert window reports to remote write format."""
        write_request = prompb_pb2.WriteRequest()  # type: ignore
        time_series_map: Dict[tuple, Any] = {}

        # Add lbstats_info with the probe parameters once, at the first report
        if self.config is not None and not self._info_sent:
            info_labels = {
                'address': self.config.address,
                'packet_size': str(self.config.packet_size),
                'stats_period': str(self.config.stats_period),
            }
            first_timestamp_ms = int(reports[0].timestamp.timestamp() * 1000)
            self._add_sample_to_map(time_series_map, 'lbstats_info', info_labels, 1.0, first_timestamp_ms)
            self._info_sent = True

        for report in reports:
            timestamp_ms = int(report.timestamp.timestamp() * 1000)

            # Accumulate counters
            self.windows_total += 1
            self.packets_total += report.packets

            self._add_sample_to_map(time_series_map, 'lbstats_latency_avg_microseconds', {},
                                    report.average_us, timestamp_ms)
            self._add_sample_to_map(time_series_map, 'lbstats_windows_total', {},
                                    self.windows_total, timestamp_ms)
            self._add_sample_to_map(time_series_map, 'lbstats_packets_received_total', {},
                                    self.packets_total, timestamp_ms)

        self._finalize_time_series(time_series_map, write_request)
        return write_request

    def _finalize_time_series(self, time_series_map: Dict[tuple, Any], write_request) -> None:
        """Add all time series to the write request."""
        for time_series in time_series_map.values():
            # Only add TimeSeries that have at least one sample
            if len(time_series.samples) > 0:
                new_ts = write_request.timeseries.add()
                new_ts.CopyFrom(time_series)

    def _print_metric_sample(self, time_series, timestamp_ms: int, value: float) -> None:
        """Log a single metric sample in verbose mode."""
        metric_name = None
        labels = {}
        for label in time_series.labels:
            if label.name == '__name__':
                metric_name = label.value
            else:
                labels[label.name] = label.value

        if labels:
            label_str = ','.join(f'{k}="{v}"' for k, v in sorted(labels.items()))
            metric_str = f'{metric_name}{{{label_str}}}'
        else:
            metric_str = metric_name

        timestamp_dt = datetime.fromtimestamp(timestamp_ms / 1000.0)
        self.log.debug("%s %s %s", timestamp_dt.isoformat(), metric_str, value)

    def _add_sample_to_map(self, time_series_map: Dict[tuple, Any], metric_name: str, labels: Dict[str, str],
                           value: float, timestamp_ms: int):
        """Add a sample to the time series map, grouping by metric name and labels."""
        # Add instance label to all metrics
        labels_with_instance = labels.copy()
        labels_with_instance['instance'] = self.instance_label

        # Create a unique key from metric name and sorted labels
        sorted_labels = tuple(sorted(labels_with_instance.items()))
        key = (metric_name, sorted_labels)

        if key not in time_series_map:
            time_series = types_pb2.TimeSeries()  # type: ignore

            label = time_series.labels.add()
            label.name = '__name__'
            label.value = metric_name

            # Remote write expects labels sorted by name
            for key_name, val in sorted_labels:
                label = time_series.labels.add()
                label.name = key_name
                label.value = str(val)

            time_series_map[key] = time_series

        sample = time_series_map[key].samples.add()
        sample.value = value
        sample.timestamp = timestamp_ms

        if self.verbose:
            self._print_metric_sample(time_series_map[key], timestamp_ms, value)
