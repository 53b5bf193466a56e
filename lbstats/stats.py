"""Windowed round-trip statistics."""

from datetime import datetime, timezone
from typing import Optional

from .models import WindowReport
from .utils import NS_PER_US, trunc_div


class StatsWindow:
    """Accumulates round-trip times over a fixed number of packets.

    The window is owned by a single reader and is never shared, so it
    carries no locking.
    """

    def __init__(self, stats_period: int):
        if stats_period < 1:
            raise ValueError(f"stats_period must be at least 1, got {stats_period}")
        self.stats_period = stats_period
        self.packets_seen = 0
        self.total_elapsed_ns = 0
        self.windows_reported = 0

    @property
    def full(self) -> bool:
        return self.packets_seen == self.stats_period

    def add(self, elapsed_ns: int) -> None:
        """Count one packet. Negative round-trip times are accepted as-is."""
        self.packets_seen += 1
        self.total_elapsed_ns += elapsed_ns

    def take_report(self) -> Optional[WindowReport]:
        """Close the window if it is full and reset the counters.

        Returns:
            The report for the closed window, or None if the window is
            not full yet.
        """
        if not self.full:
            return None

        self.windows_reported += 1
        average_ns = trunc_div(self.total_elapsed_ns, self.stats_period)
        report = WindowReport(
            window_number=self.windows_reported,
            timestamp=datetime.now(timezone.utc),
            packets=self.packets_seen,
            total_elapsed_ns=self.total_elapsed_ns,
            average_us=trunc_div(average_ns, NS_PER_US),
        )
        self.packets_seen = 0
        self.total_elapsed_ns = 0
        return report
