"""mcphost metrics - OpenTelemetry instruments for the stdio transport.

Metrics:
- mcphost_requests_total: JSON-RPC requests by server, method and outcome
- mcphost_request_duration_seconds: time from write to settlement
- mcphost_malformed_lines_total: stdout lines dropped because they are not JSON
- mcphost_connected_servers: servers currently in the connected state

Without an OpenTelemetry SDK configured the API hands out no-op instruments,
so recording is always safe.
"""

from dataclasses import dataclass

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, UpDownCounter

# Metric prefix for all mcphost metrics
METRIC_PREFIX = "mcphost"


@dataclass
class MetricLabels:
    """Standard metric labels/attributes."""

    SERVER = "server"
    METHOD = "method"
    STATUS = "status"

    # Status values
    STATUS_SUCCESS = "success"
    STATUS_ERROR = "error"
    STATUS_TIMEOUT = "timeout"
    STATUS_CLOSED = "closed"


class HostMetrics:
    """Instrumentation for MCP request traffic and connection state."""

    def __init__(self, meter: metrics.Meter | None = None):
        """Initialize metrics.

        Args:
            meter: OpenTelemetry Meter (defaults to the global "mcphost" meter)
        """
        self._meter = meter or metrics.get_meter(METRIC_PREFIX)

        self.requests_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_requests_total",
            description="Total number of JSON-RPC requests sent to MCP servers",
            unit="1",
        )
        self.malformed_lines_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_malformed_lines_total",
            description="Stdout lines dropped because they could not be parsed",
            unit="1",
        )
        self.request_duration_seconds: Histogram = self._meter.create_histogram(
            name=f"{METRIC_PREFIX}_request_duration_seconds",
            description="JSON-RPC request round-trip duration in seconds",
            unit="s",
        )
        self.connected_servers: UpDownCounter = self._meter.create_up_down_counter(
            name=f"{METRIC_PREFIX}_connected_servers",
            description="Number of MCP servers currently connected",
            unit="1",
        )

    def record_request(
        self,
        server: str,
        method: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a settled request.

        Args:
            server: Server name
            method: JSON-RPC method
            status: One of the MetricLabels.STATUS_* values
            duration_seconds: Round-trip duration
        """
        attributes = {
            MetricLabels.SERVER: server,
            MetricLabels.METHOD: method,
            MetricLabels.STATUS: status,
        }
        self.requests_total.add(1, attributes)
        self.request_duration_seconds.record(
            duration_seconds,
            {MetricLabels.SERVER: server, MetricLabels.METHOD: method},
        )

    def record_malformed_line(self, server: str) -> None:
        """Record a dropped stdout line."""
        self.malformed_lines_total.add(1, {MetricLabels.SERVER: server})

    def record_connected(self, server: str) -> None:
        """Record a server entering the connected state."""
        self.connected_servers.add(1, {MetricLabels.SERVER: server})

    def record_disconnected(self, server: str) -> None:
        """Record a server leaving the connected state."""
        self.connected_servers.add(-1, {MetricLabels.SERVER: server})
