"""mcphost telemetry - OpenTelemetry-based metrics."""

from .metrics import METRIC_PREFIX, HostMetrics, MetricLabels

__all__ = [
    "HostMetrics",
    "MetricLabels",
    "METRIC_PREFIX",
]
