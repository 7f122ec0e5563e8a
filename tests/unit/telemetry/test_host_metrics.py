"""Unit tests for mcphost metrics."""

from unittest.mock import MagicMock

import pytest

from mcphost.telemetry import METRIC_PREFIX, HostMetrics, MetricLabels

pytestmark = pytest.mark.unit


@pytest.fixture
def meter():
    """Meter whose instruments are distinct mocks keyed by name."""
    instruments: dict[str, MagicMock] = {}

    def _instrument(name, **kwargs):
        instruments[name] = MagicMock(name=name)
        return instruments[name]

    mock = MagicMock()
    mock.create_counter.side_effect = _instrument
    mock.create_histogram.side_effect = _instrument
    mock.create_up_down_counter.side_effect = _instrument
    mock.instruments = instruments
    return mock


class TestHostMetrics:
    """Tests for HostMetrics."""

    def test_instrument_names(self, meter):
        HostMetrics(meter)
        assert set(meter.instruments) == {
            f"{METRIC_PREFIX}_requests_total",
            f"{METRIC_PREFIX}_malformed_lines_total",
            f"{METRIC_PREFIX}_request_duration_seconds",
            f"{METRIC_PREFIX}_connected_servers",
        }

    def test_record_request(self, meter):
        metrics = HostMetrics(meter)

        metrics.record_request("notes", "tools/call", MetricLabels.STATUS_SUCCESS, 0.25)

        metrics.requests_total.add.assert_called_once_with(
            1, {"server": "notes", "method": "tools/call", "status": "success"}
        )
        metrics.request_duration_seconds.record.assert_called_once_with(
            0.25, {"server": "notes", "method": "tools/call"}
        )

    def test_record_malformed_line(self, meter):
        metrics = HostMetrics(meter)
        metrics.record_malformed_line("notes")
        metrics.malformed_lines_total.add.assert_called_once_with(1, {"server": "notes"})

    def test_connected_gauge(self, meter):
        metrics = HostMetrics(meter)

        metrics.record_connected("notes")
        metrics.record_disconnected("notes")

        calls = metrics.connected_servers.add.call_args_list
        assert [c.args for c in calls] == [(1, {"server": "notes"}), (-1, {"server": "notes"})]

    def test_default_meter_is_safe(self):
        # Without an SDK the API hands out no-op instruments
        metrics = HostMetrics()
        metrics.record_request("notes", "initialize", MetricLabels.STATUS_TIMEOUT, 1.0)
        metrics.record_connected("notes")
