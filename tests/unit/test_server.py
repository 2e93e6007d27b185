"""Unit tests for bright_exporter/server.py."""

from unittest.mock import MagicMock, patch

from bright_exporter.collector import ReadingsCollector
from bright_exporter.server import build_registry, serve_metrics
from bright_exporter.store import ReadingStore


def test_registry_serves_readings():
    registry = build_registry(ReadingsCollector(ReadingStore()))
    assert registry.get_sample_value("uk_riviera_monitoring_electricity") == 0.0


def test_serve_metrics_starts_server():
    registry = build_registry(ReadingsCollector(ReadingStore()))
    server = MagicMock()
    with patch("bright_exporter.server.start_http_server", return_value=(server, MagicMock())) as start:
        assert serve_metrics(registry, 9999) is server
    start.assert_called_once_with(9999, addr="0.0.0.0", registry=registry)
