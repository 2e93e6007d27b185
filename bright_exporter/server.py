"""Metrics HTTP endpoint."""

import logging

from prometheus_client import CollectorRegistry, start_http_server
from prometheus_client.platform_collector import PlatformCollector
from prometheus_client.process_collector import ProcessCollector

from bright_exporter.collector import ReadingsCollector

logger = logging.getLogger(__name__)


def build_registry(collector: ReadingsCollector) -> CollectorRegistry:
    registry = CollectorRegistry()
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    registry.register(collector)
    return registry


def serve_metrics(registry: CollectorRegistry, port: int, address: str = "0.0.0.0"):
    """Start the /metrics server on a background thread and return the server."""
    server, _thread = start_http_server(port, addr=address, registry=registry)
    logger.info("Serving metrics on %s:%d", address, port)
    return server
