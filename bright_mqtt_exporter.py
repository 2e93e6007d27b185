#!/usr/bin/env python3
"""Bright MQTT Exporter.

Subscribes to the smart meter topics published by a Glow CAD on the local
broker and serves the latest readings as Prometheus metrics.
"""

import logging
import signal
import sys
from pathlib import Path

from bright_exporter.bridge import MqttBridge
from bright_exporter.collector import ReadingsCollector
from bright_exporter.config import ConfigError, load_config
from bright_exporter.dispatch import IngestionDispatcher
from bright_exporter.server import build_registry, serve_metrics
from bright_exporter.store import ReadingStore


def setup_logging(level: str, log_file: str | None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        handlers=handlers,
    )


def main() -> None:
    try:
        config = load_config()
    except ConfigError as e:
        setup_logging("INFO", None)
        logging.getLogger(__name__).error("Configuration error: %s", e)
        sys.exit(1)

    setup_logging(config.logging.level, config.logging.file)
    logger = logging.getLogger(__name__)
    logger.debug(
        "mqtt config: host=%s:%d user=%s topic=%s exporter-port=%d",
        config.broker.host, config.broker.port, config.broker.username,
        config.topic, config.exporter.port,
    )

    store = ReadingStore()
    dispatcher = IngestionDispatcher(store)
    registry = build_registry(ReadingsCollector(store, config.exporter.namespace))
    bridge = MqttBridge(config, dispatcher)

    try:
        bridge.connect()
    except ConnectionError as e:
        logger.error("%s", e)
        sys.exit(1)

    def shutdown(signum, frame):
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down", sig_name)
        bridge.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    serve_metrics(registry, config.exporter.port, config.exporter.address)
    bridge.start()
    logger.info("bright_mqtt_exporter running, waiting for messages")

    # Block main thread; MQTT loop and metrics server run in background threads
    signal.pause()


if __name__ == "__main__":
    main()
