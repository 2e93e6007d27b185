"""MQTT subscription feeding meter messages into the ingestion dispatcher.

Subscribes to the configured Glow topic filter on the local broker and hands
every message to the dispatcher on the paho network thread. Reconnects after
the initial connection are left to paho.
"""

import logging
import threading
import time

import paho.mqtt.client as mqtt

from bright_exporter.config import AppConfig
from bright_exporter.dispatch import IngestionDispatcher

logger = logging.getLogger(__name__)

BACKOFF_BASE = 1
BACKOFF_MAX = 60


class MqttBridge:
    def __init__(self, config: AppConfig, dispatcher: IngestionDispatcher):
        self.config = config
        self.dispatcher = dispatcher
        # Set by the first CONNACK only; later reconnects are paho's business.
        self._connack = threading.Event()
        self._connack_reason = None
        self._setup_client()

    def _setup_client(self) -> None:
        broker = self.config.broker
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=broker.client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.username_pw_set(broker.username, broker.password)
        if broker.tls:
            self.client.tls_set()
        self.client.reconnect_delay_set(min_delay=BACKOFF_BASE, max_delay=BACKOFF_MAX)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self.dispatcher.on_message

    def _on_connect(self, client: mqtt.Client, userdata, flags, reason_code, properties) -> None:
        if not self._connack.is_set():
            self._connack_reason = reason_code
            self._connack.set()
        if reason_code.is_failure:
            logger.error("Broker connection failed: %s", reason_code)
            return
        logger.info("Connected to broker")
        # Subscribing here restores the subscription after every reconnect.
        client.subscribe(self.config.topic)
        logger.info("Subscribed to %s", self.config.topic)

    def _on_disconnect(self, client: mqtt.Client, userdata, disconnect_flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.warning("Unexpected disconnect from broker (%s), will reconnect", reason_code)

    def connect(self) -> None:
        """Connect to the broker, retrying with backoff, and wait for its CONNACK.

        Raises ConnectionError once broker.connect_attempts attempts have failed,
        when the broker refuses the session (bad credentials, not authorised) or
        when no CONNACK arrives within broker.connack_timeout seconds.
        """
        self._open_socket()
        self._await_connack()

    def _open_socket(self) -> None:
        broker = self.config.broker
        delay = BACKOFF_BASE
        for attempt in range(1, broker.connect_attempts + 1):
            try:
                self.client.connect(broker.host, broker.port, keepalive=broker.keepalive)
                return
            except OSError as e:
                if attempt == broker.connect_attempts:
                    raise ConnectionError(
                        f"Could not connect to broker at {broker.host}:{broker.port} after {attempt} attempts: {e}"
                    ) from e
                logger.warning("Connection to broker at %s:%d failed: %s, retrying in %ds", broker.host, broker.port, e, delay)
                time.sleep(delay)
                delay = min(delay * 2, BACKOFF_MAX)

    def _await_connack(self) -> None:
        # The network thread is not running yet, so drive the loop here.
        broker = self.config.broker
        deadline = time.monotonic() + broker.connack_timeout
        while not self._connack.is_set():
            if time.monotonic() >= deadline:
                raise ConnectionError(
                    f"No CONNACK from broker at {broker.host}:{broker.port} within {broker.connack_timeout}s"
                )
            self.client.loop(timeout=1.0)
        if self._connack_reason.is_failure:
            raise ConnectionError(f"Broker at {broker.host}:{broker.port} refused connection: {self._connack_reason}")

    def start(self) -> None:
        """Start the MQTT client loop (non-blocking, threaded)."""
        self.client.loop_start()
        logger.info("MQTT bridge started")

    def stop(self) -> None:
        """Disconnect and stop the MQTT client loop."""
        self.client.loop_stop()
        self.client.disconnect()
        logger.info("MQTT bridge stopped")
