"""Routes inbound meter messages to the payload decoders and the reading store."""

import logging
from typing import Callable

import paho.mqtt.client as mqtt

from bright_exporter.payload import (
    ELECTRICITY_KEY,
    GAS_KEY,
    ElectricityMeter,
    GasMeter,
    PayloadError,
    decode_electricity,
    decode_gas,
)
from bright_exporter.store import (
    ELECTRICITY,
    ELECTRICITY_CUMULATIVE,
    GAS,
    Dimension,
    Reading,
    ReadingStore,
)

logger = logging.getLogger(__name__)


def electricity_readings(meter: ElectricityMeter) -> list[Reading]:
    tariff = meter.tariff
    return [
        Reading(Dimension.USAGE, ELECTRICITY, meter.power.value),
        Reading(Dimension.USAGE, ELECTRICITY_CUMULATIVE, meter.energy.import_.cumulative),
        Reading(Dimension.UNIT_RATE, ELECTRICITY, tariff.unitrate),
        Reading(Dimension.STANDING_CHARGE, ELECTRICITY, tariff.standingcharge),
    ]


def gas_readings(meter: GasMeter) -> list[Reading]:
    tariff = meter.tariff
    return [
        Reading(Dimension.USAGE, GAS, meter.energy.import_.cumulative),
        Reading(Dimension.UNIT_RATE, GAS, tariff.unitrate),
        Reading(Dimension.STANDING_CHARGE, GAS, tariff.standingcharge),
    ]


# Topic suffix -> (decoder, reading extractor)
ROUTES: dict[str, tuple[Callable, Callable]] = {
    ELECTRICITY_KEY: (decode_electricity, electricity_readings),
    GAS_KEY: (decode_gas, gas_readings),
}


class IngestionDispatcher:
    def __init__(self, store: ReadingStore):
        self.store = store

    def handle(self, topic: str, payload: bytes) -> bool:
        """Decode one message and apply it to the store.

        Returns True when the store was updated. Unrelated topics and
        undecodable payloads leave the store untouched and return False.
        """
        for suffix, (decoder, extract) in ROUTES.items():
            if topic.endswith(suffix):
                break
        else:
            logger.debug("Ignoring message on unhandled topic %s", topic)
            return False

        try:
            meter = decoder(payload)
        except PayloadError as e:
            logger.error("Dropping message on topic %s: %s", topic, e)
            return False

        readings = extract(meter)
        for reading in readings:
            logger.debug("Updating %s %s with %s", reading.dimension.value, reading.kind, reading.value)
        self.store.update(readings)
        return True

    def on_message(self, client: mqtt.Client, userdata, msg: mqtt.MQTTMessage) -> None:
        self.handle(msg.topic, msg.payload)
