"""Prometheus collector rendering the reading store on every scrape."""

import logging

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from bright_exporter.store import (
    ELECTRICITY,
    ELECTRICITY_CUMULATIVE,
    GAS,
    ReadingStore,
    Snapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "uk_riviera_monitoring"


class ReadingsCollector:
    """Custom collector exposing the latest meter readings.

    The three usage series are always present and read 0 until the first
    message arrives. Price and standing charge carry one sample per source
    kind seen so far.
    """

    def __init__(self, store: ReadingStore, namespace: str = DEFAULT_NAMESPACE):
        self.store = store
        self.namespace = namespace

    def _name(self, metric: str) -> str:
        if not self.namespace:
            return metric
        return f"{self.namespace}_{metric}"

    def describe(self):
        return self._families(None)

    def collect(self):
        snapshot = self.store.snapshot()
        logger.debug(
            "Collecting %d usage, %d unit rate, %d standing charge readings",
            len(snapshot.usage), len(snapshot.unit_rate), len(snapshot.standing_charge),
        )
        return self._families(snapshot)

    def _families(self, snapshot: Snapshot | None) -> list:
        electricity = GaugeMetricFamily(
            self._name("electricity"),
            "electricity power usage readings from the smart meter in kW",
        )
        cumulative = CounterMetricFamily(
            self._name("electricitycumulative"),
            "cumulative electricity usage from the smart meter in kWh",
        )
        gas = CounterMetricFamily(
            self._name("gas"),
            "gas usage readings from the smart meter in kWh",
        )
        unit_rate = GaugeMetricFamily(
            self._name("price_per_unit"),
            "price per energy (kWh) unit",
            labels=["source"],
        )
        standing_charge = GaugeMetricFamily(
            self._name("standing_charge"),
            "daily standing charge",
            labels=["source"],
        )
        families = [electricity, cumulative, gas, unit_rate, standing_charge]
        if snapshot is None:
            return families

        electricity.add_metric([], snapshot.usage.get(ELECTRICITY, 0.0))
        cumulative.add_metric([], snapshot.usage.get(ELECTRICITY_CUMULATIVE, 0.0))
        gas.add_metric([], snapshot.usage.get(GAS, 0.0))
        for kind, value in sorted(snapshot.unit_rate.items()):
            unit_rate.add_metric([kind], value)
        for kind, value in sorted(snapshot.standing_charge.items()):
            standing_charge.add_metric([kind], value)
        return families
