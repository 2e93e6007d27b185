"""Unit tests for bright_exporter/collector.py."""

from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry, generate_latest

from bright_exporter.collector import ReadingsCollector
from bright_exporter.dispatch import IngestionDispatcher
from bright_exporter.store import GAS, Dimension, ReadingStore

TEST_MSG_DIR = Path(__file__).resolve().parent.parent / "test_msg"
NS = "uk_riviera_monitoring"


@pytest.fixture
def store():
    return ReadingStore()


@pytest.fixture
def registry(store):
    registry = CollectorRegistry()
    registry.register(ReadingsCollector(store))
    return registry


class TestCollectEmptyStore:
    def test_usage_series_are_zero(self, registry):
        assert registry.get_sample_value(f"{NS}_electricity") == 0.0
        assert registry.get_sample_value(f"{NS}_electricitycumulative_total") == 0.0
        assert registry.get_sample_value(f"{NS}_gas_total") == 0.0

    def test_no_price_samples(self, registry):
        assert registry.get_sample_value(f"{NS}_price_per_unit", {"source": "electricity"}) is None
        assert registry.get_sample_value(f"{NS}_standing_charge", {"source": "gas"}) is None

    def test_exposition_succeeds(self, registry):
        output = generate_latest(registry).decode()
        assert f"# TYPE {NS}_electricity gauge" in output
        assert f"# TYPE {NS}_electricitycumulative counter" in output


class TestCollectAfterIngestion:
    def test_example_electricity_message(self, store, registry):
        dispatcher = IngestionDispatcher(store)
        dispatcher.handle("glow/ABC/electricitymeter", (TEST_MSG_DIR / "electricitymeter.json").read_bytes())

        assert registry.get_sample_value(f"{NS}_electricity") == 0.481
        assert registry.get_sample_value(f"{NS}_electricitycumulative_total") == 4896.645
        assert registry.get_sample_value(f"{NS}_price_per_unit", {"source": "electricity"}) == 0.2924
        assert registry.get_sample_value(f"{NS}_standing_charge", {"source": "electricity"}) == 0.3792
        assert registry.get_sample_value(f"{NS}_gas_total") == 0.0

    def test_one_sample_per_kind(self, store):
        store.set(Dimension.UNIT_RATE, "electricity", 0.29)
        store.set(Dimension.UNIT_RATE, GAS, 0.07)
        store.set(Dimension.STANDING_CHARGE, GAS, 0.27)
        families = {f.name: f for f in ReadingsCollector(store).collect()}

        assert [s.labels for s in families[f"{NS}_price_per_unit"].samples] == [
            {"source": "electricity"}, {"source": "gas"},
        ]
        assert [s.labels for s in families[f"{NS}_standing_charge"].samples] == [{"source": "gas"}]


class TestNamespace:
    def test_custom_namespace(self, store):
        registry = CollectorRegistry()
        registry.register(ReadingsCollector(store, namespace="home_energy"))
        assert registry.get_sample_value("home_energy_electricity") == 0.0

    def test_empty_namespace(self, store):
        registry = CollectorRegistry()
        registry.register(ReadingsCollector(store, namespace=""))
        assert registry.get_sample_value("gas_total") == 0.0


class TestDescribe:
    def test_describe_has_no_samples(self, store):
        families = ReadingsCollector(store).describe()
        assert len(families) == 5
        assert all(not f.samples for f in families)

    def test_duplicate_registration_rejected(self, store, registry):
        with pytest.raises(ValueError):
            registry.register(ReadingsCollector(store))
