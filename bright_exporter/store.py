"""Latest-value store shared by the MQTT callback and the metrics collector."""

import enum
import numbers
import threading
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple

ELECTRICITY = "electricity"
ELECTRICITY_CUMULATIVE = "electricity-cumulative"
GAS = "gas"


class Dimension(enum.Enum):
    USAGE = "usage"
    UNIT_RATE = "unit_rate"
    STANDING_CHARGE = "standing_charge"


class Reading(NamedTuple):
    dimension: Dimension
    kind: str
    value: float


@dataclass(frozen=True)
class Snapshot:
    """Copy of all three dimensions taken under a single lock acquisition."""

    usage: dict[str, float] = field(default_factory=dict)
    unit_rate: dict[str, float] = field(default_factory=dict)
    standing_charge: dict[str, float] = field(default_factory=dict)

    def __getitem__(self, dimension: Dimension) -> dict[str, float]:
        return getattr(self, dimension.value)


def _as_float(value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise TypeError(f"reading value must be a real number, got {type(value).__name__}")
    return float(value)


class ReadingStore:
    """Most recent usage, unit rate and standing charge per source kind.

    One lock guards all three dimensions, so a snapshot never mixes values
    from two different updates. Writes are last-one-wins with no history.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[Dimension, dict[str, float]] = {d: {} for d in Dimension}

    def set(self, dimension: Dimension, kind: str, value: float) -> None:
        value = _as_float(value)
        with self._lock:
            self._values[dimension][kind] = value

    def update(self, readings: Iterable[Reading]) -> None:
        """Apply several readings atomically with respect to snapshot()."""
        coerced = [Reading(Dimension(r.dimension), r.kind, _as_float(r.value)) for r in readings]
        with self._lock:
            for reading in coerced:
                self._values[reading.dimension][reading.kind] = reading.value

    def get(self, dimension: Dimension, kind: str, default: float | None = None) -> float | None:
        with self._lock:
            return self._values[dimension].get(kind, default)

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                usage=dict(self._values[Dimension.USAGE]),
                unit_rate=dict(self._values[Dimension.UNIT_RATE]),
                standing_charge=dict(self._values[Dimension.STANDING_CHARGE]),
            )
