"""Payload models for Glow / Bright smart meter MQTT messages.

The CAD publishes one message per meter to ``<prefix>/electricitymeter`` and
``<prefix>/gasmeter``. Current firmware sends JSON numbers and RFC-3339
timestamps:

    {"electricitymeter": {
        "timestamp": "2022-08-25T06:16:59Z",
        "energy": {
            "export": {"cumulative": 0, "units": "kWh"},
            "import": {"cumulative": 4896.645, "day": 0.003, ...,
                       "price": {"unitrate": 0.2924, "standingcharge": 0.3792}}},
        "power": {"value": 0.481, "units": "kW"}}}

Older firmware quotes every number, misspells ``cummulative``, sends ``power``
and ``export`` as bare values, keeps ``price`` next to ``energy`` and uses a
``"2022-08-12T09:50:59 +00"`` timestamp. The device does not announce which
revision it runs, so the models accept both.
"""

import json
import math
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

ELECTRICITY_KEY = "electricitymeter"
GAS_KEY = "gasmeter"

# Tried in order, first match wins.
TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S +00",
)


class PayloadError(ValueError):
    """Raised when a meter message cannot be mapped to its model."""


def _coerce_float(value: Any) -> Any:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError("boolean is not a meter reading")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValueError(f"{value!r} is not a number") from None
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{value!r} is not a finite number")
    return value


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a meter timestamp, trying each known format in turn.

    Timestamps without an offset are taken as UTC.
    """
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"unrecognised timestamp {value!r}")


MeterFloat = Annotated[float, BeforeValidator(_coerce_float)]
MeterTimestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]


def _cumulative_field() -> Any:
    return Field(0.0, validation_alias=AliasChoices("cumulative", "cummulative"))


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, allow_inf_nan=False)


class Price(_Model):
    unitrate: MeterFloat = 0.0
    standingcharge: MeterFloat = 0.0


class Power(_Model):
    value: MeterFloat = 0.0
    units: str = "kW"

    @model_validator(mode="before")
    @classmethod
    def _bare_value(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        return {"value": data}


class ElectricityExport(_Model):
    cumulative: MeterFloat = _cumulative_field()
    units: str = "kWh"

    @model_validator(mode="before")
    @classmethod
    def _bare_value(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        return {"cumulative": data}


class _Import(_Model):
    cumulative: MeterFloat = _cumulative_field()
    day: MeterFloat = 0.0
    week: MeterFloat = 0.0
    month: MeterFloat = 0.0
    units: str = "kWh"
    supplier: str | None = None
    price: Price | None = None


class ElectricityImport(_Import):
    mpan: str | None = None


class GasImport(_Import):
    cumulativevol: MeterFloat = 0.0
    cumulativevolunits: str = "m3"
    dayvol: MeterFloat = 0.0
    weekvol: MeterFloat = 0.0
    monthvol: MeterFloat = 0.0
    dayweekmonthvolunits: str = "kWh"
    mprn: str | None = None


class ElectricityEnergy(_Model):
    import_: ElectricityImport = Field(default_factory=ElectricityImport, alias="import")
    export: ElectricityExport = Field(default_factory=ElectricityExport)


class GasEnergy(_Model):
    import_: GasImport = Field(default_factory=GasImport, alias="import")


class _Meter(_Model):
    timestamp: MeterTimestamp = None
    supplier: str | None = None
    # Older firmware keeps the tariff beside "energy" rather than inside "import".
    price: Price | None = None

    @property
    def tariff(self) -> Price:
        return self.energy.import_.price or self.price or Price()


class ElectricityMeter(_Meter):
    energy: ElectricityEnergy = Field(default_factory=ElectricityEnergy)
    power: Power = Field(default_factory=Power)
    mpan: str | None = None


class GasMeter(_Meter):
    energy: GasEnergy = Field(default_factory=GasEnergy)
    mprn: str | None = None


class ElectricityMessage(_Model):
    electricitymeter: ElectricityMeter


class GasMessage(_Model):
    gasmeter: GasMeter


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _validate(model: type[_Model], payload: bytes | str) -> _Model:
    try:
        raw = json.loads(payload)
    except ValueError as e:
        raise PayloadError(f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise PayloadError("JSON nested too deeply") from e
    if not isinstance(raw, dict):
        raise PayloadError(f"expected a JSON object, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise PayloadError(_describe(e)) from e


def decode_electricity(payload: bytes | str) -> ElectricityMeter:
    """Decode an ``electricitymeter`` message.

    Raises PayloadError naming the offending field when the payload cannot be
    decoded, including when it is keyed by another meter.
    """
    return _validate(ElectricityMessage, payload).electricitymeter


def decode_gas(payload: bytes | str) -> GasMeter:
    """Decode a ``gasmeter`` message. See decode_electricity."""
    return _validate(GasMessage, payload).gasmeter


DECODERS = {
    ELECTRICITY_KEY: decode_electricity,
    GAS_KEY: decode_gas,
}


def decode(kind: str, payload: bytes | str) -> ElectricityMeter | GasMeter:
    try:
        decoder = DECODERS[kind]
    except KeyError:
        raise PayloadError(f"unknown meter message class {kind!r}") from None
    return decoder(payload)
