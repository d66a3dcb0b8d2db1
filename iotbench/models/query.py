"""
Query models

One frozen value type per benchmark query shape. Every query names at least
one device; multi-device queries must share one sensor layout because SELECT
heads are built from the first device's sensors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from iotbench.models.schema import DeviceSchema, Record


def _check_devices(devices: Sequence[DeviceSchema]) -> tuple[DeviceSchema, ...]:
    out = tuple(devices)
    if not out:
        raise ValueError("query requires at least one device schema")
    layout = out[0].sensor_names
    for schema in out[1:]:
        if schema.sensor_names != layout:
            raise ValueError(
                f"device {schema.device} sensor layout {schema.sensor_names} "
                f"does not match {out[0].device} layout {layout}"
            )
    return out


@dataclass(frozen=True, slots=True)
class PreciseQuery:
    devices: Sequence[DeviceSchema]
    timestamp: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))


@dataclass(frozen=True, slots=True)
class RangeQuery:
    devices: Sequence[DeviceSchema]
    start: int
    end: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))


@dataclass(frozen=True, slots=True)
class ValueRangeQuery:
    devices: Sequence[DeviceSchema]
    start: int
    end: int
    value_threshold: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))


@dataclass(frozen=True, slots=True)
class AggRangeQuery:
    devices: Sequence[DeviceSchema]
    agg_fun: str
    start: int
    end: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))


@dataclass(frozen=True, slots=True)
class AggValueQuery:
    devices: Sequence[DeviceSchema]
    agg_fun: str
    value_threshold: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))


@dataclass(frozen=True, slots=True)
class AggRangeValueQuery:
    devices: Sequence[DeviceSchema]
    agg_fun: str
    start: int
    end: int
    value_threshold: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))


@dataclass(frozen=True, slots=True)
class GroupByQuery:
    """Aggregation over [start, end) in windows of ``granularity`` ms."""

    devices: Sequence[DeviceSchema]
    agg_fun: str
    start: int
    end: int
    granularity: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))
        if self.granularity <= 0:
            raise ValueError(f"granularity must be positive (got {self.granularity})")


@dataclass(frozen=True, slots=True)
class LatestPointQuery:
    devices: Sequence[DeviceSchema]

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _check_devices(self.devices))


@dataclass(frozen=True, slots=True)
class DeviceQuery:
    """Single-device scan over [start, end), used by the verification pass."""

    device: DeviceSchema
    start: int = 0
    end: int = 0


@dataclass(frozen=True, slots=True)
class VerificationQuery:
    device: DeviceSchema
    records: Sequence[Record] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records or ()))
