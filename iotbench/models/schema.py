"""
Device schema models

Immutable descriptions of the benchmarked entities (devices and their
sensors) and the records/batches written to them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence


class SensorType(str, Enum):
    """Declared sensor data type."""

    BOOLEAN = "boolean"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT = "float"
    DOUBLE = "double"
    TEXT = "text"
    STRING = "string"
    BLOB = "blob"
    TIMESTAMP = "timestamp"
    DATE = "date"

    @property
    def type_name(self) -> str:
        """IoTDB data type name (BOOLEAN, INT32, ...)."""
        return self.name

    @property
    def is_numeric(self) -> bool:
        return self in (
            SensorType.INT32,
            SensorType.INT64,
            SensorType.FLOAT,
            SensorType.DOUBLE,
        )


@dataclass(frozen=True, slots=True)
class Sensor:
    name: str
    sensor_type: SensorType = SensorType.DOUBLE


@dataclass(frozen=True, slots=True)
class DeviceSchema:
    """Identity and sensor layout of one benchmarked device.

    Attributes:
        group: Group name (tree: path segment after root; table: table name)
        device: Device identifier
        sensors: Ordered sensor list; record values align with it positionally
        tags: Ordered (key, value) pairs; the order is part of the device path
    """

    group: str
    device: str
    sensors: Sequence[Sensor] = ()
    tags: Sequence[tuple[str, str]] | dict[str, str] = ()

    def __post_init__(self) -> None:
        tags = self.tags.items() if isinstance(self.tags, dict) else self.tags
        object.__setattr__(self, "sensors", tuple(self.sensors))
        object.__setattr__(self, "tags", tuple((str(k), str(v)) for k, v in tags))

    @property
    def sensor_names(self) -> list[str]:
        return [s.name for s in self.sensors]

    @property
    def tag_keys(self) -> list[str]:
        return [k for k, _ in self.tags]

    @property
    def tag_values(self) -> list[str]:
        return [v for _, v in self.tags]

    @property
    def device_path(self) -> str:
        """<group>[.<tag values>].<device>, without any root prefix."""
        return ".".join([self.group, *self.tag_values, self.device])

    @property
    def table(self) -> str:
        """Table-model table name."""
        return self.group


@dataclass(frozen=True, slots=True)
class Record:
    timestamp: int
    values: Sequence[Any] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", int(self.timestamp))
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True, slots=True)
class Batch:
    """Ordered records for one device, inserted in a single call."""

    device_schema: DeviceSchema
    records: Sequence[Record] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))

    def __len__(self) -> int:
        return len(self.records)

    @property
    def timestamps(self) -> list[int]:
        return [r.timestamp for r in self.records]

    def columns(self) -> list[list[Any]]:
        """Column-major values, one list per sensor."""
        width = len(self.device_schema.sensors)
        cols: list[list[Any]] = [[] for _ in range(width)]
        for record in self.records:
            for i in range(width):
                cols[i].append(record.values[i] if i < len(record.values) else None)
        return cols
