"""
Benchmark data models.
"""

from iotbench.models.query import (
    AggRangeQuery,
    AggRangeValueQuery,
    AggValueQuery,
    DeviceQuery,
    GroupByQuery,
    LatestPointQuery,
    PreciseQuery,
    RangeQuery,
    ValueRangeQuery,
    VerificationQuery,
)
from iotbench.models.schema import Batch, DeviceSchema, Record, Sensor, SensorType
from iotbench.models.status import DeviceSummary, Operation, Status

__all__ = [
    "AggRangeQuery",
    "AggRangeValueQuery",
    "AggValueQuery",
    "Batch",
    "DeviceQuery",
    "DeviceSchema",
    "DeviceSummary",
    "GroupByQuery",
    "LatestPointQuery",
    "Operation",
    "PreciseQuery",
    "RangeQuery",
    "Record",
    "Sensor",
    "SensorType",
    "Status",
    "ValueRangeQuery",
    "VerificationQuery",
]
