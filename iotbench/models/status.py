"""
Operation outcome models

Status is the uniform result handed back to the benchmark driver for every
query/insert; DeviceSummary is the result of the per-device summary pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Operation(str, Enum):
    """Benchmark operation kinds."""

    INGESTION = "INGESTION"
    PRECISE_QUERY = "PRECISE_QUERY"
    RANGE_QUERY = "RANGE_QUERY"
    VALUE_RANGE_QUERY = "VALUE_RANGE_QUERY"
    AGG_RANGE_QUERY = "AGG_RANGE_QUERY"
    AGG_VALUE_QUERY = "AGG_VALUE_QUERY"
    AGG_RANGE_VALUE_QUERY = "AGG_RANGE_VALUE_QUERY"
    GROUP_BY_QUERY = "GROUP_BY_QUERY"
    LATEST_POINT_QUERY = "LATEST_POINT_QUERY"
    RANGE_QUERY_ORDER_BY_TIME_DESC = "RANGE_QUERY_ORDER_BY_TIME_DESC"
    VALUE_RANGE_QUERY_ORDER_BY_TIME_DESC = "VALUE_RANGE_QUERY_ORDER_BY_TIME_DESC"
    GROUP_BY_QUERY_ORDER_BY_TIME_DESC = "GROUP_BY_QUERY_ORDER_BY_TIME_DESC"
    VERIFICATION_QUERY = "VERIFICATION_QUERY"
    DEVICE_QUERY = "DEVICE_QUERY"
    DEVICE_SUMMARY = "DEVICE_SUMMARY"

    @property
    def is_aggregation(self) -> bool:
        return self in (
            Operation.AGG_RANGE_QUERY,
            Operation.AGG_VALUE_QUERY,
            Operation.AGG_RANGE_VALUE_QUERY,
        )

    @property
    def is_group_by(self) -> bool:
        return self in (
            Operation.GROUP_BY_QUERY,
            Operation.GROUP_BY_QUERY_ORDER_BY_TIME_DESC,
        )


@dataclass(frozen=True, slots=True)
class Status:
    """Outcome of one adapter operation.

    Attributes:
        success: Whether the backend accepted the operation
        point_count: Points read or written (partial count on partial failure)
        error: Original error for failures
        query_text: Executed text (failures, comparison mode, device queries)
        rows: Captured result rows (comparison mode / device queries only)
    """

    success: bool
    point_count: int = 0
    error: Optional[BaseException] = None
    query_text: Optional[str] = None
    rows: Optional[list[list[Any]]] = None

    @classmethod
    def ok(
        cls,
        point_count: int = 0,
        *,
        query_text: str | None = None,
        rows: list[list[Any]] | None = None,
    ) -> Status:
        return cls(True, int(point_count), None, query_text, rows)

    @classmethod
    def failed(
        cls,
        error: BaseException,
        query_text: str | None = None,
        *,
        point_count: int = 0,
    ) -> Status:
        return cls(False, int(point_count), error, query_text, None)

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__


@dataclass(frozen=True, slots=True)
class DeviceSummary:
    device: str
    total_line_number: int
    min_timestamp: int
    max_timestamp: int
