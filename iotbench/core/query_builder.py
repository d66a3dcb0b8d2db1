"""
Query Builder

Composes complete SQL statements for every benchmark query shape from the
fragments rendered by a ModelStrategy.
"""

from __future__ import annotations

from typing import Any, Sequence

from iotbench.core.model_strategies.base import ModelStrategy
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
from iotbench.models.schema import DeviceSchema

ORDER_BY_TIME_DESC = " ORDER BY time DESC"


def _range_predicates(start: int, end: int) -> list[str]:
    # Both bounds inclusive.
    return [f"time >= {start}", f"time <= {end}"]


class QueryBuilder:
    """Builds query text for one data model."""

    def __init__(self, model: ModelStrategy):
        self.model = model

    def _where(self, devices: Sequence[DeviceSchema], *predicates: str) -> str:
        """
        Single WHERE clause joining the device filter and predicates with AND.

        A disjunction is parenthesised when it is combined with anything else.
        """
        parts = []
        device_filter = self.model.device_filter(devices)
        if device_filter:
            parts.append(device_filter)
        parts.extend(p for p in predicates if p)
        if not parts:
            return ""
        if len(parts) > 1:
            parts = [f"({p})" if " OR " in p else p for p in parts]
        return " WHERE " + " AND ".join(parts)

    def _simple(self, devices: Sequence[DeviceSchema]) -> str:
        return self.model.simple_head(devices) + self.model.from_clause(devices)

    # ------------------------------------------------------------------
    # Query shapes
    # ------------------------------------------------------------------

    def precise(self, query: PreciseQuery) -> str:
        return self._simple(query.devices) + self._where(query.devices, f"time = {query.timestamp}")

    def range(self, query: RangeQuery, *, desc: bool = False) -> str:
        sql = self._simple(query.devices) + self._where(
            query.devices, *_range_predicates(query.start, query.end)
        )
        return sql + ORDER_BY_TIME_DESC if desc else sql

    def value_range(self, query: ValueRangeQuery, *, desc: bool = False) -> str:
        sql = (
            self._simple(query.devices)
            + self._where(query.devices, *_range_predicates(query.start, query.end))
            + self.model.value_filter_clause(query.devices, query.value_threshold)
        )
        return sql + ORDER_BY_TIME_DESC if desc else sql

    def agg_range(self, query: AggRangeQuery) -> str:
        return (
            self.model.agg_head(query.devices, query.agg_fun)
            + self.model.from_clause(query.devices)
            + self._where(query.devices, *_range_predicates(query.start, query.end))
            + self.model.aggregation_suffix(query.devices)
        )

    def agg_value(self, query: AggValueQuery) -> str:
        where = self._where(query.devices)
        return (
            self.model.agg_head(query.devices, query.agg_fun)
            + self.model.from_clause(query.devices)
            + where
            + self.model.value_filter_clause(
                query.devices, query.value_threshold, first_clause=not where
            )
            + self.model.aggregation_suffix(query.devices)
        )

    def agg_range_value(self, query: AggRangeValueQuery) -> str:
        return (
            self.model.agg_head(query.devices, query.agg_fun)
            + self.model.from_clause(query.devices)
            + self._where(query.devices, *_range_predicates(query.start, query.end))
            + self.model.value_filter_clause(query.devices, query.value_threshold)
            + self.model.aggregation_suffix(query.devices)
        )

    def group_by(self, query: GroupByQuery, *, desc: bool = False) -> str:
        predicates, group_clause = self.model.group_by_clause(
            query.devices, query.start, query.end, query.granularity
        )
        sql = (
            self.model.group_by_head(query.devices, query.agg_fun, query.granularity)
            + self.model.from_clause(query.devices)
            + self._where(query.devices, *predicates)
            + group_clause
        )
        return sql + ORDER_BY_TIME_DESC if desc else sql

    def latest_point(self, query: LatestPointQuery) -> str:
        return (
            self.model.latest_point_head(query.devices)
            + self.model.from_clause(query.devices)
            + self._where(query.devices)
            + self.model.latest_point_suffix(query.devices)
        )

    def device(self, query: DeviceQuery) -> str:
        """Single-device scan; the upper bound is strict, unlike ``range``."""
        devices = [query.device]
        return (
            self._simple(devices)
            + self._where(devices, f"time >= {query.start}", f"time < {query.end}")
            + ORDER_BY_TIME_DESC
        )

    def verification(self, query: VerificationQuery) -> tuple[str, dict[int, list[Any]]]:
        """
        Exact-timestamp lookup of expected records.

        Returns:
            (query text, {timestamp: expected values})

        Raises:
            ValueError: If there are no expected records
        """
        if not query.records:
            raise ValueError(
                f"verification query for {query.device.device} has no expected records"
            )
        devices = [query.device]
        expected: dict[int, list[Any]] = {}
        for record in query.records:
            expected[record.timestamp] = list(record.values)
        disjunction = " OR ".join(f"time = {ts}" for ts in expected)
        return self._simple(devices) + self._where(devices, disjunction), expected

    def summary(self, device: DeviceSchema) -> tuple[str, str, str]:
        """(total count, min timestamp, max timestamp) queries for one device."""
        devices = [device]
        target = self.model.from_clause(devices) + self._where(devices)
        return (
            self.model.count_head() + target,
            "SELECT *" + target + " ORDER BY time LIMIT 1",
            "SELECT *" + target + ORDER_BY_TIME_DESC + " LIMIT 1",
        )
