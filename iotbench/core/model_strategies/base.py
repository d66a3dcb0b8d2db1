"""
Model Strategy Base

Abstract interface for the data-model specific parts of the adapter: SQL
fragments, insert payload shape, schema registration and result shaping.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

from iotbench.config import AdapterConfig
from iotbench.connectors import iotdb_client
from iotbench.core import naming
from iotbench.core.errors import is_missing_data
from iotbench.models.schema import Batch, DeviceSchema, SensorType
from iotbench.models.status import Operation

logger = logging.getLogger(__name__)


def format_literal(value: Any, sensor_type: SensorType | None = None) -> str:
    """Render a python value as an IoTDB SQL literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)) and sensor_type not in (
        SensorType.TEXT,
        SensorType.STRING,
    ):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "X'" + bytes(value).hex() + "'"
    text = str(value).replace("'", "''")
    return f"'{text}'"


class ModelStrategy(ABC):
    """
    Base class for data-model strategies.

    Subclasses render the model-specific fragments; QueryBuilder composes them
    into complete statements.
    """

    name: str = ""
    # Tree results carry an implicit Time column ahead of the selected columns.
    implicit_time_column: bool = False

    def __init__(self, config: AdapterConfig):
        self.config = config

    # ------------------------------------------------------------------
    # SQL fragments
    # ------------------------------------------------------------------

    @abstractmethod
    def simple_head(self, devices: Sequence[DeviceSchema]) -> str:
        """SELECT head for raw-data queries, e.g. ``SELECT s0, s1``."""

    @abstractmethod
    def agg_head(self, devices: Sequence[DeviceSchema], agg_fun: str) -> str:
        """SELECT head for aggregation queries, e.g. ``SELECT AVG(s0), AVG(s1)``."""

    @abstractmethod
    def latest_point_head(self, devices: Sequence[DeviceSchema]) -> str:
        """SELECT head for latest-point queries."""

    @abstractmethod
    def from_clause(self, devices: Sequence[DeviceSchema]) -> str:
        """`` FROM ...`` clause naming the queried devices."""

    def device_filter(self, devices: Sequence[DeviceSchema]) -> str | None:
        """Row predicate selecting the devices, or None when FROM already does."""
        return None

    @abstractmethod
    def value_predicate(self, devices: Sequence[DeviceSchema], sensor: str, threshold: Any) -> str:
        """Threshold predicate for one sensor column."""

    def value_filter_clause(
        self,
        devices: Sequence[DeviceSchema],
        threshold: Any,
        *,
        first_clause: bool = False,
    ) -> str:
        """
        Value filter: OR over devices of (AND over sensors of ``sensor > threshold``).

        Args:
            devices: Queried devices (same sensor layout)
            threshold: Compared with ``>``, rendered verbatim
            first_clause: True emits `` WHERE <filter>``; False emits `` AND <filter>``
                for appending after an existing condition

        Returns:
            The joined clause; empty string for a degenerate (sensor-less) query
        """
        groups: list[str] = []
        for schema in devices:
            predicates = [
                self.value_predicate([schema], sensor.name, threshold)
                for sensor in schema.sensors
            ]
            if predicates:
                groups.append(" AND ".join(predicates))
        if not groups:
            return ""
        if len(groups) == 1:
            body = groups[0]
        else:
            body = "(" + " OR ".join(f"({g})" for g in groups) + ")"
        return (" WHERE " if first_clause else " AND ") + body

    def group_by_head(self, devices: Sequence[DeviceSchema], agg_fun: str, granularity: int) -> str:
        """SELECT head for group-by queries (tree reuses the aggregation head)."""
        return self.agg_head(devices, agg_fun)

    @abstractmethod
    def group_by_clause(
        self, devices: Sequence[DeviceSchema], start: int, end: int, granularity: int
    ) -> tuple[list[str], str]:
        """
        Group-by rendering over the half-open interval [start, end).

        Returns:
            (extra WHERE predicates, trailing GROUP BY clause)
        """

    def aggregation_suffix(self, devices: Sequence[DeviceSchema]) -> str:
        """Trailing clause required by plain aggregation queries."""
        return ""

    def latest_point_suffix(self, devices: Sequence[DeviceSchema]) -> str:
        return ""

    def count_head(self) -> str:
        return "SELECT COUNT(*)"

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    @abstractmethod
    def insert_target(self, schema: DeviceSchema) -> str:
        """Device path (tree) or table name (table) a batch is written to."""

    @abstractmethod
    def tablet_columns(
        self, schema: DeviceSchema
    ) -> tuple[list[str], list[SensorType], list[str] | None]:
        """(column names, column types, TAG/FIELD categories or None) of a tablet."""

    @abstractmethod
    def tablet_rows(self, batch: Batch) -> list[list[Any]]:
        """Row-major tablet values aligned with ``tablet_columns``."""

    def create_tablet(self, batch: Batch) -> Any:
        """Columnar tablet sized to the batch."""
        names, types, categories = self.tablet_columns(batch.device_schema)
        return iotdb_client.build_tablet(
            self.insert_target(batch.device_schema),
            names,
            types,
            self.tablet_rows(batch),
            batch.timestamps,
            categories,
        )

    @abstractmethod
    def insert_tablet(self, session: Any, tablet: Any) -> None:
        """Hand a tablet to a session using the model's insert call."""

    def insert_statements(self, batch: Batch) -> list[str]:
        """One INSERT statement per record (DB-API path)."""
        raise NotImplementedError(f"{self.name} model has no statement-based insert path")

    # ------------------------------------------------------------------
    # Sessions and metadata
    # ------------------------------------------------------------------

    @abstractmethod
    def build_session(self, node_urls: Sequence[str], *, pool_name: str = "default") -> Any:
        """Open a session speaking this model's dialect."""

    def build_metadata_session(self, node_urls: Sequence[str]) -> Any:
        """Short-lived session for registration and cleanup."""
        return self.build_session(node_urls, pool_name="metadata")

    @abstractmethod
    def register_schema(self, session: Any, schemas: Sequence[DeviceSchema]) -> None:
        """Create databases/series/tables; tolerates already-exists failures."""

    @abstractmethod
    def cleanup_statement(self) -> str:
        """Statement deleting all benchmark data."""

    def cleanup_session(self, session: Any) -> None:
        """Delete all benchmark data; an already-empty database is not an error."""
        statement = self.cleanup_statement()
        try:
            session.execute_non_query_statement(statement)
        except Exception as e:
            if not is_missing_data(e):
                raise
            logger.info(f"Nothing to clean up ({statement}): {e}")

    # ------------------------------------------------------------------
    # Result shaping
    # ------------------------------------------------------------------

    def normalize_record(self, timestamp: int, fields: Sequence[Any]) -> list[Any]:
        """Session result row as a plain list."""
        if self.implicit_time_column:
            return [timestamp, *fields]
        return list(fields)

    def normalize_cursor_row(self, row: Sequence[Any], column_names: Sequence[str]) -> list[Any]:
        """DB-API row in the same layout ``normalize_record`` produces."""
        if not self.implicit_time_column:
            return list(row)
        first = str(column_names[0]).lower() if column_names else ""
        if first in ("time", "timestamp"):
            return list(row)
        # Aggregations come back without a Time column.
        return [None, *row]

    def value_offset(self, operation: Operation) -> int:
        """Number of leading identity columns (time, device) in a result row."""
        return 1

    def count_points(self, rows: Sequence[Sequence[Any]], operation: Operation) -> int:
        """Non-null values across rows, ignoring identity columns."""
        offset = self.value_offset(operation)
        return sum(1 for row in rows for value in row[offset:] if value is not None)

    @abstractmethod
    def summary_count(self, row: Sequence[Any]) -> int:
        """Line count carried by a ``SELECT COUNT(*)`` result row."""

    def device_path(self, schema: DeviceSchema) -> str:
        return naming.device_path(schema, self.name, self.config.database or None)


def timestamp_of(value: Any) -> int:
    """Epoch milliseconds of a result time column (int or datetime-like)."""
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return int(value)
