"""
Tree Model Strategy

Devices are addressed by full paths (root.<group>.<tag values>.<device>) and
each sensor is one time series under its device.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from iotbench.connectors import iotdb_client
from iotbench.core import naming
from iotbench.core.errors import is_already_exists
from iotbench.core.model_strategies.base import ModelStrategy, format_literal
from iotbench.models.schema import Batch, DeviceSchema, SensorType
from iotbench.models.status import Operation

logger = logging.getLogger(__name__)


class TreeStrategy(ModelStrategy):
    """Path-addressed time series (IoTDB tree model)."""

    name = "tree"
    implicit_time_column = True

    def simple_head(self, devices: Sequence[DeviceSchema]) -> str:
        return "SELECT " + ", ".join(devices[0].sensor_names)

    def agg_head(self, devices: Sequence[DeviceSchema], agg_fun: str) -> str:
        return "SELECT " + ", ".join(f"{agg_fun}({s})" for s in devices[0].sensor_names)

    def latest_point_head(self, devices: Sequence[DeviceSchema]) -> str:
        return "SELECT last " + ", ".join(devices[0].sensor_names)

    def from_clause(self, devices: Sequence[DeviceSchema]) -> str:
        return " FROM " + ", ".join(self.device_path(d) for d in devices)

    def value_predicate(self, devices: Sequence[DeviceSchema], sensor: str, threshold: Any) -> str:
        return f"{sensor} > {threshold}"

    def group_by_clause(
        self, devices: Sequence[DeviceSchema], start: int, end: int, granularity: int
    ) -> tuple[list[str], str]:
        return [], f" GROUP BY ([{start}, {end}), {granularity}ms)"

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def insert_target(self, schema: DeviceSchema) -> str:
        return self.device_path(schema)

    def tablet_columns(
        self, schema: DeviceSchema
    ) -> tuple[list[str], list[SensorType], list[str] | None]:
        return schema.sensor_names, [s.sensor_type for s in schema.sensors], None

    def tablet_rows(self, batch: Batch) -> list[list[Any]]:
        width = len(batch.device_schema.sensors)
        return [
            [r.values[i] if i < len(r.values) else None for i in range(width)]
            for r in batch.records
        ]

    def insert_tablet(self, session: Any, tablet: Any) -> None:
        if self.config.aligned:
            session.insert_aligned_tablet(tablet)
        else:
            session.insert_tablet(tablet)

    def insert_statements(self, batch: Batch) -> list[str]:
        schema = batch.device_schema
        columns = ", ".join(["timestamp", *schema.sensor_names])
        aligned = " ALIGNED" if self.config.aligned else ""
        types = [s.sensor_type for s in schema.sensors]
        statements = []
        for record, row in zip(batch.records, self.tablet_rows(batch)):
            values = ", ".join(
                [str(record.timestamp)] + [format_literal(v, t) for v, t in zip(row, types)]
            )
            statements.append(
                f"INSERT INTO {self.device_path(schema)}({columns}){aligned} VALUES ({values})"
            )
        return statements

    # ------------------------------------------------------------------
    # Sessions and metadata
    # ------------------------------------------------------------------

    def build_session(self, node_urls: Sequence[str], *, pool_name: str = "default") -> Any:
        return iotdb_client.open_tree_session(
            node_urls,
            self.config.username,
            self.config.password,
            fetch_size=self.config.fetch_size,
            enable_rpc_compression=self.config.enable_thrift_compression,
            pool_name=pool_name,
        )

    def register_schema(self, session: Any, schemas: Sequence[DeviceSchema]) -> None:
        prefix = naming.root_prefix(self.config.database or None)
        groups = []
        for schema in schemas:
            if schema.group not in groups:
                groups.append(schema.group)
        for group in groups:
            self._tolerate_existing(
                f"database {prefix}.{group}",
                session.execute_non_query_statement,
                f"CREATE DATABASE {prefix}.{group}",
            )

        compressor = iotdb_client.to_compressor(self.config.compressor)
        for schema in schemas:
            if not schema.sensors:
                continue
            path = self.device_path(schema)
            types = [iotdb_client.to_data_type(s.sensor_type) for s in schema.sensors]
            encodings = [
                iotdb_client.to_encoding(self.config.encoding_for(s.sensor_type))
                for s in schema.sensors
            ]
            compressors = [compressor] * len(schema.sensors)
            if self.config.aligned:
                self._tolerate_existing(
                    f"aligned series {path}",
                    session.create_aligned_time_series,
                    path,
                    schema.sensor_names,
                    types,
                    encodings,
                    compressors,
                )
            else:
                self._tolerate_existing(
                    f"series {path}",
                    session.create_multi_time_series,
                    [
                        naming.sensor_path(schema, s, self.config.database or None)
                        for s in schema.sensor_names
                    ],
                    types,
                    encodings,
                    compressors,
                )

    @staticmethod
    def _tolerate_existing(what: str, call: Any, *args: Any) -> None:
        try:
            call(*args)
        except Exception as e:
            if not is_already_exists(e):
                raise
            logger.debug(f"{what} already exists, skipping: {e}")

    def cleanup_statement(self) -> str:
        return f"DELETE DATABASE {naming.root_prefix(self.config.database or None)}.**"

    # ------------------------------------------------------------------
    # Result shaping
    # ------------------------------------------------------------------

    def count_points(self, rows: Sequence[Sequence[Any]], operation: Operation) -> int:
        # SELECT last returns one row per series, each carrying one point.
        if operation == Operation.LATEST_POINT_QUERY:
            return len(rows)
        return super().count_points(rows, operation)

    def summary_count(self, row: Sequence[Any]) -> int:
        return int(row[1])
