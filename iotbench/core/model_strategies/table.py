"""
Table Model Strategy

One table per group: device_id and the tag keys are TAG columns, sensors are
FIELD columns. Devices are selected with device_id predicates.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from iotbench.connectors import iotdb_client
from iotbench.core.model_strategies.base import ModelStrategy
from iotbench.models.schema import Batch, DeviceSchema, SensorType
from iotbench.models.status import Operation

logger = logging.getLogger(__name__)

DEVICE_ID_COLUMN = "device_id"
# Table-model writes always need a database.
DEFAULT_DATABASE = "test"

# Operations whose rows start with (time, device_id); the rest start with device_id only.
_TIME_AND_DEVICE_OPS = frozenset(
    {
        Operation.PRECISE_QUERY,
        Operation.RANGE_QUERY,
        Operation.VALUE_RANGE_QUERY,
        Operation.GROUP_BY_QUERY,
        Operation.RANGE_QUERY_ORDER_BY_TIME_DESC,
        Operation.VALUE_RANGE_QUERY_ORDER_BY_TIME_DESC,
        Operation.GROUP_BY_QUERY_ORDER_BY_TIME_DESC,
        Operation.VERIFICATION_QUERY,
        Operation.DEVICE_QUERY,
    }
)


def _quote(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


class TableStrategy(ModelStrategy):
    """Relational tables with TAG/FIELD columns (IoTDB table model)."""

    name = "table"

    @property
    def database(self) -> str:
        return self.config.database or DEFAULT_DATABASE

    def simple_head(self, devices: Sequence[DeviceSchema]) -> str:
        return "SELECT " + ", ".join(["time", DEVICE_ID_COLUMN, *devices[0].sensor_names])

    def agg_head(self, devices: Sequence[DeviceSchema], agg_fun: str) -> str:
        aggs = [f"{agg_fun}({s})" for s in devices[0].sensor_names]
        return "SELECT " + ", ".join([DEVICE_ID_COLUMN, *aggs])

    def group_by_head(self, devices: Sequence[DeviceSchema], agg_fun: str, granularity: int) -> str:
        aggs = [f"{agg_fun}({s})" for s in devices[0].sensor_names]
        return "SELECT " + ", ".join(
            [f"date_bin({granularity}ms, time) AS time", DEVICE_ID_COLUMN, *aggs]
        )

    def latest_point_head(self, devices: Sequence[DeviceSchema]) -> str:
        lasts = [f"last_by({s}, time)" for s in devices[0].sensor_names]
        return "SELECT " + ", ".join([DEVICE_ID_COLUMN, *lasts])

    def from_clause(self, devices: Sequence[DeviceSchema]) -> str:
        return f" FROM {devices[0].table}"

    def device_filter(self, devices: Sequence[DeviceSchema]) -> str | None:
        ids = []
        for d in devices:
            if d.device not in ids:
                ids.append(d.device)
        if len(ids) == 1:
            return f"{DEVICE_ID_COLUMN} = {_quote(ids[0])}"
        return f"{DEVICE_ID_COLUMN} IN (" + ", ".join(_quote(i) for i in ids) + ")"

    def value_predicate(self, devices: Sequence[DeviceSchema], sensor: str, threshold: Any) -> str:
        return f"{devices[0].table}.{sensor} > {threshold}"

    def group_by_clause(
        self, devices: Sequence[DeviceSchema], start: int, end: int, granularity: int
    ) -> tuple[list[str], str]:
        return (
            [f"time >= {start}", f"time < {end}"],
            f" GROUP BY date_bin({granularity}ms, time), {DEVICE_ID_COLUMN}",
        )

    def aggregation_suffix(self, devices: Sequence[DeviceSchema]) -> str:
        return f" GROUP BY {DEVICE_ID_COLUMN}"

    def latest_point_suffix(self, devices: Sequence[DeviceSchema]) -> str:
        return f" GROUP BY {DEVICE_ID_COLUMN}"

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def insert_target(self, schema: DeviceSchema) -> str:
        return schema.table

    def tablet_columns(
        self, schema: DeviceSchema
    ) -> tuple[list[str], list[SensorType], list[str] | None]:
        tag_columns = [DEVICE_ID_COLUMN, *schema.tag_keys]
        names = [*tag_columns, *schema.sensor_names]
        types = [SensorType.STRING] * len(tag_columns) + [s.sensor_type for s in schema.sensors]
        categories = [iotdb_client.TAG] * len(tag_columns) + [iotdb_client.FIELD] * len(
            schema.sensors
        )
        return names, types, categories

    def tablet_rows(self, batch: Batch) -> list[list[Any]]:
        schema = batch.device_schema
        identity = [schema.device, *schema.tag_values]
        width = len(schema.sensors)
        return [
            identity + [r.values[i] if i < len(r.values) else None for i in range(width)]
            for r in batch.records
        ]

    def insert_tablet(self, session: Any, tablet: Any) -> None:
        session.insert(tablet)

    # ------------------------------------------------------------------
    # Sessions and metadata
    # ------------------------------------------------------------------

    def build_session(self, node_urls: Sequence[str], *, pool_name: str = "default") -> Any:
        return iotdb_client.open_table_session(
            node_urls,
            self.config.username,
            self.config.password,
            database=self.database,
            fetch_size=self.config.fetch_size,
            enable_rpc_compression=self.config.enable_thrift_compression,
            pool_name=pool_name,
        )

    def build_metadata_session(self, node_urls: Sequence[str]) -> Any:
        # The database may not exist yet (registration) or is about to be dropped (cleanup).
        return iotdb_client.open_table_session(
            node_urls,
            self.config.username,
            self.config.password,
            fetch_size=self.config.fetch_size,
            enable_rpc_compression=self.config.enable_thrift_compression,
            pool_name="metadata",
        )

    def create_table_statement(self, schema: DeviceSchema) -> str:
        columns = [f"{DEVICE_ID_COLUMN} STRING TAG"]
        columns += [f"{key} STRING TAG" for key in schema.tag_keys]
        columns += [f"{s.name} {s.sensor_type.type_name} FIELD" for s in schema.sensors]
        return f"CREATE TABLE IF NOT EXISTS {schema.table}(" + ", ".join(columns) + ")"

    def register_schema(self, session: Any, schemas: Sequence[DeviceSchema]) -> None:
        session.execute_non_query_statement(f"CREATE DATABASE IF NOT EXISTS {self.database}")
        session.execute_non_query_statement(f"USE {self.database}")
        created = set()
        for schema in schemas:
            if schema.table in created:
                continue
            session.execute_non_query_statement(self.create_table_statement(schema))
            created.add(schema.table)
            logger.debug(f"Registered table {self.database}.{schema.table}")

    def cleanup_statement(self) -> str:
        return f"DROP DATABASE IF EXISTS {self.database}"

    # ------------------------------------------------------------------
    # Result shaping
    # ------------------------------------------------------------------

    def value_offset(self, operation: Operation) -> int:
        return 2 if operation in _TIME_AND_DEVICE_OPS else 1

    def summary_count(self, row: Sequence[Any]) -> int:
        return int(row[0])
