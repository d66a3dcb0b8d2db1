"""
DB-API execution (the Python counterpart of the JDBC driver).

Reads go through a PEP 249 cursor; writes are one INSERT statement per record.
"""

from __future__ import annotations

import logging
from typing import Any

from iotbench.connectors import iotdb_client
from iotbench.core.errors import DBConnectionError, ExecutionError, is_missing_data
from iotbench.core.execution.base import ExecutionOutcome, ExecutionStrategy
from iotbench.models.schema import Batch
from iotbench.models.status import Operation

logger = logging.getLogger(__name__)


class JdbcStrategy(ExecutionStrategy):
    name = "JDBC"

    def __init__(self, config, model):
        super().__init__(config, model)
        self.connection: Any = None

    def _connect(self) -> Any:
        return iotdb_client.open_dbapi_connection(
            self.config.node_urls,
            self.config.username,
            self.config.password,
            fetch_size=self.config.fetch_size,
            enable_rpc_compression=self.config.enable_thrift_compression,
        )

    def init(self) -> None:
        if self.connection is None:
            self.connection = self._connect()

    def _require_connection(self) -> Any:
        if self.connection is None:
            raise DBConnectionError("connection is not open; call init() first")
        return self.connection

    def close(self) -> None:
        connection = self.connection
        if connection is None:
            return
        try:
            connection.close()
        except Exception as e:
            raise DBConnectionError(f"failed to close connection: {e}") from e
        finally:
            self.connection = None

    def cleanup(self) -> None:
        statement = self.model.cleanup_statement()
        connection = self._connect()
        try:
            try:
                cursor = connection.cursor()
            except Exception as e:
                raise ExecutionError(f"cleanup failed: {e}", query_text=statement) from e
            try:
                cursor.execute(statement)
            except Exception as e:
                if not is_missing_data(e):
                    raise ExecutionError(f"cleanup failed: {e}", query_text=statement) from e
                logger.info(f"Nothing to clean up ({statement}): {e}")
            finally:
                cursor.close()
        finally:
            connection.close()

    def execute_query(
        self, sql: str, operation: Operation, *, capture_rows: bool = False
    ) -> ExecutionOutcome:
        cursor = self._require_connection().cursor()
        try:
            try:
                cursor.execute(sql)
            except Exception as e:
                raise ExecutionError(f"query failed: {e}", query_text=sql) from e

            column_names = [d[0] for d in (cursor.description or [])]
            point_count = 0
            rows: list[list[Any]] = []
            try:
                for raw in cursor.fetchall():
                    row = self.model.normalize_cursor_row(raw, column_names)
                    point_count += self.model.count_points([row], operation)
                    if capture_rows:
                        rows.append(row)
            except Exception as e:
                logger.warning(f"Fetch failed after {point_count} points: {e}")
                return ExecutionOutcome(
                    point_count,
                    success=False,
                    rows=rows if capture_rows else None,
                    error=ExecutionError(f"fetch failed: {e}", query_text=sql),
                )
            return ExecutionOutcome(point_count, rows=rows if capture_rows else None)
        finally:
            cursor.close()

    def insert_batch(self, batch: Batch) -> ExecutionOutcome:
        cursor = self._require_connection().cursor()
        width = len(batch.device_schema.sensors)
        point_count = 0
        try:
            for i, statement in enumerate(self.model.insert_statements(batch)):
                try:
                    cursor.execute(statement)
                except Exception as e:
                    error = ExecutionError(f"insert failed: {e}", query_text=statement)
                    if i == 0:
                        raise error from e
                    logger.warning(f"Insert failed after {i} of {len(batch)} records: {e}")
                    return ExecutionOutcome(point_count, success=False, error=error)
                point_count += width
        finally:
            cursor.close()
        return ExecutionOutcome(point_count)
