"""
Native session execution: tablets for writes, SessionDataSet iteration for reads.
"""

from __future__ import annotations

import logging
from typing import Any

from iotbench.connectors import iotdb_client
from iotbench.core.errors import DBConnectionError, ExecutionError
from iotbench.core.execution.base import ExecutionOutcome, ExecutionStrategy, batch_point_count
from iotbench.models.schema import Batch
from iotbench.models.status import Operation

logger = logging.getLogger(__name__)


class SessionStrategy(ExecutionStrategy):
    name = "SESSION"

    def __init__(self, config, model):
        super().__init__(config, model)
        self.session: Any = None

    def init(self) -> None:
        if self.session is None:
            self.session = self.model.build_session(self.config.node_urls, pool_name="session")

    def _require_session(self) -> Any:
        if self.session is None:
            raise DBConnectionError("session is not open; call init() first")
        return self.session

    def close(self) -> None:
        session = self.session
        if session is None:
            return
        try:
            session.close()
        except Exception as e:
            raise DBConnectionError(f"failed to close session: {e}") from e
        finally:
            self.session = None

    def cleanup(self) -> None:
        statement = self.model.cleanup_statement()
        session = self.model.build_metadata_session(self.config.node_urls)
        try:
            self.model.cleanup_session(session)
        except Exception as e:
            raise ExecutionError(f"cleanup failed: {e}", query_text=statement) from e
        finally:
            try:
                session.close()
            except Exception as e:
                logger.warning(f"[cleanup] Failed to close session: {e}")
        logger.info(f"Cleaned up benchmark data ({statement})")

    def execute_query(
        self, sql: str, operation: Operation, *, capture_rows: bool = False
    ) -> ExecutionOutcome:
        session = self._require_session()
        try:
            data_set = session.execute_query_statement(sql, self.config.query_timeout_ms)
        except Exception as e:
            raise ExecutionError(f"query failed: {e}", query_text=sql) from e

        point_count = 0
        rows: list[list[Any]] = []
        try:
            while data_set.has_next():
                record = data_set.next()
                row = self.model.normalize_record(
                    record.get_timestamp(),
                    [iotdb_client.field_value(f) for f in record.get_fields()],
                )
                point_count += self.model.count_points([row], operation)
                if capture_rows:
                    rows.append(row)
        except Exception as e:
            logger.warning(f"Result iteration failed after {point_count} points: {e}")
            return ExecutionOutcome(
                point_count,
                success=False,
                rows=rows if capture_rows else None,
                error=ExecutionError(f"result iteration failed: {e}", query_text=sql),
            )
        finally:
            try:
                data_set.close_operation_handle()
            except Exception as e:
                logger.warning(f"Failed to close data set: {e}")
        return ExecutionOutcome(point_count, rows=rows if capture_rows else None)

    def insert_batch(self, batch: Batch) -> ExecutionOutcome:
        session = self._require_session()
        target = self.model.insert_target(batch.device_schema)
        tablet = self.model.create_tablet(batch)
        try:
            self.model.insert_tablet(session, tablet)
        except Exception as e:
            raise ExecutionError(
                f"tablet insert failed: {e}",
                query_text=f"insert tablet {target} ({len(batch)} rows)",
            ) from e
        return ExecutionOutcome(batch_point_count(batch))
