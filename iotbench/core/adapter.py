"""
IoTDB Adapter

Facade the benchmark driver talks to. Builds the model/execution strategy
pair from an AdapterConfig, turns every abstract operation into query text,
and converts transport outcomes into Status values.

Steady-state query and insert failures never propagate: they come back as a
failed Status carrying the executed text and the original error.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Iterable, Optional

from iotbench.config import AdapterConfig
from iotbench.core.errors import (
    ExecutionError,
    SchemaRegistrationError,
    VerificationMismatch,
    classify_error,
    is_already_exists,
)
from iotbench.core.execution import ExecutionStrategy, create_execution_strategy
from iotbench.core.model_strategies import ModelStrategy, create_model_strategy
from iotbench.core.model_strategies.base import timestamp_of
from iotbench.core.query_builder import QueryBuilder
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
from iotbench.models.schema import Batch, DeviceSchema, SensorType
from iotbench.models.status import DeviceSummary, Operation, Status

logger = logging.getLogger(__name__)

DEBUG_PREFIX = "debug "


class IoTDBAdapter:
    """
    Benchmark adapter for one worker.

    Calls are strictly sequential; run one adapter per worker thread.
    """

    def __init__(
        self,
        config: AdapterConfig,
        *,
        model: Optional[ModelStrategy] = None,
        execution: Optional[ExecutionStrategy] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the adapter.

        Args:
            config: Adapter configuration
            model: Model strategy (built from config when omitted)
            execution: Execution strategy (built from config when omitted)
            rng: Random source for debug sampling (seeded from config.data_seed when omitted)

        Raises:
            ConfigurationError: If the configured model/mode pair is not supported
        """
        self.config = config
        self.model = model or create_model_strategy(config)
        self.execution = execution or create_execution_strategy(config, self.model)
        self.queries = QueryBuilder(self.model)
        self.rng = rng or random.Random(config.data_seed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        self.execution.init()
        logger.info(
            f"IoTDB adapter ready: model={self.model.name}, "
            f"mode={self.execution.name}, nodes={self.config.node_urls}"
        )

    def cleanup(self) -> None:
        self.execution.cleanup()

    def close(self) -> None:
        self.execution.close()

    def register_schema(self, schemas: Iterable[DeviceSchema]) -> float:
        """
        Create databases and series/tables for the given devices.

        Returns:
            Elapsed seconds

        Raises:
            SchemaRegistrationError: For any failure other than already-exists
        """
        start = time.perf_counter()
        if not self.config.create_schema:
            logger.info("Schema creation disabled, skipping registration")
            return time.perf_counter() - start

        schemas = list(schemas)
        try:
            session = self.model.build_metadata_session(self.config.node_urls)
        except Exception as e:
            raise SchemaRegistrationError(f"cannot open metadata session: {e}") from e

        try:
            self.model.register_schema(session, schemas)
        except Exception as e:
            if is_already_exists(e):
                logger.info(f"Schema already registered: {e}")
            else:
                logger.error(f"Schema registration failed [{classify_error(e)}]: {e}")
                raise SchemaRegistrationError(f"schema registration failed: {e}") from e
        finally:
            try:
                session.close()
            except Exception as e:
                logger.warning(f"[metadata] Failed to close session: {e}")

        elapsed = time.perf_counter() - start
        logger.info(f"Registered schema for {len(schemas)} devices in {elapsed:.3f}s")
        return elapsed

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def insert_batch(self, batch: Batch) -> Status:
        try:
            outcome = self.execution.insert_batch(batch)
        except Exception as e:
            query_text = getattr(e, "query_text", None)
            logger.error(f"Insert failed [{classify_error(e)}]: {e}")
            return Status.failed(e, query_text)
        if not outcome.success:
            return Status.failed(
                outcome.error,
                getattr(outcome.error, "query_text", None),
                point_count=outcome.point_count,
            )
        return Status.ok(outcome.point_count)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _sample_debug(self) -> bool:
        if not (self.config.debug_enabled and self.execution.supports_debug_sampling):
            return False
        return self.rng.random() < self.config.debug_ratio

    def _run_query(self, sql: str, operation: Operation) -> Status:
        if self._sample_debug():
            sql = DEBUG_PREFIX + sql
        if not self.config.quiet_mode:
            logger.info(f"{operation.value}: {sql}")

        capture = self.config.comparison_mode and self.execution.supports_row_capture
        try:
            outcome = self.execution.execute_query(sql, operation, capture_rows=capture)
        except Exception as e:
            logger.error(f"{operation.value} failed [{classify_error(e)}]: {e} (SQL: {sql})")
            return Status.failed(e, sql)

        if not outcome.success:
            logger.error(
                f"{operation.value} failed after {outcome.point_count} points: "
                f"{outcome.error} (SQL: {sql})"
            )
            return Status.failed(outcome.error, sql, point_count=outcome.point_count)
        if capture:
            return Status.ok(outcome.point_count, query_text=sql, rows=outcome.rows)
        return Status.ok(outcome.point_count)

    def precise_query(self, query: PreciseQuery) -> Status:
        return self._run_query(self.queries.precise(query), Operation.PRECISE_QUERY)

    def range_query(self, query: RangeQuery) -> Status:
        return self._run_query(self.queries.range(query), Operation.RANGE_QUERY)

    def value_range_query(self, query: ValueRangeQuery) -> Status:
        return self._run_query(self.queries.value_range(query), Operation.VALUE_RANGE_QUERY)

    def agg_range_query(self, query: AggRangeQuery) -> Status:
        return self._run_query(self.queries.agg_range(query), Operation.AGG_RANGE_QUERY)

    def agg_value_query(self, query: AggValueQuery) -> Status:
        return self._run_query(self.queries.agg_value(query), Operation.AGG_VALUE_QUERY)

    def agg_range_value_query(self, query: AggRangeValueQuery) -> Status:
        return self._run_query(
            self.queries.agg_range_value(query), Operation.AGG_RANGE_VALUE_QUERY
        )

    def group_by_query(self, query: GroupByQuery) -> Status:
        return self._run_query(self.queries.group_by(query), Operation.GROUP_BY_QUERY)

    def latest_point_query(self, query: LatestPointQuery) -> Status:
        return self._run_query(self.queries.latest_point(query), Operation.LATEST_POINT_QUERY)

    def range_query_order_by_desc(self, query: RangeQuery) -> Status:
        return self._run_query(
            self.queries.range(query, desc=True), Operation.RANGE_QUERY_ORDER_BY_TIME_DESC
        )

    def value_range_query_order_by_desc(self, query: ValueRangeQuery) -> Status:
        return self._run_query(
            self.queries.value_range(query, desc=True),
            Operation.VALUE_RANGE_QUERY_ORDER_BY_TIME_DESC,
        )

    def group_by_query_order_by_desc(self, query: GroupByQuery) -> Status:
        return self._run_query(
            self.queries.group_by(query, desc=True), Operation.GROUP_BY_QUERY_ORDER_BY_TIME_DESC
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verification_query(self, query: VerificationQuery) -> Status:
        """
        Read back expected records and count the values that match.

        A row-count mismatch is logged; the status still succeeds with the
        number of matching points.
        """
        try:
            sql, expected = self.queries.verification(query)
        except ValueError as e:
            logger.error(str(e))
            target = self.model.device_path(query.device)
            return Status.failed(e, f"verification query on {target}")

        try:
            outcome = self.execution.execute_query(
                sql, Operation.VERIFICATION_QUERY, capture_rows=True
            )
        except Exception as e:
            logger.error(f"Verification query failed [{classify_error(e)}]: {e} (SQL: {sql})")
            return Status.failed(e, sql)
        if not outcome.success:
            return Status.failed(outcome.error, sql, point_count=outcome.point_count)

        offset = self.model.value_offset(Operation.VERIFICATION_QUERY)
        points = 0
        lines = 0
        for row in outcome.rows or []:
            values = expected.get(timestamp_of(row[0]), [])
            actual = row[offset:]
            for i, target in enumerate(values):
                got = actual[i] if i < len(actual) else None
                if str(got) == str(target):
                    points += 1
                else:
                    logger.error(f"Using SQL: {sql}, expected: {target} but was: {got}")
            lines += 1

        if lines != len(expected):
            logger.error(str(VerificationMismatch(sql, len(expected), lines)))
        return Status.ok(points)

    def device_query(self, query: DeviceQuery) -> Status:
        """Rows of one device over [start, end), newest first."""
        sql = self.queries.device(query)
        if not self.config.quiet_mode:
            logger.info(f"{Operation.DEVICE_QUERY.value}: {sql}")
        try:
            outcome = self.execution.execute_query(sql, Operation.DEVICE_QUERY, capture_rows=True)
        except Exception as e:
            logger.error(f"Device query failed [{classify_error(e)}]: {e} (SQL: {sql})")
            return Status.failed(e, sql)
        if not outcome.success:
            return Status.failed(outcome.error, sql, point_count=outcome.point_count)
        return Status.ok(0, query_text=sql, rows=outcome.rows or [])

    def device_summary(self, query: DeviceQuery) -> DeviceSummary:
        """
        Line count and timestamp bounds of one device.

        Raises:
            ExecutionError: If any of the summary queries fails
        """
        count_sql, min_sql, max_sql = self.queries.summary(query.device)
        try:
            count_rows = self.execution.fetch_rows(count_sql)
            min_rows = self.execution.fetch_rows(min_sql)
            max_rows = self.execution.fetch_rows(max_sql)
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(f"device summary failed: {e}", query_text=count_sql) from e

        return DeviceSummary(
            device=query.device.device,
            total_line_number=self.model.summary_count(count_rows[0]) if count_rows else 0,
            min_timestamp=timestamp_of(min_rows[0][0]) if min_rows else 0,
            max_timestamp=timestamp_of(max_rows[0][0]) if max_rows else 0,
        )

    def type_map(self, sensor_type: SensorType) -> str:
        """IoTDB type name for a sensor type."""
        return sensor_type.type_name

    def __enter__(self) -> IoTDBAdapter:
        self.init()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
