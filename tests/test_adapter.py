#!/usr/bin/env python3
"""
Unit tests for IoTDBAdapter.

Tests the crosscutting policies (debug sampling, comparison capture, error
conversion), verification, device queries/summaries and schema registration.
"""

import logging
import random
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
import pytest

from iotbench.config import AdapterConfig
from iotbench.connectors import iotdb_client
from iotbench.core.adapter import IoTDBAdapter
from iotbench.core.errors import ConfigurationError, ExecutionError, SchemaRegistrationError
from iotbench.core.execution import ExecutionOutcome, RestStrategy
from iotbench.core.model_strategies import TreeStrategy
from iotbench.models import (
    AggRangeQuery,
    Batch,
    DeviceQuery,
    DeviceSchema,
    GroupByQuery,
    LatestPointQuery,
    PreciseQuery,
    RangeQuery,
    Record,
    Sensor,
    SensorType,
    ValueRangeQuery,
    VerificationQuery,
)

SENSORS = [Sensor("s0", SensorType.INT32), Sensor("s1", SensorType.DOUBLE)]
D1 = DeviceSchema("g1", "d1", SENSORS, {"region": "cn"})
BATCH = Batch(D1, [Record(1, [1, 1.5]), Record(2, [2, 2.5])])


class FakeExecution:
    """Execution strategy double: replays queued outcomes, records executed text."""

    name = "FAKE"

    def __init__(self, outcomes=None, *, debug=True, capture=True, rows_by_sql=None):
        self.calls = []
        self.outcomes = list(outcomes or [])
        self.supports_debug_sampling = debug
        self.supports_row_capture = capture
        self.rows_by_sql = rows_by_sql or {}

    def _next(self):
        outcome = self.outcomes.pop(0) if self.outcomes else ExecutionOutcome(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def init(self):
        self.calls.append(("init",))

    def cleanup(self):
        self.calls.append(("cleanup",))

    def close(self):
        self.calls.append(("close",))

    def execute_query(self, sql, operation, *, capture_rows=False):
        self.calls.append(("query", sql, operation, capture_rows))
        return self._next()

    def insert_batch(self, batch):
        self.calls.append(("insert", len(batch)))
        return self._next()

    def fetch_rows(self, sql):
        self.calls.append(("fetch", sql))
        rows = self.rows_by_sql[sql]
        if isinstance(rows, Exception):
            raise rows
        return rows


def _adapter(execution, rng=None, **overrides):
    config = AdapterConfig(**overrides)
    return IoTDBAdapter(config, model=TreeStrategy(config), execution=execution, rng=rng)


def _executed(execution):
    return [c[1] for c in execution.calls if c[0] == "query"]


# ---------------------------------------------------------------------------
# Construction and lifecycle
# ---------------------------------------------------------------------------


def test_unsupported_combination_fails_at_construction():
    with pytest.raises(ConfigurationError):
        IoTDBAdapter(AdapterConfig(data_model="table", execution_mode="REST"))


def test_lifecycle_delegates_to_execution():
    execution = FakeExecution()
    adapter = _adapter(execution)

    with adapter:
        adapter.cleanup()

    assert execution.calls == [("init",), ("cleanup",), ("close",)]


# ---------------------------------------------------------------------------
# Query policies
# ---------------------------------------------------------------------------


def test_scenario_agg_range_text_and_count():
    execution = FakeExecution([ExecutionOutcome(2)])
    adapter = _adapter(execution)

    status = adapter.agg_range_query(AggRangeQuery([D1], "AVG", 100, 200))

    assert status.success and status.point_count == 2
    assert _executed(execution) == [
        "SELECT AVG(s0), AVG(s1) FROM root.g1.cn.d1 WHERE time >= 100 AND time <= 200"
    ]


def test_debug_ratio_zero_never_prefixes():
    execution = FakeExecution()
    adapter = _adapter(execution, rng=random.Random(1), debug_enabled=True, debug_ratio=0.0)

    for _ in range(50):
        adapter.precise_query(PreciseQuery([D1], 5))

    assert not any(sql.startswith("debug ") for sql in _executed(execution))


def test_debug_ratio_one_always_prefixes():
    execution = FakeExecution()
    adapter = _adapter(execution, rng=random.Random(1), debug_enabled=True, debug_ratio=1.0)

    for _ in range(50):
        adapter.latest_point_query(LatestPointQuery([D1]))

    assert all(sql == "debug SELECT last s0, s1 FROM root.g1.cn.d1" for sql in _executed(execution))


def test_debug_sampling_skipped_when_transport_does_not_support_it():
    execution = FakeExecution(debug=False)
    adapter = _adapter(execution, debug_enabled=True, debug_ratio=1.0)

    adapter.range_query(RangeQuery([D1], 1, 2))

    assert _executed(execution) == [
        "SELECT s0, s1 FROM root.g1.cn.d1 WHERE time >= 1 AND time <= 2"
    ]


def test_debug_sampling_is_reproducible_with_seed():
    def run():
        execution = FakeExecution()
        adapter = _adapter(execution, debug_enabled=True, debug_ratio=0.5, data_seed=7)
        for _ in range(20):
            adapter.precise_query(PreciseQuery([D1], 5))
        return _executed(execution)

    assert run() == run()


def test_comparison_mode_captures_rows_and_text():
    rows = [[1, 1, 1.5]]
    execution = FakeExecution([ExecutionOutcome(2, rows=rows)])
    adapter = _adapter(execution, comparison_mode=True)

    status = adapter.range_query_order_by_desc(RangeQuery([D1], 1, 2))

    assert status.rows == rows
    assert status.query_text.endswith("ORDER BY time DESC")
    assert execution.calls[0][3] is True


def test_without_comparison_mode_rows_are_not_requested():
    execution = FakeExecution([ExecutionOutcome(2)])
    adapter = _adapter(execution)

    status = adapter.group_by_query(GroupByQuery([D1], "AVG", 0, 100, 10))

    assert status.rows is None and status.query_text is None
    assert execution.calls[0][3] is False


def test_comparison_mode_ignored_without_row_capture():
    execution = FakeExecution([ExecutionOutcome(3)], capture=False)
    adapter = _adapter(execution, comparison_mode=True)

    status = adapter.value_range_query(ValueRangeQuery([D1], 0, 10, 1))

    assert status.success and status.rows is None
    assert execution.calls[0][3] is False


def test_query_failure_becomes_failed_status():
    error = ExecutionError("query failed: 701", query_text="x")
    execution = FakeExecution([error])
    adapter = _adapter(execution)

    status = adapter.precise_query(PreciseQuery([D1], 5))

    assert not status.success
    assert status.error is error
    assert status.query_text == "SELECT s0, s1 FROM root.g1.cn.d1 WHERE time = 5"


def test_partial_failure_keeps_point_count():
    error = ExecutionError("iteration failed")
    execution = FakeExecution([ExecutionOutcome(7, success=False, error=error)])
    adapter = _adapter(execution)

    status = adapter.group_by_query_order_by_desc(GroupByQuery([D1], "AVG", 0, 100, 10))

    assert not status.success
    assert status.point_count == 7


def test_query_text_logged_unless_quiet(caplog):
    with caplog.at_level(logging.INFO, logger="iotbench.core.adapter"):
        _adapter(FakeExecution(), quiet_mode=False).precise_query(PreciseQuery([D1], 5))
        _adapter(FakeExecution(), quiet_mode=True).precise_query(PreciseQuery([D1], 6))

    assert "WHERE time = 5" in caplog.text
    assert "WHERE time = 6" not in caplog.text


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


def test_insert_batch_success():
    adapter = _adapter(FakeExecution([ExecutionOutcome(4)]))

    status = adapter.insert_batch(BATCH)

    assert status.success and status.point_count == 4


def test_insert_failure_is_contained():
    error = ExecutionError("rejected", query_text="insert tablet root.g1.cn.d1 (2 rows)")
    adapter = _adapter(FakeExecution([error]))

    status = adapter.insert_batch(BATCH)

    assert not status.success
    assert status.query_text == "insert tablet root.g1.cn.d1 (2 rows)"
    assert status.error_message == "rejected"


def test_rest_insert_with_unencodable_value_keeps_insert_text():
    config = AdapterConfig(execution_mode="REST")
    model = TreeStrategy(config)
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"code": 200}))
    adapter = IoTDBAdapter(
        config, model=model, execution=RestStrategy(config, model, transport=transport)
    )
    schema = DeviceSchema("g1", "d1", [Sensor("t", SensorType.TEXT)])

    with adapter:
        status = adapter.insert_batch(Batch(schema, [Record(1, [object()])]))

    assert not status.success
    assert isinstance(status.error, ExecutionError)
    assert status.query_text == "insert tablet root.g1.d1 (1 rows)"


# ---------------------------------------------------------------------------
# Verification, device query, summary
# ---------------------------------------------------------------------------


def test_verification_counts_matching_points():
    rows = [[1, 1, 1.5], [2, 2, 2.5]]
    execution = FakeExecution([ExecutionOutcome(4, rows=rows)])
    adapter = _adapter(execution)

    status = adapter.verification_query(
        VerificationQuery(D1, [Record(1, [1, 1.5]), Record(2, [2, 2.5])])
    )

    assert status.success and status.point_count == 4
    assert execution.calls[0][3] is True


def test_verification_line_mismatch_is_logged_not_fatal(caplog):
    rows = [[1, 1, 1.5], [2, 2, 9.9]]
    adapter = _adapter(FakeExecution([ExecutionOutcome(4, rows=rows)]))
    records = [Record(1, [1, 1.5]), Record(2, [2, 2.5]), Record(3, [3, 3.5])]

    status = adapter.verification_query(VerificationQuery(D1, records))

    assert status.success
    assert status.point_count == 3
    assert "expected line: 3 but was: 2" in caplog.text


def test_verification_without_records_never_executes():
    execution = FakeExecution()
    adapter = _adapter(execution)

    status = adapter.verification_query(VerificationQuery(D1, []))

    assert not status.success
    assert status.query_text == "verification query on root.g1.cn.d1"
    assert execution.calls == []


def test_device_query_returns_rows_and_text():
    rows = [[2, 2, 2.5], [1, 1, 1.5]]
    adapter = _adapter(FakeExecution([ExecutionOutcome(4, rows=rows)]))

    status = adapter.device_query(DeviceQuery(D1, 0, 10))

    assert status.success
    assert status.point_count == 0
    assert status.rows == rows
    assert status.query_text == (
        "SELECT s0, s1 FROM root.g1.cn.d1 WHERE time >= 0 AND time < 10 ORDER BY time DESC"
    )


def test_device_summary():
    execution = FakeExecution(
        rows_by_sql={
            "SELECT COUNT(*) FROM root.g1.cn.d1": [[None, 10, 10]],
            "SELECT * FROM root.g1.cn.d1 ORDER BY time LIMIT 1": [[1, 1, 1.5]],
            "SELECT * FROM root.g1.cn.d1 ORDER BY time DESC LIMIT 1": [[99, 9, 9.5]],
        }
    )
    adapter = _adapter(execution)

    summary = adapter.device_summary(DeviceQuery(D1))

    assert summary.device == "d1"
    assert summary.total_line_number == 10
    assert summary.min_timestamp == 1
    assert summary.max_timestamp == 99


def test_device_summary_failure_raises():
    execution = FakeExecution(
        rows_by_sql={"SELECT COUNT(*) FROM root.g1.cn.d1": ExecutionError("timeout")}
    )
    adapter = _adapter(execution)

    with pytest.raises(ExecutionError):
        adapter.device_summary(DeviceQuery(D1))


def test_type_map():
    assert _adapter(FakeExecution()).type_map(SensorType.INT64) == "INT64"


# ---------------------------------------------------------------------------
# Schema registration
# ---------------------------------------------------------------------------


class FakeMetadataSession:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def execute_non_query_statement(self, sql):
        self.calls.append(sql)

    def create_aligned_time_series(self, device, *args):
        self.calls.append(device)
        if self.error is not None:
            raise self.error

    def close(self):
        self.calls.append("close")


def test_register_schema_closes_metadata_session(monkeypatch):
    session = FakeMetadataSession()
    monkeypatch.setattr(iotdb_client, "open_tree_session", lambda *a, **k: session)
    adapter = _adapter(FakeExecution())

    elapsed = adapter.register_schema([D1])

    assert elapsed >= 0
    assert session.calls == ["CREATE DATABASE root.g1", "root.g1.cn.d1", "close"]


def test_register_schema_tolerates_existing_series(monkeypatch):
    session = FakeMetadataSession(error=RuntimeError("Timeseries already exist"))
    monkeypatch.setattr(iotdb_client, "open_tree_session", lambda *a, **k: session)

    _adapter(FakeExecution()).register_schema([D1])

    assert session.calls[-1] == "close"


def test_register_schema_wraps_other_failures_and_still_closes(monkeypatch):
    session = FakeMetadataSession(error=RuntimeError("508: illegal path"))
    monkeypatch.setattr(iotdb_client, "open_tree_session", lambda *a, **k: session)

    with pytest.raises(SchemaRegistrationError) as exc_info:
        _adapter(FakeExecution()).register_schema([D1])

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert session.calls[-1] == "close"


def test_register_schema_skipped_when_disabled(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("metadata session must not be opened")

    monkeypatch.setattr(iotdb_client, "open_tree_session", fail)

    assert _adapter(FakeExecution(), create_schema=False).register_schema([D1]) >= 0
