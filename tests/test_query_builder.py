#!/usr/bin/env python3
"""
Unit tests for QueryBuilder.

Checks the exact query text produced for every query shape under the tree
and table data models.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from iotbench.config import AdapterConfig
from iotbench.core.model_strategies import TableStrategy, TreeStrategy
from iotbench.core.query_builder import QueryBuilder
from iotbench.models import (
    AggRangeQuery,
    AggRangeValueQuery,
    AggValueQuery,
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
D2 = DeviceSchema("g1", "d2", SENSORS, {"region": "cn"})


@pytest.fixture
def tree():
    return QueryBuilder(TreeStrategy(AdapterConfig()))


@pytest.fixture
def table():
    return QueryBuilder(TableStrategy(AdapterConfig(data_model="table")))


# ---------------------------------------------------------------------------
# Tree model
# ---------------------------------------------------------------------------


def test_tree_agg_range_scenario(tree):
    sql = tree.agg_range(AggRangeQuery([D1], "AVG", 100, 200))

    assert sql == "SELECT AVG(s0), AVG(s1) FROM root.g1.cn.d1 WHERE time >= 100 AND time <= 200"


def test_tree_precise(tree):
    assert tree.precise(PreciseQuery([D1], 5)) == "SELECT s0, s1 FROM root.g1.cn.d1 WHERE time = 5"


def test_tree_range_is_inclusive(tree):
    sql = tree.range(RangeQuery([D1, D2], 100, 200))

    assert sql == (
        "SELECT s0, s1 FROM root.g1.cn.d1, root.g1.cn.d2 WHERE time >= 100 AND time <= 200"
    )


def test_tree_range_desc(tree):
    sql = tree.range(RangeQuery([D1], 100, 200), desc=True)

    assert sql.endswith("WHERE time >= 100 AND time <= 200 ORDER BY time DESC")


def test_tree_value_range_single_device_is_bare_and_chain(tree):
    sql = tree.value_range(ValueRangeQuery([D1], 100, 200, 10))

    assert sql == (
        "SELECT s0, s1 FROM root.g1.cn.d1 "
        "WHERE time >= 100 AND time <= 200 AND s0 > 10 AND s1 > 10"
    )


def test_tree_value_range_multi_device_or_of_ands(tree):
    sql = tree.value_range(ValueRangeQuery([D1, D2], 100, 200, 10), desc=True)

    assert sql.endswith(
        "WHERE time >= 100 AND time <= 200 "
        "AND ((s0 > 10 AND s1 > 10) OR (s0 > 10 AND s1 > 10)) ORDER BY time DESC"
    )


def test_tree_threshold_is_rendered_verbatim(tree):
    sql = tree.value_range(ValueRangeQuery([D1], 0, 1, 10.25))

    assert "s0 > 10.25 AND s1 > 10.25" in sql


def test_tree_agg_value_starts_where(tree):
    sql = tree.agg_value(AggValueQuery([D1], "AVG", 10))

    assert sql == "SELECT AVG(s0), AVG(s1) FROM root.g1.cn.d1 WHERE s0 > 10 AND s1 > 10"


def test_tree_agg_range_value(tree):
    sql = tree.agg_range_value(AggRangeValueQuery([D1], "MAX_VALUE", 100, 200, 10))

    assert sql == (
        "SELECT MAX_VALUE(s0), MAX_VALUE(s1) FROM root.g1.cn.d1 "
        "WHERE time >= 100 AND time <= 200 AND s0 > 10 AND s1 > 10"
    )


def test_tree_group_by_is_half_open(tree):
    query = GroupByQuery([D1], "AVG", 100, 200, 10)

    assert tree.group_by(query) == (
        "SELECT AVG(s0), AVG(s1) FROM root.g1.cn.d1 GROUP BY ([100, 200), 10ms)"
    )
    assert tree.group_by(query, desc=True) == (
        "SELECT AVG(s0), AVG(s1) FROM root.g1.cn.d1 GROUP BY ([100, 200), 10ms) "
        "ORDER BY time DESC"
    )


def test_tree_latest_point(tree):
    assert tree.latest_point(LatestPointQuery([D1])) == "SELECT last s0, s1 FROM root.g1.cn.d1"


def test_device_query_upper_bound_is_strict(tree):
    sql = tree.device(DeviceQuery(D1, 100, 200))

    assert sql == (
        "SELECT s0, s1 FROM root.g1.cn.d1 WHERE time >= 100 AND time < 200 ORDER BY time DESC"
    )
    assert "time <= 200" in tree.range(RangeQuery([D1], 100, 200))


def test_tree_verification(tree):
    query = VerificationQuery(D1, [Record(1, [1, 1.5]), Record(2, [2, 2.5])])

    sql, expected = tree.verification(query)

    assert sql == "SELECT s0, s1 FROM root.g1.cn.d1 WHERE time = 1 OR time = 2"
    assert expected == {1: [1, 1.5], 2: [2, 2.5]}


def test_verification_without_records_fails_fast(tree):
    with pytest.raises(ValueError):
        tree.verification(VerificationQuery(D1, []))


def test_tree_summary(tree):
    assert tree.summary(D1) == (
        "SELECT COUNT(*) FROM root.g1.cn.d1",
        "SELECT * FROM root.g1.cn.d1 ORDER BY time LIMIT 1",
        "SELECT * FROM root.g1.cn.d1 ORDER BY time DESC LIMIT 1",
    )


# ---------------------------------------------------------------------------
# Table model
# ---------------------------------------------------------------------------


def test_table_precise(table):
    assert table.precise(PreciseQuery([D1], 5)) == (
        "SELECT time, device_id, s0, s1 FROM g1 WHERE device_id = 'd1' AND time = 5"
    )


def test_table_range_multi_device_uses_in(table):
    assert table.range(RangeQuery([D1, D2], 100, 200)) == (
        "SELECT time, device_id, s0, s1 FROM g1 "
        "WHERE device_id IN ('d1', 'd2') AND time >= 100 AND time <= 200"
    )


def test_table_value_range_qualifies_columns(table):
    assert table.value_range(ValueRangeQuery([D1], 100, 200, 10)) == (
        "SELECT time, device_id, s0, s1 FROM g1 WHERE device_id = 'd1' "
        "AND time >= 100 AND time <= 200 AND g1.s0 > 10 AND g1.s1 > 10"
    )


def test_table_agg_range_groups_by_device(table):
    assert table.agg_range(AggRangeQuery([D1], "AVG", 100, 200)) == (
        "SELECT device_id, AVG(s0), AVG(s1) FROM g1 WHERE device_id = 'd1' "
        "AND time >= 100 AND time <= 200 GROUP BY device_id"
    )


def test_table_agg_value_appends_to_device_filter(table):
    assert table.agg_value(AggValueQuery([D1], "AVG", 10)) == (
        "SELECT device_id, AVG(s0), AVG(s1) FROM g1 WHERE device_id = 'd1' "
        "AND g1.s0 > 10 AND g1.s1 > 10 GROUP BY device_id"
    )


def test_table_group_by_uses_date_bin(table):
    assert table.group_by(GroupByQuery([D1], "AVG", 100, 200, 10)) == (
        "SELECT date_bin(10ms, time) AS time, device_id, AVG(s0), AVG(s1) FROM g1 "
        "WHERE device_id = 'd1' AND time >= 100 AND time < 200 "
        "GROUP BY date_bin(10ms, time), device_id"
    )


def test_table_latest_point_uses_last_by(table):
    assert table.latest_point(LatestPointQuery([D1, D2])) == (
        "SELECT device_id, last_by(s0, time), last_by(s1, time) FROM g1 "
        "WHERE device_id IN ('d1', 'd2') GROUP BY device_id"
    )


def test_table_verification_parenthesises_disjunction(table):
    sql, _ = table.verification(VerificationQuery(D1, [Record(1, [1, 1.5]), Record(2, [2, 2.5])]))

    assert sql == (
        "SELECT time, device_id, s0, s1 FROM g1 WHERE device_id = 'd1' AND (time = 1 OR time = 2)"
    )


def test_table_summary(table):
    count_sql, min_sql, max_sql = table.summary(D1)

    assert count_sql == "SELECT COUNT(*) FROM g1 WHERE device_id = 'd1'"
    assert min_sql == "SELECT * FROM g1 WHERE device_id = 'd1' ORDER BY time LIMIT 1"
    assert max_sql == "SELECT * FROM g1 WHERE device_id = 'd1' ORDER BY time DESC LIMIT 1"
