"""Canonical device paths for the tree and table naming conventions."""

from __future__ import annotations

from typing import Literal

from iotbench.models.schema import DeviceSchema

Convention = Literal["tree", "table"]

ROOT = "root"


def root_prefix(database: str | None = None) -> str:
    """root, or root.<database> when a database segment is configured."""
    return f"{ROOT}.{database}" if database else ROOT


def device_path(
    schema: DeviceSchema, convention: Convention = "tree", database: str | None = None
) -> str:
    """
    Fully-qualified path of a device.

    tree:  root[.<database>].<group>.<tag value>....<device>
    table: <group>.<tag value>....<device> (no synthetic root prefix)

    Tag values keep the schema's declared order; tag keys never appear.
    """
    if convention == "table":
        return schema.device_path
    return f"{root_prefix(database)}.{schema.device_path}"


def sensor_path(schema: DeviceSchema, sensor: str, database: str | None = None) -> str:
    """Tree path of one series, e.g. root.group_1.d_1.s_1."""
    return f"{device_path(schema, 'tree', database)}.{sensor}"
