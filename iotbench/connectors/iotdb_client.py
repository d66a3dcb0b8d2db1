"""
IoTDB Client Factories

Thin construction helpers around the apache-iotdb Python client: tree-model
sessions, table-model sessions, DB-API connections and tablets. Keeping every
library touch-point here lets the strategies work against plain session-like
objects (and lets tests swap these factories out).
"""

import logging
from typing import Any, List, Optional, Sequence

from iotdb.Session import Session
from iotdb.dbapi import connect as dbapi_connect
from iotdb.table_session import TableSession, TableSessionConfig
from iotdb.utils.IoTDBConstants import Compressor, TSDataType, TSEncoding
from iotdb.utils.Tablet import ColumnType, Tablet

from iotbench.core.errors import DBConnectionError
from iotbench.models.schema import SensorType

logger = logging.getLogger(__name__)

TAG = "TAG"
FIELD = "FIELD"


def to_data_type(sensor_type: SensorType) -> TSDataType:
    return TSDataType[sensor_type.type_name]


def to_encoding(name: str) -> TSEncoding:
    return TSEncoding[str(name).upper()]


def to_compressor(name: str) -> Compressor:
    return Compressor[str(name).upper()]


def _split_url(node_url: str) -> tuple[str, int]:
    host, _, port = node_url.rpartition(":")
    return host, int(port)


def open_tree_session(
    node_urls: Sequence[str],
    username: str,
    password: str,
    *,
    fetch_size: int = 5000,
    enable_rpc_compression: bool = False,
    pool_name: str = "default",
) -> Session:
    """
    Open a tree-model session against the first node URL.

    Raises:
        DBConnectionError: If the session cannot be opened
    """
    host, port = _split_url(node_urls[0])
    session = Session(host, port, username, password, fetch_size=fetch_size)
    try:
        session.open(enable_rpc_compression)
    except Exception as e:
        logger.error(f"[{pool_name}] Failed to open IoTDB session {host}:{port}: {e}")
        raise DBConnectionError(f"cannot open session to {host}:{port}: {e}") from e
    logger.debug(f"[{pool_name}] Opened IoTDB tree session {host}:{port}")
    return session


def open_table_session(
    node_urls: Sequence[str],
    username: str,
    password: str,
    *,
    database: Optional[str] = None,
    fetch_size: int = 5000,
    enable_rpc_compression: bool = False,
    pool_name: str = "default",
) -> TableSession:
    """
    Open a table-model session (TableSession connects on construction).

    Raises:
        DBConnectionError: If the session cannot be opened
    """
    config = TableSessionConfig(
        node_urls=list(node_urls),
        username=username,
        password=password,
        database=database or None,
        fetch_size=fetch_size,
        enable_compression=enable_rpc_compression,
    )
    try:
        session = TableSession(config)
    except Exception as e:
        logger.error(f"[{pool_name}] Failed to open IoTDB table session {node_urls}: {e}")
        raise DBConnectionError(f"cannot open table session to {node_urls}: {e}") from e
    logger.debug(f"[{pool_name}] Opened IoTDB table session {node_urls}")
    return session


def open_dbapi_connection(
    node_urls: Sequence[str],
    username: str,
    password: str,
    *,
    fetch_size: int = 5000,
    enable_rpc_compression: bool = False,
) -> Any:
    """
    Open a PEP 249 connection (the Python counterpart of the JDBC driver).

    Raises:
        DBConnectionError: If the connection cannot be opened
    """
    host, port = _split_url(node_urls[0])
    try:
        return dbapi_connect(
            host,
            port,
            username,
            password,
            fetch_size=fetch_size,
            enable_rpc_compression=enable_rpc_compression,
        )
    except Exception as e:
        raise DBConnectionError(f"cannot connect to {host}:{port}: {e}") from e


def build_tablet(
    target: str,
    column_names: List[str],
    sensor_types: List[SensorType],
    rows: List[List[Any]],
    timestamps: List[int],
    column_categories: Optional[List[str]] = None,
) -> Tablet:
    """
    Build a tablet sized to the batch.

    column_categories (TAG/FIELD per column) is only passed for table-model
    tablets; tree tablets address a device path instead.
    """
    data_types = [to_data_type(t) for t in sensor_types]
    if column_categories is None:
        return Tablet(target, column_names, data_types, rows, timestamps)
    column_types = [
        ColumnType.TAG if c == TAG else ColumnType.FIELD for c in column_categories
    ]
    return Tablet(target, column_names, data_types, rows, timestamps, column_types)


def field_value(field: Any) -> Any:
    """Python value of a result Field (None for nulls)."""
    if field is None or field.is_null():
        return None
    return field.get_object_value(field.get_data_type())
