"""
REST execution against the IoTDB REST service (v2 endpoints).

Tree model only. Results are counted from the response envelope, so neither
debug sampling nor row capture is offered on this transport.

Insert devices and the cleanup statement come from the model strategy, so a
configured database name adds the same root.<db> segment the session and
DB-API paths use.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

import httpx

from iotbench.core.errors import DBConnectionError, ExecutionError, MalformedResponseError
from iotbench.core.execution.base import ExecutionOutcome, ExecutionStrategy, batch_point_count
from iotbench.core.model_strategies.base import timestamp_of
from iotbench.models.schema import Batch, SensorType
from iotbench.models.status import Operation

logger = logging.getLogger(__name__)

INSERT_TABLET_PATH = "/rest/v2/insertTablet"
QUERY_PATH = "/rest/v2/query"
NON_QUERY_PATH = "/rest/v2/nonQuery"

# Success code carried in the JSON body of write/non-query responses.
_REST_SUCCESS_CODE = 200


def rest_value(value: Any, sensor_type: SensorType) -> Any:
    """JSON form of one tablet value: BLOB as hex, DATE as ISO, TIMESTAMP as epoch ms."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if sensor_type == SensorType.TIMESTAMP and isinstance(value, datetime):
        return timestamp_of(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class RestStrategy(ExecutionStrategy):
    name = "REST"
    supports_debug_sampling = False
    supports_row_capture = False

    def __init__(self, config, model, *, transport: Optional[httpx.BaseTransport] = None):
        super().__init__(config, model)
        self.transport = transport
        self.client: Optional[httpx.Client] = None

    def _new_client(self) -> httpx.Client:
        headers = {"Content-Type": "application/json"}
        if self.config.rest_authorization:
            headers["Authorization"] = self.config.rest_authorization
        return httpx.Client(
            base_url=self.config.rest_base_url,
            timeout=self.config.rest_timeout_seconds,
            headers=headers,
            transport=self.transport,
        )

    def init(self) -> None:
        if self.client is None:
            self.client = self._new_client()
            logger.debug(f"[rest] Client ready for {self.config.rest_base_url}")

    def _require_client(self) -> httpx.Client:
        if self.client is None:
            raise DBConnectionError("REST client is not open; call init() first")
        return self.client

    def close(self) -> None:
        client = self.client
        if client is None:
            return
        try:
            client.close()
        finally:
            self.client = None

    def _post(
        self,
        path: str,
        payload: dict[str, Any],
        query_text: str,
        client: Optional[httpx.Client] = None,
    ) -> Any:
        """POST a JSON payload and return the decoded body."""
        if client is None:
            client = self._require_client()
        try:
            response = client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise ExecutionError(f"POST {path} failed: {e}", query_text=query_text) from e
        except (TypeError, ValueError) as e:
            raise ExecutionError(
                f"POST {path} payload could not be encoded: {e}", query_text=query_text
            ) from e
        if not response.is_success:
            raise ExecutionError(
                f"POST {path} returned HTTP {response.status_code}: {response.text}",
                query_text=query_text,
            )
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"POST {path} returned a non-JSON body", query_text=query_text
            ) from e

    @staticmethod
    def _check_code(body: Any, query_text: str) -> None:
        if isinstance(body, dict) and body.get("code") not in (None, _REST_SUCCESS_CODE):
            raise ExecutionError(
                f"IoTDB returned code {body.get('code')}: {body.get('message')}",
                query_text=query_text,
            )

    def cleanup(self) -> None:
        statement = self.model.cleanup_statement()
        client = self._new_client()
        try:
            body = self._post(NON_QUERY_PATH, {"sql": statement}, statement, client)
            self._check_code(body, statement)
        except Exception as e:
            logger.warning(f"[rest] Cleanup failed ({statement}): {e}")
        finally:
            client.close()

    def execute_query(
        self, sql: str, operation: Operation, *, capture_rows: bool = False
    ) -> ExecutionOutcome:
        body = self._post(QUERY_PATH, {"sql": sql}, sql)
        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"query response is not a JSON object: {type(body).__name__}", query_text=sql
            )
        self._check_code(body, sql)
        timestamps = body.get("timestamps")
        if timestamps is None:
            # Aggregations answer with a single row and no timestamps.
            return ExecutionOutcome(1, rows=self._rows(body, [None]) if capture_rows else None)
        if not isinstance(timestamps, list):
            raise MalformedResponseError(
                f"'timestamps' is not a list: {type(timestamps).__name__}", query_text=sql
            )
        rows = self._rows(body, timestamps) if capture_rows else None
        return ExecutionOutcome(len(timestamps), rows=rows)

    @staticmethod
    def _rows(body: dict[str, Any], timestamps: list[Any]) -> list[list[Any]]:
        columns = body.get("values") or []
        rows = []
        for i, ts in enumerate(timestamps):
            rows.append([ts, *[col[i] if i < len(col) else None for col in columns]])
        return rows

    def insert_batch(self, batch: Batch) -> ExecutionOutcome:
        schema = batch.device_schema
        device = self.model.device_path(schema)
        values = [
            [rest_value(v, sensor.sensor_type) for v in column]
            for sensor, column in zip(schema.sensors, batch.columns())
        ]
        payload = {
            "device": device,
            "is_aligned": self.config.aligned,
            "measurements": schema.sensor_names,
            "data_types": [s.sensor_type.type_name for s in schema.sensors],
            "timestamps": batch.timestamps,
            "values": values,
        }
        query_text = f"insert tablet {device} ({len(batch)} rows)"
        body = self._post(INSERT_TABLET_PATH, payload, query_text)
        self._check_code(body, query_text)
        return ExecutionOutcome(batch_point_count(batch))
