"""
Execution Strategy Base

Abstract interface for the transports that carry statements and batches to
IoTDB (native session, DB-API, REST).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from iotbench.config import AdapterConfig
from iotbench.core.model_strategies.base import ModelStrategy
from iotbench.models.schema import Batch
from iotbench.models.status import Operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """
    Result of one transport call.

    ``success=False`` with a non-zero ``point_count`` is a partial failure: the
    result stream broke after some points were already read or written.
    """

    point_count: int
    success: bool = True
    rows: Optional[list[list[Any]]] = None
    error: Optional[BaseException] = None


def batch_point_count(batch: Batch) -> int:
    return len(batch.records) * len(batch.device_schema.sensors)


class ExecutionStrategy(ABC):
    """
    Base class for execution strategies.

    One instance belongs to one adapter and is used from a single thread.
    """

    name: str = ""
    supports_debug_sampling: bool = True
    supports_row_capture: bool = True

    def __init__(self, config: AdapterConfig, model: ModelStrategy):
        self.config = config
        self.model = model

    @abstractmethod
    def init(self) -> None:
        """Open the long-lived transport."""

    @abstractmethod
    def cleanup(self) -> None:
        """Delete all benchmark data."""

    @abstractmethod
    def close(self) -> None:
        """Release the transport; calling it twice is a no-op."""

    @abstractmethod
    def execute_query(
        self, sql: str, operation: Operation, *, capture_rows: bool = False
    ) -> ExecutionOutcome:
        """
        Run a query and count the points it returns.

        Raises:
            ExecutionError: If the backend rejects the statement
        """

    @abstractmethod
    def insert_batch(self, batch: Batch) -> ExecutionOutcome:
        """
        Write one batch.

        Raises:
            ExecutionError: If the backend rejects the batch
        """

    def fetch_rows(self, sql: str) -> list[list[Any]]:
        """All rows of a query, raising on any failure (including partial ones)."""
        outcome = self.execute_query(sql, Operation.DEVICE_SUMMARY, capture_rows=True)
        if not outcome.success:
            raise outcome.error
        return outcome.rows or []
