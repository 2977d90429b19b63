"""Lifecycle emitting structured JSON log records for each dispatch."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from bulk_operator.engine.models import Batch, BulkResponse
from bulk_operator.lifecycle.base import NoopLifecycle

if TYPE_CHECKING:
    from bulk_operator.engine.operator import BulkOperator


class LoggingLifecycle(NoopLifecycle):
    """
    Logs one JSON record per hook, keyed by execution id.

    Args:
        logger: Logger to write to. Defaults to ``bulk_operator.lifecycle``.

    Example:
        ```python
        operator = BulkOperator(transport, lifecycle=LoggingLifecycle())
        ```
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("bulk_operator.lifecycle")

    def _log(self, level: int, event: str, execution_id: int, batch: Batch, **extra: Any) -> None:
        log_entry = {
            "event": event,
            "execution_id": execution_id,
            "actions": batch.count,
            "size_bytes": batch.estimated_size_bytes,
            "timestamp": datetime.now(UTC).isoformat(),
            **extra,
        }
        self._logger.log(level, json.dumps(log_entry))

    def before_dispatch(self, execution_id: int, operator: BulkOperator, batch: Batch) -> None:
        self._log(logging.DEBUG, "bulk_dispatch_started", execution_id, batch)

    def after_dispatch(
        self,
        execution_id: int,
        operator: BulkOperator,
        batch: Batch,
        response: BulkResponse,
    ) -> None:
        failed = len(response.failed_items())
        self._log(
            logging.WARNING if response.errors else logging.INFO,
            "bulk_dispatch_completed",
            execution_id,
            batch,
            errors=response.errors,
            failed_items=failed,
            took_ms=response.took,
        )

    def after_failure(
        self,
        execution_id: int,
        operator: BulkOperator,
        batch: Batch,
        failure: BaseException,
    ) -> None:
        self._log(
            logging.ERROR,
            "bulk_dispatch_failed",
            execution_id,
            batch,
            error=f"{type(failure).__name__}: {failure}",
        )
