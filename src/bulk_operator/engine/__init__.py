"""Bulk data model and the batching operator."""

from bulk_operator.engine.models import (
    Action,
    ActionBuilder,
    Batch,
    BatchBuilder,
    BulkResponse,
    BulkResponseItem,
    ClosedError,
    OperatorConfig,
    TransportConfig,
    ValidationError,
)
from bulk_operator.engine.operator import BulkOperator, OperatorMetrics

__all__ = [
    "Action",
    "ActionBuilder",
    "Batch",
    "BatchBuilder",
    "BulkOperator",
    "BulkResponse",
    "BulkResponseItem",
    "ClosedError",
    "OperatorConfig",
    "OperatorMetrics",
    "TransportConfig",
    "ValidationError",
]
