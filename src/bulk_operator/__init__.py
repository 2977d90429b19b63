"""Bulk Operator.

Client-side batching for Elasticsearch-style bulk APIs: buffer write actions,
flush them as newline-delimited JSON batches with bounded concurrency, and
observe or retry each dispatch through lifecycle hooks.
"""

from bulk_operator.engine import (
    Action,
    Batch,
    BulkOperator,
    BulkResponse,
    BulkResponseItem,
    ClosedError,
    OperatorConfig,
    TransportConfig,
    ValidationError,
)
from bulk_operator.lifecycle import (
    Lifecycle,
    LoggingLifecycle,
    NoopLifecycle,
    RequeueLifecycle,
)
from bulk_operator.patterns.permits import AcquisitionTimeoutError
from bulk_operator.transport import (
    HttpxTransport,
    RequestsTransport,
    Transport,
    TransportFailure,
)

__version__ = "0.1.0"

__all__ = [
    "AcquisitionTimeoutError",
    "Action",
    "Batch",
    "BulkOperator",
    "BulkResponse",
    "BulkResponseItem",
    "ClosedError",
    "HttpxTransport",
    "Lifecycle",
    "LoggingLifecycle",
    "NoopLifecycle",
    "OperatorConfig",
    "RequestsTransport",
    "RequeueLifecycle",
    "Transport",
    "TransportConfig",
    "TransportFailure",
    "ValidationError",
]
