"""Base Protocol for bulk transports.

This module defines the Transport protocol the operator uses to deliver a
serialized batch, and the failure type every transport reports with.
"""

from __future__ import annotations

from concurrent.futures import Future
from typing import Protocol, runtime_checkable

from bulk_operator.engine.models import BulkResponse

NDJSON_CONTENT_TYPE = "application/x-ndjson"


class TransportFailure(Exception):
    """Raised when a bulk request fails at the network or protocol level.

    Attributes:
        status_code: HTTP status of the failed request, 0 if no response was received.
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class Transport(Protocol):
    """Protocol defining the interface for bulk transports.

    A transport delivers one bulk payload to the service and reports the
    outcome asynchronously through a future. The operator never waits on the
    future; it attaches a completion callback instead.

    Example:
        >>> from bulk_operator.transport.base import Transport
        >>> from bulk_operator.transport import RequestsTransport
        >>> isinstance(RequestsTransport(), Transport)
        True
    """

    def submit(
        self, payload: bytes, content_type: str = NDJSON_CONTENT_TYPE
    ) -> Future[BulkResponse]:
        """Send a bulk payload.

        Args:
            payload: Newline-delimited JSON body.
            content_type: Content type header sent with the payload.

        Returns:
            A future resolving to the parsed BulkResponse, or failing with
            TransportFailure.
        """
        ...

    def close(self) -> None:
        """Release connections and worker threads."""
        ...
