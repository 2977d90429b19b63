"""Transports delivering bulk payloads to the search service."""

from bulk_operator.transport.base import NDJSON_CONTENT_TYPE, Transport, TransportFailure
from bulk_operator.transport.httpx_transport import HttpxTransport
from bulk_operator.transport.requests_transport import RequestsTransport

__all__ = [
    "HttpxTransport",
    "NDJSON_CONTENT_TYPE",
    "RequestsTransport",
    "Transport",
    "TransportFailure",
]
