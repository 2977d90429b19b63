"""Bulk transport using a shared httpx.Client with connection pooling.

This module implements the Transport protocol using:
- httpx.Client configured with pooling limits from TransportConfig
- ThreadPoolExecutor so that submit() never blocks the caller
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor

import httpx

from bulk_operator.engine.models import BulkResponse, TransportConfig
from bulk_operator.transport.base import NDJSON_CONTENT_TYPE, Transport, TransportFailure
from bulk_operator.transport.requests_transport import bulk_url


class HttpxTransport(Transport):
    """Bulk transport backed by one shared httpx.Client.

    Args:
        base_url: Root URL of the service; overrides ``config.base_url``.
        index: Default index for actions that do not name one.
        config: Connection configuration for pooling and timeouts.
        client: Pre-built client to use instead of creating one. An injected
                client is left open by :meth:`close`.

    Example:
        ```python
        transport = HttpxTransport(
            "http://localhost:9200",
            config=TransportConfig(max_connections=20, timeout=10.0),
        )
        operator = BulkOperator(transport, concurrency=4, max_actions=500)
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        index: str | None = None,
        config: TransportConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._config = config or TransportConfig()
        self._url = bulk_url(base_url or self._config.base_url, index)
        self._owns_client = client is None
        if client is None:
            limits = httpx.Limits(
                max_keepalive_connections=self._config.max_keepalive_connections,
                max_connections=self._config.max_connections,
                keepalive_expiry=self._config.keepalive_expiry,
            )
            client = httpx.Client(
                limits=limits,
                timeout=httpx.Timeout(self._config.timeout),
                http2=self._config.http2,
            )
        self._client = client
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers, thread_name_prefix="bulk-httpx"
        )

    @property
    def url(self) -> str:
        """The bulk endpoint URL."""
        return self._url

    def submit(
        self, payload: bytes, content_type: str = NDJSON_CONTENT_TYPE
    ) -> Future[BulkResponse]:
        """Queue a bulk request on the worker pool."""
        return self._executor.submit(self._post, payload, content_type)

    def close(self) -> None:
        """Shut down the worker pool and, if owned, the client."""
        self._executor.shutdown(wait=True)
        if self._owns_client:
            self._client.close()

    def _post(self, payload: bytes, content_type: str) -> BulkResponse:
        try:
            response = self._client.post(
                self._url,
                content=payload,
                headers={"Content-Type": content_type},
            )
            response.raise_for_status()
            return BulkResponse.from_dict(response.json())
        except httpx.HTTPStatusError as e:
            raise TransportFailure(
                f"HTTP Error: {e}", status_code=e.response.status_code
            ) from e
        except httpx.TimeoutException as e:
            raise TransportFailure("Timeout") from e
        except httpx.TransportError as e:
            raise TransportFailure(f"Connection Error: {e}") from e
        except ValueError as e:
            raise TransportFailure(f"Invalid bulk response: {e}") from e
