"""Threaded bulk transport using the `requests` library.

This module implements the Transport protocol with a ThreadPoolExecutor and
thread-local `requests` sessions for connection pooling.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor

import requests

from bulk_operator.engine.models import BulkResponse, TransportConfig
from bulk_operator.transport.base import NDJSON_CONTENT_TYPE, Transport, TransportFailure


def bulk_url(base_url: str, index: str | None) -> str:
    """Build the bulk endpoint URL, scoped to an index when one is given."""
    root = base_url.rstrip("/")
    if index:
        return f"{root}/{index}/_bulk"
    return f"{root}/_bulk"


class ThreadLocalSession(threading.local):
    """Thread-local session manager for connection pooling.

    Each worker thread gets its own requests Session. Every session created
    is also recorded in a shared registry so they can all be closed at once.
    """

    def __init__(self, registry: list[requests.Session], lock: threading.Lock) -> None:
        """Initialize the thread-local session.

        Args:
            registry: Shared list collecting every session created.
            lock: Lock guarding the registry.
        """
        super().__init__()
        self.session: requests.Session | None = None
        self._registry = registry
        self._lock = lock

    def get_session(self) -> requests.Session:
        """Get or create a session for the current thread.

        Returns:
            A requests Session instance.
        """
        if self.session is None:
            self.session = requests.Session()
            with self._lock:
                self._registry.append(self.session)
        return self.session


class RequestsTransport(Transport):
    """Threaded bulk transport.

    Payloads are POSTed to the bulk endpoint from a pool of worker threads,
    so ``submit`` returns immediately with a future.

    Attributes:
        url: The bulk endpoint requests are sent to.
        timeout: Request timeout in seconds.

    Example:
        >>> transport = RequestsTransport("http://localhost:9200", index="logs")
        >>> future = transport.submit(batch.payload)
        >>> future.result().errors
        False
    """

    def __init__(
        self,
        base_url: str | None = None,
        index: str | None = None,
        config: TransportConfig | None = None,
    ) -> None:
        """Initialize the RequestsTransport.

        Args:
            base_url: Root URL of the service; overrides ``config.base_url``.
            index: Default index for actions that do not name one.
            config: Transport configuration.
        """
        self._config = config or TransportConfig()
        self._url = bulk_url(base_url or self._config.base_url, index)
        self._timeout = self._config.timeout
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers, thread_name_prefix="bulk-requests"
        )
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._session_manager = ThreadLocalSession(self._sessions, self._sessions_lock)

    @property
    def url(self) -> str:
        """The bulk endpoint URL."""
        return self._url

    @property
    def timeout(self) -> float:
        """Request timeout in seconds."""
        return self._timeout

    def submit(
        self, payload: bytes, content_type: str = NDJSON_CONTENT_TYPE
    ) -> Future[BulkResponse]:
        """Queue a bulk request on the worker pool.

        Args:
            payload: Newline-delimited JSON body.
            content_type: Content type header sent with the payload.

        Returns:
            A future resolving to the parsed BulkResponse.
        """
        return self._executor.submit(self._post, payload, content_type)

    def close(self) -> None:
        """Shut down the worker pool and close every session it created."""
        self._executor.shutdown(wait=True)
        with self._sessions_lock:
            for session in self._sessions:
                session.close()
            self._sessions.clear()

    def _post(self, payload: bytes, content_type: str) -> BulkResponse:
        """Send a payload and parse the reply.

        Args:
            payload: Newline-delimited JSON body.
            content_type: Content type header value.

        Returns:
            The parsed BulkResponse.

        Raises:
            TransportFailure: On connection errors, timeouts, non-2xx replies or
                an undecodable body.
        """
        session = self._session_manager.get_session()

        try:
            response = session.post(
                self._url,
                data=payload,
                headers={"Content-Type": content_type},
                timeout=self._timeout,
            )
            response.raise_for_status()
            return BulkResponse.from_dict(response.json())
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else 0
            raise TransportFailure(f"HTTP Error: {e}", status_code=status_code) from e
        except requests.Timeout as e:
            raise TransportFailure("Timeout") from e
        except requests.ConnectionError as e:
            raise TransportFailure("Connection Error") from e
        except ValueError as e:
            raise TransportFailure(f"Invalid bulk response: {e}") from e
        except requests.RequestException as e:
            raise TransportFailure(f"Request Error: {e}") from e
