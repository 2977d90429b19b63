"""Pytest configuration and fixtures for bulk-operator tests."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace

import pytest

from bulk_operator.engine.models import Action, BulkResponse
from bulk_operator.patterns.sequence import SequenceGenerator
from bulk_operator.transport.base import NDJSON_CONTENT_TYPE


def parse_headers(payload: bytes) -> list[dict]:
    """Decode the action metadata lines of a bulk payload."""
    lines = payload.decode("utf-8").split("\n")
    return [json.loads(line) for line in lines[:-1:2]]


def ok_response(payload: bytes, status: int = 201) -> BulkResponse:
    """Build a fully successful response for every action in a payload."""
    items = [
        {operation: {"_id": meta.get("_id"), "status": status}}
        for header in parse_headers(payload)
        for operation, meta in header.items()
    ]
    return BulkResponse.from_dict({"took": 3, "errors": False, "items": items})


class FakeTransport:
    """Transport double that records payloads.

    Futures are resolved on submit when ``auto_complete`` is set, otherwise
    they stay pending until ``complete_all`` is called.
    """

    def __init__(
        self,
        responder: Callable[[bytes], BulkResponse] | None = None,
        auto_complete: bool = True,
    ) -> None:
        self.payloads: list[bytes] = []
        self.futures: list[Future[BulkResponse]] = []
        self.content_types: list[str] = []
        self.closed = False
        self.auto_complete = auto_complete
        self._responder = responder or ok_response
        self._lock = threading.Lock()

    @property
    def submitted_actions(self) -> list[dict]:
        with self._lock:
            return [header for payload in self.payloads for header in parse_headers(payload)]

    def submit(self, payload: bytes, content_type: str = NDJSON_CONTENT_TYPE) -> Future[BulkResponse]:
        future: Future[BulkResponse] = Future()
        with self._lock:
            self.payloads.append(payload)
            self.futures.append(future)
            self.content_types.append(content_type)
        if self.auto_complete:
            self._resolve(future, payload)
        return future

    def complete_all(self) -> None:
        with self._lock:
            pending = [(f, p) for f, p in zip(self.futures, self.payloads) if not f.done()]
        for future, payload in pending:
            self._resolve(future, payload)

    def _resolve(self, future: Future[BulkResponse], payload: bytes) -> None:
        try:
            future.set_result(self._responder(payload))
        except Exception as exc:
            future.set_exception(exc)

    def close(self) -> None:
        self.closed = True


class SlowTransport(FakeTransport):
    """Transport double completing requests on worker threads after a delay.

    Tracks how many requests are in progress at once.
    """

    def __init__(self, delay: float = 0.01, max_workers: int = 8) -> None:
        super().__init__()
        self.active = 0
        self.peak_active = 0
        self._delay = delay
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    def submit(self, payload: bytes, content_type: str = NDJSON_CONTENT_TYPE) -> Future[BulkResponse]:
        with self._lock:
            self.payloads.append(payload)
        return self._executor.submit(self._run, payload)

    def _run(self, payload: bytes) -> BulkResponse:
        with self._lock:
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
        time.sleep(self._delay)
        with self._lock:
            self.active -= 1
        return ok_response(payload)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        super().close()


class WorkerTransport(FakeTransport):
    """Transport double completing requests on its own worker threads.

    ``statuses`` maps the submission number (starting at 1) to the status
    reported for every item of that payload. When ``gate`` is given the first
    request is held until it is set.
    """

    def __init__(
        self,
        statuses: Callable[[int], int],
        max_workers: int = 1,
        gate: threading.Event | None = None,
    ) -> None:
        super().__init__()
        self.submit_threads: list[str] = []
        self._statuses = statuses
        self._gate = gate
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="worker-transport"
        )

    def submit(self, payload: bytes, content_type: str = NDJSON_CONTENT_TYPE) -> Future[BulkResponse]:
        with self._lock:
            self.payloads.append(payload)
            self.submit_threads.append(threading.current_thread().name)
            number = len(self.payloads)
        return self._executor.submit(self._run, payload, number)

    def _run(self, payload: bytes, number: int) -> BulkResponse:
        if number == 1 and self._gate is not None:
            self._gate.wait(timeout=5.0)
        status = self._statuses(number)
        return replace(ok_response(payload, status=status), errors=status >= 400)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        super().close()


@pytest.fixture()
def transport() -> FakeTransport:
    """Provide a transport that succeeds immediately."""
    return FakeTransport()


@pytest.fixture()
def pending_transport() -> FakeTransport:
    """Provide a transport whose requests stay in flight until completed."""
    return FakeTransport(auto_complete=False)


@pytest.fixture()
def ids() -> SequenceGenerator:
    """Provide a deterministic execution id sequence starting at 1."""
    return SequenceGenerator()


@pytest.fixture()
def make_action() -> Callable[[int], Action]:
    """Factory for numbered index actions."""

    def factory(number: int, operation: str = "index") -> Action:
        return Action(
            operation=operation,
            index="test_index",
            id=f"doc-{number}",
            body=None if operation == "delete" else json.dumps({"value": number}),
        )

    return factory


def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture()
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout elapses."""
    return _wait_until


@pytest.fixture()
def slow_transport():
    """Provide a transport completing requests on worker threads."""
    slow = SlowTransport()
    yield slow
    slow.close()


@pytest.fixture()
def transport_factory() -> type[FakeTransport]:
    """Provide the FakeTransport class for tests that need a custom responder."""
    return FakeTransport


@pytest.fixture()
def worker_transport():
    """Factory for WorkerTransport doubles, closed after the test."""
    created: list[WorkerTransport] = []

    def factory(
        statuses: Callable[[int], int],
        max_workers: int = 1,
        gate: threading.Event | None = None,
    ) -> WorkerTransport:
        worker = WorkerTransport(statuses, max_workers=max_workers, gate=gate)
        created.append(worker)
        return worker

    yield factory
    for worker in created:
        worker.close()
