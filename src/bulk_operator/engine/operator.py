"""Bulk operator: buffers actions and dispatches them as batches.

The operator owns one mutable accumulator at a time. A flush swaps it for a
fresh one under a lock and freezes the old one into a Batch, which is then
sent through the transport while holding a concurrency permit. Flushes are
triggered by an action count threshold, a fixed-delay timer, or the caller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Self

from bulk_operator.engine.models import (
    Action,
    Batch,
    BatchBuilder,
    BulkResponse,
    ClosedError,
    OperatorConfig,
)
from bulk_operator.lifecycle.base import Lifecycle, NoopLifecycle
from bulk_operator.patterns.permits import PermitLimiter
from bulk_operator.patterns.scheduler import FixedDelayTimer
from bulk_operator.patterns.sequence import EXECUTION_IDS, SequenceGenerator
from bulk_operator.transport.base import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OperatorMetrics:
    """Snapshot of operator activity.

    Attributes:
        pending_count: Actions buffered since the last flush.
        batches_dispatched: Batches handed to the transport.
        actions_dispatched: Actions contained in those batches.
        failed_dispatches: Dispatches that ended without a response.
        in_flight: Dispatches currently holding a permit.
        peak_in_flight: Highest number of simultaneous dispatches observed.
    """

    pending_count: int
    batches_dispatched: int
    actions_dispatched: int
    failed_dispatches: int
    in_flight: int
    peak_in_flight: int


class BulkOperator:
    """Batches actions and dispatches them through a transport.

    The operator is safe to use from many producer threads at once. ``add``
    only ever blocks on a flush it triggers itself, and a flush only blocks
    while waiting for a concurrency permit; the network round trip happens
    on the transport's threads and is observed through the lifecycle.

    Args:
        transport: Transport used to deliver batches.
        concurrency: Maximum number of in-flight dispatches. Values below 1
                     are raised to 1. Defaults to 1.
        interval: Delay in milliseconds between timer-driven flushes, or None
                  for no timer.
        max_actions: Pending action count that triggers a flush from ``add``,
                     or None to buffer without limit.
        lifecycle: Hooks fired around each dispatch. Defaults to a no-op.
        id_generator: Source of execution identifiers. Defaults to the
                      process-wide sequence.

    Raises:
        ValueError: If interval or max_actions is given and not positive.

    Example:
        ```python
        with BulkOperator(
            RequestsTransport("http://localhost:9200"),
            concurrency=2,
            max_actions=1_000,
            lifecycle=RequeueLifecycle(),
        ) as operator:
            for document in documents:
                operator.add(Action.index_document("logs", document))
            operator.flush()
            operator.wait_for_idle()
        ```
    """

    def __init__(
        self,
        transport: Transport,
        *,
        concurrency: int = 1,
        interval: int | None = None,
        max_actions: int | None = None,
        lifecycle: Lifecycle | None = None,
        id_generator: SequenceGenerator | None = None,
    ) -> None:
        if interval is not None and interval <= 0:
            raise ValueError("interval must be positive")
        if max_actions is not None and max_actions < 1:
            raise ValueError("max_actions must be at least 1")

        self._transport = transport
        self._concurrency = max(1, concurrency)
        self._interval = interval
        self._max_actions = max_actions
        self._lifecycle = lifecycle or NoopLifecycle()
        self._ids = id_generator or EXECUTION_IDS

        self._lock = threading.Lock()
        self._pending = BatchBuilder()
        self._pending_count = 0
        self._closed = False

        self._permits = PermitLimiter(max_permits=self._concurrency)
        self._completion = threading.local()
        self._deferred = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"bulk-operator-flush-{id(self):x}"
        )

        # Dispatches from batch swap until their completion has handed off
        # any deferred flush.
        self._activity = threading.Condition()
        self._active_dispatches = 0

        self._metrics_lock = threading.Lock()
        self._batches_dispatched = 0
        self._actions_dispatched = 0
        self._failed_dispatches = 0

        self._timer: FixedDelayTimer | None = None
        if interval is not None:
            self._timer = FixedDelayTimer(
                interval, self.flush, name=f"bulk-operator-timer-{id(self):x}"
            )
            self._timer.start()

    @classmethod
    def from_config(
        cls,
        transport: Transport,
        config: OperatorConfig | None = None,
        lifecycle: Lifecycle | None = None,
    ) -> Self:
        """Create an operator from an OperatorConfig.

        Args:
            transport: Transport used to deliver batches.
            config: Operator settings; loaded from the environment when omitted.
            lifecycle: Hooks fired around each dispatch.

        Returns:
            A new, open operator.
        """
        config = config or OperatorConfig.from_env()
        return cls(
            transport,
            concurrency=config.concurrency,
            interval=config.interval,
            max_actions=config.max_actions,
            lifecycle=lifecycle,
        )

    @property
    def transport(self) -> Transport:
        """Transport used to deliver batches."""
        return self._transport

    @property
    def lifecycle(self) -> Lifecycle:
        """Hooks fired around each dispatch."""
        return self._lifecycle

    @property
    def concurrency(self) -> int:
        """Maximum number of in-flight dispatches."""
        return self._concurrency

    @property
    def interval(self) -> int | None:
        """Timer flush delay in milliseconds."""
        return self._interval

    @property
    def max_actions(self) -> int | None:
        """Pending action count that triggers a flush."""
        return self._max_actions

    @property
    def pending_count(self) -> int:
        """Number of actions buffered since the last flush."""
        with self._lock:
            return self._pending_count

    @property
    def closed(self) -> bool:
        """Check if the operator has been closed."""
        return self._closed

    def add(self, *actions: Action) -> Self:
        """Buffer one or more actions.

        Args:
            *actions: Actions to buffer, kept in the given order.

        Returns:
            Self: The operator, for chaining.

        Raises:
            ClosedError: If the operator has been closed.
            TypeError: If an argument is not an Action.
        """
        return self.add_all(actions)

    def add_all(self, actions: Iterable[Action]) -> Self:
        """Buffer every action of an iterable.

        If a count threshold is configured and reached, the buffer is flushed
        before this call returns.

        Args:
            actions: Actions to buffer, kept in iteration order.

        Returns:
            Self: The operator, for chaining.

        Raises:
            ClosedError: If the operator has been closed.
            TypeError: If an item is not an Action.
        """
        actions = list(actions)
        for action in actions:
            if not isinstance(action, Action):
                raise TypeError(f"Expected an Action, got {type(action).__name__}")

        with self._lock:
            if self._closed:
                raise ClosedError("BulkOperator already closed")
            self._pending.add_actions(actions)
            self._pending_count += len(actions)
            threshold_reached = (
                self._max_actions is not None and self._pending_count >= self._max_actions
            )

        if threshold_reached:
            if getattr(self._completion, "active", False):
                # Called from a completion hook that still holds its permit.
                self._completion.flush_requested = True
            else:
                self.flush()

        return self

    def flush(self) -> int | None:
        """Dispatch every buffered action as one batch.

        Does nothing if the operator is closed or nothing is buffered.
        Otherwise blocks until a concurrency permit is available, then hands
        the batch to the transport and returns without waiting for it.

        Returns:
            The execution id of the dispatch, or None if nothing was sent.
        """
        with self._lock:
            if self._closed or self._pending_count == 0:
                return None
            batch = self._pending.build()
            self._pending = BatchBuilder()
            self._pending_count = 0
            self._begin_dispatch()

        self._permits.acquire()
        execution_id = self._ids.next()

        logger.debug(
            "Dispatching bulk %d: %d actions, %d bytes",
            execution_id,
            batch.count,
            batch.estimated_size_bytes,
        )

        try:
            self._lifecycle.before_dispatch(execution_id, self, batch)
            future = self._transport.submit(batch.payload)
        except Exception as exc:  # pylint: disable=broad-except
            # Report through the failure hook like any other failed dispatch
            future = Future()
            future.set_exception(exc)
        else:
            with self._metrics_lock:
                self._batches_dispatched += 1
                self._actions_dispatched += batch.count

        future.add_done_callback(partial(self._complete, execution_id, batch))
        return execution_id

    def close(self) -> None:
        """Close the operator.

        Further ``add`` calls raise ClosedError and flushes become no-ops.
        Buffered actions are not flushed and in-flight dispatches are not
        awaited; call ``flush()`` and ``wait_for_idle()`` first to drain.
        The transport is left open.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            timer, self._timer = self._timer, None
            pending = self._pending_count

        if timer is not None:
            timer.cancel()
        self._deferred.shutdown(wait=False)

        logger.debug("BulkOperator closed with %d actions pending", pending)

    def wait_for_idle(self, timeout: float | None = None) -> bool:
        """Block until no dispatch is in flight.

        A dispatch stays in flight until its completion hooks have run and
        any flush they triggered has handed its batch to the transport, so
        actions re-queued by a lifecycle are not left behind.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever.

        Returns:
            bool: True if idle, False if the timeout elapsed first.
        """
        with self._activity:
            return self._activity.wait_for(lambda: self._active_dispatches == 0, timeout=timeout)

    def get_metrics(self) -> OperatorMetrics:
        """Get current operator metrics.

        Returns:
            OperatorMetrics: Current metrics.
        """
        permit_metrics = self._permits.get_metrics()
        with self._metrics_lock:
            return OperatorMetrics(
                pending_count=self.pending_count,
                batches_dispatched=self._batches_dispatched,
                actions_dispatched=self._actions_dispatched,
                failed_dispatches=self._failed_dispatches,
                in_flight=permit_metrics.current_active,
                peak_in_flight=permit_metrics.peak_active,
            )

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    def _begin_dispatch(self) -> None:
        with self._activity:
            self._active_dispatches += 1

    def _end_dispatch(self) -> None:
        with self._activity:
            self._active_dispatches -= 1
            if self._active_dispatches == 0:
                self._activity.notify_all()

    def _complete(self, execution_id: int, batch: Batch, future: Future[BulkResponse]) -> None:
        """Fire the completion hook for a dispatch and release its permit.

        Runs on whichever thread completes the future, usually a transport
        worker. A flush requested by the hooks is handed to the operator's
        own flush thread so the worker never waits for a permit.
        """
        state = self._completion
        nested = getattr(state, "active", False)
        if not nested:
            state.active = True
            state.flush_requested = False

        try:
            failure: BaseException | None
            if future.cancelled():
                failure = CancelledError(f"Bulk {execution_id} was cancelled")
            else:
                failure = future.exception()
            if failure is None:
                self._lifecycle.after_dispatch(execution_id, self, batch, future.result())
            else:
                with self._metrics_lock:
                    self._failed_dispatches += 1
                logger.debug("Bulk %d failed: %s", execution_id, failure)
                self._lifecycle.after_failure(execution_id, self, batch, failure)
        finally:
            self._permits.release()
            if nested:
                self._end_dispatch()
            else:
                state.active = False
                if state.flush_requested:
                    state.flush_requested = False
                    self._hand_off_flush(execution_id)
                else:
                    self._end_dispatch()

    def _hand_off_flush(self, execution_id: int) -> None:
        try:
            self._deferred.submit(self._run_deferred_flush)
        except RuntimeError:
            # Executor shut down by close(); the flush would be a no-op.
            logger.debug("Bulk %d requested a flush after close", execution_id)
            self._end_dispatch()

    def _run_deferred_flush(self) -> None:
        try:
            self.flush()
        except Exception:
            logger.exception("Deferred flush failed")
        finally:
            self._end_dispatch()
