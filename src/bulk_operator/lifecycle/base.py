"""Lifecycle hooks fired around every bulk dispatch.

Dispatches complete on transport threads, so hooks are the only place a
caller can observe them. The same execution identifier is passed to every
hook of one dispatch, which lets logs correlate a completion with the flush
that started it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from bulk_operator.engine.models import Batch, BulkResponse

if TYPE_CHECKING:
    from bulk_operator.engine.operator import BulkOperator


@runtime_checkable
class Lifecycle(Protocol):
    """Protocol for hooks observing dispatch start, success and failure."""

    def before_dispatch(self, execution_id: int, operator: BulkOperator, batch: Batch) -> None:
        """Run before the batch is handed to the transport.

        Args:
            execution_id: The dispatch identifier.
            operator: The operator carrying out the dispatch.
            batch: The batch being dispatched.
        """
        ...

    def after_dispatch(
        self,
        execution_id: int,
        operator: BulkOperator,
        batch: Batch,
        response: BulkResponse,
    ) -> None:
        """Run after the transport returned a response.

        A response only means the request succeeded; individual items may
        still have failed.

        Args:
            execution_id: The dispatch identifier.
            operator: The operator carrying out the dispatch.
            batch: The batch that was dispatched.
            response: The parsed bulk response.
        """
        ...

    def after_failure(
        self,
        execution_id: int,
        operator: BulkOperator,
        batch: Batch,
        failure: BaseException,
    ) -> None:
        """Run after the dispatch failed without a response.

        Args:
            execution_id: The dispatch identifier.
            operator: The operator carrying out the dispatch.
            batch: The batch that was dispatched.
            failure: The exception raised by the transport.
        """
        ...


class NoopLifecycle(Lifecycle):
    """A lifecycle that does nothing.

    Used as the default, and as a base class so subclasses only override the
    hooks they care about.
    """

    def before_dispatch(self, execution_id: int, operator: BulkOperator, batch: Batch) -> None:
        pass

    def after_dispatch(
        self,
        execution_id: int,
        operator: BulkOperator,
        batch: Batch,
        response: BulkResponse,
    ) -> None:
        pass

    def after_failure(
        self,
        execution_id: int,
        operator: BulkOperator,
        batch: Batch,
        failure: BaseException,
    ) -> None:
        pass
