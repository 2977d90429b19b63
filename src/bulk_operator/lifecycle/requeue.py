"""Lifecycle that re-queues failed items back into their operator."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bulk_operator.engine.models import Batch, BulkResponse, ClosedError
from bulk_operator.lifecycle.base import NoopLifecycle

if TYPE_CHECKING:
    from bulk_operator.engine.operator import BulkOperator

logger = logging.getLogger(__name__)


class RequeueLifecycle(NoopLifecycle):
    """
    Re-queues every failed item of a bulk response into the operator.

    Failed actions go back through ``operator.add``, so they are retried by
    whichever flush trigger fires next. There is no backoff and no retry
    limit: an action that can never succeed (a malformed document, say) is
    retried for as long as the operator is open. Prefer the no-op lifecycle
    while a document format is still being validated.

    Response items are matched to actions by position, which relies on the
    service reporting items in submission order. If the item count does not
    match the batch, nothing is re-queued.
    """

    def after_dispatch(
        self,
        execution_id: int,
        operator: BulkOperator,
        batch: Batch,
        response: BulkResponse,
    ) -> None:
        """Re-queue actions whose item status is 400 or above."""
        if not response.errors:
            return

        items = response.items
        actions = batch.actions

        if operator.closed:
            logger.warning(
                "Bulk %d had failed items but the operator is closed; dropping them",
                execution_id,
            )
            return

        if len(items) != len(actions):
            logger.warning(
                "Bulk %d returned %d items for %d actions; skipping requeue",
                execution_id,
                len(items),
                len(actions),
            )
            return

        requeued = 0
        for position, item in response.failed_items():
            action = actions[position]
            if item.operation != action.operation:
                logger.warning(
                    "Bulk %d item %d reports %r for a %r action; not requeued",
                    execution_id,
                    position,
                    item.operation,
                    action.operation,
                )
                continue
            try:
                operator.add(action)
            except ClosedError:
                logger.warning(
                    "Bulk %d had failed items but the operator is closed; dropping them",
                    execution_id,
                )
                break
            requeued += 1

        if requeued:
            logger.info("Bulk %d requeued %d of %d actions", execution_id, requeued, len(actions))
