"""Dispatch lifecycle hooks."""

from bulk_operator.lifecycle.base import Lifecycle, NoopLifecycle
from bulk_operator.lifecycle.logging_lifecycle import LoggingLifecycle
from bulk_operator.lifecycle.requeue import RequeueLifecycle

__all__ = [
    "Lifecycle",
    "LoggingLifecycle",
    "NoopLifecycle",
    "RequeueLifecycle",
]
