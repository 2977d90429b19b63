"""Concurrency patterns module."""

from bulk_operator.patterns.permits import (
    AcquisitionTimeoutError,
    PermitLimiter,
    PermitMetrics,
)
from bulk_operator.patterns.scheduler import FixedDelayTimer
from bulk_operator.patterns.sequence import EXECUTION_IDS, SequenceGenerator

__all__ = [
    # Permits
    "AcquisitionTimeoutError",
    "PermitLimiter",
    "PermitMetrics",
    # Scheduling
    "FixedDelayTimer",
    # Identifiers
    "EXECUTION_IDS",
    "SequenceGenerator",
]
