"""Monotonic sequence generator for execution identifiers."""

import itertools
import threading


class SequenceGenerator:
    """
    Thread-safe, monotonically increasing integer sequence.

    Each operator draws execution identifiers from a generator so that
    lifecycle hooks can correlate an asynchronous completion with the flush
    that started it. Operators share the process-wide ``EXECUTION_IDS``
    instance unless another generator is injected.

    Args:
        start: Value preceding the first identifier. Defaults to 0, so the
               first call to ``next()`` returns 1.

    Example:
        ```python
        ids = SequenceGenerator()
        ids.next()  # 1
        ids.next()  # 2
        ```
    """

    def __init__(self, start: int = 0) -> None:
        self._counter = itertools.count(start + 1)
        self._last = start
        self._lock = threading.Lock()

    def next(self) -> int:
        """Return the next identifier in the sequence."""
        with self._lock:
            self._last = next(self._counter)
            return self._last

    @property
    def last(self) -> int:
        """Most recently issued identifier (or the start value)."""
        return self._last


EXECUTION_IDS = SequenceGenerator()

__all__ = ["EXECUTION_IDS", "SequenceGenerator"]
