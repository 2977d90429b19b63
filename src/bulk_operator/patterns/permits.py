"""PermitLimiter pattern for bounding in-flight work across threads."""

import threading
from dataclasses import dataclass, field
from typing import Self


class AcquisitionTimeoutError(Exception):
    """Raised when permit acquisition times out."""

    pass


@dataclass
class PermitMetrics:
    """Metrics for tracking permit acquisitions and in-flight work."""

    current_active: int
    peak_active: int
    total_acquisitions: int
    timeout_count: int = field(default=0)


class PermitLimiter:
    """
    Counting limiter that bounds concurrent in-flight operations.

    Unlike a context-scoped semaphore, a permit may be acquired on one
    thread and released on another, which is how the operator holds a
    permit for the duration of an asynchronous dispatch.

    Args:
        max_permits: Maximum number of permits that can be held at once.
                     Defaults to 1.

    Example:
        ```python
        limiter = PermitLimiter(max_permits=2)

        limiter.acquire()
        future = executor.submit(send)
        future.add_done_callback(lambda _: limiter.release())
        ```
    """

    def __init__(self, max_permits: int = 1) -> None:
        """Initialize the PermitLimiter.

        Args:
            max_permits: Maximum number of permits held at once.

        Raises:
            ValueError: If max_permits is less than 1.
        """
        if max_permits < 1:
            raise ValueError("max_permits must be at least 1")

        self._semaphore = threading.Semaphore(max_permits)
        self._max_permits = max_permits
        self._current_active = 0
        self._peak_active = 0
        self._total_acquisitions = 0
        self._timeout_count = 0
        self._condition = threading.Condition()

    @property
    def max_permits(self) -> int:
        """Maximum number of permits held at once."""
        return self._max_permits

    @property
    def in_flight(self) -> int:
        """Number of permits currently held."""
        return self._current_active

    def acquire(self, timeout: float | None = None) -> None:
        """Acquire a permit, blocking until one is available.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever.

        Raises:
            AcquisitionTimeoutError: If no permit became available in time.
        """
        if not self._semaphore.acquire(timeout=timeout):
            with self._condition:
                self._timeout_count += 1
            raise AcquisitionTimeoutError(f"Failed to acquire permit within {timeout}s")

        with self._condition:
            self._current_active += 1
            self._total_acquisitions += 1
            self._peak_active = max(self._peak_active, self._current_active)

    def release(self) -> None:
        """Release a previously acquired permit.

        Raises:
            ValueError: If no permit is currently held.
        """
        with self._condition:
            if self._current_active == 0:
                raise ValueError("release() called without a held permit")
            self._current_active -= 1
            if self._current_active == 0:
                self._condition.notify_all()

        self._semaphore.release()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until no permits are held.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever.

        Returns:
            bool: True if the limiter became idle, False on timeout.
        """
        with self._condition:
            return self._condition.wait_for(lambda: self._current_active == 0, timeout=timeout)

    def __enter__(self) -> Self:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        self.release()

    def get_metrics(self) -> PermitMetrics:
        """Get current metrics for this limiter.

        Returns:
            PermitMetrics: Current metrics including active count, peak, and total.
        """
        with self._condition:
            return PermitMetrics(
                current_active=self._current_active,
                peak_active=self._peak_active,
                total_acquisitions=self._total_acquisitions,
                timeout_count=self._timeout_count,
            )
