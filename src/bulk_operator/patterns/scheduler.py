"""Fixed-delay background timer."""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class FixedDelayTimer:
    """
    Runs a callback on a daemon thread with a fixed delay between runs.

    The delay is measured from the end of one run to the start of the next,
    so a slow callback never causes runs to overlap. Exceptions raised by the
    callback are logged and the timer keeps running.

    Args:
        interval_ms: Delay between runs in milliseconds. Must be positive.
        callback: Zero-argument callable to run.
        name: Thread name, useful in logs and thread dumps.

    Example:
        ```python
        timer = FixedDelayTimer(5_000, operator.flush)
        timer.start()
        ...
        timer.cancel()
        ```
    """

    def __init__(
        self,
        interval_ms: int,
        callback: Callable[[], object],
        name: str = "fixed-delay-timer",
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

        self._interval = interval_ms / 1000.0
        self._callback = callback
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def interval_ms(self) -> float:
        """Delay between runs in milliseconds."""
        return self._interval * 1000.0

    @property
    def is_running(self) -> bool:
        """Check if the timer thread is alive and not cancelled."""
        return self._thread.is_alive() and not self._cancelled.is_set()

    def start(self) -> None:
        """Start the timer thread."""
        self._thread.start()

    def cancel(self) -> None:
        """Stop scheduling further runs.

        A run already in progress is allowed to finish; this call does not
        wait for it.
        """
        self._cancelled.set()

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Timer callback %r failed", self._callback)
