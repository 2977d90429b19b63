"""Tests for PermitLimiter bounded concurrency control."""

import threading
import time

import pytest

from bulk_operator.patterns.permits import (
    AcquisitionTimeoutError,
    PermitLimiter,
    PermitMetrics,
)


class TestPermitLimiterBasic:
    """Basic functionality tests for PermitLimiter."""

    def test_initialization_default_max(self):
        """Test PermitLimiter initializes with a single permit by default."""
        limiter = PermitLimiter()
        assert limiter.max_permits == 1

    def test_initialization_rejects_zero(self):
        """Test that max_permits below 1 is rejected."""
        with pytest.raises(ValueError):
            PermitLimiter(max_permits=0)

    def test_initial_metrics(self):
        """Test initial metrics are zero."""
        metrics = PermitLimiter(max_permits=3).get_metrics()
        assert metrics == PermitMetrics(
            current_active=0, peak_active=0, total_acquisitions=0, timeout_count=0
        )


class TestPermitLimiterAcquireRelease:
    """Tests for acquiring and releasing permits."""

    def test_acquire_and_release(self):
        """Test that metrics follow acquire and release."""
        limiter = PermitLimiter(max_permits=2)

        limiter.acquire()
        limiter.acquire()
        assert limiter.in_flight == 2

        limiter.release()
        metrics = limiter.get_metrics()
        assert metrics.current_active == 1
        assert metrics.peak_active == 2
        assert metrics.total_acquisitions == 2

    def test_context_manager(self):
        """Test acquire and release via the context manager."""
        limiter = PermitLimiter(max_permits=1)

        with limiter as lim:
            assert lim.in_flight == 1

        assert limiter.in_flight == 0

    def test_release_without_acquire_raises(self):
        """Test that releasing an unheld permit fails."""
        with pytest.raises(ValueError):
            PermitLimiter().release()

    def test_timeout_raises(self):
        """Test that acquisition times out when every permit is held."""
        limiter = PermitLimiter(max_permits=1)
        limiter.acquire()

        with pytest.raises(AcquisitionTimeoutError):
            limiter.acquire(timeout=0.01)

        assert limiter.get_metrics().timeout_count == 1
        assert limiter.in_flight == 1

    def test_release_from_another_thread(self):
        """Test that a permit acquired on one thread can be released on another."""
        limiter = PermitLimiter(max_permits=1)
        limiter.acquire()

        releaser = threading.Thread(target=limiter.release)
        releaser.start()
        releaser.join()

        limiter.acquire(timeout=1.0)
        assert limiter.get_metrics().total_acquisitions == 2


class TestPermitLimiterConcurrency:
    """Tests for concurrency control enforcement."""

    def test_max_permits_enforced(self):
        """Test that no more than max_permits holders run at once."""
        limiter = PermitLimiter(max_permits=3)
        active = 0
        max_seen = 0
        lock = threading.Lock()

        def task() -> None:
            nonlocal active, max_seen
            with limiter:
                with lock:
                    active += 1
                    max_seen = max(max_seen, active)
                time.sleep(0.005)
                with lock:
                    active -= 1

        threads = [threading.Thread(target=task) for _ in range(12)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert max_seen <= 3
        assert limiter.get_metrics().peak_active <= 3
        assert limiter.get_metrics().total_acquisitions == 12


class TestPermitLimiterIdle:
    """Tests for waiting until no permit is held."""

    def test_idle_when_nothing_held(self):
        """Test that a fresh limiter is immediately idle."""
        assert PermitLimiter().wait_until_idle(timeout=0) is True

    def test_wait_times_out_while_held(self):
        """Test that waiting returns False while a permit is held."""
        limiter = PermitLimiter()
        limiter.acquire()
        assert limiter.wait_until_idle(timeout=0.01) is False

    def test_wait_returns_after_release(self):
        """Test that waiting returns once another thread releases."""
        limiter = PermitLimiter()
        limiter.acquire()

        timer = threading.Timer(0.02, limiter.release)
        timer.start()

        assert limiter.wait_until_idle(timeout=2.0) is True
        timer.join()
