"""
Test suite for reliability patterns and error handling.

Validates circuit breakers, rate limiting, retry logic and the parallel
processor used for external link probing.
"""

import time

import pytest

from guidelint.core.exceptions import CircuitBreakerError, ExternalServiceError, RateLimitError
from guidelint.utils.reliability import (
    AdaptiveRateLimiter,
    CircuitBreaker,
    HealthChecker,
    ParallelProcessor,
    track_performance,
    with_retry,
)


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    def test_circuit_breaker_closed_state(self):
        """Test circuit breaker allows calls when closed."""
        breaker = CircuitBreaker("test", failure_threshold=3)

        result = breaker.call(lambda: "success")
        assert result == "success"
        assert breaker.state.value == "closed"

    def test_circuit_breaker_opens_on_failures(self):
        """Test circuit breaker opens after threshold failures."""
        breaker = CircuitBreaker("test", failure_threshold=2)

        def failing_func():
            raise ConnectionError("host down")

        with pytest.raises(ConnectionError):
            breaker.call(failing_func)
        assert breaker.failure_count == 1

        with pytest.raises(ConnectionError):
            breaker.call(failing_func)
        assert breaker.state.value == "open"

        # Third call should be blocked by circuit breaker
        with pytest.raises(CircuitBreakerError):
            breaker.call(failing_func)

    def test_unexpected_exceptions_do_not_count(self):
        """Test only the expected exception types trip the breaker."""
        breaker = CircuitBreaker(
            "test", failure_threshold=1, expected_exception=(ConnectionError, ExternalServiceError)
        )

        with pytest.raises(ValueError):
            breaker.call(lambda: int("not a number"))

        assert breaker.failure_count == 0
        assert breaker.state.value == "closed"

    def test_circuit_breaker_recovery(self):
        """Test circuit breaker recovery after timeout."""
        breaker = CircuitBreaker("test", failure_threshold=1, recovery_timeout=0.1)

        def failing_func():
            raise ConnectionError("host down")

        with pytest.raises(ConnectionError):
            breaker.call(failing_func)
        assert breaker.state.value == "open"

        time.sleep(0.2)

        assert breaker.call(lambda: "recovered") == "recovered"
        assert breaker.state.value == "closed"
        assert breaker.failure_count == 0

    def test_half_open_failure_reopens(self):
        breaker = CircuitBreaker("test", failure_threshold=3, recovery_timeout=0.05)
        for _ in range(3):
            with pytest.raises(ConnectionError):
                breaker.call(self._fail)

        time.sleep(0.1)
        with pytest.raises(ConnectionError):
            breaker.call(self._fail)

        assert breaker.state.value == "open"
        assert breaker.status["failure_count"] == 4

        breaker.reset()
        assert breaker.state.value == "closed"

    @staticmethod
    def _fail():
        raise ConnectionError("host down")


class TestAdaptiveRateLimiter:
    """Test adaptive rate limiting functionality."""

    def test_rate_limiter_allows_burst(self):
        """Test rate limiter allows burst of requests."""
        limiter = AdaptiveRateLimiter(calls_per_second=10, burst_size=5)

        start_time = time.time()
        for _ in range(5):
            assert limiter.acquire(timeout=1.0)
        elapsed = time.time() - start_time

        assert elapsed < 0.1

    def test_rate_limiter_times_out(self):
        """Test acquire gives up when the wait would exceed the timeout."""
        limiter = AdaptiveRateLimiter(calls_per_second=0.5, burst_size=1)

        assert limiter.acquire(timeout=0.1)
        assert not limiter.acquire(timeout=0.1)

    def test_adaptive_rate_adjustment(self):
        """Test adaptive rate adjustment based on success/error patterns."""
        limiter = AdaptiveRateLimiter(calls_per_second=2.0, adaptive=True)
        initial_rate = limiter.current_calls_per_second

        for _ in range(3):
            limiter.on_error()

        decreased_rate = limiter.current_calls_per_second
        assert decreased_rate < initial_rate

        for _ in range(25):
            limiter.on_success()

        final_rate = limiter.current_calls_per_second
        assert final_rate > decreased_rate
        assert final_rate <= initial_rate * 1.5


class TestParallelProcessor:
    """Test parallel processing with reliability patterns."""

    def test_parallel_processing_success(self):
        processor = ParallelProcessor(max_workers=4)

        results, errors = processor.process_batch([1, 2, 3, 4, 5], lambda x: x * x, timeout=5.0)

        assert results == {1: 1, 2: 4, 3: 9, 4: 16, 5: 25}
        assert errors == {}

    def test_parallel_processing_with_failures(self):
        """Test individual failures are collected, not raised."""
        processor = ParallelProcessor(max_workers=4)

        def sometimes_fail(x):
            if x == 3:
                raise ValueError(f"Intentional failure for {x}")
            return x * 2

        results, errors = processor.process_batch([1, 2, 3, 4, 5], sometimes_fail, timeout=5.0)

        assert results == {1: 2, 2: 4, 4: 8, 5: 10}
        assert list(errors) == [3]
        assert isinstance(errors[3], ValueError)


class TestRetryLogic:
    """Test retry decorator functionality."""

    def test_retry_succeeds_eventually(self):
        call_count = 0

        @with_retry(max_attempts=3, backoff_min=0, backoff_max=0, retry_exceptions=(ValueError,))
        def flaky_func():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Not ready yet")
            return "success"

        assert flaky_func() == "success"
        assert call_count == 3

    def test_retry_gives_up_after_max_attempts(self):
        """Test the last error is re-raised once attempts run out."""
        call_count = 0

        @with_retry(max_attempts=2, backoff_min=0, backoff_max=0, retry_exceptions=(ValueError,))
        def always_fail():
            nonlocal call_count
            call_count += 1
            raise ValueError("Always fails")

        with pytest.raises(ValueError):
            always_fail()
        assert call_count == 2

    def test_retry_ignores_non_retry_exceptions(self):
        call_count = 0

        @with_retry(max_attempts=3, retry_exceptions=(ValueError,))
        def wrong_exception():
            nonlocal call_count
            call_count += 1
            raise TypeError("Wrong exception type")

        with pytest.raises(TypeError):
            wrong_exception()
        assert call_count == 1

    def test_retry_waits_for_retry_after(self):
        """Test a server's Retry-After replaces the exponential backoff."""
        calls = []

        @with_retry(max_attempts=2, backoff_min=5, backoff_max=10, retry_exceptions=(RateLimitError,))
        def limited():
            calls.append(time.time())
            if len(calls) == 1:
                raise RateLimitError("https://site.test/", "HTTP 429", retry_after=0)
            return "ok"

        assert limited() == "ok"
        assert calls[1] - calls[0] < 1.0

    def test_retry_after_capped_at_backoff_max(self):
        calls = []

        @with_retry(max_attempts=2, backoff_min=0, backoff_max=0.1, retry_exceptions=(RateLimitError,))
        def limited():
            calls.append(time.time())
            if len(calls) == 1:
                raise RateLimitError("https://site.test/", "HTTP 429", retry_after=60)
            return "ok"

        assert limited() == "ok"
        assert calls[1] - calls[0] < 1.0


class TestHealthChecker:
    """Test health checking functionality."""

    def test_health_checker_with_failures(self):
        checker = HealthChecker()
        checker.register_check("healthy", lambda: {"collections": 2})
        checker.register_check("unhealthy", self._down)

        results = checker.check_all()

        assert results["healthy"]["status"] == "healthy"
        assert results["healthy"]["details"] == {"collections": 2}
        assert results["unhealthy"]["error"] == "Service down"
        assert results["unhealthy"]["error_type"] == "ConnectionError"
        assert checker.is_healthy("healthy")
        assert not checker.is_healthy()

    @staticmethod
    def _down():
        raise ConnectionError("Service down")


def test_track_performance_preserves_result_and_errors():
    @track_performance("double")
    def double(x):
        return x * 2

    @track_performance("explode")
    def explode():
        raise RuntimeError("boom")

    assert double(21) == 42
    assert double.__name__ == "double"
    with pytest.raises(RuntimeError):
        explode()
