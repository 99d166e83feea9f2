"""
Reliability patterns for guidelint.

Provides circuit breakers, retry logic, rate limiting and a thread pool used
when probing external URLs, plus a small health checker for ``doctor``.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple, Type, Union

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from guidelint.core.exceptions import CircuitBreakerError

logger = structlog.get_logger(__name__)

# tenacity's before_sleep_log wants a standard library logger
_std_logger = logging.getLogger(__name__)


class CircuitBreakerState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker pattern implementation.

    Stops calling a failing dependency (an unreachable host) once
    ``failure_threshold`` consecutive failures have been seen, and lets a
    single trial call through after ``recovery_timeout`` seconds.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception: Union[Type[Exception], Tuple[Type[Exception], ...]] = Exception,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = CircuitBreakerState.CLOSED
        self._lock = threading.Lock()

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute function with circuit breaker protection."""
        with self._lock:
            if self.state == CircuitBreakerState.OPEN:
                if self._should_attempt_reset():
                    self.state = CircuitBreakerState.HALF_OPEN
                    logger.info("Circuit breaker half-open", name=self.name)
                else:
                    raise CircuitBreakerError(
                        f"Circuit breaker '{self.name}' is open after "
                        f"{self.failure_count} failures",
                        {"name": self.name, "failure_count": self.failure_count},
                    )

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self.failure_count = 0
            self.state = CircuitBreakerState.CLOSED
            self.last_failure_time = None

    def _should_attempt_reset(self) -> bool:
        return (
            self.last_failure_time is not None
            and time.time() >= self.last_failure_time + self.recovery_timeout
        )

    def _on_success(self):
        with self._lock:
            self.failure_count = 0
            if self.state == CircuitBreakerState.HALF_OPEN:
                self.state = CircuitBreakerState.CLOSED
                logger.info("Circuit breaker closed", name=self.name)

    def _on_failure(self):
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.time()

            if (
                self.state == CircuitBreakerState.HALF_OPEN
                or self.failure_count >= self.failure_threshold
            ):
                self.state = CircuitBreakerState.OPEN
                logger.warning(
                    "Circuit breaker opened",
                    name=self.name,
                    failure_count=self.failure_count,
                    threshold=self.failure_threshold,
                )

    @property
    def status(self) -> Dict[str, Any]:
        """Get current circuit breaker status."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
        }


class AdaptiveRateLimiter:
    """
    Adaptive rate limiter using token bucket algorithm.

    Slows down after repeated errors and recovers after a run of successes.
    """

    def __init__(self, calls_per_second: float = 2.0, burst_size: int = 5, adaptive: bool = True):
        self.base_calls_per_second = calls_per_second
        self.current_calls_per_second = calls_per_second
        self.burst_size = burst_size
        self.adaptive = adaptive

        self.tokens = float(burst_size)
        self.last_refill = time.time()
        self.consecutive_errors = 0
        self.consecutive_successes = 0
        self._lock = threading.Lock()

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Acquire a token, waiting if necessary.

        Returns True if token acquired, False if timeout exceeded.
        """
        start_time = time.time()

        while True:
            with self._lock:
                self._refill_tokens()

                if self.tokens >= 1:
                    self.tokens -= 1
                    return True

                wait_time = (1 - self.tokens) / self.current_calls_per_second

            if timeout is not None and (time.time() - start_time + wait_time) > timeout:
                return False

            time.sleep(min(wait_time, 0.1))

    def _refill_tokens(self):
        now = time.time()
        elapsed = now - self.last_refill
        self.tokens = min(self.burst_size, self.tokens + elapsed * self.current_calls_per_second)
        self.last_refill = now

    def on_success(self):
        """Called after successful operation to potentially increase rate."""
        if not self.adaptive:
            return

        with self._lock:
            self.consecutive_errors = 0
            self.consecutive_successes += 1

            if self.consecutive_successes >= 10:
                self.current_calls_per_second = min(
                    self.base_calls_per_second * 1.5, self.current_calls_per_second * 1.1
                )
                self.consecutive_successes = 0

    def on_error(self):
        """Called after error to potentially decrease rate."""
        if not self.adaptive:
            return

        with self._lock:
            self.consecutive_successes = 0
            self.consecutive_errors += 1

            if self.consecutive_errors >= 3:
                self.current_calls_per_second = max(
                    self.base_calls_per_second * 0.5, self.current_calls_per_second * 0.8
                )
                self.consecutive_errors = 0

    @property
    def status(self) -> Dict[str, Any]:
        return {
            "base_calls_per_second": self.base_calls_per_second,
            "current_calls_per_second": self.current_calls_per_second,
            "tokens": self.tokens,
        }


class wait_retry_after(wait_base):
    """Wait as long as the server's Retry-After asks, else defer to ``fallback``."""

    def __init__(self, fallback: wait_base, max_wait: float):
        self.fallback = fallback
        self.max_wait = max_wait

    def __call__(self, retry_state) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return min(float(retry_after), self.max_wait)
        return self.fallback(retry_state)


def with_retry(
    max_attempts: int = 3,
    backoff_min: float = 0.5,
    backoff_max: float = 30.0,
    retry_exceptions: tuple = (Exception,),
):
    """
    Decorator to add retry logic with exponential backoff.

    Errors carrying a ``retry_after`` (see ``RateLimitError``) wait that long
    instead, capped at ``backoff_max``.
    """

    def decorator(func: Callable) -> Callable:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_retry_after(
                wait_exponential(multiplier=1, min=backoff_min, max=backoff_max),
                max_wait=backoff_max,
            ),
            retry=retry_if_exception_type(retry_exceptions),
            before_sleep=before_sleep_log(_std_logger, logging.WARNING),
            reraise=True,
        )
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except retry_exceptions as e:
                logger.debug(
                    "Retryable failure",
                    function=func.__name__,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

        return wrapper

    return decorator


class ParallelProcessor:
    """Thread pool runner collecting results and errors per item."""

    def __init__(self, max_workers: int = 6):
        self.max_workers = max_workers

    def process_batch(
        self, items: Iterable[Hashable], processor_func: Callable, timeout: Optional[float] = None
    ) -> Tuple[Dict[Any, Any], Dict[Any, Exception]]:
        """
        Process items in parallel.

        Returns:
            Tuple of (results by item, exceptions by item)
        """
        results: Dict[Any, Any] = {}
        errors: Dict[Any, Exception] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_item = {executor.submit(processor_func, item): item for item in items}

            for future in as_completed(future_to_item, timeout=timeout):
                item = future_to_item[future]
                try:
                    results[item] = future.result()
                except Exception as e:
                    logger.debug(
                        "Parallel processing error",
                        item=str(item)[:100],
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    errors[item] = e

        return results, errors


class HealthChecker:
    """Runs named diagnostic checks and records how each one went."""

    def __init__(self):
        self.checks: Dict[str, Callable] = {}
        self.last_results: Dict[str, Dict[str, Any]] = {}

    def register_check(self, name: str, check_func: Callable):
        self.checks[name] = check_func

    def check_all(self) -> Dict[str, Dict[str, Any]]:
        results = {}

        for name, check_func in self.checks.items():
            start_time = time.time()
            try:
                check_result = check_func()
                results[name] = {
                    "status": "healthy",
                    "response_time_ms": (time.time() - start_time) * 1000,
                    "details": check_result if isinstance(check_result, dict) else {},
                }
            except Exception as e:
                results[name] = {
                    "status": "unhealthy",
                    "response_time_ms": (time.time() - start_time) * 1000,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }

        self.last_results = results
        return results

    def is_healthy(self, service_name: Optional[str] = None) -> bool:
        if not self.last_results:
            self.check_all()

        if service_name:
            return self.last_results.get(service_name, {}).get("status") == "healthy"

        return all(result.get("status") == "healthy" for result in self.last_results.values())


def track_performance(operation_name: str):
    """
    Decorator that logs how long an operation took.

    Args:
        operation_name: Name of the operation for logging
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            logger.debug("Operation started", operation=operation_name)

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "Operation failed",
                    operation=operation_name,
                    duration_seconds=round(time.time() - start_time, 3),
                    error=str(e),
                )
                raise

            logger.info(
                "Operation completed",
                operation=operation_name,
                duration_seconds=round(time.time() - start_time, 3),
            )
            return result

        return wrapper

    return decorator
