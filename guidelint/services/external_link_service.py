"""
External link probing.

Checks that http(s) URLs referenced by the guides still answer, with rate
limiting, retries and a circuit breaker per host so that one dead server does
not stall or flood the run.
"""

from typing import Dict, Iterable, List, Optional
from urllib.parse import urlsplit

import httpx
import structlog

from guidelint.core.config import ExternalLinkConfig
from guidelint.core.exceptions import (
    CircuitBreakerError,
    ExternalLinkError,
    ExternalServiceError,
    RateLimitError,
)
from guidelint.core.models import LinkProbe
from guidelint.utils.reliability import (
    AdaptiveRateLimiter,
    CircuitBreaker,
    ParallelProcessor,
    with_retry,
)

logger = structlog.get_logger(__name__)

# Servers that refuse HEAD often answer one of these
HEAD_UNSUPPORTED = {403, 405, 501}
RETRYABLE = (httpx.TransportError, ExternalServiceError, RateLimitError)
ACQUIRE_TIMEOUT = 30.0


class ExternalLinkChecker:
    """
    Probes external URLs with reliability patterns and structured error handling.
    """

    def __init__(
        self,
        config: ExternalLinkConfig,
        client: Optional[httpx.Client] = None,
        rate_limiter: Optional[AdaptiveRateLimiter] = None,
    ):
        self.config = config
        self.client = client or httpx.Client(
            timeout=httpx.Timeout(config.timeout),
            headers={"User-Agent": config.user_agent},
            follow_redirects=True,
        )
        self.rate_limiter = rate_limiter or AdaptiveRateLimiter(
            calls_per_second=config.rate_limit_calls_per_second, burst_size=config.max_workers
        )
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._request_with_retry = with_retry(
            max_attempts=config.max_attempts,
            backoff_max=10.0,
            retry_exceptions=RETRYABLE,
        )(self._request)

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def is_ignored(self, url: str) -> bool:
        host = (urlsplit(url).hostname or "").lower()
        return any(host == h or host.endswith("." + h) for h in self.config.ignore_hosts)

    def probe_all(self, urls: Iterable[str]) -> Dict[str, LinkProbe]:
        """
        Probe every distinct URL once.

        Args:
            urls: URLs to probe; duplicates and ignored hosts are dropped

        Returns:
            Mapping of URL to probe result
        """
        unique: List[str] = []
        for url in urls:
            url = url.split("#", 1)[0]
            if url and url not in unique and not self.is_ignored(url):
                unique.append(url)

        if not unique:
            return {}

        logger.info("Probing external links", urls=len(unique), workers=self.config.max_workers)

        processor = ParallelProcessor(max_workers=self.config.max_workers)
        results, errors = processor.process_batch(unique, self.probe)

        probes: Dict[str, LinkProbe] = {}
        for url, status_code in results.items():
            probes[url] = LinkProbe(url=url, status_code=status_code, ok=True)
        for url, error in errors.items():
            probes[url] = LinkProbe(
                url=url,
                status_code=getattr(error, "status_code", None),
                ok=False,
                error=_describe(error),
            )

        failed = sum(1 for probe in probes.values() if not probe.ok)
        logger.info("External link probing completed", urls=len(probes), failed=failed)
        return probes

    def probe(self, url: str) -> int:
        """Probe one URL through its host's circuit breaker; returns the status code."""
        host = (urlsplit(url).hostname or "").lower()
        breaker = self._breakers.setdefault(
            host,
            CircuitBreaker(
                f"host:{host}",
                failure_threshold=self.config.host_failure_threshold,
                recovery_timeout=60.0,
                expected_exception=RETRYABLE,
            ),
        )
        return breaker.call(self._request_with_retry, url)

    def _request(self, url: str) -> int:
        # Every attempt, retries included, spends a token
        if not self.rate_limiter.acquire(timeout=ACQUIRE_TIMEOUT):
            raise RateLimitError(url, "Rate limit timeout exceeded")
        try:
            response = self.client.head(url)
            if response.status_code in HEAD_UNSUPPORTED:
                response = self.client.get(url)
        except httpx.TransportError:
            self.rate_limiter.on_error()
            raise

        status = response.status_code
        if status == 429 or status >= 500:
            self.rate_limiter.on_error()
        else:
            self.rate_limiter.on_success()

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                url,
                "HTTP 429 Too Many Requests",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status >= 500:
            raise ExternalServiceError(url, f"HTTP {status}", status_code=status)
        if status >= 400:
            raise ExternalLinkError(url, f"HTTP {status}", status_code=status)
        return status

    @property
    def breaker_status(self) -> Dict[str, Dict]:
        return {host: breaker.status for host, breaker in self._breakers.items()}


def _describe(error: Exception) -> str:
    if isinstance(error, CircuitBreakerError):
        return "host skipped after repeated failures"
    if isinstance(error, ExternalLinkError):
        return error.reason
    if isinstance(error, httpx.TimeoutException):
        return "timed out"
    if isinstance(error, httpx.TransportError):
        return f"connection failed ({type(error).__name__})"
    return str(error)
