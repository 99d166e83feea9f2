"""
Custom exceptions for guidelint.

Provides a hierarchy of exceptions for better error handling and debugging.
"""

from typing import Any, Dict, Optional


class GuideLintError(Exception):
    """Base exception for all guidelint errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(GuideLintError):
    """Raised when there are configuration issues."""
    pass


class DiscoveryError(GuideLintError):
    """Raised when the guide tree cannot be walked."""
    pass


class GuideParseError(GuideLintError):
    """A Markdown file could not be read or decoded."""

    def __init__(self, path: str, message: str, **kwargs):
        super().__init__(f"{path}: {message}", **kwargs)
        self.path = path
        self.reason = message


class ExternalLinkError(GuideLintError):
    """External URL probing failed."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(f"{url}: {message}", **kwargs)
        self.url = url
        self.reason = message
        self.status_code = status_code


class ExternalServiceError(ExternalLinkError):
    """The remote server failed (5xx); worth retrying."""
    pass


class RateLimitError(ExternalLinkError):
    """Rate limiting errors."""

    def __init__(self, url: str, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(url, message, status_code=429, **kwargs)
        self.retry_after = retry_after


class CircuitBreakerError(GuideLintError):
    """Circuit breaker is open, preventing calls."""
    pass


class RenderError(GuideLintError):
    """Report rendering errors."""
    pass
