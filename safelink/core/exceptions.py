"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Error kinds:
- InvalidURLError: caller supplied an unsafe or malformed URL (HTTP 400)
- ShortCodeNotFoundError: no live link for a code, missing or expired (HTTP 404)
- StorageError: relational or cache backend failed (HTTP 500, generic body)
- RateLimitExceededError: caller exceeded the submission window (HTTP 429)
"""

from typing import Optional


class URLShortenerException(Exception):
    """Base exception for URL shortener service."""
    pass


class InvalidURLError(URLShortenerException):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL format", rule: str = "format"):
        self.url = url
        self.reason = reason
        self.rule = rule
        super().__init__(reason)


class UnsafeRedirectError(InvalidURLError):
    """Raised when a stored URL no longer passes the redirect re-check."""

    def __init__(self, url: str, reason: str = "invalid redirect url"):
        super().__init__(url, reason=reason, rule="redirect")


class ShortCodeNotFoundError(URLShortenerException):
    """Raised when a short code is missing or its link has expired."""

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' not found")


class StorageError(URLShortenerException):
    """Raised when database or cache operations fail."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Storage error: {message}")


class CacheError(StorageError):
    """Raised when the key-value cache is unreachable or errors."""
    pass


class RateLimitExceededError(URLShortenerException):
    """Raised when an identity exceeds its admission window."""

    def __init__(self, identity: str, retry_after: float):
        self.identity = identity
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for '{identity}', retry after {retry_after:.1f}s")
