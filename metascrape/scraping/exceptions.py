"""Custom exceptions for the scraping pipeline."""

from typing import Optional


class ScraperError(Exception):
    """Base class for scraping failures."""


class NetworkError(ScraperError):
    """Raised when a metadata source cannot be reached.

    Network tools raise it for transport failures and non-2xx responses.
    The fallback layer raises it when the mirror host also fails or
    answers with an empty body.
    """

    def __init__(self, message: str, url: Optional[str] = None, original_error: Exception = None):
        """Initialize NetworkError.

        Args:
            message: Human-readable error message
            url: URL of the failed request (optional)
            original_error: Underlying transport exception (optional)
        """
        super().__init__(message)
        self.url = url
        self.original_error = original_error

    @classmethod
    def from_transport_error(cls, url: str, error: Exception) -> "NetworkError":
        """Create error for a failed HTTP exchange (timeout, DNS, status)."""
        return cls(f"Request to {url} failed: {type(error).__name__}: {error}", url=url, original_error=error)

    @classmethod
    def from_empty_response(cls, url: str) -> "NetworkError":
        """Create error for a response without a body."""
        return cls(f"Empty response from {url}", url=url)
