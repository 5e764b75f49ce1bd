"""
Exception taxonomy for spquery.

Composition problems are raised synchronously; everything that happens
after a request has been dispatched surfaces through the awaitable that
the invocation returned.
"""

from typing import Optional


class SPQueryError(Exception):
    """Base class for all spquery errors."""
    pass


class ConfigurationError(SPQueryError):
    """Raised when a node or client is built from a missing or malformed URL."""
    pass


class TransportError(SPQueryError):
    """Raised when the HTTP transport cannot complete a request."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ODataError(SPQueryError):
    """
    Raised for a 4xx/5xx response.

    Attributes:
        status: HTTP status code
        message: Server-provided error message (or the reason phrase)
        code: Server-provided error code, if any
        raw: Raw response body text
        url: URL of the originating request
    """

    def __init__(
        self,
        status: int,
        message: str,
        code: Optional[str] = None,
        raw: str = "",
        url: Optional[str] = None,
    ):
        super().__init__(f"[{status}] {message}")
        self.status = status
        self.message = message
        self.code = code
        self.raw = raw
        self.url = url


class ThrottledError(ODataError):
    """Raised when a throttled (429/503) request exhausts its retries."""

    def __init__(
        self,
        status: int,
        message: str,
        code: Optional[str] = None,
        raw: str = "",
        url: Optional[str] = None,
        retry_after: Optional[float] = None,
        attempts: int = 0,
    ):
        super().__init__(status, message, code=code, raw=raw, url=url)
        self.retry_after = retry_after
        self.attempts = attempts


class ParseError(SPQueryError):
    """Raised when a response body does not match the expected shape."""

    def __init__(self, message: str, raw: str = "", url: Optional[str] = None):
        super().__init__(message)
        self.raw = raw
        self.url = url


class BatchStateError(SPQueryError):
    """Raised when registering on, or re-executing, a batch that is no longer open."""
    pass
