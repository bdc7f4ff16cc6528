"""Error taxonomy for the batch engine.

Retryable classes are handled inside the request client's attempt loop.
Terminal classes propagate to the worker pool, which does not intercept
them, and from there to the caller of ``run``.
"""

from typing import Optional


class BatchCallError(Exception):
    """Base class for all errors raised by batchcall."""


class AttemptTimeoutError(BatchCallError, TimeoutError):
    """The per-attempt timeout guard fired."""

    def __init__(self, message: str = "request timed out", attempt: Optional[int] = None, timeout_ms: Optional[float] = None):
        self.attempt = attempt
        self.timeout_ms = timeout_ms
        super().__init__(message)


class TransportError(BatchCallError):
    """Generic connectivity failure (DNS, connection reset, ...)."""


class HTTPStatusError(BatchCallError):
    """A response arrived with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body}")


class RetryableHTTPError(HTTPStatusError):
    """Status 429 or 5xx with attempts remaining."""


class TerminalHTTPError(HTTPStatusError):
    """Any other non-success status, or a retryable one with no attempts left."""


class BatchCancelledError(BatchCallError):
    """The batch-wide cancellation event was set while work was pending."""


class RequestFileError(BatchCallError):
    """A request descriptor file could not be read or parsed."""


class RetryLoopDefect(AssertionError):
    """The attempt loop finished without producing a terminal outcome."""
