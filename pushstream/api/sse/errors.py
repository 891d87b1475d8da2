"""
SSE Errors
==========

Exception hierarchy raised by the SSE session machinery.
"""

from typing import Any, Optional


class SSEProtocolError(Exception):
    """Base class for SSE session errors."""


class DataRequiredError(SSEProtocolError):
    """Raised when an event without data is encoded."""

    def __init__(self, message: str = "SSE events require a data field"):
        super().__init__(message)


class HandlerConfigMissingError(SSEProtocolError):
    """Raised when a session is built without a handler."""

    def __init__(self, message: str = "No SSE handler configured"):
        super().__init__(message)


class TransportWriteError(SSEProtocolError):
    """Raised by a connection context when a chunk cannot be written."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InvalidHandlerResultError(SSEProtocolError):
    """Raised when a handler callback returns an unknown result."""

    def __init__(self, callback: str, result: Any):
        super().__init__(
            f"Handler callback '{callback}' returned unsupported result {type(result).__name__}"
        )
        self.callback = callback
        self.result = result
