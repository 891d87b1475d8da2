"""
Server-Sent Events (SSE) Infrastructure
======================================

SSE session handling for ASGI applications.
Applications implement ``SSEHandler``; the session owns the connection.

Components:
- Events: Event model and wire encoder for the SSE protocol
- Session: Per-connection state machine (handshake, dispatch, termination)
- Notify: Fire-and-forget delivery into running sessions
- Transport: Connection context abstraction and its ASGI implementation
- Endpoint: ASGI app running one session per request
"""

from .errors import (
    SSEProtocolError,
    DataRequiredError,
    HandlerConfigMissingError,
    TransportWriteError,
    InvalidHandlerResultError,
)
from .events import SSEEvent, format_sse_event
from .models import (
    SessionStatus,
    TerminateReason,
    Send,
    NoSend,
    Stop,
    Ready,
    NoContent,
    Reject,
    NotifyMessage,
    InfoMessage,
    TransportClosed,
)
from .handler import SSEHandler
from .notify import SessionHandle, notify, send_info
from .transport import ConnectionContext, ASGIConnectionContext
from .session import SSESession
from .endpoint import SSEEndpoint

__all__ = [
    "SSEProtocolError",
    "DataRequiredError",
    "HandlerConfigMissingError",
    "TransportWriteError",
    "InvalidHandlerResultError",
    "SSEEvent",
    "format_sse_event",
    "SessionStatus",
    "TerminateReason",
    "Send",
    "NoSend",
    "Stop",
    "Ready",
    "NoContent",
    "Reject",
    "NotifyMessage",
    "InfoMessage",
    "TransportClosed",
    "SSEHandler",
    "SessionHandle",
    "notify",
    "send_info",
    "ConnectionContext",
    "ASGIConnectionContext",
    "SSESession",
    "SSEEndpoint",
]
