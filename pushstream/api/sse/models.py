"""
SSE Models
==========

Pydantic models for the SSE session state machine.
Defines session status, handler results and inbox messages.
"""

from typing import Optional, Dict, Any, List, Union
from enum import Enum
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .events import SSEEvent, as_event


class SessionStatus(str, Enum):
    """SSE session lifecycle status."""

    INITIALIZING = "initializing"
    STREAMING = "streaming"
    TERMINATED = "terminated"


class TerminateReason(str, Enum):
    """Why a session ended, as passed to ``SSEHandler.terminate``."""

    STOP = "stop"
    CLIENT_DISCONNECT = "client_disconnect"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    NO_CONTENT = "no_content"
    REJECTED = "rejected"
    ERROR = "error"


class _HandlerResult(BaseModel):
    state: Any = Field(None, description="Application state for the next callback")

    model_config = ConfigDict(arbitrary_types_allowed=True)


# Dispatch results


class Send(_HandlerResult):
    """Write ``event`` to the stream, then adopt ``state``."""

    event: SSEEvent = Field(..., description="Event to write")

    @field_validator("event", mode="before")
    @classmethod
    def coerce_event(cls, v: Any) -> SSEEvent:
        """Accept plain mappings as events."""
        return as_event(v)


class NoSend(_HandlerResult):
    """Adopt ``state`` without writing."""


class Stop(_HandlerResult):
    """Adopt ``state`` and end the stream."""


DispatchResult = Union[Send, NoSend, Stop]


# Handshake results


class Ready(_HandlerResult):
    """Start streaming, writing ``events`` first."""

    events: List[SSEEvent] = Field(default_factory=list, description="Initial events")

    @field_validator("events", mode="before")
    @classmethod
    def coerce_events(cls, v: Any) -> List[SSEEvent]:
        """Accept plain mappings as events."""
        return [as_event(event) for event in v]


class NoContent(_HandlerResult):
    """Answer 204 and do not stream."""


class Reject(_HandlerResult):
    """Answer with a custom status, headers and body; do not stream."""

    status_code: int = Field(..., ge=100, le=599, description="HTTP status code")
    headers: Dict[str, str] = Field(default_factory=dict, description="Response headers")
    body: Union[bytes, str] = Field(b"", description="Response body")


HandshakeResult = Union[Ready, NoContent, Reject]


# Inbox messages


class NotifyMessage(BaseModel):
    """Message pushed through the notification bridge."""

    message: Any = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class InfoMessage(BaseModel):
    """Any other message delivered to a session."""

    message: Any = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class TransportClosed(BaseModel):
    """The underlying connection went away."""

    reason: Optional[str] = Field(None, description="Transport supplied detail")


InboxItem = Union[NotifyMessage, InfoMessage, TransportClosed]
