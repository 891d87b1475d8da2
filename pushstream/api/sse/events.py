"""
SSE Events
==========

Server-Sent Events value type and wire encoding.
Turns event values into the exact bytes written on the stream.
"""

from typing import Optional, Dict, Any, List, Mapping, Union
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import DataRequiredError

# Line breaks accepted inside field values; each one starts a new protocol line
LINE_BREAK = re.compile(rb"\r\n|\r|\n")

# Empty key accepted as a synonym of ``comment`` when building from a mapping
COMMENT_ALIAS = ""


def _to_bytes(value: Any) -> Optional[bytes]:
    if value is None or isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value).encode("ascii")
    raise ValueError(f"Unsupported SSE field value: {type(value).__name__}")


class SSEEvent(BaseModel):
    """One event on an SSE stream. ``data`` is required when encoding."""

    # Misspelled field names fail here instead of surfacing as missing data
    model_config = ConfigDict(extra="forbid")

    id: Optional[bytes] = Field(None, description="Event identifier")
    event: Optional[bytes] = Field(None, description="Event type name")
    data: Optional[bytes] = Field(None, description="Event payload")
    retry: Optional[bytes] = Field(None, description="Client reconnection delay in milliseconds")
    comment: Optional[bytes] = Field(None, description="Comment lines sent before the fields")

    @field_validator("id", "event", "data", "retry", "comment", mode="before")
    @classmethod
    def coerce_bytes(cls, v: Any) -> Optional[bytes]:
        """Accept str and int values, store bytes."""
        return _to_bytes(v)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "SSEEvent":
        """
        Build an event from a plain mapping.

        The empty key is folded into ``comment``; when both are given the
        ``comment`` value comes first.
        """
        fields = dict(values)
        alias = _to_bytes(fields.pop(COMMENT_ALIAS, None))
        if alias is not None:
            comment = _to_bytes(fields.get("comment"))
            fields["comment"] = alias if comment is None else comment + b"\n" + alias
        return cls(**fields)


EventLike = Union[SSEEvent, Mapping[str, Any]]


def as_event(event: EventLike) -> SSEEvent:
    """Normalise a mapping or event into an ``SSEEvent``."""
    if isinstance(event, SSEEvent):
        return event
    return SSEEvent.from_mapping(event)


def _field_lines(prefix: bytes, value: Optional[bytes]) -> List[bytes]:
    if value is None:
        return []
    return [prefix + segment + b"\n" for segment in LINE_BREAK.split(value)]


def format_sse_event(event: EventLike) -> bytes:
    """
    Format an event for the Server-Sent Events protocol.

    Lines are written in a fixed order: comments, id, event, data, retry,
    then a blank line terminating the event.

    Args:
        event: Event to encode, or a mapping of its fields

    Returns:
        Encoded event bytes

    Raises:
        DataRequiredError: If the event carries no data
    """
    event = as_event(event)
    if event.data is None:
        raise DataRequiredError()

    lines: List[bytes] = []
    lines.extend(_field_lines(b": ", event.comment))
    lines.extend(_field_lines(b"id: ", event.id))
    lines.extend(_field_lines(b"event: ", event.event))
    lines.extend(_field_lines(b"data: ", event.data))
    lines.extend(_field_lines(b"retry: ", event.retry))

    # SSE protocol requires a blank line at the end of each event
    lines.append(b"\n")

    return b"".join(lines)


def event_summary(event: SSEEvent) -> Dict[str, Any]:
    """Loggable description of an event."""
    return {
        "event_id": event.id.decode("utf-8", "replace") if event.id else None,
        "event_type": event.event.decode("utf-8", "replace") if event.event else None,
        "data_length": len(event.data) if event.data is not None else None,
    }
