"""
Ping/Pong Routes
================

Example event stream: every connected client receives ``pong`` whenever
someone posts to the ping endpoint.

Streams register their session handle in a ``SessionRegistry`` during the
handshake and leave it on termination.
"""

from typing import Any, Iterator, Optional, Set

from pydantic import BaseModel, Field

from pushstream.config.logging import get_logger
from pushstream.api.sse import (
    ConnectionContext,
    NoSend,
    Ready,
    Send,
    SessionHandle,
    SSEEvent,
    SSEHandler,
    TerminateReason,
    notify,
)

logger = get_logger(__name__)

PING = "ping"


class SessionRegistry:
    """Named group of session handles."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._members: Set[SessionHandle] = set()

    def join(self, handle: SessionHandle) -> None:
        self._members.add(handle)

    def leave(self, handle: SessionHandle) -> None:
        self._members.discard(handle)

    def __contains__(self, handle: object) -> bool:
        return handle in self._members

    def __iter__(self) -> Iterator[SessionHandle]:
        return iter(list(self._members))

    def __len__(self) -> int:
        return len(self._members)

    def notify_all(self, message: Any) -> int:
        """Notify every member; returns how many were addressed."""
        members = list(self._members)
        for handle in members:
            notify(handle, message)
        return len(members)


pongers = SessionRegistry("pongers")


class PongHandler(SSEHandler):
    """Answers every ``ping`` notification with a ``pong`` event."""

    def __init__(self, registry: Optional[SessionRegistry] = None) -> None:
        self.registry = registry if registry is not None else pongers

    async def init(
        self, init_args: Any, last_event_id: Optional[str], context: ConnectionContext
    ) -> Ready:
        if context.handle is not None:
            self.registry.join(context.handle)
        return Ready(state={})

    async def handle_notify(self, message: Any, state: Any) -> Any:
        if message == PING:
            return Send(event=SSEEvent(data="pong"), state=state)
        return NoSend(state=state)

    async def handle_info(self, message: Any, state: Any) -> NoSend:
        return NoSend(state=state)

    async def handle_error(self, event: SSEEvent, reason: BaseException, state: Any) -> Any:
        return state

    async def terminate(
        self, reason: TerminateReason, context: ConnectionContext, state: Any
    ) -> None:
        if context.handle is not None:
            self.registry.leave(context.handle)


class PingResponse(BaseModel):
    """Result of a ping broadcast."""

    notified: int = Field(..., description="Number of streams notified")


async def ping() -> PingResponse:
    """Send ``ping`` to every open pong stream."""
    notified = pongers.notify_all(PING)
    logger.info("Ping broadcast", notified=notified)
    return PingResponse(notified=notified)
