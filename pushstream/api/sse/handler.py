"""
SSE Handler Interface
=====================

Callbacks an application implements to drive an SSE session.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .events import SSEEvent
from .models import DispatchResult, HandshakeResult, TerminateReason
from .transport import ConnectionContext


class SSEHandler(ABC):
    """
    Business logic of one kind of event stream.

    The session calls ``init`` once, then ``handle_notify`` or ``handle_info``
    for every inbox message, ``handle_error`` whenever a write fails and
    ``terminate`` exactly once at the end. Callbacks never run concurrently
    for the same session; ``state`` is opaque to the session and threaded
    from one callback to the next.
    """

    @abstractmethod
    async def init(
        self, init_args: Any, last_event_id: Optional[str], context: ConnectionContext
    ) -> HandshakeResult:
        """
        Decide whether and how the stream starts.

        Args:
            init_args: Arguments configured on the endpoint
            last_event_id: Last-Event-ID sent by a reconnecting client, or None
            context: Connection context; ``context.handle`` addresses this session

        Returns:
            Ready, NoContent or Reject
        """

    @abstractmethod
    async def handle_notify(self, message: Any, state: Any) -> DispatchResult:
        """Handle a message sent through ``notify``."""

    @abstractmethod
    async def handle_info(self, message: Any, state: Any) -> DispatchResult:
        """Handle any other message delivered to the session."""

    async def handle_error(self, event: SSEEvent, reason: BaseException, state: Any) -> Any:
        """
        Recover from a failed write of ``event``.

        Receives the state from before the failed dispatch and returns the
        state to continue with. Keeps it unchanged by default.
        """
        return state

    async def terminate(
        self, reason: TerminateReason, context: ConnectionContext, state: Any
    ) -> None:
        """Clean up after the session; the return value is ignored."""
        return None
