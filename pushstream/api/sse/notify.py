"""
SSE Notification Bridge
=======================

Fire-and-forget delivery of messages into running sessions.
"""

from typing import Any, Optional
import asyncio
import uuid

from pushstream.config.logging import get_logger

from .models import InboxItem, InfoMessage, NotifyMessage, TransportClosed

logger = get_logger(__name__)


class SessionHandle:
    """
    Opaque address of one session's inbox.

    Handles compare and hash by identity so they can be kept in sets.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.session_id = str(uuid.uuid4())
        self._queue: asyncio.Queue[InboxItem] = asyncio.Queue()
        self._loop = loop
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the owning session has terminated."""
        return self._closed

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the handle to the event loop running its session."""
        self._loop = loop

    def close(self) -> None:
        """Stop accepting messages and drop anything still queued."""
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def deliver(self, item: InboxItem) -> None:
        """Enqueue ``item``; silently dropped once the session is gone."""
        if self._closed:
            logger.debug(
                "Dropping message for terminated session",
                session_id=self.session_id,
                item_type=type(item).__name__,
            )
            return

        loop = self._loop
        if loop is not None and loop.is_running() and _running_loop() is not loop:
            try:
                loop.call_soon_threadsafe(self._put, item)
            except RuntimeError as e:
                # Loop closed after the is_running check
                logger.debug(
                    "Dropping message for stopped event loop",
                    session_id=self.session_id,
                    item_type=type(item).__name__,
                    error=str(e),
                )
        else:
            self._put(item)

    def _put(self, item: InboxItem) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    async def receive(self) -> InboxItem:
        """Wait for the next inbox item."""
        return await self._queue.get()

    def pending(self) -> int:
        """Number of items waiting in the inbox."""
        return self._queue.qsize()

    def __repr__(self) -> str:
        return f"<SessionHandle {self.session_id}{' closed' if self._closed else ''}>"


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def notify(target: SessionHandle, message: Any) -> None:
    """
    Push ``message`` into the session behind ``target`` as a notify message.

    Never fails: messages to sessions that have ended are discarded.
    Messages from one caller arrive in the order they were sent.

    Args:
        target: Handle of the receiving session
        message: Arbitrary message passed to ``handle_notify``
    """
    target.deliver(NotifyMessage(message=message))


def send_info(target: SessionHandle, message: Any) -> None:
    """Push ``message`` into the session behind ``target`` for ``handle_info``."""
    target.deliver(InfoMessage(message=message))


def close_transport(target: SessionHandle, reason: Optional[str] = None) -> None:
    """Tell the session its connection is gone."""
    target.deliver(TransportClosed(reason=reason))
