"""
SSE Session
===========

State machine owning one SSE connection.
Runs the handshake, dispatches inbox messages to the handler one at a time
and guarantees the handler's terminate callback runs exactly once.
"""

from typing import Optional, Dict, Any
import asyncio

from pushstream.config.logging import get_logger

from .errors import HandlerConfigMissingError, InvalidHandlerResultError, TransportWriteError
from .events import SSEEvent, event_summary, format_sse_event
from .handler import SSEHandler
from .models import (
    DispatchResult,
    NoContent,
    NoSend,
    NotifyMessage,
    Ready,
    Reject,
    Send,
    SessionStatus,
    Stop,
    TerminateReason,
    TransportClosed,
)
from .notify import SessionHandle, close_transport
from .transport import ConnectionContext

logger = get_logger(__name__)

# "no-cache" is recommended to prevent caching of event data
STREAM_HEADERS: Dict[str, str] = {
    "content-type": "text/event-stream",
    "cache-control": "no-cache",
}

STREAM_METHOD = "GET"
METHOD_NOT_ALLOWED_HEADERS: Dict[str, str] = {"content-type": "text/html"}
METHOD_NOT_ALLOWED_BODY = b"<html><body>405 Method Not Allowed</body></html>"


class SSESession:
    """
    One SSE connection's lifecycle.

    Handles:
    - Handshake (init callback, 405/204/custom rejection, stream start)
    - Dispatch loop over notify, info and transport-closed messages
    - Write failure recovery through ``handle_error``
    - Exactly-once termination
    """

    def __init__(
        self,
        handler: Optional[SSEHandler],
        context: ConnectionContext,
        init_args: Any = None,
    ) -> None:
        if handler is None:
            raise HandlerConfigMissingError()

        self.handler = handler
        self.context = context
        self.init_args = init_args
        self.handle = SessionHandle()
        context.handle = self.handle

        self.status = SessionStatus.INITIALIZING
        self.state: Any = None
        self.terminate_reason: Optional[TerminateReason] = None
        self.events_sent = 0

        self.logger: Any = logger.bind(component="sse_session", session_id=self.session_id)
        self._terminated = False

    @property
    def session_id(self) -> str:
        return self.handle.session_id

    async def run(self) -> TerminateReason:
        """
        Drive the session until it ends.

        Returns:
            Reason the session terminated

        Raises:
            Any exception raised by a handler callback, after terminate ran
        """
        self.handle.bind(asyncio.get_running_loop())
        reason = TerminateReason.ERROR
        try:
            reason = await self._handshake()
            if reason is None:
                reason = await self._dispatch_loop()
        except asyncio.CancelledError:
            reason = TerminateReason.CLIENT_DISCONNECT
            raise
        except Exception as e:
            reason = TerminateReason.ERROR
            self.logger.error(
                "SSE session failed",
                status=self.status.value,
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            raise
        finally:
            await self._shutdown(reason)
        return reason

    async def _handshake(self) -> Optional[TerminateReason]:
        last_event_id = self.context.last_event_id
        result = await self.handler.init(self.init_args, last_event_id, self.context)

        if isinstance(result, Ready):
            self.state = result.state
            if self.context.method != STREAM_METHOD:
                await self.context.reply(405, METHOD_NOT_ALLOWED_HEADERS, METHOD_NOT_ALLOWED_BODY)
                self.logger.info("SSE handshake refused", method=self.context.method)
                return TerminateReason.METHOD_NOT_ALLOWED

            await self.context.begin_stream(200, dict(STREAM_HEADERS))
            for event in result.events:
                await self._write(event)

            self.status = SessionStatus.STREAMING
            self.logger.info(
                "SSE stream started",
                last_event_id=last_event_id,
                initial_events=len(result.events),
            )
            return None

        if isinstance(result, NoContent):
            self.state = result.state
            await self.context.reply(204, {}, b"")
            self.logger.info("SSE handshake answered with no content")
            return TerminateReason.NO_CONTENT

        if isinstance(result, Reject):
            self.state = result.state
            await self.context.reply(result.status_code, result.headers, result.body)
            self.logger.info("SSE handshake rejected", status_code=result.status_code)
            return TerminateReason.REJECTED

        raise InvalidHandlerResultError("init", result)

    async def _dispatch_loop(self) -> TerminateReason:
        watcher = asyncio.create_task(self._watch_transport())
        try:
            while True:
                item = await self.handle.receive()

                if isinstance(item, TransportClosed):
                    self.logger.info("SSE client went away", detail=item.reason)
                    return TerminateReason.CLIENT_DISCONNECT

                if isinstance(item, NotifyMessage):
                    result = await self.handler.handle_notify(item.message, self.state)
                    stop = await self._apply("handle_notify", result)
                else:
                    result = await self.handler.handle_info(item.message, self.state)
                    stop = await self._apply("handle_info", result)

                if stop:
                    self.logger.info("SSE stream stopped by handler", events_sent=self.events_sent)
                    return TerminateReason.STOP
        finally:
            # asyncio.wait never raises the watcher's own cancellation, only ours
            watcher.cancel()
            await asyncio.wait([watcher])

    async def _apply(self, callback: str, result: DispatchResult) -> bool:
        """Act on a dispatch result; returns True when the stream must stop."""
        if isinstance(result, Send):
            try:
                await self._write(result.event)
            except TransportWriteError as e:
                self.logger.warning(
                    "SSE event write failed",
                    error=str(e),
                    **event_summary(result.event),
                )
                self.state = await self.handler.handle_error(result.event, e, self.state)
                return False
            self.state = result.state
            return False

        if isinstance(result, NoSend):
            self.state = result.state
            return False

        if isinstance(result, Stop):
            self.state = result.state
            return True

        raise InvalidHandlerResultError(callback, result)

    async def _write(self, event: SSEEvent) -> None:
        await self.context.write_chunk(format_sse_event(event))
        self.events_sent += 1

    async def _watch_transport(self) -> None:
        try:
            detail = await self.context.wait_closed()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning("SSE transport watcher failed", error=str(e))
            detail = str(e)
        close_transport(self.handle, detail)

    async def _shutdown(self, reason: TerminateReason) -> None:
        if self._terminated:
            return
        self._terminated = True
        self.status = SessionStatus.TERMINATED
        self.terminate_reason = reason
        self.handle.close()

        if reason == TerminateReason.STOP:
            await self.context.end_stream()

        try:
            await self.handler.terminate(reason, self.context, self.state)
        except Exception as e:
            self.logger.error(
                "SSE terminate callback failed",
                reason=reason.value,
                error=str(e),
                exc_info=True,
            )

        self.logger.info(
            "SSE session terminated", reason=reason.value, events_sent=self.events_sent
        )
