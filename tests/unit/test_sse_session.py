"""
Unit Tests for SSE Session
==========================

Tests for the session state machine: handshake, dispatch and termination.
"""

import asyncio

import pytest

from pushstream.api.sse import (
    DataRequiredError,
    HandlerConfigMissingError,
    InvalidHandlerResultError,
    NoContent,
    NoSend,
    Ready,
    Reject,
    Send,
    SessionStatus,
    SSEEvent,
    SSESession,
    Stop,
    TerminateReason,
    TransportWriteError,
    notify,
    send_info,
)

from tests.utils.mocks import MockConnectionContext, RecordingHandler, wait_until


def _stop_on(word):
    """Dispatch callback stopping on ``word`` and sending everything else back."""

    def callback(message, state):
        if message == word:
            return Stop(state=state + ["stopped"])
        return Send(event={"data": message}, state=state + [message])

    return callback


class SlowCloseContext(MockConnectionContext):
    """Context whose close watcher finishes its cleanup only once released."""

    def __init__(self):
        super().__init__()
        self.watcher_cancelled = asyncio.Event()
        self.release = asyncio.Event()

    async def wait_closed(self):
        try:
            return await super().wait_closed()
        except asyncio.CancelledError:
            self.watcher_cancelled.set()
            await self.release.wait()
            raise


@pytest.mark.unit
@pytest.mark.sse
class TestSessionConstruction:
    """Test session construction."""

    def test_missing_handler(self, mock_context):
        """Test a session needs a handler before any handshake."""
        with pytest.raises(HandlerConfigMissingError):
            SSESession(None, mock_context)

        assert mock_context.replies == []
        assert not mock_context.streaming

    def test_initial_status(self, recording_handler, mock_context):
        """Test a new session is initializing and exposes its handle."""
        session = SSESession(recording_handler, mock_context, init_args={"a": 1})

        assert session.status == SessionStatus.INITIALIZING
        assert mock_context.handle is session.handle
        assert session.session_id == session.handle.session_id


@pytest.mark.unit
@pytest.mark.sse
class TestHandshake:
    """Test the handshake branches."""

    @pytest.mark.asyncio
    async def test_ready_starts_stream_with_initial_events(self):
        """Test GET + Ready writes headers and initial events in order."""
        context = MockConnectionContext(headers={"Last-Event-ID": "41"})
        handler = RecordingHandler(
            init_result=Ready(events=[{"id": "42", "data": "first"}, {"data": "second"}], state=[]),
            on_notify=_stop_on("stop"),
        )
        session = SSESession(handler, context, init_args="args")
        notify(session.handle, "stop")

        reason = await session.run()

        assert reason == TerminateReason.STOP
        assert handler.init_calls == [("args", "41", context)]
        assert context.stream_status == 200
        assert context.stream_headers == {
            "content-type": "text/event-stream",
            "cache-control": "no-cache",
        }
        assert context.chunks == [b"id: 42\ndata: first\n\n", b"data: second\n\n"]
        assert context.stream_ended is True

    @pytest.mark.asyncio
    async def test_last_event_id_absent(self, mock_context):
        """Test init receives None without a Last-Event-ID header."""
        handler = RecordingHandler(init_result=NoContent(state=None))

        await SSESession(handler, mock_context).run()

        assert handler.init_calls[0][1] is None

    @pytest.mark.asyncio
    async def test_ready_without_events(self, mock_context):
        """Test Ready defaults to no initial events."""
        handler = RecordingHandler(init_result=Ready(state=[]), on_notify=_stop_on("stop"))
        session = SSESession(handler, mock_context)
        notify(session.handle, "stop")

        await session.run()

        assert mock_context.stream_status == 200
        assert mock_context.chunks == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD"])
    async def test_non_get_request_is_refused(self, method):
        """Test non-GET requests get 405, no stream, one terminate."""
        context = MockConnectionContext(method=method)
        handler = RecordingHandler(init_result=Ready(events=[{"data": "x"}], state="s"))

        reason = await SSESession(handler, context).run()

        assert reason == TerminateReason.METHOD_NOT_ALLOWED
        assert len(context.replies) == 1
        status, headers, body = context.replies[0]
        assert status == 405
        assert headers == {"content-type": "text/html"}
        assert body
        assert not context.streaming
        assert context.chunks == []
        assert handler.terminate_calls == [(TerminateReason.METHOD_NOT_ALLOWED, context, "s")]

    @pytest.mark.asyncio
    async def test_no_content(self, mock_context):
        """Test NoContent answers 204 and terminates once."""
        handler = RecordingHandler(init_result=NoContent(state="nothing"))
        session = SSESession(handler, mock_context)

        reason = await session.run()

        assert reason == TerminateReason.NO_CONTENT
        assert mock_context.replies == [(204, {}, b"")]
        assert not mock_context.streaming
        assert session.status == SessionStatus.TERMINATED
        assert handler.terminate_calls == [(TerminateReason.NO_CONTENT, mock_context, "nothing")]

    @pytest.mark.asyncio
    async def test_reject(self, mock_context):
        """Test Reject replies with the given status, headers and body."""
        handler = RecordingHandler(
            init_result=Reject(
                status_code=401,
                headers={"www-authenticate": "Bearer"},
                body="unauthorized",
                state="denied",
            )
        )

        reason = await SSESession(handler, mock_context).run()

        assert reason == TerminateReason.REJECTED
        assert mock_context.replies == [(401, {"www-authenticate": "Bearer"}, "unauthorized")]
        assert not mock_context.streaming
        assert handler.terminate_calls == [(TerminateReason.REJECTED, mock_context, "denied")]

    @pytest.mark.asyncio
    async def test_initial_event_write_failure_propagates(self):
        """Test a failed initial write is a handshake error."""
        context = MockConnectionContext(write_error=TransportWriteError("gone"))
        handler = RecordingHandler(init_result=Ready(events=[{"data": "x"}], state="s"))

        with pytest.raises(TransportWriteError):
            await SSESession(handler, context).run()

        assert handler.error_calls == []
        assert handler.terminate_calls == [(TerminateReason.ERROR, context, "s")]

    @pytest.mark.asyncio
    async def test_unknown_init_result(self, mock_context):
        """Test init must return a handshake result."""
        handler = RecordingHandler(init_result="ok")

        with pytest.raises(InvalidHandlerResultError):
            await SSESession(handler, mock_context).run()

        assert [call[0] for call in handler.terminate_calls] == [TerminateReason.ERROR]

    @pytest.mark.asyncio
    async def test_init_exception_still_terminates(self, mock_context):
        """Test terminate runs once when init raises."""
        handler = RecordingHandler(init_error=RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await SSESession(handler, mock_context).run()

        assert handler.terminate_calls == [(TerminateReason.ERROR, mock_context, None)]


@pytest.mark.unit
@pytest.mark.sse
class TestDispatchLoop:
    """Test message dispatch while streaming."""

    @pytest.mark.asyncio
    async def test_ping_pong(self, mock_context):
        """Test a notify answered with Send writes the event and keeps streaming."""

        def on_notify(message, state):
            if message == "ping":
                return Send(event={"data": "pong"}, state=state)
            return Stop(state=state)

        handler = RecordingHandler(
            init_result=Ready(events=[], state="initial"), on_notify=on_notify
        )
        session = SSESession(handler, mock_context)
        task = asyncio.create_task(session.run())

        await wait_until(lambda: session.status == SessionStatus.STREAMING)
        notify(session.handle, "ping")
        await wait_until(lambda: len(mock_context.chunks) == 1)

        assert mock_context.chunks == [b"data: pong\n\n"]
        assert session.status == SessionStatus.STREAMING
        assert session.state == "initial"

        notify(session.handle, "done")
        assert await task == TerminateReason.STOP

    @pytest.mark.asyncio
    async def test_notify_and_info_are_routed_separately(self, mock_context):
        """Test notify messages reach handle_notify and others handle_info."""
        handler = RecordingHandler(
            init_result=Ready(state=[]),
            on_notify=_stop_on("stop"),
            on_info=lambda message, state: NoSend(state=state + [("info", message)]),
        )
        session = SSESession(handler, mock_context)
        send_info(session.handle, {"kind": "tick"})
        notify(session.handle, "hello")
        notify(session.handle, "stop")

        await session.run()

        assert handler.info_calls == [({"kind": "tick"}, [])]
        assert [call[0] for call in handler.notify_calls] == ["hello", "stop"]
        assert mock_context.chunks == [b"data: hello\n\n"]
        assert session.state == [("info", {"kind": "tick"}), "hello", "stopped"]

    @pytest.mark.asyncio
    async def test_state_is_threaded_between_callbacks(self, mock_context):
        """Test each callback sees the state returned by the previous one."""
        handler = RecordingHandler(
            init_result=Ready(state=0),
            on_notify=lambda message, state: (
                Stop(state=state) if message == "stop" else NoSend(state=state + 1)
            ),
        )
        session = SSESession(handler, mock_context)
        for _ in range(3):
            notify(session.handle, "inc")
        notify(session.handle, "stop")

        await session.run()

        assert [call[1] for call in handler.notify_calls] == [0, 1, 2, 3]
        assert mock_context.chunks == []
        assert handler.terminate_calls[0][2] == 3

    @pytest.mark.asyncio
    async def test_notify_order_is_preserved(self, mock_context):
        """Test messages from one sender are observed in send order."""
        handler = RecordingHandler(init_result=Ready(state=[]), on_notify=_stop_on("stop"))
        session = SSESession(handler, mock_context)
        for word in ["one", "two", "three"]:
            notify(session.handle, word)
        notify(session.handle, "stop")

        await session.run()

        assert mock_context.chunks == [b"data: one\n\n", b"data: two\n\n", b"data: three\n\n"]

    @pytest.mark.asyncio
    async def test_stop_skips_queued_items(self, mock_context):
        """Test Stop ends the loop with items still queued."""
        handler = RecordingHandler(init_result=Ready(state=[]), on_notify=_stop_on("stop"))
        session = SSESession(handler, mock_context)
        notify(session.handle, "stop")
        notify(session.handle, "late")
        send_info(session.handle, "later")

        reason = await session.run()

        assert reason == TerminateReason.STOP
        assert [call[0] for call in handler.notify_calls] == ["stop"]
        assert handler.info_calls == []
        assert mock_context.chunks == []
        assert handler.terminate_calls == [(TerminateReason.STOP, mock_context, ["stopped"])]
        assert session.handle.closed
        assert session.handle.pending() == 0

    @pytest.mark.asyncio
    async def test_write_failure_is_not_fatal(self, mock_context):
        """Test a failed write calls handle_error and keeps streaming."""
        handler = RecordingHandler(
            init_result=Ready(state="before"),
            on_notify=lambda message, state: (
                Stop(state=state)
                if message == "stop"
                else Send(event=SSEEvent(data=message), state="after")
            ),
            error_state="recovered",
        )
        session = SSESession(handler, mock_context)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: session.status == SessionStatus.STREAMING)

        mock_context.fail_writes("connection reset")
        notify(session.handle, "lost")
        await wait_until(lambda: len(handler.error_calls) == 1)

        event, reason, state = handler.error_calls[0]
        assert event == SSEEvent(data="lost")
        assert isinstance(reason, TransportWriteError)
        assert str(reason) == "connection reset"
        assert state == "before"
        assert session.status == SessionStatus.STREAMING
        assert session.state == "recovered"

        notify(session.handle, "stop")
        assert await task == TerminateReason.STOP
        assert handler.terminate_calls[0][2] == "recovered"

    @pytest.mark.asyncio
    async def test_event_without_data_is_fatal(self, mock_context):
        """Test Send without data is not recovered by the session."""
        handler = RecordingHandler(
            init_result=Ready(state="s"),
            on_notify=lambda message, state: Send(event={"event": "broken"}, state="next"),
        )
        session = SSESession(handler, mock_context)
        notify(session.handle, "go")

        with pytest.raises(DataRequiredError):
            await session.run()

        assert mock_context.chunks == []
        assert handler.error_calls == []
        assert handler.terminate_calls == [(TerminateReason.ERROR, mock_context, "s")]

    @pytest.mark.asyncio
    async def test_callback_exception_terminates_abnormally(self, mock_context):
        """Test callback failures propagate after terminate ran."""

        def on_info(message, state):
            raise ValueError("bad message")

        handler = RecordingHandler(init_result=Ready(state="s"), on_info=on_info)
        session = SSESession(handler, mock_context)
        send_info(session.handle, "anything")

        with pytest.raises(ValueError, match="bad message"):
            await session.run()

        assert session.status == SessionStatus.TERMINATED
        assert handler.terminate_calls == [(TerminateReason.ERROR, mock_context, "s")]
        assert mock_context.stream_ended is False

    @pytest.mark.asyncio
    async def test_unknown_dispatch_result(self, mock_context):
        """Test dispatch callbacks must return a dispatch result."""
        handler = RecordingHandler(
            init_result=Ready(state="s"), on_notify=lambda message, state: ("send", message)
        )
        session = SSESession(handler, mock_context)
        notify(session.handle, "x")

        with pytest.raises(InvalidHandlerResultError, match="handle_notify"):
            await session.run()

        assert len(handler.terminate_calls) == 1


@pytest.mark.unit
@pytest.mark.sse
class TestTermination:
    """Test termination paths."""

    @pytest.mark.asyncio
    async def test_client_disconnect(self, mock_context):
        """Test transport closure ends the loop and terminates once."""
        handler = RecordingHandler(init_result=Ready(state="open"))
        session = SSESession(handler, mock_context)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: session.status == SessionStatus.STREAMING)

        mock_context.disconnect()
        reason = await asyncio.wait_for(task, timeout=2)

        assert reason == TerminateReason.CLIENT_DISCONNECT
        assert session.terminate_reason == TerminateReason.CLIENT_DISCONNECT
        assert handler.terminate_calls == [
            (TerminateReason.CLIENT_DISCONNECT, mock_context, "open")
        ]

    @pytest.mark.asyncio
    async def test_cancellation_terminates_once(self, mock_context):
        """Test cancelling the session task still runs terminate."""
        handler = RecordingHandler(init_result=Ready(state="open"))
        session = SSESession(handler, mock_context)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: session.status == SessionStatus.STREAMING)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert handler.terminate_calls == [
            (TerminateReason.CLIENT_DISCONNECT, mock_context, "open")
        ]

    @pytest.mark.asyncio
    async def test_cancellation_during_watcher_cleanup_propagates(self):
        """Test the session task stays cancellable while its watcher winds down."""
        context = SlowCloseContext()
        handler = RecordingHandler(init_result=Ready(state=[]), on_notify=_stop_on("stop"))
        session = SSESession(handler, context)
        task = asyncio.create_task(session.run())
        await wait_until(lambda: session.status == SessionStatus.STREAMING)

        notify(session.handle, "stop")
        await asyncio.wait_for(context.watcher_cancelled.wait(), timeout=2)
        task.cancel()

        try:
            with pytest.raises(asyncio.CancelledError):
                await asyncio.wait_for(task, timeout=2)
        finally:
            context.release.set()
            await asyncio.sleep(0)

        assert handler.terminate_calls == [
            (TerminateReason.CLIENT_DISCONNECT, context, ["stopped"])
        ]

    @pytest.mark.asyncio
    async def test_messages_after_termination_are_dropped(self, mock_context):
        """Test notify to a finished session succeeds silently."""
        handler = RecordingHandler(init_result=NoContent(state=None))
        session = SSESession(handler, mock_context)
        await session.run()

        notify(session.handle, "too late")

        assert session.handle.pending() == 0
        assert handler.notify_calls == []

    @pytest.mark.asyncio
    async def test_terminate_failure_is_logged_not_raised(self, mock_context):
        """Test an exception in terminate does not escape the session."""
        handler = RecordingHandler(init_result=NoContent(state=None))

        async def failing_terminate(reason, context, state):
            handler.terminate_calls.append((reason, context, state))
            raise RuntimeError("cleanup failed")

        handler.terminate = failing_terminate

        reason = await SSESession(handler, mock_context).run()

        assert reason == TerminateReason.NO_CONTENT
        assert len(handler.terminate_calls) == 1
