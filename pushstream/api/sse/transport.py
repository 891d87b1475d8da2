"""
SSE Transport
=============

Connection context consumed by the SSE session.
Abstracts the HTTP transport behind a handful of primitives and provides
the ASGI implementation used by Starlette/FastAPI applications.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Mapping, Union
import asyncio

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from pushstream.config.logging import get_logger

from .errors import TransportWriteError
from .notify import SessionHandle

logger = get_logger(__name__)

LAST_EVENT_ID_HEADER = "last-event-id"


class ConnectionContext(ABC):
    """
    Request/connection collaborator of an SSE session.

    Exposes the inbound request (method, headers) and the primitives needed
    to answer it: a full reply, or a streamed response written chunk by chunk.
    """

    handle: Optional[SessionHandle] = None

    @property
    @abstractmethod
    def method(self) -> str:
        """Request method, upper case."""

    @property
    @abstractmethod
    def headers(self) -> Mapping[str, str]:
        """Request headers (case-insensitive lookup)."""

    @property
    def last_event_id(self) -> Optional[str]:
        """Value of the Last-Event-ID request header, if sent."""
        return self.headers.get(LAST_EVENT_ID_HEADER)

    @abstractmethod
    async def begin_stream(self, status_code: int, headers: Dict[str, str]) -> None:
        """Start a streamed response."""

    @abstractmethod
    async def write_chunk(self, data: bytes) -> None:
        """Write one chunk; raises ``TransportWriteError`` on failure."""

    @abstractmethod
    async def end_stream(self) -> None:
        """Finish a streamed response."""

    @abstractmethod
    async def reply(
        self, status_code: int, headers: Dict[str, str], body: Union[bytes, str] = b""
    ) -> None:
        """Send a complete, non-streamed response."""

    @abstractmethod
    async def wait_closed(self) -> Optional[str]:
        """Return once the client connection is gone."""


class ASGIConnectionContext(ConnectionContext):
    """Connection context over an ASGI HTTP scope."""

    def __init__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self.scope = scope
        self.request = Request(scope, receive)
        self._receive = receive
        self._send = send
        self._closed = asyncio.Event()
        self._streaming = False
        self._finished = False

    @property
    def method(self) -> str:
        return self.request.method.upper()

    @property
    def headers(self) -> Mapping[str, str]:
        return self.request.headers

    @property
    def client_host(self) -> str:
        return self.request.client.host if self.request.client else "unknown"

    async def begin_stream(self, status_code: int, headers: Dict[str, str]) -> None:
        await self._send(
            {
                "type": "http.response.start",
                "status": status_code,
                "headers": [
                    (name.lower().encode("latin-1"), value.encode("latin-1"))
                    for name, value in headers.items()
                ],
            }
        )
        self._streaming = True

    async def write_chunk(self, data: bytes) -> None:
        if self._closed.is_set():
            raise TransportWriteError("Connection closed by client")
        try:
            await self._send({"type": "http.response.body", "body": data, "more_body": True})
        except OSError as e:
            self._closed.set()
            raise TransportWriteError(f"Failed to write chunk: {e}", cause=e) from e

    async def end_stream(self) -> None:
        if not self._streaming or self._finished or self._closed.is_set():
            return
        self._finished = True
        try:
            await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        except OSError as e:
            logger.debug("Could not finish stream", error=str(e))

    async def reply(
        self, status_code: int, headers: Dict[str, str], body: Union[bytes, str] = b""
    ) -> None:
        response = Response(content=body, status_code=status_code, headers=headers)
        await response(self.scope, self._receive, self._send)
        self._finished = True

    async def wait_closed(self) -> Optional[str]:
        while not self._closed.is_set():
            message: Dict[str, Any] = await self._receive()
            if message["type"] == "http.disconnect":
                self._closed.set()
        return "client disconnected"
