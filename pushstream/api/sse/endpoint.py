"""
SSE Endpoint
============

ASGI application that runs one SSE session per HTTP request.
Mount it on a Starlette/FastAPI route; every HTTP method reaches it so the
session can refuse non-GET requests itself.
"""

from typing import Any, Callable, Mapping, Optional, Sequence, Union

from starlette.types import Receive, Scope, Send

from pushstream.config.logging import get_logger

from .errors import HandlerConfigMissingError
from .handler import SSEHandler
from .models import TerminateReason
from .session import SSESession
from .transport import ASGIConnectionContext

logger = get_logger(__name__)

HandlerSource = Union[SSEHandler, Callable[[], SSEHandler]]


class SSEEndpoint:
    """ASGI app turning each request into an ``SSESession``."""

    def __init__(self, handler: Optional[HandlerSource], init_args: Any = None) -> None:
        if handler is None:
            raise HandlerConfigMissingError()
        self.handler = handler
        self.init_args = init_args

    @classmethod
    def from_options(
        cls, options: Union[Sequence[HandlerSource], Mapping[str, Any]]
    ) -> "SSEEndpoint":
        """
        Build an endpoint from route options.

        Accepts either ``[handler]`` or ``{"handler": ..., "init_args": ...}``.

        Raises:
            HandlerConfigMissingError: If no handler is given
        """
        if isinstance(options, Mapping):
            handler = options.get("handler")
            init_args = options.get("init_args")
        elif len(options) == 1:
            handler = options[0]
            init_args = None
        else:
            handler = None
            init_args = None
        return cls(handler, init_args)

    def make_handler(self) -> SSEHandler:
        """Handler for a new session; factories are called once per session."""
        if isinstance(self.handler, SSEHandler):
            return self.handler
        return self.handler()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            raise RuntimeError(f"SSEEndpoint cannot serve '{scope['type']}' connections")

        context = ASGIConnectionContext(scope, receive, send)
        session = SSESession(self.make_handler(), context, self.init_args)
        logger.debug(
            "SSE request accepted",
            session_id=session.session_id,
            path=scope.get("path"),
            client_ip=context.client_host,
        )
        reason = await session.run()
        if reason == TerminateReason.CLIENT_DISCONNECT:
            logger.debug("SSE session ended by client", session_id=session.session_id)
