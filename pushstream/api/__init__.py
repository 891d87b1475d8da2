"""
ASGI Surface
============

HTTP-facing pieces of pushstream.

Modules:
- sse: Session state machine, wire encoder and notification bridge
- routes: Example routes built on the SSE session (ping/pong)
- main: FastAPI application
"""
