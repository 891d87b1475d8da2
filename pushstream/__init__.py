"""
pushstream
==========

Server-Sent Events session handling for ASGI applications.

This package provides:
- A wire encoder for the SSE protocol
- A per-connection session state machine driven by pluggable handlers
- A notification bridge for pushing messages into running sessions
- A FastAPI example service wiring it all together
"""

__version__ = "1.0.0"
__author__ = "pushstream Team"
