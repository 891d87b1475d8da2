"""
API Routes
==========

Routes of the example service.

Modules:
- health: Health check endpoint
- pong: Ping/pong event stream built on the SSE session
"""
