"""
Test Suite
==========

Test suite matching the pushstream package structure.

Test Categories:
- unit: Unit tests for individual components
- integration: Integration tests through the ASGI surface
"""
