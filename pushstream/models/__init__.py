"""
Data Models
===========

Pydantic data models for API responses.

Models:
- schemas: API response schemas
"""
