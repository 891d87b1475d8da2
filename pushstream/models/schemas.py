"""
Pydantic Models and Schemas
===========================

API response models shared by the example service routes.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Error timestamp"
    )
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")


class ServiceInfo(BaseModel):
    """Root endpoint description."""

    name: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    docs_url: Optional[str] = Field(None, description="Interactive docs location")
    endpoints: Dict[str, str] = Field(default_factory=dict, description="Available endpoints")
