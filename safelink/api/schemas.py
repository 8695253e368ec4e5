"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

The submit body takes the URL as a plain string: the URL safety pipeline, not
pydantic, decides what is acceptable and reports which rule rejected it.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ShortenRequest(BaseModel):
    """Request model for URL shortening endpoint."""
    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., min_length=1, description="The long URL to shorten")


class ShortenResponse(BaseModel):
    """Response model for URL shortening endpoint."""
    short_code: str = Field(..., description="The generated short code")
    short_url: str = Field(..., description="The complete short URL")
    original_url: str = Field(..., description="The canonical URL that was stored")


class StatsResponse(BaseModel):
    """Response model for statistics endpoint."""
    original_url: str
    short_code: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    click_count: int


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx produced by the API."""
    detail: str
    rule: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    database: bool
    cache: bool
