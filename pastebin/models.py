"""
Pydantic models for request/response validation.
"""
from pydantic import BaseModel, Field


class PasteCreate(BaseModel):
    """Schema for creating a new paste."""
    content: str = Field(..., min_length=1, description="Text content (required, non-empty)")


class PasteCreated(BaseModel):
    """Schema for paste creation response."""
    id: str = Field(..., description="Unique paste ID")
    key: str = Field(..., description="Secret deletion key, shown only once")
    ttl: int = Field(..., description="Seconds until the paste is purged")
    link: str = Field(..., description="Shareable URL of the paste")


class PasteView(BaseModel):
    """Schema for viewing/fetching a paste."""
    id: str = Field(..., description="Unique paste ID")
    content: str = Field(..., description="Paste text content")
    created_at: int = Field(..., description="Creation time (epoch seconds)")
    expires_at: int = Field(..., description="Expiry time (epoch seconds)")


class RemoveResult(BaseModel):
    """Schema for a successful removal."""
    message: str


class HealthCheck(BaseModel):
    """Schema for health check response."""
    ok: bool = Field(..., description="Is the application healthy?")
