from typing import List, Optional
from pydantic import BaseModel, Field


class BucketDebugOut(BaseModel):
    key: str
    pages: List[int]
    merged_length: int
    has_next: bool
    stale: bool
    age_seconds: float
    last_loaded_at: str


class CacheDebugOut(BaseModel):
    bucket_count: int
    buckets: List[BucketDebugOut]
    blocked_users: List[str]
    blocked_version: int
    last_foreground_at: Optional[str]


class CacheActionResponse(BaseModel):
    """Response model for cache maintenance endpoints."""
    status: str = Field(..., description="Outcome of the cache action")
    message: str = Field(..., description="Human-readable message")
