from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FeedItem(BaseModel):
    """One content record in a feed page.

    Only `id`, `created_at` and `owner_id` are interpreted by the cache; any
    other field is carried through untouched.
    """
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: str
    created_at: datetime = Field(..., alias="createdAt")
    owner_id: Optional[str] = Field(default=None, alias="ownerId")

    @model_validator(mode="before")
    @classmethod
    def _owner_from_author(cls, data: Any) -> Any:
        # payloads that embed the author object instead of a flat owner id
        if isinstance(data, dict) and data.get("ownerId") is None and data.get("owner_id") is None:
            author = data.get("author")
            if isinstance(author, dict) and author.get("id") is not None:
                data = {**data, "ownerId": str(author["id"])}
        return data

    @field_validator("id", "owner_id", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class FeedPage(BaseModel):
    """One page of a bucket plus the pagination metadata that came with it."""
    model_config = ConfigDict(populate_by_name=True)

    items: List[FeedItem] = Field(default_factory=list)
    has_next: bool = Field(default=False, alias="hasNext")
    total: Optional[int] = None
    total_pages: Optional[int] = Field(default=None, alias="totalPages")
    limit: Optional[int] = None
    page: Optional[int] = None


class BucketSnapshot(BaseModel):
    """Read-only view of a bucket handed to readers and subscribers.

    Items are deep copies, so mutable extra fields (an embedded `author`
    dict, say) can be changed by a subscriber without touching the cache.
    """
    model_config = ConfigDict(frozen=True)

    key: str
    items: Tuple[FeedItem, ...] = ()
    has_next: bool = False
    stale: bool = False
    last_loaded_at: float
    page_count: int = 0
    total: Optional[int] = None
    total_pages: Optional[int] = None
    limit: Optional[int] = None


class PageRequest(BaseModel):
    """What a page producer is asked for."""
    model_config = ConfigDict(frozen=True)

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    filter_ids: Optional[Tuple[str, ...]] = None
