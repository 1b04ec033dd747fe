from dataclasses import dataclass, field
from typing import Dict, List, Optional

from feedcache.schemas.feed import BucketSnapshot, FeedItem, FeedPage


@dataclass
class Bucket:
    """Cache unit for one filter key: its pages and the merged view over them."""
    key: str
    last_loaded_at: float
    blocked_version: int
    pages: Dict[int, FeedPage] = field(default_factory=dict)
    merged: List[FeedItem] = field(default_factory=list)
    has_next: bool = False
    stale: bool = False
    total: Optional[int] = None
    total_pages: Optional[int] = None
    limit: Optional[int] = None

    def put_page(self, number: int, page: FeedPage) -> None:
        """Store `page` at `number` and refresh pagination metadata.

        `has_next` follows the highest loaded page. Meta values the page leaves
        out keep whatever the bucket already had.
        """
        self.pages[number] = page
        self.has_next = self.pages[max(self.pages)].has_next
        if page.total is not None:
            self.total = page.total
        if page.total_pages is not None:
            self.total_pages = page.total_pages
        if page.limit is not None:
            self.limit = page.limit

    def page_numbers(self) -> List[int]:
        return sorted(self.pages)

    def to_snapshot(self) -> BucketSnapshot:
        return BucketSnapshot(
            key=self.key,
            items=tuple(item.model_copy(deep=True) for item in self.merged),
            has_next=self.has_next,
            stale=self.stale,
            last_loaded_at=self.last_loaded_at,
            page_count=len(self.pages),
            total=self.total,
            total_pages=self.total_pages,
            limit=self.limit,
        )
