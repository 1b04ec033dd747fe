from typing import AbstractSet, Dict, List

from feedcache.schemas.feed import FeedItem, FeedPage
from feedcache.services.exclusion import filter_blocked


def merge_pages(pages: Dict[int, FeedPage], blocked_owner_ids: AbstractSet[str]) -> List[FeedItem]:
    """Build the merged list for a bucket.

    Pages are walked in ascending page order and items are keyed by id, so a
    duplicate in a later page replaces the earlier one. The result is sorted
    newest first (stable for equal timestamps) and exclusion-filtered.
    """
    by_id: Dict[str, FeedItem] = {}
    for number in sorted(pages):
        for item in pages[number].items:
            by_id[item.id] = item
    merged = sorted(by_id.values(), key=lambda i: i.created_at.timestamp(), reverse=True)
    return filter_blocked(merged, blocked_owner_ids)
