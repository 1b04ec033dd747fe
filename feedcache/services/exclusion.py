from typing import AbstractSet, Iterable, List

from feedcache.schemas.feed import FeedItem


def filter_blocked(items: Iterable[FeedItem], blocked_owner_ids: AbstractSet[str]) -> List[FeedItem]:
    """Drop items owned by a blocked owner. Items without an owner are kept."""
    if not blocked_owner_ids:
        return list(items)
    return [item for item in items if item.owner_id not in blocked_owner_ids]


class ExclusionSet:
    """Globally shared blocked-owner ids plus a revision counter."""

    def __init__(self):
        self.owner_ids: frozenset = frozenset()
        self.version = 0

    def replace(self, owner_ids: Iterable[str]) -> int:
        self.owner_ids = frozenset(str(o) for o in owner_ids)
        self.version += 1
        return self.version

    def __contains__(self, owner_id) -> bool:
        return owner_id in self.owner_ids
