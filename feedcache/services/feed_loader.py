from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from feedcache.core.exceptions.exceptions import PageFetchError
from feedcache.schemas.feed import BucketSnapshot, FeedItem, FeedPage, PageRequest
from feedcache.services.feed_cache import CacheEngine
from feedcache.services.key_builder import build_key
from feedcache.utils.log import app_logger
from feedcache.utils.parser import parse_page

PageProducer = Callable[[PageRequest], Union[FeedPage, Mapping[str, Any]]]
BlockedUsersProducer = Callable[[], Iterable[str]]


class FeedLoader:
    """Drives a page producer through the cache for one filtered feed view.

    The producer is whatever the host uses to fetch a page (HTTP, GraphQL, a
    test double); the loader only decides *when* to call it and where the
    result goes. Producer failures surface as `PageFetchError`; retrying is
    left to the caller.
    """

    def __init__(self,
                 engine: CacheEngine,
                 producer: PageProducer,
                 filter_ids: Optional[Iterable[str]] = None,
                 page_size: int = 10,
                 blocked_users_producer: Optional[BlockedUsersProducer] = None):
        self.engine = engine
        self.producer = producer
        self.page_size = page_size
        self.blocked_users_producer = blocked_users_producer
        self.filter_ids = _normalize(filter_ids)
        self.key = build_key(self.filter_ids)

    @property
    def current_page(self) -> int:
        pages = self.engine.get_page_numbers(self.key)
        return pages[-1] if pages else 0

    @property
    def items(self) -> List[FeedItem]:
        return self.engine.get_merged_items(self.key)

    def load_initial(self, force: bool = False) -> Optional[BucketSnapshot]:
        """Return cached data when it's fresh, otherwise fetch page 1."""
        if not force and not self.engine.needs_refresh(self.key):
            return self.engine.get_bucket_snapshot(self.key)

        if self.blocked_users_producer is not None:
            self._refresh_blocked_users()

        page = parse_page(self._fetch(1), 1)
        self.engine.set_first_page(self.key, page)
        return self.engine.get_bucket_snapshot(self.key)

    def load_more(self) -> Optional[BucketSnapshot]:
        snapshot = self.engine.get_bucket_snapshot(self.key)
        if snapshot is None or not snapshot.has_next:
            return snapshot

        next_page = self.current_page + 1
        page = self._fetch(next_page)
        self.engine.append_page(self.key, next_page, page)
        return self.engine.get_bucket_snapshot(self.key)

    def refresh(self) -> Optional[BucketSnapshot]:
        return self.load_initial(force=True)

    def set_filter(self, filter_ids: Optional[Iterable[str]]) -> Optional[BucketSnapshot]:
        """Switch to another filter, reusing its bucket when still fresh."""
        normalized = _normalize(filter_ids)
        new_key = build_key(normalized)
        if new_key == self.key:
            return self.engine.get_bucket_snapshot(self.key)

        self.filter_ids = normalized
        self.key = new_key
        if not self.engine.needs_refresh(new_key):
            return self.engine.get_bucket_snapshot(new_key)
        return self.load_initial(force=True)

    def update_local_item(self, updated: Union[FeedItem, Mapping[str, Any]]) -> None:
        self.engine.update_item_across_buckets(updated)

    def remove_local_item(self, item_id: str) -> None:
        self.engine.remove_item_everywhere(item_id)

    def _fetch(self, page_number: int):
        request = PageRequest(page=page_number, limit=self.page_size, filter_ids=self.filter_ids)
        try:
            return self.producer(request)
        except Exception as e:
            app_logger.error("feed_loader.fetch_failed", key=self.key, page=page_number,
                             exc_type=type(e).__name__, error=str(e))
            raise PageFetchError(self.key, page_number, str(e)) from e

    def _refresh_blocked_users(self) -> None:
        try:
            blocked = list(self.blocked_users_producer())
        except Exception as e:
            app_logger.error("feed_loader.blocked_users_failed", key=self.key,
                             exc_type=type(e).__name__, error=str(e))
            raise PageFetchError(self.key, None, str(e)) from e
        if frozenset(str(o) for o in blocked) == self.engine.blocked_users:
            return
        self.engine.set_blocked_users(blocked)


def _normalize(filter_ids: Optional[Iterable[str]]):
    if not filter_ids:
        return None
    ids = tuple(sorted(str(i) for i in filter_ids))
    return ids or None
