import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from feedcache.config.settings import Settings
from feedcache.models.bucket import Bucket
from feedcache.schemas.feed import BucketSnapshot, FeedItem, FeedPage
from feedcache.services.exclusion import ExclusionSet
from feedcache.services.key_builder import build_key
from feedcache.services.lifecycle import LifecycleObserver, LifecycleSource, build_lifecycle_source
from feedcache.services.merge import merge_pages
from feedcache.services.notifier import Listener, Notifier
from feedcache.utils.log import app_logger
from feedcache.utils.parser import parse_page

PageInput = Union[FeedPage, Mapping[str, Any]]


class CacheEngine:
    """In-memory feed bucket cache.

    One bucket per filter key, each holding the pages loaded for that filter
    and a merged, deduplicated, newest-first view over them. Freshness is
    decided by `needs_refresh`; callers fetch when it says so and write the
    result back with `set_first_page` / `append_page` / `replace_page`.

    Buckets are kept in load order, so the front of `_buckets` is always the
    least recently loaded one and is what LRU eviction drops.
    """

    def __init__(self,
                 ttl_seconds: float = 60.0,
                 max_buckets: int = 12,
                 foreground_stale_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        if max_buckets < 1:
            raise ValueError("max_buckets must be at least 1")
        self.ttl = ttl_seconds
        self.max_buckets = max_buckets
        self.clock = clock
        self._buckets: "OrderedDict[str, Bucket]" = OrderedDict()
        self._exclusions = ExclusionSet()
        self._notifier = Notifier()
        threshold = foreground_stale_seconds if foreground_stale_seconds is not None else ttl_seconds
        self.lifecycle = LifecycleObserver(self.mark_all_stale, threshold, clock)
        self._lifecycle_source: Optional[LifecycleSource] = None

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], float] = time.time) -> "CacheEngine":
        return cls(
            ttl_seconds=settings.FEED_TTL_SECONDS,
            max_buckets=settings.FEED_MAX_BUCKETS,
            foreground_stale_seconds=settings.FEED_FOREGROUND_STALE_SECONDS,
            clock=clock,
        )

    build_key = staticmethod(build_key)

    # ------------------------------------------------------------------ writes

    def set_first_page(self, key: str, page: PageInput) -> None:
        """Start `key` over with a single page (page number from the payload, default 1)."""
        parsed = parse_page(page)
        number = parsed.page if parsed.page is not None else 1
        self._reset_bucket(key, number, parsed)

    def append_page(self, key: str, page_number: int, page: PageInput) -> None:
        """Add the next page of `key`. Creates the bucket when missing."""
        self._write_page(key, page_number, page)

    def replace_page(self, key: str, page_number: int, page: PageInput) -> None:
        """Reload an already known page of `key`. Creates the bucket when missing."""
        self._write_page(key, page_number, page)

    def _reset_bucket(self, key: str, number: int, page: FeedPage) -> None:
        bucket = Bucket(key=key, last_loaded_at=self.clock(), blocked_version=self._exclusions.version)
        bucket.put_page(number, page)
        bucket.merged = merge_pages(bucket.pages, self._exclusions.owner_ids)
        self._buckets.pop(key, None)
        self._buckets[key] = bucket
        app_logger.debug("feed_cache.first_page", key=key, page=number, items=len(page.items))
        self._prune_lru()
        self._emit(key)

    def _write_page(self, key: str, page_number: int, page: PageInput) -> None:
        parsed = parse_page(page, page_number)
        bucket = self._buckets.get(key)
        if bucket is None:
            self._reset_bucket(key, page_number, parsed)
            return
        bucket.put_page(page_number, parsed)
        bucket.last_loaded_at = self.clock()
        bucket.stale = False
        bucket.merged = merge_pages(bucket.pages, self._exclusions.owner_ids)
        self._buckets.move_to_end(key)
        app_logger.debug("feed_cache.page_written", key=key, page=page_number, items=len(parsed.items))
        self._emit(key)

    def update_item_across_buckets(self, updated: Union[FeedItem, Mapping[str, Any]]) -> None:
        """Patch an item wherever it is cached (e.g. an optimistic like toggle)."""
        if isinstance(updated, FeedItem):
            fields = updated.model_dump(by_alias=True, exclude_unset=True)
        else:
            fields = _by_alias(updated)
        item_id = fields.get("id")
        if item_id is None:
            app_logger.warning("feed_cache.update_without_id")
            return
        item_id = str(item_id)

        for bucket in list(self._buckets.values()):
            changed = False
            for page in bucket.pages.values():
                if not any(item.id == item_id for item in page.items):
                    continue
                patched_items = []
                for item in page.items:
                    if item.id == item_id:
                        try:
                            patched = FeedItem.model_validate({**item.model_dump(by_alias=True), **fields})
                        except ValidationError as e:
                            app_logger.warning("feed_cache.update_invalid", key=bucket.key, item_id=item_id, errors=e.error_count())
                            patched = item
                        changed = changed or patched is not item
                        item = patched
                    patched_items.append(item)
                page.items = patched_items
            if changed:
                self._remerge(bucket)

    def remove_item_everywhere(self, item_id: str) -> None:
        item_id = str(item_id)
        for bucket in list(self._buckets.values()):
            changed = False
            for page in bucket.pages.values():
                kept = [item for item in page.items if item.id != item_id]
                if len(kept) != len(page.items):
                    page.items = kept
                    changed = True
            if changed:
                self._remerge(bucket)

    def set_blocked_users(self, owner_ids: Iterable[str]) -> None:
        """Replace the exclusion set and re-filter every cached bucket now.

        Buckets keep their previous `blocked_version`, so they still report
        `needs_refresh` until a fresh first page is written.
        """
        version = self._exclusions.replace(owner_ids)
        app_logger.info("feed_cache.blocked_users", count=len(self._exclusions.owner_ids), version=version)
        for bucket in list(self._buckets.values()):
            self._remerge(bucket)

    def _remerge(self, bucket: Bucket) -> None:
        bucket.merged = merge_pages(bucket.pages, self._exclusions.owner_ids)
        self._emit(bucket.key)

    # --------------------------------------------------------------- staleness

    def needs_refresh(self, key: str) -> bool:
        bucket = self._buckets.get(key)
        if bucket is None:
            return True
        if bucket.stale:
            return True
        if self._is_expired(bucket):
            return True
        return bucket.blocked_version != self._exclusions.version

    def _is_expired(self, bucket: Bucket) -> bool:
        return self.clock() - bucket.last_loaded_at >= self.ttl

    def mark_stale(self, key: str) -> None:
        bucket = self._buckets.get(key)
        if bucket is None:
            return
        bucket.stale = True
        self._emit(key)

    def mark_all_stale(self) -> None:
        for bucket in self._buckets.values():
            bucket.stale = True
        for key in list(self._buckets):
            self._emit(key)

    # ------------------------------------------------------------------- reads

    def get_bucket_snapshot(self, key: str) -> Optional[BucketSnapshot]:
        bucket = self._buckets.get(key)
        return bucket.to_snapshot() if bucket else None

    def get_merged_items(self, key: str) -> List[FeedItem]:
        bucket = self._buckets.get(key)
        return list(bucket.merged) if bucket else []

    def get_page_numbers(self, key: str) -> List[int]:
        bucket = self._buckets.get(key)
        return bucket.page_numbers() if bucket else []

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    @property
    def blocked_version(self) -> int:
        return self._exclusions.version

    @property
    def blocked_users(self) -> frozenset:
        return self._exclusions.owner_ids

    # ---------------------------------------------------------------- removal

    def remove_bucket(self, key: str) -> None:
        self._buckets.pop(key, None)
        self._notifier.emit(key, None)
        self._notifier.drop(key)

    def clear_all(self) -> None:
        app_logger.info("feed_cache.clear_all", buckets=len(self._buckets))
        self._buckets.clear()
        self._notifier.clear()

    def _prune_lru(self) -> None:
        while len(self._buckets) > self.max_buckets:
            key, victim = self._buckets.popitem(last=False)
            app_logger.debug("feed_cache.lru_prune", key=key, last_loaded_at=victim.last_loaded_at)
            self._notifier.emit(key, None)
            self._notifier.drop(key)

    # ----------------------------------------------------------------- pub/sub

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        return self._notifier.subscribe(key, listener, self.get_bucket_snapshot(key))

    def _emit(self, key: str) -> None:
        if not self._notifier.has_listeners(key):
            return
        self._notifier.emit(key, self.get_bucket_snapshot(key))

    # --------------------------------------------------------------- lifecycle

    def attach_lifecycle(self, source: Optional[LifecycleSource] = None, name: Optional[str] = None) -> LifecycleSource:
        """Wire a host lifecycle source. `name` builds one via `build_lifecycle_source`."""
        if source is None:
            source = build_lifecycle_source(name or "none", self.clock)
        self.detach_lifecycle()
        source.attach(self.lifecycle.on_foreground_after_background)
        self._lifecycle_source = source
        app_logger.debug("feed_cache.lifecycle_attached", source=type(source).__name__)
        return source

    def detach_lifecycle(self) -> None:
        if self._lifecycle_source is not None:
            self._lifecycle_source.detach()
            self._lifecycle_source = None

    # ------------------------------------------------------------------- debug

    def debug_snapshot(self) -> Dict[str, Any]:
        now = self.clock()
        return {
            "bucket_count": len(self._buckets),
            "buckets": [
                {
                    "key": b.key,
                    "pages": b.page_numbers(),
                    "merged_length": len(b.merged),
                    "has_next": b.has_next,
                    "stale": b.stale,
                    "age_seconds": now - b.last_loaded_at,
                    "last_loaded_at": datetime.fromtimestamp(b.last_loaded_at, tz=timezone.utc).isoformat(),
                }
                for b in self._buckets.values()
            ],
            "blocked_users": sorted(self._exclusions.owner_ids),
            "blocked_version": self._exclusions.version,
            "last_foreground_at": self.lifecycle.last_foreground_iso(),
        }


def _by_alias(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename snake_case model fields to their payload aliases (`owner_id` -> `ownerId`)."""
    renamed = dict(fields)
    for name, info in FeedItem.model_fields.items():
        if info.alias and name in renamed:
            renamed[info.alias] = renamed.pop(name)
    return renamed
