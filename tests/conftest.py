import pytest

from feedcache.services.feed_cache import CacheEngine


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_item(item_id, created_at, owner_id="u1", **extra):
    return {"id": item_id, "createdAt": created_at, "ownerId": owner_id, **extra}


def make_page(items, has_next=False, **meta):
    return {"items": items, "hasNext": has_next, **meta}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return CacheEngine(ttl_seconds=60, max_buckets=3, clock=clock)
