import pytest

from conftest import make_item, make_page
from feedcache.core.exceptions.exceptions import PageFetchError
from feedcache.services.feed_loader import FeedLoader


class FakeProducer:
    """Serves numbered pages of two items each, newest first."""

    def __init__(self, pages=3, fail_on=None):
        self.pages = pages
        self.fail_on = fail_on
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.fail_on == request.page:
            raise ConnectionError("network down")
        base = 100 - request.page * 10
        items = [
            make_item(f"p{request.page}-{n}", f"2024-01-{base // 10 - n:02d}T00:00:00Z", owner_id=f"u{n}")
            for n in range(2)
        ]
        return make_page(items, has_next=request.page < self.pages, page=request.page,
                         total=self.pages * 2, totalPages=self.pages, limit=request.limit)


def test_load_initial_fetches_then_reuses_cache(engine):
    producer = FakeProducer()
    loader = FeedLoader(engine, producer, filter_ids=["teamB", "teamA"], page_size=2)
    assert loader.key == "teamA,teamB"

    snap = loader.load_initial()
    assert snap.page_count == 1
    assert len(producer.requests) == 1
    assert producer.requests[0].filter_ids == ("teamA", "teamB")
    assert producer.requests[0].limit == 2

    loader.load_initial()
    assert len(producer.requests) == 1

def test_load_initial_refetches_when_stale(engine, clock):
    producer = FakeProducer()
    loader = FeedLoader(engine, producer)
    loader.load_initial()
    clock.advance(61)
    loader.load_initial()
    assert len(producer.requests) == 2

def test_load_more_until_exhausted(engine):
    producer = FakeProducer(pages=3)
    loader = FeedLoader(engine, producer)
    loader.load_initial()
    loader.load_more()
    snap = loader.load_more()
    assert loader.current_page == 3
    assert snap.has_next is False
    assert len(snap.items) == 6
    loader.load_more()
    assert [r.page for r in producer.requests] == [1, 2, 3]

def test_load_more_without_bucket_is_noop(engine):
    producer = FakeProducer()
    loader = FeedLoader(engine, producer)
    assert loader.load_more() is None
    assert producer.requests == []

def test_refresh_resets_to_first_page(engine):
    producer = FakeProducer()
    loader = FeedLoader(engine, producer)
    loader.load_initial()
    loader.load_more()
    loader.refresh()
    assert loader.current_page == 1
    assert [r.page for r in producer.requests] == [1, 2, 1]

def test_set_filter_reuses_fresh_bucket(engine):
    producer = FakeProducer()
    loader = FeedLoader(engine, producer, filter_ids=["a"])
    loader.load_initial()
    loader.set_filter(["b"])
    assert loader.key == "b"
    assert len(producer.requests) == 2
    loader.set_filter(["a"])
    assert len(producer.requests) == 2
    loader.set_filter(None)
    assert loader.key == "ALL"
    assert producer.requests[-1].filter_ids is None

def test_blocked_users_loaded_before_first_page(engine):
    producer = FakeProducer()
    loader = FeedLoader(engine, producer, blocked_users_producer=lambda: ["u0"])
    snap = loader.load_initial()
    assert [i.owner_id for i in snap.items] == ["u1"]
    assert engine.needs_refresh(loader.key) is False

def test_producer_failure_raises_page_fetch_error(engine):
    producer = FakeProducer(fail_on=2)
    loader = FeedLoader(engine, producer)
    loader.load_initial()
    with pytest.raises(PageFetchError) as exc_info:
        loader.load_more()
    assert exc_info.value.page == 2
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    # cached data untouched
    assert loader.current_page == 1
    assert len(loader.items) == 2

def test_blocked_users_failure(engine):
    def broken():
        raise TimeoutError("slow")

    loader = FeedLoader(engine, FakeProducer(), blocked_users_producer=broken)
    with pytest.raises(PageFetchError) as exc_info:
        loader.load_initial()
    assert exc_info.value.page is None

def test_local_item_helpers(engine):
    loader = FeedLoader(engine, FakeProducer())
    loader.load_initial()
    loader.update_local_item({"id": "p1-0", "likeCount": 4})
    assert loader.items[0].likeCount == 4
    loader.remove_local_item("p1-0")
    assert [i.id for i in loader.items] == ["p1-1"]

def test_first_page_stored_as_page_one(engine):
    def producer(request):
        return make_page([make_item("x", "2024-01-01T00:00:00Z")], page=9)

    loader = FeedLoader(engine, producer)
    loader.load_initial()
    assert engine.get_page_numbers(loader.key) == [1]

def test_unchanged_blocked_users_keep_other_buckets_fresh(engine):
    producer = FakeProducer()
    loader = FeedLoader(engine, producer, filter_ids=["a"], blocked_users_producer=lambda: ["x"])
    loader.load_initial()
    loader.set_filter(["b"])
    loader.set_filter(["a"])
    assert [r.filter_ids for r in producer.requests] == [("a",), ("b",)]
    assert engine.blocked_version == 1

def test_changed_blocked_users_are_applied(engine):
    blocked = [["x"]]
    producer = FakeProducer()
    loader = FeedLoader(engine, producer, filter_ids=["a"], blocked_users_producer=lambda: blocked[0])
    loader.load_initial()
    blocked[0] = ["u0"]
    snap = loader.refresh()
    assert engine.blocked_version == 2
    assert [i.owner_id for i in snap.items] == ["u1"]
