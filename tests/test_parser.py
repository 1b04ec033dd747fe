from datetime import timezone

from feedcache.schemas.feed import FeedItem, FeedPage
from feedcache.utils.parser import parse_page


def test_parse_page_mapping():
    page = parse_page({
        "items": [{"id": "p1", "createdAt": "2024-01-02T00:00:00Z", "ownerId": "u1", "likeCount": 3}],
        "hasNext": True,
        "total": 40,
        "totalPages": 4,
        "limit": 10,
        "page": 2,
    })
    assert page.page == 2
    assert page.has_next is True
    assert (page.total, page.total_pages, page.limit) == (40, 4, 10)
    assert page.items[0].id == "p1"
    assert page.items[0].owner_id == "u1"
    assert page.items[0].likeCount == 3

def test_parse_page_explicit_number_wins():
    page = parse_page({"items": [], "page": 7}, page_number=3)
    assert page.page == 3

def test_parse_page_posts_and_page_size_aliases():
    page = parse_page({"posts": [{"id": 1, "createdAt": "2024-01-01T00:00:00"}], "pageSize": 5})
    assert page.items[0].id == "1"
    assert page.items[0].created_at.tzinfo == timezone.utc
    assert page.limit == 5
    assert page.has_next is False

def test_non_list_items_coerced_to_empty():
    page = parse_page({"items": "oops", "hasNext": True})
    assert page.items == []
    assert page.has_next is True

def test_invalid_items_are_skipped():
    page = parse_page({"items": [
        {"id": "ok", "createdAt": "2024-01-01T00:00:00Z"},
        {"createdAt": "2024-01-01T00:00:00Z"},
        {"id": "bad-date", "createdAt": "not a date"},
        "garbage",
    ]})
    assert [i.id for i in page.items] == ["ok"]

def test_non_mapping_payload_is_empty_page():
    page = parse_page(None, page_number=1)
    assert page.items == []
    assert page.page == 1

def test_owner_taken_from_author():
    item = FeedItem.model_validate({"id": "p1", "createdAt": "2024-01-01T00:00:00Z", "author": {"id": "u9"}})
    assert item.owner_id == "u9"

def test_feed_page_is_copied():
    source_page = FeedPage(items=[FeedItem(id="a", createdAt="2024-01-01T00:00:00Z")], hasNext=True)
    parsed = parse_page(source_page, page_number=4)
    assert parsed.page == 4
    assert source_page.page is None
    assert parsed.items is not source_page.items
    assert parsed.items == source_page.items
