from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from feedcache.schemas.feed import FeedItem, FeedPage
from feedcache.utils.log import app_logger


class Parser:
    """Turns whatever a page producer returned into a `FeedPage`.

    Malformed input never raises: a payload that isn't a mapping becomes an
    empty page, non-list `items` become `[]`, and items that fail validation
    are skipped.
    """

    def __init__(self, data):
        self.data = data

    def parse_items(self, raw_items) -> List[FeedItem]:
        if not isinstance(raw_items, (list, tuple)):
            if raw_items is not None:
                app_logger.warning("parser.items_not_list", got=type(raw_items).__name__)
            return []
        parsed = []
        for raw in raw_items:
            if isinstance(raw, FeedItem):
                parsed.append(raw)
                continue
            try:
                parsed.append(FeedItem.model_validate(raw))
            except ValidationError as e:
                app_logger.warning("parser.item_skipped", errors=e.error_count(), item_id=_raw_id(raw))
        return parsed

    def parse_page(self, page_number: Optional[int] = None) -> FeedPage:
        data = self.data
        if isinstance(data, FeedPage):
            update = {"items": list(data.items)}
            if page_number is not None:
                update["page"] = page_number
            return data.model_copy(update=update)

        if not isinstance(data, Mapping):
            app_logger.warning("parser.page_not_mapping", got=type(data).__name__)
            return FeedPage(page=page_number)

        raw_items = data.get("items")
        if raw_items is None:
            raw_items = data.get("posts")

        return FeedPage(
            items=self.parse_items(raw_items),
            has_next=bool(_first(data, "hasNext", "has_next", default=False)),
            total=_as_int(_first(data, "total")),
            total_pages=_as_int(_first(data, "totalPages", "total_pages")),
            limit=_as_int(_first(data, "limit", "pageSize", "page_size")),
            page=page_number if page_number is not None else _as_int(_first(data, "page")),
        )


def parse_page(data: Any, page_number: Optional[int] = None) -> FeedPage:
    return Parser(data).parse_page(page_number)


def _first(data: Mapping, *names, default=None):
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return default


def _as_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _raw_id(raw) -> Optional[str]:
    if isinstance(raw, Mapping) and raw.get("id") is not None:
        return str(raw.get("id"))
    return None
