from typing import Iterable, Optional

ALL_KEY = "ALL"
KEY_DELIMITER = ","


def build_key(filter_ids: Optional[Iterable[str]]) -> str:
    """Canonical bucket key for a filter combination.

    `None` or an empty collection maps to ``ALL``. Otherwise the ids are sorted
    and joined, so the same set in any order yields the same key. Generators
    are consumed once; an empty one also maps to ``ALL``.
    """
    ids = sorted(str(i) for i in filter_ids) if filter_ids is not None else []
    if not ids:
        return ALL_KEY
    return KEY_DELIMITER.join(ids)
