import logging
import unicodedata
from collections.abc import Callable, Mapping
from typing import Any

from markfacet.models import Bookmark, SortBy, SortOrder
from markfacet.search.relevance import score_records

logger = logging.getLogger(__name__)


def _title_key(bookmark: Bookmark) -> tuple[str, str, str]:
    """Collation key compared level by level: base letters, then accents, then case.

    Mirrors the default (root) Unicode collation order, so "éclair" sorts
    between "apple" and "zebra" regardless of the process locale.
    """
    decomposed = unicodedata.normalize("NFKD", bookmark.title)
    base = "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()
    # swapcase puts lowercase ahead of uppercase on the last level
    return base, decomposed.casefold(), decomposed.swapcase()


_SORT_KEYS: dict[SortBy, Callable[[Bookmark], Any]] = {
    SortBy.TITLE: _title_key,
    SortBy.CREATED_AT: lambda b: b.created_at,
    SortBy.UPDATED_AT: lambda b: b.updated_at,
    SortBy.VISITS: lambda b: b.visits,
}


def sort_bookmarks(records: list[Bookmark], sort_by: SortBy | None, sort_order: SortOrder,
                   query: str | None = None,
                   scores: Mapping[int | str, float] | None = None) -> list[Bookmark]:
    """Stable sort; `desc` puts the largest key first and ties keep input order.

    Relevance uses one score per record (computed here unless `scores` is given)
    and falls back to updated_at when there is no query.
    """
    reverse = sort_order is SortOrder.DESC

    if sort_by is SortBy.RELEVANCE:
        if query:
            if scores is None:
                scores = score_records(records, query)
            return sorted(records, key=lambda b: scores[b.id], reverse=reverse)
        return sorted(records, key=_SORT_KEYS[SortBy.UPDATED_AT], reverse=reverse)

    key = _SORT_KEYS.get(sort_by)
    if key is None:
        logger.debug(f"No sort key for {sort_by!r}, using created_at desc")
        return sorted(records, key=_SORT_KEYS[SortBy.CREATED_AT], reverse=True)
    return sorted(records, key=key, reverse=reverse)
