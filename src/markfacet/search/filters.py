"""Filter pipeline: narrows a record set by every active filter dimension.

Dimensions are ANDed together; the values inside one dimension are ORed.
Input order is preserved.
"""
from collections.abc import Iterable
from datetime import datetime, time

from markfacet.models import Bookmark, SearchFilters


def searchable_text(bookmark: Bookmark, include_url: bool = False) -> str:
    """Lowercased concatenation of every text field a query can hit."""
    parts = [
        bookmark.title,
        bookmark.description,
        bookmark.notes,
        bookmark.ai_summary,
        *bookmark.tags,
        *bookmark.ai_tags,
        bookmark.category,
        bookmark.ai_category,
    ]
    if include_url:
        parts.append(bookmark.url)
    return " ".join(p for p in parts if p).lower()


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time(23, 59, 59, 999000), tzinfo=moment.tzinfo)


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def _matches_filters(bookmark: Bookmark, filters: SearchFilters, needle: str | None,
                     categories: set[str], tags: set[str], health: set[str],
                     date_to: datetime | None) -> bool:
    if needle and needle not in searchable_text(bookmark, include_url=True):
        return False
    if categories and bookmark.category not in categories and bookmark.ai_category not in categories:
        return False
    if tags and tags.isdisjoint(bookmark.tags) and tags.isdisjoint(bookmark.ai_tags):
        return False
    if health and (bookmark.site_health is None or bookmark.site_health.value not in health):
        return False
    if filters.date_from is not None and bookmark.created_at < filters.date_from:
        return False
    if date_to is not None and bookmark.created_at > date_to:
        return False
    if filters.has_notes is not None and _has_text(bookmark.notes) != filters.has_notes:
        return False
    if filters.has_ai_summary is not None and _has_text(bookmark.ai_summary) != filters.has_ai_summary:
        return False
    if filters.min_visits is not None and bookmark.visits < filters.min_visits:
        return False
    if filters.max_visits is not None and bookmark.visits > filters.max_visits:
        return False
    return True


def apply_filters(records: Iterable[Bookmark], filters: SearchFilters) -> list[Bookmark]:
    needle = filters.query.lower() if filters.query else None
    categories = set(filters.categories or ())
    tags = set(filters.tags or ())
    health = set(filters.site_health or ())
    date_to = end_of_day(filters.date_to) if filters.date_to is not None else None
    return [
        b for b in records
        if _matches_filters(b, filters, needle, categories, tags, health, date_to)
    ]
