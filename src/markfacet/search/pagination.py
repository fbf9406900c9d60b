import math
import time
from collections.abc import Mapping
from dataclasses import dataclass

from markfacet.errors import InternalComputationError
from markfacet.models import Bookmark, Facets, SearchFilters, SearchResult


@dataclass
class Page:
    items: list[Bookmark]
    page: int
    per_page: int
    total_pages: int


def paginate(records: list[Bookmark], offset: int, limit: int) -> Page:
    """Slice one page out of the sorted records.

    An offset past the end yields an empty page, not an error.
    """
    if limit < 1:
        raise InternalComputationError(f"limit must be positive, got {limit}")
    offset = max(offset, 0)
    filtered = len(records)
    return Page(
        items=records[offset:offset + limit],
        page=offset // limit + 1,
        per_page=limit,
        total_pages=math.ceil(filtered / limit) if filtered else 0,
    )


def elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


def assemble_result(page: Page, *, total: int, filtered: int, filters: SearchFilters,
                    facets: Facets, scores: Mapping[int | str, float],
                    started: float) -> SearchResult:
    bookmarks = []
    for b in page.items:
        item = b.model_dump(mode="json")
        if filters.query:
            item["relevance_score"] = scores[b.id]
        bookmarks.append(item)

    return SearchResult(
        success=True,
        bookmarks=bookmarks,
        total=total,
        filtered=filtered,
        page=page.page,
        per_page=page.per_page,
        total_pages=page.total_pages,
        filters_applied=filters.model_dump(mode="json"),
        facets=facets,
        search_time_ms=elapsed_ms(started),
    )


def failed_result(filters: SearchFilters, started: float, error: str,
                  details: str | None = None) -> SearchResult:
    """Envelope for a search that could not run: no bookmarks, zero counts, empty facets."""
    return SearchResult(
        success=False,
        page=filters.offset // filters.limit + 1,
        per_page=filters.limit,
        filters_applied=filters.model_dump(mode="json"),
        search_time_ms=elapsed_ms(started),
        error=error,
        details=details,
    )
