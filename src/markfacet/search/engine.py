"""
Search entry points.

`search` is a pure function of (records, filters): the record list is filtered
once, and that single filtered list feeds both the sort/paginate branch and
the facet branch. `execute_search` adds the boundary around it: it pulls the
records from an injected source and turns any failure into a failed envelope.
"""
import logging
import time
from collections.abc import Iterable
from datetime import datetime

from markfacet.errors import SourceUnavailableError
from markfacet.models import Bookmark, SearchFilters, SearchResult, SortBy
from markfacet.search.facets import aggregate_facets
from markfacet.search.filters import apply_filters
from markfacet.search.pagination import assemble_result, elapsed_ms, failed_result, paginate
from markfacet.search.relevance import score_records
from markfacet.search.sorting import sort_bookmarks
from markfacet.sources import RecordSource

logger = logging.getLogger(__name__)


def search(records: Iterable[Bookmark], filters: SearchFilters, *,
           now: datetime | None = None, started: float | None = None) -> SearchResult:
    if started is None:
        started = time.perf_counter()

    snapshot = list(records)
    filtered = apply_filters(snapshot, filters)

    scores: dict[int | str, float] = {}
    if filters.query and filters.sort_by is SortBy.RELEVANCE:
        scores = score_records(filtered, filters.query)

    ordered = sort_bookmarks(filtered, filters.sort_by, filters.sort_order,
                             query=filters.query, scores=scores)
    page = paginate(ordered, filters.offset, filters.limit)

    if filters.query:
        unscored = [b for b in page.items if b.id not in scores]
        scores.update(score_records(unscored, filters.query))

    facets = aggregate_facets(filtered, now=now)
    result = assemble_result(page, total=len(snapshot), filtered=len(filtered), filters=filters,
                             facets=facets, scores=scores, started=started)
    logger.debug(
        f"Search matched {result.filtered}/{result.total} bookmarks, "
        f"page {result.page}/{result.total_pages} in {result.search_time_ms}ms"
    )
    return result


def execute_search(source: RecordSource, scope: str | None, filters: SearchFilters, *,
                   now: datetime | None = None) -> SearchResult:
    """Run a search for one scope against an injected record source.

    Never raises: an unavailable source or an unexpected error inside the
    pipeline comes back as `success=False` with a message and timing.
    """
    started = time.perf_counter()
    try:
        records = source.fetch_all(scope)
    except SourceUnavailableError as e:
        logger.error(f"Record source unavailable for scope {scope!r}: {e}")
        return failed_result(filters, started, "Record source unavailable", str(e))

    try:
        return search(records, filters, now=now, started=started)
    except Exception as e:
        logger.exception(f"Search failed after {elapsed_ms(started)}ms")
        return failed_result(filters, started, "Search failed", f"{type(e).__name__}: {e}")
