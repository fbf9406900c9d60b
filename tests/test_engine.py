from datetime import timedelta

import pytest

from markfacet.errors import SourceUnavailableError
from markfacet.models import SearchFilters
from markfacet.search import engine
from markfacet.search.engine import execute_search, search


class ListSource:
    def __init__(self, records):
        self.records = records
        self.scopes = []

    def fetch_all(self, scope):
        self.scopes.append(scope)
        return list(self.records)


class DownSource:
    def fetch_all(self, scope):
        raise SourceUnavailableError("database is locked")


@pytest.fixture
def library(make_bookmark, now):
    return [
        make_bookmark(1, "React Guide", tags=["react"], category="Dev", visits=3,
                      site_health="working", created_at=now - timedelta(days=2)),
        make_bookmark(2, "Cooking Basics", tags=["food"], category="Food", visits=0,
                      created_at=now - timedelta(days=20)),
        make_bookmark(3, "React Hooks Deep Dive", tags=["react", "hooks"], category="Dev",
                      ai_category="Frontend", visits=12, notes="great",
                      site_health="excellent", created_at=now - timedelta(days=400)),
    ]


def _ids(result):
    return [b["id"] for b in result.bookmarks]


def test_query_filters_scores_and_keeps_tie_order(library, now):
    result = search(library, SearchFilters(query="react"), now=now)
    assert result.success
    assert result.total == 3
    assert result.filtered == 2
    assert _ids(result) == [1, 3]
    assert [b["relevance_score"] for b in result.bookmarks] == [1.0, 1.0]


def test_relevance_score_omitted_without_query(library, now):
    result = search(library, SearchFilters(sort_by="visits"), now=now)
    assert _ids(result) == [3, 1, 2]
    assert all("relevance_score" not in b for b in result.bookmarks)


def test_relevance_score_present_for_non_relevance_sorts(library, now):
    result = search(library, SearchFilters(query="react", sort_by="title", sort_order="asc"), now=now)
    assert _ids(result) == [1, 3]
    assert all(0.0 <= b["relevance_score"] <= 1.0 for b in result.bookmarks)


def test_pagination_past_the_end(make_bookmark, now):
    records = [make_bookmark(i) for i in range(22)]
    result = search(records, SearchFilters(limit=10, offset=25), now=now)
    assert result.bookmarks == []
    assert result.filtered == 22
    assert result.total_pages == 3
    assert result.page == 3
    assert result.per_page == 10


def test_pagination_slices_sorted_records(make_bookmark, now):
    records = [make_bookmark(i, visits=i) for i in range(25)]
    result = search(records, SearchFilters(sort_by="visits", limit=10, offset=10), now=now)
    assert _ids(result) == list(range(14, 4, -1))
    assert result.page == 2
    assert result.total_pages == 3


def test_no_matches_has_zero_pages(library, now):
    result = search(library, SearchFilters(query="nothing like this"), now=now)
    assert result.filtered == 0
    assert result.total_pages == 0
    assert result.page == 1
    assert result.bookmarks == []


def test_facets_cover_all_filtered_records_not_just_the_page(library, now):
    result = search(library, SearchFilters(query="react", limit=1), now=now)
    assert len(result.bookmarks) == 1
    assert [(b.name, b.count) for b in result.facets.tags] == [("react", 2), ("hooks", 1)]
    assert [(b.name, b.count) for b in result.facets.categories] == [("Dev", 2), ("Frontend", 1)]
    assert result.facets.date_ranges.last_week == 1
    assert result.facets.date_ranges.older == 1


def test_filters_are_echoed(library, now):
    filters = SearchFilters(query="react", tags=["react"], min_visits=1)
    result = search(library, filters, now=now)
    assert result.filters_applied["query"] == "react"
    assert result.filters_applied["tags"] == ["react"]
    assert result.filters_applied["min_visits"] == 1
    assert result.filters_applied["sort_by"] == "relevance"


def test_search_is_idempotent(library, now):
    filters = SearchFilters(query="react", tags=["react", "food"], sort_by="title")
    first = search(library, filters, now=now).model_dump(exclude={"search_time_ms"})
    second = search(library, filters, now=now).model_dump(exclude={"search_time_ms"})
    assert first == second


@pytest.mark.parametrize("filters", [
    SearchFilters(),
    SearchFilters(limit=1),
    SearchFilters(limit=2, offset=1),
    SearchFilters(query="react", limit=1, offset=5),
    SearchFilters(tags=["hooks"], has_notes=True),
    SearchFilters(categories=["Frontend"], sort_by="created_at", sort_order="asc"),
    SearchFilters(min_visits=100),
])
def test_result_invariants(library, now, filters):
    result = search(library, filters, now=now)
    assert result.filtered <= result.total
    assert len(result.bookmarks) <= min(filters.limit, result.filtered)
    assert sum(b.count for b in result.facets.site_health) == result.filtered
    histogram = result.facets.date_ranges
    assert histogram.last_week + histogram.last_month + histogram.last_year + histogram.older == result.filtered
    assert result.page == filters.offset // filters.limit + 1
    assert result.search_time_ms >= 0


def test_execute_search_passes_scope_to_source(library, now):
    source = ListSource(library)
    result = execute_search(source, "user-1", SearchFilters(tags=["food"]), now=now)
    assert source.scopes == ["user-1"]
    assert result.success
    assert _ids(result) == [2]


def test_unavailable_source_degrades_to_empty_failure():
    result = execute_search(DownSource(), None, SearchFilters(query="react", limit=5, offset=10))
    assert result.success is False
    assert result.error == "Record source unavailable"
    assert "database is locked" in result.details
    assert result.bookmarks == []
    assert (result.total, result.filtered, result.total_pages) == (0, 0, 0)
    assert result.facets.categories == []
    assert result.page == 3
    assert result.filters_applied["query"] == "react"
    assert result.search_time_ms >= 0


def test_internal_error_returns_failure_without_partial_results(library, monkeypatch):
    def explode(records, now=None):
        raise RuntimeError("facet overflow")

    monkeypatch.setattr(engine, "aggregate_facets", explode)
    result = execute_search(ListSource(library), None, SearchFilters())
    assert result.success is False
    assert result.error == "Search failed"
    assert result.details == "RuntimeError: facet overflow"
    assert result.bookmarks == []
    assert result.filtered == 0
