"""
Search engine - filtering, relevance ranking, facets and pagination.

Provides:
- apply_filters: AND-across-dimensions record filtering
- relevance_score / score_records: field-weighted query scoring
- sort_bookmarks: stable ordering by any sort key
- aggregate_facets: category, tag, site-health and date-range counts
- search / execute_search: the assembled, paginated result envelope
"""
from .engine import execute_search, search
from .facets import aggregate_facets
from .filters import apply_filters
from .pagination import Page, paginate
from .relevance import relevance_score, score_records, tokenize
from .sorting import sort_bookmarks

__all__ = [
    "execute_search",
    "search",
    "aggregate_facets",
    "apply_filters",
    "Page",
    "paginate",
    "relevance_score",
    "score_records",
    "tokenize",
    "sort_bookmarks",
]
