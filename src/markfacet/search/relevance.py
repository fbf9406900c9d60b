"""Field-weighted relevance scoring of a bookmark against a free-text query."""
from collections.abc import Iterable

from markfacet.models import Bookmark
from markfacet.search.filters import searchable_text

TITLE_POINTS = 3
TAG_POINTS = 2
TEXT_POINTS = 1


def tokenize(query: str | None) -> list[str]:
    if not query:
        return []
    return [term for term in query.lower().split() if term]


def _score_terms(bookmark: Bookmark, terms: list[str]) -> float:
    if not terms:
        return 1.0
    title = bookmark.title.lower()
    user_tags = [tag.lower() for tag in bookmark.tags]
    text = searchable_text(bookmark)

    points = 0
    for term in terms:
        if term in title:
            points += TITLE_POINTS
        elif any(term in tag for tag in user_tags):
            points += TAG_POINTS
        elif term in text:
            points += TEXT_POINTS

    max_points = TITLE_POINTS * len(terms)
    return points / max_points if max_points else 0.0


def relevance_score(bookmark: Bookmark, query: str | None) -> float:
    """Score in [0, 1]: 3 points per term found in the title, else 2 in a user
    tag, else 1 anywhere in the searchable text, normalized by 3 per term.

    A query with no terms is neutral and scores 1.0.
    """
    return _score_terms(bookmark, tokenize(query))


def score_records(records: Iterable[Bookmark], query: str | None) -> dict[int | str, float]:
    """Score every record once, keyed by bookmark id."""
    terms = tokenize(query)
    return {b.id: _score_terms(b, terms) for b in records}
