"""Shared fixtures for the search engine tests."""
from datetime import datetime, timedelta, timezone

import pytest

from markfacet.models import Bookmark

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_bookmark():
    """Factory for bookmarks with sensible defaults; any field can be overridden."""
    def _make(id: int, title: str = "Untitled", **fields) -> Bookmark:
        fields.setdefault("url", f"https://example.com/{id}")
        fields.setdefault("created_at", NOW - timedelta(days=1))
        return Bookmark(id=id, title=title, **fields)
    return _make
