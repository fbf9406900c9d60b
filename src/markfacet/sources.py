"""
Record sources: where a search gets its candidate bookmarks from.

The engine only ever sees the `RecordSource` protocol; which concrete source
backs it is decided once, when the service starts.
"""
import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from markfacet.config import Settings
from markfacet.db import BookmarkStore
from markfacet.errors import SourceUnavailableError
from markfacet.models import Bookmark

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    def fetch_all(self, scope: str | None) -> list[Bookmark]:
        """Every bookmark owned by `scope`; raises SourceUnavailableError on failure."""
        ...


class JsonFileSource:
    """Bookmarks from a JSON file holding an array (or `{"bookmarks": [...]}`)."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def fetch_all(self, scope: str | None) -> list[Bookmark]:
        if not self.path.exists():
            logger.debug(f"Bookmark file {self.path} does not exist, no records")
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise SourceUnavailableError(f"Cannot read bookmark file {self.path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("bookmarks")
        if not isinstance(data, list):
            raise SourceUnavailableError(f"Bookmark file {self.path} does not hold a list of bookmarks")

        bookmarks = []
        for raw in data:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object entry in {self.path}")
                continue
            if scope is not None and raw.get("user_id") != scope:
                continue
            try:
                bookmarks.append(Bookmark.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed bookmark {raw.get('id')!r} in {self.path}: {e}")
        return bookmarks


class FallbackSource:
    """Reads the primary source, and the fallback only when the primary is unavailable."""

    def __init__(self, primary: RecordSource, fallback: RecordSource):
        self.primary = primary
        self.fallback = fallback

    def fetch_all(self, scope: str | None) -> list[Bookmark]:
        try:
            return self.primary.fetch_all(scope)
        except SourceUnavailableError as e:
            logger.warning(f"Primary record source failed ({e}), falling back")
            return self.fallback.fetch_all(scope)


def build_source(settings: Settings, store: BookmarkStore) -> RecordSource:
    bookmarks_file = settings.resolved_bookmarks_file
    if bookmarks_file:
        logger.info(f"Searching {settings.resolved_db_path} with file fallback {bookmarks_file}")
        return FallbackSource(store, JsonFileSource(bookmarks_file))
    return store
