import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from markfacet.errors import SourceUnavailableError
from markfacet.models import Bookmark, BookmarkCreate

_JSON_COLUMNS = ("tags", "ai_tags")


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS bookmarks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT,
            title TEXT NOT NULL DEFAULT '',
            url TEXT NOT NULL DEFAULT '',
            description TEXT,
            category TEXT,
            tags TEXT DEFAULT '[]',
            ai_tags TEXT DEFAULT '[]',
            ai_summary TEXT,
            ai_category TEXT,
            notes TEXT,
            site_health TEXT,
            visits INTEGER NOT NULL DEFAULT 0,
            time_spent REAL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_bookmarks_user ON bookmarks(user_id);
    """)
    conn.commit()


def _row_to_bookmark(row: sqlite3.Row) -> Bookmark:
    d = dict(row)
    for column in _JSON_COLUMNS:
        d[column] = json.loads(d[column] or "[]")
    return Bookmark.model_validate(d)


class BookmarkStore:
    """SQLite-backed bookmark storage; also the primary record source for search."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _get_or_create_conn(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            _init_schema(conn)
        except (OSError, sqlite3.Error) as e:
            raise SourceUnavailableError(f"Cannot open bookmark database {self.db_path}: {e}") from e
        self._conn = conn
        return conn

    def store(self, data: BookmarkCreate, created_at: datetime | None = None) -> Bookmark:
        now = (created_at or datetime.now(timezone.utc)).isoformat()
        with self._lock:
            conn = self._get_or_create_conn()
            cur = conn.execute(
                "INSERT INTO bookmarks (user_id, title, url, description, category, tags, ai_tags, "
                "ai_summary, ai_category, notes, site_health, visits, time_spent, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    data.user_id, data.title, data.url, data.description, data.category,
                    json.dumps(data.tags), json.dumps(data.ai_tags), data.ai_summary,
                    data.ai_category, data.notes,
                    data.site_health.value if data.site_health else None,
                    data.visits, data.time_spent, now, now,
                ),
            )
            conn.commit()
            bookmark_id = cur.lastrowid
        return self.get(bookmark_id)

    def get(self, bookmark_id: int) -> Bookmark | None:
        with self._lock:
            conn = self._get_or_create_conn()
            row = conn.execute("SELECT * FROM bookmarks WHERE id = ?", (bookmark_id,)).fetchone()
        return _row_to_bookmark(row) if row else None

    def delete(self, bookmark_id: int) -> bool:
        with self._lock:
            conn = self._get_or_create_conn()
            cur = conn.execute("DELETE FROM bookmarks WHERE id = ?", (bookmark_id,))
            conn.commit()
        return cur.rowcount > 0

    def fetch_all(self, scope: str | None) -> list[Bookmark]:
        """All bookmarks owned by `scope` (every bookmark when scope is None), newest first."""
        sql = "SELECT * FROM bookmarks"
        params: list[str] = []
        if scope is not None:
            sql += " WHERE user_id = ?"
            params.append(scope)
        sql += " ORDER BY created_at DESC, id DESC"

        try:
            with self._lock:
                rows = self._get_or_create_conn().execute(sql, params).fetchall()
            return [_row_to_bookmark(row) for row in rows]
        except (sqlite3.Error, ValueError) as e:
            raise SourceUnavailableError(f"Failed to read bookmarks from {self.db_path}: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
