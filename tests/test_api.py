from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from markfacet.db import BookmarkStore
from markfacet.errors import SourceUnavailableError
from markfacet.main import app, get_source, get_store


class DownSource:
    def fetch_all(self, scope):
        raise SourceUnavailableError("connection refused")


@pytest.fixture()
def store(tmp_path: Path):
    s = BookmarkStore(str(tmp_path / "api.db"))
    yield s
    s.close()


@pytest.fixture()
def client(store: BookmarkStore):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_source] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add(client: TestClient, **fields) -> dict:
    fields.setdefault("url", "https://example.com")
    resp = client.post("/bookmarks", json=fields)
    assert resp.status_code == 200
    return resp.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_bookmark_crud(client: TestClient) -> None:
    created = _add(client, title="React Guide", tags=["react"])
    assert client.get(f"/bookmarks/{created['id']}").json()["title"] == "React Guide"
    assert client.delete(f"/bookmarks/{created['id']}").json() == {"deleted": True}
    assert client.get(f"/bookmarks/{created['id']}").status_code == 404


def test_get_search_uses_query_string(client: TestClient) -> None:
    _add(client, title="React Guide", tags=["react"], visits=5)
    _add(client, title="Cooking Basics", tags=["food"])
    _add(client, title="React Hooks Deep Dive", tags=["react", "hooks"], visits=1)

    resp = client.get("/bookmarks/search", params={"q": "react", "min_visits": "2", "limit": "oops"})
    body = resp.json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["total"] == 3
    assert body["filtered"] == 1
    assert body["per_page"] == 20
    assert body["bookmarks"][0]["title"] == "React Guide"
    assert body["bookmarks"][0]["relevance_score"] == 1.0
    assert {f["name"] for f in body["facets"]["tags"]} == {"react"}


def test_get_search_is_scoped_by_user(client: TestClient) -> None:
    _add(client, title="Mine", user_id="u1")
    _add(client, title="Theirs", user_id="u2")
    body = client.get("/bookmarks/search", params={"user_id": "u1"}).json()
    assert [b["title"] for b in body["bookmarks"]] == ["Mine"]
    assert "relevance_score" not in body["bookmarks"][0]


def test_post_search_with_filters_body(client: TestClient) -> None:
    _add(client, title="A", tags=["react"], user_id="u1")
    _add(client, title="B", ai_tags=["react"], user_id="u1")
    _add(client, title="C", tags=["vue"], user_id="u1")

    resp = client.post("/bookmarks/search", json={
        "user_id": "u1",
        "filters": {"tags": ["react"], "sort_by": "title", "sort_order": "asc", "limit": 1, "offset": 1},
    })
    body = resp.json()
    assert resp.status_code == 200
    assert body["filtered"] == 2
    assert body["page"] == 2
    assert body["total_pages"] == 2
    assert [b["title"] for b in body["bookmarks"]] == ["B"]


def test_post_search_ignores_out_of_range_timestamp(client: TestClient) -> None:
    _add(client, title="Still found")
    resp = client.post("/bookmarks/search", json={"filters": {"date_from": 1e20, "date_to": 1e15}})
    body = resp.json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["filtered"] == 1
    assert body["filters_applied"]["date_from"] is None


def test_post_search_rejects_non_object(client: TestClient) -> None:
    resp = client.post("/bookmarks/search", json=["react"])
    body = resp.json()
    assert resp.status_code == 400
    assert body["success"] is False
    assert body["error"] == "Invalid search filters"
    assert body["bookmarks"] == []


def test_search_with_unavailable_source(client: TestClient) -> None:
    app.dependency_overrides[get_source] = lambda: DownSource()
    resp = client.get("/bookmarks/search", params={"q": "react"})
    body = resp.json()
    assert resp.status_code == 500
    assert body["success"] is False
    assert body["error"] == "Record source unavailable"
    assert body["total"] == 0
    assert "search_time_ms" in body
