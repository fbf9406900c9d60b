import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from mcp.server.fastmcp import FastMCP

from markfacet.config import settings
from markfacet.db import BookmarkStore
from markfacet.errors import InputValidationError
from markfacet.models import Bookmark, BookmarkCreate, DeleteResponse, SearchFilters, SearchResult
from markfacet.search import execute_search
from markfacet.search.pagination import failed_result
from markfacet.sources import RecordSource, build_source

logger = logging.getLogger(__name__)

# --- MCP server ---

mcp = FastMCP("markfacet", stateless_http=True, streamable_http_path="/")
mcp_starlette = mcp.streamable_http_app()
mcp_starlette.router.lifespan_context = lambda app: contextlib.AsyncExitStack()


# --- MCP Tools ---

@mcp.tool()
async def bookmark_search(
    query: str | None = None,
    categories: list[str] | None = None,
    tags: list[str] | None = None,
    site_health: list[str] | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    has_notes: bool | None = None,
    has_ai_summary: bool | None = None,
    min_visits: int | None = None,
    max_visits: int | None = None,
    sort_by: str = "relevance",
    sort_order: str = "desc",
    limit: int = 20,
    offset: int = 0,
    user_id: str | None = None,
) -> dict:
    """Search bookmarks with filters, ranking, pagination and facet counts.

    Filters within one dimension are ORed (any listed tag matches); different
    dimensions are ANDed. date_from/date_to are inclusive ISO dates.
    sort_by: created_at, updated_at, title, visits or relevance.
    """
    filters = SearchFilters.model_validate(dict(
        query=query, categories=categories, tags=tags, site_health=site_health,
        date_from=date_from, date_to=date_to, has_notes=has_notes,
        has_ai_summary=has_ai_summary, min_visits=min_visits, max_visits=max_visits,
        sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset,
    ))
    result = await asyncio.to_thread(
        execute_search, app.state.source, _scope(user_id), filters
    )
    return result.model_dump(mode="json")


@mcp.tool()
async def bookmark_get(id: int) -> dict | None:
    """Retrieve a bookmark by ID. Returns null if it does not exist."""
    bookmark = await asyncio.to_thread(app.state.store.get, id)
    return bookmark.model_dump(mode="json") if bookmark else None


# --- FastAPI app ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    store = BookmarkStore(settings.resolved_db_path)
    app.state.store = store
    app.state.source = build_source(settings, store)
    try:
        async with mcp.session_manager.run():
            yield
    finally:
        store.close()


app = FastAPI(title="markfacet", lifespan=lifespan)
app.mount("/mcp", mcp_starlette)


def get_store(request: Request) -> BookmarkStore:
    return request.app.state.store


def get_source(request: Request) -> RecordSource:
    return request.app.state.source


def _scope(user_id: str | None) -> str | None:
    return user_id or settings.default_user_id


def _search_response(result: SearchResult) -> JSONResponse:
    return JSONResponse(
        status_code=200 if result.success else 500,
        content=result.model_dump(mode="json"),
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/bookmarks/search", response_model=SearchResult)
async def search_bookmarks_get(
    request: Request,
    user_id: str | None = Query(default=None),
    source: RecordSource = Depends(get_source),
):
    filters = SearchFilters.from_query_params(request.query_params)
    logger.info(f"Search for scope {_scope(user_id)!r}: {filters.model_dump(exclude_defaults=True)}")
    result = await asyncio.to_thread(execute_search, source, _scope(user_id), filters)
    return _search_response(result)


@app.post("/bookmarks/search", response_model=SearchResult)
async def search_bookmarks_post(
    payload: Any = Body(default=None),
    source: RecordSource = Depends(get_source),
):
    started = time.perf_counter()
    try:
        filters = SearchFilters.from_payload({} if payload is None else payload)
    except InputValidationError as e:
        logger.warning(f"Rejected search payload: {e}")
        result = failed_result(SearchFilters(), started, "Invalid search filters", str(e))
        return JSONResponse(status_code=400, content=result.model_dump(mode="json"))

    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    logger.info(f"Search (POST) for scope {_scope(user_id)!r}: {filters.model_dump(exclude_defaults=True)}")
    result = await asyncio.to_thread(execute_search, source, _scope(user_id), filters)
    return _search_response(result)


@app.post("/bookmarks", response_model=Bookmark)
async def store_bookmark(req: BookmarkCreate, store: BookmarkStore = Depends(get_store)):
    if req.user_id is None and settings.default_user_id:
        req = req.model_copy(update={"user_id": settings.default_user_id})
    return await asyncio.to_thread(store.store, req)


@app.get("/bookmarks/{bookmark_id}", response_model=Bookmark)
async def get_bookmark(bookmark_id: int, store: BookmarkStore = Depends(get_store)):
    bookmark = await asyncio.to_thread(store.get, bookmark_id)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return bookmark


@app.delete("/bookmarks/{bookmark_id}", response_model=DeleteResponse)
async def delete_bookmark(bookmark_id: int, store: BookmarkStore = Depends(get_store)):
    deleted = await asyncio.to_thread(store.delete, bookmark_id)
    return DeleteResponse(deleted=deleted)


def main():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("markfacet.main:app", host="0.0.0.0", port=settings.port, reload=False)


if __name__ == "__main__":
    main()
