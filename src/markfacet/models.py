import logging
import math
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from markfacet.errors import InputValidationError

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


class SiteHealth(str, Enum):
    EXCELLENT = "excellent"
    WORKING = "working"
    FAIR = "fair"
    POOR = "poor"
    BROKEN = "broken"
    UNKNOWN = "unknown"


class SortBy(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TITLE = "title"
    VISITS = "visits"
    RELEVANCE = "relevance"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


_SITE_HEALTH_VALUES = {h.value for h in SiteHealth}
_SORT_BY_VALUES = {s.value for s in SortBy}
_SORT_ORDER_VALUES = {s.value for s in SortOrder}
_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO date or datetime into an aware UTC-based datetime.

    Bare dates become midnight UTC; naive datetimes are taken as UTC.
    Returns None for anything that does not parse.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _coerce_str_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = [str(v) for v in value if v is not None]
    else:
        return None
    cleaned = [item.strip() for item in items if item.strip()]
    return cleaned or None


# --- Records ---

class Bookmark(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    user_id: str | None = None
    title: str = ""
    url: str = ""
    description: str | None = None
    category: str | None = None
    tags: list[str] = []
    ai_tags: list[str] = []
    ai_summary: str | None = None
    ai_category: str | None = None
    notes: str | None = None
    site_health: SiteHealth | None = None
    created_at: datetime
    updated_at: datetime | None = None
    visits: int = 0
    time_spent: float | None = None

    @field_validator("title", "url", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", "ai_tags", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("site_health", mode="before")
    @classmethod
    def _known_health(cls, v: Any) -> Any:
        if isinstance(v, str) and v not in _SITE_HEALTH_VALUES:
            return None
        return v

    @field_validator("visits", mode="before")
    @classmethod
    def _visits_default(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _as_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def _default_updated_at(self) -> "Bookmark":
        if self.updated_at is None:
            self.updated_at = self.created_at
        return self


class BookmarkCreate(BaseModel):
    title: str
    url: str
    user_id: str | None = None
    description: str | None = None
    category: str | None = None
    tags: list[str] = []
    ai_tags: list[str] = []
    ai_summary: str | None = None
    ai_category: str | None = None
    notes: str | None = None
    site_health: SiteHealth | None = None
    visits: int = 0
    time_spent: float | None = None


class DeleteResponse(BaseModel):
    deleted: bool


# --- Search input ---

class SearchFilters(BaseModel):
    """Filter, sort and pagination settings for one search call.

    Every field is coerced leniently: malformed values fall back to
    "no constraint" (or the default) instead of failing the request.
    """

    query: str | None = None
    categories: list[str] | None = None
    tags: list[str] | None = None
    site_health: list[str] | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    has_notes: bool | None = None
    has_ai_summary: bool | None = None
    min_visits: int | None = None
    max_visits: int | None = None
    sort_by: SortBy = SortBy.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    @model_validator(mode="before")
    @classmethod
    def _unknown_sort_key(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        sort_by = data.get("sort_by")
        if sort_by is None or sort_by == "":
            data.pop("sort_by", None)
        elif not isinstance(sort_by, str) or sort_by not in _SORT_BY_VALUES:
            logger.warning(f"Unknown sort_by {sort_by!r}, using created_at desc")
            data["sort_by"] = SortBy.CREATED_AT
            data["sort_order"] = SortOrder.DESC
        return data

    @field_validator("query", mode="before")
    @classmethod
    def _clean_query(cls, v: Any) -> str | None:
        if not isinstance(v, str):
            return None
        return v.strip() or None

    @field_validator("categories", "tags", "site_health", mode="before")
    @classmethod
    def _clean_list(cls, v: Any) -> list[str] | None:
        return _coerce_str_list(v)

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _clean_date(cls, v: Any) -> datetime | None:
        parsed = parse_timestamp(v)
        if parsed is None and v not in (None, ""):
            logger.warning(f"Ignoring malformed date filter {v!r}")
        return parsed

    @field_validator("has_notes", "has_ai_summary", mode="before")
    @classmethod
    def _clean_bool(cls, v: Any) -> bool | None:
        if v is None or isinstance(v, bool):
            return v
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        return None

    @field_validator("min_visits", "max_visits", mode="before")
    @classmethod
    def _clean_visits(cls, v: Any) -> int | None:
        parsed = _coerce_int(v)
        if parsed is None and v not in (None, ""):
            logger.warning(f"Ignoring malformed visits bound {v!r}")
        return parsed

    @field_validator("sort_order", mode="before")
    @classmethod
    def _clean_sort_order(cls, v: Any) -> Any:
        if not isinstance(v, str) or v not in _SORT_ORDER_VALUES:
            return SortOrder.DESC
        return v

    @field_validator("limit", mode="before")
    @classmethod
    def _clean_limit(cls, v: Any) -> int:
        parsed = _coerce_int(v)
        if parsed is None or parsed < 1:
            return DEFAULT_LIMIT
        return parsed

    @field_validator("offset", mode="before")
    @classmethod
    def _clean_offset(cls, v: Any) -> int:
        parsed = _coerce_int(v)
        if parsed is None or parsed < 0:
            return 0
        return parsed

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "SearchFilters":
        """Build filters from a query string (`q`, comma-separated lists)."""
        data: dict[str, Any] = {}
        if "q" in params:
            data["query"] = params["q"]
        for key in cls.model_fields:
            if key in params and key != "query":
                data[key] = params[key]
        return cls.model_validate(data)

    @classmethod
    def from_payload(cls, payload: Any) -> "SearchFilters":
        """Build filters from a request body: `{"filters": {...}}` or a bare filter object."""
        if not isinstance(payload, Mapping):
            raise InputValidationError("Search payload must be a JSON object")
        filters = payload.get("filters", payload)
        if filters is None:
            filters = {}
        if not isinstance(filters, Mapping):
            raise InputValidationError("'filters' must be a JSON object")
        try:
            return cls.model_validate(dict(filters))
        except ValidationError as e:
            raise InputValidationError(str(e)) from e


# --- Search output ---

class FacetBucket(BaseModel):
    name: str
    count: int


class DateHistogram(BaseModel):
    last_week: int = 0
    last_month: int = 0
    last_year: int = 0
    older: int = 0


class Facets(BaseModel):
    categories: list[FacetBucket] = []
    tags: list[FacetBucket] = []
    site_health: list[FacetBucket] = []
    date_ranges: DateHistogram = Field(default_factory=DateHistogram)


class SearchResult(BaseModel):
    success: bool = True
    bookmarks: list[dict[str, Any]] = []
    total: int = 0
    filtered: int = 0
    page: int = 1
    per_page: int = DEFAULT_LIMIT
    total_pages: int = 0
    filters_applied: dict[str, Any] = {}
    facets: Facets = Field(default_factory=Facets)
    search_time_ms: float = 0.0
    error: str | None = None
    details: str | None = None
