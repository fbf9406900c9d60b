"""Facet aggregation over the filtered (pre-pagination) record set."""
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from markfacet.models import Bookmark, DateHistogram, FacetBucket, Facets, SiteHealth

TAG_FACET_LIMIT = 50
UNCATEGORIZED = "Uncategorized"


def _buckets(counts: Counter, limit: int | None = None) -> list[FacetBucket]:
    # most_common keeps first-seen order among equal counts
    return [FacetBucket(name=name, count=count) for name, count in counts.most_common(limit)]


def category_facet(records: Sequence[Bookmark]) -> list[FacetBucket]:
    """Counts `category` plus `ai_category` when it differs, so one record can
    land in two buckets and the sum may exceed the record count.
    """
    counts: Counter = Counter()
    for b in records:
        category = b.category or UNCATEGORIZED
        counts[category] += 1
        if b.ai_category and b.ai_category != category:
            counts[b.ai_category] += 1
    return _buckets(counts)


def tag_facet(records: Sequence[Bookmark], limit: int = TAG_FACET_LIMIT) -> list[FacetBucket]:
    counts: Counter = Counter()
    for b in records:
        counts.update(dict.fromkeys([*b.tags, *b.ai_tags]).keys())
    return _buckets(counts, limit)


def site_health_facet(records: Sequence[Bookmark]) -> list[FacetBucket]:
    counts = Counter((b.site_health or SiteHealth.UNKNOWN).value for b in records)
    return _buckets(counts)


def date_histogram(records: Sequence[Bookmark], now: datetime | None = None) -> DateHistogram:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    last_week = now - timedelta(days=7)
    last_month = now - timedelta(days=30)
    last_year = now - timedelta(days=365)

    histogram = DateHistogram()
    for b in records:
        if b.created_at >= last_week:
            histogram.last_week += 1
        elif b.created_at >= last_month:
            histogram.last_month += 1
        elif b.created_at >= last_year:
            histogram.last_year += 1
        else:
            histogram.older += 1
    return histogram


def aggregate_facets(records: Sequence[Bookmark], now: datetime | None = None) -> Facets:
    return Facets(
        categories=category_facet(records),
        tags=tag_facet(records),
        site_health=site_health_facet(records),
        date_ranges=date_histogram(records, now),
    )
