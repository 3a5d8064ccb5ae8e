"""
Search pipeline: filters, then distance, then sort.

``search`` is a pure function over listings already in memory and is cheap
enough to run on every change of a filter control. ``load_listings`` is the
I/O step in front of it.
"""

import logging
from dataclasses import replace

from fetchers import PropertyFetcher
from filters import FilterSpec, apply_distance_filter, apply_filters
from models import Listing
from sorting import SortKey, apply_sort, parse_sort_key

logger = logging.getLogger(__name__)


def _fresh_pass(listings: list[Listing]) -> list[Listing]:
    # Distance annotations belong to one reference point; start every pass clean.
    return [replace(l, distance=None) for l in listings]


def search(listings: list[Listing], spec: FilterSpec, sort_key: SortKey) -> list[Listing]:
    """
    Filter and order ``listings``.

    Returns copies; the caller's objects are never modified. When ``spec``
    has a distance constraint the results carry ``distance`` in km. A
    distance sort without one keeps the input order, since nothing is
    annotated.
    """
    sort_key = parse_sort_key(sort_key)
    candidates = apply_filters(_fresh_pass(listings), spec.without_distance())

    if spec.has_distance:
        candidates = apply_distance_filter(candidates, spec.near, spec.max_distance_km)
    elif sort_key is SortKey.DISTANCE:
        logger.debug("[search] Distance sort requested without a reference point")

    return apply_sort(candidates, sort_key)


def load_listings(
    fetcher: PropertyFetcher,
    spec: FilterSpec,
    sort_key: SortKey,
    college: str = "",
) -> list[Listing]:
    """
    Fetch from the backend, then re-apply every constraint locally.

    The backend only narrows what it can express; the client-side pass
    makes the result correct even if it filtered nothing. DataSourceError
    propagates to the caller.
    """
    sort_key = parse_sort_key(sort_key)
    if college.strip() and not spec.colleges:
        raw = fetcher.fetch_by_college(college, spec, sort_key)
        spec = replace(spec, colleges=(college.strip(),))
    else:
        raw = fetcher.fetch(spec, sort_key)

    results = search(raw, spec, sort_key)
    logger.info(f"[search] {len(results)} of {len(raw)} fetched listings match")
    return results
