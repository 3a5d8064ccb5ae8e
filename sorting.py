"""
Ordering for filtered listings.

Sorting never mutates the input list. Listings missing the sort value
always go last, whichever direction is requested, and ties keep their
input order.
"""

import logging
import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from models import Listing

logger = logging.getLogger(__name__)


class SortKey(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    BEDROOMS_DESC = "bedrooms_desc"
    DATE_ASC = "date_asc"            # available_from, earliest first
    DATE_DESC = "date_desc"
    DISTANCE = "distance"            # nearest first
    NEWEST = "newest"                # created_at
    OLDEST = "oldest"


_SPELLINGS = {
    "price-asc": SortKey.PRICE_ASC,
    "price-desc": SortKey.PRICE_DESC,
    "bedrooms-desc": SortKey.BEDROOMS_DESC,
    "date-asc": SortKey.DATE_ASC,
    "date-desc": SortKey.DATE_DESC,
    "nearest": SortKey.DISTANCE,
}


def parse_sort_key(value: Any, default: SortKey = SortKey.PRICE_ASC) -> SortKey:
    """Accept enum values or the hyphenated names the UI uses."""
    if isinstance(value, SortKey):
        return value
    text = str(value or "").strip().lower()
    if text in _SPELLINGS:
        return _SPELLINGS[text]
    try:
        return SortKey(text)
    except ValueError:
        logger.warning(f"[sort] Unknown sort option {value!r}, using {default.value}")
        return default


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _timestamp(value: Any) -> Optional[float]:
    """Seconds since epoch for an ISO date/datetime. Naive values are UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


# (value extractor, descending?)
_KEYS = {
    SortKey.PRICE_ASC: (lambda l: _number(l.price), False),
    SortKey.PRICE_DESC: (lambda l: _number(l.price), True),
    SortKey.BEDROOMS_DESC: (lambda l: _number(l.bedrooms), True),
    SortKey.DATE_ASC: (lambda l: _timestamp(l.available_from), False),
    SortKey.DATE_DESC: (lambda l: _timestamp(l.available_from), True),
    SortKey.DISTANCE: (lambda l: _number(l.distance), False),
    SortKey.NEWEST: (lambda l: _timestamp(l.created_at), True),
    SortKey.OLDEST: (lambda l: _timestamp(l.created_at), False),
}


def apply_sort(listings: list[Listing], key: SortKey) -> list[Listing]:
    """Return a new list ordered by ``key``."""
    key = parse_sort_key(key)
    extract, descending = _KEYS[key]

    def sort_key(listing: Listing) -> tuple:
        value = extract(listing)
        if value is None:
            return (1, 0.0)
        return (0, -value if descending else value)

    return sorted(listings, key=sort_key)
