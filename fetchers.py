"""
Listing data source backed by a hosted PostgREST-style database.

The backend narrows results with whatever it can express natively
(equality, ranges, ilike). Distance never goes over the wire, and the
search pipeline re-applies every constraint locally anyway.
"""

import logging
import math
import time
from typing import Any, Optional
from urllib.parse import urlparse

import requests

from config import BackendKeys
from filters import FilterSpec
from models import MEDIA_KINDS, MediaItem, Listing
from sorting import SortKey, parse_sort_key

logger = logging.getLogger(__name__)

_VIDEO_EXTENSIONS = (".mp4", ".webm", ".mov", ".m4v", ".ogg")


class DataSourceError(Exception):
    """The backend could not be queried. Safe to retry later."""


# ── Backend Client ─────────────────────────────────────────────────────────

class BackendClient:
    """
    REST client for the hosted backend.

    Built once by the application and handed to whatever needs it;
    call ``close()`` when done.
    """

    source_name = "backend"

    def __init__(
        self,
        keys: BackendKeys,
        timeout: float = 30.0,
        rate_limit_wait: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        if not keys.url:
            raise ValueError("Backend URL is not configured")
        self.base_url = keys.url.rstrip("/")
        self.timeout = timeout
        self.rate_limit_wait = rate_limit_wait
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "apikey": keys.anon_key,
            "Authorization": f"Bearer {keys.anon_key}",
        })

    def select(self, table: str, params: list[tuple[str, str]]) -> list[dict]:
        """GET rows from ``table``. Raises DataSourceError on any failure."""
        url = f"{self.base_url}/rest/v1/{table}"
        data = self._request("GET", url, params=params)
        if not isinstance(data, list):
            raise DataSourceError(f"Unexpected response shape from {table}: {type(data).__name__}")
        return data

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, url: str, **kwargs) -> Any:
        """Make an API request with error handling and rate limiting."""
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            if resp.status_code == 429:
                logger.warning(f"[{self.source_name}] Rate limited. Waiting {self.rate_limit_wait:.0f}s...")
                time.sleep(self.rate_limit_wait)
                resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except requests.exceptions.HTTPError as e:
            logger.error(f"[{self.source_name}] HTTP {e.response.status_code}: {e}")
            raise DataSourceError(str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[{self.source_name}] Request failed: {e}")
            raise DataSourceError(str(e)) from e
        except ValueError as e:
            logger.error(f"[{self.source_name}] Invalid JSON response")
            raise DataSourceError("Invalid JSON response") from e


# ── Property Fetcher ───────────────────────────────────────────────────────

_ORDER = {
    SortKey.PRICE_ASC: "price.asc",
    SortKey.PRICE_DESC: "price.desc",
    SortKey.BEDROOMS_DESC: "bedrooms.desc",
    SortKey.DATE_ASC: "available_from.asc",
    SortKey.DATE_DESC: "available_from.desc",
    SortKey.NEWEST: "created_at.desc",
    SortKey.OLDEST: "created_at.asc",
}

_BOOL_COLUMNS = {
    "has_hall": "has_hall",
    "has_separate_kitchen": "has_separate_kitchen",
    "is_furnished": "is_furnished",
    "has_ac": "has_ac",
    "has_wifi": "has_wifi",
    "has_gym": "has_gym",
}


def _ilike(value: str) -> str:
    # PostgREST reserves , ( ) inside logic trees
    cleaned = "".join(ch for ch in value if ch not in ",()*")
    return f"*{cleaned.strip()}*"


def _num(value: Any) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def _as_float(value: Any) -> Optional[float]:
    """Numeric column or None. PostgREST sends numeric types as strings."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _as_int(value: Any) -> Optional[int]:
    result = _as_float(value)
    return None if result is None else int(result)


class PropertyFetcher:
    """Queries the properties table and normalizes rows into Listings."""

    def __init__(self, client: BackendClient, table: str = "properties"):
        self.client = client
        self.table = table

    def fetch(self, spec: FilterSpec, sort_key: SortKey) -> list[Listing]:
        rows = self.client.select(self.table, self.remote_params(spec, sort_key))
        return self._normalize_all(rows)

    def fetch_by_college(self, college: str, spec: FilterSpec, sort_key: SortKey) -> list[Listing]:
        """Search by one college name typed into the search box."""
        if spec.colleges or not college.strip():
            return self.fetch(spec, sort_key)
        params = [("nearby_college", f"ilike.{_ilike(college)}")]
        params += self.remote_params(spec, sort_key)
        rows = self.client.select(self.table, params)
        return self._normalize_all(rows)

    def remote_params(self, spec: FilterSpec, sort_key: SortKey) -> list[tuple[str, str]]:
        """Translate the natively expressible part of ``spec`` into query params."""
        params: list[tuple[str, str]] = [("select", "*")]
        or_groups: list[str] = []

        colleges = []
        if isinstance(spec.colleges, (list, tuple, set)):
            colleges = [c for c in spec.colleges if isinstance(c, str) and c.strip()]
        if len(colleges) == 1:
            params.append(("nearby_college", f"ilike.{_ilike(colleges[0])}"))
        elif colleges:
            or_groups.append(",".join(f"nearby_college.ilike.{_ilike(c)}" for c in colleges))

        if spec.text:
            term = _ilike(spec.text)
            or_groups.append(f"title.ilike.{term},address.ilike.{term}")

        if spec.property_type:
            params.append(("property_type", f"eq.{spec.property_type}"))

        for attr, column in _BOOL_COLUMNS.items():
            value = getattr(spec, attr)
            if isinstance(value, bool):
                params.append((column, f"eq.{str(value).lower()}"))

        for column, low, high in (
            ("price", spec.min_price, spec.max_price),
            ("bedrooms", spec.min_bedrooms, spec.max_bedrooms),
            ("bathrooms", spec.min_bathrooms, spec.max_bathrooms),
        ):
            for op, bound in (("gte", low), ("lte", high)):
                try:
                    params.append((column, f"{op}.{_num(bound)}"))
                except (TypeError, ValueError):
                    continue

        if spec.available_from:
            params.append(("available_from", f"gte.{spec.available_from}"))

        if spec.gender_preference in ("boys", "girls"):
            or_groups.append(f"gender_preference.eq.{spec.gender_preference},gender_preference.eq.any")

        if spec.floor_number is not None:
            try:
                params.append(("floor_number", f"eq.{_num(spec.floor_number)}"))
            except (TypeError, ValueError):
                pass

        if len(or_groups) == 1:
            params.append(("or", f"({or_groups[0]})"))
        elif or_groups:
            params.append(("and", "(" + ",".join(f"or({g})" for g in or_groups) + ")"))

        params.append(("order", _ORDER.get(parse_sort_key(sort_key), "created_at.desc")))
        return params

    def _normalize_all(self, rows: list[dict]) -> list[Listing]:
        listings = []
        for row in rows:
            try:
                listings.append(self._normalize(row))
            except Exception as e:
                logger.debug(f"[{self.table}] Skipping row {row.get('id')!r}: {e}")
        logger.info(f"[{self.table}] Fetched {len(listings)} listings")
        return listings

    def _normalize(self, row: dict) -> Listing:
        if row.get("id") in (None, ""):
            raise ValueError("row has no id")

        return Listing(
            id=str(row["id"]),
            title=row.get("title") or "",
            address=row.get("address") or "",
            description=row.get("description") or "",
            restrictions=row.get("restrictions") or "",
            price=_as_float(row.get("price")),
            bedrooms=_as_int(row.get("bedrooms")),
            bathrooms=_as_int(row.get("bathrooms")) or 1,
            square_feet=_as_int(row.get("square_feet")),
            deposit_amount=_as_float(row.get("deposit_amount")),
            available_from=row.get("available_from"),
            created_at=row.get("created_at"),
            property_type=row.get("property_type") or "rental",
            gender_preference=row.get("gender_preference") or "any",
            floor_number=_as_int(row.get("floor_number")),
            has_hall=row.get("has_hall"),
            has_separate_kitchen=row.get("has_separate_kitchen"),
            is_furnished=row.get("is_furnished"),
            has_ac=row.get("has_ac"),
            has_wifi=row.get("has_wifi"),
            has_gym=row.get("has_gym"),
            nearby_college=row.get("nearby_college") or "",
            latitude=_as_float(row.get("latitude")),
            longitude=_as_float(row.get("longitude")),
            media=_media_from_row(row),
        )


def _guess_kind(url: str) -> str:
    path = urlparse(url).path.lower()
    return "video" if path.endswith(_VIDEO_EXTENSIONS) else "image"


def _media_from_row(row: dict) -> list[MediaItem]:
    items: list[MediaItem] = []
    for entry in row.get("media") or []:
        if isinstance(entry, dict) and entry.get("url"):
            kind = entry.get("type") or entry.get("kind")
            if kind not in MEDIA_KINDS:
                kind = _guess_kind(entry["url"])
            items.append(MediaItem(entry["url"], kind))
        elif isinstance(entry, str) and entry:
            items.append(MediaItem(entry, _guess_kind(entry)))
    if not items:
        for url in row.get("images") or []:
            if isinstance(url, str) and url:
                items.append(MediaItem(url, _guess_kind(url)))
    if not items and row.get("image_url"):
        items.append(MediaItem(row["image_url"], "image"))
    return items
