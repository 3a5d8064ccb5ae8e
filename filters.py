"""
Client-side filter engine.

Every constraint in a FilterSpec is an independent predicate. A listing
survives only if it passes all of them. The distance constraint always runs
last because it is the expensive one and it annotates ``Listing.distance``.

Filters come from user-editable controls, so nothing in here raises on bad
input: a malformed constraint is treated as absent.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional

from geo import GeoPoint, distance_km, has_coordinates
from models import GENDER_PREFERENCES, PROPERTY_TYPES, Listing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterSpec:
    """Immutable set of search constraints for one pass. ``None`` = don't care."""
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_bedrooms: Optional[int] = None
    max_bedrooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    max_bathrooms: Optional[int] = None
    has_hall: Optional[bool] = None
    has_separate_kitchen: Optional[bool] = None
    is_furnished: Optional[bool] = None
    has_ac: Optional[bool] = None
    has_wifi: Optional[bool] = None
    has_gym: Optional[bool] = None
    property_type: Optional[str] = None
    gender_preference: Optional[str] = None
    colleges: tuple = ()
    text: Optional[str] = None
    available_from: Optional[str] = None
    floor_number: Optional[int] = None
    near: Optional[GeoPoint] = None
    max_distance_km: Optional[float] = None

    @property
    def has_distance(self) -> bool:
        return isinstance(self.near, GeoPoint) and _number(self.max_distance_km) is not None

    def without_distance(self) -> "FilterSpec":
        return replace(self, near=None, max_distance_km=None)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "FilterSpec":
        """
        Build a spec from raw UI/CLI input.

        Accepts snake_case or the camelCase names the web forms post
        (``minPrice``, ``nearLocation``, ``maxDistance``...). Values that
        can't be coerced are dropped with a debug log line.
        """
        raw = {_ALIASES.get(k, k): v for k, v in params.items()}
        kwargs: dict[str, Any] = {}

        for name in _NUMERIC_FIELDS:
            if name in raw:
                value = _number(raw[name])
                if value is None or value < 0:
                    _dropped(name, raw[name])
                    continue
                kwargs[name] = int(value) if name in _INT_FIELDS else value

        for name in _BOOL_FIELDS:
            if name in raw:
                value = _boolean(raw[name])
                if value is None:
                    _dropped(name, raw[name])
                    continue
                kwargs[name] = value

        for name, allowed in (("property_type", PROPERTY_TYPES),
                              ("gender_preference", GENDER_PREFERENCES)):
            value = raw.get(name)
            if value in (None, ""):
                continue
            value = str(value).strip().lower()
            if value not in allowed:
                _dropped(name, raw[name])
                continue
            kwargs[name] = value

        colleges = raw.get("colleges")
        if isinstance(colleges, str):
            colleges = colleges.split(",")
        if colleges and not isinstance(colleges, (list, tuple, set)):
            _dropped("colleges", colleges)
        elif colleges:
            names = tuple(c.strip() for c in colleges if isinstance(c, str) and c.strip())
            if names:
                kwargs["colleges"] = names

        text = raw.get("text")
        if isinstance(text, str) and text.strip():
            kwargs["text"] = text.strip()

        available = raw.get("available_from")
        if available not in (None, ""):
            if _parse_date(available) is None:
                _dropped("available_from", available)
            else:
                kwargs["available_from"] = str(available)

        near = _point(raw.get("near"))
        if raw.get("near") is not None and near is None:
            _dropped("near", raw.get("near"))
        elif near is not None:
            kwargs["near"] = near

        return cls(**kwargs)


# ── Boundary coercion ──────────────────────────────────────────────────────

_ALIASES = {
    "minPrice": "min_price",
    "maxPrice": "max_price",
    "minBedrooms": "min_bedrooms",
    "maxBedrooms": "max_bedrooms",
    "minBathrooms": "min_bathrooms",
    "maxBathrooms": "max_bathrooms",
    "hasHall": "has_hall",
    "hasSeparateKitchen": "has_separate_kitchen",
    "hasFurnished": "is_furnished",
    "hasAC": "has_ac",
    "hasWifi": "has_wifi",
    "hasGym": "has_gym",
    "propertyType": "property_type",
    "genderPreference": "gender_preference",
    "college": "colleges",
    "availableFrom": "available_from",
    "floorNumber": "floor_number",
    "nearLocation": "near",
    "maxDistance": "max_distance_km",
    "maxDistanceKm": "max_distance_km",
}

_NUMERIC_FIELDS = (
    "min_price", "max_price", "min_bedrooms", "max_bedrooms",
    "min_bathrooms", "max_bathrooms", "floor_number", "max_distance_km",
)
_INT_FIELDS = {"min_bedrooms", "max_bedrooms", "min_bathrooms", "max_bathrooms", "floor_number"}
_BOOL_FIELDS = ("has_hall", "has_separate_kitchen", "is_furnished", "has_ac", "has_wifi", "has_gym")


def _dropped(name: str, value: Any) -> None:
    logger.debug(f"[filters] Ignoring malformed {name}={value!r}")


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
    return None


def _point(value: Any) -> Optional[GeoPoint]:
    if value is None:
        return None
    if isinstance(value, GeoPoint):
        return value
    try:
        if isinstance(value, str):
            return GeoPoint.parse(value)
        if isinstance(value, Mapping):
            return GeoPoint.parse(f"{value['lat']},{value.get('lng', value.get('lon'))}")
        lat, lng = value
        return GeoPoint.parse(f"{lat},{lng}")
    except (KeyError, TypeError, ValueError):
        return None


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


# ── Predicates ─────────────────────────────────────────────────────────────

Predicate = Callable[[Listing], bool]


def _range(attr: str, low: Any, high: Any) -> Optional[Predicate]:
    low, high = _number(low), _number(high)
    if low is None and high is None:
        return None

    def check(listing: Listing) -> bool:
        value = _number(getattr(listing, attr))
        if value is None:
            return False
        if low is not None and value < low:
            return False
        if high is not None and value > high:
            return False
        return True

    return check


def _exact(attr: str, wanted: Any) -> Optional[Predicate]:
    if wanted is None:
        return None
    return lambda listing: getattr(listing, attr) == wanted


def _gender(wanted: Any) -> Optional[Predicate]:
    if wanted not in GENDER_PREFERENCES or wanted == "any":
        return None
    return lambda listing: listing.gender_preference in (wanted, "any")


def _colleges(names: Any) -> Optional[Predicate]:
    if isinstance(names, str):
        names = names.split(",")
    if not isinstance(names, (list, tuple, set)):
        return None
    needles = [n.strip().lower() for n in (names or ()) if isinstance(n, str) and n.strip()]
    if not needles:
        return None

    def check(listing: Listing) -> bool:
        haystack = (listing.nearby_college or "").lower()
        return any(n in haystack for n in needles)

    return check


def _text(term: Any) -> Optional[Predicate]:
    if not isinstance(term, str) or not term.strip():
        return None
    needle = term.strip().lower()
    return lambda listing: (
        needle in (listing.title or "").lower()
        or needle in (listing.address or "").lower()
    )


def _available_from(value: Any) -> Optional[Predicate]:
    earliest = _parse_date(value)
    if earliest is None:
        return None

    def check(listing: Listing) -> bool:
        available = _parse_date(listing.available_from)
        return available is not None and available >= earliest

    return check


def _floor(value: Any) -> Optional[Predicate]:
    wanted = _number(value)
    if wanted is None:
        return None
    return lambda listing: _number(listing.floor_number) == wanted


def build_predicates(spec: FilterSpec) -> list[Predicate]:
    """Every non-distance predicate that is actually set on ``spec``."""
    candidates = [
        _colleges(spec.colleges),
        _text(spec.text),
        _range("price", spec.min_price, spec.max_price),
        _range("bedrooms", spec.min_bedrooms, spec.max_bedrooms),
        _range("bathrooms", spec.min_bathrooms, spec.max_bathrooms),
        _exact("has_hall", spec.has_hall),
        _exact("has_separate_kitchen", spec.has_separate_kitchen),
        _exact("is_furnished", spec.is_furnished),
        _exact("has_ac", spec.has_ac),
        _exact("has_wifi", spec.has_wifi),
        _exact("has_gym", spec.has_gym),
        _exact("property_type", spec.property_type if spec.property_type in PROPERTY_TYPES else None),
        _gender(spec.gender_preference),
        _available_from(spec.available_from),
        _floor(spec.floor_number),
    ]
    return [p for p in candidates if p is not None]


# ── Engine ─────────────────────────────────────────────────────────────────

def apply_distance_filter(listings: list[Listing], near: GeoPoint, max_distance_km: float) -> list[Listing]:
    """
    Keep located listings within ``max_distance_km`` of ``near``.

    Writes ``distance`` on every survivor. This is the only place that
    field is ever set.
    """
    limit = _number(max_distance_km)
    if not isinstance(near, GeoPoint) or limit is None:
        return list(listings)

    kept = []
    for listing in listings:
        if not has_coordinates(listing.latitude, listing.longitude):
            continue
        d = distance_km(near.lat, near.lng, float(listing.latitude), float(listing.longitude))
        if d <= limit:
            listing.distance = d
            kept.append(listing)
    return kept


def apply_filters(listings: list[Listing], spec: FilterSpec) -> list[Listing]:
    """Return the listings that satisfy every constraint in ``spec``."""
    predicates = build_predicates(spec)
    result = [l for l in listings if all(p(l) for p in predicates)]

    if spec.has_distance:
        result = apply_distance_filter(result, spec.near, spec.max_distance_km)

    logger.debug(f"[filters] {len(result)}/{len(listings)} listings passed {len(predicates)} filters"
                 f"{' + distance' if spec.has_distance else ''}")
    return result
