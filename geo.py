"""
Great-circle distance helpers.

Everything here works in decimal degrees and kilometres. Callers must
check ``has_coordinates`` before measuring a listing.
"""

import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""
    lat: float
    lng: float

    @classmethod
    def parse(cls, text: str) -> "GeoPoint":
        """Parse ``"lat,lng"``. Raises ValueError on anything else."""
        parts = [p.strip() for p in str(text).split(",")]
        if len(parts) != 2:
            raise ValueError(f"Expected 'lat,lng', got {text!r}")
        lat, lng = float(parts[0]), float(parts[1])
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ValueError(f"Non-finite coordinates: {text!r}")
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise ValueError(f"Coordinates out of range: {text!r}")
        return cls(lat, lng)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two coordinates, in km (unrounded)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def has_coordinates(lat: Optional[float], lng: Optional[float]) -> bool:
    """
    True if a stored position can be measured from.

    A missing or non-finite coordinate is unlocated, and so is (0, 0),
    which the backend writes when a listing was saved without a pin.
    """
    if lat is None or lng is None:
        return False
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return not (lat == 0 and lng == 0)


def format_distance(km: Optional[float]) -> str:
    """Display form, rounded to 2 decimals. Never use it for comparisons."""
    if km is None:
        return ""
    return f"{round(km, 2):.2f} km"
