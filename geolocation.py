"""
Single-shot "where am I" lookups.

A lookup either yields a point or one of a few named outcomes. Nothing here
raises for permission problems, timeouts or missing providers; distance
features are simply turned off when no point comes back.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests

from geo import GeoPoint

logger = logging.getLogger(__name__)


class LocationOutcome(Enum):
    FOUND = "found"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class LocationResult:
    outcome: LocationOutcome
    point: Optional[GeoPoint] = None
    message: str = ""

    @property
    def found(self) -> bool:
        return self.outcome is LocationOutcome.FOUND and self.point is not None


class LocationPermissionDenied(Exception):
    pass


class LocationUnavailable(Exception):
    pass


class LocationProvider(ABC):
    @abstractmethod
    async def current_position(self) -> GeoPoint:
        """Return the current point or raise LocationPermissionDenied / LocationUnavailable."""

    def close(self) -> None:
        pass


class FixedLocationProvider(LocationProvider):
    """A location the user typed in (``--near lat,lng``)."""

    def __init__(self, point: GeoPoint):
        self.point = point

    async def current_position(self) -> GeoPoint:
        return self.point


class IPGeolocationProvider(LocationProvider):
    """Approximate location from a public IP lookup service."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _lookup(self) -> GeoPoint:
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise LocationUnavailable(str(e)) from e
        if resp.status_code in (401, 403):
            raise LocationPermissionDenied(f"HTTP {resp.status_code}")
        if resp.status_code != 200:
            raise LocationUnavailable(f"HTTP {resp.status_code}")
        try:
            data = resp.json()
            lat = data.get("latitude", data.get("lat"))
            lng = data.get("longitude", data.get("lon"))
            return GeoPoint.parse(f"{lat},{lng}")
        except (AttributeError, ValueError) as e:
            raise LocationUnavailable(f"Unusable response: {e}") from e

    async def current_position(self) -> GeoPoint:
        return await asyncio.to_thread(self._lookup)

    def close(self) -> None:
        self.session.close()


async def locate(provider: Optional[LocationProvider], timeout: float = 10.0) -> LocationResult:
    """Ask ``provider`` for a point once, giving up after ``timeout`` seconds."""
    if provider is None:
        return LocationResult(LocationOutcome.UNAVAILABLE, message="No location provider")
    try:
        point = await asyncio.wait_for(provider.current_position(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"[location] No position after {timeout:.0f}s")
        return LocationResult(LocationOutcome.TIMEOUT, message=f"Timed out after {timeout:.0f}s")
    except LocationPermissionDenied as e:
        logger.warning(f"[location] Permission denied: {e}")
        return LocationResult(LocationOutcome.PERMISSION_DENIED, message=str(e))
    except LocationUnavailable as e:
        logger.warning(f"[location] Unavailable: {e}")
        return LocationResult(LocationOutcome.UNAVAILABLE, message=str(e))

    logger.info(f"[location] Using {point.lat:.4f}, {point.lng:.4f}")
    return LocationResult(LocationOutcome.FOUND, point=point)
