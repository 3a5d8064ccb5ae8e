"""
Keeps a live map's markers in step with the current search results.

The controller only needs a small primitive set from the map library (see
``MapAdapter``), so the reconciliation can run against Leaflet, Mapbox, or
an in-memory fake in tests.

Marker lifecycle per listing: absent -> created -> (label updated | destroyed).
A coordinate change always destroys and recreates, so a click handler never
points at a stale position.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from geo import GeoPoint
from models import Listing

logger = logging.getLogger(__name__)

USER_LOCATION = "__user_location__"


@dataclass(frozen=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def around(cls, points: Iterable[GeoPoint]) -> Optional["Bounds"]:
        points = list(points)
        if not points:
            return None
        return cls(
            south=min(p.lat for p in points),
            west=min(p.lng for p in points),
            north=max(p.lat for p in points),
            east=max(p.lng for p in points),
        )


class MarkerHandle(ABC):
    """A live marker on the map."""

    @abstractmethod
    def remove(self) -> None:
        """Detach the marker and its listeners. Must be safe to call twice."""

    @abstractmethod
    def update(self, label: str) -> None:
        """Change non-positional presentation in place."""


class MapAdapter(ABC):
    """The map-library primitives the controller relies on."""

    @abstractmethod
    def add_marker(
        self,
        point: GeoPoint,
        label: str,
        kind: str,
        on_click: Optional[Callable[[], None]] = None,
    ) -> MarkerHandle:
        ...

    @abstractmethod
    def fit_bounds(self, bounds: Bounds, padding: int, max_zoom: int) -> None:
        ...

    @abstractmethod
    def set_style(self, style: str) -> None:
        ...


def _number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def marker_label(listing: Listing) -> str:
    price = _number(listing.price)
    if price is None:
        return str(listing.title or "")
    return f"₹{price:,.0f}"


@dataclass
class _Marker:
    handle: MarkerHandle
    point: GeoPoint
    label: str


class MapSyncController:
    """Reconciles map markers against a changing listing set."""

    def __init__(
        self,
        adapter: MapAdapter,
        on_select: Optional[Callable[[str], None]] = None,
        styles: Iterable[str] = ("streets", "satellite", "light"),
        fit_padding: int = 50,
        max_zoom: int = 15,
        fallback_center: GeoPoint = GeoPoint(51.509865, -0.118092),
    ):
        self.adapter = adapter
        self.on_select = on_select
        self.styles = list(styles) or ["streets"]
        self.style = self.styles[0]
        self.fit_padding = fit_padding
        self.max_zoom = max_zoom
        self.fallback_center = fallback_center

        self._markers: dict[str, _Marker] = {}
        self._user: Optional[_Marker] = None
        self._syncing = False
        self._pending: Optional[list[Listing]] = None
        self._torn_down = False

    # ── Introspection ──────────────────────────────────────────────────

    @property
    def markers(self) -> dict[str, MarkerHandle]:
        return {lid: m.handle for lid, m in self._markers.items()}

    @property
    def user_marker(self) -> Optional[MarkerHandle]:
        return self._user.handle if self._user else None

    @property
    def user_location(self) -> Optional[GeoPoint]:
        return self._user.point if self._user else None

    # ── Listing markers ────────────────────────────────────────────────

    def sync(self, listings: Iterable[Listing]) -> None:
        """
        Converge the marker set on ``listings``.

        A call made while a pass is already running (e.g. from inside an
        adapter callback) is coalesced: only the latest request is applied,
        right after the current pass finishes.
        """
        if self._torn_down:
            logger.warning("[map] sync() after teardown ignored")
            return

        self._pending = list(listings)
        if self._syncing:
            return

        self._syncing = True
        try:
            while self._pending is not None:
                batch, self._pending = self._pending, None
                self._reconcile(batch)
        finally:
            self._syncing = False

    def _reconcile(self, listings: list[Listing]) -> None:
        wanted: dict[str, Listing] = {}
        for listing in listings:
            if listing.coordinates is not None and listing.id not in wanted:
                wanted[listing.id] = listing

        created = removed = updated = 0

        for lid in list(self._markers):
            listing = wanted.get(lid)
            if listing is None or listing.coordinates != self._markers[lid].point:
                if self._destroy(lid):
                    removed += 1

        for lid, listing in wanted.items():
            marker = self._markers.get(lid)
            if marker is None:
                if self._create(listing):
                    created += 1
                continue
            if marker.point != listing.coordinates:
                continue  # removal failed above; retried next pass
            try:
                label = marker_label(listing)
                if label != marker.label:
                    marker.handle.update(label)
                    marker.label = label
                    updated += 1
            except Exception as e:
                logger.error(f"[map] Failed to update marker for {lid}: {e}")

        logger.debug(f"[map] sync: +{created} -{removed} ~{updated} ({len(self._markers)} live)")

    def _create(self, listing: Listing) -> bool:
        lid = listing.id
        point = listing.coordinates
        try:
            label = marker_label(listing)
            handle = self.adapter.add_marker(point, label, "listing", self._click_handler(lid))
        except Exception as e:
            logger.error(f"[map] Failed to add marker for {lid}: {e}")
            return False
        self._markers[lid] = _Marker(handle, point, label)
        return True

    def _destroy(self, lid: str) -> bool:
        marker = self._markers.get(lid)
        if marker is None:
            return False
        try:
            marker.handle.remove()
        except Exception as e:
            # Stays registered; the next pass or teardown retries.
            logger.error(f"[map] Failed to remove marker for {lid}: {e}")
            return False
        del self._markers[lid]
        return True

    def _click_handler(self, listing_id: str) -> Callable[[], None]:
        def on_click() -> None:
            if self.on_select is not None:
                self.on_select(listing_id)
        return on_click

    # ── User location ──────────────────────────────────────────────────

    def set_user_location(self, point: Optional[GeoPoint]) -> None:
        if self._torn_down:
            logger.warning("[map] set_user_location() after teardown ignored")
            return
        if self._user is not None and point == self._user.point:
            return

        if self._user is not None:
            try:
                self._user.handle.remove()
            except Exception as e:
                logger.error(f"[map] Failed to remove user location marker: {e}")
            self._user = None

        if point is None:
            return
        try:
            handle = self.adapter.add_marker(point, "You are here", "user")
        except Exception as e:
            logger.error(f"[map] Failed to add user location marker: {e}")
            return
        self._user = _Marker(handle, point, "You are here")

    # ── Viewport ───────────────────────────────────────────────────────

    def fit_to_visible(self) -> Optional[Bounds]:
        """Fit the viewport to every listing marker plus the user. None if nothing is located."""
        if self._torn_down:
            logger.warning("[map] fit_to_visible() after teardown ignored")
            return None
        points = [m.point for m in self._markers.values()]
        if not points:
            return None
        if self._user is not None:
            points.append(self._user.point)

        bounds = Bounds.around(points)
        try:
            self.adapter.fit_bounds(bounds, self.fit_padding, self.max_zoom)
        except Exception as e:
            logger.error(f"[map] Failed to fit bounds: {e}")
            return None
        logger.info(f"[map] Showing {len(self._markers)} properties{' and your location' if self._user else ''}")
        return bounds

    def default_center(self) -> GeoPoint:
        """Centroid of the located listings, else the user, else the fallback."""
        points = [m.point for m in self._markers.values()]
        if points:
            return GeoPoint(
                sum(p.lat for p in points) / len(points),
                sum(p.lng for p in points) / len(points),
            )
        if self._user is not None:
            return self._user.point
        return self.fallback_center

    def cycle_style(self) -> str:
        index = self.styles.index(self.style) if self.style in self.styles else -1
        new_style = self.styles[(index + 1) % len(self.styles)]
        try:
            self.adapter.set_style(new_style)
        except Exception as e:
            logger.error(f"[map] Failed to switch style to {new_style}: {e}")
            return self.style
        self.style = new_style
        return new_style

    # ── Teardown ───────────────────────────────────────────────────────

    def teardown(self) -> None:
        """Release every marker and listener. The controller is unusable afterwards."""
        for lid, marker in list(self._markers.items()):
            try:
                marker.handle.remove()
            except Exception as e:
                logger.error(f"[map] Failed to remove marker for {lid} during teardown: {e}")
        self._markers.clear()

        if self._user is not None:
            try:
                self._user.handle.remove()
            except Exception as e:
                logger.error(f"[map] Failed to remove user location marker during teardown: {e}")
            self._user = None

        self._pending = None
        self.on_select = None
        self._torn_down = True
