"""
Unified listing model shared by the fetchers, the search engine and the views.
"""

from dataclasses import dataclass, field
from typing import Optional

from geo import GeoPoint, has_coordinates

PROPERTY_TYPES = ("rental", "pg")
GENDER_PREFERENCES = ("boys", "girls", "any")
MEDIA_KINDS = ("image", "video")


@dataclass(frozen=True)
class MediaItem:
    url: str
    kind: str = "image"                  # "image" | "video"


@dataclass
class Listing:
    """One rentable unit, normalized from a backend row."""
    id: str
    title: str = ""
    address: str = ""
    description: str = ""
    restrictions: str = ""
    price: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = 1
    square_feet: Optional[int] = None
    deposit_amount: Optional[float] = None
    available_from: Optional[str] = None  # ISO date
    created_at: Optional[str] = None      # ISO datetime
    property_type: str = "rental"         # "rental" | "pg"
    gender_preference: str = "any"        # "boys" | "girls" | "any"
    floor_number: Optional[int] = None
    has_hall: Optional[bool] = None
    has_separate_kitchen: Optional[bool] = None
    is_furnished: Optional[bool] = None
    has_ac: Optional[bool] = None
    has_wifi: Optional[bool] = None
    has_gym: Optional[bool] = None
    nearby_college: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    media: list = field(default_factory=list)   # list[MediaItem]

    # Set by the distance filter for the current search pass only
    distance: Optional[float] = field(default=None, compare=False, repr=False)

    @property
    def coordinates(self) -> Optional[GeoPoint]:
        if not has_coordinates(self.latitude, self.longitude):
            return None
        return GeoPoint(float(self.latitude), float(self.longitude))

    @property
    def image_url(self) -> str:
        for item in self.media:
            if item.kind == "image":
                return item.url
        return ""
