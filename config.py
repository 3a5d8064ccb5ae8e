"""
Configuration for the Rental Finder search tool.
Fill in your backend keys via environment variables.

Listing data comes from a hosted PostgREST-style backend:
  - LISTINGS_BACKEND_URL   e.g. https://<project>.supabase.co
  - LISTINGS_BACKEND_KEY   public (anon) API key
"""

import os
from dataclasses import dataclass, field


@dataclass
class BackendKeys:
    """Hosted backend credentials - set via environment variables."""
    url: str = os.getenv("LISTINGS_BACKEND_URL", "")
    anon_key: str = os.getenv("LISTINGS_BACKEND_KEY", "")


# Colleges offered in the search box
BANGALORE_COLLEGES = [
    "Christ University",
    "Bangalore University",
    "Jain University",
    "RV College of Engineering",
    "PES University",
    "MS Ramaiah Institute of Technology",
    "Bangalore Institute of Technology",
    "Mount Carmel College",
    "St. Joseph's College",
    "Indian Institute of Science (IISc)",
    "National Law School of India University",
    "Kristu Jayanti College",
    "Presidency College",
    "Alliance University",
    "Bangalore Medical College",
    "Reva University",
    "BMS College of Engineering",
    "New Horizon College",
]


@dataclass
class SearchDefaults:
    """What a search falls back to when the user leaves a control alone."""
    sort: str = "price_asc"
    max_distance_km: float = 5.0          # Used when a location is given without a radius
    table: str = "properties"
    colleges: list = field(default_factory=lambda: list(BANGALORE_COLLEGES))


@dataclass
class MapSettings:
    """Map viewport and tile styles."""
    styles: dict = field(default_factory=lambda: {
        "streets": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "satellite": "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        "light": "https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}{r}.png",
    })
    initial_style: str = os.getenv("MAP_STYLE", "streets")
    fit_padding: int = 50
    max_zoom: int = 15
    user_zoom: int = 13
    default_center: tuple = (51.509865, -0.118092)   # (lat, lng) when nothing is located


@dataclass
class GeolocationSettings:
    """How "use my location" is resolved on the command line."""
    timeout_s: float = float(os.getenv("GEOLOCATION_TIMEOUT", "10"))
    ip_lookup_url: str = os.getenv("GEOLOCATION_URL", "https://ipapi.co/json/")


@dataclass
class AppConfig:
    """Top-level configuration."""
    keys: BackendKeys = field(default_factory=BackendKeys)
    search: SearchDefaults = field(default_factory=SearchDefaults)
    map: MapSettings = field(default_factory=MapSettings)
    geolocation: GeolocationSettings = field(default_factory=GeolocationSettings)

    # Output
    output_dir: str = os.path.expanduser("~/rental-finder/output")
    dashboard_filename: str = "dashboard.html"
    data_filename: str = "listings.json"

    # HTTP
    http_timeout: float = 30.0
    rate_limit_wait: float = 60.0

    # Max listings to show on dashboard
    max_dashboard_listings: int = 100
