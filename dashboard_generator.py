"""
Generates a self-contained HTML dashboard from search results.
The dashboard is a single file with all CSS/JS inline; the map is drawn
with Leaflet from a marker document produced by MapSyncController.
"""

import html
import json
import logging
import os
from datetime import datetime, timezone
from itertools import count
from typing import Callable, Optional

from config import AppConfig
from filters import FilterSpec
from geo import GeoPoint, format_distance
from map_sync import Bounds, MapAdapter, MapSyncController, MarkerHandle
from models import Listing
from sorting import SortKey

logger = logging.getLogger(__name__)


# ── Leaflet document adapter ────────────────────────────────────────────────

class LeafletMarker(MarkerHandle):
    def __init__(self, doc: "LeafletDocumentMap", marker_id: str, on_click: Optional[Callable[[], None]]):
        self._doc = doc
        self.marker_id = marker_id
        self.on_click = on_click

    def remove(self) -> None:
        self._doc.markers.pop(self.marker_id, None)
        self.on_click = None

    def update(self, label: str) -> None:
        if self.marker_id in self._doc.markers:
            self._doc.markers[self.marker_id]["label"] = label

    def click(self) -> None:
        if self.on_click is not None:
            self.on_click()


class LeafletDocumentMap(MapAdapter):
    """
    Records marker, viewport and style operations as plain data.

    The generated page replays ``to_dict()`` with Leaflet, so the Python
    side never needs a browser.
    """

    def __init__(self, tile_urls: dict, style: str = "streets"):
        self.tile_urls = tile_urls
        self.style = style
        self.markers: dict[str, dict] = {}
        self.bounds: Optional[Bounds] = None
        self.padding = 0
        self.max_zoom = 18
        self._ids = count(1)

    def add_marker(self, point, label, kind, on_click=None) -> LeafletMarker:
        marker_id = f"m{next(self._ids)}"
        self.markers[marker_id] = {"id": marker_id, "lat": point.lat, "lng": point.lng, "label": label, "kind": kind}
        return LeafletMarker(self, marker_id, on_click)

    def fit_bounds(self, bounds: Bounds, padding: int, max_zoom: int) -> None:
        self.bounds = bounds
        self.padding = padding
        self.max_zoom = max_zoom

    def set_style(self, style: str) -> None:
        if style not in self.tile_urls:
            raise ValueError(f"Unknown map style {style!r}")
        self.style = style

    def to_dict(self, center: GeoPoint, zoom: int) -> dict:
        return {
            "tiles": self.tile_urls.get(self.style, ""),
            "style": self.style,
            "styles": self.tile_urls,
            "center": [center.lat, center.lng],
            "zoom": zoom,
            "bounds": None if self.bounds is None else [
                [self.bounds.south, self.bounds.west],
                [self.bounds.north, self.bounds.east],
            ],
            "padding": self.padding,
            "max_zoom": self.max_zoom,
            "markers": list(self.markers.values()),
        }


# ── Serialization ───────────────────────────────────────────────────────────

def _listing_json(listing: Listing, marker_id: Optional[str]) -> dict:
    return {
        "id": listing.id,
        "title": listing.title,
        "address": listing.address,
        "price": listing.price,
        "bedrooms": listing.bedrooms,
        "bathrooms": listing.bathrooms,
        "sqft": listing.square_feet,
        "deposit": listing.deposit_amount,
        "available_from": listing.available_from,
        "property_type": listing.property_type,
        "gender_preference": listing.gender_preference,
        "nearby_college": listing.nearby_college,
        "has_hall": listing.has_hall,
        "has_separate_kitchen": listing.has_separate_kitchen,
        "lat": listing.latitude,
        "lng": listing.longitude,
        "image": listing.image_url,
        "media": [{"url": m.url, "kind": m.kind} for m in listing.media],
        "distance_km": listing.distance,
        "distance_label": format_distance(listing.distance),
        "marker": marker_id,
    }


def _criteria_summary(spec: FilterSpec, sort_key: SortKey) -> str:
    parts = []
    if spec.min_price is not None or spec.max_price is not None:
        parts.append(f"₹{spec.min_price or 0:,.0f}–{'∞' if spec.max_price is None else f'{spec.max_price:,.0f}'}")
    if spec.min_bedrooms is not None:
        parts.append(f"{spec.min_bedrooms}+ BHK")
    if spec.property_type:
        parts.append(spec.property_type.upper() if spec.property_type == "pg" else "Rental")
    if spec.gender_preference and spec.gender_preference != "any":
        parts.append(f"for {spec.gender_preference}")
    if spec.colleges:
        parts.append(" / ".join(spec.colleges))
    if spec.has_distance:
        parts.append(f"≤{spec.max_distance_km:g} km")
    parts.append(f"sorted by {sort_key.value.replace('_', ' ')}")
    return " · ".join(parts)


def _apply_style(controller: MapSyncController, style: str) -> None:
    for _ in range(len(controller.styles)):
        if controller.style == style:
            return
        controller.cycle_style()
    logger.warning(f"[dashboard] Unknown map style {style!r}, using {controller.style}")


def generate_dashboard(
    results: list[Listing],
    config: AppConfig,
    spec: FilterSpec,
    sort_key: SortKey,
    user_location: Optional[GeoPoint] = None,
) -> str:
    """Generate HTML dashboard and write to output directory."""

    os.makedirs(config.output_dir, exist_ok=True)
    shown = results[: config.max_dashboard_listings]

    doc = LeafletDocumentMap(config.map.styles, style=next(iter(config.map.styles), "streets"))
    controller = MapSyncController(
        doc,
        styles=list(config.map.styles),
        fit_padding=config.map.fit_padding,
        max_zoom=config.map.max_zoom,
        fallback_center=GeoPoint(*config.map.default_center),
    )
    _apply_style(controller, config.map.initial_style)
    controller.sync(shown)
    controller.set_user_location(user_location)
    controller.fit_to_visible()

    markers = controller.markers
    listings_json = [
        _listing_json(l, markers[l.id].marker_id if l.id in markers else None)
        for l in shown
    ]
    map_json = doc.to_dict(controller.default_center(), config.map.user_zoom)
    controller.teardown()

    json_path = os.path.join(config.output_dir, config.data_filename)
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump({
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "sort": sort_key.value,
            "user_location": None if user_location is None else [user_location.lat, user_location.lng],
            "total_listings": len(results),
            "listings": listings_json,
        }, f, indent=2, ensure_ascii=False)

    now = datetime.now().strftime("%B %d, %Y at %I:%M %p")
    page = _build_html(
        json.dumps(listings_json, ensure_ascii=False),
        json.dumps(map_json, ensure_ascii=False),
        now,
        html.escape(_criteria_summary(spec, sort_key)),
    )

    html_path = os.path.join(config.output_dir, config.dashboard_filename)
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(page)

    logger.info(f"[dashboard] {len(shown)} listings, {len(markers)} on the map")
    return html_path


def _build_html(data_json: str, map_json: str, generated_at: str, criteria: str) -> str:
    data_json = data_json.replace("</", "<\\/")
    map_json = map_json.replace("</", "<\\/")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Rental Finder — Results</title>
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
<style>
  :root {{
    --bg:      #0c0c0f;
    --surface: #16161a;
    --border:  #2a2a32;
    --text:    #e8e6e3;
    --text2:   #9a9a9f;
    --accent:  #ff6b35;
    --blue:    #42a5f5;
    --radius:  12px;
  }}
  * {{ margin:0; padding:0; box-sizing:border-box; }}
  body {{ font-family: system-ui, sans-serif; background: var(--bg); color: var(--text); line-height: 1.5; }}
  .header {{ padding: 2rem; border-bottom: 1px solid var(--border); }}
  .header h1 {{ font-size: 1.6rem; letter-spacing: -0.03em; }}
  .header .meta {{ font-size: 0.8rem; color: var(--text2); }}
  .layout {{ display: grid; grid-template-columns: 1fr 1fr; gap: 1.5rem; padding: 1.5rem 2rem; }}
  #map {{ height: calc(100vh - 10rem); border-radius: var(--radius); position: sticky; top: 1rem; }}
  .map-controls {{ margin-bottom: 0.6rem; display: flex; gap: 0.5rem; }}
  .map-controls button {{ background: var(--surface); color: var(--text); border: 1px solid var(--border);
    border-radius: 8px; padding: 0.3rem 0.8rem; cursor: pointer; }}
  .grid {{ display: flex; flex-direction: column; gap: 1rem; }}
  .card {{ background: var(--surface); border: 1px solid var(--border); border-radius: var(--radius);
    display: flex; overflow: hidden; cursor: pointer; }}
  .card.selected {{ border-color: var(--accent); box-shadow: 0 0 0 2px var(--accent); }}
  .card img, .card .ph {{ width: 160px; height: 120px; object-fit: cover; background: #1e1e24; flex-shrink: 0; }}
  .card-body {{ padding: 0.8rem 1rem; }}
  .card-title {{ font-weight: 700; }}
  .card-address, .card-meta {{ font-size: 0.82rem; color: var(--text2); }}
  .price {{ color: var(--accent); font-weight: 700; }}
  .distance {{ color: var(--blue); font-size: 0.82rem; }}
  .pin {{ background: var(--accent); color: #fff; border-radius: 12px; padding: 2px 6px; font-size: 11px;
    font-weight: 700; white-space: nowrap; border: 2px solid #fff; }}
  .pin.selected {{ background: var(--blue); }}
  .you {{ width: 16px; height: 16px; border-radius: 50%; background: var(--blue); border: 3px solid #fff; }}
  .empty-state {{ text-align: center; padding: 4rem 2rem; color: var(--text2); }}
  @media (max-width: 900px) {{ .layout {{ grid-template-columns: 1fr; }} #map {{ height: 50vh; position: static; }} }}
</style>
</head>
<body>

<div class="header">
  <h1>🏠 Rental Finder</h1>
  <div class="meta">{criteria}</div>
  <div class="meta">Updated {generated_at}</div>
</div>

<div class="layout">
  <div>
    <div class="map-controls">
      <button id="styleBtn">Map style</button>
      <button id="fitBtn">Show all</button>
    </div>
    <div id="map"></div>
  </div>
  <div class="grid" id="grid"></div>
</div>

<script>
const DATA = {data_json};
const MAP = {map_json};

const map = L.map('map').setView(MAP.center, MAP.zoom);
let tiles = L.tileLayer(MAP.tiles, {{ maxZoom: 19 }}).addTo(map);
const styleNames = Object.keys(MAP.styles);
let styleIndex = Math.max(0, styleNames.indexOf(MAP.style));

const pins = {{}};
let selectedId = null;

function fit() {{
  if (MAP.bounds) map.fitBounds(MAP.bounds, {{ padding: [MAP.padding, MAP.padding], maxZoom: MAP.max_zoom }});
}}

MAP.markers.forEach((m, i) => {{
  const icon = m.kind === 'user'
    ? L.divIcon({{ className: '', html: '<div class="you"></div>', iconSize: [16, 16] }})
    : L.divIcon({{ className: '', html: `<div class="pin">${{esc(m.label)}}</div>`, iconAnchor: [20, 12] }});
  const marker = L.marker([m.lat, m.lng], {{ icon }}).addTo(map);
  if (m.kind !== 'user') {{
    const listing = DATA.find(l => l.marker === m.id);
    if (listing) {{
      pins[listing.id] = marker;
      marker.on('click', () => select(listing.id, true));
    }}
  }}
}});

function select(id, scroll) {{
  if (selectedId && pins[selectedId]) pins[selectedId].getElement().firstChild.classList.remove('selected');
  document.querySelectorAll('.card.selected').forEach(c => c.classList.remove('selected'));
  selectedId = id;
  const card = document.getElementById('card-' + id);
  if (card) {{
    card.classList.add('selected');
    if (scroll) card.scrollIntoView({{ behavior: 'smooth', block: 'center' }});
  }}
  if (pins[id]) {{
    pins[id].getElement().firstChild.classList.add('selected');
    if (!scroll) map.panTo(pins[id].getLatLng());
  }}
}}

function esc(s) {{
  return String(s ?? '').replace(/[&<>"']/g, c => ({{'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}}[c]));
}}

const grid = document.getElementById('grid');
if (DATA.length === 0) {{
  grid.innerHTML = `<div class="empty-state"><h2>No properties found</h2>
    <p>Try widening the price range or distance.</p></div>`;
}} else {{
  grid.innerHTML = DATA.map(l => {{
    const price = l.price != null ? '₹' + Number(l.price).toLocaleString() + '/month' : 'Price on request';
    const meta = [
      l.bedrooms != null ? l.bedrooms + ' BHK' : '',
      l.bathrooms != null ? l.bathrooms + ' bath' : '',
      l.property_type === 'pg' ? 'PG · ' + l.gender_preference : '',
      l.available_from ? 'from ' + l.available_from : '',
    ].filter(Boolean).join(' · ');
    const img = l.image ? `<img src="${{esc(l.image)}}" loading="lazy" alt="">` : '<div class="ph"></div>';
    return `<div class="card" id="card-${{esc(l.id)}}" data-id="${{esc(l.id)}}">
      ${{img}}
      <div class="card-body">
        <div class="card-title">${{esc(l.title)}}</div>
        <div class="card-address">${{esc(l.address)}}</div>
        <div><span class="price">${{price}}</span></div>
        <div class="card-meta">${{esc(meta)}}</div>
        ${{l.nearby_college ? `<div class="card-meta">Near ${{esc(l.nearby_college)}}</div>` : ''}}
        ${{l.distance_label ? `<div class="distance">${{l.distance_label}} away</div>` : ''}}
      </div>
    </div>`;
  }}).join('');
}}

grid.addEventListener('click', e => {{
  const card = e.target.closest('.card');
  if (card) select(card.dataset.id, false);
}});

document.getElementById('styleBtn').addEventListener('click', () => {{
  styleIndex = (styleIndex + 1) % styleNames.length;
  map.removeLayer(tiles);
  tiles = L.tileLayer(MAP.styles[styleNames[styleIndex]], {{ maxZoom: 19 }}).addTo(map);
}});
document.getElementById('fitBtn').addEventListener('click', fit);

fit();
</script>
</body>
</html>"""
