import json
import os

import pytest

from config import AppConfig
from conftest import make_listing
from dashboard_generator import LeafletDocumentMap, generate_dashboard
from filters import FilterSpec
from geo import GeoPoint
from search import search
from sorting import SortKey


def test_generate_dashboard_writes_html_and_json(tmp_path):
    config = AppConfig(output_dir=str(tmp_path))
    listings = [
        make_listing("a", title="Flat <b>A</b>", latitude=0, longitude=0.09),
        make_listing("b", latitude=0, longitude=0.2),
        make_listing("c", latitude=None, longitude=None),
    ]
    spec = FilterSpec(near=GeoPoint(0, 0), max_distance_km=30)
    results = search(listings, spec, SortKey.DISTANCE)

    html_path = generate_dashboard(results, config, spec, SortKey.DISTANCE, GeoPoint(0, 0))

    assert os.path.exists(html_path)
    with open(os.path.join(str(tmp_path), config.data_filename), encoding="utf-8") as f:
        data = json.load(f)
    assert [l["id"] for l in data["listings"]] == ["a", "b"]
    assert data["listings"][0]["distance_label"] == "10.01 km"
    assert all(l["marker"] for l in data["listings"])
    assert data["user_location"] == [0, 0]

    page = open(html_path, encoding="utf-8").read()
    assert "leaflet" in page.lower()
    assert "<b>A</b>" not in page


def test_unlocated_listings_stay_in_the_list_without_markers(tmp_path):
    config = AppConfig(output_dir=str(tmp_path))
    results = [make_listing("a"), make_listing("b", latitude=12.9, longitude=77.6)]
    generate_dashboard(results, config, FilterSpec(), SortKey.PRICE_ASC)
    with open(os.path.join(str(tmp_path), config.data_filename), encoding="utf-8") as f:
        data = json.load(f)
    markers = {l["id"]: l["marker"] for l in data["listings"]}
    assert markers["a"] is None
    assert markers["b"] is not None


def test_document_map_rejects_unknown_style():
    doc = LeafletDocumentMap({"streets": "https://tiles/{z}/{x}/{y}.png"})
    with pytest.raises(ValueError):
        doc.set_style("neon")
    assert doc.style == "streets"


def test_configured_map_style_is_applied(tmp_path):
    config = AppConfig(output_dir=str(tmp_path))
    config.map.initial_style = "light"
    html_path = generate_dashboard([make_listing("a", latitude=12.9, longitude=77.6)],
                                   config, FilterSpec(), SortKey.PRICE_ASC)
    page = open(html_path, encoding="utf-8").read()
    assert '"style": "light"' in page


def test_unknown_map_style_falls_back_to_first(tmp_path, caplog):
    config = AppConfig(output_dir=str(tmp_path))
    config.map.initial_style = "neon"
    html_path = generate_dashboard([], config, FilterSpec(), SortKey.PRICE_ASC)
    page = open(html_path, encoding="utf-8").read()
    assert '"style": "streets"' in page
    assert "Unknown map style" in caplog.text
