from conftest import make_listing
from geo import GeoPoint
from map_sync import Bounds, MapSyncController, marker_label


def located(id, lat=12.9, lng=77.6, **kwargs):
    return make_listing(id, latitude=lat, longitude=lng, **kwargs)


def test_initial_sync_creates_one_marker_per_located_listing(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([located("a"), located("b", 13.0), make_listing("pinless")])
    assert set(controller.markers) == {"a", "b"}
    assert len(fake_map.live) == 2
    assert all(h.kind == "listing" for h in fake_map.live)


def test_duplicate_ids_get_a_single_marker(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([located("a"), located("a", 13.0)])
    assert len(fake_map.live) == 1
    assert controller.markers["a"].point == GeoPoint(12.9, 77.6)


def test_resync_only_touches_the_difference(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([located("x", 12.1), located("w", 12.2)])
    w_handle = controller.markers["w"]
    x_handle = controller.markers["x"]

    controller.sync([located("w", 12.2), located("y", 12.3)])

    assert set(controller.markers) == {"w", "y"}
    assert controller.markers["w"] is w_handle
    assert x_handle.removed
    assert len(fake_map.created) == 3
    assert len(fake_map.live) == 2


def test_empty_sync_clears_map(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([located("a"), located("b", 13.0)])
    controller.sync([])
    assert controller.markers == {}
    assert fake_map.live == []


def test_moved_listing_is_recreated(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([located("a", 12.9, 77.6)])
    old = controller.markers["a"]
    controller.sync([located("a", 12.95, 77.6)])
    new = controller.markers["a"]
    assert new is not old
    assert old.removed
    assert new.point == GeoPoint(12.95, 77.6)


def test_price_change_updates_label_in_place(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([located("a", price=1000)])
    handle = controller.markers["a"]
    controller.sync([located("a", price=1500)])
    assert controller.markers["a"] is handle
    assert handle.label == "₹1,500"
    assert len(fake_map.created) == 1


def test_listing_losing_its_pin_loses_its_marker(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([located("a")])
    controller.sync([make_listing("a", latitude=0, longitude=0)])
    assert controller.markers == {}


def test_failed_add_is_logged_and_others_still_appear(fake_map, caplog):
    fake_map.fail_add = {"₹2,000"}
    controller = MapSyncController(fake_map)
    controller.sync([located("a", price=1000), located("b", 13.0, price=2000), located("c", 13.1, price=3000)])
    assert set(controller.markers) == {"a", "c"}
    assert "Failed to add marker for b" in caplog.text


def test_failed_remove_keeps_marker_and_retries(fake_map, caplog):
    controller = MapSyncController(fake_map)
    controller.sync([located("a", price=1000), located("b", 13.0, price=2000)])
    fake_map.fail_remove = {"₹1,000"}
    controller.sync([located("b", 13.0, price=2000)])
    assert "a" in controller.markers
    assert "Failed to remove marker for a" in caplog.text

    fake_map.fail_remove = set()
    controller.sync([located("b", 13.0, price=2000)])
    assert set(controller.markers) == {"b"}
    assert len(fake_map.live) == 1


def test_reentrant_sync_is_coalesced(fake_map):
    controller = MapSyncController(fake_map)
    latest = [located("z", 14.0)]

    def resync_once(handle):
        fake_map.on_add = None
        controller.sync([located("ignored", 15.0)])
        controller.sync(latest)

    fake_map.on_add = resync_once
    controller.sync([located("a"), located("b", 13.0)])

    assert set(controller.markers) == {"z"}
    assert len(fake_map.live) == 1
    assert not any(h.label == "Listing ignored" for h in fake_map.created)


def test_click_reports_listing_id(fake_map):
    clicked = []
    controller = MapSyncController(fake_map, on_select=clicked.append)
    controller.sync([located("a"), located("b", 13.0)])
    controller.markers["b"].click()
    controller.markers["a"].click()
    assert clicked == ["b", "a"]


def test_user_location_marker_lifecycle(fake_map):
    controller = MapSyncController(fake_map)
    controller.set_user_location(GeoPoint(12.9, 77.6))
    first = controller.user_marker
    assert first.kind == "user"

    controller.set_user_location(GeoPoint(12.9, 77.6))
    assert controller.user_marker is first

    controller.set_user_location(GeoPoint(13.0, 77.7))
    assert first.removed
    assert controller.user_location == GeoPoint(13.0, 77.7)

    controller.set_user_location(None)
    assert controller.user_marker is None
    assert fake_map.live == []


def test_user_marker_is_separate_from_listing_markers(fake_map):
    controller = MapSyncController(fake_map)
    controller.set_user_location(GeoPoint(12.0, 77.0))
    controller.sync([])
    assert controller.user_marker is not None
    assert controller.markers == {}


def test_fit_to_visible_without_markers_is_noop(fake_map):
    controller = MapSyncController(fake_map)
    controller.set_user_location(GeoPoint(12.0, 77.0))
    assert controller.fit_to_visible() is None
    assert fake_map.fitted == []


def test_fit_to_visible_covers_listings_and_user(fake_map):
    controller = MapSyncController(fake_map, fit_padding=40, max_zoom=14)
    controller.sync([located("a", 12.9, 77.6), located("b", 13.1, 77.5)])
    controller.set_user_location(GeoPoint(12.8, 77.8))
    bounds = controller.fit_to_visible()
    assert bounds == Bounds(south=12.8, west=77.5, north=13.1, east=77.8)
    assert fake_map.fitted == [(bounds, 40, 14)]


def test_default_center_preference(fake_map):
    fallback = GeoPoint(51.5, -0.1)
    controller = MapSyncController(fake_map, fallback_center=fallback)
    assert controller.default_center() == fallback
    controller.set_user_location(GeoPoint(12.0, 77.0))
    assert controller.default_center() == GeoPoint(12.0, 77.0)
    controller.sync([located("a", 10.0, 70.0), located("b", 12.0, 72.0)])
    center = controller.default_center()
    assert (center.lat, center.lng) == (11.0, 71.0)


def test_cycle_style_wraps_around(fake_map):
    controller = MapSyncController(fake_map, styles=("streets", "satellite"))
    assert controller.cycle_style() == "satellite"
    assert fake_map.style == "satellite"
    assert controller.cycle_style() == "streets"


def test_teardown_releases_everything(fake_map, caplog):
    clicked = []
    controller = MapSyncController(fake_map, on_select=clicked.append)
    controller.sync([located("a"), located("b", 13.0)])
    controller.set_user_location(GeoPoint(12.0, 77.0))
    handle = controller.markers["a"]

    controller.teardown()

    assert fake_map.live == []
    assert controller.markers == {}
    assert controller.user_marker is None
    handle.on_click()
    assert clicked == []

    controller.sync([located("c")])
    assert fake_map.live == []
    assert "after teardown" in caplog.text


def test_marker_label_falls_back_to_title():
    assert marker_label(make_listing("a", price=12500)) == "₹12,500"
    assert marker_label(make_listing("a", price=None, title="Cozy PG")) == "Cozy PG"


def test_non_numeric_price_does_not_abort_the_pass(fake_map):
    controller = MapSyncController(fake_map)
    controller.sync([
        located("a", price="12000"),
        located("b", 13.0, price="call us", title="Ask owner"),
        located("c", 13.1, price=object()),
    ])
    assert set(controller.markers) == {"a", "b", "c"}
    assert controller.markers["a"].label == "₹12,000"
    assert controller.markers["b"].label == "Ask owner"


def test_label_failure_is_logged_and_other_markers_still_appear(fake_map, caplog, monkeypatch):
    import map_sync

    def label(listing):
        if listing.id == "bad":
            raise RuntimeError("no label")
        return "ok"

    monkeypatch.setattr(map_sync, "marker_label", label)
    controller = MapSyncController(fake_map)
    controller.sync([located("bad"), located("good", 13.0)])
    assert set(controller.markers) == {"good"}
    assert "Failed to add marker for bad" in caplog.text
