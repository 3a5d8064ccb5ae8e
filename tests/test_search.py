import pytest

from conftest import make_listing
from fetchers import DataSourceError
from filters import FilterSpec
from geo import GeoPoint
from search import load_listings, search
from sorting import SortKey


def ids(listings):
    return [l.id for l in listings]


def test_filter_then_sort_by_price():
    listings = [
        make_listing("a", price=1200, bedrooms=2),
        make_listing("b", price=800, bedrooms=1),
        make_listing("c", price=1500, bedrooms=3),
    ]
    result = search(listings, FilterSpec(min_bedrooms=2), SortKey.PRICE_ASC)
    assert ids(result) == ["a", "c"]


def test_distance_constraint_then_nearest_first():
    listings = [
        make_listing("far", latitude=0, longitude=0.45),
        make_listing("near", latitude=0, longitude=0.09),
        make_listing("pinless", latitude=None, longitude=None),
    ]
    spec = FilterSpec(near=GeoPoint(0, 0), max_distance_km=20)
    result = search(listings, spec, SortKey.DISTANCE)
    assert ids(result) == ["near"]
    assert result[0].distance == pytest.approx(10.0, abs=0.1)


def test_every_listing_gets_a_distance_and_results_are_ordered():
    near = GeoPoint(12.9716, 77.5946)
    listings = [
        make_listing(i, latitude=12.9716 + offset, longitude=77.5946)
        for i, offset in enumerate([0.03, 0.01, 0.02, 0.005])
    ]
    result = search(listings, FilterSpec(near=near, max_distance_km=50), SortKey.DISTANCE)
    assert ids(result) == ["3", "1", "2", "0"]
    distances = [l.distance for l in result]
    assert all(d is not None for d in distances)
    assert distances == sorted(distances)


def test_search_does_not_touch_inputs():
    listings = [make_listing("a", latitude=0, longitude=0.09, price=5)]
    listings[0].distance = 123.0
    result = search(listings, FilterSpec(near=GeoPoint(0, 0), max_distance_km=20), SortKey.PRICE_ASC)
    assert result[0] is not listings[0]
    assert listings[0].distance == 123.0


def test_distance_from_previous_pass_is_not_reused():
    listings = [make_listing("a", latitude=0, longitude=0.09)]
    first = search(listings, FilterSpec(near=GeoPoint(0, 0), max_distance_km=20), SortKey.DISTANCE)
    second = search(first, FilterSpec(), SortKey.DISTANCE)
    assert first[0].distance is not None
    assert second[0].distance is None


def test_distance_sort_without_location_keeps_order():
    listings = [make_listing(i, latitude=1 + i, longitude=1) for i in range(3)]
    assert ids(search(listings, FilterSpec(), SortKey.DISTANCE)) == ["0", "1", "2"]


def test_search_is_deterministic():
    listings = [make_listing(i, price=(i * 37) % 5 * 100) for i in range(20)]
    spec = FilterSpec(min_price=100)
    assert ids(search(listings, spec, SortKey.PRICE_DESC)) == ids(search(listings, spec, SortKey.PRICE_DESC))


class StubFetcher:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    def fetch(self, spec, sort_key):
        self.calls.append(("fetch", spec, sort_key))
        if self.error:
            raise self.error
        return list(self.rows)

    def fetch_by_college(self, college, spec, sort_key):
        self.calls.append(("college", college, sort_key))
        return list(self.rows)


def test_load_listings_reapplies_constraints_locally():
    # The backend ignored the price bound; the local pass still enforces it
    fetcher = StubFetcher([make_listing("a", price=500), make_listing("b", price=50)])
    result = load_listings(fetcher, FilterSpec(min_price=100), "price-desc")
    assert ids(result) == ["a"]
    assert fetcher.calls[0][0] == "fetch"
    assert fetcher.calls[0][2] is SortKey.PRICE_DESC


def test_load_listings_by_college_narrows_locally():
    fetcher = StubFetcher([
        make_listing("a", nearby_college="Christ University"),
        make_listing("b", nearby_college="Jain University"),
    ])
    result = load_listings(fetcher, FilterSpec(), SortKey.PRICE_ASC, college="christ")
    assert fetcher.calls[0][:2] == ("college", "christ")
    assert ids(result) == ["a"]


def test_load_listings_propagates_source_errors():
    fetcher = StubFetcher(error=DataSourceError("boom"))
    with pytest.raises(DataSourceError):
        load_listings(fetcher, FilterSpec(), SortKey.PRICE_ASC)


def test_price_floor_then_cheapest_first():
    listings = [make_listing("1000", price=1000), make_listing("2000", price=2000), make_listing("3000", price=3000)]
    result = search(listings, FilterSpec(min_price=1500), SortKey.PRICE_ASC)
    assert [l.price for l in result] == [2000, 3000]
