import argparse

import main
from config import AppConfig
from geo import GeoPoint
from geolocation import LocationProvider


class RecordingProvider(LocationProvider):
    instances = []

    def __init__(self, url, timeout):
        self.closed = False
        RecordingProvider.instances.append(self)

    async def current_position(self):
        return GeoPoint(12.9, 77.6)

    def close(self):
        self.closed = True


def args(**kwargs):
    values = dict(near=None, locate=False)
    values.update(kwargs)
    return argparse.Namespace(**values)


def test_resolve_location_closes_the_ip_provider(monkeypatch):
    monkeypatch.setattr(main, "IPGeolocationProvider", RecordingProvider)
    point = main.resolve_location(args(locate=True), AppConfig())
    assert point == GeoPoint(12.9, 77.6)
    assert RecordingProvider.instances[-1].closed


def test_resolve_location_from_near():
    assert main.resolve_location(args(near="12.93,77.61"), AppConfig()) == GeoPoint(12.93, 77.61)
    assert main.resolve_location(args(near="nowhere"), AppConfig()) is None


def test_demo_search_narrows_by_college(tmp_path, monkeypatch):
    monkeypatch.setattr(main, "AppConfig", lambda: AppConfig(output_dir=str(tmp_path)))
    monkeypatch.setattr("sys.argv", ["main.py", "--demo", "--search", "christ"])
    captured = {}
    real = main.generate_dashboard

    def capture(results, config, spec, sort_key, user_location=None):
        captured["results"] = results
        return real(results, config, spec, sort_key, user_location)

    monkeypatch.setattr(main, "generate_dashboard", capture)
    main.main()
    assert all("christ" in l.nearby_college.lower() for l in captured["results"])
