import pytest

from map_sync import MapAdapter, MarkerHandle
from models import Listing


def make_listing(id, **kwargs) -> Listing:
    defaults = dict(title=f"Listing {id}", address="Bangalore", price=1000.0, bedrooms=1)
    defaults.update(kwargs)
    return Listing(id=str(id), **defaults)


class FakeHandle(MarkerHandle):
    def __init__(self, fake, point, label, kind, on_click):
        self.fake = fake
        self.point = point
        self.label = label
        self.kind = kind
        self.on_click = on_click
        self.removed = False

    def remove(self):
        if self.fake.fail_remove and self.label in self.fake.fail_remove:
            raise RuntimeError("map not ready")
        if not self.removed:
            self.removed = True
            self.fake.live.remove(self)

    def update(self, label):
        self.label = label

    def click(self):
        if self.on_click is not None and not self.removed:
            self.on_click()


class FakeMap(MapAdapter):
    """In-memory map that records every marker it hands out."""

    def __init__(self):
        self.live = []
        self.created = []
        self.fitted = []
        self.style = "streets"
        self.fail_add = set()      # labels whose creation should blow up
        self.fail_remove = set()
        self.on_add = None

    def add_marker(self, point, label, kind, on_click=None):
        if label in self.fail_add:
            raise RuntimeError("map not initialized")
        handle = FakeHandle(self, point, label, kind, on_click)
        self.live.append(handle)
        self.created.append(handle)
        if self.on_add is not None:
            self.on_add(handle)
        return handle

    def fit_bounds(self, bounds, padding, max_zoom):
        self.fitted.append((bounds, padding, max_zoom))

    def set_style(self, style):
        self.style = style


@pytest.fixture
def fake_map():
    return FakeMap()
