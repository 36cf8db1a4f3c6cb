"""Tests for zoom clamping and visible-place tracking."""
from app.core.contracts import BBox4
from app.services.viewport import clamp_zoom, visible_places

from tests.factories import make_place


class TestClampZoom:
    def test_floor(self):
        assert clamp_zoom(3) == 6.0

    def test_ceiling(self):
        assert clamp_zoom(20) == 18.0

    def test_within_range(self):
        assert clamp_zoom(11.5) == 11.5

    def test_custom_range(self):
        assert clamp_zoom(1, min_zoom=2, max_zoom=4) == 2


class TestVisiblePlaces:
    def setup_method(self):
        self.bounds = BBox4(minLng=73.0, minLat=15.0, maxLng=74.0, maxLat=16.0)

    def test_inside_and_edges_visible(self):
        places = [
            make_place(1, 15.5, 73.5),
            make_place(2, 15.0, 74.0),
            make_place(3, 17.0, 73.5),
        ]
        assert [p.id for p in visible_places(places, self.bounds)] == [1, 2]

    def test_coordless_places_never_visible(self):
        assert visible_places([make_place(1)], self.bounds) == []
