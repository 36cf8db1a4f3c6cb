"""Tests for the folium map rendering."""
import folium
from folium.plugins import MarkerCluster

from app.core.contracts import LatLng, MapViewState, MarkerSpec
from app.services.map_render import render_error_panel, render_map
from app.services.markers import build_marker_layers

from tests.factories import make_place


def _plain_markers(parent):
    return [c for c in parent._children.values() if type(c) is folium.Marker]


class TestRenderMap:
    def setup_method(self):
        self.places = [
            make_place(1, 15.55, 73.75, name="Baga", rating_sum=9, rating_count=2),
            make_place(2, 15.49, 73.82, name="Panjim"),
            make_place(3, 15.30, 74.12, name="Falls"),
        ]
        self.view = MapViewState(center=LatLng(lat=15.5, lng=73.8), zoom=10)

    def test_cluster_layer_holds_unselected_markers(self):
        layers = build_marker_layers(self.places, self.places[0], cluster_mode=True, zoom=10)
        m = render_map(view=self.view, layers=layers)

        groups = [c for c in m._children.values() if isinstance(c, MarkerCluster)]
        assert len(groups) == 1
        assert len(_plain_markers(groups[0])) == 2
        # selected marker sits directly on the map
        assert len(_plain_markers(m)) == 1

    def test_flat_mode_uses_feature_group(self):
        layers = build_marker_layers(self.places, None, cluster_mode=False, zoom=10)
        m = render_map(view=self.view, layers=layers)
        assert not any(isinstance(c, MarkerCluster) for c in m._children.values())
        groups = [c for c in m._children.values() if isinstance(c, folium.FeatureGroup)]
        assert len(_plain_markers(groups[0])) == 3

    def test_html_carries_cluster_options_and_attribution(self):
        layers = build_marker_layers(self.places, None, cluster_mode=True, zoom=10)
        out = render_map(view=self.view, layers=layers).get_root().render()
        assert "leaflet" in out.lower()
        assert "disableClusteringAtZoom" in out
        assert "EasyTrip |" in out

    def test_radius_circle_only_with_results(self):
        user = LatLng(lat=15.5, lng=73.8)
        with_results = render_map(view=self.view, layers=None, user=user, radius_mode=True, filtered_count=3)
        empty = render_map(view=self.view, layers=None, user=user, radius_mode=True, filtered_count=0)
        assert any(type(c) is folium.Circle for c in with_results._children.values())
        assert not any(type(c) is folium.Circle for c in empty._children.values())
        assert any(type(c) is folium.CircleMarker for c in empty._children.values())


class TestErrorPanel:
    def test_message_escaped_with_retry(self):
        out = render_error_panel("<oops>")
        assert "&lt;oops&gt;" in out
        assert "window.location.reload()" in out


class TestMarkerIsolation:
    def test_css_rendered_into_page(self):
        m = render_map(view=MapViewState(center=LatLng(lat=10, lng=10), zoom=8), layers=None)
        out = m.get_root().render()
        assert "border-radius: 50% 50% 50% 0;" in out
        assert ".cluster-marker.large" in out

    def test_broken_selected_marker_does_not_abort_page(self):
        places = [make_place(1, 15.5, 73.8), make_place(2, 15.6, 73.9)]
        layers = build_marker_layers(places, places[0], cluster_mode=False, zoom=10)
        layers.selected = MarkerSpec.model_construct(
            place_id=1, name="Broken", lat="north", lng=73.8, kind="pin",
            rating_label=None, selected=True, z_index_offset=1000, popup_html="",
        )
        m = render_map(view=MapViewState(center=LatLng(lat=15.5, lng=73.8), zoom=10), layers=layers)
        assert _plain_markers(m) == []
        groups = [c for c in m._children.values() if isinstance(c, folium.FeatureGroup)]
        assert len(_plain_markers(groups[0])) == 1
        assert "leaflet" in m.get_root().render().lower()
