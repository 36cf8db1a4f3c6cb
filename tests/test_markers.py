"""Tests for marker construction, popups and clustering."""
from app.core.contracts import Place
from app.services.markers import (
    build_marker_layers,
    cluster_markers,
    cluster_size,
    marker_for,
    popup_html,
    same_id,
)

from tests.factories import make_place


class TestMarkerFor:
    def test_rated_place_gets_rating_marker(self):
        m = marker_for(make_place(1, 10, 10, rating_sum=9, rating_count=2))
        assert m.kind == "rating"
        assert m.rating_label == "4.5"

    def test_unrated_place_gets_pin(self):
        m = marker_for(make_place(1, 10, 10))
        assert m.kind == "pin"
        assert m.rating_label is None

    def test_selected_is_raised(self):
        m = marker_for(make_place(1, 10, 10), selected=True)
        assert m.selected
        assert m.z_index_offset == 1000


class TestPopup:
    def test_description_truncated(self):
        p = make_place(1, 10, 10, description="x" * 150)
        out = popup_html(p)
        assert "x" * 100 + "..." in out
        assert "x" * 101 not in out

    def test_short_description_untouched(self):
        out = popup_html(make_place(1, 10, 10, description="Sunny"))
        assert "Sunny" in out
        assert "Sunny..." not in out

    def test_name_is_escaped(self):
        out = popup_html(make_place(1, 10, 10, name="<b>Fort</b>"))
        assert "<b>Fort</b>" not in out
        assert "&lt;b&gt;Fort&lt;/b&gt;" in out

    def test_location_parts_joined(self):
        out = popup_html(make_place(1, 10, 10, location="Baga", district="North Goa", state="Goa"))
        assert "Baga, North Goa, Goa" in out


class TestHelpers:
    def test_same_id_compares_as_text(self):
        assert same_id(1, "1")
        assert not same_id(1, 2)
        assert not same_id(None, None)

    def test_cluster_size_thresholds(self):
        assert cluster_size(2) == "small"
        assert cluster_size(20) == "small"
        assert cluster_size(21) == "medium"
        assert cluster_size(50) == "medium"
        assert cluster_size(51) == "large"


class TestClusterMarkers:
    def setup_method(self):
        self.a = marker_for(make_place(1, 10.0, 10.0))
        self.b = marker_for(make_place(2, 10.0001, 10.0001))
        self.far = marker_for(make_place(3, 20.0, 20.0))

    def test_close_markers_cluster_at_low_zoom(self):
        clusters, singles = cluster_markers([self.a, self.b, self.far], 10)
        assert len(clusters) == 1
        assert clusters[0].count == 2
        assert clusters[0].size == "small"
        assert clusters[0].place_ids == [1, 2]
        assert [m.place_id for m in singles] == [3]

    def test_no_clustering_at_disable_zoom(self):
        clusters, singles = cluster_markers([self.a, self.b], 16)
        assert clusters == []
        assert len(singles) == 2

    def test_large_cluster(self):
        markers = [marker_for(make_place(i, 10.0, 10.0)) for i in range(60)]
        clusters, singles = cluster_markers(markers, 8)
        assert len(clusters) == 1
        assert clusters[0].count == 60
        assert clusters[0].size == "large"
        assert singles == []

    def test_medium_cluster(self):
        markers = [marker_for(make_place(i, 10.0, 10.0)) for i in range(25)]
        clusters, _ = cluster_markers(markers, 8)
        assert clusters[0].size == "medium"


class TestBuildMarkerLayers:
    def setup_method(self):
        self.places = [
            make_place(1, 10.0, 10.0),
            make_place(2, 10.0001, 10.0001),
            make_place(3, 10.0002, 10.0002),
            make_place(4),
        ]

    def test_selected_never_clustered(self):
        layers = build_marker_layers(self.places, self.places[0], cluster_mode=True, zoom=10)
        assert layers.selected is not None
        assert layers.selected.place_id == 1
        assert 1 not in [m.place_id for m in layers.markers]
        for c in layers.clusters:
            assert 1 not in c.place_ids
        assert layers.clusters[0].place_ids == [2, 3]

    def test_selection_matched_by_id_text(self):
        sel = make_place("2", 10.0001, 10.0001)
        layers = build_marker_layers(self.places, sel, cluster_mode=True, zoom=10)
        assert layers.selected.place_id == 2

    def test_flat_mode_has_no_clusters(self):
        layers = build_marker_layers(self.places, None, cluster_mode=False, zoom=10)
        assert layers.clusters == []
        assert layers.singles == []
        assert [m.place_id for m in layers.markers] == [1, 2, 3]

    def test_coordless_places_silently_omitted(self):
        layers = build_marker_layers(self.places, None, cluster_mode=False, zoom=10)
        assert 4 not in [m.place_id for m in layers.markers]
        assert layers.skipped == []

    def test_broken_place_is_skipped_others_render(self):
        broken = Place.model_construct(id=99, name="Broken", latitude="north", longitude=1.0)
        layers = build_marker_layers(
            [self.places[0], broken, self.places[1]], None, cluster_mode=False, zoom=10
        )
        assert layers.skipped == [99]
        assert [m.place_id for m in layers.markers] == [1, 2]
