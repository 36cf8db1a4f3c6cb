"""Tests for the proximity filter."""
import random

import pytest

from app.core.contracts import LatLng, Place
from app.core.geo import haversine_km
from app.services.proximity import filter_by_proximity

from tests.factories import make_place


class TestPlaceCoordinates:
    def test_numeric_strings_are_coordinates(self):
        p = Place.model_validate({"id": 1, "latitude": "12.5", "longitude": " 77.25 "})
        assert p.latitude == 12.5
        assert p.longitude == 77.25
        assert p.has_coords

    def test_unusable_values_become_missing(self):
        p = Place.model_validate({"id": 1, "latitude": "north", "longitude": True})
        assert p.latitude is None
        assert p.longitude is None
        assert not p.has_coords

    def test_non_finite_is_missing(self):
        p = Place.model_validate({"id": 1, "latitude": float("nan"), "longitude": 1.0})
        assert not p.has_coords

    def test_average_rating(self):
        assert make_place(1, rating_sum=9, rating_count=2).average_rating == 4.5
        assert make_place(2, rating_sum=0, rating_count=0).average_rating is None
        assert make_place(3, rating_sum=None, rating_count=None).average_rating is None


class TestFilterByProximity:
    def setup_method(self):
        self.near = make_place("P1", 10, 10)
        self.far = make_place("P2", 80, 80)
        self.user = LatLng(lat=10.001, lng=10.001)

    def test_only_nearby_places_kept(self):
        res = filter_by_proximity([self.near, self.far], self.user)
        assert [p.id for p in res.places] == ["P1"]
        assert res.radius_mode is True
        assert res.within_radius == 1
        assert res.places[0].distance == pytest.approx(
            haversine_km(10.001, 10.001, 10, 10), abs=1e-6
        )
        assert res.places[0].distance == pytest.approx(0.156, abs=0.001)

    def test_no_user_keeps_input_order_without_distance(self):
        a = make_place(1, 50, 50)
        b = make_place(2, 10, 10)
        c = make_place(3)
        res = filter_by_proximity([a, b, c], None)
        assert [p.id for p in res.places] == [1, 2]
        assert all(p.distance is None for p in res.places)
        assert res.radius_mode is False

    def test_best_effort_falls_back_to_all_sorted(self):
        a = make_place(1, 50, 50)
        b = make_place(2, 40, 40)
        res = filter_by_proximity([a, b], LatLng(lat=0, lng=0))
        assert [p.id for p in res.places] == [2, 1]
        assert res.radius_mode is True
        assert res.within_radius == 0
        assert res.places[0].distance < res.places[1].distance

    def test_strict_returns_nothing_when_none_within(self):
        a = make_place(1, 50, 50)
        res = filter_by_proximity([a], LatLng(lat=0, lng=0), policy="strict")
        assert res.places == []
        assert res.radius_mode is True

    def test_strict_still_returns_places_within(self):
        res = filter_by_proximity([self.near, self.far], self.user, policy="strict")
        assert [p.id for p in res.places] == ["P1"]

    def test_places_without_coords_never_included(self):
        res = filter_by_proximity([make_place(9), self.near], self.user)
        assert [p.id for p in res.places] == ["P1"]

    def test_custom_radius(self):
        res = filter_by_proximity([self.near, self.far], self.user, radius_km=0.1)
        # nothing within 100 m, so best effort returns everything nearest first
        assert [p.id for p in res.places] == ["P1", "P2"]
        assert res.within_radius == 0

    def test_random_places_respect_radius_and_order(self):
        rng = random.Random(7)
        user = LatLng(lat=20.0, lng=78.0)
        places = [
            make_place(i, rng.uniform(15.0, 25.0), rng.uniform(73.0, 83.0))
            for i in range(200)
        ]
        res = filter_by_proximity(places, user, radius_km=300)

        expected = {
            p.id for p in places
            if haversine_km(user.lat, user.lng, p.latitude, p.longitude) <= 300
        }
        assert expected
        assert {p.id for p in res.places} == expected
        distances = [p.distance for p in res.places]
        assert distances == sorted(distances)
        assert all(d <= 300 for d in distances)
