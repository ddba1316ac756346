"""Shared fixtures: a scene-backed coordinator with a hand-driven directions provider."""

import pytest

from helpers import ORIGIN, VENUE, FakeDirections, make_result, make_spot
from parkmap.coordinator import MapCoordinator
from parkmap.scene import SceneMapProvider


@pytest.fixture
def spots():
    return [
        make_spot(1, total=10, available=2, lat=43.643, lng=-79.386),
        make_spot(2, total=0, available=0, lat=43.645, lng=-79.380),
        make_spot(3, total=200, available=150, lat=43.640, lng=-79.392),
    ]


@pytest.fixture
def scene():
    return SceneMapProvider()


@pytest.fixture
def directions():
    return FakeDirections()


@pytest.fixture
def coordinator(scene, directions, spots):
    c = MapCoordinator(scene, directions, origin=ORIGIN, venue=VENUE)
    c.initialize("map")
    c.load_spots(spots)
    return c


@pytest.fixture
def two_routes():
    return make_result(("Gardiner Expy", "25 mins", "24.1 km"), ("Hwy 400 S", "31 mins", "27.9 km"))
