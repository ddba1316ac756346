from unittest.mock import MagicMock

import pytest

from helpers import ORIGIN, VENUE, FakeDirections, make_spot
from parkmap.config import Settings
from parkmap.coordinator import MapCoordinator
from parkmap.errors import InvalidSelection, NoRoute, ProviderUnavailable
from parkmap.models import LatLng
from parkmap.routing import RouteOutcome, RouteState
from parkmap.scene import SceneMapProvider


class FailingScene(SceneMapProvider):
    def load(self, callback):
        callback(ProviderUnavailable("maps script failed to load"))


class DeferredScene(SceneMapProvider):
    """Holds the load callback until the test releases it."""

    def __init__(self):
        super().__init__()
        self.pending = None

    def load(self, callback):
        self.pending = callback


class TestInitialize:
    def test_creates_map_with_options(self, scene, directions):
        c = MapCoordinator(scene, directions, origin=ORIGIN, venue=VENUE)
        c.initialize("map", LatLng(lat=1.0, lng=2.0), 14)
        assert c.is_ready
        options = scene.maps[0].options
        assert options.zoom == 14
        assert options.hidden_feature_types == ["poi.business"]
        assert options.clickable_icons is False
        assert scene.snapshot()["traffic"] is True

    def test_second_initialize_is_noop(self, scene, directions):
        c = MapCoordinator(scene, directions, origin=ORIGIN, venue=VENUE)
        c.initialize("map")
        c.initialize("map")
        assert len(scene.maps) == 1

    def test_traffic_layer_optional(self, scene, directions):
        c = MapCoordinator(scene, directions, origin=ORIGIN, venue=VENUE, traffic_layer=False)
        c.initialize("map")
        assert scene.snapshot()["traffic"] is False

    def test_map_provider_failure(self, directions):
        errors = []
        c = MapCoordinator(FailingScene(), directions, origin=ORIGIN, venue=VENUE)
        c.on_error(errors.append)
        c.initialize("map")
        c.initialize("map")

        assert not c.is_ready
        assert isinstance(c.provider_error, ProviderUnavailable)
        assert len(errors) == 1

    def test_directions_provider_failure(self, scene):
        c = MapCoordinator(scene, FakeDirections(load_error=RuntimeError("no key")), origin=ORIGIN, venue=VENUE)
        c.initialize("map")
        assert not c.is_ready
        assert isinstance(c.provider_error, ProviderUnavailable)
        assert scene.maps == []

    def test_operations_before_ready_are_noops(self, directions, spots):
        scene = DeferredScene()
        c = MapCoordinator(scene, directions, origin=ORIGIN, venue=VENUE)
        c.initialize("map")
        c.initialize("map")

        assert c.load_spots(spots) is False
        assert c.navigate() is None
        assert scene.markers == []

        scene.pending(None)
        assert c.is_ready
        assert len(scene.maps) == 1
        assert c.load_spots(spots) is True

    def test_dispose_before_load_completes(self, directions):
        scene = DeferredScene()
        c = MapCoordinator(scene, directions, origin=ORIGIN, venue=VENUE)
        c.initialize("map")
        c.dispose()

        scene.pending(None)
        assert not c.is_ready
        assert scene.maps == []
        assert scene.attached() == []

    def test_reinitialize_ignores_earlier_load(self, directions):
        scene = DeferredScene()
        c = MapCoordinator(scene, directions, origin=ORIGIN, venue=VENUE)
        c.initialize("map")
        stale = scene.pending
        c.dispose()
        c.initialize("map")

        stale(None)
        assert scene.maps == []
        scene.pending(None)
        assert c.is_ready
        assert len(scene.maps) == 1

    def test_from_settings(self, scene, directions):
        cfg = Settings(origin_lat=1.5, origin_lng=2.5, heat_scale=3.0, traffic_layer=False)
        c = MapCoordinator.from_settings(scene, directions, cfg)
        assert c.origin == LatLng(lat=1.5, lng=2.5)
        assert c.heat_scale == 3.0


class TestLoadSpots:
    def test_heatmap_and_markers(self, coordinator, scene):
        snap = scene.snapshot()
        assert len(snap["heatmaps"]) == 1
        assert len(snap["heatmaps"][0]["points"]) == 2
        assert len(snap["markers"]) == 4
        assert snap["heatmaps"][0]["style"]["radius"] == 80

    def test_same_spots_do_not_duplicate(self, coordinator, scene, spots):
        coordinator.load_spots(list(spots))
        assert len(scene.markers) == 4
        assert len([layer for layer in scene.layers if layer.kind == "heatmap"]) == 1

    def test_new_spots_reset_registry(self, coordinator, scene):
        coordinator.select_spot(1)
        coordinator.load_spots([make_spot(3, total=200, available=150), make_spot(9, total=5, available=5)])

        snap = scene.snapshot()
        assert len(snap["markers"]) == 3
        assert len(snap["heatmaps"]) == 1
        assert coordinator.selection.current() is None
        assert set(coordinator.markers.handle.spot_markers) == {3, 9}

    def test_heat_scale_change_replaces_layer(self, coordinator, scene):
        coordinator.set_heat_scale(10)
        weights = sorted(p.weight for p in coordinator.heat_points)
        assert weights == pytest.approx([2.5, 8.0])
        assert len(scene.snapshot()["heatmaps"]) == 1

    @pytest.mark.parametrize("scale", [-1.0, float("nan"), float("inf")])
    def test_invalid_heat_scale_rejected(self, coordinator, scale):
        with pytest.raises(ValueError):
            coordinator.set_heat_scale(scale)
        assert coordinator.heat_scale == 5.0
        assert all(0.0 <= p.weight <= 5.0 for p in coordinator.heat_points)

    def test_lot_options(self, coordinator):
        assert coordinator.lot_options()[0].label == "Lot 1 (Available: 2)"


class TestSelection:
    def test_spot_detail_rows(self, coordinator):
        coordinator.markers.marker_for(1).click()
        detail = coordinator.spot_detail()
        assert detail.name == "Lot 1"
        assert [r.label for r in detail.rows] == [
            "Total Spaces",
            "Handicap Spaces",
            "Access",
            "Available Now",
            "Prediction in 1 Hour",
        ]

    def test_close_details(self, coordinator):
        coordinator.select_spot(1)
        coordinator.close_details()
        assert coordinator.spot_detail() is None

    def test_a_then_b_single_popover(self, coordinator, scene):
        coordinator.markers.venue_marker.click()
        coordinator.markers.marker_for(1).click()
        coordinator.markers.marker_for(3).click()
        assert coordinator.spot_detail().id == 3
        assert scene.snapshot()["overlays"] == []

    def test_select_lot_does_not_route(self, coordinator, directions):
        coordinator.select_lot(3)
        assert directions.requests == []
        assert coordinator.can_navigate

    def test_select_unknown_lot(self, coordinator):
        with pytest.raises(InvalidSelection):
            coordinator.select_lot(404)
        assert not coordinator.can_navigate


class TestNavigate:
    def test_without_target_is_noop(self, coordinator, directions):
        assert coordinator.navigate() is None
        assert directions.requests == []

    def test_routes_from_fixed_origin(self, coordinator, directions, spots):
        coordinator.select_lot(1)
        coordinator.navigate()
        request = directions.requests[0]
        assert request.origin == ORIGIN
        assert request.destination == spots[0].coordinates

    def test_ready_and_switch_active(self, coordinator, directions, scene, two_routes):
        coordinator.select_lot(1)
        on_complete = MagicMock()
        coordinator.navigate(on_complete)
        directions.complete(0, two_routes)

        on_complete.assert_called_once_with(RouteOutcome.READY, None)
        coordinator.set_active_route(1)
        rows = coordinator.route_rows()
        assert [r.active for r in rows] == [False, True]
        top = scene.snapshot()["routes"][-1]
        assert top["route_index"] == 1
        assert top["style"]["stroke_color"] == "#1959F9"

    def test_failure_reported_to_error_listeners(self, coordinator, directions, two_routes):
        errors = []
        coordinator.on_error(errors.append)
        coordinator.select_lot(1)
        coordinator.navigate()
        directions.complete(0, two_routes)
        coordinator.navigate()
        directions.complete(1, None, "OVER_QUERY_LIMIT")

        assert len(errors) == 1
        assert isinstance(errors[0], NoRoute)
        assert coordinator.routes.state is RouteState.FAILED
        assert len(coordinator.route_rows()) == 2

    def test_set_active_before_ready(self, directions):
        c = MapCoordinator(FailingScene(), directions, origin=ORIGIN, venue=VENUE)
        with pytest.raises(InvalidSelection):
            c.set_active_route(0)
        assert c.route_rows() == []


class TestDispose:
    def test_releases_every_resource(self, coordinator, directions, scene, two_routes):
        coordinator.select_lot(1)
        coordinator.navigate()
        directions.complete(0, two_routes)
        coordinator.markers.venue_marker.click()

        coordinator.dispose()

        assert scene.attached() == []
        assert scene.maps[0].listener_count == 0
        assert not coordinator.is_ready

    def test_reinitialize_after_dispose(self, coordinator, scene, spots):
        coordinator.dispose()
        coordinator.initialize("map")
        coordinator.load_spots(spots)
        assert coordinator.is_ready
        assert len(scene.snapshot()["markers"]) == 4
