from __future__ import annotations

import logging
import math
from typing import Any, Callable, Iterable

from parkmap.config import Settings
from parkmap.errors import InvalidSelection, ParkmapError, ProviderUnavailable
from parkmap.heatmap import HeatmapStyle, project
from parkmap.markers import MarkerRegistry, spot_icon, venue_icon
from parkmap.models import (
    HEAT_SCALE,
    HeatPoint,
    LatLng,
    LotOption,
    ParkingSpot,
    RouteRow,
    SpotDetail,
    Venue,
)
from parkmap.providers import (
    DirectionsProvider,
    LayerHandle,
    MapHandle,
    MapOptions,
    MapProvider,
    MarkerIcon,
)
from parkmap.repository import SpotRepository
from parkmap.routing import RouteCallback, RouteCoordinator, RouteOutcome
from parkmap.selection import SelectionState

logger = logging.getLogger(__name__)

ErrorListener = Callable[[ParkmapError], None]

DEFAULT_CENTER = LatLng(lat=43.7, lng=-79.4)
DEFAULT_ZOOM = 12


class MapCoordinator:
    """Owns the map instance and keeps heatmap, markers, selection and routes in sync.

    Map-dependent operations are no-ops until both providers have loaded.
    """

    def __init__(
        self,
        map_provider: MapProvider,
        directions: DirectionsProvider,
        origin: LatLng,
        venue: Venue,
        heat_scale: float = HEAT_SCALE,
        heatmap_style: HeatmapStyle | None = None,
        spot_marker_icon: MarkerIcon | None = None,
        venue_marker_icon: MarkerIcon | None = None,
        traffic_layer: bool = True,
    ):
        self._map_provider = map_provider
        self._directions = directions
        self._origin = origin
        self._venue = venue
        self._heat_scale = heat_scale
        self._heatmap_style = heatmap_style or HeatmapStyle()
        self._spot_icon = spot_marker_icon or spot_icon("/parking.png")
        self._venue_icon = venue_marker_icon or venue_icon("/stadium.png")
        self._use_traffic_layer = traffic_layer

        self._initializing = False
        self._init_generation = 0
        self._ready = False
        self._provider_error: ProviderUnavailable | None = None
        self._map: MapHandle | None = None
        self._traffic_layer: LayerHandle | None = None
        self._heat_layer: LayerHandle | None = None
        self._heat_points: list[HeatPoint] = []
        self._repository = SpotRepository()
        self._selection = SelectionState(self._repository)
        self._markers: MarkerRegistry | None = None
        self._routes: RouteCoordinator | None = None
        self._error_listeners: list[ErrorListener] = []

    @classmethod
    def from_settings(
        cls, map_provider: MapProvider, directions: DirectionsProvider, cfg: Settings
    ) -> "MapCoordinator":
        return cls(
            map_provider,
            directions,
            origin=LatLng(lat=cfg.origin_lat, lng=cfg.origin_lng),
            venue=Venue(name=cfg.venue_name, position=LatLng(lat=cfg.venue_lat, lng=cfg.venue_lng)),
            heat_scale=cfg.heat_scale,
            spot_marker_icon=spot_icon(cfg.spot_icon_url),
            venue_marker_icon=venue_icon(cfg.venue_icon_url),
            traffic_layer=cfg.traffic_layer,
        )

    # -- lifecycle ---------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def provider_error(self) -> ProviderUnavailable | None:
        return self._provider_error

    def initialize(
        self,
        container: Any,
        initial_center: LatLng | None = None,
        initial_zoom: int | None = None,
    ) -> None:
        if self._ready or self._initializing:
            logger.debug("Map already initialized")
            return
        if self._provider_error is not None:
            logger.debug("Map providers failed to load earlier; not retrying")
            return

        self._initializing = True
        self._init_generation += 1
        generation = self._init_generation
        center = initial_center or DEFAULT_CENTER
        zoom = DEFAULT_ZOOM if initial_zoom is None else initial_zoom

        def on_directions_loaded(error: Exception | None) -> None:
            if generation != self._init_generation:
                logger.debug("Ignoring directions load for disposed init %d", generation)
                return
            if error is not None:
                self._fail(error)
                return
            self._create_map(generation, container, center, zoom)

        def on_map_loaded(error: Exception | None) -> None:
            if generation != self._init_generation:
                logger.debug("Ignoring map load for disposed init %d", generation)
                return
            if error is not None:
                self._fail(error)
                return
            try:
                self._directions.load(on_directions_loaded)
            except Exception as exc:
                self._fail(exc)

        try:
            self._map_provider.load(on_map_loaded)
        except Exception as exc:
            self._fail(exc)

    def dispose(self) -> None:
        """Release every map resource; initialize may be called again afterwards."""
        if self._markers is not None:
            self._markers.teardown()
        if self._routes is not None:
            self._routes.clear()
        for layer in (self._heat_layer, self._traffic_layer):
            if layer is not None:
                layer.set_map(None)
        self._heat_layer = None
        self._traffic_layer = None
        self._heat_points = []
        self._selection.clear()
        self._selection.close_venue()
        self._selection.clear_target()
        self._markers = None
        self._routes = None
        self._map = None
        self._ready = False
        self._initializing = False
        # Load callbacks still in flight belong to the disposed scope.
        self._init_generation += 1
        logger.info("Map coordinator disposed")

    def _create_map(self, generation: int, container: Any, center: LatLng, zoom: int) -> None:
        if generation != self._init_generation:
            return
        try:
            map_handle = self._map_provider.create_map(container, MapOptions(center=center, zoom=zoom))
            if self._use_traffic_layer:
                self._traffic_layer = self._map_provider.create_traffic_layer()
                self._traffic_layer.set_map(map_handle)
        except Exception as exc:
            self._fail(exc)
            return

        self._map = map_handle
        self._markers = MarkerRegistry(
            self._map_provider, map_handle, self._selection, self._spot_icon, self._venue_icon
        )
        self._routes = RouteCoordinator(self._directions, self._map_provider, map_handle)
        self._initializing = False
        self._ready = True
        logger.info("Map ready at %s zoom %d", center, zoom)

    def _fail(self, exc: Exception) -> None:
        if self._provider_error is not None:
            return
        error = exc if isinstance(exc, ProviderUnavailable) else ProviderUnavailable(str(exc))
        self._provider_error = error
        self._initializing = False
        logger.error("Map provider unavailable: %s", error)
        self._emit_error(error)

    # -- errors ------------------------------------------------------------

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return unsubscribe

    def _emit_error(self, error: ParkmapError) -> None:
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener failed")

    # -- spots and heatmap ---------------------------------------------------

    @property
    def repository(self) -> SpotRepository:
        return self._repository

    @property
    def heat_points(self) -> list[HeatPoint]:
        return list(self._heat_points)

    @property
    def heat_scale(self) -> float:
        return self._heat_scale

    def load_spots(self, spots: Iterable[ParkingSpot]) -> bool:
        if not self._ready or self._markers is None:
            logger.debug("load_spots ignored: map not ready")
            return False

        repository = spots if isinstance(spots, SpotRepository) else SpotRepository(spots)
        if repository == self._repository and self._markers.handle is not None:
            return True

        if self._markers.handle is not None:
            self._markers.teardown()
        self._repository = repository
        self._selection.rebind(repository)
        self._refresh_heatmap()
        self._markers.build(repository, self._venue)
        logger.info("Loaded %d spots", len(repository))
        return True

    def set_heat_scale(self, scale: float) -> None:
        if not math.isfinite(scale) or scale < 0:
            raise ValueError(f"Heat scale must be a non-negative finite number, got {scale}")
        self._heat_scale = scale
        if self._ready and len(self._repository):
            self._refresh_heatmap()

    def _refresh_heatmap(self) -> None:
        # The overlay only accepts full replacement.
        points = project(self._repository, self._heat_scale)
        layer = self._map_provider.create_heatmap_layer(points, self._heatmap_style)
        if self._heat_layer is not None:
            self._heat_layer.set_map(None)
        layer.set_map(self._map)
        self._heat_layer = layer
        self._heat_points = points

    # -- selection -----------------------------------------------------------

    @property
    def selection(self) -> SelectionState:
        return self._selection

    @property
    def markers(self) -> MarkerRegistry | None:
        return self._markers

    @property
    def map_handle(self) -> MapHandle | None:
        return self._map

    @property
    def map_provider(self) -> MapProvider:
        return self._map_provider

    def select_spot(self, spot_id: int, anchor: LatLng | None = None) -> ParkingSpot:
        return self._selection.select(spot_id, anchor)

    def close_details(self) -> None:
        self._selection.clear()

    def spot_detail(self) -> SpotDetail | None:
        spot = self._selection.current()
        return SpotDetail.from_spot(spot) if spot is not None else None

    def lot_options(self) -> list[LotOption]:
        return [
            LotOption(id=s.id, label=f"{s.name} (Available: {s.current_availability})")
            for s in self._repository
        ]

    def select_lot(self, lot_id: int | None) -> ParkingSpot | None:
        """Set the routing target; does not start a route computation."""
        if lot_id is None:
            self._selection.clear_target()
            return None
        return self._selection.target(lot_id)

    # -- routing -------------------------------------------------------------

    @property
    def routes(self) -> RouteCoordinator | None:
        return self._routes

    @property
    def origin(self) -> LatLng:
        return self._origin

    @property
    def can_navigate(self) -> bool:
        return self._ready and self._selection.targeted() is not None

    def navigate(self, on_complete: RouteCallback | None = None) -> int | None:
        if not self._ready or self._routes is None:
            logger.debug("navigate ignored: map not ready")
            return None

        lot = self._selection.targeted()
        destination = lot.coordinates if lot is not None else None

        def completed(outcome: RouteOutcome, error: ParkmapError | None) -> None:
            if error is not None:
                self._emit_error(error)
            if on_complete is not None:
                on_complete(outcome, error)

        return self._routes.request_route(self._origin, destination, completed)

    def set_active_route(self, index: int) -> None:
        if self._routes is None:
            raise InvalidSelection("No routes available")
        self._routes.set_active(index)

    def route_rows(self) -> list[RouteRow]:
        return self._routes.route_rows() if self._routes is not None else []
