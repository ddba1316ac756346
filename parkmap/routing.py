from __future__ import annotations

import enum
import logging
from typing import Callable, Optional

from parkmap.errors import InvalidSelection, NoRoute, ParkmapError
from parkmap.models import (
    DIRECTIONS_OK,
    DIRECTIONS_REQUEST_FAILED,
    DirectionsRequest,
    DirectionsResult,
    LatLng,
    RouteCandidate,
    RouteLeg,
    RouteRow,
)
from parkmap.providers import (
    DirectionsProvider,
    ListenerHandle,
    MapEvent,
    MapHandle,
    MapProvider,
    RouteStyle,
)

logger = logging.getLogger(__name__)

ACTIVE_ROUTE_STYLE = RouteStyle(stroke_color="#1959F9", stroke_weight=8, z_index=1)
INACTIVE_ROUTE_STYLE = RouteStyle(stroke_color="#BDCFF9", stroke_weight=8, z_index=0)


class RouteState(str, enum.Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    READY = "ready"
    FAILED = "failed"


class RouteOutcome(str, enum.Enum):
    READY = "ready"
    FAILED = "failed"
    # A newer request was issued before this one completed; its result was dropped.
    STALE = "stale"


RouteCallback = Callable[[RouteOutcome, Optional[ParkmapError]], None]
RouteListener = Callable[["RouteCoordinator"], None]


class RouteCoordinator:
    """Directions requests, the resulting route candidates and the active route.

    Every request bumps a generation counter and only the completion of the
    latest generation is installed. A failed request leaves the currently
    displayed candidates in place.
    """

    def __init__(
        self,
        directions: DirectionsProvider,
        provider: MapProvider,
        map_handle: MapHandle,
        active_style: RouteStyle = ACTIVE_ROUTE_STYLE,
        inactive_style: RouteStyle = INACTIVE_ROUTE_STYLE,
    ):
        self._directions = directions
        self._provider = provider
        self._map = map_handle
        self._active_style = active_style
        self._inactive_style = inactive_style

        self._state = RouteState.IDLE
        self._generation = 0
        self._candidates: tuple[RouteCandidate, ...] = ()
        self._renderer_listeners: list[ListenerHandle] = []
        self._active_index: int | None = None
        self._last_error: ParkmapError | None = None
        self._listeners: list[RouteListener] = []

    @property
    def state(self) -> RouteState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def candidates(self) -> tuple[RouteCandidate, ...]:
        return self._candidates

    @property
    def active_route_index(self) -> int | None:
        return self._active_index

    @property
    def active_candidate(self) -> RouteCandidate | None:
        if self._active_index is None:
            return None
        return self._candidates[self._active_index]

    @property
    def last_error(self) -> ParkmapError | None:
        return self._last_error

    def subscribe(self, listener: RouteListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def request_route(
        self,
        origin: LatLng | None,
        destination: LatLng | None,
        on_complete: RouteCallback | None = None,
    ) -> int | None:
        """Start a directions request; returns its generation, or None if skipped."""
        if origin is None or destination is None:
            logger.debug("Route request skipped: origin=%s destination=%s", origin, destination)
            return None

        self._generation += 1
        generation = self._generation
        self._state = RouteState.COMPUTING
        self._notify()

        request = DirectionsRequest(origin=origin, destination=destination, alternatives=True)
        fired = False

        def callback(result: DirectionsResult | None, status: str) -> None:
            nonlocal fired
            if fired:
                logger.warning("Ignoring repeated directions callback for request %d", generation)
                return
            fired = True
            self._complete(generation, result, status, on_complete)

        try:
            self._directions.route(request, callback)
        except Exception:
            logger.warning("Directions provider raised for request %d", generation, exc_info=True)
            callback(None, DIRECTIONS_REQUEST_FAILED)
        return generation

    def set_active(self, index: int) -> None:
        if not 0 <= index < len(self._candidates):
            logger.warning(
                "Ignoring active route %s; %d candidates available", index, len(self._candidates)
            )
            raise InvalidSelection(f"Route index {index} out of range")
        previous = self._active_index
        if previous == index:
            return
        if previous is not None:
            self._candidates[previous].renderer.set_style(self._inactive_style)
        self._candidates[index].renderer.set_style(self._active_style)
        self._active_index = index
        self._notify()

    def route_rows(self) -> list[RouteRow]:
        rows: list[RouteRow] = []
        for c in self._candidates:
            rows.append(
                RouteRow(
                    index=c.index,
                    summary=c.summary,
                    duration=c.duration_text,
                    distance=c.distance_text,
                    label=f"Route {c.index + 1}: {c.summary} - {c.duration_text} ({c.distance_text})",
                    active=c.index == self._active_index,
                )
            )
        return rows

    def clear(self) -> None:
        """Release every route overlay and drop any pending request."""
        self._generation += 1
        self._dispose(self._candidates, self._renderer_listeners)
        self._candidates = ()
        self._renderer_listeners = []
        self._active_index = None
        self._last_error = None
        self._state = RouteState.IDLE
        self._notify()

    def _complete(
        self,
        generation: int,
        result: DirectionsResult | None,
        status: str,
        on_complete: RouteCallback | None,
    ) -> None:
        if generation != self._generation:
            logger.info(
                "Discarding directions result %d (%s); request %d is newer",
                generation,
                status,
                self._generation,
            )
            self._report(on_complete, RouteOutcome.STALE, None)
            return

        error: ParkmapError | None = None
        if status != DIRECTIONS_OK:
            error = NoRoute(status)
        elif result is None or not result.routes:
            error = NoRoute(status, "Directions request returned no routes")
        else:
            try:
                self._install(result)
            except Exception:
                logger.warning("Could not render directions result %d", generation, exc_info=True)
                error = NoRoute(status, "Directions result could not be rendered")

        if error is not None:
            logger.warning("Route request %d failed: %s", generation, error)
            self._last_error = error
            self._state = RouteState.FAILED
            self._notify()
            self._report(on_complete, RouteOutcome.FAILED, error)
            return

        self._last_error = None
        self._state = RouteState.READY
        self._notify()
        self._report(on_complete, RouteOutcome.READY, None)

    def _install(self, result: DirectionsResult) -> None:
        candidates: list[RouteCandidate] = []
        listeners: list[ListenerHandle] = []
        try:
            for i, route in enumerate(result.routes):
                leg = route.legs[0] if route.legs else RouteLeg()
                style = self._active_style if i == 0 else self._inactive_style
                renderer = self._provider.create_route_renderer(self._map, result, i, style)
                candidates.append(
                    RouteCandidate(
                        index=i,
                        summary=route.summary,
                        duration_text=leg.duration.text,
                        distance_text=leg.distance.text,
                        renderer=renderer,
                    )
                )
                listeners.append(renderer.on_click(self._route_click_handler(i)))
            self._dispose(self._candidates, self._renderer_listeners)
        except Exception:
            self._dispose(candidates, listeners)
            raise

        self._candidates = tuple(candidates)
        self._renderer_listeners = listeners
        self._active_index = 0
        logger.info("Installed %d route candidates", len(candidates))

    def _route_click_handler(self, index: int) -> Callable[[MapEvent], None]:
        def on_click(event: MapEvent) -> None:
            try:
                self.set_active(index)
            except InvalidSelection:
                # set_active has already logged the rejected index
                pass

        return on_click

    @staticmethod
    def _dispose(candidates, listeners) -> None:
        for listener in listeners:
            listener.remove()
        for c in candidates:
            c.renderer.set_map(None)

    def _report(
        self, on_complete: RouteCallback | None, outcome: RouteOutcome, error: ParkmapError | None
    ) -> None:
        if on_complete is None:
            return
        try:
            on_complete(outcome, error)
        except Exception:
            logger.exception("Route completion callback failed")

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Route listener failed")
