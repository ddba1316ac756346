from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from parkmap.errors import InvalidSelection
from parkmap.models import ParkingSpot, Selection, Venue
from parkmap.providers import (
    ListenerHandle,
    MapEvent,
    MapHandle,
    MapProvider,
    MarkerHandle,
    MarkerIcon,
    OverlayHandle,
)
from parkmap.selection import SelectionState

logger = logging.getLogger(__name__)


def spot_icon(url: str) -> MarkerIcon:
    return MarkerIcon(url=url, width=24, height=24, anchor_x=12, anchor_y=24)


def venue_icon(url: str) -> MarkerIcon:
    return MarkerIcon(url=url, width=60, height=60, anchor_x=30, anchor_y=60)


@dataclass
class RegistryHandle:
    spot_markers: dict[int, MarkerHandle]
    venue_marker: MarkerHandle
    venue_window: OverlayHandle
    listeners: list[ListenerHandle] = field(default_factory=list)
    unsubscribe: Callable[[], None] | None = None
    venue_window_open: bool = False


class MarkerRegistry:
    """One marker per spot plus the venue marker, with their click wiring.

    Markers are only ever created and destroyed as a whole set.
    """

    def __init__(
        self,
        provider: MapProvider,
        map_handle: MapHandle,
        selection: SelectionState,
        spot_marker_icon: MarkerIcon,
        venue_marker_icon: MarkerIcon,
    ):
        self._provider = provider
        self._map = map_handle
        self._selection = selection
        self._spot_icon = spot_marker_icon
        self._venue_icon = venue_marker_icon
        self._handle: RegistryHandle | None = None

    @property
    def handle(self) -> RegistryHandle | None:
        return self._handle

    def build(self, spots: Iterable[ParkingSpot], venue: Venue) -> RegistryHandle:
        if self._handle is not None:
            return self._handle

        spot_markers: dict[int, MarkerHandle] = {}
        listeners: list[ListenerHandle] = []
        for s in spots:
            marker = self._provider.create_marker(self._map, s.coordinates, self._spot_icon, title=s.name)
            listeners.append(marker.on_click(self._spot_click_handler(s.id, marker)))
            spot_markers[s.id] = marker

        venue_marker = self._provider.create_marker(
            self._map, venue.position, self._venue_icon, title=venue.name
        )
        venue_window = self._provider.create_info_overlay(venue.info_content())
        listeners.append(venue_marker.on_click(self._on_venue_click))
        listeners.append(self._map.on_click(self._on_map_click))

        handle = RegistryHandle(
            spot_markers=spot_markers,
            venue_marker=venue_marker,
            venue_window=venue_window,
            listeners=listeners,
        )
        self._handle = handle
        handle.unsubscribe = self._selection.subscribe(self._sync_venue_window)
        self._sync_venue_window(self._selection.snapshot())
        logger.info("Built %d spot markers and venue marker for %s", len(spot_markers), venue.name)
        return handle

    def teardown(self, handle: RegistryHandle | None = None) -> None:
        handle = handle or self._handle
        if handle is None:
            return
        if handle.unsubscribe is not None:
            handle.unsubscribe()
            handle.unsubscribe = None
        for listener in handle.listeners:
            listener.remove()
        handle.listeners.clear()
        handle.venue_window.close()
        handle.venue_window_open = False
        for marker in handle.spot_markers.values():
            marker.set_map(None)
        handle.venue_marker.set_map(None)
        if handle is self._handle:
            self._handle = None
        logger.info("Released %d spot markers", len(handle.spot_markers))

    def marker_for(self, spot_id: int) -> MarkerHandle | None:
        if self._handle is None:
            return None
        return self._handle.spot_markers.get(spot_id)

    @property
    def venue_marker(self) -> MarkerHandle | None:
        return self._handle.venue_marker if self._handle else None

    def _spot_click_handler(self, spot_id: int, marker: MarkerHandle) -> Callable[[MapEvent], None]:
        def on_click(event: MapEvent) -> None:
            try:
                self._selection.select(spot_id, anchor=event.position or marker.position)
            except InvalidSelection:
                logger.warning("Marker click for spot %s not in the current spot list", spot_id)

        return on_click

    def _on_venue_click(self, event: MapEvent) -> None:
        self._selection.open_venue()

    def _on_map_click(self, event: MapEvent) -> None:
        self._selection.close_venue()

    def _sync_venue_window(self, state: Selection) -> None:
        handle = self._handle
        if handle is None or state.venue_open == handle.venue_window_open:
            return
        if state.venue_open:
            handle.venue_window.open(self._map, handle.venue_marker)
        else:
            handle.venue_window.close()
        handle.venue_window_open = state.venue_open
