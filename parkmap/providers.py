"""Interfaces of the external map and directions SDKs consumed by the coordinator."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from pydantic import BaseModel, Field

from parkmap.heatmap import HeatmapStyle
from parkmap.models import DirectionsRequest, DirectionsResult, HeatPoint, LatLng


class MapEvent(BaseModel):
    position: LatLng | None = None


ClickListener = Callable[[MapEvent], None]
LoadCallback = Callable[[Optional[Exception]], None]
DirectionsCallback = Callable[[Optional[DirectionsResult], str], None]


class MarkerIcon(BaseModel):
    url: str
    width: int
    height: int
    anchor_x: int
    anchor_y: int


class MapOptions(BaseModel):
    center: LatLng
    zoom: int
    hidden_feature_types: list[str] = Field(default_factory=lambda: ["poi.business"])
    clickable_icons: bool = False


class RouteStyle(BaseModel):
    stroke_color: str
    stroke_weight: int = 8
    z_index: int = 0
    suppress_markers: bool = False
    preserve_viewport: bool = True


class ListenerHandle(Protocol):
    def remove(self) -> None: ...


class MapHandle(Protocol):
    def on_click(self, listener: ClickListener) -> ListenerHandle: ...


class MarkerHandle(Protocol):
    position: LatLng

    def on_click(self, listener: ClickListener) -> ListenerHandle: ...

    def set_map(self, map_handle: MapHandle | None) -> None: ...


class OverlayHandle(Protocol):
    def open(self, map_handle: MapHandle, anchor: Any = None) -> None: ...

    def close(self) -> None: ...


class LayerHandle(Protocol):
    def set_map(self, map_handle: MapHandle | None) -> None: ...


class RouteRendererHandle(Protocol):
    def set_style(self, style: RouteStyle) -> None: ...

    def set_map(self, map_handle: MapHandle | None) -> None: ...

    def on_click(self, listener: ClickListener) -> ListenerHandle: ...


class MapProvider(Protocol):
    def load(self, callback: LoadCallback) -> None: ...

    def create_map(self, container: Any, options: MapOptions) -> MapHandle: ...

    def create_marker(
        self, map_handle: MapHandle, position: LatLng, icon: MarkerIcon, title: str | None = None
    ) -> MarkerHandle: ...

    def create_info_overlay(self, content: str) -> OverlayHandle: ...

    def create_heatmap_layer(self, points: list[HeatPoint], style: HeatmapStyle) -> LayerHandle: ...

    def create_traffic_layer(self) -> LayerHandle: ...

    def create_route_renderer(
        self,
        map_handle: MapHandle,
        result: DirectionsResult,
        route_index: int,
        style: RouteStyle,
    ) -> RouteRendererHandle: ...


class DirectionsProvider(Protocol):
    def load(self, callback: LoadCallback) -> None: ...

    def route(self, request: DirectionsRequest, callback: DirectionsCallback) -> None: ...
