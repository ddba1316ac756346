"""In-process map provider.

Keeps every visual object the coordinator creates in a scene graph and
renders the attached ones as plain JSON for a browser front-end to draw.
User clicks reported by the front-end are dispatched through ``click``.
"""

from __future__ import annotations

import itertools
from typing import Any

from parkmap.heatmap import HeatmapStyle
from parkmap.models import DirectionsResult, HeatPoint, LatLng
from parkmap.providers import ClickListener, LoadCallback, MapEvent, MapOptions, MarkerIcon, RouteStyle


class SceneListener:
    def __init__(self, source: "_ClickSource", listener: ClickListener):
        self._source = source
        self._listener = listener

    def remove(self) -> None:
        self._source._detach(self._listener)


class _ClickSource:
    def __init__(self) -> None:
        self._click_listeners: list[ClickListener] = []

    def on_click(self, listener: ClickListener) -> SceneListener:
        self._click_listeners.append(listener)
        return SceneListener(self, listener)

    def _detach(self, listener: ClickListener) -> None:
        if listener in self._click_listeners:
            self._click_listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._click_listeners)

    def click(self, event: MapEvent | None = None) -> None:
        event = event or MapEvent()
        for listener in list(self._click_listeners):
            listener(event)


class SceneMap(_ClickSource):
    def __init__(self, object_id: str, container: Any, options: MapOptions):
        super().__init__()
        self.id = object_id
        self.container = container
        self.options = options


class SceneMarker(_ClickSource):
    def __init__(
        self, object_id: str, map_handle: SceneMap, position: LatLng, icon: MarkerIcon, title: str | None
    ):
        super().__init__()
        self.id = object_id
        self.map: SceneMap | None = map_handle
        self.position = position
        self.icon = icon
        self.title = title

    def set_map(self, map_handle: SceneMap | None) -> None:
        self.map = map_handle

    def click(self, event: MapEvent | None = None) -> None:
        super().click(event or MapEvent(position=self.position))


class SceneOverlay:
    def __init__(self, object_id: str, content: str):
        self.id = object_id
        self.content = content
        self.map: SceneMap | None = None
        self.anchor: Any = None

    @property
    def is_open(self) -> bool:
        return self.map is not None

    def open(self, map_handle: SceneMap, anchor: Any = None) -> None:
        self.map = map_handle
        self.anchor = anchor

    def close(self) -> None:
        self.map = None
        self.anchor = None


class SceneLayer:
    def __init__(self, object_id: str, kind: str, points: list[HeatPoint] | None = None,
                 style: HeatmapStyle | None = None):
        self.id = object_id
        self.kind = kind
        self.points = list(points or [])
        self.style = style
        self.map: SceneMap | None = None

    def set_map(self, map_handle: SceneMap | None) -> None:
        self.map = map_handle


class SceneRouteRenderer(_ClickSource):
    def __init__(
        self, object_id: str, map_handle: SceneMap, result: DirectionsResult, route_index: int, style: RouteStyle
    ):
        super().__init__()
        self.id = object_id
        self.map: SceneMap | None = map_handle
        self.result = result
        self.route_index = route_index
        self.style = style

    def set_style(self, style: RouteStyle) -> None:
        self.style = style

    def set_map(self, map_handle: SceneMap | None) -> None:
        self.map = map_handle


class SceneMapProvider:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.maps: list[SceneMap] = []
        self.markers: list[SceneMarker] = []
        self.overlays: list[SceneOverlay] = []
        self.layers: list[SceneLayer] = []
        self.renderers: list[SceneRouteRenderer] = []

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def load(self, callback: LoadCallback) -> None:
        callback(None)

    def create_map(self, container: Any, options: MapOptions) -> SceneMap:
        m = SceneMap(self._next_id("map"), container, options)
        self.maps.append(m)
        return m

    def create_marker(
        self, map_handle: SceneMap, position: LatLng, icon: MarkerIcon, title: str | None = None
    ) -> SceneMarker:
        marker = SceneMarker(self._next_id("marker"), map_handle, position, icon, title)
        self.markers.append(marker)
        return marker

    def create_info_overlay(self, content: str) -> SceneOverlay:
        overlay = SceneOverlay(self._next_id("overlay"), content)
        self.overlays.append(overlay)
        return overlay

    def create_heatmap_layer(self, points: list[HeatPoint], style: HeatmapStyle) -> SceneLayer:
        layer = SceneLayer(self._next_id("heatmap"), "heatmap", points, style)
        self.layers.append(layer)
        return layer

    def create_traffic_layer(self) -> SceneLayer:
        layer = SceneLayer(self._next_id("traffic"), "traffic")
        self.layers.append(layer)
        return layer

    def create_route_renderer(
        self, map_handle: SceneMap, result: DirectionsResult, route_index: int, style: RouteStyle
    ) -> SceneRouteRenderer:
        renderer = SceneRouteRenderer(self._next_id("route"), map_handle, result, route_index, style)
        self.renderers.append(renderer)
        return renderer

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of everything currently attached to a map."""
        markers = [
            {
                "id": m.id,
                "title": m.title,
                "position": m.position.model_dump(),
                "icon": m.icon.model_dump(),
            }
            for m in self.markers
            if m.map is not None
        ]
        overlays = [
            {
                "id": o.id,
                "content": o.content,
                "anchor": getattr(o.anchor, "id", None),
            }
            for o in self.overlays
            if o.is_open
        ]
        heatmaps = [
            {
                "id": layer.id,
                "points": [p.model_dump() for p in layer.points],
                "style": layer.style.model_dump() if layer.style else None,
            }
            for layer in self.layers
            if layer.kind == "heatmap" and layer.map is not None
        ]
        routes = []
        for r in sorted((r for r in self.renderers if r.map is not None), key=lambda r: r.style.z_index):
            route = r.result.routes[r.route_index]
            routes.append(
                {
                    "id": r.id,
                    "route_index": r.route_index,
                    "summary": route.summary,
                    "style": r.style.model_dump(),
                }
            )
        return {
            "map": self.maps[-1].options.model_dump() if self.maps else None,
            "traffic": any(layer.kind == "traffic" and layer.map is not None for layer in self.layers),
            "markers": markers,
            "overlays": overlays,
            "heatmaps": heatmaps,
            "routes": routes,
        }

    def attached(self) -> list[Any]:
        objs: list[Any] = [o for o in self.markers + self.layers + self.renderers if o.map is not None]
        objs.extend(o for o in self.overlays if o.is_open)
        return objs
