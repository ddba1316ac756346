import asyncio
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from parkmap.config import settings
from parkmap.coordinator import MapCoordinator
from parkmap.data_loader import load_spots_from_file
from parkmap.directions import GoogleDirectionsProvider
from parkmap.errors import InvalidSelection
from parkmap.models import HeatPoint, LatLng, LotOption, RouteRow, Selection, SpotDetail
from parkmap.routing import RouteOutcome
from parkmap.scene import SceneMapProvider

logger = logging.getLogger(__name__)

app = FastAPI(title="Venue Parking Map API", version="0.1.0")

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def build_coordinator() -> MapCoordinator:
    directions = GoogleDirectionsProvider(
        settings.google_maps_api_key,
        base_url=settings.directions_base_url,
        timeout=settings.directions_timeout_s,
        language=settings.language,
    )
    coordinator = MapCoordinator.from_settings(SceneMapProvider(), directions, settings)
    coordinator.initialize(
        "map",
        LatLng(lat=settings.initial_center_lat, lng=settings.initial_center_lng),
        settings.initial_zoom,
    )
    return coordinator


@app.on_event("startup")
def startup():
    logging.basicConfig(level=settings.log_level)
    coordinator = build_coordinator()
    app.state.coordinator = coordinator
    try:
        result = load_spots_from_file(settings.spots_path)
        coordinator.load_spots(result.spots)
        logger.info("Loaded %d parking spots from %s (%d skipped)", len(result.spots), result.source, result.skipped)
    except (OSError, ValueError) as e:
        logger.error("Error loading parking data: %s", e)


def get_coordinator(request: Request) -> MapCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Map not initialized")
    return coordinator


def _require_ready(coordinator: MapCoordinator) -> None:
    if not coordinator.is_ready:
        detail = str(coordinator.provider_error) if coordinator.provider_error else "Map is still loading"
        raise HTTPException(status_code=503, detail=detail)


def _selection_payload(coordinator: MapCoordinator) -> dict:
    detail = coordinator.spot_detail()
    return {
        "selection": coordinator.selection.snapshot().model_dump(),
        "detail": detail.model_dump() if detail else None,
    }


def _routes_payload(coordinator: MapCoordinator) -> dict:
    routes = coordinator.routes
    error = routes.last_error if routes else None
    return {
        "state": routes.state.value if routes else "idle",
        "active_route_index": routes.active_route_index if routes else None,
        "routes": [r.model_dump() for r in coordinator.route_rows()],
        "error": str(error) if error else None,
    }


@app.get("/health")
async def health(coordinator: MapCoordinator = Depends(get_coordinator)):
    return {
        "status": "ok",
        "map_ready": coordinator.is_ready,
        "spots_loaded": len(coordinator.repository),
        "provider_error": str(coordinator.provider_error) if coordinator.provider_error else None,
    }


@app.get("/scene")
async def scene(coordinator: MapCoordinator = Depends(get_coordinator)):
    """Everything currently drawn on the map, for the front-end to render."""
    _require_ready(coordinator)
    return coordinator.map_provider.snapshot()


@app.get("/heatmap", response_model=list[HeatPoint])
async def heatmap(coordinator: MapCoordinator = Depends(get_coordinator)) -> list[HeatPoint]:
    return coordinator.heat_points


@app.get("/lots", response_model=list[LotOption])
async def lots(coordinator: MapCoordinator = Depends(get_coordinator)) -> list[LotOption]:
    return coordinator.lot_options()


@app.post("/markers/{spot_id}/click")
async def click_marker(spot_id: int, coordinator: MapCoordinator = Depends(get_coordinator)):
    _require_ready(coordinator)
    marker = coordinator.markers.marker_for(spot_id) if coordinator.markers else None
    if marker is None:
        raise HTTPException(status_code=404, detail=f"No marker for spot {spot_id}")
    marker.click()
    return _selection_payload(coordinator)


@app.post("/venue/click")
async def click_venue(coordinator: MapCoordinator = Depends(get_coordinator)):
    _require_ready(coordinator)
    marker = coordinator.markers.venue_marker if coordinator.markers else None
    if marker is None:
        raise HTTPException(status_code=409, detail="Markers not built")
    marker.click()
    return _selection_payload(coordinator)


@app.post("/map/click")
async def click_map(coordinator: MapCoordinator = Depends(get_coordinator)):
    _require_ready(coordinator)
    coordinator.map_handle.click()
    return _selection_payload(coordinator)


@app.get("/selection")
async def get_selection(coordinator: MapCoordinator = Depends(get_coordinator)):
    return _selection_payload(coordinator)


@app.delete("/selection")
async def close_selection(coordinator: MapCoordinator = Depends(get_coordinator)):
    """Popover dismissed."""
    coordinator.close_details()
    return _selection_payload(coordinator)


@app.put("/target/{lot_id}", response_model=Selection)
async def target_lot(lot_id: int, coordinator: MapCoordinator = Depends(get_coordinator)) -> Selection:
    try:
        coordinator.select_lot(lot_id)
    except InvalidSelection as e:
        raise HTTPException(status_code=404, detail=str(e))
    return coordinator.selection.snapshot()


@app.delete("/target", response_model=Selection)
async def clear_target(coordinator: MapCoordinator = Depends(get_coordinator)) -> Selection:
    coordinator.select_lot(None)
    return coordinator.selection.snapshot()


@app.post("/navigate")
async def navigate(coordinator: MapCoordinator = Depends(get_coordinator)):
    """
    Request driving routes from the fixed origin to the targeted lot.

    Answers 202 if the directions provider has not replied within
    ``navigate_wait_s``; poll ``GET /routes`` afterwards.
    """
    _require_ready(coordinator)
    if not coordinator.can_navigate:
        raise HTTPException(status_code=400, detail="Choose a parking lot first")

    done: asyncio.Future = asyncio.get_running_loop().create_future()

    def on_complete(outcome: RouteOutcome, error: Optional[Exception]) -> None:
        if not done.done():
            done.set_result((outcome, error))

    generation = coordinator.navigate(on_complete)
    try:
        outcome, error = await asyncio.wait_for(asyncio.shield(done), settings.navigate_wait_s)
    except asyncio.TimeoutError:
        return JSONResponse(status_code=202, content={"state": "computing", "generation": generation})

    if outcome is RouteOutcome.FAILED:
        raise HTTPException(status_code=502, detail=str(error))
    if outcome is RouteOutcome.STALE:
        raise HTTPException(status_code=409, detail="Superseded by a newer navigation request")
    return _routes_payload(coordinator)


@app.get("/routes")
async def get_routes(coordinator: MapCoordinator = Depends(get_coordinator)):
    return _routes_payload(coordinator)


@app.put("/routes/active/{index}", response_model=list[RouteRow])
async def set_active_route(index: int, coordinator: MapCoordinator = Depends(get_coordinator)) -> list[RouteRow]:
    try:
        coordinator.set_active_route(index)
    except InvalidSelection as e:
        raise HTTPException(status_code=400, detail=str(e))
    return coordinator.route_rows()


@app.get("/spots/{spot_id}", response_model=SpotDetail)
async def spot_detail(spot_id: int, coordinator: MapCoordinator = Depends(get_coordinator)) -> SpotDetail:
    spot = coordinator.repository.find(spot_id)
    if spot is None:
        raise HTTPException(status_code=404, detail=f"Unknown spot id: {spot_id}")
    return SpotDetail.from_spot(spot)
