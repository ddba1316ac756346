import os

from pydantic import BaseModel, Field


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings(BaseModel):
    # Static spot dataset (JSON list or CSV), loaded once at startup.
    spots_path: str = Field(
        default_factory=lambda: os.getenv("PARKMAP_SPOTS_PATH", "data/nearby_parking.json")
    )

    google_maps_api_key: str = Field(default_factory=lambda: os.getenv("GOOGLE_MAPS_API_KEY", "").strip())
    directions_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "PARKMAP_DIRECTIONS_URL", "https://maps.googleapis.com/maps/api/directions/json"
        )
    )
    directions_timeout_s: float = Field(default_factory=lambda: _env_float("PARKMAP_DIRECTIONS_TIMEOUT_S", 10.0))
    language: str = "en"

    # Fixed routing origin (the user's location).
    origin_lat: float = Field(default_factory=lambda: _env_float("PARKMAP_ORIGIN_LAT", 43.8361))
    origin_lng: float = Field(default_factory=lambda: _env_float("PARKMAP_ORIGIN_LNG", -79.5083))

    venue_name: str = "Rogers Centre"
    venue_lat: float = 43.641796
    venue_lng: float = -79.390083

    initial_center_lat: float = 43.7
    initial_center_lng: float = -79.4
    initial_zoom: int = 12

    heat_scale: float = 5.0
    traffic_layer: bool = True

    spot_icon_url: str = "/parking.png"
    venue_icon_url: str = "/stadium.png"

    # How long POST /navigate waits for the directions callback before answering 202.
    navigate_wait_s: float = Field(default_factory=lambda: _env_float("PARKMAP_NAVIGATE_WAIT_S", 15.0))

    log_level: str = Field(default_factory=lambda: os.getenv("PARKMAP_LOG_LEVEL", "INFO").upper())


settings = Settings()
