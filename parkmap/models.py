from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

HEAT_SCALE = 5.0

DIRECTIONS_OK = "OK"
DIRECTIONS_REQUEST_FAILED = "REQUEST_FAILED"


class LatLng(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class ParkingSpot(BaseModel):
    # The shipped dataset uses camelCase keys, two of them misspelled.
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    coordinates: LatLng
    total_spaces: int = Field(ge=0, validation_alias=AliasChoices("total_spaces", "totalSpaces"))
    handicap_spaces: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("handicap_spaces", "handicapSpaces")
    )
    access: str = "Public"
    current_availability: int = Field(
        ge=0,
        validation_alias=AliasChoices(
            "current_availability", "currentAvailability", "currentAvaliability"
        ),
    )
    predicted_availability_in_1h: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices(
            "predicted_availability_in_1h",
            "predictedAvailabilityIn1h",
            "AvaliabilityAfterOneHour",
        ),
    )

    @model_validator(mode="after")
    def _availability_within_capacity(self) -> "ParkingSpot":
        if self.current_availability > self.total_spaces:
            raise ValueError(
                f"currentAvailability {self.current_availability} exceeds totalSpaces {self.total_spaces}"
            )
        return self

    @property
    def occupancy_ratio(self) -> float | None:
        if self.total_spaces == 0:
            return None
        return 1.0 - self.current_availability / self.total_spaces


class HeatPoint(BaseModel):
    lat: float
    lng: float
    weight: float


class Venue(BaseModel):
    name: str
    position: LatLng
    info_html: str | None = None

    def info_content(self) -> str:
        return self.info_html or f'<div style="width: 200px;"><h1>{self.name}</h1></div>'


class Selection(BaseModel):
    selected_spot_id: int | None = None
    anchor: LatLng | None = None
    targeted_lot_id: int | None = None
    venue_open: bool = False


class DetailRow(BaseModel):
    label: str
    value: str


class SpotDetail(BaseModel):
    id: int
    name: str
    rows: list[DetailRow]

    @classmethod
    def from_spot(cls, spot: ParkingSpot) -> "SpotDetail":
        return cls(
            id=spot.id,
            name=spot.name,
            rows=[
                DetailRow(label="Total Spaces", value=str(spot.total_spaces)),
                DetailRow(label="Handicap Spaces", value=str(spot.handicap_spaces)),
                DetailRow(label="Access", value=spot.access),
                DetailRow(label="Available Now", value=str(spot.current_availability)),
                DetailRow(label="Prediction in 1 Hour", value=str(spot.predicted_availability_in_1h)),
            ],
        )


class LotOption(BaseModel):
    id: int
    label: str


class RouteRow(BaseModel):
    index: int
    summary: str
    duration: str
    distance: str
    label: str
    active: bool


@dataclass(frozen=True)
class RouteCandidate:
    index: int
    summary: str
    duration_text: str
    distance_text: str
    renderer: Any

    def as_row(self) -> tuple[int, str, str, str]:
        return (self.index, self.summary, self.duration_text, self.distance_text)


# Directions provider wire model (subset of the Google Directions response).


class TextValue(BaseModel):
    text: str = ""
    value: float | None = None


class RouteLeg(BaseModel):
    duration: TextValue = Field(default_factory=TextValue)
    distance: TextValue = Field(default_factory=TextValue)
    end_location: LatLng | None = None


class DirectionsRoute(BaseModel):
    summary: str = ""
    legs: list[RouteLeg] = Field(default_factory=list)


class DirectionsResult(BaseModel):
    routes: list[DirectionsRoute] = Field(default_factory=list)


class DirectionsRequest(BaseModel):
    origin: LatLng
    destination: LatLng
    alternatives: bool = True
    travel_mode: str = "DRIVING"
