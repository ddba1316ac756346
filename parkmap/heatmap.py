from __future__ import annotations

import logging
from typing import Iterable

from pydantic import BaseModel, Field

from parkmap.errors import DegenerateSpot
from parkmap.models import HEAT_SCALE, HeatPoint, ParkingSpot

logger = logging.getLogger(__name__)

DEFAULT_GRADIENT = [
    "rgba(0, 0, 255, 0)",
    "rgba(0, 0, 255, 1)",
    "rgba(0, 255, 0, 1)",
    "rgba(255, 255, 0, 1)",
    "rgba(255, 0, 0, 1)",
]


class HeatmapStyle(BaseModel):
    radius: int = 80
    opacity: float = 0.6
    gradient: list[str] = Field(default_factory=lambda: list(DEFAULT_GRADIENT))


def project(spots: Iterable[ParkingSpot], scale: float = HEAT_SCALE) -> list[HeatPoint]:
    """Weight each spot by how full it is: (1 - available/total) * scale.

    Zero-capacity spots have no occupancy ratio and are left out.
    """
    points: list[HeatPoint] = []
    for s in spots:
        ratio = s.occupancy_ratio
        if ratio is None:
            logger.debug("%s; left out of heat projection", DegenerateSpot(s.id))
            continue
        points.append(
            HeatPoint(
                lat=s.coordinates.lat,
                lng=s.coordinates.lng,
                weight=ratio * scale,
            )
        )
    return points
