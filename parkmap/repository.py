from __future__ import annotations

from typing import Iterable, Iterator

from parkmap.errors import InvalidSelection
from parkmap.models import ParkingSpot


class SpotRepository:
    """Read-only, ordered collection of parking spots keyed by id."""

    def __init__(self, spots: Iterable[ParkingSpot] = ()):
        ordered = tuple(spots)
        by_id: dict[int, ParkingSpot] = {}
        for s in ordered:
            if s.id in by_id:
                raise ValueError(f"Duplicate spot id: {s.id}")
            by_id[s.id] = s
        self._spots = ordered
        self._by_id = by_id

    def __len__(self) -> int:
        return len(self._spots)

    def __iter__(self) -> Iterator[ParkingSpot]:
        return iter(self._spots)

    def __contains__(self, spot_id: object) -> bool:
        return spot_id in self._by_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpotRepository):
            return NotImplemented
        return self._spots == other._spots

    @property
    def spots(self) -> tuple[ParkingSpot, ...]:
        return self._spots

    def find(self, spot_id: int) -> ParkingSpot | None:
        return self._by_id.get(spot_id)

    def get(self, spot_id: int) -> ParkingSpot:
        spot = self._by_id.get(spot_id)
        if spot is None:
            raise InvalidSelection(f"Unknown spot id: {spot_id}")
        return spot
