from __future__ import annotations

import csv
import json
import logging
import os
from dataclasses import dataclass
from typing import Iterable

from pydantic import ValidationError

from parkmap.models import ParkingSpot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadResult:
    spots: list[ParkingSpot]
    source: str
    skipped: int = 0


def _try_parse_float(v: object) -> float | None:
    if v is None:
        return None
    if isinstance(v, (int, float)):
        return float(v)
    s = str(v).strip()
    if s == "":
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _row_get(row: dict, keys: Iterable[str]) -> object | None:
    for k in keys:
        if k in row and row[k] not in (None, ""):
            return row[k]
    return None


def _flat_row_to_record(row: dict) -> dict:
    # CSV rows carry flat lat/lng columns instead of a coordinates object.
    record = dict(row)
    if "coordinates" not in record:
        lat = _try_parse_float(_row_get(row, ["lat", "latitude", "LAT", "Y"]))
        lng = _try_parse_float(_row_get(row, ["lng", "lon", "longitude", "LON", "X"]))
        if lat is not None and lng is not None:
            record["coordinates"] = {"lat": lat, "lng": lng}
    return record


def _normalize_spot(row: dict, idx: int) -> ParkingSpot | None:
    record = _flat_row_to_record(row)
    spot_id = _row_get(record, ["id", "ID", "spot_id"])
    record["id"] = spot_id if spot_id is not None else idx
    try:
        return ParkingSpot.model_validate(record)
    except ValidationError as e:
        logger.warning("Skipping spot record %d: %s", idx, e.errors()[0].get("msg", "invalid"))
        return None


def _collect(rows: Iterable[object]) -> tuple[list[ParkingSpot], int]:
    spots: list[ParkingSpot] = []
    seen: set[int] = set()
    skipped = 0
    for idx, row in enumerate(rows):
        s = _normalize_spot(row, idx) if isinstance(row, dict) else None
        if s is None:
            skipped += 1
            continue
        if s.id in seen:
            # first record with an id wins
            logger.warning("Skipping spot record %d: duplicate id %s", idx, s.id)
            skipped += 1
            continue
        seen.add(s.id)
        spots.append(s)
    return spots, skipped


def load_spots_from_file(path: str) -> LoadResult:
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Parking spot data file not found: {path}. "
            f"Put a JSON/CSV file there or set PARKMAP_SPOTS_PATH."
        )

    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            spots, skipped = _collect(csv.DictReader(f))
        return LoadResult(spots=spots, source=path, skipped=skipped)

    if ext == ".json":
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)

        if isinstance(obj, dict) and isinstance(obj.get("spots"), list):
            obj = obj["spots"]
        if isinstance(obj, list):
            spots, skipped = _collect(obj)
            return LoadResult(spots=spots, source=path, skipped=skipped)

        raise ValueError(f"Unsupported JSON structure in {path}")

    raise ValueError(f"Unsupported file extension: {ext} (expected .json/.csv)")
