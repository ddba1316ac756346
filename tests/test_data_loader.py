import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from parkmap.data_loader import load_spots_from_file
from parkmap.models import ParkingSpot
from parkmap.repository import SpotRepository

SHIPPED_DATA = Path(__file__).resolve().parent.parent / "data" / "nearby_parking.json"


def _record(**overrides):
    record = {
        "id": 1,
        "name": "Lot A",
        "coordinates": {"lat": 43.64, "lng": -79.39},
        "totalSpaces": 10,
        "handicapSpaces": 2,
        "access": "Public",
        "currentAvaliability": 4,
        "AvaliabilityAfterOneHour": 1,
    }
    record.update(overrides)
    return record


class TestParkingSpot:
    def test_source_keys_accepted(self):
        spot = ParkingSpot.model_validate(_record())
        assert spot.current_availability == 4
        assert spot.predicted_availability_in_1h == 1
        assert spot.occupancy_ratio == pytest.approx(0.6)

    def test_availability_above_capacity_rejected(self):
        with pytest.raises(ValidationError):
            ParkingSpot.model_validate(_record(currentAvaliability=11))

    def test_negative_capacity_rejected(self):
        with pytest.raises(ValidationError):
            ParkingSpot.model_validate(_record(totalSpaces=-1, currentAvaliability=0))

    def test_zero_capacity_has_no_ratio(self):
        spot = ParkingSpot.model_validate(_record(totalSpaces=0, currentAvaliability=0))
        assert spot.occupancy_ratio is None

    def test_immutable(self):
        spot = ParkingSpot.model_validate(_record())
        with pytest.raises(ValidationError):
            spot.name = "other"


class TestLoadJson:
    def test_list(self, tmp_path):
        path = tmp_path / "spots.json"
        path.write_text(json.dumps([_record(), _record(id=2, name="Lot B")]))
        result = load_spots_from_file(str(path))
        assert [s.name for s in result.spots] == ["Lot A", "Lot B"]
        assert result.source == str(path)

    def test_wrapped_object(self, tmp_path):
        path = tmp_path / "spots.json"
        path.write_text(json.dumps({"spots": [_record()]}))
        assert len(load_spots_from_file(str(path)).spots) == 1

    def test_invalid_records_skipped(self, tmp_path):
        path = tmp_path / "spots.json"
        path.write_text(json.dumps([_record(), _record(id=2, currentAvaliability=99), "junk"]))
        result = load_spots_from_file(str(path))
        assert len(result.spots) == 1
        assert result.skipped == 2

    def test_duplicate_ids_skipped(self, tmp_path):
        path = tmp_path / "spots.json"
        path.write_text(
            json.dumps([_record(), _record(id=2, name="Lot B"), _record(id=2, name="Lot B again")])
        )
        result = load_spots_from_file(str(path))
        assert [s.name for s in result.spots] == ["Lot A", "Lot B"]
        assert result.skipped == 1
        assert len(SpotRepository(result.spots)) == 2

    def test_unsupported_structure(self, tmp_path):
        path = tmp_path / "spots.json"
        path.write_text(json.dumps({"type": "FeatureCollection"}))
        with pytest.raises(ValueError):
            load_spots_from_file(str(path))

    def test_shipped_dataset(self):
        result = load_spots_from_file(str(SHIPPED_DATA))
        repo = SpotRepository(result.spots)
        assert result.skipped == 0
        assert len(repo) == 6
        assert repo.get(5).total_spaces == 0


class TestLoadCsv:
    def test_flat_columns(self, tmp_path):
        path = tmp_path / "spots.csv"
        path.write_text(
            "id,name,lat,lng,totalSpaces,handicapSpaces,access,currentAvailability\n"
            "7,Lot C,43.1,-79.2,50,3,Public,20\n"
            ",No coords,,,10,0,Public,1\n"
        )
        result = load_spots_from_file(str(path))
        assert len(result.spots) == 1
        spot = result.spots[0]
        assert spot.id == 7
        assert spot.coordinates.lat == 43.1
        assert result.skipped == 1


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_spots_from_file(str(tmp_path / "absent.json"))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "spots.xml"
        path.write_text("<spots/>")
        with pytest.raises(ValueError):
            load_spots_from_file(str(path))


class TestRepository:
    def test_duplicate_ids_rejected(self):
        spot = ParkingSpot.model_validate(_record())
        with pytest.raises(ValueError):
            SpotRepository([spot, spot])
