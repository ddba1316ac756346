"""Test doubles and builders shared across the suite."""

from parkmap.models import (
    DirectionsResult,
    DirectionsRoute,
    LatLng,
    ParkingSpot,
    RouteLeg,
    TextValue,
    Venue,
)

VENUE = Venue(name="Rogers Centre", position=LatLng(lat=43.641796, lng=-79.390083))
ORIGIN = LatLng(lat=43.8361, lng=-79.5083)


class FakeDirections:
    """Records requests; tests complete them explicitly, in any order."""

    def __init__(self, load_error=None):
        self.load_error = load_error
        self.requests = []
        self.callbacks = []

    def load(self, callback):
        callback(self.load_error)

    def route(self, request, callback):
        self.requests.append(request)
        self.callbacks.append(callback)

    def complete(self, i, result, status="OK"):
        self.callbacks[i](result, status)


def make_spot(spot_id, total=10, available=5, name=None, lat=43.64, lng=-79.39):
    return ParkingSpot(
        id=spot_id,
        name=name or f"Lot {spot_id}",
        coordinates=LatLng(lat=lat, lng=lng),
        totalSpaces=total,
        handicapSpaces=1,
        access="Public",
        currentAvailability=available,
        predictedAvailabilityIn1h=max(0, available - 1),
    )


def make_result(*routes):
    """routes: (summary, duration, distance) triples."""
    return DirectionsResult(
        routes=[
            DirectionsRoute(
                summary=summary,
                legs=[RouteLeg(duration=TextValue(text=duration), distance=TextValue(text=distance))],
            )
            for summary, duration, distance in routes
        ]
    )
