from __future__ import annotations


class ParkmapError(Exception):
    """Base class for failures surfaced to the presentation layer."""


class ProviderUnavailable(ParkmapError):
    """The map or directions SDK failed to load."""


class NoRoute(ParkmapError):
    def __init__(self, status: str, message: str | None = None):
        self.status = status
        super().__init__(message or f"Directions request failed: {status}")


class InvalidSelection(ParkmapError, ValueError):
    """Unknown spot id or out-of-range route index."""


class DegenerateSpot(ParkmapError):
    """Zero-capacity lot; only used for diagnostics, never raised by the projector."""

    def __init__(self, spot_id: int):
        self.spot_id = spot_id
        super().__init__(f"Spot {spot_id} has no capacity")
