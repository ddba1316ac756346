from __future__ import annotations

import logging
from typing import Callable

from parkmap.errors import InvalidSelection
from parkmap.models import LatLng, ParkingSpot, Selection
from parkmap.repository import SpotRepository

logger = logging.getLogger(__name__)

SelectionListener = Callable[[Selection], None]


class SelectionState:
    """Which spot is open for details, which lot is targeted for routing,
    and whether the venue window is open.

    The spot detail popover and the venue window are mutually exclusive:
    opening one closes the other. Holds no map resources.
    """

    def __init__(self, repository: SpotRepository | None = None):
        self._repository = repository if repository is not None else SpotRepository()
        self._state = Selection()
        self._listeners: list[SelectionListener] = []

    @property
    def repository(self) -> SpotRepository:
        return self._repository

    def rebind(self, repository: SpotRepository) -> None:
        """Point at a new spot list, dropping ids that no longer exist."""
        self._repository = repository
        s = self._state
        changes: dict[str, object] = {}
        if s.selected_spot_id is not None and s.selected_spot_id not in repository:
            changes.update(selected_spot_id=None, anchor=None)
        if s.targeted_lot_id is not None and s.targeted_lot_id not in repository:
            changes["targeted_lot_id"] = None
        if changes:
            self._update(**changes)

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> Selection:
        return self._state

    def select(self, spot_id: int, anchor: LatLng | None = None) -> ParkingSpot:
        # Re-selecting the open spot re-opens it; there is no toggle.
        if spot_id not in self._repository:
            logger.warning("Ignoring selection of unknown spot %s", spot_id)
            raise InvalidSelection(f"Unknown spot id: {spot_id}")
        self._update(force=True, selected_spot_id=spot_id, anchor=anchor, venue_open=False)
        return self._repository.get(spot_id)

    def clear(self) -> None:
        self._update(selected_spot_id=None, anchor=None)

    def current(self) -> ParkingSpot | None:
        if self._state.selected_spot_id is None:
            return None
        return self._repository.find(self._state.selected_spot_id)

    def open_venue(self) -> None:
        self._update(selected_spot_id=None, anchor=None, venue_open=True)

    def close_venue(self) -> None:
        self._update(venue_open=False)

    @property
    def venue_open(self) -> bool:
        return self._state.venue_open

    def target(self, lot_id: int) -> ParkingSpot:
        if lot_id not in self._repository:
            logger.warning("Ignoring routing target for unknown lot %s", lot_id)
            raise InvalidSelection(f"Unknown lot id: {lot_id}")
        self._update(targeted_lot_id=lot_id)
        return self._repository.get(lot_id)

    def clear_target(self) -> None:
        self._update(targeted_lot_id=None)

    def targeted(self) -> ParkingSpot | None:
        if self._state.targeted_lot_id is None:
            return None
        return self._repository.find(self._state.targeted_lot_id)

    def _update(self, force: bool = False, **changes: object) -> None:
        new_state = self._state.model_copy(update=changes)
        if new_state == self._state and not force:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Selection listener failed")
