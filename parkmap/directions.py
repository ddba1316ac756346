"""Google Directions web-service binding."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, Future
from functools import partial
from typing import Any

import requests
from pydantic import ValidationError

from parkmap.errors import ProviderUnavailable
from parkmap.models import DIRECTIONS_OK, DIRECTIONS_REQUEST_FAILED, DirectionsRequest, DirectionsResult
from parkmap.providers import DirectionsCallback, LoadCallback

logger = logging.getLogger(__name__)


class GoogleDirectionsProvider:
    """Directions provider backed by the Directions JSON API.

    Inside a running event loop the HTTP call happens on the loop's executor
    and the callback is delivered back on the loop thread; without one the
    request runs inline.
    """

    DEFAULT_URL = "https://maps.googleapis.com/maps/api/directions/json"
    DEFAULT_TIMEOUT = 10

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_URL,
        timeout: float = DEFAULT_TIMEOUT,
        language: str = "en",
        session: requests.Session | None = None,
        executor: Executor | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.language = language
        self.session = session or requests.Session()
        self._executor = executor

    def load(self, callback: LoadCallback) -> None:
        if not self.api_key:
            callback(ProviderUnavailable("GOOGLE_MAPS_API_KEY is not set"))
            return
        callback(None)

    def params_for(self, request: DirectionsRequest) -> dict[str, Any]:
        return {
            "origin": f"{request.origin.lat},{request.origin.lng}",
            "destination": f"{request.destination.lat},{request.destination.lng}",
            "mode": request.travel_mode.lower(),
            "alternatives": "true" if request.alternatives else "false",
            "language": self.language,
            "key": self.api_key,
        }

    def fetch(self, request: DirectionsRequest) -> tuple[DirectionsResult | None, str]:
        resp = self.session.get(self.base_url, params=self.params_for(request), timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json() if resp.content else {}
        if not isinstance(data, dict):
            return None, "INVALID_RESPONSE"

        status = (data.get("status") or "UNKNOWN_ERROR").strip()
        if status != DIRECTIONS_OK:
            logger.warning("Directions API returned %s: %s", status, data.get("error_message", ""))
            return None, status
        try:
            return DirectionsResult.model_validate(data), status
        except ValidationError:
            logger.warning("Unexpected Directions API payload", exc_info=True)
            return None, "INVALID_RESPONSE"

    def route(self, request: DirectionsRequest, callback: DirectionsCallback) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            try:
                result, status = self.fetch(request)
            except requests.RequestException:
                logger.warning("Directions request failed", exc_info=True)
                callback(None, DIRECTIONS_REQUEST_FAILED)
                return
            callback(result, status)
            return

        future = loop.run_in_executor(self._executor, self.fetch, request)
        future.add_done_callback(partial(self._deliver, callback))

    @staticmethod
    def _deliver(callback: DirectionsCallback, future: "asyncio.Future | Future") -> None:
        if future.cancelled():
            callback(None, "CANCELLED")
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Directions request failed: %s", exc)
            callback(None, DIRECTIONS_REQUEST_FAILED)
            return
        result, status = future.result()
        callback(result, status)
