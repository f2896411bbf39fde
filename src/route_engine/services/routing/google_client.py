"""HTTP client for the mapping provider's distance matrix and directions services."""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from ...config import settings
from ...models.domain import Coordinates
from .exceptions import ProviderError

# Provider hard limits per request.
MAX_MATRIX_DESTINATIONS = 25
MAX_DIRECTIONS_WAYPOINTS = 23

logger = logging.getLogger(__name__)


class GoogleMapsClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        travel_mode: str | None = None,
        traffic_model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.travel_mode = travel_mode or settings.travel_mode
        self.traffic_model = traffic_model or settings.traffic_model
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    async def _get_json(self, endpoint: str, params: dict[str, str]) -> dict:
        """Issue one GET and return the decoded body; any failure becomes ``ProviderError``."""
        url = f"{self.base_url}/{endpoint}/json"
        query = {
            **params,
            "mode": self.travel_mode,
            "departure_time": "now",
            "traffic_model": self.traffic_model,
            "key": self.api_key,
        }
        async with self._get_client() as client:
            try:
                response = await client.get(url, params=query)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                raise ProviderError(
                    f"{endpoint} request failed with HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise ProviderError(f"{endpoint} request failed: {exc}") from exc
            except ValueError as exc:
                raise ProviderError(f"{endpoint} returned a malformed body") from exc

        if not isinstance(data, dict):
            raise ProviderError(f"{endpoint} returned a malformed body")
        status = data.get("status")
        if status != "OK":
            message = data.get("error_message") or f"{endpoint} status: {status}"
            raise ProviderError(message, provider_status=status)
        return data

    async def distance_matrix(self, origin: Coordinates, destinations: Sequence[Coordinates]) -> dict:
        """Query driving distance/duration from one origin to up to 25 destinations.

        Returns the raw provider body. Elements of ``rows[0].elements`` line up
        positionally with ``destinations``.
        """
        if not destinations:
            raise ValueError("At least one destination is required for a distance matrix.")
        if len(destinations) > MAX_MATRIX_DESTINATIONS:
            raise ValueError(
                f"Distance matrix accepts at most {MAX_MATRIX_DESTINATIONS} destinations "
                f"(got {len(destinations)})."
            )
        params = {
            "origins": origin.as_param(),
            "destinations": "|".join(dest.as_param() for dest in destinations),
            "units": "imperial",
        }
        data = await self._get_json("distancematrix", params)
        rows = data.get("rows")
        if not rows or "elements" not in rows[0]:
            raise ProviderError("distancematrix response missing rows/elements")
        return data

    async def directions(
        self,
        origin: Coordinates,
        destination: Coordinates,
        waypoints: Sequence[Coordinates] = (),
        optimize: bool = True,
    ) -> dict:
        """Request a driving route, letting the provider reorder the waypoints.

        A non-OK status or an empty ``routes`` array raises ``ProviderError``.
        """
        if len(waypoints) > MAX_DIRECTIONS_WAYPOINTS:
            raise ValueError(
                f"Directions accepts at most {MAX_DIRECTIONS_WAYPOINTS} waypoints (got {len(waypoints)})."
            )
        params = {
            "origin": origin.as_param(),
            "destination": destination.as_param(),
        }
        if waypoints:
            joined = "|".join(point.as_param() for point in waypoints)
            params["waypoints"] = f"optimize:true|{joined}" if optimize else joined

        data = await self._get_json("directions", params)
        if not data.get("routes"):
            raise ProviderError("directions response contained no routes", provider_status="ZERO_RESULTS")
        return data


def build_navigation_url(address: str) -> str:
    """Turn-by-turn link that opens the provider's own navigation for ``address``."""
    return str(
        httpx.URL(
            "https://www.google.com/maps/dir/",
            params={"api": "1", "destination": address},
        )
    )


async def check_health(client: GoogleMapsClient | None = None) -> bool:
    """Check provider reachability with a minimal one-destination matrix query."""
    if client is None:
        if not settings.provider_configured:
            return False
        client = GoogleMapsClient()
    try:
        await client.distance_matrix(
            Coordinates(42.3601, -71.0589),
            [Coordinates(42.3736, -71.1097)],
        )
        return True
    except ProviderError as exc:
        logger.warning(f"Mapping provider health check failed: {exc}")
        return False
