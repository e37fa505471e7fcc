"""HTTP client for the Google Maps Distance Matrix and Directions services."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, Sequence

import httpx

from ...config import settings
from ...errors import UpstreamProviderError
from ...models.domain import LatLng
from .models import Directions

PROVIDER = "google_maps"

logger = logging.getLogger(__name__)


class MapsClient(Protocol):
    async def distance_matrix(
        self, origins: Sequence[LatLng], destinations: Sequence[LatLng]
    ) -> list[list[dict]]: ...

    async def directions(self, origin: LatLng, destination: LatLng) -> Directions: ...


def _format_locations(locations: Sequence[LatLng]) -> str:
    return "|".join(f"{location.lat},{location.lng}" for location in locations)


class GoogleMapsClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.maps_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.maps_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.maps_backoff_seconds
        self.transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            transport=self.transport,
        )

    async def _get_json(self, endpoint: str, params: dict[str, Any]) -> dict:
        """GET a Maps web-service endpoint, retrying transient failures."""
        url = f"{self.base_url}/{endpoint}/json"
        params = {**params, "key": self.api_key}

        async with self._get_client() as client:
            attempt = 0
            while True:
                try:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    if status_code < 500:
                        raise UpstreamProviderError(
                            PROVIDER, f"{endpoint} rejected request ({status_code})", status_code=status_code
                        ) from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise UpstreamProviderError(
                            PROVIDER, f"{endpoint} failed with {status_code}", status_code=status_code
                        ) from e
                    await asyncio.sleep(self.backoff_seconds * attempt)
                    continue
                except (httpx.TimeoutException, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Maps {endpoint} request failed after {self.max_retries} retries: {e}")
                        raise UpstreamProviderError(PROVIDER, f"{endpoint} unreachable: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"Maps {endpoint} network error, retrying in {wait_time:.1f}s "
                        f"(attempt {attempt}/{self.max_retries}): {e}"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                except ValueError as e:
                    raise UpstreamProviderError(PROVIDER, f"{endpoint} returned invalid JSON") from e

                status = data.get("status")
                if status != "OK":
                    message = data.get("error_message") or status or "unknown status"
                    raise UpstreamProviderError(PROVIDER, f"{endpoint} returned {message}")
                return data

    async def distance_matrix(
        self, origins: Sequence[LatLng], destinations: Sequence[LatLng]
    ) -> list[list[dict]]:
        """Return one row of elements per origin, one element per destination.

        Elements are passed through as returned by the provider
        (``{"status", "distance": {"value"}, "duration": {"value"}}``); callers
        decide what to do with non-OK cells.
        """
        if not origins or not destinations:
            raise ValueError("At least one origin and one destination are required.")

        data = await self._get_json(
            "distancematrix",
            {
                "origins": _format_locations(origins),
                "destinations": _format_locations(destinations),
                "units": "metric",
                "mode": "driving",
                "traffic_model": "best_guess",
                "departure_time": "now",
            },
        )
        rows = data.get("rows") or []
        if len(rows) != len(origins):
            raise UpstreamProviderError(
                PROVIDER, f"distancematrix returned {len(rows)} rows for {len(origins)} origins"
            )
        return [row.get("elements") or [] for row in rows]

    async def directions(self, origin: LatLng, destination: LatLng) -> Directions:
        """Driving directions for a single leg."""
        data = await self._get_json(
            "directions",
            {
                "origin": f"{origin.lat},{origin.lng}",
                "destination": f"{destination.lat},{destination.lng}",
                "mode": "driving",
                "traffic_model": "best_guess",
                "departure_time": "now",
            },
        )
        routes = data.get("routes") or []
        if not routes or not routes[0].get("legs"):
            raise UpstreamProviderError(PROVIDER, "directions returned no route")
        route = routes[0]
        leg = route["legs"][0]
        return Directions(
            distance_meters=int(leg["distance"]["value"]),
            duration_seconds=int(leg["duration"]["value"]),
            steps=list(leg.get("steps") or []),
            polyline=(route.get("overview_polyline") or {}).get("points", ""),
        )


async def check_health(client: GoogleMapsClient | None = None) -> bool:
    """Check Maps availability with a minimal two-point matrix request."""
    try:
        client = client or GoogleMapsClient()
        elements = await client.distance_matrix(
            [LatLng(lat=39.7392, lng=-104.9903)],
            [LatLng(lat=39.7555, lng=-105.2211)],
        )
        return bool(elements and elements[0] and elements[0][0].get("status") == "OK")
    except (UpstreamProviderError, ValueError):
        return False
