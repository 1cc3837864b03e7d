"""HTTP client for the Google Distance Matrix API and driving-distance enrichment."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import httpx

from ...config import settings
from ...errors import UpstreamUnavailableError
from ...models.domain import Station

logger = logging.getLogger(__name__)


class DistanceMatrixClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        batch_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.google_api_key
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.distance_matrix_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.distance_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.distance_backoff_seconds
        self.batch_size = batch_size or settings.distance_matrix_batch_size
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=10.0), transport=self._transport)

    async def matrix_row(
        self, origin: tuple[float, float], destinations: Sequence[tuple[float, float]]
    ) -> list[dict | None]:
        """One request: a single origin against up to ``batch_size`` destinations.

        Returns one entry per destination, ``{"distance_m", "duration_s"}`` or
        None when the element status is not OK.
        """
        if not destinations:
            return []
        if len(destinations) > self.batch_size:
            raise ValueError(f"At most {self.batch_size} destinations per Distance Matrix request.")

        params = {
            "origins": f"{origin[0]},{origin[1]}",
            "destinations": "|".join(f"{lat},{lng}" for lat, lng in destinations),
            "mode": "driving",
            "units": "metric",
            "key": self.api_key,
        }
        url = f"{self.base_url}/distancematrix/json"

        async with self._get_client() as client:
            attempt = 0
            while True:
                try:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    break
                except (httpx.TimeoutException, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise UpstreamUnavailableError(
                            message="Distance service is not reachable.", details=str(e)
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Distance Matrix network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    await asyncio.sleep(wait_time)
                except (httpx.HTTPError, ValueError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise UpstreamUnavailableError(
                            message="Distance service request failed.", details=str(e)
                        ) from e
                    await asyncio.sleep(self.backoff_seconds * attempt)

        if not isinstance(data, dict):
            raise UpstreamUnavailableError(
                message="Distance service returned an unexpected response.",
                details=f"body is {type(data).__name__}",
            )
        status = data.get("status")
        if status != "OK":
            raise UpstreamUnavailableError(
                message="Distance service returned an error.",
                details=f"{status}: {data.get('error_message', '')}",
            )

        rows = data.get("rows")
        first_row = rows[0] if isinstance(rows, list) and rows else None
        elements = first_row.get("elements") if isinstance(first_row, dict) else None
        if not isinstance(elements, list):
            elements = []
        results: list[dict | None] = []
        for index in range(len(destinations)):
            element = elements[index] if index < len(elements) else None
            if not isinstance(element, dict) or element.get("status") != "OK":
                results.append(None)
                continue
            try:
                results.append(
                    {
                        "distance_m": float(element["distance"]["value"]),
                        "duration_s": float(element["duration"]["value"]),
                    }
                )
            except (KeyError, TypeError, ValueError):
                results.append(None)
        return results


async def enrich_driving_distances(
    origin: tuple[float, float],
    stations: list[Station],
    client: DistanceMatrixClient | None = None,
    batch_size: int | None = None,
) -> list[Station]:
    """Attach driving distance/duration to stations that have coordinates.

    A failed batch leaves its stations without driving figures; ranking then
    falls back to straight-line distance. Never raises for upstream errors.
    """
    matrix = client or DistanceMatrixClient()
    if not matrix.configured:
        logger.warning("Google API key not configured; skipping driving distance enrichment")
        return stations

    candidates = [station for station in stations if station.has_coordinates]
    size = batch_size or matrix.batch_size
    enriched = 0
    failed_batches = 0

    for i in range(0, len(candidates), size):
        batch = candidates[i : i + size]
        try:
            row = await matrix.matrix_row(origin, [(s.lat, s.lng) for s in batch])
        except UpstreamUnavailableError as e:
            failed_batches += 1
            logger.warning(f"Distance Matrix batch {i // size + 1} failed: {e}")
            continue
        for station, element in zip(batch, row):
            if element is None:
                continue
            station.driving_distance_km = round(element["distance_m"] / 1000, 2)
            station.driving_duration_min = round(element["duration_s"] / 60)
            enriched += 1

    logger.info(
        f"Driving distances attached to {enriched}/{len(candidates)} stations "
        f"({failed_batches} failed batches)"
    )
    return stations
