"""Area-name resolution against the Google Geocoding and Places APIs.

Both lookups are best effort: any network, status or parse problem is
logged and reported as "no name resolved" rather than raised, so the
pipeline can continue with fewer area terms.
"""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

# Most specific first.
LOCALITY_TYPES: tuple[str, ...] = ("locality", "sublocality", "administrative_area_level_3")
# Places Nearby Search rejects larger radii.
MAX_PLACES_RADIUS_M = 50_000


class GeocodingClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.google_api_key
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.geocoding_timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport)

    async def _get_json(self, path: str, params: dict) -> dict:
        async with self._get_client() as client:
            response = await client.get(f"{self.base_url}/{path}", params={**params, "key": self.api_key})
            response.raise_for_status()
            data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected response body from {path}: {type(data).__name__}")
        return data

    async def reverse_geocode(self, lat: float, lng: float) -> str | None:
        """Return the most specific locality name for a point, or None."""
        if not self.configured:
            logger.warning("Google API key not configured; skipping reverse geocoding")
            return None
        try:
            data = await self._get_json("geocode/json", {"latlng": f"{lat},{lng}"})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Reverse geocoding failed for ({lat}, {lng}): {e}")
            return None

        status = data.get("status")
        if status != "OK":
            if status != "ZERO_RESULTS":
                logger.warning(f"Reverse geocoding returned status {status}: {data.get('error_message', '')}")
            return None
        return pick_locality(data.get("results") or [])

    async def nearby_place_names(self, lat: float, lng: float, radius_km: float) -> list[str]:
        """Return unique locality names within ``radius_km`` of a point."""
        if not self.configured:
            logger.warning("Google API key not configured; skipping nearby place search")
            return []
        radius_m = min(int(radius_km * 1000), MAX_PLACES_RADIUS_M)
        try:
            data = await self._get_json(
                "place/nearbysearch/json",
                {"location": f"{lat},{lng}", "radius": radius_m, "type": "locality"},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Nearby place search failed for ({lat}, {lng}): {e}")
            return []

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.warning(f"Nearby place search returned status {status}: {data.get('error_message', '')}")
            return []

        names: list[str] = []
        for result in data.get("results") or []:
            if not isinstance(result, dict):
                continue
            name = str(result.get("name") or "").strip()
            if name and name not in names:
                names.append(name)
        return names


def pick_locality(results: Sequence[dict]) -> str | None:
    """Pick the most specific locality across geocoding results."""
    for wanted in LOCALITY_TYPES:
        for result in results:
            if not isinstance(result, dict):
                continue
            for component in result.get("address_components") or []:
                if not isinstance(component, dict):
                    continue
                if wanted in (component.get("types") or []):
                    name = str(component.get("long_name") or "").strip()
                    if name:
                        return name
    return None


async def resolve_area_terms(
    lat: float,
    lng: float,
    radius_km: float,
    client: GeocodingClient | None = None,
    max_terms: int | None = None,
) -> list[str]:
    """Expand one coordinate into the area terms used as search queries.

    The reverse-geocoded locality comes first, followed by nearby localities.
    Names are de-duplicated case-insensitively.
    """
    geocoder = client or GeocodingClient()
    limit = max_terms if max_terms is not None else settings.max_area_terms

    terms: list[str] = []
    seen: set[str] = set()

    def _add(name: str | None) -> None:
        if not name:
            return
        key = name.casefold()
        if key in seen:
            return
        seen.add(key)
        terms.append(name)

    _add(await geocoder.reverse_geocode(lat, lng))
    for name in await geocoder.nearby_place_names(lat, lng, radius_km):
        _add(name)

    if len(terms) > limit:
        logger.info(f"Resolved {len(terms)} area terms, keeping the first {limit}")
    return terms[:limit]
