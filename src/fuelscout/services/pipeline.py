"""Station pipeline orchestration service.

Stages run strictly one after another: area terms, harvesting, driving
distance enrichment, then ranking. Each run opens its own station source
session; the registry and request cache are the only shared state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from ..config import settings
from ..errors import InvalidOriginError, QueryTimeoutError, TRY_AGAIN_LATER
from ..models.domain import QueryOutcome, Station, UserPreferences
from ..persistence.registry import StationRegistry, get_station_registry
from .cache import RequestCache
from .geocoding import GeocodingClient, resolve_area_terms
from .geospatial import is_valid_coordinate
from .harvesting.gasbuddy import PlaywrightStationSource
from .harvesting.harvester import Harvester
from .harvesting.source import StationSource
from .ranking import SortOption, rank, sort_results
from .routing.distance_matrix import DistanceMatrixClient, enrich_driving_distances

logger = logging.getLogger(__name__)

SourceFactory = Callable[[], StationSource]
HarvesterFactory = Callable[[StationSource, StationRegistry], Harvester]
T = TypeVar("T")


def validate_origin(lat, lng) -> tuple[float, float]:
    if lat is None or lng is None:
        raise InvalidOriginError(message="lat and lng are required.")
    if not is_valid_coordinate(lat, lng):
        raise InvalidOriginError(message=f"Invalid coordinates: ({lat}, {lng}).")
    return float(lat), float(lng)


class StationPipeline:
    def __init__(
        self,
        source_factory: SourceFactory | None = None,
        registry: StationRegistry | None = None,
        geocoder: GeocodingClient | None = None,
        distance_client: DistanceMatrixClient | None = None,
        cache: RequestCache | None = None,
        harvester_factory: HarvesterFactory | None = None,
        query_timeout: float | None = None,
    ) -> None:
        self.source_factory = source_factory or PlaywrightStationSource
        self.registry = registry if registry is not None else get_station_registry()
        self.geocoder = geocoder or GeocodingClient()
        self.distance_client = distance_client or DistanceMatrixClient()
        self.cache = cache if cache is not None else RequestCache()
        self.harvester_factory = harvester_factory or (lambda source, registry: Harvester(source, registry))
        self.query_timeout = query_timeout if query_timeout is not None else settings.query_timeout_seconds

    async def _harvest(
        self,
        terms: Sequence[str],
        origin: tuple[float, float] | None,
        max_per_area: int | None,
        max_distance_km: float | None,
    ) -> list[Station]:
        source = self.source_factory()
        try:
            harvester = self.harvester_factory(source, self.registry)
            result = await harvester.harvest(
                terms, origin=origin, max_per_area=max_per_area, max_distance_km=max_distance_km
            )
        finally:
            await source.close()
        return result.stations

    async def _enrich(self, origin: tuple[float, float], stations: list[Station], driving: bool) -> list[Station]:
        if not driving or not stations:
            return stations
        return await enrich_driving_distances(origin, stations, client=self.distance_client)

    async def _with_deadline(self, work: Awaitable[T], timeout: float | None, description: str) -> T:
        deadline = timeout if timeout is not None else self.query_timeout
        try:
            return await asyncio.wait_for(work, deadline)
        except asyncio.TimeoutError as exc:
            logger.error(f"{description} exceeded {deadline:.0f}s")
            raise QueryTimeoutError(
                message="Finding stations took too long.",
                remediation=TRY_AGAIN_LATER,
                details=f"deadline {deadline:.0f}s",
            ) from exc

    async def _smart_stations(
        self,
        origin: tuple[float, float],
        radius_km: float | None,
        max_per_area: int | None,
        max_distance_km: float | None,
        driving: bool,
    ) -> list[Station]:
        radius = radius_km or settings.default_search_radius_km
        terms = await resolve_area_terms(origin[0], origin[1], radius, client=self.geocoder)
        if not terms:
            logger.warning(f"No area names resolved around {origin}; nothing to harvest")
            return []
        logger.info(f"Area terms for {origin}: {terms}")
        stations = await self._harvest(terms, origin, max_per_area, max_distance_km)
        return await self._enrich(origin, stations, driving)

    async def _terms_stations(
        self,
        terms: Sequence[str],
        origin: tuple[float, float] | None,
        max_per_area: int | None,
        max_distance_km: float | None,
        driving: bool,
    ) -> list[Station]:
        stations = await self._harvest(terms, origin, max_per_area, max_distance_km)
        if origin is None:
            return stations
        return await self._enrich(origin, stations, driving)

    async def smart_stations(
        self,
        lat,
        lng,
        radius_km: float | None = None,
        max_per_area: int | None = None,
        max_distance_km: float | None = None,
        driving: bool = True,
        timeout: float | None = None,
    ) -> list[Station]:
        """Resolve area names around the origin, harvest them and enrich the result."""
        origin = validate_origin(lat, lng)
        return await self._with_deadline(
            self._smart_stations(origin, radius_km, max_per_area, max_distance_km, driving),
            timeout,
            f"Station search around {origin}",
        )

    async def area_stations(
        self,
        area_term: str,
        lat=None,
        lng=None,
        max_stations: int | None = None,
        driving: bool = False,
        timeout: float | None = None,
    ) -> list[Station]:
        origin = validate_origin(lat, lng) if lat is not None or lng is not None else None
        return await self._with_deadline(
            self._terms_stations([area_term], origin, max_stations, None, driving),
            timeout,
            f"Area search for '{area_term}'",
        )

    async def multi_area_stations(
        self,
        terms: Sequence[str],
        lat=None,
        lng=None,
        max_per_area: int | None = None,
        max_distance_km: float | None = None,
        driving: bool = False,
        timeout: float | None = None,
    ) -> list[Station]:
        origin = validate_origin(lat, lng) if lat is not None or lng is not None else None
        return await self._with_deadline(
            self._terms_stations(terms, origin, max_per_area, max_distance_km, driving),
            timeout,
            f"Search of {len(terms)} areas",
        )

    async def nearby_registry_stations(
        self,
        lat,
        lng,
        radius_km: float | None = None,
        driving: bool = True,
        max_stations: int | None = None,
    ) -> list[Station]:
        """The nearest stations already in the registry; no harvesting."""
        origin = validate_origin(lat, lng)
        limit = max_stations or settings.nearby_max_stations
        stations = await self.registry.nearby(origin[0], origin[1], radius_km or settings.default_search_radius_km)
        if len(stations) > limit:
            logger.info(f"{len(stations)} registry stations in range, keeping the nearest {limit}")
        return await self._enrich(origin, stations[:limit], driving)

    async def _query(
        self,
        origin: tuple[float, float],
        lat,
        lng,
        preferences: UserPreferences,
        sort_by: SortOption | str,
        force_refresh: bool,
    ) -> QueryOutcome:
        entry = None if force_refresh else self.cache.get(lat, lng)
        if entry is not None:
            logger.info(f"Serving {len(entry.stations)} cached stations for ({lat}, {lng})")
            return self._ranked(entry.stations, preferences, sort_by, entry.fetched_at, from_cache=True)

        stations = await self._smart_stations(origin, preferences.search_radius_km, None, None, True)
        if not stations:
            # Empty results are never cached.
            return QueryOutcome(status="no_data", from_cache=False)
        entry = self.cache.set(lat, lng, stations)
        return self._ranked(entry.stations, preferences, sort_by, entry.fetched_at, from_cache=False)

    @staticmethod
    def _ranked(
        stations: list[Station],
        preferences: UserPreferences,
        sort_by: SortOption | str,
        fetched_at: float,
        from_cache: bool,
    ) -> QueryOutcome:
        results = sort_results(rank(stations, preferences), sort_by)
        return QueryOutcome(
            status="ok" if results else "no_data",
            results=results,
            fetched_at=fetched_at,
            from_cache=from_cache,
        )

    async def query(
        self,
        lat,
        lng,
        preferences: UserPreferences,
        sort_by: SortOption | str = SortOption.PRICE,
        force_refresh: bool = False,
        timeout: float | None = None,
    ) -> QueryOutcome:
        """Ranked stations for an origin, served from the request cache when fresh.

        Ranking always runs against the caller's current preferences. If the
        deadline expires, in-flight work is cancelled and nothing partial is
        returned or cached. An empty harvest is reported as ``no_data`` but
        never cached.
        """
        origin = validate_origin(lat, lng)
        return await self._with_deadline(
            self._query(origin, lat, lng, preferences, sort_by, force_refresh),
            timeout,
            f"Station query for ({lat}, {lng})",
        )
