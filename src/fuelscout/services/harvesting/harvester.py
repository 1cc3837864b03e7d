"""Sequential, paced station harvesting with block detection.

A single :class:`StationSource` session is reused for every area search and
detail fetch of one run. Requests are never issued in parallel: one
consistent, human-paced identity is what keeps the source from blocking us.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Sequence

from ...config import settings
from ...errors import HarvestBlockedError, HarvestError, TRY_AGAIN_LATER
from ...models.domain import Listing, RegistryEntry, Station
from ...persistence.registry import StationRegistry
from ..geospatial import haversine_km
from .source import StationSource

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class HarvestResult:
    stations: list[Station]
    unresolved: list[str] = field(default_factory=list)
    searched_terms: list[str] = field(default_factory=list)
    empty_terms: list[str] = field(default_factory=list)
    cooldowns: int = 0
    registry_hits: int = 0
    detail_fetches: int = 0


class Harvester:
    def __init__(
        self,
        source: StationSource,
        registry: StationRegistry,
        *,
        area_delay: float | None = None,
        area_jitter: float | None = None,
        detail_delay: float | None = None,
        detail_jitter: float | None = None,
        block_threshold: int | None = None,
        block_cooldown: float | None = None,
        max_per_area: int | None = None,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.source = source
        self.registry = registry
        self.area_delay = settings.area_delay_seconds if area_delay is None else area_delay
        self.area_jitter = settings.area_jitter_seconds if area_jitter is None else area_jitter
        self.detail_delay = settings.detail_delay_seconds if detail_delay is None else detail_delay
        self.detail_jitter = settings.detail_jitter_seconds if detail_jitter is None else detail_jitter
        self.block_threshold = block_threshold or settings.block_threshold
        self.block_cooldown = settings.block_cooldown_seconds if block_cooldown is None else block_cooldown
        self.max_per_area = max_per_area or settings.max_per_area
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def _pace(self, base: float, jitter: float) -> None:
        delay = base + self._rng.uniform(0, jitter) if jitter > 0 else base
        if delay > 0:
            await self._sleep(delay)

    async def _cool_down(self, streak: int) -> None:
        logger.warning(
            f"{streak} consecutive empty area searches, possible rate limiting. "
            f"Cooling down for {self.block_cooldown:.0f}s and restarting the session"
        )
        await self._sleep(self.block_cooldown)
        await self.source.restart()

    async def _search_areas(
        self, terms: Sequence[str], max_per_area: int, result: HarvestResult
    ) -> dict[str, Station]:
        found: dict[str, Station] = {}
        consecutive_empty = 0

        for index, term in enumerate(terms):
            if consecutive_empty >= self.block_threshold:
                await self._cool_down(consecutive_empty)
                result.cooldowns += 1
                consecutive_empty = 0
            if index > 0:
                await self._pace(self.area_delay, self.area_jitter)

            logger.info(f"[{index + 1}/{len(terms)}] Searching: {term}")
            result.searched_terms.append(term)
            try:
                listings: list[Listing] = await self.source.search(term)
            except HarvestError:
                raise
            except Exception as e:
                logger.warning(f"Area search failed for '{term}': {e}")
                listings = []

            if not listings:
                consecutive_empty += 1
                result.empty_terms.append(term)
                logger.info(f"  Found 0 stations for '{term}' (consecutive empty: {consecutive_empty})")
                continue

            consecutive_empty = 0
            for listing in listings[:max_per_area]:
                if listing.id in found:
                    continue
                found[listing.id] = Station(id=listing.id, name=listing.name, price_per_unit=listing.price_per_unit)
            logger.info(f"  Found {len(listings)} stations (total unique: {len(found)})")

        if not found and (result.cooldowns > 0 or consecutive_empty >= self.block_threshold):
            raise HarvestBlockedError(
                message="The price source is not returning results right now.",
                remediation=TRY_AGAIN_LATER,
                details=f"{len(result.empty_terms)} of {len(terms)} area searches were empty",
            )
        return found

    async def _lookup_registry(self, ids: list[str]) -> dict[str, RegistryEntry]:
        try:
            return await self.registry.lookup(ids)
        except Exception as e:
            logger.warning(f"Registry lookup failed, fetching all details: {e}")
            return {}

    async def _resolve_coordinates(self, stations: dict[str, Station], result: HarvestResult) -> None:
        known = await self._lookup_registry(list(stations))
        for station_id, entry in known.items():
            station = stations.get(station_id)
            if station is None:
                continue
            station.lat, station.lng = entry.lat, entry.lng
            station.address = station.address or entry.address
        result.registry_hits = len(known)

        pending = [station for station in stations.values() if not station.has_coordinates]
        if pending:
            logger.info(f"{len(known)} stations known to registry, fetching {len(pending)} detail pages")

        resolved: list[RegistryEntry] = []
        for index, station in enumerate(pending):
            if index > 0 or result.searched_terms:
                await self._pace(self.detail_delay, self.detail_jitter)
            result.detail_fetches += 1
            try:
                detail = await self.source.fetch_detail(station.id)
            except HarvestError:
                raise
            except Exception as e:
                logger.warning(f"Failed to get details for station {station.id}: {e}")
                continue
            if detail is None:
                logger.warning(f"No coordinates found for station {station.id}")
                continue
            station.lat, station.lng = detail.lat, detail.lng
            station.address = detail.address or station.address
            resolved.append(
                RegistryEntry(id=station.id, name=station.name, address=station.address, lat=detail.lat, lng=detail.lng)
            )

        if resolved:
            try:
                await self.registry.upsert(resolved)
            except Exception as e:
                logger.warning(f"Failed to save {len(resolved)} stations to registry: {e}")

    async def harvest(
        self,
        terms: Iterable[str],
        origin: tuple[float, float] | None = None,
        max_per_area: int | None = None,
        max_distance_km: float | None = None,
    ) -> HarvestResult:
        """Search every area term in order and return stations with coordinates."""
        unique_terms = [term for term in dict.fromkeys(t.strip() for t in terms) if term]
        result = HarvestResult(stations=[])
        if not unique_terms:
            return result

        await self.source.start()
        found = await self._search_areas(unique_terms, max_per_area or self.max_per_area, result)
        await self._resolve_coordinates(found, result)

        stations: list[Station] = []
        for station in found.values():
            if not station.has_coordinates:
                result.unresolved.append(station.id)
                continue
            if origin is not None:
                station.straight_line_distance_km = haversine_km(origin[0], origin[1], station.lat, station.lng)
                if max_distance_km is not None and station.straight_line_distance_km > max_distance_km:
                    continue
            stations.append(station)

        stations.sort(key=lambda s: (s.straight_line_distance_km is None, s.straight_line_distance_km or 0.0))
        result.stations = stations
        logger.info(
            f"Harvested {len(stations)} stations from {len(unique_terms)} areas "
            f"({result.registry_hits} from registry, {len(result.unresolved)} unresolved, "
            f"{result.cooldowns} cool-downs)"
        )
        return result


async def populate_registry(
    terms: Sequence[str],
    source: StationSource,
    registry: StationRegistry,
    **harvester_options,
) -> HarvestResult:
    """Warm the registry for a list of area terms, without an origin."""
    harvester = Harvester(source, registry, **harvester_options)
    try:
        return await harvester.harvest(terms)
    finally:
        await source.close()
