"""Station registry: durable id -> coordinates cache.

A station present in the registry never needs its detail page fetched again.
Writes are idempotent upserts keyed by station id and are best effort: a
failed write is logged and the caller keeps its in-memory results.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol, Sequence

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import RegistryEntry, Station
from ..services.geospatial import haversine_km

logger = logging.getLogger(__name__)


class StationRegistry(Protocol):
    async def lookup(self, ids: Sequence[str]) -> dict[str, RegistryEntry]: ...

    async def upsert(self, entries: Iterable[RegistryEntry]) -> int: ...

    async def nearby(self, lat: float, lng: float, radius_km: float) -> list[Station]: ...


def _persistable(entries: Iterable[RegistryEntry]) -> list[RegistryEntry]:
    return [entry for entry in entries if entry.lat is not None and entry.lng is not None]


def _within_radius(entries: Iterable[RegistryEntry], lat: float, lng: float, radius_km: float) -> list[Station]:
    stations: list[Station] = []
    for entry in entries:
        distance = haversine_km(lat, lng, entry.lat, entry.lng)
        if distance > radius_km:
            continue
        stations.append(
            Station(
                id=entry.id,
                name=entry.name,
                address=entry.address,
                lat=entry.lat,
                lng=entry.lng,
                straight_line_distance_km=distance,
            )
        )
    stations.sort(key=lambda station: station.straight_line_distance_km)
    return stations


def entry_to_row(entry: RegistryEntry, updated_at: datetime) -> dict[str, Any]:
    return {
        "id": entry.id,
        "name": entry.name,
        "address": entry.address or "",
        "lat": entry.lat,
        "lng": entry.lng,
        "updated_at": updated_at.isoformat(),
    }


def row_to_entry(row: dict[str, Any]) -> RegistryEntry:
    updated_at = row.get("updated_at")
    if isinstance(updated_at, str):
        updated_at = datetime.fromisoformat(updated_at.replace("Z", "+00:00"))
    return RegistryEntry(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        address=row.get("address") or None,
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        last_updated=updated_at,
    )


class MemoryStationRegistry:
    """Process-local registry used when Supabase is not configured, and in tests."""

    def __init__(self, entries: Iterable[RegistryEntry] | None = None) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, RegistryEntry] = {}
        for entry in entries or ():
            self._entries[entry.id] = entry

    async def lookup(self, ids: Sequence[str]) -> dict[str, RegistryEntry]:
        with self._lock:
            return {station_id: self._entries[station_id] for station_id in ids if station_id in self._entries}

    async def upsert(self, entries: Iterable[RegistryEntry]) -> int:
        rows = _persistable(entries)
        now = datetime.now(timezone.utc)
        with self._lock:
            for entry in rows:
                self._entries[entry.id] = RegistryEntry(
                    id=entry.id,
                    name=entry.name,
                    address=entry.address,
                    lat=entry.lat,
                    lng=entry.lng,
                    last_updated=now,
                )
        return len(rows)

    async def nearby(self, lat: float, lng: float, radius_km: float) -> list[Station]:
        with self._lock:
            entries = list(self._entries.values())
        return _within_radius(entries, lat, lng, radius_km)

    def __len__(self) -> int:
        return len(self._entries)


class SupabaseStationRegistry:
    """Registry backed by the ``stations`` table (id PK, name, address, lat, lng, updated_at)."""

    def __init__(self, client=None, table: str | None = None, batch_size: int | None = None) -> None:
        self.client = client if client is not None else get_supabase_client()
        if self.client is None:
            raise ValueError("Supabase is not configured.")
        self.table = table or settings.registry_table
        self.batch_size = batch_size or settings.registry_batch_size

    def _lookup_sync(self, ids: list[str]) -> dict[str, RegistryEntry]:
        found: dict[str, RegistryEntry] = {}
        # Batched to stay under PostgREST URL limits
        for i in range(0, len(ids), self.batch_size):
            batch = ids[i : i + self.batch_size]
            try:
                response = self.client.table(self.table).select("*").in_("id", batch).execute()
            except Exception as e:
                logger.warning(f"Registry lookup failed for batch {i // self.batch_size + 1}: {e}")
                continue
            for row in response.data or []:
                try:
                    entry = row_to_entry(row)
                except (KeyError, ValueError, TypeError) as e:
                    logger.warning(f"Skipping invalid registry row {row.get('id')}: {e}")
                    continue
                found[entry.id] = entry
        return found

    def _upsert_sync(self, rows: list[dict[str, Any]]) -> int:
        written = 0
        for i in range(0, len(rows), self.batch_size):
            batch = rows[i : i + self.batch_size]
            try:
                self.client.table(self.table).upsert(batch, on_conflict="id").execute()
                written += len(batch)
            except Exception as e:
                logger.warning(f"Registry upsert failed for batch {i // self.batch_size + 1}: {e}")
        return written

    def _all_sync(self) -> list[RegistryEntry]:
        try:
            response = self.client.table(self.table).select("*").execute()
        except Exception as e:
            logger.warning(f"Registry scan failed: {e}")
            return []
        entries: list[RegistryEntry] = []
        for row in response.data or []:
            try:
                entries.append(row_to_entry(row))
            except (KeyError, ValueError, TypeError):
                continue
        return entries

    async def lookup(self, ids: Sequence[str]) -> dict[str, RegistryEntry]:
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return {}
        return await asyncio.to_thread(self._lookup_sync, unique_ids)

    async def upsert(self, entries: Iterable[RegistryEntry]) -> int:
        now = datetime.now(timezone.utc)
        rows = [entry_to_row(entry, now) for entry in _persistable(entries)]
        if not rows:
            return 0
        written = await asyncio.to_thread(self._upsert_sync, rows)
        logger.info(f"Saved {written}/{len(rows)} stations to registry")
        return written

    async def nearby(self, lat: float, lng: float, radius_km: float) -> list[Station]:
        entries = await asyncio.to_thread(self._all_sync)
        return _within_radius(entries, lat, lng, radius_km)


_memory_registry = MemoryStationRegistry()


def get_station_registry() -> StationRegistry:
    """Supabase registry when configured, otherwise the process-local one."""
    client = get_supabase_client()
    if client is None:
        return _memory_registry
    return SupabaseStationRegistry(client=client)
