"""Domain models for stations, preferences and ranking results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional


@dataclass(slots=True)
class Listing:
    """One station row parsed from an area search results page."""

    id: str
    name: str
    price_per_unit: Optional[float] = None


@dataclass(slots=True)
class StationDetail:
    """Coordinates and address parsed from a station detail page."""

    lat: float
    lng: float
    address: Optional[str] = None


@dataclass(slots=True)
class Station:
    """A harvested fuel retailer, enriched as it moves through the pipeline."""

    id: str
    name: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    price_per_unit: Optional[float] = None
    straight_line_distance_km: Optional[float] = None
    driving_distance_km: Optional[float] = None
    driving_duration_min: Optional[int] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def effective_distance_km(self) -> Optional[float]:
        """Driving distance when known, otherwise the straight-line distance."""
        if self.driving_distance_km is not None:
            return self.driving_distance_km
        return self.straight_line_distance_km


@dataclass(slots=True)
class RegistryEntry:
    """Persisted static identity of a station."""

    id: str
    name: str
    lat: float
    lng: float
    address: Optional[str] = None
    last_updated: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class UserPreferences:
    tank_size: float = 50.0
    fuel_efficiency: float = 10.0
    max_detour_km: float = 20.0
    min_savings: float = 1.0
    search_radius_km: float = 15.0


@dataclass(slots=True)
class RankedResult:
    station: Station
    gross_savings: float
    detour_cost: float
    net_savings: float
    is_baseline: bool
    worth_it: bool
    detour_km: float = 0.0


@dataclass(slots=True)
class CacheEntry:
    stations: List[Station]
    fetched_at: float


@dataclass(slots=True)
class QueryOutcome:
    """Result of a ranked query; ``no_data`` is a valid terminal state, not an error."""

    status: Literal["ok", "no_data"]
    results: List[RankedResult] = field(default_factory=list)
    fetched_at: Optional[float] = None
    from_cache: bool = False
