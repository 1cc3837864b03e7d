"""Station request/response schemas."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import RankedResult, Station, UserPreferences
from ..services.ranking import SortOption


class StationModel(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    price_per_unit: Optional[float] = None
    distance_km: Optional[float] = Field(default=None, description="Straight-line distance from the origin.")
    driving_distance_km: Optional[float] = None
    driving_duration_min: Optional[int] = None

    @classmethod
    def from_station(cls, station: Station) -> "StationModel":
        return cls(
            id=station.id,
            name=station.name,
            address=station.address,
            lat=station.lat,
            lng=station.lng,
            price_per_unit=station.price_per_unit,
            distance_km=station.straight_line_distance_km,
            driving_distance_km=station.driving_distance_km,
            driving_duration_min=station.driving_duration_min,
        )


class RankedStationModel(StationModel):
    gross_savings: float
    detour_cost: float
    net_savings: float
    detour_km: float
    is_baseline: bool
    worth_it: bool

    @classmethod
    def from_result(cls, result: RankedResult) -> "RankedStationModel":
        base = StationModel.from_station(result.station).model_dump()
        return cls(
            **base,
            gross_savings=result.gross_savings,
            detour_cost=result.detour_cost,
            net_savings=result.net_savings,
            detour_km=result.detour_km,
            is_baseline=result.is_baseline,
            worth_it=result.worth_it,
        )


class StationsResponse(BaseModel):
    success: bool = True
    count: int
    stations: List[StationModel]


class MultiAreaRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    search_terms: List[str] = Field(..., alias="searchTerms", min_length=1)
    lat: Optional[float] = None
    lng: Optional[float] = None
    max_per_area: Optional[int] = Field(default=None, alias="maxPerArea", ge=1)
    max_distance: Optional[float] = Field(default=None, alias="maxDistance", gt=0)
    driving: bool = False


class PreferencesModel(BaseModel):
    tank_size: float = Field(default=50.0, gt=0, description="Tank size in litres.")
    fuel_efficiency: float = Field(default=10.0, gt=0, description="Consumption in L/100 km.")
    max_detour_km: float = Field(default=20.0, ge=0)
    min_savings: float = Field(default=1.0, ge=0)
    search_radius_km: float = Field(default=15.0, gt=0)

    def to_domain(self) -> UserPreferences:
        return UserPreferences(**self.model_dump())


class RankedQueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lat: Optional[float] = None
    lng: Optional[float] = None
    preferences: PreferencesModel = Field(default_factory=PreferencesModel)
    sort_by: SortOption = Field(default=SortOption.PRICE, alias="sortBy")
    force_refresh: bool = Field(default=False, alias="forceRefresh")


class RankedStationsResponse(BaseModel):
    success: bool = True
    status: Literal["ok", "no_data"]
    from_cache: bool
    fetched_at: Optional[float] = None
    count: int
    stations: List[RankedStationModel]
