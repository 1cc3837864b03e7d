"""Station discovery endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from ...errors import FuelScoutError
from ...schemas.stations import (
    MultiAreaRequest,
    RankedQueryRequest,
    RankedStationModel,
    RankedStationsResponse,
    StationModel,
    StationsResponse,
)
from ...services.pipeline import StationPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stations", tags=["stations"])


@lru_cache()
def get_pipeline() -> StationPipeline:
    return StationPipeline()


def _stations_response(stations) -> StationsResponse:
    return StationsResponse(count=len(stations), stations=[StationModel.from_station(s) for s in stations])


def _unexpected_error(exc: Exception, action: str) -> JSONResponse:
    logger.exception(f"Error {action}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": f"Failed {action}. Please try again later."},
    )


@router.get("/smart", response_model=StationsResponse)
async def smart_stations(
    lat: Optional[float] = Query(default=None),
    lng: Optional[float] = Query(default=None),
    radius: Optional[float] = Query(default=None, gt=0, description="Area search radius in km"),
    max_per_area: Optional[int] = Query(default=None, alias="maxPerArea", ge=1),
    max_distance: Optional[float] = Query(default=None, alias="maxDistance", gt=0),
    pipeline: StationPipeline = Depends(get_pipeline),
):
    """Resolve nearby areas, harvest them and return the raw, unranked station list."""
    try:
        stations = await pipeline.smart_stations(
            lat, lng, radius_km=radius, max_per_area=max_per_area, max_distance_km=max_distance
        )
    except FuelScoutError:
        raise
    except Exception as exc:
        return _unexpected_error(exc, "fetching stations")
    return _stations_response(stations)


@router.get("/by-area/{area_term}", response_model=StationsResponse)
async def stations_by_area(
    area_term: str,
    lat: Optional[float] = Query(default=None),
    lng: Optional[float] = Query(default=None),
    max_stations: Optional[int] = Query(default=None, alias="max", ge=1),
    driving: bool = Query(default=False),
    pipeline: StationPipeline = Depends(get_pipeline),
):
    try:
        stations = await pipeline.area_stations(area_term, lat, lng, max_stations=max_stations, driving=driving)
    except FuelScoutError:
        raise
    except Exception as exc:
        return _unexpected_error(exc, f"searching '{area_term}'")
    return _stations_response(stations)


@router.post("/multi", response_model=StationsResponse)
async def stations_multi(payload: MultiAreaRequest, pipeline: StationPipeline = Depends(get_pipeline)):
    try:
        stations = await pipeline.multi_area_stations(
            payload.search_terms,
            payload.lat,
            payload.lng,
            max_per_area=payload.max_per_area,
            max_distance_km=payload.max_distance,
            driving=payload.driving,
        )
    except FuelScoutError:
        raise
    except Exception as exc:
        return _unexpected_error(exc, "searching areas")
    return _stations_response(stations)


@router.get("/nearby", response_model=StationsResponse)
async def stations_nearby(
    lat: Optional[float] = Query(default=None),
    lng: Optional[float] = Query(default=None),
    radius: Optional[float] = Query(default=None, gt=0),
    max_stations: Optional[int] = Query(default=None, alias="max", ge=1),
    driving: bool = Query(default=True),
    pipeline: StationPipeline = Depends(get_pipeline),
):
    """Stations already known to the registry, without harvesting."""
    try:
        stations = await pipeline.nearby_registry_stations(
            lat, lng, radius_km=radius, driving=driving, max_stations=max_stations
        )
    except FuelScoutError:
        raise
    except Exception as exc:
        return _unexpected_error(exc, "reading nearby stations")
    return _stations_response(stations)


@router.post("/ranked", response_model=RankedStationsResponse)
async def ranked_stations(payload: RankedQueryRequest, pipeline: StationPipeline = Depends(get_pipeline)):
    """Harvest (or reuse cached) stations and rank them by net savings."""
    try:
        outcome = await pipeline.query(
            payload.lat,
            payload.lng,
            payload.preferences.to_domain(),
            sort_by=payload.sort_by,
            force_refresh=payload.force_refresh,
        )
    except FuelScoutError:
        raise
    except Exception as exc:
        return _unexpected_error(exc, "ranking stations")
    return RankedStationsResponse(
        status=outcome.status,
        from_cache=outcome.from_cache,
        fetched_at=outcome.fetched_at,
        count=len(outcome.results),
        stations=[RankedStationModel.from_result(result) for result in outcome.results],
    )
