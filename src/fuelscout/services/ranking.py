"""Net-savings ranking of priced stations against the nearest one.

The nearest priced station is the baseline: filling up there costs no
detour. Every other station is scored by what its lower (or higher) price
saves on a fill, minus the fuel burned driving the extra round trip.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence

from ..models.domain import RankedResult, Station, UserPreferences

# Assume the driver tops up three quarters of the tank.
FILL_FRACTION = 0.75


class SortOption(str, Enum):
    PRICE = "price"
    DISTANCE = "distance"
    SAVINGS = "savings"
    WORTH_IT = "worth_it"


def _money(value: float) -> float:
    return round(value, 2)


def calculate_net_savings(
    baseline_price: float,
    station_price: float,
    liters: float,
    detour_km: float,
    efficiency_l_per_100km: float,
) -> tuple[float, float, float]:
    """Return ``(gross_savings, detour_cost, net_savings)`` rounded to cents."""
    gross_savings = (baseline_price - station_price) * liters
    fuel_used = detour_km / 100 * efficiency_l_per_100km
    detour_cost = fuel_used * baseline_price
    gross, cost = _money(gross_savings), _money(detour_cost)
    return gross, cost, _money(gross - cost)


def select_baseline(stations: Sequence[Station]) -> Station | None:
    """First station with the smallest effective distance."""
    baseline: Station | None = None
    for station in stations:
        distance = station.effective_distance_km
        if distance is None:
            continue
        if baseline is None or distance < baseline.effective_distance_km:
            baseline = station
    return baseline


def rank(stations: Iterable[Station], preferences: UserPreferences) -> list[RankedResult]:
    """Score every priced station; results come back sorted by ascending price."""
    priced = [
        station
        for station in stations
        if station.price_per_unit is not None and station.effective_distance_km is not None
    ]
    baseline = select_baseline(priced)
    if baseline is None:
        return []

    baseline_price = baseline.price_per_unit
    baseline_distance = baseline.effective_distance_km
    liters_to_fill = preferences.tank_size * FILL_FRACTION

    results: list[RankedResult] = []
    for station in priced:
        detour_km = max(0.0, (station.effective_distance_km - baseline_distance) * 2)
        gross, cost, net = calculate_net_savings(
            baseline_price,
            station.price_per_unit,
            liters_to_fill,
            detour_km,
            preferences.fuel_efficiency,
        )
        results.append(
            RankedResult(
                station=station,
                gross_savings=gross,
                detour_cost=cost,
                net_savings=net,
                is_baseline=station.id == baseline.id,
                worth_it=net >= preferences.min_savings,
                detour_km=round(detour_km, 2),
            )
        )
    return sort_results(results, SortOption.PRICE)


def sort_results(results: Iterable[RankedResult], sort_by: SortOption | str = SortOption.PRICE) -> list[RankedResult]:
    """Presentation ordering; stable, so equal keys keep their input order."""
    option = SortOption(sort_by)
    items = list(results)
    if option is SortOption.PRICE:
        return sorted(items, key=lambda r: r.station.price_per_unit)
    if option is SortOption.DISTANCE:
        return sorted(items, key=lambda r: r.station.effective_distance_km)
    if option is SortOption.SAVINGS:
        return sorted(items, key=lambda r: -r.net_savings)
    # Worth-it first by highest net savings, then everything else by price.
    worth = sorted((r for r in items if r.worth_it), key=lambda r: -r.net_savings)
    rest = sorted((r for r in items if not r.worth_it), key=lambda r: r.station.price_per_unit)
    return worth + rest
