import pytest

from src.fuelscout.models.domain import Station, UserPreferences
from src.fuelscout.services.ranking import SortOption, calculate_net_savings, rank, select_baseline, sort_results


def _station(sid: str, price: float | None, distance: float | None, driving: float | None = None) -> Station:
    return Station(
        id=sid,
        name=f"Station {sid}",
        lat=43.9,
        lng=-78.87,
        price_per_unit=price,
        straight_line_distance_km=distance,
        driving_distance_km=driving,
    )


PREFS = UserPreferences(tank_size=50, fuel_efficiency=10, min_savings=1, max_detour_km=20)


def _by_id(results):
    return {result.station.id: result for result in results}


def test_reference_scenario_detour_and_savings():
    results = _by_id(rank([_station("A", 1.50, 2.0), _station("B", 1.40, 6.0)], PREFS))

    assert results["A"].is_baseline is True
    b = results["B"]
    assert b.is_baseline is False
    assert b.detour_km == 8.0
    assert b.gross_savings == pytest.approx(3.75)
    assert b.detour_cost == pytest.approx(1.20)
    assert b.net_savings == pytest.approx(2.55)
    assert b.worth_it is True


def test_baseline_is_nearest_priced_station_and_unique():
    stations = [
        _station("far", 1.30, 9.0),
        _station("unpriced", None, 0.5),
        _station("near", 1.55, 1.0),
        _station("mid", 1.45, 4.0),
    ]
    results = rank(stations, PREFS)

    assert {r.station.id for r in results} == {"far", "near", "mid"}
    baselines = [r for r in results if r.is_baseline]
    assert len(baselines) == 1
    assert baselines[0].station.id == "near"


def test_driving_distance_preferred_over_straight_line():
    stations = [_station("A", 1.50, 2.0, driving=10.0), _station("B", 1.45, 6.0, driving=5.0)]
    assert select_baseline(stations).id == "B"


def test_baseline_tie_goes_to_first_station():
    stations = [_station("first", 1.50, 3.0), _station("second", 1.40, 3.0)]
    results = _by_id(rank(stations, PREFS))
    assert results["first"].is_baseline
    assert not results["second"].is_baseline


def test_same_distance_as_baseline_has_no_detour_cost():
    results = _by_id(rank([_station("A", 1.50, 2.0), _station("C", 1.40, 2.0)], PREFS))
    c = results["C"]
    assert c.detour_cost == 0
    assert c.net_savings == c.gross_savings


def test_net_savings_identity_holds_for_every_station():
    stations = [_station(str(i), 1.30 + i * 0.037, 1.0 + i * 1.7) for i in range(8)]
    for result in rank(stations, PREFS):
        assert result.net_savings == round(result.gross_savings - result.detour_cost, 2)
        if result.station.effective_distance_km <= 1.0:
            assert result.detour_cost == 0


def test_worth_it_boundary_is_inclusive():
    prefs = UserPreferences(tank_size=50, fuel_efficiency=10, min_savings=3.75)
    results = _by_id(rank([_station("A", 1.50, 2.0), _station("C", 1.40, 2.0)], prefs))
    assert results["C"].net_savings == pytest.approx(3.75)
    assert results["C"].worth_it is True


def test_more_expensive_station_still_surfaces_as_loss():
    results = _by_id(rank([_station("A", 1.40, 2.0), _station("pricey", 1.60, 3.0)], PREFS))
    pricey = results["pricey"]
    assert pricey.gross_savings < 0
    assert pricey.net_savings < 0
    assert pricey.worth_it is False


def test_no_priced_stations_returns_empty():
    assert rank([_station("A", None, 1.0), _station("B", None, 2.0)], PREFS) == []
    assert rank([], PREFS) == []


def test_stations_without_any_distance_are_not_ranked():
    results = rank([_station("A", 1.50, 2.0), _station("nowhere", 1.10, None)], PREFS)
    assert [r.station.id for r in results] == ["A"]


def test_default_order_is_ascending_price():
    stations = [_station("A", 1.50, 2.0), _station("B", 1.40, 6.0), _station("C", 1.45, 3.0)]
    assert [r.station.id for r in rank(stations, PREFS)] == ["B", "C", "A"]


def test_alternate_sort_orders():
    stations = [
        _station("A", 1.50, 2.0),   # baseline, net 0
        _station("B", 1.40, 6.0),   # net 2.55, worth it
        _station("C", 1.45, 2.5),   # gross 1.88, cost 0.15, net 1.73, worth it
        _station("D", 1.48, 30.0),  # long detour, loss
    ]
    results = rank(stations, PREFS)

    assert [r.station.id for r in sort_results(results, SortOption.DISTANCE)] == ["A", "C", "B", "D"]
    assert [r.station.id for r in sort_results(results, "savings")] == ["B", "C", "A", "D"]
    assert [r.station.id for r in sort_results(results, SortOption.WORTH_IT)] == ["B", "C", "D", "A"]


def test_calculate_net_savings_rounds_to_cents():
    gross, cost, net = calculate_net_savings(1.50, 1.40, 37.5, 8.0, 10.0)
    assert (gross, cost, net) == (3.75, 1.2, 2.55)
