import asyncio

import pytest
from fastapi.testclient import TestClient

from src.fuelscout.api.routes import stations as stations_routes
from src.fuelscout.errors import HarvestBlockedError, TRY_AGAIN_LATER
from src.fuelscout.main import create_app
from src.fuelscout.models.domain import RegistryEntry, Station
from src.fuelscout.persistence.registry import MemoryStationRegistry
from src.fuelscout.services.cache import RequestCache
from src.fuelscout.services.harvesting.harvester import HarvestResult
from src.fuelscout.services.pipeline import StationPipeline
from src.fuelscout.services.routing.distance_matrix import DistanceMatrixClient


class DummySource:
    async def close(self):
        return None


class DummyGeocoder:
    async def reverse_geocode(self, lat, lng):
        return "Oshawa"

    async def nearby_place_names(self, lat, lng, radius_km):
        return ["Whitby"]


class DummyHarvester:
    def __init__(self, error: Exception | None = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.terms: list[list[str]] = []

    async def harvest(self, terms, origin=None, max_per_area=None, max_distance_km=None):
        self.terms.append(list(terms))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return HarvestResult(
            stations=[
                Station(id="A", name="Esso", lat=43.91, lng=-78.87, price_per_unit=1.50, straight_line_distance_km=2.0),
                Station(id="B", name="Shell", lat=43.95, lng=-78.87, price_per_unit=1.40, straight_line_distance_km=6.0),
            ]
        )


def _client(harvester: DummyHarvester, **pipeline_options) -> TestClient:
    registry = MemoryStationRegistry([RegistryEntry(id="R1", name="Pioneer", lat=43.91, lng=-78.87, address="1 King St")])
    pipeline = StationPipeline(
        source_factory=DummySource,
        registry=registry,
        geocoder=DummyGeocoder(),
        distance_client=DistanceMatrixClient(api_key=""),
        cache=RequestCache(ttl_seconds=1800),
        harvester_factory=lambda source, registry: harvester,
        **pipeline_options,
    )
    app = create_app()
    app.dependency_overrides[stations_routes.get_pipeline] = lambda: pipeline
    return TestClient(app)


@pytest.fixture
def harvester() -> DummyHarvester:
    return DummyHarvester()


def test_health_endpoints(harvester):
    client = _client(harvester)
    assert client.get("/api/health").json() == {"status": "ok"}
    services = client.get("/api/health/services").json()
    assert "block_threshold" in services
    assert client.get("/").json()["status"] == "running"


def test_smart_stations_returns_raw_list(harvester):
    response = _client(harvester).get("/api/stations/smart", params={"lat": 43.9, "lng": -78.87})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["count"] == 2
    assert payload["stations"][0]["id"] == "A"
    assert payload["stations"][0]["distance_km"] == 2.0
    assert "net_savings" not in payload["stations"][0]
    assert harvester.terms == [["Oshawa", "Whitby"]]


def test_by_area_without_origin(harvester):
    response = _client(harvester).get("/api/stations/by-area/Oshawa", params={"max": 5})

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert harvester.terms == [["Oshawa"]]


def test_multi_area_request(harvester):
    response = _client(harvester).post(
        "/api/stations/multi",
        json={"searchTerms": ["Oshawa", "Ajax"], "lat": 43.9, "lng": -78.87, "maxPerArea": 3, "maxDistance": 10},
    )

    assert response.status_code == 200
    assert harvester.terms == [["Oshawa", "Ajax"]]


def test_multi_area_requires_terms(harvester):
    response = _client(harvester).post("/api/stations/multi", json={"searchTerms": []})
    assert response.status_code == 422


def test_nearby_reads_registry(harvester):
    response = _client(harvester).get("/api/stations/nearby", params={"lat": 43.9, "lng": -78.87, "radius": 5})

    assert response.status_code == 200
    assert [s["id"] for s in response.json()["stations"]] == ["R1"]
    assert harvester.terms == []


def test_ranked_query_then_cache_hit(harvester):
    client = _client(harvester)
    body = {"lat": 43.9, "lng": -78.87, "preferences": {"tank_size": 50, "fuel_efficiency": 10, "min_savings": 1}}

    first = client.post("/api/stations/ranked", json=body).json()
    assert first["status"] == "ok"
    assert first["from_cache"] is False
    assert [s["id"] for s in first["stations"]] == ["B", "A"]
    b = first["stations"][0]
    assert b["net_savings"] == 2.55
    assert b["worth_it"] is True
    assert first["stations"][1]["is_baseline"] is True

    second = client.post("/api/stations/ranked", json={**body, "sortBy": "distance"}).json()
    assert second["from_cache"] is True
    assert [s["id"] for s in second["stations"]] == ["A", "B"]
    assert len(harvester.terms) == 1


def test_invalid_origin_is_400(harvester):
    response = _client(harvester).get("/api/stations/smart", params={"lat": 123, "lng": -78.87})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert harvester.terms == []


def test_missing_origin_on_ranked_is_400(harvester):
    response = _client(harvester).post("/api/stations/ranked", json={"lng": -78.87})
    assert response.status_code == 400


def test_blocked_source_is_503_with_remediation():
    error = HarvestBlockedError(message="The price source is not returning results right now.", remediation=TRY_AGAIN_LATER)
    response = _client(DummyHarvester(error=error)).get("/api/stations/smart", params={"lat": 43.9, "lng": -78.87})

    assert response.status_code == 503
    payload = response.json()
    assert payload["success"] is False
    assert TRY_AGAIN_LATER in payload["error"]


def test_ranked_timeout_is_504():
    client = _client(DummyHarvester(delay=2), query_timeout=0.05)
    response = client.post("/api/stations/ranked", json={"lat": 43.9, "lng": -78.87})

    assert response.status_code == 504
    assert response.json()["success"] is False


def test_unexpected_error_is_500():
    response = _client(DummyHarvester(error=RuntimeError("boom"))).get("/api/stations/by-area/Oshawa")

    assert response.status_code == 500
    payload = response.json()
    assert payload == {"success": False, "error": "Failed searching 'Oshawa'. Please try again later."}


def test_smart_timeout_is_504():
    client = _client(DummyHarvester(delay=2), query_timeout=0.05)
    response = client.get("/api/stations/smart", params={"lat": 43.9, "lng": -78.87})

    assert response.status_code == 504
    assert response.json()["success"] is False


def test_nearby_honours_max(harvester):
    response = _client(harvester).get("/api/stations/nearby", params={"lat": 43.9, "lng": -78.87, "max": 1})

    assert response.status_code == 200
    assert response.json()["count"] == 1
