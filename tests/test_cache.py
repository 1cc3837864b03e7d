from src.fuelscout.models.domain import Station
from src.fuelscout.services.cache import RequestCache, cache_key


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _stations(*ids: str) -> list[Station]:
    return [Station(id=sid, name=f"Station {sid}", lat=43.9, lng=-78.87, price_per_unit=1.4) for sid in ids]


def test_fresh_entry_is_returned():
    clock = FakeClock()
    cache = RequestCache(ttl_seconds=1800, clock=clock)
    cache.set(43.9, -78.87, _stations("A"))

    clock.now += 1799
    entry = cache.get(43.9, -78.87)
    assert entry is not None
    assert [s.id for s in entry.stations] == ["A"]
    assert entry.fetched_at == 1_000.0


def test_entry_at_ttl_is_discarded():
    clock = FakeClock()
    cache = RequestCache(ttl_seconds=1800, clock=clock)
    cache.set(43.9, -78.87, _stations("A"))

    clock.now += 1800
    assert cache.get(43.9, -78.87) is None
    assert len(cache) == 0


def test_last_writer_wins():
    cache = RequestCache(ttl_seconds=60, clock=FakeClock())
    cache.set(43.9, -78.87, _stations("A"))
    cache.set(43.9, -78.87, _stations("B", "C"))

    assert [s.id for s in cache.get(43.9, -78.87).stations] == ["B", "C"]


def test_coordinates_are_keyed_as_supplied():
    assert cache_key(43.9, -78.87) == "stations:43.9:-78.87"
    cache = RequestCache(ttl_seconds=60, clock=FakeClock())
    cache.set(43.9, -78.87, _stations("A"))
    assert cache.get(43.90001, -78.87) is None


def test_invalidate_and_clear():
    cache = RequestCache(ttl_seconds=60, clock=FakeClock())
    cache.set(1, 1, _stations("A"))
    cache.set(2, 2, _stations("B"))

    assert cache.invalidate(1, 1) is True
    assert cache.invalidate(1, 1) is False
    assert cache.clear() == 1
    assert cache.get(2, 2) is None


def test_write_sweeps_expired_entries_for_other_coordinates():
    clock = FakeClock(now=0.0)
    cache = RequestCache(ttl_seconds=1800, clock=clock)
    for i in range(1000):
        cache.set(40 + i / 1000, -78.87, _stations("A"))
    assert len(cache) == 1000

    clock.now = 10 * 3600
    cache.set(43.9, -78.87, _stations("B"))

    assert len(cache) == 1
    assert [s.id for s in cache.get(43.9, -78.87).stations] == ["B"]


def test_write_keeps_fresh_entries():
    clock = FakeClock(now=0.0)
    cache = RequestCache(ttl_seconds=1800, clock=clock)
    cache.set(1, 1, _stations("A"))
    clock.now = 900
    cache.set(2, 2, _stations("B"))

    assert len(cache) == 2
