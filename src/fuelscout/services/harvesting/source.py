"""Station source contract and page parsers.

The harvester only talks to a :class:`StationSource`; the concrete scraping
technology lives behind it.
"""

from __future__ import annotations

import re
from typing import Protocol

from ...models.domain import Listing, StationDetail

STATION_ID_PATTERN = re.compile(r"/station/(\d+)")
LATITUDE_PATTERN = re.compile(r'"latitude"\s*:\s*(-?\d+(?:\.\d+)?)')
LONGITUDE_PATTERN = re.compile(r'"longitude"\s*:\s*(-?\d+(?:\.\d+)?)')
NON_NUMERIC_PATTERN = re.compile(r"[^0-9.]")

# Prices at or above this are quoted in cents (e.g. "152.9" -> 1.529 per litre).
CENTS_THRESHOLD = 10.0


class StationSource(Protocol):
    async def start(self) -> None: ...

    async def restart(self) -> None: ...

    async def close(self) -> None: ...

    async def search(self, term: str) -> list[Listing]: ...

    async def fetch_detail(self, station_id: str) -> StationDetail | None: ...


def parse_station_id(href: str | None) -> str | None:
    if not href:
        return None
    match = STATION_ID_PATTERN.search(href)
    return match.group(1) if match else None


def parse_price(text: str | None) -> float | None:
    """Normalize a currency-formatted price string to a per-unit value."""
    if not text:
        return None
    cleaned = NON_NUMERIC_PATTERN.sub("", text)
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if value <= 0:
        return None
    if value >= CENTS_THRESHOLD:
        value = value / 100
    return round(value, 3)


def parse_listings(raw_items: list[dict]) -> list[Listing]:
    """Turn raw listing dicts (``href``, ``name``, ``price``) into unique listings."""
    listings: list[Listing] = []
    seen: set[str] = set()
    for item in raw_items:
        station_id = parse_station_id(item.get("href"))
        name = (item.get("name") or "").strip()
        if not station_id or not name or station_id in seen:
            continue
        seen.add(station_id)
        listings.append(Listing(id=station_id, name=name, price_per_unit=parse_price(item.get("price"))))
    return listings


def extract_station_detail(html: str, address: str | None = None) -> StationDetail | None:
    """Pull coordinates out of the data embedded in a detail page."""
    lat_match = LATITUDE_PATTERN.search(html or "")
    lng_match = LONGITUDE_PATTERN.search(html or "")
    if not lat_match or not lng_match:
        return None
    lat, lng = float(lat_match.group(1)), float(lng_match.group(1))
    if lat == 0 and lng == 0:
        return None
    cleaned_address = " ".join(address.split()) if address else None
    return StationDetail(lat=lat, lng=lng, address=cleaned_address or None)
