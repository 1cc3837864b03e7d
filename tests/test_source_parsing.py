import pytest

from src.fuelscout.services.harvesting.source import (
    extract_station_detail,
    parse_listings,
    parse_price,
    parse_station_id,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("152.9¢", 1.529),
        ("$3.49", 3.49),
        ("  1.45 /L", 1.45),
        ("---", None),
        ("", None),
        (None, None),
        ("0.00", None),
    ],
)
def test_parse_price_normalizes_cents_and_dollars(text, expected):
    assert parse_price(text) == expected


def test_parse_station_id():
    assert parse_station_id("/station/12345") == "12345"
    assert parse_station_id("https://www.gasbuddy.com/station/987?ref=list") == "987"
    assert parse_station_id("/home?search=oshawa") is None
    assert parse_station_id(None) is None


def test_parse_listings_skips_duplicates_and_incomplete_rows():
    raw = [
        {"href": "/station/1", "name": "Esso ", "price": "149.9"},
        {"href": "/station/1", "name": "Esso duplicate", "price": "139.9"},
        {"href": "/station/2", "name": "Shell", "price": None},
        {"href": "/station/3", "name": "", "price": "150.0"},
        {"href": None, "name": "No link", "price": "150.0"},
    ]
    listings = parse_listings(raw)

    assert [(l.id, l.name, l.price_per_unit) for l in listings] == [
        ("1", "Esso", 1.499),
        ("2", "Shell", None),
    ]


def test_extract_station_detail_reads_embedded_coordinates():
    html = '<script>{"station":{"latitude": 43.8971, "longitude":-78.8658}}</script>'
    detail = extract_station_detail(html, "  123 King St W\n Oshawa, ON ")

    assert detail.lat == 43.8971
    assert detail.lng == -78.8658
    assert detail.address == "123 King St W Oshawa, ON"


def test_extract_station_detail_missing_coordinates():
    assert extract_station_detail('<div>"latitude": 43.1</div>') is None
    assert extract_station_detail("") is None
