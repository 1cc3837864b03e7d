#!/usr/bin/env python3
"""Warm the station registry by harvesting a list of area terms.

Usage:
    python populate_stations.py "Oshawa ON" "Whitby ON" "Ajax ON"
    python populate_stations.py --file areas.txt
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from fuelscout.errors import FuelScoutError  # noqa: E402
from fuelscout.persistence.registry import get_station_registry  # noqa: E402
from fuelscout.services.harvesting import populate_registry  # noqa: E402
from fuelscout.services.harvesting.gasbuddy import PlaywrightStationSource  # noqa: E402


def _read_terms(args: argparse.Namespace) -> list[str]:
    terms = list(args.terms)
    if args.file:
        with open(args.file, "r", encoding="utf-8") as handle:
            terms.extend(line.strip() for line in handle if line.strip() and not line.startswith("#"))
    return terms


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("terms", nargs="*", help="Area terms to search, e.g. 'Oshawa ON'")
    parser.add_argument("--file", help="Text file with one area term per line")
    parser.add_argument("--max-per-area", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    terms = _read_terms(args)
    if not terms:
        parser.error("no area terms given")

    options = {}
    if args.max_per_area:
        options["max_per_area"] = args.max_per_area

    try:
        result = asyncio.run(
            populate_registry(terms, PlaywrightStationSource(), get_station_registry(), **options)
        )
    except FuelScoutError as exc:
        print(f"❌ {exc.message} {exc.remediation}".strip(), file=sys.stderr)
        return 1
    print(
        f"Searched {len(result.searched_terms)} areas: {len(result.stations)} stations with coordinates, "
        f"{result.registry_hits} already known, {len(result.unresolved)} unresolved, "
        f"{result.cooldowns} cool-downs"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
