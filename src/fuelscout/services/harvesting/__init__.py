"""Station harvesting services."""

from .harvester import Harvester, HarvestResult, populate_registry
from .source import StationSource

__all__ = ["Harvester", "HarvestResult", "StationSource", "populate_registry"]
