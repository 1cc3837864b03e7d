"""Route group exports."""

from . import health, stations

__all__ = ["health", "stations"]
