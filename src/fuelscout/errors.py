"""
Typed, user-facing exception types for the station pipeline.

Component-level failures (one detail page, one distance batch, one geocode
call) are absorbed where they happen. Only pipeline-level failures surface
as one of these, with a message that is safe to show to a user.
"""

from __future__ import annotations

from dataclasses import dataclass

TRY_AGAIN_LATER = "Please try again in a few minutes."


@dataclass
class FuelScoutError(Exception):
    """Base class for errors that should be presented to callers."""

    message: str
    remediation: str = ""
    details: str = ""

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class InvalidOriginError(FuelScoutError):
    """Missing or out-of-range origin coordinates."""


class UpstreamUnavailableError(FuelScoutError):
    """Geocoding, places or distance service failed."""


class HarvestError(FuelScoutError):
    """The station source could not be driven at all."""


class HarvestBlockedError(HarvestError):
    """Every area search came back empty even after cooling down."""


class QueryTimeoutError(FuelScoutError):
    """The end-to-end query deadline expired."""
