"""
Client policies (cross-cutting behavioral controls).

Policies are orthogonal and composable. They are enforced centrally by the
service when a request is built and by the retry strategies between attempts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StorageLocation(Enum):
    """Which endpoint of a geo-replicated account a request targets."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class LocationMode(Enum):
    """Which endpoints requests may use, and in what order."""

    PRIMARY_ONLY = "primary_only"
    PRIMARY_THEN_SECONDARY = "primary_then_secondary"
    SECONDARY_ONLY = "secondary_only"
    SECONDARY_THEN_PRIMARY = "secondary_then_primary"

    @property
    def initial_location(self) -> StorageLocation:
        if self in (LocationMode.SECONDARY_ONLY, LocationMode.SECONDARY_THEN_PRIMARY):
            return StorageLocation.SECONDARY
        return StorageLocation.PRIMARY

    @property
    def alternates(self) -> bool:
        """Whether retries switch between primary and secondary."""
        return self in (LocationMode.PRIMARY_THEN_SECONDARY, LocationMode.SECONDARY_THEN_PRIMARY)


@dataclass(frozen=True, slots=True)
class Policies:
    """Policy bundle applied to all requests made by a service."""

    location_mode: LocationMode = LocationMode.PRIMARY_ONLY
