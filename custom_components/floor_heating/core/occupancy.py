"""Occupancy and geofencing state for Floor Heating Controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from custom_components.floor_heating.const import (
    GEOFENCE_PREHEAT_ETA_MINUTES,
    UNOCCUPIED_REDUCTION_MINUTES,
)

if TYPE_CHECKING:
    from datetime import datetime


@dataclass
class ZoneOccupancy:
    """
    Presence tracking for a single zone.

    A zone starts out occupied; the unoccupied time is derived from the
    last time presence was reported.
    """

    occupied: bool = True
    last_seen: datetime | None = None
    unoccupied_minutes: float = 0.0
    reduction_active: bool = False

    def set_occupied(self, *, occupied: bool, now: datetime) -> None:
        """Record a presence report."""
        self.occupied = occupied
        if occupied:
            self.last_seen = now
            self.unoccupied_minutes = 0.0
            self.reduction_active = False
        elif self.last_seen is None:
            self.last_seen = now

    def update(
        self,
        now: datetime,
        threshold_minutes: float = UNOCCUPIED_REDUCTION_MINUTES,
    ) -> bool:
        """
        Recompute the unoccupied time.

        Args:
            now: Current timestamp.
            threshold_minutes: Unoccupied minutes before the setback applies.

        Returns:
            True only on the update where the setback first becomes active.

        """
        if self.occupied or self.last_seen is None:
            self.unoccupied_minutes = 0.0
            self.reduction_active = False
            return False

        self.unoccupied_minutes = (now - self.last_seen).total_seconds() / 60
        if self.unoccupied_minutes > threshold_minutes and not self.reduction_active:
            self.reduction_active = True
            return True
        return False

    def is_reduced(
        self, threshold_minutes: float = UNOCCUPIED_REDUCTION_MINUTES
    ) -> bool:
        """Return True if the zone has been empty longer than the threshold."""
        return not self.occupied and self.unoccupied_minutes > threshold_minutes


@dataclass
class GeofenceState:
    """Household presence reported by the presence collaborator."""

    distance_km: float | None = None
    eta_minutes: float | None = None
    is_home: bool = True
    pre_heat_triggered: bool = False

    def update(
        self,
        *,
        distance_km: float | None,
        eta_minutes: float | None,
        is_home: bool | None,
        preheat_eta: float = GEOFENCE_PREHEAT_ETA_MINUTES,
    ) -> bool:
        """
        Apply a presence update.

        Missing values keep their previous state. Arriving home re-arms the
        pre-heat trigger for the next trip.

        Returns:
            True when pre-heating for arrival should start.

        """
        if distance_km is not None:
            self.distance_km = distance_km
        if eta_minutes is not None:
            self.eta_minutes = eta_minutes
        if is_home is not None:
            self.is_home = is_home

        if self.is_home:
            self.pre_heat_triggered = False
            return False

        if (
            self.eta_minutes is not None
            and 0 < self.eta_minutes <= preheat_eta
            and not self.pre_heat_triggered
        ):
            self.pre_heat_triggered = True
            return True
        return False
