"""Effective target temperature resolution for Floor Heating Controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from custom_components.floor_heating.const import (
    DEFAULT_NIGHT_SETBACK,
    DEFAULT_WEATHER,
    UNOCCUPIED_REDUCTION,
    UNOCCUPIED_REDUCTION_MINUTES,
)

from .rounding import round_target
from .schedule import format_time, minute_of_day, parse_time

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from .zone import ZoneRuntime


@dataclass
class NightSetback:
    """Nightly window during which zones are held at most at eco."""

    start: int = parse_time(DEFAULT_NIGHT_SETBACK["start"])
    end: int = parse_time(DEFAULT_NIGHT_SETBACK["end"])
    enabled: bool = True

    def is_active(self, now: datetime) -> bool:
        """Return True if the setback applies at the given local time."""
        if not self.enabled:
            return False
        minute = minute_of_day(now)
        if self.end <= self.start:
            return minute >= self.start or minute < self.end
        return self.start <= minute < self.end

    def as_dict(self) -> dict[str, str | bool]:
        """Return the setback as a serializable mapping."""
        return {
            "start": format_time(self.start),
            "end": format_time(self.end),
            "enabled": self.enabled,
        }


def outdoor_adjustment(
    outdoor_temp: float | None,
    weather: Mapping[str, float] = DEFAULT_WEATHER,
) -> float:
    """
    Return the target offset for the current outdoor temperature.

    Mild weather lowers the target; extreme cold raises it.
    """
    if outdoor_temp is None:
        return 0.0
    if outdoor_temp > weather["mild_threshold"]:
        return -weather["mild_reduction"]
    if outdoor_temp < weather["winter_boost_threshold"]:
        return weather["winter_boost"]
    return 0.0


def resolve_effective_target(
    runtime: ZoneRuntime,
    now: datetime,
    *,
    night_setback: NightSetback,
    outdoor_temp: float | None,
    weather: Mapping[str, float] = DEFAULT_WEATHER,
    unoccupied_minutes: float = UNOCCUPIED_REDUCTION_MINUTES,
    unoccupied_reduction: float = UNOCCUPIED_REDUCTION,
) -> float:
    """
    Compose the temperature the controller should aim for this tick.

    The order is significant: night setback caps the mode target,
    occupancy and outdoor adjustments apply on top, and the frost
    floor is applied last so nothing can push a zone below it.

    Args:
        runtime: Zone runtime.
        now: Local timestamp.
        night_setback: Night setback window.
        outdoor_temp: Outdoor temperature, None if unknown.
        weather: Weather thresholds.
        unoccupied_minutes: Empty minutes before the occupancy setback.
        unoccupied_reduction: Occupancy setback in °C.

    Returns:
        Effective target in °C, on a half-degree grid.

    """
    config = runtime.config
    target = runtime.state.target_temp

    if night_setback.is_active(now):
        target = min(target, config.eco_temp)

    if runtime.occupancy.is_reduced(unoccupied_minutes):
        target -= unoccupied_reduction

    target += outdoor_adjustment(outdoor_temp, weather)

    return max(config.frost_temp, round_target(target))
