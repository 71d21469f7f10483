"""
Weather compensation for Floor Heating Controller.

Outdoor conditions drive the season, summer shutdown, heating degree
days and a heating curve that raises comfort targets in cold weather.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from custom_components.floor_heating.const import (
    DEFAULT_TIMING,
    DEFAULT_WEATHER,
    Season,
    ZoneMode,
)

from .rounding import round_target

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from .energy import EnergyOptimizer
    from .zone import ZoneRuntime

# Field name in set_conditions() -> attribute on WeatherState
_CONDITION_FIELDS = {
    "temperature": "outdoor_temp",
    "humidity": "humidity",
    "wind_speed": "wind_speed",
    "sun_irradiance": "sun_irradiance",
}


@dataclass
class WeatherState:
    """Latest outdoor conditions and derived season."""

    outdoor_temp: float | None = None
    humidity: float | None = None
    wind_speed: float | None = None
    sun_irradiance: float | None = None
    season: Season = Season.WINTER
    summer_shutdown: bool = False
    last_update: datetime | None = None


@dataclass(frozen=True)
class WeatherUpdate:
    """Outcome of a weather update."""

    season: Season
    summer_shutdown_changed: bool
    compensated_zones: list[str]


def season_for(
    month: int,
    outdoor_temp: float | None,
    weather: Mapping[str, float] = DEFAULT_WEATHER,
) -> Season:
    """Determine the season from the month, overridden by extreme temperatures."""
    if month in (6, 7, 8):
        season = Season.SUMMER
    elif month in (12, 1, 2):
        season = Season.WINTER
    elif month in (3, 4, 5):
        season = Season.SPRING
    else:
        season = Season.AUTUMN

    if outdoor_temp is not None:
        if outdoor_temp > weather["summer_override"]:
            return Season.SUMMER
        if outdoor_temp < weather["winter_override"]:
            return Season.WINTER
    return season


class WeatherCompensator:
    """Applies outdoor conditions to the zones."""

    def __init__(
        self,
        config: Mapping[str, float] = DEFAULT_WEATHER,
        update_interval: float = DEFAULT_TIMING["weather_interval"],
    ) -> None:
        """Initialize the compensator."""
        self.config: dict[str, float] = {**DEFAULT_WEATHER, **config}
        self.update_interval = update_interval
        self.state = WeatherState()

    def set_conditions(self, conditions: Mapping[str, Any]) -> list[str]:
        """
        Apply a partial outdoor conditions update.

        Unknown or non-numeric fields are ignored.

        Returns:
            Names of the fields that were applied.

        """
        applied: list[str] = []
        for key, attribute in _CONDITION_FIELDS.items():
            value = conditions.get(key)
            if value is None or isinstance(value, bool):
                continue
            try:
                number = float(value)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(number):
                continue
            setattr(self.state, attribute, number)
            applied.append(key)
        return applied

    def compensated_target(self, runtime: ZoneRuntime) -> float | None:
        """
        Return the heating-curve comfort target for the current outdoor temperature.

        The curve never asks for more than the floor can deliver with a
        safety margin below its maximum temperature.
        """
        outdoor = self.state.outdoor_temp
        if outdoor is None:
            return None
        offset = max(
            0.0,
            (self.config["curve_reference"] - outdoor) * self.config["curve_slope"],
        )
        ceiling = runtime.max_floor_temp - self.config["curve_floor_margin"]
        return min(runtime.config.comfort_temp + offset, ceiling)

    def update(
        self,
        now: datetime,
        zones: Iterable[ZoneRuntime],
        energy: EnergyOptimizer,
    ) -> WeatherUpdate:
        """
        Re-derive season, summer shutdown, degree days and curve targets.

        Args:
            now: Current local timestamp.
            zones: All zones.
            energy: Energy optimizer holding the degree-day counter.

        Returns:
            WeatherUpdate describing what changed.

        """
        state = self.state
        outdoor = state.outdoor_temp
        state.season = season_for(now.month, outdoor, self.config)

        shutdown_changed = False
        if outdoor is not None:
            shutdown = outdoor > self.config["summer_shutdown_threshold"]
            shutdown_changed = shutdown != state.summer_shutdown
            state.summer_shutdown = shutdown

            if state.last_update is None:
                hours = self.update_interval / 3600
            else:
                hours = max(0.0, (now - state.last_update).total_seconds() / 3600)
            energy.add_degree_days(
                (self.config["degree_day_base"] - outdoor) * hours / 24
            )

        compensated: list[str] = []
        for runtime in zones:
            if not runtime.state.enabled or runtime.state.mode != ZoneMode.COMFORT:
                continue
            target = self.compensated_target(runtime)
            if target is not None and target > runtime.state.target_temp:
                runtime.state.target_temp = round_target(target)
                compensated.append(runtime.zone_id)

        state.last_update = now
        return WeatherUpdate(
            season=state.season,
            summer_shutdown_changed=shutdown_changed,
            compensated_zones=compensated,
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the weather state as a serializable mapping."""
        state = self.state
        return {
            "outdoor_temp": state.outdoor_temp,
            "humidity": state.humidity,
            "wind_speed": state.wind_speed,
            "sun_irradiance": state.sun_irradiance,
            "season": state.season.value,
            "summer_shutdown": state.summer_shutdown,
        }
