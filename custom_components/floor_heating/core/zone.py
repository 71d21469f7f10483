"""
Zone configuration, state and runtime for Floor Heating Controller.

This module contains the zone dataclasses and the ZoneRuntime that ties
a zone's configuration to its PID controller, schedule and occupancy.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from custom_components.floor_heating.const import (
    DEFAULT_ZONE,
    DEFAULT_ZONE_TEMPERATURES,
    ELECTRIC_RESPONSE_TIME,
    ELECTRIC_THERMAL_MASS,
    FLOOR_MATERIAL_LIMITS,
    HISTORY_CAPACITY,
    WATER_RESPONSE_TIME,
    WATER_THERMAL_MASS,
    FaultCode,
    FloorMaterial,
    HeatingType,
    MaterialLimits,
    ZoneMode,
)

from .errors import InvalidZoneConfigError
from .occupancy import ZoneOccupancy
from .rounding import round_to_step
from .schedule import ZoneSchedule

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from .pid import PIDController


class HeatingTransition(StrEnum):
    """
    Heating state transitions that may occur when output is applied.

    Pure core logic should not perform I/O; the caller turns these into
    notifications.
    """

    NONE = "none"
    STARTED = "started"
    STOPPED = "stopped"


class LimitReason(StrEnum):
    """Why the floor protection limiter changed the proposed output."""

    NONE = "none"
    FLOOR_LIMIT = "floor_limit"
    RATE_LIMIT = "rate_limit"
    DERATED = "derated"
    MOISTURE = "moisture"
    SENSOR_FAULT = "sensor_fault"


@dataclass(frozen=True)
class HistorySample:
    """One control tick worth of zone measurements."""

    timestamp: datetime
    floor_temp: float | None
    air_temp: float | None
    target: float
    output: float


@dataclass
class ZoneConfig:
    """Static configuration for a single zone."""

    zone_id: str
    name: str
    heating_type: HeatingType = HeatingType(DEFAULT_ZONE["heating_type"])
    floor_material: FloorMaterial = FloorMaterial(DEFAULT_ZONE["floor_material"])
    comfort_temp: float = DEFAULT_ZONE_TEMPERATURES["comfort"]
    eco_temp: float = DEFAULT_ZONE_TEMPERATURES["eco"]
    frost_temp: float = DEFAULT_ZONE_TEMPERATURES["frost"]
    max_floor_temp: float | None = None  # Defaults to the material limit
    area: float = DEFAULT_ZONE["area"]
    installed_power: float = DEFAULT_ZONE["installed_power"]
    thermal_mass: float | None = None  # Defaults from the heating type
    response_time: float | None = None  # Minutes, defaults from the heating type

    def __post_init__(self) -> None:
        """Fill defaults that depend on other fields."""
        self.heating_type = HeatingType(self.heating_type)
        self.floor_material = FloorMaterial(self.floor_material)
        if self.max_floor_temp is None:
            self.max_floor_temp = FLOOR_MATERIAL_LIMITS[self.floor_material].max_temp
        water = self.heating_type == HeatingType.WATER
        if self.thermal_mass is None:
            self.thermal_mass = WATER_THERMAL_MASS if water else ELECTRIC_THERMAL_MASS
        if self.response_time is None:
            self.response_time = (
                WATER_RESPONSE_TIME if water else ELECTRIC_RESPONSE_TIME
            )

    @property
    def limits(self) -> MaterialLimits:
        """Return the thermal limits of the floor material."""
        return FLOOR_MATERIAL_LIMITS[self.floor_material]

    def validate(self) -> None:
        """
        Check the configuration invariants.

        Raises:
            InvalidZoneConfigError: If temperatures are out of order or the
                floor limit exceeds what the material tolerates.

        """
        if not self.zone_id:
            msg = "Zone id must not be empty"
            raise InvalidZoneConfigError(msg)
        if not self.frost_temp <= self.eco_temp <= self.comfort_temp:
            msg = (
                f"Zone {self.zone_id}: expected frost <= eco <= comfort, got "
                f"{self.frost_temp} / {self.eco_temp} / {self.comfort_temp}"
            )
            raise InvalidZoneConfigError(msg)
        if self.comfort_temp > self.limits.max_temp:
            msg = (
                f"Zone {self.zone_id}: comfort temperature {self.comfort_temp} "
                f"exceeds {self.floor_material} limit {self.limits.max_temp}"
            )
            raise InvalidZoneConfigError(msg)
        if self.max_floor_temp is None or self.max_floor_temp > self.limits.max_temp:
            msg = (
                f"Zone {self.zone_id}: max floor temperature {self.max_floor_temp} "
                f"exceeds {self.floor_material} limit {self.limits.max_temp}"
            )
            raise InvalidZoneConfigError(msg)
        if self.area <= 0 or self.installed_power < 0:
            msg = f"Zone {self.zone_id}: area and power must be positive"
            raise InvalidZoneConfigError(msg)


@dataclass
class ZoneState:
    """
    Live state of a single zone.

    PID state is stored separately in PIDController.state.
    """

    zone_id: str
    enabled: bool = True
    mode: ZoneMode = ZoneMode.COMFORT
    target_temp: float = DEFAULT_ZONE_TEMPERATURES["comfort"]
    effective_target: float | None = None

    # Readings (None until the first report)
    air_temp: float | None = None
    floor_temp: float | None = None
    humidity: float | None = None
    flow_rate: float | None = None  # Measured flow in l/min
    moisture_detected: bool = False
    sensor_battery: float | None = None
    window_open: bool = False
    calibration_offset: float = 0.0
    last_calibration: datetime | None = None
    last_reading: datetime | None = None

    # Actuator state
    heating_active: bool = False
    output: float = 0.0
    valve_position: int = 0
    valve_override: int | None = None  # Held by a maintenance sequence
    current_power: float = 0.0
    limit_reason: LimitReason = LimitReason.NONE
    window_paused: bool = False
    frost_protection_active: bool = False
    pipe_freeze_active: bool = False

    fault_code: FaultCode | None = None

    # Energy counters
    energy_today_kwh: float = 0.0
    energy_total_kwh: float = 0.0
    cost_today: float = 0.0
    cost_total: float = 0.0

    # Statistics
    heating_cycles: int = 0
    runtime_today_seconds: float = 0.0
    runtime_total_seconds: float = 0.0
    heating_since: datetime | None = None
    last_output_at: datetime | None = None

    history: deque[HistorySample] = field(
        default_factory=lambda: deque(maxlen=HISTORY_CAPACITY), repr=False
    )


def _as_float(value: Any) -> float | None:
    """Return value as a finite float, or None if it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_bool(value: Any) -> bool | None:
    """Return value as a bool, or None if it is not boolean-like."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.lower() in ("on", "off", "true", "false"):
        return value.lower() in ("on", "true")
    return None


class ZoneRuntime:
    """
    Runtime data for a zone including PID controller and state.

    This class owns the zone's configuration, PID controller, schedule,
    occupancy and mutable state.
    """

    def __init__(
        self,
        config: ZoneConfig,
        pid: PIDController,
        schedule: ZoneSchedule | None = None,
        state: ZoneState | None = None,
    ) -> None:
        """
        Initialize zone runtime.

        Args:
            config: Zone configuration.
            pid: PID controller instance owned by this zone.
            schedule: Weekly schedule, the default schedule if omitted.
            state: Zone state, a fresh comfort-mode state if omitted.

        """
        self.config = config
        self.pid = pid
        self.schedule = schedule if schedule is not None else ZoneSchedule.default()
        self.occupancy = ZoneOccupancy()
        self.state = state or ZoneState(
            zone_id=config.zone_id, target_temp=config.comfort_temp
        )

    @property
    def zone_id(self) -> str:
        """Return the zone ID."""
        return self.config.zone_id

    @property
    def max_floor_temp(self) -> float:
        """Return the effective maximum floor temperature."""
        if self.config.max_floor_temp is None:
            return self.config.limits.max_temp
        return self.config.max_floor_temp

    def mode_temperature(self, mode: ZoneMode) -> float:
        """Return the configured temperature for a mode."""
        if mode == ZoneMode.COMFORT:
            return self.config.comfort_temp
        if mode == ZoneMode.ECO:
            return self.config.eco_temp
        return self.config.frost_temp

    def set_mode(self, mode: ZoneMode, *, force: bool = False) -> bool:
        """
        Switch the zone mode and reset the target to the mode temperature.

        Re-applying the current mode is a no-op unless force is set, so
        repeated schedule evaluation keeps manual and price adjustments.

        Returns:
            True if the mode changed.

        """
        changed = mode != self.state.mode
        if not changed and not force:
            return False
        self.state.mode = mode
        self.state.target_temp = self.mode_temperature(mode)
        return changed

    def update_readings(self, readings: Mapping[str, Any], now: datetime) -> list[str]:
        """
        Apply a partial sensor update.

        Temperatures are corrected by the calibration offset. Fields that
        are missing or cannot be interpreted are skipped.

        Returns:
            Names of the fields that were applied.

        """
        applied: list[str] = []
        offset = self.state.calibration_offset

        for key in ("air_temp", "floor_temp"):
            if (value := _as_float(readings.get(key))) is not None:
                setattr(self.state, key, value + offset)
                applied.append(key)

        if (humidity := _as_float(readings.get("humidity"))) is not None:
            self.state.humidity = max(0.0, min(100.0, humidity))
            applied.append("humidity")

        if (flow := _as_float(readings.get("flow_rate"))) is not None:
            self.state.flow_rate = max(0.0, flow)
            applied.append("flow_rate")

        if (battery := _as_float(readings.get("battery"))) is not None:
            self.state.sensor_battery = max(0.0, min(100.0, battery))
            applied.append("battery")

        if (moisture := _as_bool(readings.get("moisture"))) is not None:
            self.state.moisture_detected = moisture
            applied.append("moisture")

        if applied:
            self.state.last_reading = now
        return applied

    def apply_output(self, output: float, now: datetime) -> HeatingTransition:
        """
        Commit a heating output to the zone's actuator state.

        Args:
            output: Output percentage, clamped to 0-100.
            now: Current timestamp.

        Returns:
            HeatingTransition indicating whether heating started or stopped.

        """
        state = self.state
        output = max(0.0, min(100.0, output))
        was_active = state.heating_active

        if was_active and state.last_output_at is not None:
            elapsed = max(0.0, (now - state.last_output_at).total_seconds())
            state.runtime_today_seconds += elapsed
            state.runtime_total_seconds += elapsed

        state.output = output
        state.heating_active = output > 0
        state.current_power = round_to_step(
            self.config.installed_power * output / 100
        )
        if state.valve_override is None:
            state.valve_position = int(round_to_step(output))
        state.last_output_at = now

        if state.heating_active and not was_active:
            state.heating_cycles += 1
            state.heating_since = now
            return HeatingTransition.STARTED
        if was_active and not state.heating_active:
            state.heating_since = None
            return HeatingTransition.STOPPED
        return HeatingTransition.NONE

    def record_sample(self, now: datetime, target: float) -> None:
        """Append the current measurements to the bounded history."""
        self.state.history.append(
            HistorySample(
                timestamp=now,
                floor_temp=self.state.floor_temp,
                air_temp=self.state.air_temp,
                target=target,
                output=self.state.output,
            )
        )

    def floor_rate_per_hour(self) -> float | None:
        """
        Return the floor temperature rise rate from the two latest samples.

        Returns:
            Rate in °C per hour, or None if it cannot be determined.

        """
        if len(self.state.history) < 2:  # noqa: PLR2004
            return None
        previous, latest = self.state.history[-2], self.state.history[-1]
        if previous.floor_temp is None or latest.floor_temp is None:
            return None
        hours = (latest.timestamp - previous.timestamp).total_seconds() / 3600
        if hours <= 0:
            return None
        return (latest.floor_temp - previous.floor_temp) / hours
