"""
Zone control engine for Floor Heating Controller.

This module provides the HeatingEngine class that owns every zone and
the shared energy, weather, occupancy and maintenance state. It performs
no I/O: collaborators push readings through the setters, drive time
through tick(), and drain the resulting events.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from custom_components.floor_heating.const import (
    DEFAULT_ANTICIPATORY_MINUTES,
    DEFAULT_ENERGY,
    DEFAULT_MAINTENANCE,
    DEFAULT_PID,
    DEFAULT_WEATHER,
    HOLIDAY_FROST_OUTPUT,
    HOLIDAY_HEAT_BELOW,
    HOLIDAY_STOP_ABOVE,
    JOB_INTERVAL_TOLERANCE,
    LOGGER,
    PIPE_FREEZE_FLOOR_TEMP,
    PIPE_FREEZE_OUTPUT,
    FaultCode,
    TimingParams,
    ZoneMode,
)

from .comfort import ComfortScore, calculate_comfort
from .energy import EnergyOptimizer, PriceAction
from .errors import (
    BelowFrostFloorError,
    FloorHeatingError,
    NonFiniteValueError,
    OutOfMaterialRangeError,
    UnknownZoneError,
    ZoneExistsError,
)
from .events import EventQueue, EventType, HeatingEvent
from .maintenance import MaintenanceMonitor
from .occupancy import GeofenceState
from .pid import PIDController
from .protection import clamp_output
from .schedule import (
    ScheduleSource,
    ZoneSchedule,
    evaluate_schedule,
    format_time,
    parse_mode,
    parse_time,
)
from .target import NightSetback, resolve_effective_target
from .weather import WeatherCompensator
from .zone import HeatingTransition, LimitReason, ZoneConfig, ZoneRuntime

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


@dataclass
class EngineConfig:
    """Configuration for the heating engine."""

    controller_id: str = "floor_heating"
    name: str = "Floor Heating"
    timing: TimingParams = field(default_factory=TimingParams)
    pid: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_PID))
    anticipatory_minutes: int = DEFAULT_ANTICIPATORY_MINUTES
    night_setback: NightSetback = field(default_factory=NightSetback)
    energy: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_ENERGY))
    weather: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEATHER))
    maintenance: dict[str, Any] = field(
        default_factory=lambda: dict(DEFAULT_MAINTENANCE)
    )
    zones: list[ZoneConfig] = field(default_factory=list)


def _utcnow() -> datetime:
    """Return the current time for operations called without a timestamp."""
    return datetime.now(UTC)


class HeatingEngine:
    """
    Main engine coordinating all zones.

    Six jobs (schedule, weather, occupancy, control, energy, maintenance)
    run from tick() whenever their interval has elapsed. Every external
    operation validates completely before it mutates anything.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        """
        Initialize the heating engine.

        Args:
            config: Engine configuration, defaults if omitted.

        Raises:
            InvalidZoneConfigError: If a configured zone is invalid.
            ZoneExistsError: If two configured zones share an id.

        """
        self.config = config or EngineConfig()
        timing = self.config.timing
        self.events = EventQueue()
        self.energy = EnergyOptimizer(
            self.config.energy, log_interval=timing.energy_interval
        )
        self.weather = WeatherCompensator(
            self.config.weather, update_interval=timing.weather_interval
        )
        self.maintenance = MaintenanceMonitor(self.config.maintenance)
        self.geofence = GeofenceState()
        self.night_setback = self.config.night_setback
        self.holiday_mode = False
        self._zones: dict[str, ZoneRuntime] = {}
        self._last_run: dict[str, datetime] = {}

        for zone_config in self.config.zones:
            self._register_zone(zone_config)

        self._jobs: list[tuple[str, int, Callable[[datetime], None]]] = [
            ("schedule", timing.schedule_interval, self.schedule_tick),
            ("weather", timing.weather_interval, self.weather_tick),
            ("occupancy", timing.occupancy_interval, self.occupancy_tick),
            ("control", timing.control_interval, self.control_tick),
            ("energy", timing.energy_interval, self.energy_tick),
            ("maintenance", timing.maintenance_interval, self.maintenance_tick),
        ]

    # ------------------------------------------------------------------
    # Zone registry
    # ------------------------------------------------------------------

    @property
    def zone_ids(self) -> list[str]:
        """Get list of all zone IDs."""
        return list(self._zones.keys())

    @property
    def zones(self) -> list[ZoneRuntime]:
        """Get all zone runtimes in registration order."""
        return list(self._zones.values())

    def get_zone_runtime(self, zone_id: str) -> ZoneRuntime | None:
        """Get the runtime data for a specific zone."""
        return self._zones.get(zone_id)

    def _require_zone(self, zone_id: str) -> ZoneRuntime:
        """Return a zone runtime or raise UnknownZoneError."""
        runtime = self._zones.get(zone_id)
        if runtime is None:
            raise UnknownZoneError(zone_id)
        return runtime

    def _create_pid(self, zone_config: ZoneConfig) -> PIDController:
        """Create a PID controller with the engine gains and zone response time."""
        pid = {**DEFAULT_PID, **self.config.pid}
        return PIDController(
            kp=pid["kp"],
            ki=pid["ki"],
            kd=pid["kd"],
            integral_min=pid["integral_min"],
            integral_max=pid["integral_max"],
            response_time=float(zone_config.response_time or 0),
            smoothing_factor=pid["smoothing_factor"],
            overshoot_guard=pid["overshoot_guard"],
            default_dt=self.config.timing.control_interval,
        )

    def _register_zone(
        self, zone_config: ZoneConfig, schedule: ZoneSchedule | None = None
    ) -> ZoneRuntime:
        """Validate and register a zone."""
        zone_config.validate()
        if zone_config.zone_id in self._zones:
            raise ZoneExistsError(zone_config.zone_id)
        runtime = ZoneRuntime(
            config=zone_config,
            pid=self._create_pid(zone_config),
            schedule=schedule,
        )
        self._zones[zone_config.zone_id] = runtime
        return runtime

    def add_zone(
        self,
        zone_config: ZoneConfig,
        schedule: ZoneSchedule | Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Add a zone at runtime.

        Args:
            zone_config: Zone configuration.
            schedule: Weekly schedule or its serialized form; the default
                schedule if omitted.
            now: Event timestamp.

        Returns:
            Status of the new zone.

        Raises:
            ZoneExistsError: If the zone id is already registered.
            InvalidZoneConfigError: If the configuration is invalid.
            InvalidScheduleError: If the schedule is malformed.

        """
        if schedule is not None and not isinstance(schedule, ZoneSchedule):
            schedule = ZoneSchedule.from_dict(schedule)
        runtime = self._register_zone(zone_config, schedule)
        self.events.emit(
            EventType.ZONE_ADDED,
            now or _utcnow(),
            runtime.zone_id,
            name=zone_config.name,
            heating_type=zone_config.heating_type.value,
            floor_material=zone_config.floor_material.value,
        )
        return self.get_zone_status(runtime.zone_id)

    def remove_zone(self, zone_id: str, now: datetime | None = None) -> None:
        """
        Remove a zone, forcing its heating off first.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        runtime = self._require_zone(zone_id)
        now = now or _utcnow()
        self.maintenance.cancel_sequences(self._zones, zone_id)
        self._commit_output(runtime, 0.0, now)
        del self._zones[zone_id]
        self.events.emit(EventType.ZONE_REMOVED, now, zone_id)

    # ------------------------------------------------------------------
    # Zone operations
    # ------------------------------------------------------------------

    def set_zone_temp(self, zone_id: str, temperature: float) -> dict[str, Any]:
        """
        Set the target temperature of a zone.

        Args:
            zone_id: Zone identifier.
            temperature: Target temperature in °C.

        Returns:
            Updated zone status.

        Raises:
            UnknownZoneError: If the zone does not exist.
            NonFiniteValueError: If the temperature is NaN or infinite.
            OutOfMaterialRangeError: If the temperature exceeds the floor
                material limit.
            BelowFrostFloorError: If the temperature is below the zone's
                frost protection temperature.

        """
        runtime = self._require_zone(zone_id)
        temperature = float(temperature)
        if not math.isfinite(temperature):
            raise NonFiniteValueError(zone_id, "temperature", temperature)
        max_temp = runtime.config.limits.max_temp
        if temperature > max_temp:
            raise OutOfMaterialRangeError(zone_id, temperature, max_temp)
        if temperature < runtime.config.frost_temp:
            raise BelowFrostFloorError(
                zone_id, temperature, runtime.config.frost_temp
            )
        runtime.state.target_temp = temperature
        return self.get_zone_status(zone_id)

    def set_mode(
        self, zone_id: str, mode: Any, now: datetime | None = None
    ) -> dict[str, Any]:
        """
        Set the operating mode of a zone.

        The target is always reset to the mode temperature, even when the
        mode is unchanged.

        Raises:
            UnknownZoneError: If the zone does not exist.
            InvalidModeError: If the mode is not comfort, eco or frost.

        """
        runtime = self._require_zone(zone_id)
        zone_mode = parse_mode(mode)
        if runtime.set_mode(zone_mode, force=True):
            self.events.emit(
                EventType.MODE_CHANGED,
                now or _utcnow(),
                zone_id,
                mode=zone_mode.value,
                source=ScheduleSource.API.value,
            )
        return self.get_zone_status(zone_id)

    def set_all_zones_mode(
        self, mode: Any, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        """
        Set the operating mode of every zone.

        Raises:
            InvalidModeError: If the mode is not comfort, eco or frost.

        """
        zone_mode = parse_mode(mode)
        return [self.set_mode(zone_id, zone_mode, now) for zone_id in self.zone_ids]

    def set_zone_enabled(
        self, zone_id: str, *, enabled: bool, now: datetime | None = None
    ) -> dict[str, Any]:
        """
        Enable or disable a zone.

        Disabling forces heating off and resets the PID controller.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        runtime = self._require_zone(zone_id)
        runtime.state.enabled = enabled
        if not enabled:
            self._commit_output(runtime, 0.0, now or _utcnow())
            runtime.pid.reset()
        return self.get_zone_status(zone_id)

    def set_schedule(
        self, zone_id: str, schedule: Mapping[str, Any]
    ) -> dict[str, Any]:
        """
        Merge a schedule update into a zone's schedule.

        Only the weekdays present in the update are replaced.

        Raises:
            UnknownZoneError: If the zone does not exist.
            InvalidScheduleError: If the update is malformed.

        """
        runtime = self._require_zone(zone_id)
        runtime.schedule = runtime.schedule.merge(schedule)
        return runtime.schedule.as_dict()

    def get_schedule(self, zone_id: str) -> dict[str, Any]:
        """
        Return a zone's schedule.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        return self._require_zone(zone_id).schedule.as_dict()

    def set_occupancy(
        self, zone_id: str, *, occupied: bool, now: datetime | None = None
    ) -> None:
        """
        Record presence in a zone.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        runtime = self._require_zone(zone_id)
        runtime.occupancy.set_occupied(occupied=occupied, now=now or _utcnow())

    def set_window_open(self, zone_id: str, *, is_open: bool) -> None:
        """
        Record whether a window in the zone is open.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        self._require_zone(zone_id).state.window_open = is_open

    def calibrate_sensor(
        self, zone_id: str, offset: float, now: datetime | None = None
    ) -> dict[str, Any]:
        """
        Set the temperature calibration offset of a zone.

        The offset replaces the previous one. Current temperature readings
        are shifted by the difference; later readings get the new offset.

        Raises:
            UnknownZoneError: If the zone does not exist.
            NonFiniteValueError: If the offset is NaN or infinite.

        """
        runtime = self._require_zone(zone_id)
        offset = float(offset)
        if not math.isfinite(offset):
            raise NonFiniteValueError(zone_id, "calibration offset", offset)
        state = runtime.state
        delta = offset - state.calibration_offset
        if state.air_temp is not None:
            state.air_temp += delta
        if state.floor_temp is not None:
            state.floor_temp += delta
        state.calibration_offset = offset
        state.last_calibration = now or _utcnow()
        return self.get_zone_status(zone_id)

    def clear_fault(self, zone_id: str) -> dict[str, Any]:
        """
        Clear the fault code of a zone.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        self._require_zone(zone_id).state.fault_code = None
        return self.get_zone_status(zone_id)

    # ------------------------------------------------------------------
    # Collaborator inputs
    # ------------------------------------------------------------------

    def update_sensor_readings(
        self, zone_id: str, readings: Mapping[str, Any], now: datetime | None = None
    ) -> None:
        """
        Apply sensor readings to a zone.

        Unknown zones and malformed fields are ignored.
        """
        runtime = self._zones.get(zone_id)
        if runtime is None:
            LOGGER.debug("Ignoring readings for unknown zone %s", zone_id)
            return
        applied = runtime.update_readings(readings, now or _utcnow())
        ignored = set(readings) - set(applied)
        if ignored:
            LOGGER.debug("Zone %s: ignored readings %s", zone_id, sorted(ignored))

    def update_energy_price(self, price: Any, now: datetime | None = None) -> bool:
        """
        Apply a spot price and react with charge or coast.

        Returns:
            True if the price was accepted.

        """
        now = now or _utcnow()
        update = self.energy.on_price_update(price, now, self._zones.values())
        if update is None:
            LOGGER.warning("Ignoring malformed energy price: %r", price)
            return False

        self.events.emit(
            EventType.PRICE_UPDATED,
            now,
            price=update.price,
            action=update.action.value,
        )
        if update.action == PriceAction.CHARGE:
            self.events.emit(
                EventType.THERMAL_MASS_CHARGE,
                now,
                price=update.price,
                zones=update.zone_ids,
            )
        elif update.action == PriceAction.COAST:
            self.events.emit(
                EventType.THERMAL_MASS_COAST,
                now,
                price=update.price,
                zones=update.zone_ids,
            )
        return True

    def set_outdoor_conditions(
        self, conditions: Mapping[str, Any], now: datetime | None = None
    ) -> list[str]:
        """
        Apply outdoor conditions and run the weather update immediately.

        Returns:
            Names of the condition fields that were applied.

        """
        applied = self.weather.set_conditions(conditions)
        if not applied:
            LOGGER.debug("Ignoring outdoor conditions without usable fields")
            return applied
        self._run_weather(now or _utcnow())
        return applied

    def update_geofencing(
        self, presence: Mapping[str, Any], now: datetime | None = None
    ) -> bool:
        """
        Apply a household presence update.

        When the household is on its way home, every enabled zone is
        switched to comfort once per trip.

        Returns:
            True if pre-heating for arrival was started.

        """
        is_home = presence.get("is_home")
        triggered = self.geofence.update(
            distance_km=_optional_float(presence.get("distance_km")),
            eta_minutes=_optional_float(presence.get("eta_minutes")),
            is_home=is_home if isinstance(is_home, bool) else None,
        )
        if not triggered:
            return False

        now = now or _utcnow()
        zone_ids = []
        for runtime in self._zones.values():
            if not runtime.state.enabled:
                continue
            if runtime.set_mode(ZoneMode.COMFORT):
                self.events.emit(
                    EventType.MODE_CHANGED,
                    now,
                    runtime.zone_id,
                    mode=ZoneMode.COMFORT.value,
                    source=ScheduleSource.GEOFENCE.value,
                )
            zone_ids.append(runtime.zone_id)
        self.events.emit(
            EventType.PRE_HEAT_ARRIVAL,
            now,
            eta_minutes=self.geofence.eta_minutes,
            distance_km=self.geofence.distance_km,
            zones=zone_ids,
        )
        return True

    # ------------------------------------------------------------------
    # System settings
    # ------------------------------------------------------------------

    def set_holiday_mode(self, *, enabled: bool) -> None:
        """Enable or disable holiday frost protection for all zones."""
        self.holiday_mode = enabled
        if not enabled:
            for runtime in self._zones.values():
                runtime.state.frost_protection_active = False

    def set_pid_params(
        self,
        kp: float | None = None,
        ki: float | None = None,
        kd: float | None = None,
    ) -> dict[str, float]:
        """
        Retune the PID gains of every zone.

        Returns:
            The gains now in effect.

        """
        for name, value in (("kp", kp), ("ki", ki), ("kd", kd)):
            if value is not None:
                self.config.pid[name] = float(value)
        for runtime in self._zones.values():
            runtime.pid.set_gains(kp=kp, ki=ki, kd=kd)
        pid = {**DEFAULT_PID, **self.config.pid}
        return {"kp": pid["kp"], "ki": pid["ki"], "kd": pid["kd"]}

    def set_night_setback(
        self, start: str, end: str, *, enabled: bool = True
    ) -> dict[str, Any]:
        """
        Configure the night setback window.

        Raises:
            InvalidScheduleError: If a time is not HH:MM.

        """
        start_minute = parse_time(start)
        end_minute = parse_time(end)
        self.night_setback = NightSetback(
            start=start_minute, end=end_minute, enabled=enabled
        )
        return self.night_setback.as_dict()

    def reset_daily_energy(self, now: datetime | None = None) -> None:
        """Zero today's energy counters."""
        self.energy.reset_daily(now or _utcnow(), self._zones.values())

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def tick(self, now: datetime) -> list[str]:
        """
        Run every job whose interval has elapsed.

        Jobs run in a fixed order: schedule, weather, occupancy, control,
        energy, maintenance. A job runs on the first tick and then whenever
        its interval has passed since it last ran, allowing
        JOB_INTERVAL_TOLERANCE seconds of jitter in the caller's clock.

        Returns:
            Names of the jobs that ran.

        """
        ran: list[str] = []
        for name, interval, job in self._jobs:
            last = self._last_run.get(name)
            due = timedelta(seconds=interval - JOB_INTERVAL_TOLERANCE)
            if last is not None and now - last < due:
                continue
            job(now)
            self._last_run[name] = now
            ran.append(name)
        self.advance_sequences(now)
        return ran

    def schedule_tick(self, now: datetime) -> None:
        """Apply the schedule to every enabled zone."""
        for runtime in self._zones.values():
            if not runtime.state.enabled:
                continue
            decision = evaluate_schedule(
                runtime.schedule,
                runtime.state.mode,
                now,
                self.config.anticipatory_minutes,
            )
            if decision is None or not runtime.set_mode(decision.mode):
                continue
            self.events.emit(
                EventType.MODE_CHANGED,
                now,
                runtime.zone_id,
                mode=decision.mode.value,
                source=decision.source.value,
            )
            if decision.source == ScheduleSource.QUICK_HEAT:
                self.events.emit(
                    EventType.QUICK_HEAT_STARTED,
                    now,
                    runtime.zone_id,
                    comfort_at=format_time(decision.window.start),
                )

    def weather_tick(self, now: datetime) -> None:
        """Re-derive season, summer shutdown, degree days and curve targets."""
        self._run_weather(now)

    def _run_weather(self, now: datetime) -> None:
        """Run the weather update and emit the shutdown transition."""
        update = self.weather.update(now, self._zones.values(), self.energy)
        if update.summer_shutdown_changed:
            self.events.emit(
                EventType.SUMMER_SHUTDOWN,
                now,
                active=self.weather.state.summer_shutdown,
                outdoor_temp=self.weather.state.outdoor_temp,
            )

    def occupancy_tick(self, now: datetime) -> None:
        """Recompute unoccupied time for every zone."""
        for runtime in self._zones.values():
            if runtime.occupancy.update(now):
                self.events.emit(
                    EventType.OCCUPANCY_REDUCTION,
                    now,
                    runtime.zone_id,
                    unoccupied_minutes=round(runtime.occupancy.unoccupied_minutes),
                )

    def control_tick(self, now: datetime) -> None:
        """
        Run the control loop for every zone.

        A zone that fails is marked with a processing fault and stops
        heating; the remaining zones are still controlled.
        """
        for runtime in list(self._zones.values()):
            try:
                self._control_zone(runtime, now)
            except Exception:
                LOGGER.exception("Control failed for zone %s", runtime.zone_id)
                runtime.state.fault_code = FaultCode.PROCESSING_ERROR
                self._commit_output(runtime, 0.0, now)
                self.events.emit(
                    EventType.ZONE_FAULT,
                    now,
                    runtime.zone_id,
                    fault_code=FaultCode.PROCESSING_ERROR.value,
                )

    def _control_zone(self, runtime: ZoneRuntime, now: datetime) -> None:
        """Compute, protect and commit one zone's output."""
        state = runtime.state
        if not state.enabled:
            return

        target = resolve_effective_target(
            runtime,
            now,
            night_setback=self.night_setback,
            outdoor_temp=self.weather.state.outdoor_temp,
            weather=self.weather.config,
        )
        state.effective_target = target

        if self.weather.state.summer_shutdown:
            output = 0.0
            runtime.pid.pause()
        elif self.holiday_mode:
            output = self._holiday_output(runtime)
            runtime.pid.pause()
        elif state.window_open:
            output = 0.0
            runtime.pid.pause()
        elif state.air_temp is not None and not math.isfinite(state.air_temp):
            output = 0.0
            runtime.pid.pause()
        elif state.air_temp is None:
            # Not PID-driven without an air reading; hold the last output
            output = state.output
        else:
            output = runtime.pid.compute(target, state.air_temp, now)

        if state.window_open and not state.window_paused:
            self.events.emit(EventType.WINDOW_OPEN_PAUSE, now, runtime.zone_id)
        state.window_paused = state.window_open

        output = self._apply_pipe_freeze(runtime, output, now)

        result = clamp_output(runtime, output)
        if result.reason != state.limit_reason:
            if result.reason == LimitReason.FLOOR_LIMIT:
                self.events.emit(
                    EventType.FLOOR_TEMP_LIMIT,
                    now,
                    runtime.zone_id,
                    floor_temp=state.floor_temp,
                    max_floor_temp=runtime.max_floor_temp,
                )
            elif result.reason == LimitReason.MOISTURE:
                self.events.emit(EventType.MOISTURE_ALERT, now, runtime.zone_id)
        if (
            result.reason == LimitReason.SENSOR_FAULT
            and state.fault_code != FaultCode.SENSOR_FAULT
        ):
            state.fault_code = FaultCode.SENSOR_FAULT
            self.events.emit(
                EventType.ZONE_FAULT,
                now,
                runtime.zone_id,
                fault_code=FaultCode.SENSOR_FAULT.value,
            )
        state.limit_reason = result.reason

        self._commit_output(runtime, result.output, now)
        runtime.record_sample(now, target)

    def _holiday_output(self, runtime: ZoneRuntime) -> float:
        """Return the frost protection output with hysteresis."""
        state = runtime.state
        frost = runtime.config.frost_temp
        if state.air_temp is not None:
            if state.air_temp < frost + HOLIDAY_HEAT_BELOW:
                state.frost_protection_active = True
            elif state.air_temp >= frost + HOLIDAY_STOP_ABOVE:
                state.frost_protection_active = False
        return HOLIDAY_FROST_OUTPUT if state.frost_protection_active else 0.0

    def _apply_pipe_freeze(
        self, runtime: ZoneRuntime, output: float, now: datetime
    ) -> float:
        """Keep hydronic circuits above freezing regardless of other rules."""
        state = runtime.state
        at_risk = (
            runtime.config.heating_type.has_valve
            and state.floor_temp is not None
            and state.floor_temp < PIPE_FREEZE_FLOOR_TEMP
        )
        if at_risk and not state.pipe_freeze_active:
            self.events.emit(
                EventType.PIPE_FREEZE_PROTECTION,
                now,
                runtime.zone_id,
                floor_temp=state.floor_temp,
            )
        state.pipe_freeze_active = at_risk
        return max(output, PIPE_FREEZE_OUTPUT) if at_risk else output

    def _commit_output(
        self, runtime: ZoneRuntime, output: float, now: datetime
    ) -> None:
        """Apply an output and emit the heating transition."""
        transition = runtime.apply_output(output, now)
        if transition == HeatingTransition.STARTED:
            self.events.emit(
                EventType.HEATING_STARTED,
                now,
                runtime.zone_id,
                output=runtime.state.output,
            )
        elif transition == HeatingTransition.STOPPED:
            self.events.emit(EventType.HEATING_STOPPED, now, runtime.zone_id)

    def energy_tick(self, now: datetime) -> None:
        """Integrate consumption and roll calendar buckets."""
        self.energy.log_tick(now, self._zones.values())

    def maintenance_tick(self, now: datetime) -> None:
        """Check valves and flow, and start the anti-seize exercise when due."""
        zones = self.zones
        for alert in self.maintenance.check_valve_health(zones, now):
            self.events.emit(
                EventType.VALVE_STUCK,
                now,
                alert.zone_id,
                valve_position=alert.valve_position,
                flow_rate=alert.flow_rate,
            )
        for anomaly in self.maintenance.check_flow_rates(zones, now):
            self.events.emit(
                EventType.FLOW_RATE_ANOMALY,
                now,
                anomaly.zone_id,
                expected=round(anomaly.expected, 2),
                measured=round(anomaly.measured, 2),
            )
        if self.maintenance.anti_seize_due(now):
            started = self.maintenance.start_anti_seize(zones, now)
            if started:
                self.events.emit(EventType.ANTI_SEIZE_STARTED, now, zones=started)

    def advance_sequences(self, now: datetime) -> list[str]:
        """
        Execute due anti-seize steps.

        Returns:
            Ids of the zones whose valve position changed.

        """
        changed: list[str] = []
        for command in self.maintenance.advance_sequences(self._zones, now):
            changed.append(command.zone_id)
            if command.completed:
                self.events.emit(
                    EventType.ANTI_SEIZE_COMPLETED,
                    now,
                    command.zone_id,
                    valve_position=command.position,
                )
        return changed

    def next_sequence_due(self) -> datetime | None:
        """Return when the next anti-seize step is due."""
        return self.maintenance.next_sequence_due()

    def stop(self) -> None:
        """Cancel in-flight anti-seize sequences, leaving valves in place."""
        cancelled = self.maintenance.cancel_sequences(self._zones)
        if cancelled:
            LOGGER.debug("Cancelled anti-seize for zones %s", cancelled)

    def drain_events(self) -> list[HeatingEvent]:
        """Remove and return all pending events."""
        return self.events.drain()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_comfort_score(self, zone_id: str) -> ComfortScore:
        """
        Return the comfort score of a zone.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        state = self._require_zone(zone_id).state
        return calculate_comfort(state.air_temp, state.floor_temp, state.humidity)

    def get_comfort_comparison(self) -> list[dict[str, Any]]:
        """
        Rank every zone by comfort score, best first.

        Zones without a score are listed last, in registration order.
        """
        ranking = []
        for runtime in self._zones.values():
            comfort = self.get_comfort_score(runtime.zone_id)
            ranking.append(
                {
                    "zone_id": runtime.zone_id,
                    "name": runtime.config.name,
                    "score": comfort.score,
                    "rating": comfort.rating.value,
                    "air_temp": runtime.state.air_temp,
                    "floor_temp": runtime.state.floor_temp,
                }
            )
        ranking.sort(key=lambda item: (item["score"] is None, -(item["score"] or 0)))
        return ranking

    def get_zone_status(self, zone_id: str) -> dict[str, Any]:
        """
        Return a status snapshot of a zone.

        Raises:
            UnknownZoneError: If the zone does not exist.

        """
        runtime = self._require_zone(zone_id)
        config = runtime.config
        state = runtime.state
        comfort = self.get_comfort_score(zone_id)
        return {
            "zone_id": config.zone_id,
            "name": config.name,
            "heating_type": config.heating_type.value,
            "floor_material": config.floor_material.value,
            "enabled": state.enabled,
            "mode": state.mode.value,
            "target_temp": state.target_temp,
            "effective_target": state.effective_target,
            "air_temp": state.air_temp,
            "floor_temp": state.floor_temp,
            "humidity": state.humidity,
            "max_floor_temp": runtime.max_floor_temp,
            "heating_active": state.heating_active,
            "output": state.output,
            "valve_position": state.valve_position,
            "flow_rate": state.flow_rate,
            "current_power": state.current_power,
            "limit_reason": state.limit_reason.value,
            "window_paused": state.window_paused,
            "energy_today_kwh": round(state.energy_today_kwh, 2),
            "cost_today": round(state.cost_today, 2),
            "comfort_score": comfort.score,
            "comfort_rating": comfort.rating.value,
            "fault_code": state.fault_code.value if state.fault_code else None,
            "sensor_battery": state.sensor_battery,
            "last_reading": (
                state.last_reading.isoformat() if state.last_reading else None
            ),
        }

    def get_all_zone_status(self) -> list[dict[str, Any]]:
        """Return status snapshots of every zone."""
        return [self.get_zone_status(zone_id) for zone_id in self._zones]

    def get_energy_report(
        self, period: str = "day", now: datetime | None = None
    ) -> dict[str, Any]:
        """
        Return consumption for a period.

        Raises:
            InvalidPeriodError: If the period is not recognized.

        """
        return self.energy.report(period, now or _utcnow())

    def get_maintenance_report(self, now: datetime | None = None) -> dict[str, Any]:
        """Return the maintenance summary."""
        return self.maintenance.report(self._zones.values(), now or _utcnow())

    def get_annual_comparison(self, now: datetime | None = None) -> dict[str, Any]:
        """Compare year-to-date consumption with last year."""
        return self.energy.annual_comparison(now or _utcnow())

    @property
    def system_state(self) -> str:
        """Return the overall operating state."""
        if self.weather.state.summer_shutdown:
            return "summer_shutdown"
        if self.holiday_mode:
            return "holiday"
        return "active"

    def get_system_summary(self, now: datetime | None = None) -> dict[str, Any]:
        """Return an overview of the whole system."""
        now = now or _utcnow()
        zones = self.get_all_zone_status()
        scores = [z["comfort_score"] for z in zones if z["comfort_score"] is not None]
        report = self.maintenance.report(self._zones.values(), now)
        return {
            "timestamp": now.isoformat(),
            "system_state": self.system_state,
            "season": self.weather.state.season.value,
            "outdoor_temp": self.weather.state.outdoor_temp,
            "zone_count": len(zones),
            "active_heating_zones": sum(1 for z in zones if z["heating_active"]),
            "total_power": sum(z["current_power"] for z in zones),
            "energy_today": self.energy.report("day", now),
            "current_price": self.energy.state.current_price,
            "average_comfort_score": (
                round(sum(scores) / len(scores)) if scores else None
            ),
            "system_health": report["system_health"],
            "valve_alerts": len(report["valve_alerts"]),
            "flow_anomalies": len(report["flow_anomalies"]),
            "zones": zones,
            "comfort_ranking": self.get_comfort_comparison(),
        }

    def get_statistics(self, now: datetime | None = None) -> dict[str, Any]:
        """Return runtime, cycle and efficiency statistics."""
        now = now or _utcnow()
        return {
            "zones": {
                runtime.zone_id: {
                    "name": runtime.config.name,
                    "runtime_hours": round(
                        runtime.state.runtime_total_seconds / 3600, 1
                    ),
                    "heating_cycles": runtime.state.heating_cycles,
                    "energy_total_kwh": round(runtime.state.energy_total_kwh, 2),
                    "comfort_score": self.get_comfort_score(runtime.zone_id).score,
                }
                for runtime in self._zones.values()
            },
            "heating_degree_days": round(self.energy.state.heating_degree_days, 1),
            **self.energy.statistics(self._zones.values()),
            "annual_comparison": self.energy.annual_comparison(now),
            "comfort_ranking": self.get_comfort_comparison(),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def export_state(self) -> dict[str, Any]:
        """Return the persistent engine state as a JSON-safe mapping."""
        return {
            "holiday_mode": self.holiday_mode,
            "night_setback": self.night_setback.as_dict(),
            "pid": dict(self.config.pid),
            "energy": self.energy.as_dict(),
            "maintenance": self.maintenance.as_dict(),
            "zones": {
                runtime.zone_id: _export_zone(runtime)
                for runtime in self._zones.values()
            },
        }

    def restore_state(self, data: Mapping[str, Any]) -> None:
        """
        Restore persisted engine state.

        Zones that are no longer configured are skipped. Malformed
        sections are logged and left at their defaults.
        """
        self.holiday_mode = bool(data.get("holiday_mode", self.holiday_mode))

        if setback := data.get("night_setback"):
            try:
                self.set_night_setback(
                    setback["start"],
                    setback["end"],
                    enabled=bool(setback.get("enabled", True)),
                )
            except (KeyError, TypeError, ValueError) as err:
                LOGGER.warning("Ignoring stored night setback: %s", err)

        if pid := data.get("pid"):
            self.set_pid_params(pid.get("kp"), pid.get("ki"), pid.get("kd"))

        self.energy.restore(data.get("energy", {}))
        self.maintenance.restore(data.get("maintenance", {}))

        for zone_id, zone_data in data.get("zones", {}).items():
            runtime = self._zones.get(zone_id)
            if runtime is None:
                LOGGER.debug("Skipping stored state for removed zone %s", zone_id)
                continue
            try:
                _restore_zone(runtime, zone_data)
            except (FloorHeatingError, KeyError, TypeError, ValueError) as err:
                LOGGER.warning("Ignoring stored state for zone %s: %s", zone_id, err)


def _optional_float(value: Any) -> float | None:
    """Return value as a float, or None if it is missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _export_zone(runtime: ZoneRuntime) -> dict[str, Any]:
    """Serialize the persistent part of a zone."""
    state = runtime.state
    pid_state = runtime.pid.state
    return {
        "enabled": state.enabled,
        "mode": state.mode.value,
        "target_temp": state.target_temp,
        "calibration_offset": state.calibration_offset,
        "fault_code": state.fault_code.value if state.fault_code else None,
        "energy_today_kwh": state.energy_today_kwh,
        "energy_total_kwh": state.energy_total_kwh,
        "cost_today": state.cost_today,
        "cost_total": state.cost_total,
        "heating_cycles": state.heating_cycles,
        "runtime_today_seconds": state.runtime_today_seconds,
        "runtime_total_seconds": state.runtime_total_seconds,
        "schedule": runtime.schedule.as_dict(),
        "pid": {
            "integral": pid_state.integral,
            "previous_error": pid_state.previous_error,
            "smoothed_output": pid_state.smoothed_output,
        },
    }


def _restore_zone(runtime: ZoneRuntime, data: Mapping[str, Any]) -> None:
    """Restore a zone from its serialized form."""
    state = runtime.state
    schedule = (
        ZoneSchedule.from_dict(data["schedule"]) if "schedule" in data else None
    )
    mode = ZoneMode(data.get("mode", state.mode))
    fault_code = data.get("fault_code")
    fault = FaultCode(fault_code) if fault_code else None
    target_temp = float(data.get("target_temp", state.target_temp))
    offset = float(data.get("calibration_offset", state.calibration_offset))
    if not (math.isfinite(target_temp) and math.isfinite(offset)):
        msg = f"Non-finite target or offset for zone {runtime.zone_id}"
        raise ValueError(msg)

    state.enabled = bool(data.get("enabled", state.enabled))
    state.mode = mode
    state.target_temp = target_temp
    state.calibration_offset = offset
    state.fault_code = fault
    for counter in (
        "energy_today_kwh",
        "energy_total_kwh",
        "cost_today",
        "cost_total",
        "runtime_today_seconds",
        "runtime_total_seconds",
    ):
        setattr(state, counter, float(data.get(counter, getattr(state, counter))))
    state.heating_cycles = int(data.get("heating_cycles", state.heating_cycles))
    if schedule is not None:
        runtime.schedule = schedule

    if pid := data.get("pid"):
        runtime.pid.restore(
            integral=float(pid.get("integral", 0.0)),
            previous_error=float(pid.get("previous_error", 0.0)),
            smoothed_output=float(pid.get("smoothed_output", 0.0)),
        )

