"""DataUpdateCoordinator for Floor Heating Controller."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.components.number.const import ATTR_VALUE, SERVICE_SET_VALUE
from homeassistant.const import (
    ATTR_BATTERY_LEVEL,
    ATTR_ENTITY_ID,
    SERVICE_TURN_OFF,
    SERVICE_TURN_ON,
    STATE_OFF,
    STATE_ON,
    STATE_UNAVAILABLE,
    STATE_UNKNOWN,
    Platform,
)
from homeassistant.core import Event, callback, split_entity_id
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.event import (
    EventStateChangedData,
    async_call_later,
    async_track_state_change_event,
)
from homeassistant.helpers.storage import Store
from homeassistant.helpers.update_coordinator import TimestampDataUpdateCoordinator
from homeassistant.util import dt as dt_util

from .const import (
    CONF_AIR_TEMP_SENSOR,
    CONF_AREA,
    CONF_CONTROLLER_ID,
    CONF_FLOOR_MATERIAL,
    CONF_FLOOR_TEMP_SENSOR,
    CONF_FLOW_SENSOR,
    CONF_HEATER_ENTITY,
    CONF_HEATING_TYPE,
    CONF_HUMIDITY_SENSOR,
    CONF_INSTALLED_POWER,
    CONF_MAX_FLOOR_TEMP,
    CONF_OUTDOOR_TEMP_SENSOR,
    CONF_PRICE_SENSOR,
    CONF_TEMPERATURES,
    CONF_WINDOW_SENSORS,
    CONF_ZONE_ID,
    DEFAULT_PID,
    DEFAULT_TIMING,
    DEFAULT_ZONE,
    DEFAULT_ZONE_TEMPERATURES,
    DOMAIN,
    EVENT_FLOOR_HEATING,
    LOGGER,
    STORAGE_KEY,
    STORAGE_VERSION,
    SUBENTRY_TYPE_CONTROLLER,
    SUBENTRY_TYPE_ZONE,
    FloorMaterial,
    HeatingType,
    TimingParams,
)
from .core import (
    EngineConfig,
    EventType,
    FloorHeatingError,
    HeatingEngine,
    HeatingEvent,
    ZoneConfig,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from homeassistant.core import HomeAssistant

    from .data import FloorHeatingConfigEntry

# Heater entities in these domains take a valve position instead of on/off
VALUE_DOMAINS = (Platform.NUMBER, "input_number")

WARNING_EVENTS = frozenset(
    {
        EventType.FLOOR_TEMP_LIMIT,
        EventType.MOISTURE_ALERT,
        EventType.VALVE_STUCK,
        EventType.FLOW_RATE_ANOMALY,
        EventType.PIPE_FREEZE_PROTECTION,
        EventType.ZONE_FAULT,
    }
)
INFO_EVENTS = frozenset(
    {
        EventType.SUMMER_SHUTDOWN,
        EventType.THERMAL_MASS_CHARGE,
        EventType.THERMAL_MASS_COAST,
        EventType.PRE_HEAT_ARRIVAL,
        EventType.ANTI_SEIZE_STARTED,
        EventType.ANTI_SEIZE_COMPLETED,
    }
)


@dataclass(frozen=True)
class ZoneBinding:
    """Home Assistant entities wired to one zone."""

    air_temp_sensor: str
    floor_temp_sensor: str | None = None
    humidity_sensor: str | None = None
    flow_sensor: str | None = None
    window_sensors: tuple[str, ...] = field(default_factory=tuple)
    heater_entity: str | None = None


def zone_from_subentry(data: Mapping[str, Any]) -> tuple[ZoneConfig, ZoneBinding]:
    """
    Build a zone configuration and its entity binding from subentry data.

    Raises:
        InvalidZoneConfigError: If the stored values are inconsistent.
        ValueError: If the heating type or floor material is unknown.

    """
    temperatures = {**DEFAULT_ZONE_TEMPERATURES, **data.get(CONF_TEMPERATURES, {})}
    max_floor_temp = data.get(CONF_MAX_FLOOR_TEMP)
    zone_config = ZoneConfig(
        zone_id=data[CONF_ZONE_ID],
        name=data.get("name", data[CONF_ZONE_ID]),
        heating_type=HeatingType(
            data.get(CONF_HEATING_TYPE, DEFAULT_ZONE["heating_type"])
        ),
        floor_material=FloorMaterial(
            data.get(CONF_FLOOR_MATERIAL, DEFAULT_ZONE["floor_material"])
        ),
        comfort_temp=float(temperatures["comfort"]),
        eco_temp=float(temperatures["eco"]),
        frost_temp=float(temperatures["frost"]),
        max_floor_temp=float(max_floor_temp) if max_floor_temp else None,
        area=float(data.get(CONF_AREA, DEFAULT_ZONE["area"])),
        installed_power=float(
            data.get(CONF_INSTALLED_POWER, DEFAULT_ZONE["installed_power"])
        ),
    )
    zone_config.validate()
    binding = ZoneBinding(
        air_temp_sensor=data[CONF_AIR_TEMP_SENSOR],
        floor_temp_sensor=data.get(CONF_FLOOR_TEMP_SENSOR) or None,
        humidity_sensor=data.get(CONF_HUMIDITY_SENSOR) or None,
        flow_sensor=data.get(CONF_FLOW_SENSOR) or None,
        window_sensors=tuple(data.get(CONF_WINDOW_SENSORS, [])),
        heater_entity=data.get(CONF_HEATER_ENTITY) or None,
    )
    return zone_config, binding


class FloorHeatingDataUpdateCoordinator(
    TimestampDataUpdateCoordinator[dict[str, Any]]
):
    """Drive the heating engine from Home Assistant state."""

    config_entry: FloorHeatingConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        entry: FloorHeatingConfigEntry,
    ) -> None:
        """Initialize the coordinator."""
        self._bindings: dict[str, ZoneBinding] = {}
        self._engine = self._build_engine(entry)
        timing = self._engine.config.timing

        super().__init__(
            hass,
            LOGGER,
            config_entry=entry,
            name=DOMAIN,
            update_interval=timedelta(seconds=timing.control_interval),
        )

        self._store: Store[dict[str, Any]] = Store(
            hass,
            STORAGE_VERSION,
            f"{STORAGE_KEY}.{entry.entry_id}",
        )
        self._state_restored: bool = False
        self._lock = asyncio.Lock()

        # Last collaborator values fed to the engine, only changes are applied
        self._applied_price: float | None = None
        self._applied_outdoor_temp: float | None = None

        self._listener_unsub: Callable[[], None] | None = None
        self._sequence_unsub: Callable[[], None] | None = None

    def _build_engine(self, entry: FloorHeatingConfigEntry) -> HeatingEngine:
        """Build the heating engine from the config entry and its subentries."""
        data = entry.data
        controller_data: Mapping[str, Any] = {}
        zones: list[ZoneConfig] = []
        self._bindings = {}

        for subentry in entry.subentries.values():
            if subentry.subentry_type == SUBENTRY_TYPE_CONTROLLER:
                controller_data = subentry.data
                continue
            if subentry.subentry_type != SUBENTRY_TYPE_ZONE:
                continue
            try:
                zone_config, binding = zone_from_subentry(subentry.data)
            except (FloorHeatingError, KeyError, ValueError) as err:
                LOGGER.error("Skipping zone '%s': %s", subentry.title, err)
                continue
            if zone_config.zone_id in self._bindings:
                LOGGER.error("Skipping duplicate zone id '%s'", zone_config.zone_id)
                continue
            zones.append(zone_config)
            self._bindings[zone_config.zone_id] = binding

        timing_data = {**DEFAULT_TIMING, **controller_data.get("timing", {})}
        timing = TimingParams(**{key: int(timing_data[key]) for key in DEFAULT_TIMING})
        pid = {**DEFAULT_PID, **controller_data.get("pid", {})}

        config = EngineConfig(
            controller_id=data.get(CONF_CONTROLLER_ID, DOMAIN),
            name=data.get("name", "Floor Heating"),
            timing=timing,
            pid={key: float(value) for key, value in pid.items()},
            zones=zones,
        )
        return HeatingEngine(config)

    @property
    def engine(self) -> HeatingEngine:
        """Return the heating engine."""
        return self._engine

    @property
    def bindings(self) -> dict[str, ZoneBinding]:
        """Return the entity bindings by zone id."""
        return self._bindings

    async def async_load_stored_state(self) -> None:
        """Restore persisted engine state."""
        if self._state_restored:
            return

        stored_data = await self._store.async_load()
        if stored_data is None:
            self._state_restored = True
            return

        if "last_update_success_time" in stored_data:
            try:
                self.last_update_success_time = datetime.fromisoformat(
                    stored_data["last_update_success_time"]
                )
            except (ValueError, TypeError):
                # Invalid timestamp format, start fresh
                self.last_update_success_time = None

        self._engine.restore_state(stored_data)
        self._state_restored = True

    async def async_config_entry_first_refresh(self) -> None:
        """Perform first refresh and set up state change listeners."""
        await super().async_config_entry_first_refresh()
        self._async_setup_listeners()

    def _async_setup_listeners(self) -> None:
        """Refresh when a window, price or outdoor sensor changes."""
        if self._listener_unsub is not None:
            self._listener_unsub()
            self._listener_unsub = None

        entity_ids: list[str] = []
        for binding in self._bindings.values():
            entity_ids.extend(binding.window_sensors)
        for key in (CONF_PRICE_SENSOR, CONF_OUTDOOR_TEMP_SENSOR):
            if entity_id := self.config_entry.data.get(key):
                entity_ids.append(entity_id)

        if not entity_ids:
            return

        self._listener_unsub = async_track_state_change_event(
            self.hass, entity_ids, self._on_external_entity_change
        )
        self.config_entry.async_on_unload(self._listener_unsub)
        LOGGER.debug("Subscribed to state changes for %s", entity_ids)

    @callback
    def _on_external_entity_change(self, event: Event[EventStateChangedData]) -> None:
        """Request a refresh after a watched entity changed."""
        new_state = event.data["new_state"]
        if new_state is None:
            # entity removed; ignore the event
            return
        old_state = event.data.get("old_state")
        LOGGER.debug(
            "State change detected for %s: %s -> %s, requesting refresh",
            event.data["entity_id"],
            old_state.state if old_state else None,
            new_state.state,
        )
        self.hass.async_create_task(self.async_request_refresh())

    def _build_storage_state(self) -> dict[str, Any]:
        """Build state dictionary for persistent storage."""
        data: dict[str, Any] = {
            "version": STORAGE_VERSION,
            "saved_at": datetime.now(UTC).isoformat(),
            **self._engine.export_state(),
        }
        if self.last_update_success_time is not None:
            data["last_update_success_time"] = self.last_update_success_time.isoformat()
        return data

    async def async_save_state(self) -> None:
        """Save current state to storage."""
        await self._store.async_save(self._build_storage_state())

    def _async_refresh_finished(self) -> None:
        """Persist state after every successful refresh."""
        super()._async_refresh_finished()
        if self.last_update_success:
            self.hass.async_create_task(self.async_save_state())

    async def async_shutdown(self) -> None:
        """Cancel pending valve exercise steps and stop the engine."""
        if self._sequence_unsub is not None:
            self._sequence_unsub()
            self._sequence_unsub = None
        self._engine.stop()
        await super().async_shutdown()

    async def _async_update_data(self) -> dict[str, Any]:
        """Feed inputs to the engine, run due jobs and command the heaters."""
        if not self._state_restored:
            await self.async_load_stored_state()

        async with self._lock:
            now = dt_util.now()
            self._read_controller_inputs(now)
            for zone_id, binding in self._bindings.items():
                self._read_zone_inputs(zone_id, binding, now)

            ran = self._engine.tick(now)
            if ran:
                LOGGER.debug("Engine jobs run: %s", ran)

            await self._async_write_heaters(self._bindings)
            self._publish_events()
            self._schedule_sequence_step()

        return self._build_state_dict()

    def _read_float(self, entity_id: str) -> float | None:
        """Return a numeric entity state, or None if it is not usable."""
        state = self.hass.states.get(entity_id)
        if state is None or state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
            return None
        try:
            return float(state.state)
        except ValueError:
            LOGGER.warning("Invalid numeric state for %s: %s", entity_id, state.state)
            return None

    def _read_zone_inputs(
        self, zone_id: str, binding: ZoneBinding, now: datetime
    ) -> None:
        """Push one zone's sensor readings and window state to the engine."""
        readings: dict[str, Any] = {}
        for key, entity_id in (
            ("air_temp", binding.air_temp_sensor),
            ("floor_temp", binding.floor_temp_sensor),
            ("humidity", binding.humidity_sensor),
            ("flow_rate", binding.flow_sensor),
        ):
            if entity_id and (value := self._read_float(entity_id)) is not None:
                readings[key] = value

        air_state = self.hass.states.get(binding.air_temp_sensor)
        if air_state is not None and (
            battery := air_state.attributes.get(ATTR_BATTERY_LEVEL)
        ) is not None:
            readings["battery"] = battery

        if readings:
            self._engine.update_sensor_readings(zone_id, readings, now)

        window_open = False
        for sensor_id in binding.window_sensors:
            state = self.hass.states.get(sensor_id)
            if state is not None and state.state == STATE_ON:
                window_open = True
                break
        self._engine.set_window_open(zone_id, is_open=window_open)

    def _read_controller_inputs(self, now: datetime) -> None:
        """Push price and outdoor temperature changes to the engine."""
        data = self.config_entry.data

        if price_sensor := data.get(CONF_PRICE_SENSOR):
            price = self._read_float(price_sensor)
            if (
                price is not None
                and price != self._applied_price
                and self._engine.update_energy_price(price, now)
            ):
                self._applied_price = price

        if outdoor_sensor := data.get(CONF_OUTDOOR_TEMP_SENSOR):
            outdoor = self._read_float(outdoor_sensor)
            if outdoor is not None and outdoor != self._applied_outdoor_temp:
                self._engine.set_outdoor_conditions({"temperature": outdoor}, now)
                self._applied_outdoor_temp = outdoor

    async def _async_write_heaters(self, zone_ids: Iterable[str]) -> None:
        """Command the heater entities of the given zones."""
        for zone_id in zone_ids:
            binding = self._bindings.get(zone_id)
            if binding is None or binding.heater_entity is None:
                continue
            await self._async_write_heater(zone_id, binding.heater_entity)

    async def _async_write_heater(self, zone_id: str, entity_id: str) -> None:
        """Bring one heater entity in line with the zone's output."""
        runtime = self._engine.get_zone_runtime(zone_id)
        if runtime is None:
            return
        state = runtime.state
        domain, _ = split_entity_id(entity_id)
        current = self.hass.states.get(entity_id)

        if domain in VALUE_DOMAINS:
            position = state.valve_position
            if current is not None and self._read_float(entity_id) == position:
                return
            service = SERVICE_SET_VALUE
            service_data: dict[str, Any] = {
                ATTR_ENTITY_ID: entity_id,
                ATTR_VALUE: position,
            }
        else:
            if state.valve_override is not None:
                turn_on = state.valve_override > 0
            else:
                turn_on = state.heating_active
            if current is not None and current.state == (
                STATE_ON if turn_on else STATE_OFF
            ):
                return
            service = SERVICE_TURN_ON if turn_on else SERVICE_TURN_OFF
            service_data = {ATTR_ENTITY_ID: entity_id}

        if not self.hass.services.has_service(domain, service):
            LOGGER.debug(
                "Service '%s.%s' not available, skipping call to %s",
                domain,
                service,
                entity_id,
            )
            return

        try:
            await self.hass.services.async_call(domain, service, service_data)
        except HomeAssistantError:
            LOGGER.warning(
                "Zone %s: failed to command heater %s",
                zone_id,
                entity_id,
                exc_info=True,
            )
            return
        LOGGER.debug("Service '%s.%s' called for %s", domain, service, entity_id)

    def _publish_events(self) -> None:
        """Fire drained engine events on the event bus."""
        for event in self._engine.drain_events():
            self._log_event(event)
            self.hass.bus.async_fire(
                EVENT_FLOOR_HEATING,
                {"entry_id": self.config_entry.entry_id, **event.as_dict()},
            )

    def _log_event(self, event: HeatingEvent) -> None:
        """Log an engine event at a level matching its severity."""
        if event.event_type in WARNING_EVENTS:
            LOGGER.warning(
                "Zone %s: %s %s", event.zone_id, event.event_type.value, event.data
            )
        elif event.event_type in INFO_EVENTS:
            LOGGER.info("%s: %s", event.event_type.value, event.data)
        else:
            LOGGER.debug(
                "Zone %s: %s %s", event.zone_id, event.event_type.value, event.data
            )

    def _schedule_sequence_step(self) -> None:
        """Arm a timer for the next anti-seize step, if any."""
        if self._sequence_unsub is not None:
            return
        due = self._engine.next_sequence_due()
        if due is None:
            return
        delay = max(0.0, (due - dt_util.now()).total_seconds())
        self._sequence_unsub = async_call_later(
            self.hass, delay, self._async_sequence_step
        )

    async def _async_sequence_step(self, _now: datetime) -> None:
        """Execute due anti-seize steps between regular refreshes."""
        self._sequence_unsub = None
        async with self._lock:
            changed = self._engine.advance_sequences(dt_util.now())
            await self._async_write_heaters(changed)
            self._publish_events()
            self._schedule_sequence_step()
        if changed:
            self.async_set_updated_data(self._build_state_dict())

    def _build_state_dict(self) -> dict[str, Any]:
        """Build state dictionary for entities to consume."""
        now = dt_util.now()
        engine = self._engine
        weather = engine.weather.state
        energy_today = engine.get_energy_report("day", now)
        maintenance = engine.get_maintenance_report(now)
        zones = {status["zone_id"]: status for status in engine.get_all_zone_status()}

        return {
            "system_state": engine.system_state,
            "season": weather.season.value,
            "summer_shutdown": weather.summer_shutdown,
            "holiday_mode": engine.holiday_mode,
            "outdoor_temp": weather.outdoor_temp,
            "current_price": engine.energy.state.current_price,
            "price_action": engine.energy.state.last_action.value,
            "energy_today_kwh": energy_today["kwh"],
            "cost_today": energy_today["cost"],
            "heating_degree_days": round(engine.energy.state.heating_degree_days, 2),
            "system_health": maintenance["system_health"],
            "anti_seize_running": maintenance["anti_seize_running"],
            "zones_heating": sum(1 for z in zones.values() if z["heating_active"]),
            "total_power": sum(z["current_power"] for z in zones.values()),
            "zones": zones,
        }

    async def _async_run[T](
        self, operation: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Run an engine operation, publish its events and refresh."""
        async with self._lock:
            result = operation(*args, **kwargs)
            self._publish_events()
        await self.async_request_refresh()
        return result

    async def async_set_zone_temperature(
        self, zone_id: str, temperature: float
    ) -> dict[str, Any]:
        """Set a zone's target temperature."""
        return await self._async_run(
            self._engine.set_zone_temp, zone_id, temperature
        )

    async def async_set_zone_mode(self, zone_id: str | None, mode: str) -> None:
        """Set the mode of one zone, or of every zone when zone_id is None."""
        now = dt_util.now()
        if zone_id is None:
            await self._async_run(self._engine.set_all_zones_mode, mode, now)
        else:
            await self._async_run(self._engine.set_mode, zone_id, mode, now)

    async def async_set_zone_enabled(self, zone_id: str, *, enabled: bool) -> None:
        """Enable or disable a zone and command its heater."""
        await self._async_run(
            self._engine.set_zone_enabled, zone_id, enabled=enabled, now=dt_util.now()
        )
        if not enabled:
            async with self._lock:
                await self._async_write_heaters([zone_id])

    async def async_set_schedule(
        self, zone_id: str, schedule: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Merge a schedule update into a zone's schedule."""
        return await self._async_run(self._engine.set_schedule, zone_id, schedule)

    def get_schedule(self, zone_id: str) -> dict[str, Any]:
        """Return a zone's schedule."""
        return self._engine.get_schedule(zone_id)

    async def async_set_occupancy(self, zone_id: str, *, occupied: bool) -> None:
        """Record presence in a zone."""
        await self._async_run(
            self._engine.set_occupancy, zone_id, occupied=occupied, now=dt_util.now()
        )

    async def async_calibrate_sensor(
        self, zone_id: str, offset: float
    ) -> dict[str, Any]:
        """Set a zone's temperature calibration offset."""
        return await self._async_run(
            self._engine.calibrate_sensor, zone_id, offset, dt_util.now()
        )

    async def async_clear_fault(self, zone_id: str) -> dict[str, Any]:
        """Clear a zone's fault code."""
        return await self._async_run(self._engine.clear_fault, zone_id)

    async def async_update_energy_price(self, price: float) -> bool:
        """Apply a spot price."""
        return await self._async_run(
            self._engine.update_energy_price, price, dt_util.now()
        )

    async def async_set_outdoor_conditions(
        self, conditions: Mapping[str, Any]
    ) -> list[str]:
        """Apply outdoor conditions."""
        return await self._async_run(
            self._engine.set_outdoor_conditions, conditions, dt_util.now()
        )

    async def async_update_geofencing(self, presence: Mapping[str, Any]) -> bool:
        """Apply a household presence update."""
        return await self._async_run(
            self._engine.update_geofencing, presence, dt_util.now()
        )

    async def async_set_holiday_mode(self, *, enabled: bool) -> None:
        """Enable or disable holiday frost protection."""
        await self._async_run(self._engine.set_holiday_mode, enabled=enabled)

    async def async_set_night_setback(
        self, start: str, end: str, *, enabled: bool
    ) -> dict[str, Any]:
        """Configure the night setback window."""
        return await self._async_run(
            self._engine.set_night_setback, start, end, enabled=enabled
        )

    def get_energy_report(self, period: str) -> dict[str, Any]:
        """Return consumption for a period."""
        return self._engine.get_energy_report(period, dt_util.now())

    def get_maintenance_report(self) -> dict[str, Any]:
        """Return the maintenance summary."""
        return self._engine.get_maintenance_report(dt_util.now())

    def get_statistics(self) -> dict[str, Any]:
        """Return runtime and efficiency statistics."""
        return self._engine.get_statistics(dt_util.now())
