"""Service actions for Floor Heating Controller."""

from __future__ import annotations

import math
from functools import partial
from typing import TYPE_CHECKING, Any

import voluptuous as vol
from homeassistant.config_entries import ConfigEntryState
from homeassistant.const import ATTR_TEMPERATURE
from homeassistant.core import SupportsResponse
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import config_validation as cv

from .const import DOMAIN, LOGGER, EnergyPeriod, ZoneMode
from .core import FloorHeatingError

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse

    from .coordinator import FloorHeatingDataUpdateCoordinator
    from .data import FloorHeatingConfigEntry

ATTR_CONFIG_ENTRY_ID = "config_entry_id"
ATTR_ZONE_ID = "zone_id"
ATTR_MODE = "mode"
ATTR_DAYS = "days"
ATTR_ACTIVE = "active"
ATTR_QUICK_HEAT_ENABLED = "quick_heat_enabled"
ATTR_PREHEAT_MINUTES = "preheat_minutes"
ATTR_PRICE = "price"
ATTR_OUTDOOR_HUMIDITY = "humidity"
ATTR_WIND_SPEED = "wind_speed"
ATTR_SUN_IRRADIANCE = "sun_irradiance"
ATTR_DISTANCE_KM = "distance_km"
ATTR_ETA_MINUTES = "eta_minutes"
ATTR_IS_HOME = "is_home"
ATTR_ENABLED = "enabled"
ATTR_PERIOD = "period"
ATTR_OFFSET = "offset"
ATTR_OCCUPIED = "occupied"
ATTR_START = "start"
ATTR_END = "end"

SERVICE_SET_ZONE_TEMPERATURE = "set_zone_temperature"
SERVICE_SET_ZONE_MODE = "set_zone_mode"
SERVICE_SET_SCHEDULE = "set_schedule"
SERVICE_GET_SCHEDULE = "get_schedule"
SERVICE_SET_OCCUPANCY = "set_occupancy"
SERVICE_UPDATE_ENERGY_PRICE = "update_energy_price"
SERVICE_SET_OUTDOOR_CONDITIONS = "set_outdoor_conditions"
SERVICE_UPDATE_GEOFENCING = "update_geofencing"
SERVICE_SET_HOLIDAY_MODE = "set_holiday_mode"
SERVICE_SET_NIGHT_SETBACK = "set_night_setback"
SERVICE_GET_ENERGY_REPORT = "get_energy_report"
SERVICE_GET_MAINTENANCE_REPORT = "get_maintenance_report"
SERVICE_GET_STATISTICS = "get_statistics"
SERVICE_CLEAR_FAULT = "clear_fault"
SERVICE_CALIBRATE_SENSOR = "calibrate_sensor"


def finite_float(value: Any) -> float:
    """Coerce a value to a float that is neither NaN nor infinite."""
    number = vol.Coerce(float)(value)
    if not math.isfinite(number):
        msg = f"expected a finite number, got {value}"
        raise vol.Invalid(msg)
    return number


ENTRY_SCHEMA = {vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string}
ZONE_SCHEMA = {**ENTRY_SCHEMA, vol.Required(ATTR_ZONE_ID): cv.string}

SET_ZONE_TEMPERATURE_SCHEMA = vol.Schema(
    {**ZONE_SCHEMA, vol.Required(ATTR_TEMPERATURE): finite_float}
)
SET_ZONE_MODE_SCHEMA = vol.Schema(
    {
        **ENTRY_SCHEMA,
        vol.Optional(ATTR_ZONE_ID): cv.string,
        vol.Required(ATTR_MODE): vol.In([mode.value for mode in ZoneMode]),
    }
)
SET_SCHEDULE_SCHEMA = vol.Schema(
    {
        **ZONE_SCHEMA,
        vol.Optional(ATTR_DAYS): dict,
        vol.Optional(ATTR_ACTIVE): cv.boolean,
        vol.Optional(ATTR_QUICK_HEAT_ENABLED): cv.boolean,
        vol.Optional(ATTR_PREHEAT_MINUTES): vol.Any(
            None, vol.All(vol.Coerce(int), vol.Range(min=0, max=240))
        ),
    }
)
GET_SCHEDULE_SCHEMA = vol.Schema(ZONE_SCHEMA)
SET_OCCUPANCY_SCHEMA = vol.Schema(
    {**ZONE_SCHEMA, vol.Required(ATTR_OCCUPIED): cv.boolean}
)
UPDATE_ENERGY_PRICE_SCHEMA = vol.Schema(
    {**ENTRY_SCHEMA, vol.Required(ATTR_PRICE): vol.Coerce(float)}
)
SET_OUTDOOR_CONDITIONS_SCHEMA = vol.Schema(
    {
        **ENTRY_SCHEMA,
        vol.Optional(ATTR_TEMPERATURE): vol.Coerce(float),
        vol.Optional(ATTR_OUTDOOR_HUMIDITY): vol.Coerce(float),
        vol.Optional(ATTR_WIND_SPEED): vol.Coerce(float),
        vol.Optional(ATTR_SUN_IRRADIANCE): vol.Coerce(float),
    }
)
UPDATE_GEOFENCING_SCHEMA = vol.Schema(
    {
        **ENTRY_SCHEMA,
        vol.Optional(ATTR_DISTANCE_KM): vol.Coerce(float),
        vol.Optional(ATTR_ETA_MINUTES): vol.Coerce(float),
        vol.Optional(ATTR_IS_HOME): cv.boolean,
    }
)
SET_HOLIDAY_MODE_SCHEMA = vol.Schema(
    {**ENTRY_SCHEMA, vol.Required(ATTR_ENABLED): cv.boolean}
)
SET_NIGHT_SETBACK_SCHEMA = vol.Schema(
    {
        **ENTRY_SCHEMA,
        vol.Required(ATTR_START): cv.string,
        vol.Required(ATTR_END): cv.string,
        vol.Optional(ATTR_ENABLED, default=True): cv.boolean,
    }
)
GET_ENERGY_REPORT_SCHEMA = vol.Schema(
    {
        **ENTRY_SCHEMA,
        vol.Optional(ATTR_PERIOD, default=EnergyPeriod.DAY.value): vol.In(
            [period.value for period in EnergyPeriod]
        ),
    }
)
ENTRY_ONLY_SCHEMA = vol.Schema(ENTRY_SCHEMA)
ZONE_ONLY_SCHEMA = vol.Schema(ZONE_SCHEMA)
CALIBRATE_SENSOR_SCHEMA = vol.Schema(
    {
        **ZONE_SCHEMA,
        vol.Required(ATTR_OFFSET): vol.All(
            finite_float, vol.Range(min=-10, max=10)
        ),
    }
)


def _loaded_entries(hass: HomeAssistant) -> list[FloorHeatingConfigEntry]:
    """Return the loaded entries of this integration."""
    return [
        entry
        for entry in hass.config_entries.async_entries(DOMAIN)
        if entry.state is ConfigEntryState.LOADED
    ]


def _target_coordinators(
    hass: HomeAssistant, call: ServiceCall
) -> list[FloorHeatingDataUpdateCoordinator]:
    """Return the coordinators a system-wide call applies to."""
    entries = _loaded_entries(hass)
    if (entry_id := call.data.get(ATTR_CONFIG_ENTRY_ID)) is not None:
        entries = [entry for entry in entries if entry.entry_id == entry_id]
    if not entries:
        raise ServiceValidationError(
            translation_domain=DOMAIN,
            translation_key="no_controller",
        )
    return [entry.runtime_data.coordinator for entry in entries]


def _single_coordinator(
    hass: HomeAssistant, call: ServiceCall
) -> FloorHeatingDataUpdateCoordinator:
    """Return the only coordinator a reporting call applies to."""
    coordinators = _target_coordinators(hass, call)
    if len(coordinators) > 1:
        raise ServiceValidationError(
            translation_domain=DOMAIN,
            translation_key="multiple_controllers",
        )
    return coordinators[0]


def _zone_coordinator(
    hass: HomeAssistant, call: ServiceCall
) -> FloorHeatingDataUpdateCoordinator:
    """Return the coordinator owning the zone named in the call."""
    zone_id = call.data[ATTR_ZONE_ID]
    for coordinator in _target_coordinators(hass, call):
        if coordinator.engine.get_zone_runtime(zone_id) is not None:
            return coordinator
    raise ServiceValidationError(
        translation_domain=DOMAIN,
        translation_key="unknown_zone",
        translation_placeholders={"zone_id": zone_id},
    )


def _validation_error(err: FloorHeatingError) -> ServiceValidationError:
    """Translate an engine rejection into a service validation error."""
    return ServiceValidationError(
        translation_domain=DOMAIN,
        translation_key="rejected",
        translation_placeholders={"error": str(err)},
    )


async def _async_set_zone_temperature(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _zone_coordinator(hass, call)
    try:
        await coordinator.async_set_zone_temperature(
            call.data[ATTR_ZONE_ID], call.data[ATTR_TEMPERATURE]
        )
    except FloorHeatingError as err:
        raise _validation_error(err) from err


async def _async_set_zone_mode(hass: HomeAssistant, call: ServiceCall) -> None:
    mode = call.data[ATTR_MODE]
    if ATTR_ZONE_ID in call.data:
        coordinator = _zone_coordinator(hass, call)
        await coordinator.async_set_zone_mode(call.data[ATTR_ZONE_ID], mode)
        return
    for coordinator in _target_coordinators(hass, call):
        await coordinator.async_set_zone_mode(None, mode)


async def _async_set_schedule(
    hass: HomeAssistant, call: ServiceCall
) -> ServiceResponse:
    coordinator = _zone_coordinator(hass, call)
    update = {
        key: call.data[key]
        for key in (
            ATTR_DAYS,
            ATTR_ACTIVE,
            ATTR_QUICK_HEAT_ENABLED,
            ATTR_PREHEAT_MINUTES,
        )
        if key in call.data
    }
    try:
        schedule = await coordinator.async_set_schedule(
            call.data[ATTR_ZONE_ID], update
        )
    except FloorHeatingError as err:
        raise _validation_error(err) from err
    return {"zone_id": call.data[ATTR_ZONE_ID], "schedule": schedule}


async def _async_get_schedule(
    hass: HomeAssistant, call: ServiceCall
) -> ServiceResponse:
    coordinator = _zone_coordinator(hass, call)
    zone_id = call.data[ATTR_ZONE_ID]
    return {"zone_id": zone_id, "schedule": coordinator.get_schedule(zone_id)}


async def _async_set_occupancy(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _zone_coordinator(hass, call)
    await coordinator.async_set_occupancy(
        call.data[ATTR_ZONE_ID], occupied=call.data[ATTR_OCCUPIED]
    )


async def _async_update_energy_price(hass: HomeAssistant, call: ServiceCall) -> None:
    for coordinator in _target_coordinators(hass, call):
        if not await coordinator.async_update_energy_price(call.data[ATTR_PRICE]):
            raise ServiceValidationError(
                translation_domain=DOMAIN,
                translation_key="invalid_price",
                translation_placeholders={"price": str(call.data[ATTR_PRICE])},
            )


async def _async_set_outdoor_conditions(hass: HomeAssistant, call: ServiceCall) -> None:
    conditions = {
        key: call.data[key]
        for key in (
            ATTR_TEMPERATURE,
            ATTR_OUTDOOR_HUMIDITY,
            ATTR_WIND_SPEED,
            ATTR_SUN_IRRADIANCE,
        )
        if key in call.data
    }
    for coordinator in _target_coordinators(hass, call):
        await coordinator.async_set_outdoor_conditions(conditions)


async def _async_update_geofencing(hass: HomeAssistant, call: ServiceCall) -> None:
    presence = {
        key: call.data[key]
        for key in (ATTR_DISTANCE_KM, ATTR_ETA_MINUTES, ATTR_IS_HOME)
        if key in call.data
    }
    for coordinator in _target_coordinators(hass, call):
        await coordinator.async_update_geofencing(presence)


async def _async_set_holiday_mode(hass: HomeAssistant, call: ServiceCall) -> None:
    for coordinator in _target_coordinators(hass, call):
        await coordinator.async_set_holiday_mode(enabled=call.data[ATTR_ENABLED])


async def _async_set_night_setback(hass: HomeAssistant, call: ServiceCall) -> None:
    for coordinator in _target_coordinators(hass, call):
        try:
            await coordinator.async_set_night_setback(
                call.data[ATTR_START],
                call.data[ATTR_END],
                enabled=call.data[ATTR_ENABLED],
            )
        except FloorHeatingError as err:
            raise _validation_error(err) from err


async def _async_get_energy_report(
    hass: HomeAssistant, call: ServiceCall
) -> ServiceResponse:
    coordinator = _single_coordinator(hass, call)
    try:
        return coordinator.get_energy_report(call.data[ATTR_PERIOD])
    except FloorHeatingError as err:
        raise _validation_error(err) from err


async def _async_get_maintenance_report(
    hass: HomeAssistant, call: ServiceCall
) -> ServiceResponse:
    return _single_coordinator(hass, call).get_maintenance_report()


async def _async_get_statistics(
    hass: HomeAssistant, call: ServiceCall
) -> ServiceResponse:
    return _single_coordinator(hass, call).get_statistics()


async def _async_clear_fault(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _zone_coordinator(hass, call)
    await coordinator.async_clear_fault(call.data[ATTR_ZONE_ID])


async def _async_calibrate_sensor(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _zone_coordinator(hass, call)
    await coordinator.async_calibrate_sensor(
        call.data[ATTR_ZONE_ID], call.data[ATTR_OFFSET]
    )


SERVICES: list[tuple[str, vol.Schema, Any, SupportsResponse]] = [
    (
        SERVICE_SET_ZONE_TEMPERATURE,
        SET_ZONE_TEMPERATURE_SCHEMA,
        _async_set_zone_temperature,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_SET_ZONE_MODE,
        SET_ZONE_MODE_SCHEMA,
        _async_set_zone_mode,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_SET_SCHEDULE,
        SET_SCHEDULE_SCHEMA,
        _async_set_schedule,
        SupportsResponse.OPTIONAL,
    ),
    (
        SERVICE_GET_SCHEDULE,
        GET_SCHEDULE_SCHEMA,
        _async_get_schedule,
        SupportsResponse.ONLY,
    ),
    (
        SERVICE_SET_OCCUPANCY,
        SET_OCCUPANCY_SCHEMA,
        _async_set_occupancy,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_UPDATE_ENERGY_PRICE,
        UPDATE_ENERGY_PRICE_SCHEMA,
        _async_update_energy_price,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_SET_OUTDOOR_CONDITIONS,
        SET_OUTDOOR_CONDITIONS_SCHEMA,
        _async_set_outdoor_conditions,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_UPDATE_GEOFENCING,
        UPDATE_GEOFENCING_SCHEMA,
        _async_update_geofencing,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_SET_HOLIDAY_MODE,
        SET_HOLIDAY_MODE_SCHEMA,
        _async_set_holiday_mode,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_SET_NIGHT_SETBACK,
        SET_NIGHT_SETBACK_SCHEMA,
        _async_set_night_setback,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_GET_ENERGY_REPORT,
        GET_ENERGY_REPORT_SCHEMA,
        _async_get_energy_report,
        SupportsResponse.ONLY,
    ),
    (
        SERVICE_GET_MAINTENANCE_REPORT,
        ENTRY_ONLY_SCHEMA,
        _async_get_maintenance_report,
        SupportsResponse.ONLY,
    ),
    (
        SERVICE_GET_STATISTICS,
        ENTRY_ONLY_SCHEMA,
        _async_get_statistics,
        SupportsResponse.ONLY,
    ),
    (
        SERVICE_CLEAR_FAULT,
        ZONE_ONLY_SCHEMA,
        _async_clear_fault,
        SupportsResponse.NONE,
    ),
    (
        SERVICE_CALIBRATE_SENSOR,
        CALIBRATE_SENSOR_SCHEMA,
        _async_calibrate_sensor,
        SupportsResponse.NONE,
    ),
]


def async_setup_services(hass: HomeAssistant) -> None:
    """Register the integration's service actions."""
    for name, schema, handler, supports_response in SERVICES:
        hass.services.async_register(
            DOMAIN,
            name,
            partial(handler, hass),
            schema=schema,
            supports_response=supports_response,
        )
    LOGGER.debug("Registered %d service actions", len(SERVICES))
