"""Config flow for Floor Heating Controller."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.helpers import selector
from slugify import slugify

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
    LOGGER,
    SUBENTRY_TYPE_CONTROLLER,
    SUBENTRY_TYPE_ZONE,
    UI_TIMING_CONTROL_INTERVAL,
    UI_TIMING_ENERGY_INTERVAL,
    UI_TIMING_WEATHER_INTERVAL,
    UI_ZONE_AREA,
    UI_ZONE_POWER,
    UI_ZONE_TEMPERATURE,
    FloorMaterial,
    HeatingType,
)
from .core import FloorHeatingError
from .coordinator import zone_from_subentry

if TYPE_CHECKING:
    from collections.abc import Mapping

CONF_NAME = "name"

# Entities that can drive a zone heater: on/off or a valve position
HEATER_DOMAINS = ["switch", "input_boolean", "number", "input_number"]

# Timing fields exposed in the options flow, with their selector ranges
TIMING_FIELDS: dict[str, dict[str, int]] = {
    "control_interval": UI_TIMING_CONTROL_INTERVAL,
    "schedule_interval": UI_TIMING_CONTROL_INTERVAL,
    "occupancy_interval": UI_TIMING_CONTROL_INTERVAL,
    "energy_interval": UI_TIMING_ENERGY_INTERVAL,
    "weather_interval": UI_TIMING_WEATHER_INTERVAL,
    "maintenance_interval": UI_TIMING_WEATHER_INTERVAL,
}

PID_FIELDS = ("kp", "ki", "kd")


def _temperature_selector() -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            min=UI_ZONE_TEMPERATURE["min"],
            max=UI_ZONE_TEMPERATURE["max"],
            step=UI_ZONE_TEMPERATURE["step"],
            unit_of_measurement="°C",
            mode=selector.NumberSelectorMode.SLIDER,
        )
    )


def _sensor_selector(device_class: str | None = None) -> selector.EntitySelector:
    if device_class is None:
        return selector.EntitySelector(selector.EntitySelectorConfig(domain="sensor"))
    return selector.EntitySelector(
        selector.EntitySelectorConfig(domain="sensor", device_class=device_class)
    )


def _optional(key: str, defaults: Mapping[str, Any]) -> vol.Optional:
    """Return an optional marker that pre-fills a stored entity id."""
    if defaults.get(key):
        return vol.Optional(key, description={"suggested_value": defaults[key]})
    return vol.Optional(key)


def get_zone_schema(defaults: Mapping[str, Any] | None = None) -> vol.Schema:
    """
    Build the zone form schema.

    Args:
        defaults: Stored subentry data used to pre-fill the form when
            reconfiguring a zone.

    """
    defaults = defaults or {}
    temperatures = {
        **DEFAULT_ZONE_TEMPERATURES,
        **defaults.get(CONF_TEMPERATURES, {}),
    }

    return vol.Schema(
        {
            vol.Required(
                CONF_NAME, default=defaults.get(CONF_NAME, vol.UNDEFINED)
            ): selector.TextSelector(),
            vol.Required(
                CONF_HEATING_TYPE,
                default=defaults.get(CONF_HEATING_TYPE, DEFAULT_ZONE["heating_type"]),
            ): selector.SelectSelector(
                selector.SelectSelectorConfig(
                    options=[heating_type.value for heating_type in HeatingType],
                    translation_key=CONF_HEATING_TYPE,
                )
            ),
            vol.Required(
                CONF_FLOOR_MATERIAL,
                default=defaults.get(
                    CONF_FLOOR_MATERIAL, DEFAULT_ZONE["floor_material"]
                ),
            ): selector.SelectSelector(
                selector.SelectSelectorConfig(
                    options=[material.value for material in FloorMaterial],
                    translation_key=CONF_FLOOR_MATERIAL,
                )
            ),
            vol.Required(
                CONF_AIR_TEMP_SENSOR,
                default=defaults.get(CONF_AIR_TEMP_SENSOR, vol.UNDEFINED),
            ): _sensor_selector("temperature"),
            _optional(CONF_FLOOR_TEMP_SENSOR, defaults): _sensor_selector(
                "temperature"
            ),
            _optional(CONF_HUMIDITY_SENSOR, defaults): _sensor_selector("humidity"),
            _optional(CONF_FLOW_SENSOR, defaults): _sensor_selector(),
            vol.Optional(
                CONF_WINDOW_SENSORS, default=defaults.get(CONF_WINDOW_SENSORS, [])
            ): selector.EntitySelector(
                selector.EntitySelectorConfig(domain="binary_sensor", multiple=True)
            ),
            _optional(CONF_HEATER_ENTITY, defaults): selector.EntitySelector(
                selector.EntitySelectorConfig(domain=HEATER_DOMAINS)
            ),
            vol.Optional(
                "comfort_temp", default=temperatures["comfort"]
            ): _temperature_selector(),
            vol.Optional(
                "eco_temp", default=temperatures["eco"]
            ): _temperature_selector(),
            vol.Optional(
                "frost_temp", default=temperatures["frost"]
            ): _temperature_selector(),
            _optional(CONF_MAX_FLOOR_TEMP, defaults): _temperature_selector(),
            vol.Optional(
                CONF_AREA, default=defaults.get(CONF_AREA, DEFAULT_ZONE["area"])
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=UI_ZONE_AREA["min"],
                    max=UI_ZONE_AREA["max"],
                    step=UI_ZONE_AREA["step"],
                    unit_of_measurement="m²",
                    mode=selector.NumberSelectorMode.BOX,
                )
            ),
            vol.Optional(
                CONF_INSTALLED_POWER,
                default=defaults.get(
                    CONF_INSTALLED_POWER, DEFAULT_ZONE["installed_power"]
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=UI_ZONE_POWER["min"],
                    max=UI_ZONE_POWER["max"],
                    step=UI_ZONE_POWER["step"],
                    unit_of_measurement="W",
                    mode=selector.NumberSelectorMode.BOX,
                )
            ),
        }
    )


def build_zone_data(
    user_input: Mapping[str, Any], zone_id: str | None = None
) -> dict[str, Any]:
    """
    Convert the zone form input to subentry data.

    The zone id is derived from the name unless an existing id is passed,
    so reconfiguring a zone keeps its entities and persisted state.
    """
    max_floor_temp = user_input.get(CONF_MAX_FLOOR_TEMP)
    return {
        CONF_ZONE_ID: zone_id or slugify(user_input[CONF_NAME]),
        CONF_NAME: user_input[CONF_NAME],
        CONF_HEATING_TYPE: user_input.get(
            CONF_HEATING_TYPE, DEFAULT_ZONE["heating_type"]
        ),
        CONF_FLOOR_MATERIAL: user_input.get(
            CONF_FLOOR_MATERIAL, DEFAULT_ZONE["floor_material"]
        ),
        CONF_AIR_TEMP_SENSOR: user_input[CONF_AIR_TEMP_SENSOR],
        CONF_FLOOR_TEMP_SENSOR: user_input.get(CONF_FLOOR_TEMP_SENSOR),
        CONF_HUMIDITY_SENSOR: user_input.get(CONF_HUMIDITY_SENSOR),
        CONF_FLOW_SENSOR: user_input.get(CONF_FLOW_SENSOR),
        CONF_WINDOW_SENSORS: list(user_input.get(CONF_WINDOW_SENSORS, [])),
        CONF_HEATER_ENTITY: user_input.get(CONF_HEATER_ENTITY),
        CONF_TEMPERATURES: {
            "comfort": float(
                user_input.get("comfort_temp", DEFAULT_ZONE_TEMPERATURES["comfort"])
            ),
            "eco": float(user_input.get("eco_temp", DEFAULT_ZONE_TEMPERATURES["eco"])),
            "frost": float(
                user_input.get("frost_temp", DEFAULT_ZONE_TEMPERATURES["frost"])
            ),
        },
        CONF_MAX_FLOOR_TEMP: float(max_floor_temp) if max_floor_temp else None,
        CONF_AREA: float(user_input.get(CONF_AREA, DEFAULT_ZONE["area"])),
        CONF_INSTALLED_POWER: float(
            user_input.get(CONF_INSTALLED_POWER, DEFAULT_ZONE["installed_power"])
        ),
    }


def validate_zone_data(data: Mapping[str, Any]) -> str | None:
    """Return an error key when the zone data cannot build a zone."""
    if not data[CONF_ZONE_ID]:
        return "invalid_name"
    try:
        zone_from_subentry(data)
    except (FloorHeatingError, ValueError) as err:
        LOGGER.debug("Rejected zone configuration: %s", err)
        return "invalid_zone"
    return None


def get_timing_schema(timing: Mapping[str, Any] | None = None) -> vol.Schema:
    """Build the timing form schema pre-filled with the stored intervals."""
    timing = {**DEFAULT_TIMING, **(timing or {})}
    return vol.Schema(
        {
            vol.Required(key, default=timing[key]): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=limits["min"],
                    max=limits["max"],
                    step=limits["step"],
                    unit_of_measurement="s",
                )
            )
            for key, limits in TIMING_FIELDS.items()
        }
    )


def get_pid_schema(pid: Mapping[str, Any] | None = None) -> vol.Schema:
    """Build the PID gains form schema."""
    pid = {**DEFAULT_PID, **(pid or {})}
    return vol.Schema(
        {
            vol.Required(key, default=pid[key]): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=0,
                    max=100,
                    step="any",
                    mode=selector.NumberSelectorMode.BOX,
                )
            )
            for key in PID_FIELDS
        }
    )


def _get_controller_subentry(
    entry: config_entries.ConfigEntry,
) -> config_entries.ConfigSubentry | None:
    for subentry in entry.subentries.values():
        if subentry.subentry_type == SUBENTRY_TYPE_CONTROLLER:
            return subentry
    return None


def _zone_id_taken(
    entry: config_entries.ConfigEntry, zone_id: str, subentry_id: str | None = None
) -> bool:
    return any(
        subentry.subentry_type == SUBENTRY_TYPE_ZONE
        and subentry.subentry_id != subentry_id
        and subentry.data.get(CONF_ZONE_ID) == zone_id
        for subentry in entry.subentries.values()
    )


class FloorHeatingFlowHandler(config_entries.ConfigFlow, domain=DOMAIN):
    """Config flow for Floor Heating Controller."""

    VERSION = 1

    async def async_step_user(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Handle a flow initialized by the user."""
        errors: dict[str, str] = {}

        if user_input is not None:
            controller_id = slugify(user_input[CONF_NAME])
            if not controller_id:
                errors[CONF_NAME] = "invalid_name"
            else:
                await self.async_set_unique_id(controller_id)
                self._abort_if_unique_id_configured()

                LOGGER.debug(
                    "Creating Floor Heating Controller entry: %s", controller_id
                )

                return self.async_create_entry(
                    title=user_input[CONF_NAME],
                    data={
                        CONF_NAME: user_input[CONF_NAME],
                        CONF_CONTROLLER_ID: controller_id,
                        CONF_PRICE_SENSOR: user_input.get(CONF_PRICE_SENSOR),
                        CONF_OUTDOOR_TEMP_SENSOR: user_input.get(
                            CONF_OUTDOOR_TEMP_SENSOR
                        ),
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_NAME): selector.TextSelector(
                        selector.TextSelectorConfig(type=selector.TextSelectorType.TEXT)
                    ),
                    vol.Optional(CONF_PRICE_SENSOR): _sensor_selector(),
                    vol.Optional(CONF_OUTDOOR_TEMP_SENSOR): _sensor_selector(
                        "temperature"
                    ),
                }
            ),
            errors=errors,
        )

    @classmethod
    @callback
    def async_get_supported_subentry_types(
        cls,
        config_entry: config_entries.ConfigEntry,  # noqa: ARG003
    ) -> dict[str, type[config_entries.ConfigSubentryFlow]]:
        """Return the subentry types supported by this integration."""
        return {SUBENTRY_TYPE_ZONE: ZoneSubentryFlowHandler}

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,  # noqa: ARG004
    ) -> FloorHeatingOptionsFlowHandler:
        """Get the options flow for this handler."""
        return FloorHeatingOptionsFlowHandler()


class ZoneSubentryFlowHandler(config_entries.ConfigSubentryFlow):
    """Add or reconfigure a heating zone."""

    async def async_step_user(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.SubentryFlowResult:
        """Add a new zone."""
        errors: dict[str, str] = {}

        if user_input is not None:
            data = build_zone_data(user_input)
            if _zone_id_taken(self._get_entry(), data[CONF_ZONE_ID]):
                errors[CONF_NAME] = "zone_id_exists"
            elif error := validate_zone_data(data):
                errors["base"] = error
            else:
                return self.async_create_entry(
                    title=data[CONF_NAME],
                    data=data,
                    unique_id=data[CONF_ZONE_ID],
                )

        return self.async_show_form(
            step_id="user",
            data_schema=self.add_suggested_values_to_schema(
                get_zone_schema(), user_input or {}
            ),
            errors=errors,
        )

    async def async_step_reconfigure(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.SubentryFlowResult:
        """Change an existing zone, keeping its id."""
        subentry = self._get_reconfigure_subentry()
        errors: dict[str, str] = {}

        if user_input is not None:
            data = build_zone_data(user_input, zone_id=subentry.data[CONF_ZONE_ID])
            if error := validate_zone_data(data):
                errors["base"] = error
            else:
                return self.async_update_and_abort(
                    self._get_entry(),
                    subentry,
                    title=data[CONF_NAME],
                    data=data,
                )

        return self.async_show_form(
            step_id="reconfigure",
            data_schema=get_zone_schema(dict(subentry.data)),
            errors=errors,
        )


class FloorHeatingOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle options flow for Floor Heating Controller."""

    async def async_step_init(
        self,
        _user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Show the options menu."""
        return self.async_show_menu(
            step_id="init",
            menu_options=["control_entities", "timing", "pid"],
        )

    async def async_step_control_entities(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Change the price and outdoor temperature sources."""
        data = self.config_entry.data

        if user_input is not None:
            self.hass.config_entries.async_update_entry(
                self.config_entry,
                data={
                    **data,
                    CONF_PRICE_SENSOR: user_input.get(CONF_PRICE_SENSOR),
                    CONF_OUTDOOR_TEMP_SENSOR: user_input.get(CONF_OUTDOOR_TEMP_SENSOR),
                },
            )
            return self.async_create_entry(data={})

        return self.async_show_form(
            step_id="control_entities",
            data_schema=vol.Schema(
                {
                    _optional(CONF_PRICE_SENSOR, data): _sensor_selector(),
                    _optional(CONF_OUTDOOR_TEMP_SENSOR, data): _sensor_selector(
                        "temperature"
                    ),
                }
            ),
        )

    async def async_step_timing(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Configure the job intervals."""
        controller = _get_controller_subentry(self.config_entry)
        if controller is None:
            return self.async_abort(reason="controller_not_found")

        if user_input is not None:
            timing = {key: int(user_input[key]) for key in TIMING_FIELDS}
            self._async_update_controller(controller, "timing", timing)
            return self.async_create_entry(data={})

        return self.async_show_form(
            step_id="timing",
            data_schema=get_timing_schema(controller.data.get("timing")),
        )

    async def async_step_pid(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Configure the PID gains shared by all zones."""
        controller = _get_controller_subentry(self.config_entry)
        if controller is None:
            return self.async_abort(reason="controller_not_found")

        if user_input is not None:
            pid = {key: float(user_input[key]) for key in PID_FIELDS}
            self._async_update_controller(controller, "pid", pid)
            return self.async_create_entry(data={})

        return self.async_show_form(
            step_id="pid",
            data_schema=get_pid_schema(controller.data.get("pid")),
        )

    @callback
    def _async_update_controller(
        self,
        controller: config_entries.ConfigSubentry,
        key: str,
        value: dict[str, Any],
    ) -> None:
        """Store one section of the controller subentry and reload."""
        self.hass.config_entries.async_update_subentry(
            self.config_entry,
            controller,
            data={**controller.data, key: value},
        )
        self.hass.config_entries.async_schedule_reload(self.config_entry.entry_id)
