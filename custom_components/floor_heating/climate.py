"""Climate platform for Floor Heating Controller."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from homeassistant.components.climate import (
    ATTR_TEMPERATURE,
    ClimateEntity,
    ClimateEntityFeature,
    HVACAction,
    HVACMode,
)
from homeassistant.const import UnitOfTemperature
from homeassistant.exceptions import ServiceValidationError

from .const import (
    CONF_TEMPERATURES,
    DEFAULT_ZONE_TEMPERATURES,
    DOMAIN,
    FLOOR_MATERIAL_LIMITS,
    SUBENTRY_TYPE_ZONE,
    UI_ZONE_TEMPERATURE,
    FloorMaterial,
    ZoneMode,
)
from .core import FloorHeatingError
from .entity import FloorHeatingZoneEntity

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback

    from .coordinator import FloorHeatingDataUpdateCoordinator
    from .data import FloorHeatingConfigEntry


async def async_setup_entry(
    _hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up the climate platform."""
    coordinator = entry.runtime_data.coordinator

    for subentry in entry.subentries.values():
        if subentry.subentry_type != SUBENTRY_TYPE_ZONE:
            continue
        if subentry.data["id"] not in coordinator.bindings:
            continue
        async_add_entities(
            [
                FloorHeatingZoneClimate(
                    coordinator=coordinator,
                    zone_id=subentry.data["id"],
                    zone_name=subentry.data["name"],
                    zone_config=dict(subentry.data),
                    subentry_id=subentry.subentry_id,
                )
            ],
            config_subentry_id=subentry.subentry_id,
        )


class FloorHeatingZoneClimate(FloorHeatingZoneEntity, ClimateEntity):
    """Thermostat of a floor heating zone."""

    _attr_hvac_modes: ClassVar[list[HVACMode]] = [HVACMode.HEAT, HVACMode.OFF]
    _attr_preset_modes: ClassVar[list[str]] = [mode.value for mode in ZoneMode]
    _attr_icon = "mdi:heating-coil"
    _attr_name = None
    _attr_temperature_unit = UnitOfTemperature.CELSIUS
    _attr_target_temperature_step = UI_ZONE_TEMPERATURE["step"]
    _attr_supported_features = (
        ClimateEntityFeature.TARGET_TEMPERATURE
        | ClimateEntityFeature.PRESET_MODE
        | ClimateEntityFeature.TURN_ON
        | ClimateEntityFeature.TURN_OFF
    )

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        zone_id: str,
        zone_name: str,
        zone_config: dict[str, Any],
        subentry_id: str,
    ) -> None:
        """Initialize the climate entity."""
        super().__init__(coordinator, zone_id, zone_name, subentry_id)

        controller_id = coordinator.config_entry.data.get("controller_id", "")
        self._attr_unique_id = f"{controller_id}_{zone_id}_climate"
        self._attr_translation_key = "zone"

        # Targets outside the material and frost limits are rejected by the engine
        temperatures = zone_config.get(CONF_TEMPERATURES, DEFAULT_ZONE_TEMPERATURES)
        material = FloorMaterial(zone_config.get("floor_material", FloorMaterial.TILE))
        self._attr_min_temp = float(
            temperatures.get("frost", DEFAULT_ZONE_TEMPERATURES["frost"])
        )
        self._attr_max_temp = FLOOR_MATERIAL_LIMITS[material].max_temp

    @property
    def hvac_mode(self) -> HVACMode:
        """Return the current HVAC mode."""
        if self.zone_data.get("enabled", True):
            return HVACMode.HEAT
        return HVACMode.OFF

    @property
    def hvac_action(self) -> HVACAction:
        """Return the current HVAC action."""
        if not self.zone_data.get("enabled", True):
            return HVACAction.OFF
        if self.zone_data.get("heating_active", False):
            return HVACAction.HEATING
        return HVACAction.IDLE

    @property
    def preset_mode(self) -> str | None:
        """Return the zone mode."""
        return self.zone_data.get("mode")

    @property
    def current_temperature(self) -> float | None:
        """Return the air temperature."""
        return self.zone_data.get("air_temp")

    @property
    def current_humidity(self) -> float | None:
        """Return the relative humidity."""
        return self.zone_data.get("humidity")

    @property
    def target_temperature(self) -> float | None:
        """Return the target temperature."""
        return self.zone_data.get("target_temp")

    async def async_set_temperature(self, **kwargs: Any) -> None:
        """Set the target temperature."""
        if (temperature := kwargs.get(ATTR_TEMPERATURE)) is None:
            return
        try:
            await self.coordinator.async_set_zone_temperature(
                self._zone_id, temperature
            )
        except FloorHeatingError as err:
            raise ServiceValidationError(
                translation_domain=DOMAIN,
                translation_key="rejected",
                translation_placeholders={"error": str(err)},
            ) from err

    async def async_set_hvac_mode(self, hvac_mode: HVACMode) -> None:
        """Enable or disable the zone."""
        await self.coordinator.async_set_zone_enabled(
            self._zone_id, enabled=hvac_mode == HVACMode.HEAT
        )

    async def async_turn_on(self) -> None:
        """Turn the zone on."""
        await self.async_set_hvac_mode(HVACMode.HEAT)

    async def async_turn_off(self) -> None:
        """Turn the zone off."""
        await self.async_set_hvac_mode(HVACMode.OFF)

    async def async_set_preset_mode(self, preset_mode: str) -> None:
        """Switch the zone mode."""
        await self.coordinator.async_set_zone_mode(self._zone_id, preset_mode)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return additional state attributes."""
        zone = self.zone_data
        return {
            "effective_target": zone.get("effective_target"),
            "floor_temperature": zone.get("floor_temp"),
            "max_floor_temperature": zone.get("max_floor_temp"),
            "output": zone.get("output"),
            "valve_position": zone.get("valve_position"),
            "limit_reason": zone.get("limit_reason"),
            "window_paused": zone.get("window_paused", False),
            "comfort_rating": zone.get("comfort_rating"),
            "fault_code": zone.get("fault_code"),
        }
