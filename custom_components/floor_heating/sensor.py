"""Sensor platform for Floor Heating Controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.const import (
    PERCENTAGE,
    UnitOfEnergy,
    UnitOfPower,
    UnitOfTemperature,
)

from .const import SUBENTRY_TYPE_ZONE, ComfortRating, Season
from .entity import (
    FloorHeatingEntity,
    FloorHeatingZoneEntity,
    get_controller_subentry_id,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddConfigEntryEntitiesCallback

    from .coordinator import FloorHeatingDataUpdateCoordinator
    from .data import FloorHeatingConfigEntry

# Output thresholds (%) for the low, medium and full gauge icons
OUTPUT_ICON_THRESHOLDS = (1, 34, 67)


@dataclass(frozen=True, kw_only=True)
class FloorHeatingSensorEntityDescription(SensorEntityDescription):
    """Describes a floor heating sensor entity."""

    value_fn: Callable[[dict[str, Any]], float | str | None]


ZONE_SENSORS: tuple[FloorHeatingSensorEntityDescription, ...] = (
    FloorHeatingSensorEntityDescription(
        key="floor_temperature",
        translation_key="floor_temperature",
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        suggested_display_precision=1,
        value_fn=lambda data: data.get("floor_temp"),
    ),
    FloorHeatingSensorEntityDescription(
        key="effective_target",
        translation_key="effective_target",
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        suggested_display_precision=1,
        value_fn=lambda data: data.get("effective_target"),
    ),
    FloorHeatingSensorEntityDescription(
        key="power",
        translation_key="power",
        native_unit_of_measurement=UnitOfPower.WATT,
        device_class=SensorDeviceClass.POWER,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda data: data.get("current_power"),
    ),
    FloorHeatingSensorEntityDescription(
        key="energy_today",
        translation_key="energy_today",
        native_unit_of_measurement=UnitOfEnergy.KILO_WATT_HOUR,
        device_class=SensorDeviceClass.ENERGY,
        state_class=SensorStateClass.TOTAL,
        suggested_display_precision=2,
        value_fn=lambda data: data.get("energy_today_kwh"),
    ),
    FloorHeatingSensorEntityDescription(
        key="comfort_score",
        translation_key="comfort_score",
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda data: data.get("comfort_score"),
    ),
    FloorHeatingSensorEntityDescription(
        key="comfort_rating",
        translation_key="comfort_rating",
        device_class=SensorDeviceClass.ENUM,
        options=[rating.value for rating in ComfortRating],
        value_fn=lambda data: data.get("comfort_rating"),
    ),
)

OUTPUT_SENSOR = FloorHeatingSensorEntityDescription(
    key="output",
    translation_key="output",
    native_unit_of_measurement=PERCENTAGE,
    state_class=SensorStateClass.MEASUREMENT,
    suggested_display_precision=1,
    value_fn=lambda data: data.get("output"),
)

CONTROLLER_SENSORS: tuple[FloorHeatingSensorEntityDescription, ...] = (
    FloorHeatingSensorEntityDescription(
        key="system_health",
        translation_key="system_health",
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        icon="mdi:heart-pulse",
        value_fn=lambda data: data.get("system_health"),
    ),
    FloorHeatingSensorEntityDescription(
        key="energy_price",
        translation_key="energy_price",
        state_class=SensorStateClass.MEASUREMENT,
        suggested_display_precision=2,
        icon="mdi:cash",
        value_fn=lambda data: data.get("current_price"),
    ),
    FloorHeatingSensorEntityDescription(
        key="energy_today",
        translation_key="energy_today",
        native_unit_of_measurement=UnitOfEnergy.KILO_WATT_HOUR,
        device_class=SensorDeviceClass.ENERGY,
        state_class=SensorStateClass.TOTAL,
        suggested_display_precision=2,
        value_fn=lambda data: data.get("energy_today_kwh"),
    ),
    FloorHeatingSensorEntityDescription(
        key="total_power",
        translation_key="total_power",
        native_unit_of_measurement=UnitOfPower.WATT,
        device_class=SensorDeviceClass.POWER,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda data: data.get("total_power"),
    ),
    FloorHeatingSensorEntityDescription(
        key="season",
        translation_key="season",
        device_class=SensorDeviceClass.ENUM,
        options=[season.value for season in Season],
        value_fn=lambda data: data.get("season"),
    ),
    FloorHeatingSensorEntityDescription(
        key="heating_degree_days",
        translation_key="heating_degree_days",
        state_class=SensorStateClass.TOTAL_INCREASING,
        suggested_display_precision=1,
        icon="mdi:snowflake-thermometer",
        value_fn=lambda data: data.get("heating_degree_days"),
    ),
)


async def async_setup_entry(
    _hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up the sensor platform."""
    coordinator = entry.runtime_data.coordinator
    controller_subentry_id = get_controller_subentry_id(entry)

    if controller_subentry_id is not None:
        async_add_entities(
            [
                FloorHeatingControllerSensor(
                    coordinator, controller_subentry_id, description
                )
                for description in CONTROLLER_SENSORS
            ],
            config_subentry_id=controller_subentry_id,
        )

    for subentry in entry.subentries.values():
        if subentry.subentry_type != SUBENTRY_TYPE_ZONE:
            continue
        zone_id = subentry.data["id"]
        if zone_id not in coordinator.bindings:
            continue
        zone_name = subentry.data["name"]
        subentry_id = subentry.subentry_id

        async_add_entities(
            [
                FloorHeatingZoneSensor(
                    coordinator=coordinator,
                    zone_id=zone_id,
                    zone_name=zone_name,
                    description=description,
                    subentry_id=subentry_id,
                )
                for description in ZONE_SENSORS
            ]
            + [
                FloorHeatingOutputSensor(
                    coordinator=coordinator,
                    zone_id=zone_id,
                    zone_name=zone_name,
                    subentry_id=subentry_id,
                )
            ],
            config_subentry_id=subentry_id,
        )


class FloorHeatingZoneSensor(FloorHeatingZoneEntity, SensorEntity):
    """Sensor entity for zone metrics."""

    entity_description: FloorHeatingSensorEntityDescription

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        zone_id: str,
        zone_name: str,
        description: FloorHeatingSensorEntityDescription,
        subentry_id: str,
    ) -> None:
        """Initialize the sensor entity."""
        super().__init__(coordinator, zone_id, zone_name, subentry_id)
        self.entity_description = description

        controller_id = coordinator.config_entry.data.get("controller_id", "")
        self._attr_unique_id = f"{controller_id}_{zone_id}_{description.key}"

    @property
    def native_value(self) -> float | str | None:
        """Return the sensor value."""
        return self.entity_description.value_fn(self.zone_data)


class FloorHeatingOutputSensor(FloorHeatingZoneSensor):
    """Heating output with an icon that follows its level."""

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        zone_id: str,
        zone_name: str,
        subentry_id: str,
    ) -> None:
        """Initialize the output sensor entity."""
        super().__init__(coordinator, zone_id, zone_name, OUTPUT_SENSOR, subentry_id)

    @property
    def icon(self) -> str | None:
        """Return icon based on the output level."""
        value = self.native_value
        if not isinstance(value, (int, float)) or value < OUTPUT_ICON_THRESHOLDS[0]:
            return "mdi:gauge-empty"
        if value >= OUTPUT_ICON_THRESHOLDS[2]:
            return "mdi:gauge-full"
        if value >= OUTPUT_ICON_THRESHOLDS[1]:
            return "mdi:gauge"
        return "mdi:gauge-low"


class FloorHeatingControllerSensor(FloorHeatingEntity, SensorEntity):
    """Sensor entity for system-wide metrics."""

    entity_description: FloorHeatingSensorEntityDescription

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        subentry_id: str,
        description: FloorHeatingSensorEntityDescription,
    ) -> None:
        """Initialize the sensor entity."""
        super().__init__(coordinator, subentry_id)
        self.entity_description = description
        self._attr_unique_id = f"{self.controller_id}_{description.key}"

    @property
    def native_value(self) -> float | str | None:
        """Return the sensor value."""
        return self.entity_description.value_fn(self.coordinator.data)
