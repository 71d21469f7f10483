"""Binary sensor platform for Floor Heating Controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
    BinarySensorEntityDescription,
)

from .const import SUBENTRY_TYPE_ZONE
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


@dataclass(frozen=True, kw_only=True)
class FloorHeatingBinarySensorEntityDescription(BinarySensorEntityDescription):
    """Describes a floor heating binary sensor entity."""

    value_fn: Callable[[dict[str, Any]], bool]


ZONE_BINARY_SENSORS: tuple[FloorHeatingBinarySensorEntityDescription, ...] = (
    FloorHeatingBinarySensorEntityDescription(
        key="heating",
        translation_key="heating",
        device_class=BinarySensorDeviceClass.HEAT,
        value_fn=lambda data: data.get("heating_active", False),
    ),
    FloorHeatingBinarySensorEntityDescription(
        key="fault",
        translation_key="fault",
        device_class=BinarySensorDeviceClass.PROBLEM,
        value_fn=lambda data: data.get("fault_code") is not None,
    ),
    FloorHeatingBinarySensorEntityDescription(
        key="window_paused",
        translation_key="window_paused",
        device_class=BinarySensorDeviceClass.WINDOW,
        value_fn=lambda data: data.get("window_paused", False),
    ),
    FloorHeatingBinarySensorEntityDescription(
        key="floor_limit",
        translation_key="floor_limit",
        device_class=BinarySensorDeviceClass.PROBLEM,
        value_fn=lambda data: data.get("limit_reason", "none") != "none",
    ),
)


async def async_setup_entry(
    _hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
    async_add_entities: AddConfigEntryEntitiesCallback,
) -> None:
    """Set up the binary sensor platform."""
    coordinator = entry.runtime_data.coordinator

    controller_subentry_id = get_controller_subentry_id(entry)
    if controller_subentry_id is not None:
        async_add_entities(
            [
                FloorHeatingSummerShutdownSensor(coordinator, controller_subentry_id),
                FloorHeatingProblemSensor(coordinator, controller_subentry_id),
            ],
            config_subentry_id=controller_subentry_id,
        )

    for subentry in entry.subentries.values():
        if subentry.subentry_type != SUBENTRY_TYPE_ZONE:
            continue
        zone_id = subentry.data["id"]
        if zone_id not in coordinator.bindings:
            continue
        async_add_entities(
            [
                FloorHeatingZoneBinarySensor(
                    coordinator=coordinator,
                    zone_id=zone_id,
                    zone_name=subentry.data["name"],
                    description=description,
                    subentry_id=subentry.subentry_id,
                )
                for description in ZONE_BINARY_SENSORS
            ],
            config_subentry_id=subentry.subentry_id,
        )


class FloorHeatingZoneBinarySensor(FloorHeatingZoneEntity, BinarySensorEntity):
    """Binary sensor entity for zone status."""

    entity_description: FloorHeatingBinarySensorEntityDescription

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        zone_id: str,
        zone_name: str,
        description: FloorHeatingBinarySensorEntityDescription,
        subentry_id: str,
    ) -> None:
        """Initialize the binary sensor entity."""
        super().__init__(coordinator, zone_id, zone_name, subentry_id)
        self.entity_description = description

        controller_id = coordinator.config_entry.data.get("controller_id", "")
        self._attr_unique_id = f"{controller_id}_{zone_id}_{description.key}"

    @property
    def is_on(self) -> bool:
        """Return the sensor state."""
        return self.entity_description.value_fn(self.zone_data)

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        """Expose the fault code or limit reason behind a problem state."""
        if self.entity_description.key == "fault":
            return {"fault_code": self.zone_data.get("fault_code")}
        if self.entity_description.key == "floor_limit":
            return {"limit_reason": self.zone_data.get("limit_reason")}
        return None


class FloorHeatingSummerShutdownSensor(FloorHeatingEntity, BinarySensorEntity):
    """On while warm weather keeps every zone off."""

    _attr_translation_key = "summer_shutdown"
    _attr_icon = "mdi:weather-sunny"

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        subentry_id: str,
    ) -> None:
        """Initialize the summer shutdown sensor."""
        super().__init__(coordinator, subentry_id)
        self._attr_unique_id = f"{self.controller_id}_summer_shutdown"

    @property
    def is_on(self) -> bool:
        """Return True during summer shutdown."""
        return self.coordinator.data.get("summer_shutdown", False)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return the outdoor temperature that drives the shutdown."""
        return {"outdoor_temperature": self.coordinator.data.get("outdoor_temp")}


class FloorHeatingProblemSensor(FloorHeatingEntity, BinarySensorEntity):
    """On while any zone reports a fault."""

    _attr_translation_key = "problem"
    _attr_device_class = BinarySensorDeviceClass.PROBLEM

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        subentry_id: str,
    ) -> None:
        """Initialize the problem sensor."""
        super().__init__(coordinator, subentry_id)
        self._attr_unique_id = f"{self.controller_id}_problem"

    def _faulted_zones(self) -> dict[str, str]:
        zones = self.coordinator.data.get("zones", {})
        return {
            zone_id: zone["fault_code"]
            for zone_id, zone in zones.items()
            if zone.get("fault_code") is not None
        }

    @property
    def is_on(self) -> bool:
        """Return True if any zone has a fault."""
        return bool(self._faulted_zones())

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return the faulted zones and overall health."""
        return {
            "faults": self._faulted_zones(),
            "system_health": self.coordinator.data.get("system_health"),
            "anti_seize_running": self.coordinator.data.get("anti_seize_running", []),
        }
