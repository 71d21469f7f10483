"""Base entity classes for Floor Heating Controller."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import SUBENTRY_TYPE_CONTROLLER
from .coordinator import FloorHeatingDataUpdateCoordinator
from .device import get_controller_device_info, get_zone_device_info

if TYPE_CHECKING:
    from .data import FloorHeatingConfigEntry


def get_controller_subentry_id(entry: FloorHeatingConfigEntry) -> str | None:
    """Get the controller subentry ID."""
    for subentry in entry.subentries.values():
        if subentry.subentry_type == SUBENTRY_TYPE_CONTROLLER:
            return subentry.subentry_id
    return None


class FloorHeatingEntity(CoordinatorEntity[FloorHeatingDataUpdateCoordinator]):
    """Base class for controller-level entities."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        subentry_id: str,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self._attr_config_subentry_id = subentry_id
        self._attr_device_info = get_controller_device_info(coordinator)

    @property
    def controller_id(self) -> str:
        """Return the controller id used as unique id prefix."""
        return self.coordinator.config_entry.data.get("controller_id", "")


class FloorHeatingZoneEntity(CoordinatorEntity[FloorHeatingDataUpdateCoordinator]):
    """Base class for zone-level entities."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        zone_id: str,
        zone_name: str,
        subentry_id: str,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self._zone_id = zone_id
        self._attr_config_subentry_id = subentry_id
        self._attr_device_info = get_zone_device_info(coordinator, zone_id, zone_name)

    @property
    def zone_id(self) -> str:
        """Return the zone ID."""
        return self._zone_id

    @property
    def zone_data(self) -> dict[str, Any]:
        """Return this zone's slice of the coordinator data."""
        return self.coordinator.data.get("zones", {}).get(self._zone_id, {})

    @property
    def available(self) -> bool:
        """Return True while the zone is still known to the engine."""
        return super().available and bool(self.zone_data)
