"""Device helpers for Floor Heating Controller."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.helpers.device_registry import DeviceInfo

from .const import DOMAIN, VERSION

if TYPE_CHECKING:
    from .coordinator import FloorHeatingDataUpdateCoordinator

MANUFACTURER = "Floor Heating Controller"


def get_controller_device_info(
    coordinator: FloorHeatingDataUpdateCoordinator,
) -> DeviceInfo:
    """Get device info for the controller device."""
    return DeviceInfo(
        identifiers={(DOMAIN, coordinator.config_entry.entry_id)},
        name=coordinator.config_entry.data.get("name", "Floor Heating"),
        manufacturer=MANUFACTURER,
        model="Zone Controller",
        sw_version=VERSION,
    )


def get_zone_device_info(
    coordinator: FloorHeatingDataUpdateCoordinator,
    zone_id: str,
    zone_name: str,
) -> DeviceInfo:
    """Get device info for a heating zone, attached to the controller device."""
    return DeviceInfo(
        identifiers={(DOMAIN, f"{coordinator.config_entry.entry_id}_{zone_id}")},
        name=zone_name,
        manufacturer=MANUFACTURER,
        model="Floor Heating Zone",
        via_device=(DOMAIN, coordinator.config_entry.entry_id),
    )
