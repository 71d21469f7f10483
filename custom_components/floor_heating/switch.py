"""Switch platform for Floor Heating Controller."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.switch import SwitchDeviceClass, SwitchEntity

from .entity import FloorHeatingEntity, get_controller_subentry_id

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
    """Set up the switch platform."""
    coordinator = entry.runtime_data.coordinator
    controller_subentry_id = get_controller_subentry_id(entry)

    if controller_subentry_id is None:
        return

    async_add_entities(
        [FloorHeatingHolidaySwitch(coordinator, controller_subentry_id)],
        config_subentry_id=controller_subentry_id,
    )


class FloorHeatingHolidaySwitch(FloorHeatingEntity, SwitchEntity):
    """Holiday mode: keep every zone at frost protection only."""

    _attr_translation_key = "holiday_mode"
    _attr_device_class = SwitchDeviceClass.SWITCH
    _attr_icon = "mdi:airplane"

    def __init__(
        self,
        coordinator: FloorHeatingDataUpdateCoordinator,
        subentry_id: str,
    ) -> None:
        """Initialize the switch entity."""
        super().__init__(coordinator, subentry_id)
        self._attr_unique_id = f"{self.controller_id}_holiday_mode"

    @property
    def is_on(self) -> bool:
        """Return True while holiday mode is enabled."""
        return self.coordinator.data.get("holiday_mode", False)

    async def async_turn_on(self, **_kwargs: Any) -> None:
        """Enable holiday mode."""
        await self.coordinator.async_set_holiday_mode(enabled=True)

    async def async_turn_off(self, **_kwargs: Any) -> None:
        """Disable holiday mode."""
        await self.coordinator.async_set_holiday_mode(enabled=False)
