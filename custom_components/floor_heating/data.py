"""Custom types for floor_heating."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry

    from .coordinator import FloorHeatingDataUpdateCoordinator


type FloorHeatingConfigEntry = ConfigEntry[FloorHeatingData]


@dataclass
class FloorHeatingData:
    """Runtime data of a Floor Heating Controller entry."""

    coordinator: FloorHeatingDataUpdateCoordinator
