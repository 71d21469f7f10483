"""Test Floor Heating Controller setup and unload."""

from types import MappingProxyType
from unittest.mock import AsyncMock, patch

import pytest
from homeassistant.config_entries import ConfigEntryState, ConfigSubentry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers import entity_registry as er
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.floor_heating import async_remove_config_entry_device
from custom_components.floor_heating.const import (
    DEFAULT_PID,
    DEFAULT_TIMING,
    DOMAIN,
    SUBENTRY_TYPE_CONTROLLER,
    SUBENTRY_TYPE_ZONE,
)
from tests.conftest import MOCK_ZONE2_DATA


async def test_setup_entry(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test successful setup of config entry."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    assert mock_config_entry.state is ConfigEntryState.LOADED
    coordinator = mock_config_entry.runtime_data.coordinator
    assert coordinator.engine.zone_ids == ["zone1"]
    assert coordinator.engine.config.controller_id == "test_controller"


async def test_setup_creates_controller_subentry(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that setup adds the controller subentry with defaults."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    controllers = [
        subentry
        for subentry in mock_config_entry.subentries.values()
        if subentry.subentry_type == SUBENTRY_TYPE_CONTROLLER
    ]
    assert len(controllers) == 1
    assert controllers[0].unique_id == "controller"
    assert controllers[0].data["timing"] == dict(DEFAULT_TIMING)
    assert controllers[0].data["pid"]["kp"] == DEFAULT_PID["kp"]


async def test_setup_entry_no_zones(
    hass: HomeAssistant,
    mock_config_entry_no_zones: MockConfigEntry,
) -> None:
    """Test setup with no zones configured."""
    mock_config_entry_no_zones.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry_no_zones.entry_id)
    await hass.async_block_till_done()

    coordinator = mock_config_entry_no_zones.runtime_data.coordinator
    assert coordinator.engine.zone_ids == []
    assert coordinator.data["zones"] == {}


async def test_setup_skips_invalid_zone(
    hass: HomeAssistant,
) -> None:
    """Test that a broken zone subentry does not block the others."""
    entry = MockConfigEntry(
        domain=DOMAIN,
        title="Test Controller",
        data={"name": "Test Controller", "controller_id": "broken"},
        unique_id="broken",
        subentries_data=[
            {
                "data": MOCK_ZONE2_DATA,
                "subentry_type": SUBENTRY_TYPE_ZONE,
                "title": "Test Zone 2",
                "unique_id": "zone2",
            },
            {
                "data": {
                    **MOCK_ZONE2_DATA,
                    "id": "zone3",
                    "name": "Zone 3",
                    "floor_material": "marble",
                },
                "subentry_type": SUBENTRY_TYPE_ZONE,
                "title": "Zone 3",
                "unique_id": "zone3",
            },
        ],
    )
    entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()

    assert entry.runtime_data.coordinator.engine.zone_ids == ["zone2"]


async def test_unload_entry_saves_state(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that unloading persists the engine state."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()
    coordinator = mock_config_entry.runtime_data.coordinator

    with patch.object(
        coordinator, "async_save_state", new_callable=AsyncMock
    ) as mock_save:
        assert await hass.config_entries.async_unload(mock_config_entry.entry_id)
        await hass.async_block_till_done()

    mock_save.assert_awaited()
    assert mock_config_entry.state is ConfigEntryState.NOT_LOADED


async def test_reload_entry(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test reload of config entry."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    assert await hass.config_entries.async_reload(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    assert mock_config_entry.state is ConfigEntryState.LOADED


async def test_adding_zone_reloads_entry(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that a new zone subentry is picked up after reload."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    hass.config_entries.async_add_subentry(
        mock_config_entry,
        ConfigSubentry(
            data=MappingProxyType(MOCK_ZONE2_DATA),
            subentry_type=SUBENTRY_TYPE_ZONE,
            title="Test Zone 2",
            unique_id="zone2",
        ),
    )
    await hass.async_block_till_done()

    coordinator = mock_config_entry.runtime_data.coordinator
    assert sorted(coordinator.engine.zone_ids) == ["zone1", "zone2"]


async def test_renamed_zone_is_migrated(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that a zone renamed through its title moves to a new id."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    subentry = mock_config_entry.subentries["subentry_zone1"]
    with patch(
        "homeassistant.config_entries.ConfigEntries.async_reload",
        new_callable=AsyncMock,
    ):
        hass.config_entries.async_update_subentry(
            mock_config_entry, subentry, title="Living Room"
        )
        await hass.async_block_till_done()

    assert await hass.config_entries.async_reload(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    subentry = mock_config_entry.subentries["subentry_zone1"]
    assert subentry.data["id"] == "living-room"
    assert subentry.data["name"] == "Living Room"
    assert mock_config_entry.runtime_data.coordinator.engine.zone_ids == [
        "living-room"
    ]

    entity_reg = er.async_get(hass)
    assert (
        entity_reg.async_get_entity_id(
            "climate", DOMAIN, "test_controller_living-room_climate"
        )
        is not None
    )
    assert (
        entity_reg.async_get_entity_id(
            "climate", DOMAIN, "test_controller_zone1_climate"
        )
        is None
    )


async def test_remove_zone_device_allowed(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that an orphaned zone device may be removed."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    device_reg = dr.async_get(hass)
    zone_device = device_reg.async_get_device(
        identifiers={(DOMAIN, f"{mock_config_entry.entry_id}_zone1")}
    )
    assert zone_device is not None

    assert await async_remove_config_entry_device(
        hass, mock_config_entry, zone_device
    )


async def test_remove_controller_device_refused(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that the controller device cannot be removed on its own."""
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    device_reg = dr.async_get(hass)
    controller_device = device_reg.async_get_device(
        identifiers={(DOMAIN, mock_config_entry.entry_id)}
    )
    assert controller_device is not None

    with pytest.raises(HomeAssistantError, match="Cannot delete the controller"):
        await async_remove_config_entry_device(
            hass, mock_config_entry, controller_device
        )
