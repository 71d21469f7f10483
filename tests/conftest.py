"""Common fixtures for Floor Heating Controller tests."""

from collections.abc import Generator
from datetime import datetime
from typing import Any
from unittest.mock import patch

import pytest
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.helpers import entity_registry as er
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.floor_heating.const import (
    DOMAIN,
    SUBENTRY_TYPE_ZONE,
    FloorMaterial,
    HeatingType,
    TimingParams,
)
from custom_components.floor_heating.core import (
    EngineConfig,
    HeatingEngine,
    PIDController,
    ZoneConfig,
    ZoneRuntime,
)

MOCK_CONTROLLER_ID = "test_controller"

MOCK_ZONE_DATA: dict[str, Any] = {
    "id": "zone1",
    "name": "Test Zone 1",
    "heating_type": "water",
    "floor_material": "tile",
    "air_temp_sensor": "sensor.zone1_temp",
    "floor_temp_sensor": "sensor.zone1_floor",
    "window_sensors": [],
    "heater_entity": "switch.zone1_heater",
    "temperatures": {
        "comfort": 21.0,
        "eco": 18.0,
        "frost": 8.0,
    },
    "area": 12.0,
    "installed_power": 1200.0,
}

MOCK_ZONE2_DATA: dict[str, Any] = {
    "id": "zone2",
    "name": "Test Zone 2",
    "heating_type": "electric",
    "floor_material": "wood",
    "air_temp_sensor": "sensor.zone2_temp",
    "window_sensors": [],
    "heater_entity": "switch.zone2_heater",
    "temperatures": {
        "comfort": 21.0,
        "eco": 18.0,
        "frost": 8.0,
    },
    "area": 8.0,
    "installed_power": 600.0,
}

# Monday 2025-01-06, used as a fixed reference point by the core tests
MONDAY = datetime(2025, 1, 6, 12, 0)


def make_zone_config(zone_id: str = "kitchen", **kwargs: Any) -> ZoneConfig:
    """Build a zone configuration with readable defaults."""
    kwargs.setdefault("name", zone_id.replace("_", " ").title())
    kwargs.setdefault("heating_type", HeatingType.ELECTRIC)
    kwargs.setdefault("floor_material", FloorMaterial.TILE)
    return ZoneConfig(zone_id=zone_id, **kwargs)


def make_runtime(zone_id: str = "kitchen", **kwargs: Any) -> ZoneRuntime:
    """Build a standalone zone runtime with a default PID controller."""
    return ZoneRuntime(config=make_zone_config(zone_id, **kwargs), pid=PIDController())


def make_engine(*zones: ZoneConfig, **kwargs: Any) -> HeatingEngine:
    """Build an engine with the given zones and default timing."""
    kwargs.setdefault("timing", TimingParams())
    return HeatingEngine(EngineConfig(zones=list(zones), **kwargs))


def get_entity_id(hass: HomeAssistant, platform: str, unique_id: str) -> str:
    """Return the entity id registered for a unique id."""
    entity_id = er.async_get(hass).async_get_entity_id(platform, DOMAIN, unique_id)
    assert entity_id is not None, f"{platform} entity {unique_id} not registered"
    return entity_id


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry with one zone subentry."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="Test Controller",
        data={
            "name": "Test Controller",
            "controller_id": MOCK_CONTROLLER_ID,
        },
        entry_id="test_entry_id",
        unique_id=MOCK_CONTROLLER_ID,
        subentries_data=[
            {
                "data": MOCK_ZONE_DATA,
                "subentry_id": "subentry_zone1",
                "subentry_type": SUBENTRY_TYPE_ZONE,
                "title": "Test Zone 1",
                "unique_id": "zone1",
            }
        ],
    )


@pytest.fixture
def mock_config_entry_with_inputs() -> MockConfigEntry:
    """Return a mock config entry with price and outdoor sensors configured."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="Test Controller Inputs",
        data={
            "name": "Test Controller Inputs",
            "controller_id": f"{MOCK_CONTROLLER_ID}_inputs",
            "price_sensor": "sensor.spot_price",
            "outdoor_temp_sensor": "sensor.outdoor_temp",
        },
        entry_id="test_entry_id_inputs",
        unique_id=f"{MOCK_CONTROLLER_ID}_inputs",
        subentries_data=[
            {
                "data": MOCK_ZONE_DATA,
                "subentry_id": "subentry_zone1",
                "subentry_type": SUBENTRY_TYPE_ZONE,
                "title": "Test Zone 1",
                "unique_id": "zone1",
            }
        ],
    )


@pytest.fixture
def mock_config_entry_no_zones() -> MockConfigEntry:
    """Return a mock config entry without zones."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="Test Controller",
        data={
            "name": "Test Controller",
            "controller_id": MOCK_CONTROLLER_ID,
        },
        entry_id="test_entry_id_no_zones",
        unique_id=f"{MOCK_CONTROLLER_ID}_no_zones",
    )


@pytest.fixture
def mock_config_entry_multiple_zones() -> MockConfigEntry:
    """Return a mock config entry with two zone subentries for isolation testing."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="Test Controller Multi",
        data={
            "name": "Test Controller Multi",
            "controller_id": f"{MOCK_CONTROLLER_ID}_multi",
        },
        entry_id="test_entry_id_multi",
        unique_id=f"{MOCK_CONTROLLER_ID}_multi",
        subentries_data=[
            {
                "data": MOCK_ZONE_DATA,
                "subentry_id": "subentry_zone1",
                "subentry_type": SUBENTRY_TYPE_ZONE,
                "title": "Test Zone 1",
                "unique_id": "zone1",
            },
            {
                "data": MOCK_ZONE2_DATA,
                "subentry_id": "subentry_zone2",
                "subentry_type": SUBENTRY_TYPE_ZONE,
                "title": "Test Zone 2",
                "unique_id": "zone2",
            },
        ],
    )


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(
    enable_custom_integrations: None,
) -> None:
    """Enable custom integrations for all tests."""


@pytest.fixture(autouse=True)
def expected_lingering_timers() -> bool:
    """Allow lingering timers for coordinator updates."""
    return True


@pytest.fixture
def platforms() -> list[Platform]:
    """Return the platforms to load."""
    return [
        Platform.BINARY_SENSOR,
        Platform.CLIMATE,
        Platform.SENSOR,
        Platform.SWITCH,
    ]


@pytest.fixture
def mock_setup_entry() -> Generator[None]:
    """Mock setting up a config entry."""
    with patch(
        "custom_components.floor_heating.async_setup_entry",
        return_value=True,
    ):
        yield


@pytest.fixture
async def mock_temp_sensor(hass: HomeAssistant) -> None:
    """
    Set up mock zone sensor and heater entity states.

    Use this fixture in tests that need the zone to receive readings.
    Without an air temperature the zone is not PID-driven and holds its
    last output.
    """
    hass.states.async_set("sensor.zone1_temp", "19.5")
    hass.states.async_set("sensor.zone1_floor", "24.0")
    hass.states.async_set("switch.zone1_heater", "off")
